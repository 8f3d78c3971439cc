from imaging.cache import MockupCache
from imaging.layers import LayerNode, PsdDocument, find_layer_by_names, find_smart_object
from imaging.magick import MagickLayerSource, MagickTool
