"""Shared test fixtures."""

import json
import shutil
import tempfile
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from config.settings import AppConfig, PathConfig
from core.service import MockupService

BASE_GREY = (200, 200, 200, 255)
RED = (255, 0, 0, 255)


def png_bytes(size=(300, 300), color=RED, mode="RGBA") -> bytes:
    buf = BytesIO()
    Image.new(mode, size, color).save(buf, "PNG")
    return buf.getvalue()


def decode(buffer: bytes) -> Image.Image:
    return Image.open(BytesIO(buffer)).convert("RGBA")


def write_template(
    templates_dir: Path,
    template_id: str,
    product_type: str = "poster",
    color=None,
    angle: str = "front",
    base_size=(1000, 1000),
    base_color=BASE_GREY,
    print_area=None,
    category=None,
    assets=None,
    declare=(),
):
    """
    Create ``<templates_dir>/<id>/`` with a solid base, optional assets
    (``{"mask.png": Image}``) and a ``metadata.json``.  *declare* lists
    extra asset keys to reference without writing the file.
    """
    folder = templates_dir / template_id
    folder.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", base_size, base_color).save(folder / "base.png")

    metadata = {
        "id": template_id,
        "name": template_id.replace("-", " ").title(),
        "productType": product_type,
        "angle": angle,
        "basePath": "base.png",
        "printArea": print_area or {"x": 0.25, "y": 0.2, "width": 0.5, "height": 0.5},
    }
    if color:
        metadata["color"] = color
    if category:
        metadata["category"] = category

    keys = {
        "displacement.png": "displacementPath",
        "mask.png": "maskPath",
        "shadow.png": "shadowPath",
        "highlight.png": "highlightPath",
    }
    for filename, image in (assets or {}).items():
        image.save(folder / filename)
        metadata[keys[filename]] = filename
    for filename in declare:
        metadata[keys[filename]] = filename

    (folder / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
    return folder


@pytest.fixture
def tmp_dir():
    d = Path(tempfile.mkdtemp())
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def test_config(tmp_dir):
    paths = PathConfig(
        root=tmp_dir,
        templates_dir=tmp_dir / "templates",
        cache_dir=tmp_dir / "cache",
        psd_dir=tmp_dir / "psd",
        output_dir=tmp_dir / "output",
        temp_dir=tmp_dir / "temp",
        log_file=tmp_dir / "test.log",
    )
    cfg = AppConfig(paths=paths)
    cfg.paths.ensure()
    return cfg


@pytest.fixture
def templates_dir(test_config):
    return test_config.paths.templates_dir


@pytest.fixture
def poster(templates_dir):
    return write_template(templates_dir, "poster-front")


@pytest.fixture
def design_bytes():
    return png_bytes((300, 300), RED)


@pytest.fixture
def service(test_config):
    return MockupService.from_config(test_config)
