"""Custom exception hierarchy."""


class MockupError(Exception):
    """Base for every project exception."""


class TemplateNotFoundError(MockupError):
    """Requested template id is not in the library."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class MissingInputError(MockupError):
    """A required input (design, layer, argument) was not provided."""


class AssetUnavailableError(MockupError):
    """An optional template asset is missing or unreadable."""


class SourceReadError(MockupError):
    """A required source image or layered file could not be read."""


class ToolUnavailableError(MockupError):
    """The native layer-extraction binary is not installed."""


class ToolExecutionError(MockupError):
    """A native layer-extraction command exited with an error."""


class ConfigurationError(MockupError):
    """Invalid or missing configuration."""
