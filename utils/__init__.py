from utils.exceptions import (
    MockupError,
    TemplateNotFoundError,
    MissingInputError,
    AssetUnavailableError,
    SourceReadError,
    ToolUnavailableError,
    ToolExecutionError,
    ConfigurationError,
)
from utils.log_config import get_logger
from utils.concurrency import AtomicCounter
from utils.retry import retry
from utils.scratch import scratch_dir
