from .locks import KeyedLocks
from .logging import configure_logging, get_logger

__all__ = ["KeyedLocks", "configure_logging", "get_logger"]
