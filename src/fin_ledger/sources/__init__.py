"""Bank-specific statement sources."""

from .base import PageFetcher, StatementSource
from .detector import SOURCES, detect_source, get_source, register_source

__all__ = [
    "PageFetcher",
    "SOURCES",
    "StatementSource",
    "detect_source",
    "get_source",
    "register_source",
]
