"""BPI statement source."""

from .parser import BpiSource

__all__ = ["BpiSource"]
