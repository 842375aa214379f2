"""Application service helpers."""

from .cache import get_cache
from .compatibility import calculate_compatibility, compatibility_level
from .grouping import create_optimized_groups

__all__ = [
    "get_cache",
    "calculate_compatibility",
    "compatibility_level",
    "create_optimized_groups",
]
