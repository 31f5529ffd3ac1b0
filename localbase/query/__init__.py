"""
Query builder for Localbase.

Usage:
    >>> result = engine.table("services").select("*, category:categories(*)").eq("is_active", True).execute()
    >>> result.data[0]["category"]["name"]
    'Instagram'
"""

from .builder import QueryBuilder
from .filters import loose_equals, sort_rows, strict_equals
from .projection import DEFAULT_PROJECTION, JoinSpec, Projection, parse_projection

__all__ = [
    "QueryBuilder",
    "Projection",
    "JoinSpec",
    "DEFAULT_PROJECTION",
    "parse_projection",
    "loose_equals",
    "strict_equals",
    "sort_rows",
]
