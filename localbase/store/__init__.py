"""
Table store for Localbase.

Holds every table in memory and mirrors it to key-value storage after each
mutation. Seed helpers fill empty tables at engine start.
"""

from .seed import default_seed, load_seed_file, parse_seed
from .tables import Row, TableStore, next_id

__all__ = [
    "Row",
    "TableStore",
    "next_id",
    "default_seed",
    "load_seed_file",
    "parse_seed",
]
