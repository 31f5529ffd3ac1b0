"""
Seed data for a fresh storefront.

Seeds are applied per table at engine start, and only to tables that are
still empty after loading storage. A YAML seed file, when configured,
replaces the built-in seeds entirely.

Seed file format:
    tables:
      categories:
        - {id: 1, name: Instagram, slug: instagram}
      orders: []

Invariants:
    - Seed rows are freshly built on every call; callers may mutate them
    - Seeding never overwrites a non-empty table
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import yaml

from ..timeutil import to_iso


def default_seed() -> dict[str, list[dict[str, Any]]]:
    """Build the built-in demo data.

    Returns:
        Mapping of table name to seed rows
    """
    now = datetime.now(timezone.utc)
    created = to_iso(now)
    day_ago = to_iso(now - timedelta(days=1))
    half_day_ago = to_iso(now - timedelta(hours=12))

    return {
        "categories": [
            {"id": 1, "name": "Instagram", "slug": "instagram", "icon": "Instagram",
             "sort_order": 1, "is_active": True, "created_at": created},
            {"id": 2, "name": "YouTube", "slug": "youtube", "icon": "Youtube",
             "sort_order": 2, "is_active": True, "created_at": created},
            {"id": 3, "name": "TikTok", "slug": "tiktok", "icon": "Video",
             "sort_order": 3, "is_active": True, "created_at": created},
        ],
        "services": [
            {
                "id": 1,
                "name": "Instagram Followers (Real)",
                "type": "smm",
                "category_id": 1,
                "price_per_1000": 5.0,
                "min_quantity": 1,
                "max_quantity": 10000,
                "description": "High quality real followers",
                "is_active": True,
                "input_schema": ["link", "quantity"],
                "created_at": created,
            },
            {
                "id": 2,
                "name": "YouTube Views",
                "type": "smm",
                "category_id": 2,
                "price_per_1000": 2.5,
                "min_quantity": 1,
                "max_quantity": 50000,
                "description": "Fast retention views",
                "is_active": True,
                "input_schema": ["link", "quantity"],
                "created_at": created,
            },
        ],
        "profiles": [
            {"id": "user-123", "email": "user@example.com", "role": "user",
             "balance": 100.0, "is_active": True, "created_at": created},
            {"id": "admin-123", "email": "admin@example.com", "role": "admin",
             "balance": 9999.99, "is_active": True, "created_at": created},
        ],
        "user_roles": [
            {"id": "role-1", "user_id": "user-123", "role": "user", "created_at": created},
            {"id": "role-2", "user_id": "admin-123", "role": "admin", "created_at": created},
        ],
        "orders": [
            {
                "id": 1001,
                "user_id": "user-123",
                "service_id": 1,
                "status": "completed",
                "amount": 15.0,
                "link": "https://instagram.com/p/123",
                "quantity": 1000,
                "created_at": day_ago,
                "updated_at": day_ago,
                "fulfillment_data": {
                    "text": "<p>Order <b>completed</b> successfully!</p>",
                    "files": [],
                },
            },
            {
                "id": 1002,
                "user_id": "user-123",
                "service_id": 1,
                "status": "processing",
                "amount": 7.5,
                "link": "https://instagram.com/p/456",
                "quantity": 500,
                "created_at": half_day_ago,
                "updated_at": half_day_ago,
            },
            {
                "id": 1003,
                "user_id": "user-123",
                "service_id": 2,
                "status": "pending",
                "amount": 25.0,
                "link": "https://youtube.com/watch?v=xyz",
                "quantity": 2000,
                "created_at": created,
                "updated_at": created,
            },
        ],
    }


def _normalize_value(value: Any) -> Any:
    # YAML turns unquoted timestamps into datetime objects
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _normalize_row(row: dict[str, Any]) -> dict[str, Any]:
    return {str(k): _normalize_value(v) for k, v in row.items()}


def parse_seed(data: Any, source: str = "<seed>") -> dict[str, list[dict[str, Any]]]:
    """Validate a parsed seed document.

    Args:
        data: Parsed YAML/JSON document
        source: Name used in error messages

    Returns:
        Mapping of table name to rows

    Raises:
        ValueError: If the document does not follow the seed format
    """
    if not isinstance(data, dict) or not isinstance(data.get("tables"), dict):
        raise ValueError(f"{source}: seed file must contain a 'tables' mapping")

    seed: dict[str, list[dict[str, Any]]] = {}
    for table, rows in data["tables"].items():
        rows = rows or []
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ValueError(f"{source}: table '{table}' must be a list of mappings")
        seed[str(table)] = [_normalize_row(r) for r in rows]
    return seed


def load_seed_file(path: str | Path) -> dict[str, list[dict[str, Any]]]:
    """Load seed rows from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file does not follow the seed format
    """
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f)
    return parse_seed(data, source=str(path))
