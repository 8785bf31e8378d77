"""Custom database column types for cross-database compatibility."""
from __future__ import annotations

import json
from typing import Any, Iterable

from sqlalchemy.dialects.postgresql import ARRAY as PG_ARRAY
from sqlalchemy.types import Text, TypeDecorator


def normalize_roles(value: Any) -> list[str]:
    """Return a sorted, lower-cased, de-duplicated role list.

    Accepts the current list representation as well as the legacy
    comma-joined string column (``"Admin, orga"``).
    """

    if value is None:
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            return normalize_roles(json.loads(stripped))
        items: Iterable[Any] = stripped.split(",")
    else:
        items = value
    return sorted({str(item).strip().lower() for item in items if item and str(item).strip()})


class RoleSet(TypeDecorator):
    """Persist a member's roles as a normalized list of strings."""

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_ARRAY(Text))
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return None
        roles = normalize_roles(value)
        if dialect.name == "postgresql":
            return roles
        return json.dumps(roles)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        return normalize_roles(value)
