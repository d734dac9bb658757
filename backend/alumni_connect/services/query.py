"""
Query-string grammar for the generic table endpoints.

Filters use ``column=operator.value`` pairs, ordering and paging use the
reserved ``order``, ``limit`` and ``select`` parameters:

    GET /rest/events?event_date=gte.2025-01-01T00:00:00&order=event_date.asc&limit=20
"""

import operator
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import Boolean, DateTime, Integer

RESERVED_PARAMS = {"select", "order", "limit"}

FILTER_OPERATORS = {
    "eq": operator.eq,
    "neq": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "ilike": lambda column, value: column.ilike(value),
    "is": lambda column, value: column.is_(value),
}

IS_VALUES = {"null": None, "true": True, "false": False}


class QueryError(ValueError):
    """Malformed filter, ordering or payload."""

    def __init__(self, message: str, code: str = "PGRST100"):
        super().__init__(message)
        self.code = code


def get_columns(model) -> dict:
    return {column.name: column for column in model.__table__.columns}


def _get_column(model, name: str):
    column = get_columns(model).get(name)
    if column is None:
        raise QueryError(f"Column '{name}' does not exist on '{model.__tablename__}'")
    return column


def coerce_value(column, value: Any) -> Any:
    """Convert a query-string or JSON value to the column's Python type."""
    if value is None:
        return None

    if isinstance(column.type, Boolean):
        if isinstance(value, bool):
            return value
        lowered = str(value).lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise QueryError(f"Invalid boolean for '{column.name}': {value}")

    if isinstance(column.type, Integer):
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise QueryError(f"Invalid integer for '{column.name}': {value}") from exc

    if isinstance(column.type, DateTime):
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            except ValueError as exc:
                raise QueryError(f"Invalid datetime for '{column.name}': {value}") from exc
        # Stored as naive UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    return value if isinstance(value, str) else str(value)


def parse_filters(model, params: Iterable[tuple[str, str]]) -> list:
    """Build SQLAlchemy filter clauses from ``(column, "op.value")`` pairs."""
    clauses = []
    for name, raw in params:
        if name in RESERVED_PARAMS:
            continue

        column = _get_column(model, name)
        op_name, sep, raw_value = raw.partition(".")
        if not sep or op_name not in FILTER_OPERATORS:
            raise QueryError(f"Invalid filter '{name}={raw}'")

        if op_name == "is":
            if raw_value.lower() not in IS_VALUES:
                raise QueryError(f"Invalid 'is' value: {raw_value}")
            value = IS_VALUES[raw_value.lower()]
        elif op_name == "ilike":
            value = raw_value.replace("*", "%")
        else:
            value = coerce_value(column, raw_value)

        clauses.append(FILTER_OPERATORS[op_name](column, value))
    return clauses


def parse_order(model, order: Optional[str]) -> list:
    """Parse ``order=col.asc,other.desc``."""
    if not order:
        return []

    clauses = []
    for part in order.split(","):
        name, _, direction = part.strip().partition(".")
        column = _get_column(model, name)
        direction = direction or "asc"
        if direction not in ("asc", "desc"):
            raise QueryError(f"Invalid order direction '{direction}'")
        clauses.append(column.asc() if direction == "asc" else column.desc())
    return clauses


def parse_limit(limit: Optional[str]) -> Optional[int]:
    if limit is None:
        return None
    try:
        value = int(limit)
    except ValueError as exc:
        raise QueryError(f"Invalid limit '{limit}'") from exc
    if value < 1:
        raise QueryError("limit must be positive")
    return value


def parse_select(model, select: Optional[str]) -> Optional[list[str]]:
    """Column projection; ``None`` means every column."""
    if not select or select.strip() == "*":
        return None
    names = [name.strip() for name in select.split(",") if name.strip()]
    for name in names:
        _get_column(model, name)
    return names


def clean_payload(model, payload: dict) -> dict:
    """Reject unknown columns and coerce values for insert/update bodies."""
    if not isinstance(payload, dict):
        raise QueryError("Row payload must be a JSON object", code="PGRST204")

    columns = get_columns(model)
    values = {}
    for name, value in payload.items():
        column = columns.get(name)
        if column is None:
            raise QueryError(
                f"Could not find the '{name}' column of '{model.__tablename__}'",
                code="PGRST204",
            )
        values[name] = coerce_value(column, value)
    return values


def row_to_dict(row, columns: Optional[list[str]] = None) -> dict:
    names = columns or list(get_columns(type(row)))
    return {name: getattr(row, name) for name in names}
