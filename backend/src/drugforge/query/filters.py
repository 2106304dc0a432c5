"""FilterMap: column name -> ordered set of accepted string values.

Request JSON is converted once at the boundary by ``parse_filter_map``;
everything downstream works with the normalized form.
"""

from typing import Any

from drugforge.errors import SchemaValidationError
from drugforge.metadata.schema import is_valid_identifier

FilterMap = dict[str, tuple[str, ...]]


def filter_value_text(value: Any) -> str:
    """Render one scalar filter value the way the database renders it as text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    raise TypeError(type(value).__name__)


def parse_filter_map(raw: Any) -> FilterMap:
    """Convert a JSON filter object into a FilterMap.

    - a scalar value becomes a one-element set
    - ``None`` entries are dropped
    - duplicates are removed, first occurrence wins
    - an empty list means "no constraint" and is kept as an empty tuple

    Raises:
        SchemaValidationError: the object is not a mapping, a key is not a
            valid identifier, or a value is a nested object or array.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SchemaValidationError("filters must be an object of column -> values")

    filters: FilterMap = {}
    for column, value in raw.items():
        if not is_valid_identifier(column):
            raise SchemaValidationError(
                f"Invalid filter column name: {column!r}", identifier=str(column)
            )
        items = value if isinstance(value, list) else [value]
        seen: dict[str, None] = {}
        for item in items:
            if item is None:
                continue
            try:
                seen.setdefault(filter_value_text(item), None)
            except TypeError:
                raise SchemaValidationError(
                    f"Filter values for '{column}' must be scalars or an array of scalars",
                    identifier=column,
                ) from None
        filters[column] = tuple(seen)
    return filters


def active_filters(filters: FilterMap, exclude: str | None = None) -> list[tuple[str, tuple[str, ...]]]:
    """Entries that actually constrain a query, optionally skipping one column."""
    return [
        (column, values)
        for column, values in filters.items()
        if values and column != exclude
    ]
