"""Query layer - dynamic SQL builder, filter maps, and distinct-value engine."""

from drugforge.query.builder import CompiledQuery, QueryBuilder, SelectResult
from drugforge.query.distinct import DistinctRow, DistinctRowPage, DistinctValueEngine
from drugforge.query.filters import FilterMap, parse_filter_map

__all__ = [
    "CompiledQuery",
    "DistinctRow",
    "DistinctRowPage",
    "DistinctValueEngine",
    "FilterMap",
    "QueryBuilder",
    "SelectResult",
    "parse_filter_map",
]
