from primeng_query.core.config import QueryOptions
from primeng_query.core.errors import (
    InvalidFilterFormat,
    InvalidFilterValue,
    SortTargetInvalid,
    TableQueryError,
    UnknownField,
    UnknownRelation,
    UnsupportedOperator,
)
from primeng_query.services.custom_filters import CustomFilter, apply_custom_filters
from primeng_query.services.pagination import paginate, resolve_pagination
from primeng_query.services.relation_registry import RelationRegistry, default_registry
from primeng_query.services.table_query import ComposedQuery, apply_table_query

__all__ = [
    "ComposedQuery",
    "CustomFilter",
    "InvalidFilterFormat",
    "InvalidFilterValue",
    "QueryOptions",
    "RelationRegistry",
    "SortTargetInvalid",
    "TableQueryError",
    "UnknownField",
    "UnknownRelation",
    "UnsupportedOperator",
    "apply_custom_filters",
    "apply_table_query",
    "default_registry",
    "paginate",
    "resolve_pagination",
]
