from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union

from sqlalchemy import or_
from sqlalchemy.orm import Query

from primeng_query.core.config import QueryOptions, settings
from primeng_query.core.errors import TableQueryError
from primeng_query.schemas.table_query import FilterClause, Page, SortClause, TableQueryParams
from primeng_query.services.field_paths import column_names, resolve_field
from primeng_query.services.filter_parser import (
    parse_filters,
    parse_global_filter,
    parse_global_filter_fields,
    parse_sort,
)
from primeng_query.services.pagination import resolve_pagination
from primeng_query.services.predicates import MatchMode, compile_predicate
from primeng_query.services.relation_registry import RelationRegistry, default_registry
from primeng_query.services.sorting import apply_sort

_LOG = logging.getLogger("primeng_query.compiler")

ALL_COLUMNS = "all"

SearchableFields = Union[Sequence[str], str, None]


@dataclass
class ComposedQuery:
    query: Query
    page: Page
    skipped: list[TableQueryError] = field(default_factory=list)

    @property
    def per_page(self) -> int:
        return self.page.per_page


def _degrade(exc: TableQueryError, options: QueryOptions, skipped: list[TableQueryError] | None) -> None:
    if options.strict:
        raise exc
    _LOG.debug("ignored %s for field %r: %s", type(exc).__name__, exc.field, exc.message)
    if skipped is not None:
        skipped.append(exc)


def apply_filters(
    q: Query,
    model: type,
    clauses: Iterable[FilterClause],
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
    skipped: list[TableQueryError] | None = None,
) -> Query:
    registry = registry or default_registry
    options = options or QueryOptions.from_settings()
    for clause in clauses:
        try:
            resolved = resolve_field(model, clause.field, registry=registry, options=options)
            condition = compile_predicate(resolved, clause.operator, clause.value)
        except TableQueryError as exc:
            _degrade(exc, options, skipped)
            continue
        if condition is not None:
            q = q.filter(condition)
    return q


def resolve_searchable_fields(
    model: type,
    searchable_fields: SearchableFields,
    request_data: Mapping[str, Any],
) -> list[str]:
    """Pick the columns the global search runs against.

    Explicit caller fields win, then the request's ``globalFilterFields``,
    then the model's ``__searchable_fields__``.  ``"all"`` expands to every
    mapped column except the audit timestamps.
    """
    if searchable_fields is not None:
        if isinstance(searchable_fields, str):
            if searchable_fields == ALL_COLUMNS:
                excluded = set(settings.excluded_search_columns_list)
                return [name for name in column_names(model) if name not in excluded]
            return [searchable_fields]
        return [str(name) for name in searchable_fields]

    requested = parse_global_filter_fields(request_data.get("globalFilterFields"))
    if requested:
        return requested
    return list(getattr(model, "__searchable_fields__", None) or [])


def apply_global_filter(
    q: Query,
    model: type,
    term: str | None,
    fields: Sequence[str],
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
    skipped: list[TableQueryError] | None = None,
) -> Query:
    if not term or not fields:
        return q
    registry = registry or default_registry
    options = options or QueryOptions.from_settings()
    conditions = []
    for name in fields:
        try:
            resolved = resolve_field(model, name, registry=registry, options=options)
            conditions.append(compile_predicate(resolved, MatchMode.CONTAINS, term))
        except TableQueryError as exc:
            _degrade(exc, options, skipped)
    if not conditions:
        return q
    return q.filter(or_(*conditions))


def apply_sorting(
    q: Query,
    model: type,
    sort: SortClause | None,
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
    skipped: list[TableQueryError] | None = None,
) -> Query:
    options = options or QueryOptions.from_settings()
    try:
        return apply_sort(q, model, sort, registry=registry, options=options)
    except TableQueryError as exc:
        _degrade(exc, options, skipped)
        return q


def apply_table_query(
    q: Query,
    model: type,
    request_data: Union[Mapping[str, Any], TableQueryParams],
    *,
    searchable_fields: SearchableFields = None,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
) -> ComposedQuery:
    """Compose filters, global search and sorting onto ``q``.

    The returned query is not executed: counting, slicing with the resolved
    page and materializing rows are left to the caller.
    """
    if isinstance(request_data, TableQueryParams):
        request_data = request_data.as_request_data()
    registry = registry or default_registry
    options = options or QueryOptions.from_settings()
    skipped: list[TableQueryError] = []

    clauses = parse_filters(request_data.get("filters"))
    q = apply_filters(q, model, clauses, registry=registry, options=options, skipped=skipped)

    term = parse_global_filter(request_data)
    if term:
        fields = resolve_searchable_fields(model, searchable_fields, request_data)
        q = apply_global_filter(q, model, term, fields, registry=registry, options=options, skipped=skipped)

    q = apply_sorting(q, model, parse_sort(request_data), registry=registry, options=options, skipped=skipped)

    return ComposedQuery(query=q, page=resolve_pagination(request_data, options=options), skipped=skipped)
