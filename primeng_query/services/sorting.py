from __future__ import annotations

from sqlalchemy import asc, desc, select
from sqlalchemy.orm import Query
from sqlalchemy.sql.expression import ColumnElement

from primeng_query.core.config import QueryOptions
from primeng_query.core.errors import SortTargetInvalid, UnknownField
from primeng_query.schemas.table_query import SortClause
from primeng_query.services.field_paths import RelationField, resolve_field
from primeng_query.services.relation_registry import RelationRegistry


def relation_sort_key(resolved: RelationField) -> ColumnElement:
    """Correlated scalar subquery yielding the related column for each root row.

    Only valid when every hop is single-valued: the subquery walks from the
    last related table back to the root and keeps the first (only) match.
    """
    hops = resolved.path.hops
    for hop in hops:
        if not hop.single_valued:
            raise SortTargetInvalid(
                f'Cannot sort by "{resolved.name}": relation "{hop.name}" is multi-valued',
                field=resolved.name,
            )
    from_clause = hops[-1].target_table
    for hop in reversed(hops[1:]):
        from_clause = from_clause.join(hop.parent_table, hop.correlation())
    return (
        select(resolved.column)
        .select_from(from_clause)
        .where(hops[0].correlation())
        .correlate(hops[0].parent_table)
        .limit(1)
        .scalar_subquery()
    )


def compile_sort(
    model: type,
    sort: SortClause,
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
) -> ColumnElement:
    try:
        resolved = resolve_field(model, sort.field, registry=registry, options=options)
    except UnknownField as exc:
        raise SortTargetInvalid(f'Cannot sort by "{sort.field}": {exc.message}', field=sort.field) from exc
    key = relation_sort_key(resolved) if isinstance(resolved, RelationField) else resolved.column
    return asc(key) if sort.dir == "asc" else desc(key)


def apply_sort(
    q: Query,
    model: type,
    sort: SortClause | None,
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
) -> Query:
    if sort is None:
        return q
    return q.order_by(compile_sort(model, sort, registry=registry, options=options))
