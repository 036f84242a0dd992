"""Server-declared filters keyed by plain request parameters.

Unlike ``filters`` these are not chosen by the client: the endpoint declares
which request keys it understands and how each one constrains the query, e.g.

    apply_custom_filters(q, Order, params, {
        "status": CustomFilter(kind="whereIn"),
        "placed_on": CustomFilter(kind="whereDate", column="created_at"),
        "mine": CustomFilter(callback=lambda q, v: q.filter(Order.owner_id == v)),
    })
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from sqlalchemy.orm import Query

from primeng_query.core.config import QueryOptions
from primeng_query.core.errors import TableQueryError, UnsupportedOperator
from primeng_query.services.field_paths import resolve_field
from primeng_query.services.predicates import MatchMode, compile_predicate
from primeng_query.services.relation_registry import RelationRegistry

_LOG = logging.getLogger("primeng_query.custom_filters")

CUSTOM_FILTER_KINDS = {
    "where": MatchMode.EQUALS,
    "whereIn": MatchMode.IN,
    "whereBetween": MatchMode.BETWEEN,
    "whereDate": MatchMode.DATE_IS,
    "whereLike": MatchMode.CONTAINS,
}


@dataclass(frozen=True)
class CustomFilter:
    kind: str = "where"
    column: str | None = None
    callback: Callable[[Query, Any], Query] | None = None


def _as_custom_filter(spec: Union[CustomFilter, Mapping[str, Any]]) -> CustomFilter:
    if isinstance(spec, CustomFilter):
        return spec
    return CustomFilter(
        kind=str(spec.get("type") or spec.get("kind") or "where"),
        column=spec.get("column"),
        callback=spec.get("callback"),
    )


def apply_custom_filters(
    q: Query,
    model: type,
    request_data: Mapping[str, Any],
    config: Mapping[str, Union[CustomFilter, Mapping[str, Any]]],
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
) -> Query:
    options = options or QueryOptions.from_settings()
    for key, raw_spec in config.items():
        value = request_data.get(key)
        if value is None:
            continue
        spec = _as_custom_filter(raw_spec)
        if spec.callback is not None:
            q = spec.callback(q, value)
            continue
        mode = CUSTOM_FILTER_KINDS.get(spec.kind)
        try:
            if mode is None:
                raise UnsupportedOperator(f'Unsupported custom filter type "{spec.kind}"', field=key)
            if mode is MatchMode.BETWEEN and not (isinstance(value, (list, tuple)) and len(value) == 2):
                _LOG.debug("skip custom filter %r: between needs two bounds", key)
                continue
            resolved = resolve_field(model, spec.column or key, registry=registry, options=options)
            condition = compile_predicate(resolved, mode, value)
        except TableQueryError as exc:
            if options.strict:
                raise
            _LOG.debug("ignored custom filter %r: %s", key, exc.message)
            continue
        if condition is not None:
            q = q.filter(condition)
    return q
