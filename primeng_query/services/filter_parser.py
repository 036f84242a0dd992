"""Decoding of the raw PrimeNG table parameters into value objects."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from primeng_query.core.errors import InvalidFilterFormat
from primeng_query.schemas.table_query import FilterClause, SortClause

_LOG = logging.getLogger("primeng_query.parser")

# Slot the global search input may emit inside ``filters``; never a column.
GLOBAL_FILTER_KEY = "global"

_ASCENDING = {"asc", "1"}
_DESCENDING = {"desc", "-1"}


def _decode_json(raw: Any, param: str) -> Any:
    if not isinstance(raw, (str, bytes)):
        return raw
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidFilterFormat(f"{param} must be valid JSON: {exc}") from exc


def _is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    return isinstance(value, (list, tuple)) and len(value) == 0


def _clause(field: Any, operator: Any, value: Any) -> FilterClause | None:
    if not isinstance(field, str) or not field.strip():
        return None
    field = field.strip()
    if field == GLOBAL_FILTER_KEY:
        return None
    if _is_empty_value(value):
        return None
    return FilterClause(field=field, operator=str(operator or "equals"), value=value)


def parse_filters(raw: Any) -> list[FilterClause]:
    """Normalize a ``filters`` payload into an ordered list of clauses.

    Two shapes are accepted, either JSON-encoded or already decoded:

    * PrimeNG's ``{"field": {"value": ..., "matchMode": ...}}`` object;
    * a list of ``{"field": ..., "operator": ..., "value": ...}`` records.

    Entries that are not mappings, target the ``global`` slot or carry no
    value are dropped.  Only a payload that cannot be decoded at all raises.
    """
    decoded = _decode_json(raw, "filters")
    if decoded is None:
        return []

    clauses: list[FilterClause] = []
    if isinstance(decoded, Mapping):
        for field, data in decoded.items():
            if not isinstance(data, Mapping):
                _LOG.debug("skip filter %r: entry is not an object", field)
                continue
            clause = _clause(field, data.get("matchMode"), data.get("value"))
            if clause is not None:
                clauses.append(clause)
        return clauses

    if isinstance(decoded, list):
        for data in decoded:
            if not isinstance(data, Mapping):
                _LOG.debug("skip filter record %r: not an object", data)
                continue
            operator = data.get("operator") or data.get("matchMode")
            clause = _clause(data.get("field"), operator, data.get("value"))
            if clause is not None:
                clauses.append(clause)
        return clauses

    raise InvalidFilterFormat("filters must be an object or a list of filter records")


def parse_global_filter(request_data: Mapping[str, Any]) -> str | None:
    value = request_data.get("globalFilter")
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def parse_global_filter_fields(raw: Any) -> list[str]:
    decoded = _decode_json(raw, "globalFilterFields")
    if decoded is None:
        return []
    if isinstance(decoded, str):
        decoded = [decoded]
    if not isinstance(decoded, (list, tuple)):
        raise InvalidFilterFormat("globalFilterFields must be a list of field names")
    return [str(item).strip() for item in decoded if isinstance(item, str) and item.strip()]


def parse_sort_direction(raw: Any) -> str:
    text = str(raw).strip().lower() if raw is not None else ""
    if text in _DESCENDING:
        return "desc"
    if text and text not in _ASCENDING:
        _LOG.debug("unknown sortOrder %r, falling back to asc", raw)
    return "asc"


def parse_sort(request_data: Mapping[str, Any]) -> SortClause | None:
    field = request_data.get("sortField")
    if not isinstance(field, str) or not field.strip():
        return None
    return SortClause(field=field.strip(), dir=parse_sort_direction(request_data.get("sortOrder")))
