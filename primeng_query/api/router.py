from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import ValidationError
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from primeng_query.core.config import QueryOptions
from primeng_query.core.errors import TableQueryError
from primeng_query.schemas.table_query import TableQueryParams
from primeng_query.services.custom_filters import CustomFilter, apply_custom_filters
from primeng_query.services.pagination import paginate
from primeng_query.services.relation_registry import RelationRegistry
from primeng_query.services.table_query import SearchableFields, apply_table_query


def _serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def row_to_dict(row: Any) -> dict[str, Any]:
    mapper = sa_inspect(type(row))
    return {attr.key: _serialize_value(getattr(row, attr.key)) for attr in mapper.column_attrs}


def _fields_param(raw: Optional[List[str]]):
    # A JSON-encoded array arrives as a single repeated-parameter value.
    if raw and len(raw) == 1 and raw[0].lstrip().startswith("["):
        return raw[0]
    return raw


def query_params_data(request: Request) -> dict[str, Any]:
    """Plain request params, with a list for any key given more than once."""
    grouped: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        grouped.setdefault(key, []).append(value)
    return {key: values if len(values) > 1 else values[0] for key, values in grouped.items()}


def table_query_params(
    filters: Optional[str] = Query(default=None),
    sortField: Optional[str] = Query(default=None),
    sortOrder: Optional[str] = Query(default=None),
    globalFilter: Optional[str] = Query(default=None),
    globalFilterFields: Optional[List[str]] = Query(default=None),
    first: Optional[int] = Query(default=None),
    rows: Optional[int] = Query(default=None),
    page: Optional[int] = Query(default=None),
    per_page: Optional[int] = Query(default=None),
) -> TableQueryParams:
    try:
        return TableQueryParams(
            filters=filters,
            sortField=sortField,
            sortOrder=sortOrder,
            globalFilter=globalFilter,
            globalFilterFields=_fields_param(globalFilterFields),
            first=first,
            rows=rows,
            page=page,
            per_page=per_page,
        )
    except ValidationError as exc:
        detail = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in exc.errors()]
        raise HTTPException(status_code=422, detail=detail)


def build_table_router(
    model: type,
    get_db: Callable[..., Any],
    *,
    path: str | None = None,
    searchable_fields: SearchableFields = None,
    custom_filters: Mapping[str, CustomFilter] | None = None,
    serializer: Callable[[Any], Any] = row_to_dict,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
) -> APIRouter:
    """Expose ``model`` as a lazily-loaded PrimeNG table endpoint.

    Custom filters read their values from the raw query string, so an
    endpoint may accept e.g. ``?status=active`` next to the table parameters.
    A repeated key (``?status=a&status=b``) reaches them as a list.
    """
    router = APIRouter()

    @router.get(path or f"/{model.__tablename__}", summary=f"Query {model.__tablename__}")
    def query_table(
        request: Request,
        params: TableQueryParams = Depends(table_query_params),
        db: Session = Depends(get_db),
    ):
        q = db.query(model)
        try:
            if custom_filters:
                q = apply_custom_filters(
                    q, model, query_params_data(request), custom_filters, registry=registry, options=options
                )
            composed = apply_table_query(
                q,
                model,
                params,
                searchable_fields=searchable_fields,
                registry=registry,
                options=options,
            )
        except TableQueryError as exc:
            raise HTTPException(status_code=400, detail=exc.message)
        return paginate(composed.query, composed.page, serializer).model_dump()

    return router
