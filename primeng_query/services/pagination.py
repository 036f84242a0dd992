from __future__ import annotations

import math
from typing import Any, Callable, Mapping

from sqlalchemy.orm import Query

from primeng_query.core.config import QueryOptions
from primeng_query.schemas.table_query import Page, ResultEnvelope


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def resolve_pagination(request_data: Mapping[str, Any], *, options: QueryOptions | None = None) -> Page:
    """Normalize ``first``/``rows`` or ``page``/``per_page`` into one Page.

    The offset form wins when both of its parameters are present.  The page
    number is taken from the requested ``rows`` before ``per_page`` is clamped
    to ``max_per_page``, so an oversized ``rows`` keeps its page index but the
    resulting offset (``(page - 1) * per_page``) falls short of ``first``.
    """
    options = options or QueryOptions.from_settings()
    first = _as_int(request_data.get("first"))
    rows = _as_int(request_data.get("rows"))
    if first is not None and rows is not None:
        rows = max(1, rows)
        return Page(page=max(0, first) // rows + 1, per_page=_clamp(rows, 1, options.max_per_page))

    page = _as_int(request_data.get("page"))
    per_page = _as_int(request_data.get("per_page"))
    return Page(
        page=max(1, page if page is not None else 1),
        per_page=_clamp(per_page if per_page is not None else options.default_per_page, 1, options.max_per_page),
    )


def total_pages(total: int, per_page: int) -> int:
    if total <= 0:
        return 0
    return math.ceil(total / max(1, per_page))


def paginate(q: Query, page: Page, serializer: Callable[[Any], Any] | None = None) -> ResultEnvelope:
    total = q.order_by(None).count()
    rows = q.offset(page.offset).limit(page.per_page).all()
    data = [serializer(row) for row in rows] if serializer else list(rows)
    return ResultEnvelope(
        data=data,
        total=total,
        page=page.page,
        per_page=page.per_page,
        total_pages=total_pages(total, page.per_page),
    )
