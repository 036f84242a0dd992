import json
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from primeng_query.core.config import settings

Dir = Literal["asc", "desc"]

SORT_ORDER_VALUES = {"asc", "desc", "1", "-1"}


class FilterClause(BaseModel):
    field: str
    operator: str = "equals"
    value: Any


class SortClause(BaseModel):
    field: str
    dir: Dir = "asc"


class Page(BaseModel):
    page: int = 1
    per_page: int = 15

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class ResultEnvelope(BaseModel):
    data: List[Any] = []
    total: int = 0
    page: int = 1
    per_page: int = 15
    total_pages: int = 0


class TableQueryParams(BaseModel):
    """Query-string parameters sent by a PrimeNG table in lazy mode."""

    model_config = ConfigDict(populate_by_name=True)

    filters: Optional[Union[str, dict, list]] = None
    sort_field: Optional[str] = Field(default=None, alias="sortField")
    sort_order: Optional[Union[str, int]] = Field(default=None, alias="sortOrder")
    global_filter: Optional[str] = Field(default=None, alias="globalFilter", max_length=settings.PRIMENG_MAX_GLOBAL_FILTER_LENGTH)
    global_filter_fields: Optional[Union[str, List[str]]] = Field(default=None, alias="globalFilterFields")
    first: Optional[int] = Field(default=None, ge=0)
    rows: Optional[int] = Field(default=None, ge=1, le=settings.PRIMENG_MAX_ROWS)
    page: Optional[int] = Field(default=None, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1, le=settings.PRIMENG_MAX_PER_PAGE)

    @field_validator("filters")
    @classmethod
    def _filters_must_decode(cls, value):
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                raise ValueError("filters must be valid JSON")
            if decoded is not None and not isinstance(decoded, (dict, list)):
                raise ValueError("filters must be a JSON object or array")
        return value

    @field_validator("global_filter_fields")
    @classmethod
    def _global_fields_must_decode(cls, value):
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                raise ValueError("globalFilterFields must be valid JSON")
            if decoded is not None and not isinstance(decoded, list):
                raise ValueError("globalFilterFields must be a JSON array")
        return value

    @field_validator("sort_order")
    @classmethod
    def _sort_order_in_allowed_set(cls, value):
        if value is None:
            return value
        if str(value).strip().lower() not in SORT_ORDER_VALUES:
            raise ValueError("sortOrder must be one of asc, desc, 1, -1")
        return value

    def as_request_data(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
