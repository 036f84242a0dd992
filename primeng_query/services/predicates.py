import uuid
from datetime import date, datetime, timezone
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum

from sqlalchemy import String, cast
from sqlalchemy.sql.expression import ColumnElement

from primeng_query.core.errors import InvalidFilterValue, UnsupportedOperator
from primeng_query.services.field_paths import RelationField, ResolvedField


class MatchMode(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    NOT_IN = "notIn"
    BETWEEN = "between"
    DATE_IS = "dateIs"
    DATE_IS_NOT = "dateIsNot"
    DATE_BEFORE = "dateBefore"
    DATE_AFTER = "dateAfter"


SUBSTRING_MODES = {MatchMode.CONTAINS, MatchMode.NOT_CONTAINS, MatchMode.STARTS_WITH, MatchMode.ENDS_WITH}
LIST_MODES = {MatchMode.IN, MatchMode.NOT_IN}
DATE_MODES = {MatchMode.DATE_IS, MatchMode.DATE_IS_NOT, MatchMode.DATE_BEFORE, MatchMode.DATE_AFTER}


def match_mode(raw, field: str | None = None) -> MatchMode:
    try:
        return MatchMode(str(raw or MatchMode.EQUALS.value).strip())
    except ValueError:
        raise UnsupportedOperator(f'Unsupported match mode "{raw}"', field=field)


def _bad_filter_value(column_key: str, kind: str) -> InvalidFilterValue:
    return InvalidFilterValue(f'Invalid filter value for field "{column_key}" ({kind})', field=column_key)


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value if value is not None else "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise _bad_filter_value(column_key, "boolean")


def _coerce_number_filter_value(column_key: str, value, python_type):
    if value is None:
        return None
    if isinstance(value, bool):
        raise _bad_filter_value(column_key, "number")
    if python_type is int and isinstance(value, float) and not value.is_integer():
        raise _bad_filter_value(column_key, "integer")
    if python_type in {int, float} and isinstance(value, (int, float)):
        return python_type(value)
    if python_type is Decimal and isinstance(value, (Decimal, int)):
        return Decimal(value)
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(column_key, "number")
    normalized = text.replace(",", ".")
    try:
        if python_type is int:
            return int(normalized)
        if python_type is float:
            return float(normalized)
        if python_type is Decimal:
            return Decimal(normalized)
        return python_type(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(column_key, "number")


def _coerce_date_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise _bad_filter_value(column_key, "date")
    try:
        # Accept either YYYY-MM-DD or full ISO datetime and take its date part.
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, "date")


def _coerce_datetime_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise _bad_filter_value(column_key, "datetime")
        try:
            if "T" not in text and " " not in text and len(text) == 10:
                # Date-only filter value for timestamp columns -> start of the day.
                parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise _bad_filter_value(column_key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except (AttributeError, IndexError, NotImplementedError):
        return None


def coerce_filter_value(column, value):
    python_type = _column_python_type(column)
    if python_type is None:
        return value
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise _bad_filter_value(column.key, "uuid")
    if python_type is bool:
        return _coerce_bool_filter_value(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.key, value, python_type)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.key, value)
    if python_type is date:
        return _coerce_date_filter_value(column.key, value)
    if python_type is str and not isinstance(value, str):
        if isinstance(value, (list, dict)):
            raise _bad_filter_value(column.key, "text")
        return str(value)
    return value


def _is_date_only_filter_literal(raw_value) -> bool:
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return True
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _day_bounds(day: date):
    day_start = datetime.combine(day, datetime.min.time()).replace(tzinfo=timezone.utc)
    return day_start, day_start + timedelta(days=1)


def _as_text(column):
    if _column_python_type(column) is str:
        return column
    return cast(column, String)


def _substring_predicate(column, mode: MatchMode, value) -> ColumnElement:
    if isinstance(value, (list, dict)):
        raise _bad_filter_value(column.key, "text")
    text = str(value)
    expr = _as_text(column)
    # autoescape binds the value with LIKE wildcards escaped, so "%" and "_"
    # typed by the user match literally.
    if mode is MatchMode.CONTAINS:
        return expr.contains(text, autoescape=True)
    if mode is MatchMode.NOT_CONTAINS:
        return ~expr.contains(text, autoescape=True)
    if mode is MatchMode.STARTS_WITH:
        return expr.startswith(text, autoescape=True)
    return expr.endswith(text, autoescape=True)


def _list_values(column, value) -> list:
    if isinstance(value, dict):
        raise _bad_filter_value(column.key, "list")
    items = list(value) if isinstance(value, (list, tuple, set)) else [value]
    return [coerce_filter_value(column, item) for item in items if item is not None]


def _between_predicate(column, value) -> ColumnElement | None:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise _bad_filter_value(column.key, "range")
    raw_low, raw_high = value
    low = coerce_filter_value(column, raw_low) if raw_low not in (None, "") else None
    high = coerce_filter_value(column, raw_high) if raw_high not in (None, "") else None
    if high is not None and _column_python_type(column) is datetime and _is_date_only_filter_literal(raw_high):
        # A bare date as the upper bound of a timestamp range includes that whole day.
        upper = column < high + timedelta(days=1)
        return upper if low is None else (column >= low) & upper
    if low is not None and high is not None:
        return column.between(low, high)
    if low is not None:
        return column >= low
    if high is not None:
        return column <= high
    return None


def _date_predicate(column, mode: MatchMode, value) -> ColumnElement:
    python_type = _column_python_type(column)
    day = _coerce_date_filter_value(column.key, value)
    if python_type is datetime:
        day_start, day_end = _day_bounds(day)
        if mode is MatchMode.DATE_IS:
            return (column >= day_start) & (column < day_end)
        if mode is MatchMode.DATE_IS_NOT:
            return ~((column >= day_start) & (column < day_end))
        if mode is MatchMode.DATE_BEFORE:
            return column < day_start
        return column >= day_end
    if python_type is date:
        if mode is MatchMode.DATE_IS:
            return column == day
        if mode is MatchMode.DATE_IS_NOT:
            return column != day
        if mode is MatchMode.DATE_BEFORE:
            return column < day
        return column > day
    raise _bad_filter_value(column.key, "date column expected")


def build_predicate(column, mode: MatchMode, value) -> ColumnElement | None:
    """Build the condition for one column.  ``None`` means "no constraint"."""
    if mode in SUBSTRING_MODES:
        return _substring_predicate(column, mode, value)
    if mode in DATE_MODES:
        return _date_predicate(column, mode, value)
    if mode in LIST_MODES:
        values = _list_values(column, value)
        if not values:
            return None
        return column.in_(values) if mode is MatchMode.IN else column.not_in(values)
    if mode is MatchMode.BETWEEN:
        return _between_predicate(column, value)

    if isinstance(value, (list, dict)):
        raise _bad_filter_value(column.key, "scalar")
    coerced = coerce_filter_value(column, value)
    if mode in {MatchMode.EQUALS, MatchMode.NOT_EQUALS}:
        if _column_python_type(column) is datetime and _is_date_only_filter_literal(value):
            day_start = coerced
            day_end = day_start + timedelta(days=1)
            day_expr = (column >= day_start) & (column < day_end)
            return day_expr if mode is MatchMode.EQUALS else ~day_expr
        return column == coerced if mode is MatchMode.EQUALS else column != coerced
    if mode is MatchMode.LT:
        return column < coerced
    if mode is MatchMode.LTE:
        return column <= coerced
    if mode is MatchMode.GT:
        return column > coerced
    if mode is MatchMode.GTE:
        return column >= coerced
    raise UnsupportedOperator(f'Unsupported match mode "{mode.value}"', field=column.key)


def wrap_in_exists(resolved: ResolvedField, condition: ColumnElement) -> ColumnElement:
    """Scope ``condition`` to related rows reachable through the field's relations.

    The result is a chain of correlated EXISTS subqueries, one per hop, so
    a root row matches at most once however many related rows satisfy it.
    """
    if not isinstance(resolved, RelationField):
        return condition
    for hop in reversed(resolved.path.hops):
        condition = hop.exists(condition)
    return condition


def compile_predicate(resolved: ResolvedField, operator, value) -> ColumnElement | None:
    mode = operator if isinstance(operator, MatchMode) else match_mode(operator, resolved.name)
    condition = build_predicate(resolved.column, mode, value)
    if condition is None:
        return None
    return wrap_in_exists(resolved, condition)
