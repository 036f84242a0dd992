"""Errors raised while compiling table query parameters.

Everything derives from ``TableQueryError`` (itself a ``ValueError``) so the
boundary layer can map the whole family onto a single 400 response.
"""

from __future__ import annotations


class TableQueryError(ValueError):
    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidFilterFormat(TableQueryError):
    """The filters payload as a whole could not be decoded."""


class UnknownField(TableQueryError):
    pass


class UnknownRelation(UnknownField):
    pass


class UnsupportedOperator(TableQueryError):
    pass


class InvalidFilterValue(TableQueryError):
    pass


class SortTargetInvalid(TableQueryError):
    pass
