from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy import inspect

from primeng_query.core.config import QueryOptions
from primeng_query.core.errors import UnknownField, UnknownRelation
from primeng_query.services.relation_registry import RelationLinkage, RelationRegistry, default_registry


@dataclass(frozen=True)
class RelationPath:
    hops: tuple[RelationLinkage, ...]
    column: str

    @property
    def single_valued(self) -> bool:
        return all(hop.single_valued for hop in self.hops)

    @property
    def target(self) -> type:
        return self.hops[-1].target


@dataclass(frozen=True)
class DirectField:
    name: str
    column: Any


@dataclass(frozen=True)
class RelationField:
    name: str
    path: RelationPath
    column: Any


ResolvedField = Union[DirectField, RelationField]


def column_names(model: type) -> list[str]:
    return [attr.key for attr in inspect(model).column_attrs]


def _column_or_none(model: type, name: str):
    if name not in inspect(model).column_attrs:
        return None
    return getattr(model, name)


def split_relation_path(field: str) -> tuple[list[str], str]:
    segments = field.split(".")
    column = segments.pop()
    if not segments or not column or not all(segments):
        raise UnknownField(f'Invalid field path "{field}"', field=field)
    return segments, column


def resolve_field(
    model: type,
    field: str,
    *,
    registry: RelationRegistry | None = None,
    options: QueryOptions | None = None,
) -> ResolvedField:
    """Map a client-supplied field name onto a mapped column.

    Plain names must be column attributes of ``model``.  Dotted names are
    walked one relation at a time through the registry, so ``author.company.name``
    resolves to the ``name`` column of whatever ``author.company`` points at.
    Anything that does not resolve raises rather than falling back to a raw
    identifier.
    """
    registry = registry or default_registry
    options = options or QueryOptions.from_settings()
    field = str(field or "").strip()
    if not field:
        raise UnknownField("Empty field name", field=field)
    if not options.field_allowed(field):
        raise UnknownField(f'Field "{field}" is not filterable', field=field)

    if "." not in field:
        column = _column_or_none(model, field)
        if column is None:
            raise UnknownField(f'Unknown field "{field}" on {model.__name__}', field=field)
        return DirectField(name=field, column=column)

    if not options.relations_enabled:
        raise UnknownField(f'Relation paths are disabled ("{field}")', field=field)

    hop_names, column_name = split_relation_path(field)
    hops: list[RelationLinkage] = []
    current = model
    for hop_name in hop_names:
        linkage = registry.get(current, hop_name)
        if linkage is None:
            raise UnknownRelation(
                f'Unknown relation "{hop_name}" on {current.__name__} in "{field}"', field=field
            )
        hops.append(linkage)
        current = linkage.target

    column = _column_or_none(current, column_name)
    if column is None:
        raise UnknownField(f'Unknown field "{column_name}" on {current.__name__} in "{field}"', field=field)
    return RelationField(name=field, path=RelationPath(hops=tuple(hops), column=column_name), column=column)
