"""Relation metadata consulted when a filter or sort field crosses a relationship.

Each mapped class gets a table of ``relation name -> RelationLinkage``.  Entries
are derived from the SQLAlchemy mapper the first time a class is looked up, or
registered explicitly for relations that the mapper does not describe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any

from sqlalchemy import and_, inspect, literal_column, select
from sqlalchemy.orm import RelationshipProperty
from sqlalchemy.sql.expression import ColumnElement, FromClause

_LOG = logging.getLogger("primeng_query.relations")


class Cardinality(str, Enum):
    ONE_OR_ZERO = "one_or_zero"
    MANY = "many"


@dataclass(frozen=True)
class RelationLinkage:
    name: str
    parent: type
    target: type
    cardinality: Cardinality
    # (parent-side column, child-side column); child side is the association
    # table for many-to-many relations.
    keys: tuple[tuple[Any, Any], ...]
    secondary: Any = None
    # (target column, association column)
    secondary_keys: tuple[tuple[Any, Any], ...] = ()

    @property
    def parent_table(self) -> FromClause:
        return inspect(self.parent).local_table

    @property
    def target_table(self) -> FromClause:
        return inspect(self.target).local_table

    @property
    def single_valued(self) -> bool:
        return self.cardinality is Cardinality.ONE_OR_ZERO

    def correlation(self) -> ColumnElement:
        return and_(*(parent_col == child_col for parent_col, child_col in self.keys))

    def from_clause(self) -> FromClause:
        if self.secondary is None:
            return self.target_table
        onclause = and_(*(target_col == assoc_col for target_col, assoc_col in self.secondary_keys))
        return self.target_table.join(self.secondary, onclause)

    def exists(self, condition: ColumnElement) -> ColumnElement:
        return (
            select(literal_column("1"))
            .select_from(self.from_clause())
            .where(self.correlation(), condition)
            .correlate(self.parent_table)
            .exists()
        )


def linkage_from_relationship(rel: RelationshipProperty) -> RelationLinkage:
    cardinality = Cardinality.MANY if rel.uselist else Cardinality.ONE_OR_ZERO
    if rel.secondary is not None:
        return RelationLinkage(
            name=rel.key,
            parent=rel.parent.class_,
            target=rel.mapper.class_,
            cardinality=cardinality,
            keys=tuple(rel.synchronize_pairs),
            secondary=rel.secondary,
            secondary_keys=tuple(rel.secondary_synchronize_pairs),
        )
    return RelationLinkage(
        name=rel.key,
        parent=rel.parent.class_,
        target=rel.mapper.class_,
        cardinality=cardinality,
        keys=tuple(rel.local_remote_pairs),
    )


class RelationRegistry:
    def __init__(self):
        self._relations: dict[type, dict[str, RelationLinkage]] = {}
        self._derived: set[type] = set()
        self._lock = Lock()

    def register(self, linkage: RelationLinkage) -> None:
        with self._lock:
            self._relations.setdefault(linkage.parent, {})[linkage.name] = linkage

    def register_model(self, model: type) -> dict[str, RelationLinkage]:
        derived = {rel.key: linkage_from_relationship(rel) for rel in inspect(model).relationships}
        with self._lock:
            table = self._relations.setdefault(model, {})
            # Explicit registrations win over mapper-derived ones.
            for name, linkage in derived.items():
                table.setdefault(name, linkage)
            self._derived.add(model)
            _LOG.debug("registered %d relations for %s", len(table), model.__name__)
            return dict(table)

    def relations_for(self, model: type) -> dict[str, RelationLinkage]:
        with self._lock:
            if model in self._derived:
                return dict(self._relations.get(model, {}))
        return self.register_model(model)

    def get(self, model: type, name: str) -> RelationLinkage | None:
        return self.relations_for(model).get(name)


default_registry = RelationRegistry()
