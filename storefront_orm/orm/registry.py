"""Entity registry.

Maps an entity kind to its model class, table, primary key, default
attribute values, declared relationships and global scopes. Every other
layer looks kinds up here: the query builder for columns and scopes, the
relationship resolver for related kinds and polymorphic discriminators.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import ColumnElement, and_

from storefront_orm.exceptions import (
    DuplicateEntityKindError,
    UnknownAttributeError,
    UnknownEntityKindError,
    UnknownRelationshipError,
)
from storefront_orm.orm.relations import RelationshipDescriptor
from storefront_orm.orm.scopes import Scope, scope_names

logger = logging.getLogger("Storefront-ORM")


def _kind_name(kind: Any) -> str:
    return kind.value if isinstance(kind, Enum) else str(kind)


@dataclass(frozen=True)
class EntityDefinition:
    """Registered metadata for one entity kind."""

    kind: str
    model: type
    table: str
    primary_key: tuple[str, ...]
    defaults: Mapping[str, Any] = field(default_factory=dict)
    relationships: Mapping[str, RelationshipDescriptor] = field(default_factory=dict)
    scopes: tuple[Scope, ...] = ()
    timestamps: bool = False

    @property
    def columns(self) -> frozenset[str]:
        return frozenset(self.model.__table__.columns.keys())

    def column(self, attribute: str) -> Any:
        """Return the mapped column attribute, validating the name."""
        if attribute not in self.columns:
            raise UnknownAttributeError(self.kind, attribute)
        return getattr(self.model, attribute)

    def validate_attributes(self, attributes: Iterable[str]) -> None:
        for attribute in attributes:
            if attribute not in self.columns:
                raise UnknownAttributeError(self.kind, attribute)

    def relationship(self, name: str) -> RelationshipDescriptor:
        try:
            return self.relationships[name]
        except KeyError:
            raise UnknownRelationshipError(self.kind, name) from None

    def key_criteria(self, key: Any) -> ColumnElement[bool]:
        """Build the predicate matching one primary key value.

        Composite keys are given as a tuple in primary key column order.
        """
        if len(self.primary_key) == 1:
            return getattr(self.model, self.primary_key[0]) == key
        values = tuple(key)
        return and_(*(getattr(self.model, name) == value for name, value in zip(self.primary_key, values)))

    def key_of(self, entity: Any) -> Any:
        values = tuple(getattr(entity, name) for name in self.primary_key)
        return values[0] if len(values) == 1 else values


class EntityRegistry:
    """Registry of entity kinds."""

    def __init__(self):
        self._by_kind: dict[str, EntityDefinition] = {}
        self._by_model: dict[type, EntityDefinition] = {}

    def register(
        self,
        kind: Any,
        model: type,
        table: str,
        primary_key: str | tuple[str, ...],
        defaults: Mapping[str, Any] | None = None,
        relationships: Mapping[str, RelationshipDescriptor] | None = None,
        scopes: Iterable[Scope] = (),
        timestamps: bool = False,
    ) -> EntityDefinition:
        """Register an entity kind.

        Args:
            kind: Stable kind identifier; enum members are stored as their value.
                The kind is also the discriminator written to polymorphic columns.
            model: The mapped model class.
            table: Storage table name.
            primary_key: Primary key column name, or names for composite keys.
            defaults: Attribute values applied before first save when unset.
                Callables are invoked once per entity.
            relationships: Declared relationships by attribute name.
            scopes: Global scopes applied to every query against the kind.
            timestamps: Whether save maintains ``created_at``/``updated_at``.

        Returns:
            The registered definition.

        Raises:
            DuplicateEntityKindError: If the kind or the model is already registered.
        """
        name = _kind_name(kind)
        if name in self._by_kind or model in self._by_model:
            raise DuplicateEntityKindError(name)

        definition = EntityDefinition(
            kind=name,
            model=model,
            table=table,
            primary_key=(primary_key,) if isinstance(primary_key, str) else tuple(primary_key),
            defaults=dict(defaults or {}),
            relationships=dict(relationships or {}),
            scopes=tuple(scopes),
            timestamps=timestamps,
        )
        self._by_kind[name] = definition
        self._by_model[model] = definition
        logger.debug(f"Registered entity kind '{name}' on table '{table}'")
        return definition

    def get(self, kind_or_model: Any) -> EntityDefinition:
        """Look up a definition by kind name, kind enum member or model class.

        Raises:
            UnknownEntityKindError: If nothing is registered under the key.
        """
        if isinstance(kind_or_model, type) and not issubclass(kind_or_model, Enum):
            definition = self._by_model.get(kind_or_model)
            if definition is None:
                raise UnknownEntityKindError(kind_or_model.__name__)
            return definition

        name = _kind_name(kind_or_model)
        definition = self._by_kind.get(name)
        if definition is None:
            raise UnknownEntityKindError(name)
        return definition

    def defaults_for(self, kind: Any) -> dict[str, Any]:
        """Return a fresh mapping of default attribute values, callables evaluated."""
        return {
            attribute: value() if callable(value) else value
            for attribute, value in self.get(kind).defaults.items()
        }

    def scopes_for(self, kind: Any, without: Iterable[Any] = ()) -> list[Scope]:
        """Return the global scopes of a kind minus the suppressed ones."""
        suppressed = scope_names(without)
        return [scope for scope in self.get(kind).scopes if scope.name not in suppressed]

    def kinds(self) -> list[str]:
        return list(self._by_kind)

    def __contains__(self, kind_or_model: Any) -> bool:
        if isinstance(kind_or_model, type) and not issubclass(kind_or_model, Enum):
            return kind_or_model in self._by_model
        return _kind_name(kind_or_model) in self._by_kind

    def __len__(self) -> int:
        return len(self._by_kind)
