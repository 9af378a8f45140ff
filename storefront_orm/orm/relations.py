"""Relationship descriptors.

Relationships are declared as class attributes on a model with the factory
functions below. Each factory returns a :class:`RelationAccessor`, a plain
Python descriptor: reading it on an entity resolves the relationship through
the entity's session, reading it on the class returns the accessor itself.
The declarative base collects the accessors when the class is created and
registers their :class:`RelationshipDescriptor` with the entity registry.

Keys follow one convention across kinds: ``foreign_key`` always names the
column holding the reference, ``local_key`` the column it points at.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Literal


class RelationKind(str, Enum):
    """Kind of relationship between two entity kinds."""

    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO = "belongs_to"
    BELONGS_TO_MANY = "belongs_to_many"
    MORPH_ONE = "morph_one"
    MORPH_MANY = "morph_many"
    MORPH_TO = "morph_to"
    MORPH_TO_MANY = "morph_to_many"
    MORPHED_BY_MANY = "morphed_by_many"
    HAS_ONE_THROUGH = "has_one_through"
    HAS_MANY_THROUGH = "has_many_through"
    HAS_ONE_OF_MANY = "has_one_of_many"
    MORPH_ONE_OF_MANY = "morph_one_of_many"

    @property
    def many(self) -> bool:
        """Whether the relationship resolves to a collection."""
        return self in _MANY_KINDS


_MANY_KINDS = frozenset({
    RelationKind.HAS_MANY,
    RelationKind.BELONGS_TO_MANY,
    RelationKind.MORPH_MANY,
    RelationKind.MORPH_TO_MANY,
    RelationKind.MORPHED_BY_MANY,
    RelationKind.HAS_MANY_THROUGH,
})


@dataclass(frozen=True)
class RelationshipDescriptor:
    """Metadata describing how an owning kind relates to another kind.

    Attributes:
        kind: The relationship kind.
        related: Related entity kind name. ``None`` for ``morph_to``, where the
            related kind is read from the discriminator column.
        foreign_key: Column holding the reference. On the related kind for
            has-one/has-many/morph relations, on the owner for ``belongs_to``
            and ``morph_to``, on the pivot for many-to-many relations and on
            the intermediate kind for through relations.
        local_key: Column the foreign key points at.
        morph_type: Discriminator column for polymorphic relations.
        pivot: Pivot entity kind for many-to-many relations.
        related_pivot_key: Pivot column pointing at the related kind.
        related_key: Related kind column the pivot or the intermediate points at.
        through: Intermediate entity kind for through relations.
        second_key: Column on the related kind pointing at the intermediate.
        second_local_key: Intermediate column the second key points at.
        aggregate: ``min`` or ``max`` for one-of-many relations.
        aggregate_column: Column the aggregate is computed over.
        name: Attribute name, filled in when the accessor is bound to a class.
    """

    kind: RelationKind
    related: str | None
    foreign_key: str
    local_key: str = "id"
    morph_type: str | None = None
    pivot: str | None = None
    related_pivot_key: str | None = None
    related_key: str = "id"
    through: str | None = None
    second_key: str | None = None
    second_local_key: str = "id"
    aggregate: Literal["min", "max"] | None = None
    aggregate_column: str | None = None
    name: str | None = None

    @property
    def many(self) -> bool:
        return self.kind.many


class RelationAccessor:
    """Descriptor exposing a declared relationship on model instances."""

    def __init__(self, descriptor: RelationshipDescriptor):
        self.descriptor = descriptor

    def __set_name__(self, owner: type, name: str) -> None:
        self.descriptor = replace(self.descriptor, name=name)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.get_relation(self.descriptor.name)

    def __repr__(self) -> str:
        return f"<RelationAccessor {self.descriptor.name} ({self.descriptor.kind.value})>"


def _morph_names(name: str) -> tuple[str, str]:
    return f"{name}_id", f"{name}_type"


def has_one(related: str, foreign_key: str, local_key: str = "id") -> RelationAccessor:
    return RelationAccessor(RelationshipDescriptor(RelationKind.HAS_ONE, related, foreign_key, local_key))


def has_many(related: str, foreign_key: str, local_key: str = "id") -> RelationAccessor:
    return RelationAccessor(RelationshipDescriptor(RelationKind.HAS_MANY, related, foreign_key, local_key))


def belongs_to(related: str, foreign_key: str, owner_key: str = "id") -> RelationAccessor:
    """Inverse of has-one/has-many. ``foreign_key`` lives on the declaring kind."""
    return RelationAccessor(RelationshipDescriptor(RelationKind.BELONGS_TO, related, foreign_key, owner_key))


def has_one_of_many(
    related: str,
    foreign_key: str,
    column: str,
    aggregate: Literal["min", "max"],
    local_key: str = "id",
) -> RelationAccessor:
    """Single related row holding the ``aggregate`` of ``column``."""
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.HAS_ONE_OF_MANY,
            related,
            foreign_key,
            local_key,
            aggregate=aggregate,
            aggregate_column=column,
        )
    )


def belongs_to_many(
    related: str,
    pivot: str,
    foreign_pivot_key: str,
    related_pivot_key: str,
    local_key: str = "id",
    related_key: str = "id",
) -> RelationAccessor:
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.BELONGS_TO_MANY,
            related,
            foreign_pivot_key,
            local_key,
            pivot=pivot,
            related_pivot_key=related_pivot_key,
            related_key=related_key,
        )
    )


def morph_one(related: str, name: str, local_key: str = "id") -> RelationAccessor:
    """Polymorphic has-one. ``name`` prefixes the ``<name>_id``/``<name>_type`` columns."""
    foreign_key, morph_type = _morph_names(name)
    return RelationAccessor(
        RelationshipDescriptor(RelationKind.MORPH_ONE, related, foreign_key, local_key, morph_type=morph_type)
    )


def morph_many(related: str, name: str, local_key: str = "id") -> RelationAccessor:
    foreign_key, morph_type = _morph_names(name)
    return RelationAccessor(
        RelationshipDescriptor(RelationKind.MORPH_MANY, related, foreign_key, local_key, morph_type=morph_type)
    )


def morph_one_of_many(
    related: str,
    name: str,
    column: str,
    aggregate: Literal["min", "max"],
    local_key: str = "id",
) -> RelationAccessor:
    foreign_key, morph_type = _morph_names(name)
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.MORPH_ONE_OF_MANY,
            related,
            foreign_key,
            local_key,
            morph_type=morph_type,
            aggregate=aggregate,
            aggregate_column=column,
        )
    )


def morph_to(name: str, owner_key: str = "id") -> RelationAccessor:
    """Owner of a polymorphic row, resolved from its ``<name>_type`` column."""
    foreign_key, morph_type = _morph_names(name)
    return RelationAccessor(
        RelationshipDescriptor(RelationKind.MORPH_TO, None, foreign_key, owner_key, morph_type=morph_type)
    )


def morph_to_many(
    related: str,
    pivot: str,
    name: str,
    related_pivot_key: str,
    local_key: str = "id",
    related_key: str = "id",
) -> RelationAccessor:
    """Polymorphic many-to-many seen from the polymorphic side (product -> tags)."""
    foreign_key, morph_type = _morph_names(name)
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.MORPH_TO_MANY,
            related,
            foreign_key,
            local_key,
            morph_type=morph_type,
            pivot=pivot,
            related_pivot_key=related_pivot_key,
            related_key=related_key,
        )
    )


def morphed_by_many(
    related: str,
    pivot: str,
    name: str,
    foreign_pivot_key: str,
    local_key: str = "id",
    related_key: str = "id",
) -> RelationAccessor:
    """Polymorphic many-to-many seen from the shared side (tag -> products)."""
    related_pivot_key, morph_type = _morph_names(name)
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.MORPHED_BY_MANY,
            related,
            foreign_pivot_key,
            local_key,
            morph_type=morph_type,
            pivot=pivot,
            related_pivot_key=related_pivot_key,
            related_key=related_key,
        )
    )


def has_one_through(
    related: str,
    through: str,
    first_key: str,
    second_key: str,
    local_key: str = "id",
    second_local_key: str = "id",
) -> RelationAccessor:
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.HAS_ONE_THROUGH,
            related,
            first_key,
            local_key,
            through=through,
            second_key=second_key,
            second_local_key=second_local_key,
        )
    )


def has_many_through(
    related: str,
    through: str,
    first_key: str,
    second_key: str,
    local_key: str = "id",
    second_local_key: str = "id",
) -> RelationAccessor:
    """Two-hop relation: owner -> ``through`` (by ``first_key``) -> ``related`` (by ``second_key``)."""
    return RelationAccessor(
        RelationshipDescriptor(
            RelationKind.HAS_MANY_THROUGH,
            related,
            first_key,
            local_key,
            through=through,
            second_key=second_key,
            second_local_key=second_local_key,
        )
    )
