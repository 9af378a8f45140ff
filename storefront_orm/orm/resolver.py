"""Relationship resolver.

Turns a :class:`RelationshipDescriptor` into queries. A :class:`Relation`
is bound to one owning entity and exposes a query builder restricted to the
relationship's join condition (``relation.query()``), lazy resolution
(``relation.get_results()``) and the write operations the kind supports
(``save``/``create``, ``associate``, ``attach``/``detach``).

Eager loading goes through :func:`eager_load`, which resolves a relationship
for a whole list of owners with one query per relationship name (per
distinct related kind for ``morph_to``) and stores the result in each
owner's relation cache.

Every relationship constraint is expressed as a WHERE criterion on the
related kind (sub-selects for pivots and intermediate kinds), so the
relationship-scoped builders support ``count``, ``update`` and ``delete``
like any other builder.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import ColumnElement, and_, false, func, select
from sqlalchemy.orm import Session, aliased

from storefront_orm.exceptions import UnsupportedRelationOperationError
from storefront_orm.orm.persistence import atomic, save_entity, touch
from storefront_orm.orm.query import Collection, PivotJoin, QueryBuilder
from storefront_orm.orm.registry import EntityDefinition, EntityRegistry
from storefront_orm.orm.relations import RelationKind, RelationshipDescriptor

logger = logging.getLogger("Storefront-ORM")


def _keys(entities: Iterable[Any], attribute: str) -> list[Any]:
    seen = []
    for entity in entities:
        value = getattr(entity, attribute)
        if value is not None and value not in seen:
            seen.append(value)
    return seen


class Relation:
    """A relationship bound to one owning entity."""

    def __init__(
        self,
        session: Session,
        registry: EntityRegistry,
        owner: Any,
        descriptor: RelationshipDescriptor,
    ):
        self.session = session
        self.registry = registry
        self.owner = owner
        self.descriptor = descriptor
        self.owner_definition = registry.get(type(owner))

    @property
    def name(self) -> str:
        return self.descriptor.name or self.descriptor.kind.value

    @property
    def related_definition(self) -> EntityDefinition:
        return self.registry.get(self.descriptor.related)

    def new_query(self) -> QueryBuilder:
        """Unconstrained builder on the related kind."""
        return QueryBuilder(self.session, self.registry, self.related_definition)

    def constraints(self) -> list[ColumnElement[bool]]:
        raise NotImplementedError

    def query(self) -> QueryBuilder:
        """Builder restricted to the rows related to the owner."""
        return self.new_query().filter(*self.constraints())

    def get_results(self) -> Any:
        """Resolve the relationship: a collection, or one entity or None."""
        if self.descriptor.many:
            return self.query().get()
        return self.query().first()

    @classmethod
    def eager(
        cls,
        session: Session,
        registry: EntityRegistry,
        descriptor: RelationshipDescriptor,
        owners: Sequence[Any],
    ) -> list[Any]:
        """Resolve the relationship for every owner; results align with ``owners``."""
        raise NotImplementedError

    def _invalidate(self) -> None:
        self.owner.unset_relation(self.name)

    # Builder shortcuts

    def where(self, *args: Any) -> QueryBuilder:
        return self.query().where(*args)

    def where_null(self, attribute: str) -> QueryBuilder:
        return self.query().where_null(attribute)

    def order_by(self, attribute: str, direction: str = "asc") -> QueryBuilder:
        return self.query().order_by(attribute, direction)

    def without_scopes(self, scopes: Iterable[Any] | None = None) -> QueryBuilder:
        return self.query().without_scopes(scopes)

    def with_(self, *names: str) -> QueryBuilder:
        return self.query().with_(*names)

    def get(self) -> Collection:
        return self.query().get()

    def first(self) -> Any | None:
        return self.query().first()

    def count(self) -> int:
        return self.query().count()

    def exists(self) -> bool:
        return self.query().exists()

    def update(self, attributes: dict[str, Any]) -> int:
        affected = self.query().update(attributes)
        self._invalidate()
        return affected

    def delete(self) -> int:
        affected = self.query().delete()
        self._invalidate()
        return affected

    # Write operations, overridden by the kinds that support them

    def save(self, entity: Any) -> Any:
        raise UnsupportedRelationOperationError(self.name, "save")

    def create(self, attributes: dict[str, Any]) -> Any:
        raise UnsupportedRelationOperationError(self.name, "create")

    def associate(self, entity: Any) -> Any:
        raise UnsupportedRelationOperationError(self.name, "associate")

    def attach(self, keys: Any, attributes: dict[str, Any] | None = None) -> int:
        raise UnsupportedRelationOperationError(self.name, "attach")

    def detach(self, keys: Any = None) -> int:
        raise UnsupportedRelationOperationError(self.name, "detach")


class HasOneOrMany(Relation):
    """``has_one``, ``has_many``, ``morph_one`` and ``morph_many``."""

    def _owner_key(self) -> Any:
        return getattr(self.owner, self.descriptor.local_key)

    def constraints(self) -> list[ColumnElement[bool]]:
        definition = self.related_definition
        key = self._owner_key()
        if key is None:
            return [false()]
        criteria = [definition.column(self.descriptor.foreign_key) == key]
        if self.descriptor.morph_type:
            criteria.append(definition.column(self.descriptor.morph_type) == self.owner_definition.kind)
        return criteria

    def save(self, entity: Any) -> Any:
        """Point ``entity`` at the owner and save it."""
        setattr(entity, self.descriptor.foreign_key, self._owner_key())
        if self.descriptor.morph_type:
            setattr(entity, self.descriptor.morph_type, self.owner_definition.kind)
        save_entity(self.session, self.registry, entity)
        self._invalidate()
        return entity

    def create(self, attributes: dict[str, Any]) -> Any:
        definition = self.related_definition
        definition.validate_attributes(attributes)
        return self.save(definition.model(**attributes))

    @classmethod
    def _eager_query(
        cls,
        session: Session,
        registry: EntityRegistry,
        descriptor: RelationshipDescriptor,
        owner_definition: EntityDefinition,
        keys: list[Any],
    ) -> QueryBuilder:
        definition = registry.get(descriptor.related)
        query = QueryBuilder(session, registry, definition).filter(definition.column(descriptor.foreign_key).in_(keys))
        if descriptor.morph_type:
            query = query.filter(definition.column(descriptor.morph_type) == owner_definition.kind)
        return query

    @classmethod
    def eager(cls, session, registry, descriptor, owners):
        owner_definition = registry.get(type(owners[0]))
        keys = _keys(owners, descriptor.local_key)
        grouped: dict[Any, list[Any]] = defaultdict(list)
        if keys:
            query = cls._eager_query(session, registry, descriptor, owner_definition, keys)
            for entity in query.get():
                grouped[getattr(entity, descriptor.foreign_key)].append(entity)

        results = []
        for owner in owners:
            matches = grouped.get(getattr(owner, descriptor.local_key), [])
            results.append(Collection(matches) if descriptor.many else (matches[0] if matches else None))
        return results


class OneOfMany(HasOneOrMany):
    """``has_one_of_many`` and ``morph_one_of_many``.

    The related row holding the min or max of the aggregate column among the
    owner's related rows. Ties resolve to the lowest primary key for ``min``
    and the highest for ``max``.
    """

    @classmethod
    def _aggregate_criteria(
        cls,
        registry: EntityRegistry,
        definition: EntityDefinition,
        descriptor: RelationshipDescriptor,
    ) -> ColumnElement[bool]:
        inner = aliased(definition.model)
        column = definition.column(descriptor.aggregate_column)
        function = func.min if descriptor.aggregate == "min" else func.max
        subquery = select(function(getattr(inner, descriptor.aggregate_column))).where(
            getattr(inner, descriptor.foreign_key) == definition.column(descriptor.foreign_key)
        )
        if descriptor.morph_type:
            subquery = subquery.where(
                getattr(inner, descriptor.morph_type) == definition.column(descriptor.morph_type)
            )
        for scope in registry.scopes_for(definition.kind):
            subquery = subquery.where(scope.criteria(inner))
        return column == subquery.scalar_subquery()

    @classmethod
    def _tie_break(cls, query: QueryBuilder, descriptor: RelationshipDescriptor) -> QueryBuilder:
        direction = "asc" if descriptor.aggregate == "min" else "desc"
        for key in query.definition.primary_key:
            query = query.order_by(key, direction)
        return query

    def query(self) -> QueryBuilder:
        criteria = self._aggregate_criteria(self.registry, self.related_definition, self.descriptor)
        query = super().query().filter(criteria)
        return self._tie_break(query, self.descriptor)

    @classmethod
    def _eager_query(cls, session, registry, descriptor, owner_definition, keys):
        query = super()._eager_query(session, registry, descriptor, owner_definition, keys)
        query = query.filter(cls._aggregate_criteria(registry, query.definition, descriptor))
        return cls._tie_break(query, descriptor)


class BelongsTo(Relation):
    """Inverse side: the owner holds the foreign key."""

    def constraints(self) -> list[ColumnElement[bool]]:
        value = getattr(self.owner, self.descriptor.foreign_key)
        if value is None:
            return [false()]
        return [self.related_definition.column(self.descriptor.local_key) == value]

    def associate(self, entity: Any) -> Any:
        """Point the owner at ``entity``. The owner is not saved."""
        setattr(self.owner, self.descriptor.foreign_key, getattr(entity, self.descriptor.local_key))
        self.owner.set_relation(self.name, entity)
        return self.owner

    @classmethod
    def eager(cls, session, registry, descriptor, owners):
        definition = registry.get(descriptor.related)
        keys = _keys(owners, descriptor.foreign_key)
        found: dict[Any, Any] = {}
        if keys:
            query = QueryBuilder(session, registry, definition).where_in(descriptor.local_key, keys)
            for entity in query.get():
                found[getattr(entity, descriptor.local_key)] = entity
        return [found.get(getattr(owner, descriptor.foreign_key)) for owner in owners]


class MorphTo(Relation):
    """Owner of a polymorphic row, resolved from its discriminator."""

    def _target_definition(self) -> EntityDefinition | None:
        kind = getattr(self.owner, self.descriptor.morph_type)
        return None if kind is None else self.registry.get(kind)

    @property
    def related_definition(self) -> EntityDefinition:
        definition = self._target_definition()
        if definition is None:
            raise UnsupportedRelationOperationError(self.name, "query without a discriminator")
        return definition

    def constraints(self) -> list[ColumnElement[bool]]:
        value = getattr(self.owner, self.descriptor.foreign_key)
        if value is None:
            return [false()]
        return [self.related_definition.column(self.descriptor.local_key) == value]

    def get_results(self) -> Any:
        if self._target_definition() is None:
            return None
        return self.query().first()

    @classmethod
    def eager(cls, session, registry, descriptor, owners):
        by_kind: dict[str, list[Any]] = defaultdict(list)
        for owner in owners:
            kind = getattr(owner, descriptor.morph_type)
            if kind is not None:
                by_kind[kind].append(owner)

        found: dict[tuple[str, Any], Any] = {}
        for kind, group in by_kind.items():
            definition = registry.get(kind)
            keys = _keys(group, descriptor.foreign_key)
            if not keys:
                continue
            for entity in QueryBuilder(session, registry, definition).where_in(descriptor.local_key, keys).get():
                found[(definition.kind, getattr(entity, descriptor.local_key))] = entity

        return [
            found.get((getattr(owner, descriptor.morph_type), getattr(owner, descriptor.foreign_key)))
            for owner in owners
        ]


class BelongsToMany(Relation):
    """Many-to-many through a pivot kind, including the polymorphic variants.

    Resolved entities carry the pivot entity in ``pivot``; the returned
    collection keeps them aligned in ``pivots``. An entity shared by several
    owners in one session is a single object, so its ``pivot`` attribute
    reflects the most recent resolution while ``Collection.pivots`` always
    matches the owner it was resolved for.
    """

    @property
    def pivot_definition(self) -> EntityDefinition:
        return self.registry.get(self.descriptor.pivot)

    @classmethod
    def _morph_value(cls, descriptor: RelationshipDescriptor, owner_kind: str, related_kind: str) -> str | None:
        if descriptor.kind is RelationKind.MORPH_TO_MANY:
            return owner_kind
        if descriptor.kind is RelationKind.MORPHED_BY_MANY:
            return related_kind
        return None

    @classmethod
    def _pivot_criteria(
        cls,
        descriptor: RelationshipDescriptor,
        pivot: EntityDefinition,
        owner_kind: str,
        related_kind: str,
    ) -> list[ColumnElement[bool]]:
        morph_value = cls._morph_value(descriptor, owner_kind, related_kind)
        if morph_value is None:
            return []
        return [pivot.column(descriptor.morph_type) == morph_value]

    def _owner_key(self) -> Any:
        return getattr(self.owner, self.descriptor.local_key)

    def _pivot_match(self) -> list[ColumnElement[bool]]:
        pivot = self.pivot_definition
        return [
            pivot.column(self.descriptor.foreign_key) == self._owner_key(),
            *self._pivot_criteria(self.descriptor, pivot, self.owner_definition.kind, self.related_definition.kind),
        ]

    def constraints(self) -> list[ColumnElement[bool]]:
        if self._owner_key() is None:
            return [false()]
        pivot = self.pivot_definition
        related_ids = select(pivot.column(self.descriptor.related_pivot_key)).where(*self._pivot_match())
        return [self.related_definition.column(self.descriptor.related_key).in_(related_ids)]

    def query(self) -> QueryBuilder:
        query = super().query()
        if self._owner_key() is None:
            return query
        pivot = self.pivot_definition
        onclause = and_(
            pivot.column(self.descriptor.related_pivot_key)
            == self.related_definition.column(self.descriptor.related_key),
            *self._pivot_match(),
        )
        return query.with_pivot(PivotJoin(pivot.model, onclause))

    def _normalize_keys(self, keys: Any) -> list[Any]:
        if keys is None:
            return []
        if isinstance(keys, (list, tuple, set, frozenset)):
            values = list(keys)
        else:
            values = [keys]
        related = self.related_definition
        return [
            getattr(value, self.descriptor.related_key) if isinstance(value, related.model) else value
            for value in values
        ]

    def attach(self, keys: Any, attributes: dict[str, Any] | None = None) -> int:
        """Create pivot rows linking the owner to ``keys``.

        Already attached pairs are left untouched.

        Args:
            keys: A related key, a related entity, or a list of either.
            attributes: Extra pivot attributes stored on every new row.

        Returns:
            Number of pivot rows created.
        """
        pivot = self.pivot_definition
        if attributes:
            pivot.validate_attributes(attributes)
        related_key_column = pivot.column(self.descriptor.related_pivot_key)
        values = self._normalize_keys(keys)
        existing = set()
        if values:
            stmt = select(related_key_column).where(*self._pivot_match(), related_key_column.in_(values))
            existing = set(self.session.execute(stmt).scalars().all())

        morph_value = self._morph_value(self.descriptor, self.owner_definition.kind, self.related_definition.kind)
        created = 0
        with atomic(self.session):
            for value in values:
                if value in existing:
                    logger.warning(f"{self.owner_definition.kind} {self._owner_key()!r} already attached to {value!r}")
                    continue
                row = {
                    self.descriptor.foreign_key: self._owner_key(),
                    self.descriptor.related_pivot_key: value,
                    **(attributes or {}),
                }
                if morph_value is not None:
                    row[self.descriptor.morph_type] = morph_value
                entity = pivot.model(**row)
                touch(pivot, entity, creating=True)
                self.session.add(entity)
                existing.add(value)
                created += 1
            self.session.flush()

        self._invalidate()
        logger.debug(f"Attached {created} rows to {self.name} of {self.owner_definition.kind} {self._owner_key()!r}")
        return created

    def detach(self, keys: Any = None) -> int:
        """Remove pivot rows; every row of the owner when ``keys`` is None.

        Returns:
            Number of pivot rows removed. Detaching an absent pair is a no-op.
        """
        pivot = self.pivot_definition
        query = QueryBuilder(self.session, self.registry, pivot).filter(*self._pivot_match())
        if keys is not None:
            query = query.where_in(self.descriptor.related_pivot_key, self._normalize_keys(keys))
        removed = query.delete()
        self._invalidate()
        logger.debug(f"Detached {removed} rows from {self.name} of {self.owner_definition.kind} {self._owner_key()!r}")
        return removed

    @classmethod
    def eager(cls, session, registry, descriptor, owners):
        owner_definition = registry.get(type(owners[0]))
        definition = registry.get(descriptor.related)
        pivot = registry.get(descriptor.pivot)
        keys = _keys(owners, descriptor.local_key)
        grouped: dict[Any, Collection] = defaultdict(Collection)
        if keys:
            owner_key_column = pivot.column(descriptor.foreign_key)
            onclause = and_(
                pivot.column(descriptor.related_pivot_key) == definition.column(descriptor.related_key),
                owner_key_column.in_(keys),
                *cls._pivot_criteria(descriptor, pivot, owner_definition.kind, definition.kind),
            )
            query = QueryBuilder(session, registry, definition).with_pivot(PivotJoin(pivot.model, onclause))
            collection = query.get()
            for entity, pivot_entity in zip(collection, collection.pivots):
                group = grouped[getattr(pivot_entity, descriptor.foreign_key)]
                group.append(entity)
                group.pivots.append(pivot_entity)

        return [
            Collection(group, pivots=group.pivots)
            for group in (grouped.get(getattr(owner, descriptor.local_key), Collection()) for owner in owners)
        ]


class HasManyThrough(Relation):
    """``has_one_through`` and ``has_many_through``.

    owner.local_key <- through.foreign_key ; through.second_local_key <- related.second_key
    """

    @property
    def through_definition(self) -> EntityDefinition:
        return self.registry.get(self.descriptor.through)

    def constraints(self) -> list[ColumnElement[bool]]:
        key = getattr(self.owner, self.descriptor.local_key)
        if key is None:
            return [false()]
        through = self.through_definition
        intermediate_ids = select(through.column(self.descriptor.second_local_key)).where(
            through.column(self.descriptor.foreign_key) == key
        )
        return [self.related_definition.column(self.descriptor.second_key).in_(intermediate_ids)]

    @classmethod
    def eager(cls, session, registry, descriptor, owners):
        definition = registry.get(descriptor.related)
        through = registry.get(descriptor.through)
        keys = _keys(owners, descriptor.local_key)
        grouped: dict[Any, list[Any]] = defaultdict(list)
        if keys:
            onclause = and_(
                through.column(descriptor.second_local_key) == definition.column(descriptor.second_key),
                through.column(descriptor.foreign_key).in_(keys),
            )
            query = QueryBuilder(session, registry, definition).with_pivot(
                PivotJoin(through.model, onclause, expose=False)
            )
            collection = query.get()
            for entity, intermediate in zip(collection, collection.pivots):
                grouped[getattr(intermediate, descriptor.foreign_key)].append(entity)

        results = []
        for owner in owners:
            matches = grouped.get(getattr(owner, descriptor.local_key), [])
            results.append(Collection(matches) if descriptor.many else (matches[0] if matches else None))
        return results


RELATION_CLASSES: dict[RelationKind, type[Relation]] = {
    RelationKind.HAS_ONE: HasOneOrMany,
    RelationKind.HAS_MANY: HasOneOrMany,
    RelationKind.MORPH_ONE: HasOneOrMany,
    RelationKind.MORPH_MANY: HasOneOrMany,
    RelationKind.HAS_ONE_OF_MANY: OneOfMany,
    RelationKind.MORPH_ONE_OF_MANY: OneOfMany,
    RelationKind.BELONGS_TO: BelongsTo,
    RelationKind.MORPH_TO: MorphTo,
    RelationKind.BELONGS_TO_MANY: BelongsToMany,
    RelationKind.MORPH_TO_MANY: BelongsToMany,
    RelationKind.MORPHED_BY_MANY: BelongsToMany,
    RelationKind.HAS_ONE_THROUGH: HasManyThrough,
    RelationKind.HAS_MANY_THROUGH: HasManyThrough,
}


def make_relation(session: Session, registry: EntityRegistry, owner: Any, name: str) -> Relation:
    """Bind the named relationship of ``owner``'s kind to ``owner``.

    Raises:
        UnknownRelationshipError: If the kind declares no such relationship.
    """
    descriptor = registry.get(type(owner)).relationship(name)
    return RELATION_CLASSES[descriptor.kind](session, registry, owner, descriptor)


def eager_load(session: Session, registry: EntityRegistry, entities: Sequence[Any], names: Iterable[str]) -> None:
    """Resolve the named relationships for all ``entities`` at once.

    One query is issued per relationship name and related kind, however many
    entities there are. Dotted names load nested relationships on the
    resolved entities.

    Raises:
        UnknownRelationshipError: If a name is not declared on the entities' kind.
    """
    by_model: dict[type, list[Any]] = defaultdict(list)
    for entity in entities:
        by_model[type(entity)].append(entity)

    for model, owners in by_model.items():
        definition = registry.get(model)
        for path in names:
            name, _, rest = path.partition(".")
            descriptor = definition.relationship(name)
            results = RELATION_CLASSES[descriptor.kind].eager(session, registry, descriptor, owners)
            for owner, result in zip(owners, results):
                owner.set_relation(name, result)
            logger.debug(f"Eager loaded {definition.kind}.{name} for {len(owners)} entities")

            if rest:
                children = []
                for result in results:
                    if isinstance(result, list):
                        children.extend(result)
                    elif result is not None:
                        children.append(result)
                if children:
                    eager_load(session, registry, children, [rest])
