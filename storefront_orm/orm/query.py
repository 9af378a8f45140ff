"""Fluent query builder.

A :class:`QueryBuilder` is immutable: every filter, sort or limit call
returns a new builder and the terminal operations (``get``, ``first``,
``find``, ``count``, aggregates, ``insert``, ``update``, ``delete``) compile
the accumulated state to a SQLAlchemy statement and execute it on the
session. Global scopes of the target kind are added at compile time unless
suppressed with :meth:`QueryBuilder.without_scopes`.
"""

import logging
import operator
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, Generic, Literal, TypeVar

from sqlalchemy import ColumnElement, Select, delete, false, func, insert, or_, select, tuple_, update
from sqlalchemy.orm import Session, object_session

from storefront_orm.exceptions import EmptyIterableError, IntegrityError, UnsupportedOperatorError
from storefront_orm.orm.persistence import atomic
from storefront_orm.orm.registry import EntityDefinition, EntityRegistry
from storefront_orm.orm.scopes import scope_names

logger = logging.getLogger("Storefront-ORM")

T = TypeVar("T")

OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "=": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "<>": operator.ne,
    "!=": operator.ne,
}

_MISSING = object()
_ALL_SCOPES = "*"


class Collection(list):
    """Ordered result of a query.

    Many-to-many results keep the pivot rows aligned with the entities in
    :attr:`pivots`.
    """

    def __init__(self, items: Iterable[Any] = (), pivots: Iterable[Any] | None = None):
        super().__init__(items)
        self.pivots: list[Any] = list(pivots) if pivots is not None else []

    def first(self) -> Any | None:
        return self[0] if self else None

    def pluck(self, attribute: str) -> list[Any]:
        return [getattr(item, attribute) for item in self]

    def keys(self) -> list[Any]:
        """Primary key values of the entities, in order."""
        if not self:
            return []
        definition = type(self[0]).entities.get(type(self[0]))
        return [definition.key_of(item) for item in self]

    def load(self, *names: str) -> "Collection":
        """Eager-load relationships on the already fetched entities."""
        if not self:
            return self
        from storefront_orm.orm.resolver import eager_load

        session = object_session(self[0])
        eager_load(session, type(self[0]).entities, list(self), names)
        return self

    def to_query(self) -> "QueryBuilder":
        """Return a builder restricted to the primary keys of this collection.

        Raises:
            EmptyIterableError: If the collection is empty.
        """
        if not self:
            raise EmptyIterableError("collection")
        model = type(self[0])
        return QueryBuilder(object_session(self[0]), model.entities, model.entities.get(model)).where_key(self.keys())


@dataclass(frozen=True)
class PivotJoin:
    """Extra entity joined to every result row.

    Many-to-many relations join their pivot kind, through relations their
    intermediate kind. The joined entity is collected into
    :attr:`Collection.pivots` and, when ``expose`` is set, assigned to the
    ``pivot`` attribute of the result entity.
    """

    model: type
    onclause: ColumnElement[bool]
    expose: bool = True


@dataclass(frozen=True)
class QueryBuilder(Generic[T]):
    """Immutable query builder for one entity kind."""

    session: Session
    registry: EntityRegistry
    definition: EntityDefinition
    criteria: tuple[ColumnElement[bool], ...] = ()
    orders: tuple[Any, ...] = ()
    limit_value: int | None = None
    offset_value: int | None = None
    suppressed_scopes: frozenset[str] = frozenset()
    eager: tuple[str, ...] = ()
    pivot: PivotJoin | None = None

    @property
    def model(self) -> type[T]:
        return self.definition.model

    # Builder steps

    def where(self, attribute: str, op: Any = _MISSING, value: Any = _MISSING) -> "QueryBuilder[T]":
        """Add an AND-conjunctive comparison.

        ``where("price", 200)`` is shorthand for ``where("price", "=", 200)``.

        Raises:
            UnsupportedOperatorError: If the operator is not supported.
            UnknownAttributeError: If the attribute does not exist on the kind.
        """
        if value is _MISSING:
            op, value = "=", op
        if op not in OPERATORS:
            raise UnsupportedOperatorError(str(op))
        column = self.definition.column(attribute)
        return self.filter(OPERATORS[op](column, value))

    def where_null(self, attribute: str) -> "QueryBuilder[T]":
        """Match rows where the attribute is SQL NULL. Empty strings do not match."""
        return self.filter(self.definition.column(attribute).is_(None))

    def where_not_null(self, attribute: str) -> "QueryBuilder[T]":
        return self.filter(self.definition.column(attribute).is_not(None))

    def where_in(self, attribute: str, values: Iterable[Any]) -> "QueryBuilder[T]":
        return self.filter(self.definition.column(attribute).in_(list(values)))

    def where_key(self, keys: Iterable[Any]) -> "QueryBuilder[T]":
        """Match rows whose primary key is one of ``keys``.

        Composite keys are given as tuples in primary key column order.
        """
        if len(self.definition.primary_key) == 1:
            return self.where_in(self.definition.primary_key[0], keys)
        keys = list(keys)
        if not keys:
            return self.filter(false())
        return self.filter(or_(*(self.definition.key_criteria(key) for key in keys)))

    def filter(self, *criteria: ColumnElement[bool]) -> "QueryBuilder[T]":
        """Add raw SQLAlchemy criteria."""
        return replace(self, criteria=self.criteria + criteria)

    def order_by(self, attribute: str, direction: Literal["asc", "desc"] = "asc") -> "QueryBuilder[T]":
        column = self.definition.column(attribute)
        if direction not in ("asc", "desc"):
            raise UnsupportedOperatorError(direction)
        return replace(self, orders=self.orders + (column.desc() if direction == "desc" else column.asc(),))

    def latest(self, attribute: str = "created_at") -> "QueryBuilder[T]":
        return self.order_by(attribute, "desc")

    def oldest(self, attribute: str = "created_at") -> "QueryBuilder[T]":
        return self.order_by(attribute, "asc")

    def limit(self, limit: int) -> "QueryBuilder[T]":
        return replace(self, limit_value=limit)

    def offset(self, offset: int) -> "QueryBuilder[T]":
        return replace(self, offset_value=offset)

    def with_(self, *names: str) -> "QueryBuilder[T]":
        """Eager-load the named relationships on every result entity.

        Dotted names (``"products.category"``) load nested relationships.
        """
        for name in names:
            self.definition.relationship(name.split(".", 1)[0])
        return replace(self, eager=self.eager + tuple(names))

    def without_scopes(self, scopes: Iterable[Any] | None = None) -> "QueryBuilder[T]":
        """Suppress global scopes by name or class; all of them when ``scopes`` is None."""
        names = frozenset({_ALL_SCOPES}) if scopes is None else scope_names(scopes)
        return replace(self, suppressed_scopes=self.suppressed_scopes | names)

    def with_pivot(self, pivot: PivotJoin) -> "QueryBuilder[T]":
        return replace(self, pivot=pivot)

    # Compilation

    def _where_clause(self) -> list[ColumnElement[bool]]:
        clause = list(self.criteria)
        if _ALL_SCOPES not in self.suppressed_scopes:
            for scope in self.registry.scopes_for(self.definition.kind, without=self.suppressed_scopes):
                clause.append(scope.criteria(self.model))
        return clause

    def to_select(self) -> Select:
        """Compile the builder state to a SELECT statement."""
        if self.pivot is not None:
            stmt = select(self.model, self.pivot.model).join_from(self.model, self.pivot.model, self.pivot.onclause)
        else:
            stmt = select(self.model)
        stmt = stmt.where(*self._where_clause())
        if self.orders:
            stmt = stmt.order_by(*self.orders)
        if self.offset_value:
            stmt = stmt.offset(self.offset_value)
        if self.limit_value is not None:
            stmt = stmt.limit(self.limit_value)
        return stmt

    def _key_columns(self) -> list[Any]:
        return [getattr(self.model, name) for name in self.definition.primary_key]

    def _write_clause(self) -> list[ColumnElement[bool]]:
        """WHERE clause for mass update and delete.

        With a limit, an offset or a joined pivot the write is restricted to
        the keys the equivalent SELECT returns.
        """
        if self.pivot is None and self.limit_value is None and not self.offset_value:
            return self._where_clause()
        key_columns = self._key_columns()
        keys = self.to_select().with_only_columns(*key_columns).correlate(None)
        target = key_columns[0] if len(key_columns) == 1 else tuple_(*key_columns)
        return [target.in_(keys)]

    # Terminal operations

    def get(self) -> Collection:
        """Execute and return the matching entities; never None."""
        result = self.session.execute(self.to_select())
        if self.pivot is None:
            collection = Collection(result.scalars().all())
        else:
            rows = result.all()
            collection = Collection((row[0] for row in rows), pivots=(row[1] for row in rows))
            if self.pivot.expose:
                for entity, pivot in zip(collection, collection.pivots):
                    entity.pivot = pivot

        if self.eager and collection:
            from storefront_orm.orm.resolver import eager_load

            eager_load(self.session, self.registry, list(collection), self.eager)
        return collection

    def all(self) -> Collection:
        return self.get()

    def first(self) -> T | None:
        return self.limit(1).get().first()

    def find(self, key: Any) -> T | None:
        """Return the entity with the given primary key, or None.

        Active scopes apply: a row filtered out by a scope is not found.
        """
        return self.filter(self.definition.key_criteria(key)).first()

    def find_many(self, keys: Iterable[Any]) -> Collection:
        return self.where_key(keys).get()

    def _aggregate(self, function: Callable[..., Any]) -> Any:
        stmt = select(function).select_from(self.model).where(*self._where_clause())
        return self.session.execute(stmt).scalar_one()

    def count(self) -> int:
        """Count the matching rows."""
        return int(self._aggregate(func.count()))

    def exists(self) -> bool:
        return self.count() > 0

    def sum(self, attribute: str) -> Any:
        return self._aggregate(func.sum(self.definition.column(attribute)))

    def min(self, attribute: str) -> Any:
        return self._aggregate(func.min(self.definition.column(attribute)))

    def max(self, attribute: str) -> Any:
        return self._aggregate(func.max(self.definition.column(attribute)))

    def avg(self, attribute: str) -> Any:
        return self._aggregate(func.avg(self.definition.column(attribute)))

    def pluck(self, attribute: str) -> list[Any]:
        column = self.definition.column(attribute)
        stmt = self.to_select().with_only_columns(column)
        return list(self.session.execute(stmt).scalars().all())

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> bool:
        """Bulk insert complete attribute mappings as one atomic unit.

        Registry defaults and timestamps are not applied.

        Raises:
            IntegrityError: If any row violates a constraint; no row is stored.
        """
        rows = [dict(row) for row in rows]
        for row in rows:
            self.definition.validate_attributes(row)
        if not rows:
            return True

        with atomic(self.session):
            self.session.execute(insert(self.model), rows)
        logger.debug(f"Bulk inserted {len(rows)} {self.definition.kind} rows")
        return True

    def update(self, attributes: Mapping[str, Any]) -> int:
        """Apply ``attributes`` to every matching row.

        Entity lifecycle hooks (defaults, timestamps) are bypassed. Loaded
        entities of the kind have the updated attributes expired so the next
        access reads the stored value.

        Returns:
            Number of affected rows.

        Raises:
            IntegrityError: If ``attributes`` changes a primary key column.
        """
        self.definition.validate_attributes(attributes)
        changed_keys = [name for name in self.definition.primary_key if name in attributes]
        if changed_keys:
            raise IntegrityError(f"primary key {changed_keys} of a stored {self.definition.kind} cannot change")
        stmt = (
            update(self.model)
            .where(*self._write_clause())
            .values(**attributes)
            .execution_options(synchronize_session=False)
        )
        with atomic(self.session):
            affected = self.session.execute(stmt).rowcount

        for entity in list(self.session.identity_map.values()):
            if isinstance(entity, self.model):
                self.session.expire(entity, list(attributes))
        logger.debug(f"Mass updated {affected} {self.definition.kind} rows")
        return affected

    def delete(self) -> int:
        """Delete every matching row.

        Loaded entities whose rows were deleted are removed from the session.

        Returns:
            Number of deleted rows.
        """
        where_clause = self._write_clause()
        key_columns = self._key_columns()
        stmt = delete(self.model).where(*where_clause).execution_options(synchronize_session=False)
        with atomic(self.session):
            deleted_keys = {tuple(row) for row in self.session.execute(select(*key_columns).where(*where_clause))}
            affected = self.session.execute(stmt).rowcount

        for identity_key, entity in list(self.session.identity_map.items()):
            if isinstance(entity, self.model) and tuple(identity_key[1]) in deleted_keys:
                self.session.expunge(entity)
        logger.debug(f"Mass deleted {affected} {self.definition.kind} rows")
        return affected
