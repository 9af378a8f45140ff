"""Repository layer for Storefront-ORM.

Implements Generic Repository + Unit of Work patterns on top of the entity
registry: a repository is bound to one entity kind and hands out query
builders, persists single entities and resolves relationships.
"""

from collections.abc import Iterable, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session

from storefront_orm.exceptions import SessionNotSetError
from storefront_orm.orm.persistence import delete_entity, save_entity
from storefront_orm.orm.query import Collection, QueryBuilder
from storefront_orm.orm.registry import EntityRegistry
from storefront_orm.orm.resolver import Relation, eager_load, make_relation
from storefront_orm.orm.schema import Base

T = TypeVar("T")


class GenericRepository(Generic[T]):
    """Generic repository for one entity kind.

    This base class provides reusable database operations that can be
    extended by specific repositories for custom business logic.
    """

    def __init__(self, session: Session | None, kind: Any, registry: EntityRegistry | None = None):
        """Initialize repository with a session and an entity kind.

        Args:
            session: SQLAlchemy session for database operations.
            kind: Kind name, :class:`EntityKind` member or model class.
            registry: Registry the kind is registered with. Defaults to ``Base.entities``.

        Raises:
            SessionNotSetError: If ``session`` is None.
            UnknownEntityKindError: If the kind is not registered.
        """
        if session is None:
            raise SessionNotSetError
        self.session = session
        self.registry = registry if registry is not None else Base.entities
        self.definition = self.registry.get(kind)
        self.model_cls: type[T] = self.definition.model

    def query(self) -> QueryBuilder[T]:
        """Return a fresh builder for the kind with its global scopes active."""
        return QueryBuilder(self.session, self.registry, self.definition)

    def new(self, attributes: Mapping[str, Any] | None = None) -> T:
        """Build an unsaved entity. Registry defaults are applied on save."""
        entity = self.model_cls()
        if attributes:
            entity.fill(dict(attributes))
        return entity

    def create(self, attributes: Mapping[str, Any]) -> T:
        """Build and save an entity in one step.

        Raises:
            IntegrityError: If the insert violates a constraint.
        """
        entity = self.new(attributes)
        self.save(entity)
        return entity

    def save(self, entity: T) -> bool:
        """Insert a new entity or update a stored one."""
        return save_entity(self.session, self.registry, entity)

    def delete(self, entity: T) -> bool:
        return delete_entity(self.session, self.registry, entity)

    def delete_by_id(self, key: Any) -> bool:
        """Delete an entity by its primary key.

        Returns:
            True if entity was deleted, False if not found.
        """
        entity = self.find(key)
        if entity is None:
            return False
        return self.delete(entity)

    def find(self, key: Any) -> T | None:
        return self.query().find(key)

    def exists(self, key: Any) -> bool:
        return self.find(key) is not None

    def all(self) -> Collection:
        return self.query().get()

    def count(self) -> int:
        return self.query().count()

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> bool:
        """Bulk insert rows as one atomic unit, bypassing entity defaults."""
        return self.query().insert(rows)

    def where(self, *args: Any) -> QueryBuilder[T]:
        return self.query().where(*args)

    def where_null(self, attribute: str) -> QueryBuilder[T]:
        return self.query().where_null(attribute)

    def without_scopes(self, scopes: Iterable[Any] | None = None) -> QueryBuilder[T]:
        return self.query().without_scopes(scopes)

    def with_(self, *names: str) -> QueryBuilder[T]:
        return self.query().with_(*names)

    def load(self, entities: Sequence[T], *names: str) -> Sequence[T]:
        """Eager-load relationships on already fetched entities of this kind."""
        eager_load(self.session, self.registry, list(entities), names)
        return entities

    def relation(self, entity: T, name: str) -> Relation:
        """Return the relationship ``name`` of ``entity`` as a sub-builder."""
        return make_relation(self.session, self.registry, entity, name)


class UnitOfWork:
    """Unit of Work pattern for managing database transactions.

    Ensures data consistency by grouping multiple repository operations
    into a single atomic transaction.
    """

    def __init__(self, session_factory: Any):
        self.session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self.session_factory()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            self.rollback()
        if self.session:
            self.session.close()

    def commit(self) -> None:
        if self.session:
            self.session.commit()

    def rollback(self) -> None:
        if self.session:
            self.session.rollback()

    def flush(self) -> None:
        if self.session:
            self.session.flush()


def create_repository(session: Session, kind: Any) -> GenericRepository[Any]:
    """Factory function to create a repository instance.

    Args:
        session: SQLAlchemy session.
        kind: Model class or registered kind name.

    Returns:
        A new GenericRepository instance.

    Example:
        >>> session = SessionFactory()
        >>> products = create_repository(session, "product")
        >>> product = products.find("1")
    """
    return GenericRepository(session, kind)


@contextmanager
def repository_context(session_factory, kind: Any):
    """Context manager for quick repository operations.

    Combines UnitOfWork and Repository creation for simple use cases
    where you need to perform operations on a single entity kind.

    Yields:
        A tuple of (repository, unit_of_work) for operations.

    Example:
        >>> with repository_context(SessionFactory, Category) as (repo, uow):
        ...     category = repo.find("FOOD")
        ...     category.name = "New Name"
        ...     repo.save(category)
        ...     uow.commit()
    """
    with UnitOfWork(session_factory) as uow:
        repo = GenericRepository(uow.session, kind)
        yield repo, uow
