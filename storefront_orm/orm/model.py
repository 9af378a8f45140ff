"""Declarative base for storefront entities.

Subclasses declaring ``__kind__`` register themselves with the shared
:class:`EntityRegistry` when the class is created. The registration picks up
``__default_attributes__``, ``__scopes__``, ``__timestamps__`` and every
relationship accessor declared on the class body.
"""

from typing import Any, ClassVar

from sqlalchemy.orm import DeclarativeBase, object_session
from typing_extensions import Self

from storefront_orm.exceptions import SessionNotSetError
from storefront_orm.orm.registry import EntityRegistry
from storefront_orm.orm.relations import RelationAccessor

_RELATIONS = "_loaded_relations"


class Base(DeclarativeBase):
    entities: ClassVar[EntityRegistry] = EntityRegistry()

    def __init_subclass__(cls, **kw: Any) -> None:
        super().__init_subclass__(**kw)
        kind = cls.__dict__.get("__kind__")
        if kind is None:
            return

        relationships = {
            accessor.descriptor.name: accessor.descriptor
            for accessor in vars(cls).values()
            if isinstance(accessor, RelationAccessor)
        }
        cls.entities.register(
            kind=kind,
            model=cls,
            table=cls.__tablename__,
            primary_key=tuple(column.key for column in cls.__table__.primary_key.columns),
            defaults=cls.__dict__.get("__default_attributes__", {}),
            relationships=relationships,
            scopes=cls.__dict__.get("__scopes__", ()),
            timestamps=cls.__dict__.get("__timestamps__", False),
        )

    def fill(self, attributes: dict[str, Any]) -> Self:
        """Assign several attributes at once, validated against the registry."""
        self.entities.get(type(self)).validate_attributes(attributes)
        for name, value in attributes.items():
            setattr(self, name, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__table__.columns.keys()}

    # Relationship access

    def relation(self, name: str) -> Any:
        """Return the relationship ``name`` bound to this entity as a sub-builder."""
        from storefront_orm.orm.resolver import make_relation

        session = object_session(self)
        if session is None:
            raise SessionNotSetError
        return make_relation(session, self.entities, self, name)

    def get_relation(self, name: str) -> Any:
        """Resolve the relationship ``name``, caching the result on the entity."""
        cache = self.__dict__.setdefault(_RELATIONS, {})
        if name not in cache:
            cache[name] = self.relation(name).get_results()
        return cache[name]

    def set_relation(self, name: str, value: Any) -> None:
        self.__dict__.setdefault(_RELATIONS, {})[name] = value

    def unset_relation(self, name: str) -> None:
        self.__dict__.get(_RELATIONS, {}).pop(name, None)

    def relation_loaded(self, name: str) -> bool:
        return name in self.__dict__.get(_RELATIONS, {})

    def __repr__(self) -> str:
        definition = self.entities.get(type(self))
        return f"<{type(self).__name__} {definition.key_of(self)!r}>"
