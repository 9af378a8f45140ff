"""Single-entity persistence.

Saving an entity applies the registry defaults and timestamps before the
first insert. Every write runs inside a SAVEPOINT so a constraint violation
rolls back only that write and surfaces as
:class:`storefront_orm.exceptions.IntegrityError`, leaving the surrounding
transaction usable.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import exc as sa_exc
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from storefront_orm.exceptions import IntegrityError
from storefront_orm.orm.registry import EntityDefinition, EntityRegistry

logger = logging.getLogger("Storefront-ORM")

CREATED_AT = "created_at"
UPDATED_AT = "updated_at"


@contextmanager
def atomic(session: Session) -> Iterator[None]:
    """Run the enclosed writes in a savepoint, translating constraint violations."""
    try:
        with session.begin_nested():
            yield
    except sa_exc.IntegrityError as e:
        raise IntegrityError(str(e.orig)) from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def apply_defaults(registry: EntityRegistry, entity: Any) -> None:
    """Fill unset attributes from the registry defaults."""
    for attribute, value in registry.defaults_for(type(entity)).items():
        if getattr(entity, attribute) is None:
            setattr(entity, attribute, value)


def touch(definition: EntityDefinition, entity: Any, creating: bool) -> None:
    if not definition.timestamps:
        return
    now = utcnow()
    if creating and CREATED_AT in definition.columns and getattr(entity, CREATED_AT) is None:
        setattr(entity, CREATED_AT, now)
    if UPDATED_AT in definition.columns:
        setattr(entity, UPDATED_AT, now)


def save_entity(session: Session, registry: EntityRegistry, entity: Any) -> bool:
    """Insert a new entity or flush changes of a persistent one.

    Args:
        session: SQLAlchemy session.
        registry: Registry the entity's kind is registered with.
        entity: The entity to save.

    Returns:
        True once the entity is stored.

    Raises:
        IntegrityError: If the insert or update violates a constraint.
    """
    definition = registry.get(type(entity))
    state = inspect(entity)

    if state.transient or state.pending:
        apply_defaults(registry, entity)
        identity = state.mapper.identity_key_from_instance(entity)
        existing = session.identity_map.get(identity)
        if existing is not None and existing is not entity:
            raise IntegrityError(f"duplicate primary key {definition.key_of(entity)!r} for {definition.kind}")
        touch(definition, entity, creating=True)
        with atomic(session):
            session.add(entity)
            session.flush()
        logger.debug(f"Inserted {definition.kind} {definition.key_of(entity)!r}")
        return True

    if state.detached:
        session.add(entity)

    changed_keys = [name for name in definition.primary_key if state.attrs[name].history.deleted]
    if changed_keys:
        raise IntegrityError(f"primary key {changed_keys} of a stored {definition.kind} cannot change")

    if session.is_modified(entity):
        touch(definition, entity, creating=False)
        with atomic(session):
            session.flush()
        logger.debug(f"Updated {definition.kind} {definition.key_of(entity)!r}")
    return True


def delete_entity(session: Session, registry: EntityRegistry, entity: Any) -> bool:
    """Delete a persistent entity.

    Returns:
        True if a row was deleted, False if the entity was never stored.
    """
    definition = registry.get(type(entity))
    state = inspect(entity)
    if state.transient or state.pending:
        return False

    key = definition.key_of(entity)
    if state.detached:
        session.add(entity)
    with atomic(session):
        session.delete(entity)
        session.flush()
    logger.debug(f"Deleted {definition.kind} {key!r}")
    return True
