from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from storefront_orm.orm.connection import DBConnection


class QueryCounter:
    """Counts SELECT statements sent to the database."""

    def __init__(self):
        self.count = 0

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            self.count += 1

    def reset(self) -> None:
        self.count = 0


@pytest.fixture
def db_connection() -> Generator[DBConnection, Any, None]:
    connection = DBConnection.sqlite()
    yield connection
    connection.dispose()


@pytest.fixture
def db_engine(db_connection):
    """Create a fresh in-memory SQLite database with the storefront schema for each test."""
    db_connection.create_schema()
    return db_connection.get_engine()


@pytest.fixture
def session_factory(db_engine):
    """Create a thread-safe scoped session factory bound to the test database."""
    return scoped_session(sessionmaker(bind=db_engine))


@pytest.fixture
def db_session(session_factory) -> Generator[Session, Any, None]:
    """Create a new database session for each test.

    The session is automatically rolled back after the test to maintain isolation.
    """
    session = session_factory()

    yield session

    session.rollback()
    session_factory.remove()


@pytest.fixture
def query_counter(db_engine) -> Generator[QueryCounter, Any, None]:
    counter = QueryCounter()
    event.listen(db_engine, "before_cursor_execute", counter)
    yield counter
    event.remove(db_engine, "before_cursor_execute", counter)
