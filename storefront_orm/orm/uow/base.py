"""Base Unit of Work for Storefront-ORM.

Provides the abstract base class with the common UoW patterns shared by every
unit of work over the storefront schema.
"""

from typing import Any, ClassVar

from sqlalchemy.orm import Session, sessionmaker
from typing_extensions import Self

from storefront_orm.exceptions import SessionNotSetError


class BaseUnitOfWork:
    """Base class for Unit of Work pattern.

    Provides common functionality for managing database transactions:
    - Session lifecycle management (context manager)
    - Transaction operations (commit, rollback, flush)
    - Lazy repository initialization helper

    Subclasses declare ``_REPOSITORY_ATTRS`` (public property name to private
    cache attribute) and implement each property with ``_get_repository()``.
    """

    _REPOSITORY_ATTRS: ClassVar[dict[str, str]] = {}

    def __init__(self, session_factory: sessionmaker[Session]):
        """Initialize Unit of Work with a session factory.

        Args:
            session_factory: SQLAlchemy sessionmaker instance.
        """
        self.session_factory = session_factory
        self.session: Session | None = None
        self._reset_repositories()

    def __enter__(self) -> Self:
        self.session = self.session_factory()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit the context manager and clean up session.

        Automatically rolls back if an exception occurred.
        """
        if exc_type is not None:
            self.rollback()
        if self.session:
            self.session.close()
            self.session = None
        self._reset_repositories()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(repositories={self.available_repositories()})"

    def available_repositories(self) -> list[str]:
        """Names of the repository properties, sorted."""
        return sorted(self._REPOSITORY_ATTRS)

    def _reset_repositories(self) -> None:
        """Reset all repository references to None.

        Called during cleanup to ensure repositories are recreated on next access.
        """
        for repo_attr in self._REPOSITORY_ATTRS.values():
            setattr(self, repo_attr, None)

    def _get_repository(self, repo_attr: str, repo_class: type, kind: Any = None) -> Any:
        """Helper method for lazy repository initialization.

        Args:
            repo_attr: Name of the private repository attribute (e.g., "_product_repo").
            repo_class: Repository class to instantiate.
            kind: Entity kind passed to the repository, if it needs one.

        Returns:
            Repository instance.

        Raises:
            SessionNotSetError: If session is not initialized.
        """
        if self.session is None:
            raise SessionNotSetError

        cached_repo = getattr(self, repo_attr, None)
        if cached_repo is not None:
            return cached_repo

        repo = repo_class(self.session) if kind is None else repo_class(self.session, kind)
        setattr(self, repo_attr, repo)
        return repo

    def commit(self) -> None:
        """Commit the current transaction."""
        if self.session:
            self.session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        if self.session:
            self.session.rollback()

    def flush(self) -> None:
        """Flush pending changes without committing."""
        if self.session:
            self.session.flush()
