"""Global query scopes.

A scope is a named predicate the query builder adds to every statement
issued against an entity kind (selects, counts, aggregates, mass updates,
mass deletes and relationship queries) unless the caller suppresses it by
name with ``without_scopes``.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, ClassVar

from sqlalchemy import ColumnElement


class Scope(ABC):
    """Base class for global scopes."""

    name: ClassVar[str]

    @abstractmethod
    def criteria(self, model: type) -> ColumnElement[bool]:
        """Build the predicate for the given model class.

        Args:
            model: The mapped model class the statement targets.

        Returns:
            A boolean SQL expression.
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class IsActiveScope(Scope):
    """Only rows flagged ``is_active``."""

    name = "is_active"

    def criteria(self, model: type) -> ColumnElement[bool]:
        return model.is_active.is_(True)


def scope_names(scopes: Iterable[Any]) -> frozenset[str]:
    """Normalize scope names, scope classes or scope instances to a set of names."""
    return frozenset(scope if isinstance(scope, str) else scope.name for scope in scopes)
