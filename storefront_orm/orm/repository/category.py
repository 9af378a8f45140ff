"""Category repository for Storefront-ORM.

Categories carry the ``is_active`` global scope, so the default queries of
this repository only see active categories.
"""

from typing import Any

from sqlalchemy.orm import Session

from storefront_orm.orm.query import Collection
from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.schema import Category, EntityKind
from storefront_orm.orm.scopes import IsActiveScope


class CategoryRepository(GenericRepository[Category]):
    """Repository for Category entities with active-scope aware lookups."""

    def __init__(self, session: Session, kind: Any = EntityKind.CATEGORY):
        super().__init__(session, kind)

    def find_including_inactive(self, key: str) -> Category | None:
        """Retrieve a category by id, ignoring the ``is_active`` scope.

        Args:
            key: The category id.

        Returns:
            The category if stored, None otherwise.
        """
        return self.without_scopes([IsActiveScope]).find(key)

    def inactive(self) -> Collection:
        return self.without_scopes([IsActiveScope]).where("is_active", False).get()
