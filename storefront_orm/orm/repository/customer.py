from typing import Any

from sqlalchemy.orm import Session

from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.schema import Customer, EntityKind


class CustomerRepository(GenericRepository[Customer]):
    """Repository for Customer entities."""

    def __init__(self, session: Session, kind: Any = EntityKind.CUSTOMER):
        super().__init__(session, kind)

    def find_with_profile(self, key: str) -> Customer | None:
        """Retrieve a customer with wallet and image eagerly loaded.

        Args:
            key: The customer id.

        Returns:
            The customer with ``wallet`` and ``image`` resolved, None if not found.
        """
        return self.with_("wallet", "image").find(key)

    def find_by_email(self, email: str) -> Customer | None:
        return self.where("email", email).first()
