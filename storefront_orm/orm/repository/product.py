from typing import Any

from sqlalchemy.orm import Session

from storefront_orm.orm.query import Collection
from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.schema import EntityKind, Product


class ProductRepository(GenericRepository[Product]):
    """Repository for Product entities."""

    def __init__(self, session: Session, kind: Any = EntityKind.PRODUCT):
        super().__init__(session, kind)

    def out_of_stock(self) -> Collection:
        return self.where("stock", "<=", 0).order_by("id").get()

    def in_price_range(self, low: int, high: int) -> Collection:
        """Retrieve products priced between ``low`` and ``high``, both inclusive, cheapest first.

        Args:
            low: Lower price bound.
            high: Upper price bound.

        Returns:
            Matching products ordered by price.
        """
        return self.where("price", ">=", low).where("price", "<=", high).order_by("price").order_by("id").get()
