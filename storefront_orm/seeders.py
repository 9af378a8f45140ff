"""Sample data for the storefront schema.

Each :class:`Seeder` fills one table. Seeders that attach to other rows
expect the seeders of those rows to have run first, e.g.
``seed(session, CategorySeeder, ProductSeeder)``.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.schema import EntityKind

logger = logging.getLogger("Storefront-ORM")


class Seeder(ABC):
    @abstractmethod
    def run(self, session: Session) -> None: ...


class CategorySeeder(Seeder):
    def run(self, session: Session) -> None:
        GenericRepository(session, EntityKind.CATEGORY).create({
            "id": "FOOD",
            "name": "Food",
            "description": "Food Category",
            "is_active": True,
        })


class ProductSeeder(Seeder):
    """Two FOOD products; the second one is priced 200, the first keeps the default price."""

    def run(self, session: Session) -> None:
        products = GenericRepository(session, EntityKind.PRODUCT)
        products.create({"id": "1", "name": "Product 1", "description": "Description 1", "category_id": "FOOD"})
        products.create({
            "id": "2",
            "name": "Product 2",
            "description": "Description 2",
            "category_id": "FOOD",
            "price": 200,
        })


class CustomerSeeder(Seeder):
    def run(self, session: Session) -> None:
        GenericRepository(session, EntityKind.CUSTOMER).create({"id": "EKO", "name": "Eko", "email": "eko@pzn.com"})


class WalletSeeder(Seeder):
    def run(self, session: Session) -> None:
        GenericRepository(session, EntityKind.WALLET).create({"amount": 1000000, "customer_id": "EKO"})


class VirtualAccountSeeder(Seeder):
    def run(self, session: Session) -> None:
        wallet = GenericRepository(session, EntityKind.WALLET).where("customer_id", "EKO").first()
        GenericRepository(session, EntityKind.VIRTUAL_ACCOUNT).create({
            "bank": "BCA",
            "va_number": "4324234234",
            "wallet_id": wallet.id,
        })


class ReviewSeeder(Seeder):
    def run(self, session: Session) -> None:
        reviews = GenericRepository(session, EntityKind.REVIEW)
        reviews.create({"product_id": "1", "customer_id": "EKO", "rating": 5, "comment": "Bagus Banget"})
        reviews.create({"product_id": "2", "customer_id": "EKO", "rating": 3, "comment": "Lumayan"})


class ImageSeeder(Seeder):
    def run(self, session: Session) -> None:
        images = GenericRepository(session, EntityKind.IMAGE)
        images.create({
            "url": "https://www.programmerzamannow.com/image/1.jpg",
            "imageable_id": "EKO",
            "imageable_type": EntityKind.CUSTOMER.value,
        })
        images.create({
            "url": "https://www.programmerzamannow.com/image/2.jpg",
            "imageable_id": "1",
            "imageable_type": EntityKind.PRODUCT.value,
        })


class VoucherSeeder(Seeder):
    def run(self, session: Session) -> None:
        GenericRepository(session, EntityKind.VOUCHER).create({"name": "Sample Voucher", "is_active": True})


class CommentSeeder(Seeder):
    """One comment on product ``1`` and one on the first voucher."""

    def run(self, session: Session) -> None:
        product = GenericRepository(session, EntityKind.PRODUCT).find("1")
        product.relation("comments").create({"email": "eko@pzn.com", "title": "Title", "comment": "Comment Product"})

        voucher = GenericRepository(session, EntityKind.VOUCHER).query().first()
        voucher.relation("comments").create({"email": "eko@pzn.com", "title": "Title", "comment": "Comment Voucher"})


class TagSeeder(Seeder):
    def run(self, session: Session) -> None:
        tag = GenericRepository(session, EntityKind.TAG).create({"id": "pzn", "name": "Programmer Zaman Now"})

        product = GenericRepository(session, EntityKind.PRODUCT).find("1")
        product.relation("tags").attach(tag.id)

        voucher = GenericRepository(session, EntityKind.VOUCHER).query().first()
        voucher.relation("tags").attach(tag.id)


def seed(session: Session, *seeders: type[Seeder] | Seeder) -> None:
    """Run the seeders in order, flushing after each one."""
    for seeder in seeders:
        instance = seeder() if isinstance(seeder, type) else seeder
        instance.run(session)
        session.flush()
        logger.info(f"Seeded {type(instance).__name__}")
