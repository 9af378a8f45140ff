import logging

from sqlalchemy.orm import Session

from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.schema import EntityKind
from storefront_orm.seeders import (
    CategorySeeder,
    CommentSeeder,
    CustomerSeeder,
    ImageSeeder,
    ProductSeeder,
    ReviewSeeder,
    TagSeeder,
    VirtualAccountSeeder,
    VoucherSeeder,
    WalletSeeder,
    seed,
)


def test_seed_everything(db_session: Session, caplog):
    with caplog.at_level(logging.INFO, logger="Storefront-ORM"):
        seed(
            db_session,
            CategorySeeder,
            ProductSeeder,
            CustomerSeeder,
            WalletSeeder(),
            VirtualAccountSeeder,
            ReviewSeeder,
            ImageSeeder,
            VoucherSeeder,
            CommentSeeder,
            TagSeeder,
        )

    counts = {kind: GenericRepository(db_session, kind).without_scopes().count() for kind in EntityKind}
    assert counts == {
        EntityKind.CATEGORY: 1,
        EntityKind.PRODUCT: 2,
        EntityKind.CUSTOMER: 1,
        EntityKind.WALLET: 1,
        EntityKind.VIRTUAL_ACCOUNT: 1,
        EntityKind.REVIEW: 2,
        EntityKind.COMMENT: 2,
        EntityKind.IMAGE: 2,
        EntityKind.VOUCHER: 1,
        EntityKind.TAG: 1,
        EntityKind.TAGGABLE: 2,
        EntityKind.LIKE: 0,
    }
    assert "Seeded WalletSeeder" in caplog.text


def test_product_seeder_prices(db_session: Session):
    seed(db_session, CategorySeeder, ProductSeeder)

    products = GenericRepository(db_session, EntityKind.PRODUCT).query().order_by("id").get()

    assert products.pluck("price") == [0, 200]
