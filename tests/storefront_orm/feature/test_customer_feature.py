from sqlalchemy.orm import Session

from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.repository.customer import CustomerRepository
from storefront_orm.orm.schema import Customer, Wallet
from storefront_orm.seeders import (
    CategorySeeder,
    CustomerSeeder,
    ImageSeeder,
    ProductSeeder,
    VirtualAccountSeeder,
    WalletSeeder,
    seed,
)


def _like_first_product(session: Session) -> Customer:
    seed(session, CustomerSeeder, CategorySeeder, ProductSeeder)
    customer = GenericRepository(session, Customer).find("EKO")
    customer.relation("like_products").attach("1")
    return customer


def test_one_to_one(db_session: Session):
    seed(db_session, CustomerSeeder, WalletSeeder)

    customer = GenericRepository(db_session, Customer).find("EKO")

    assert customer is not None
    assert customer.wallet is not None
    assert customer.wallet.amount == 1000000


def test_one_to_one_save(db_session: Session):
    customer = GenericRepository(db_session, Customer).create({"id": "EKO", "name": "Eko", "email": "eko@pzn.com"})

    wallet = Wallet(amount=1000000)
    customer.relation("wallet").save(wallet)

    assert wallet.customer_id is not None


def test_has_one_through(db_session: Session):
    seed(db_session, CustomerSeeder, WalletSeeder, VirtualAccountSeeder)

    customer = GenericRepository(db_session, Customer).find("EKO")

    assert customer.virtual_account is not None
    assert customer.virtual_account.bank == "BCA"


def test_many_to_many(db_session: Session):
    customer = _like_first_product(db_session)

    products = customer.like_products

    assert len(products) == 1
    assert products[0].id == "1"


def test_remove_many_to_many(db_session: Session):
    _like_first_product(db_session)
    customer = GenericRepository(db_session, Customer).find("EKO")

    customer.relation("like_products").detach("1")

    assert len(customer.like_products) == 0


def test_pivot_attribute(db_session: Session):
    customer = _like_first_product(db_session)

    for product in customer.like_products:
        pivot = product.pivot
        assert pivot is not None
        assert pivot.customer_id is not None
        assert pivot.product_id is not None
        assert pivot.created_at is not None


def test_pivot_model(db_session: Session):
    customer = _like_first_product(db_session)

    for product in customer.like_products:
        pivot = product.pivot
        assert pivot.customer is not None
        assert pivot.product is not None


def test_eager(db_session: Session):
    seed(db_session, CustomerSeeder, WalletSeeder, ImageSeeder)

    customer = GenericRepository(db_session, Customer).with_("wallet", "image").find("EKO")

    assert customer is not None
    assert customer.relation_loaded("wallet")
    assert customer.relation_loaded("image")


def test_eager_profile(db_session: Session):
    seed(db_session, CustomerSeeder, WalletSeeder, ImageSeeder)

    customer = CustomerRepository(db_session).find_with_profile("EKO")

    assert customer is not None
    assert customer.image.url == "https://www.programmerzamannow.com/image/1.jpg"
