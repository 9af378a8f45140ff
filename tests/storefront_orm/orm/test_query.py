import pytest
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from storefront_orm.exceptions import (
    EmptyIterableError,
    IntegrityError,
    UnknownAttributeError,
    UnsupportedOperatorError,
)
from storefront_orm.orm.query import Collection, QueryBuilder
from storefront_orm.orm.schema import Base, Category, Customer, Like, Product
from storefront_orm.orm.scopes import IsActiveScope


def _builder(session: Session, model: type) -> QueryBuilder:
    return QueryBuilder(session, Base.entities, Base.entities.get(model))


@pytest.fixture
def categories(db_session: Session) -> QueryBuilder:
    return _builder(db_session, Category)


@pytest.fixture
def products(db_session: Session) -> QueryBuilder:
    return _builder(db_session, Product)


@pytest.fixture
def ten_categories(categories: QueryBuilder) -> QueryBuilder:
    rows = [{"id": f"ID {i}", "name": f"Name {i}", "is_active": True} for i in range(10)]
    assert categories.insert(rows) is True
    return categories


@pytest.fixture
def priced_products(categories: QueryBuilder, products: QueryBuilder) -> QueryBuilder:
    categories.insert([{"id": "FOOD", "name": "Food", "is_active": True}])
    products.insert([
        {"id": "1", "name": "Product 1", "price": 100, "stock": 0, "category_id": "FOOD"},
        {"id": "2", "name": "Product 2", "price": 200, "stock": 5, "category_id": "FOOD"},
        {"id": "3", "name": "Product 3", "price": 300, "stock": 10, "category_id": "FOOD"},
    ])
    return products


def test_insert_many_increases_count(ten_categories: QueryBuilder):
    assert ten_categories.count() == 10


def test_insert_is_atomic(categories: QueryBuilder):
    rows = [
        {"id": "A", "name": "First", "is_active": True},
        {"id": "A", "name": "Duplicate", "is_active": True},
    ]

    with pytest.raises(IntegrityError):
        categories.insert(rows)

    assert categories.count() == 0
    categories.insert([{"id": "B", "name": "Still usable", "is_active": True}])
    assert categories.count() == 1


def test_insert_unknown_attribute(categories: QueryBuilder):
    with pytest.raises(UnknownAttributeError):
        categories.insert([{"id": "A", "name": "A", "colour": "red"}])

    assert categories.without_scopes().count() == 0


def test_insert_empty_is_noop(categories: QueryBuilder):
    assert categories.insert([]) is True
    assert categories.count() == 0


def test_builder_is_immutable(priced_products: QueryBuilder):
    cheap = priced_products.where("price", "<", 250)

    assert cheap is not priced_products
    assert priced_products.count() == 3
    assert cheap.count() == 2


def test_where_operators(priced_products: QueryBuilder):
    assert priced_products.where("price", 200).pluck("id") == ["2"]
    assert priced_products.where("price", "=", 200).pluck("id") == ["2"]
    assert priced_products.where("price", ">", 100).order_by("id").pluck("id") == ["2", "3"]
    assert priced_products.where("price", ">=", 200).count() == 2
    assert priced_products.where("price", "<=", 200).count() == 2
    assert priced_products.where("price", "<>", 200).count() == 2
    assert priced_products.where("price", "!=", 200).count() == 2
    assert priced_products.where("stock", "<=", 0).where("price", "<", 200).pluck("id") == ["1"]


def test_where_unsupported_operator(priced_products: QueryBuilder):
    with pytest.raises(UnsupportedOperatorError):
        priced_products.where("price", "LIKE", 200)


def test_where_unknown_attribute(priced_products: QueryBuilder):
    with pytest.raises(UnknownAttributeError):
        priced_products.where("weight", 1)


def test_where_null_does_not_match_empty_string(categories: QueryBuilder):
    categories.insert([
        {"id": "A", "name": "A", "description": None, "is_active": True},
        {"id": "B", "name": "B", "description": "", "is_active": True},
        {"id": "C", "name": "C", "description": "Something", "is_active": True},
    ])

    assert categories.where_null("description").pluck("id") == ["A"]
    assert categories.where_not_null("description").order_by("id").pluck("id") == ["B", "C"]


def test_order_limit_offset(priced_products: QueryBuilder):
    ordered = priced_products.order_by("price", "desc")

    assert ordered.pluck("id") == ["3", "2", "1"]
    assert ordered.limit(2).pluck("id") == ["3", "2"]
    assert ordered.offset(1).limit(1).pluck("id") == ["2"]
    assert ordered.first().id == "3"

    with pytest.raises(UnsupportedOperatorError):
        priced_products.order_by("price", "sideways")


def test_get_returns_empty_collection(priced_products: QueryBuilder):
    result = priced_products.where("price", ">", 1000).get()

    assert isinstance(result, Collection)
    assert result == []
    assert result.first() is None
    assert priced_products.where("price", ">", 1000).first() is None


def test_find_and_find_many(priced_products: QueryBuilder):
    assert priced_products.find("2").name == "Product 2"
    assert priced_products.find("404") is None
    assert sorted(priced_products.find_many(["1", "3", "404"]).keys()) == ["1", "3"]


def test_aggregates(priced_products: QueryBuilder):
    assert priced_products.sum("price") == 600
    assert priced_products.min("price") == 100
    assert priced_products.max("price") == 300
    assert priced_products.avg("price") == 200
    assert priced_products.exists()
    assert not priced_products.where("price", 0).exists()


def test_global_scope_hides_inactive(categories: QueryBuilder):
    categories.insert([
        {"id": "ON", "name": "Active", "is_active": True},
        {"id": "OFF", "name": "Inactive", "is_active": False},
    ])

    assert categories.pluck("id") == ["ON"]
    assert categories.find("OFF") is None
    assert categories.without_scopes([IsActiveScope]).find("OFF") is not None
    assert categories.without_scopes(["is_active"]).count() == 2
    assert categories.without_scopes().count() == 2


def test_mass_update(ten_categories: QueryBuilder):
    loaded = ten_categories.find("ID 0")
    assert loaded.description is None

    affected = ten_categories.where_null("description").update({"description": "updated"})

    assert affected == 10
    assert ten_categories.where("description", "=", "updated").count() == 10
    assert loaded.description == "updated"


def test_mass_update_respects_scopes(categories: QueryBuilder):
    categories.insert([
        {"id": "ON", "name": "Active", "is_active": True},
        {"id": "OFF", "name": "Inactive", "is_active": False},
    ])

    assert categories.update({"description": "touched"}) == 1
    assert categories.without_scopes().find("OFF").description is None


def test_mass_update_unknown_attribute(ten_categories: QueryBuilder):
    with pytest.raises(UnknownAttributeError):
        ten_categories.update({"colour": "red"})


def test_mass_delete(ten_categories: QueryBuilder):
    loaded = ten_categories.find("ID 3")

    deleted = ten_categories.where_null("description").delete()

    assert deleted == 10
    assert ten_categories.count() == 0
    assert inspect(loaded).detached
    assert ten_categories.find("ID 3") is None


def test_mass_delete_matching_nothing(ten_categories: QueryBuilder):
    assert ten_categories.where("name", "nobody").delete() == 0
    assert ten_categories.count() == 10


def test_collection_to_query(priced_products: QueryBuilder):
    subset = priced_products.where("price", "<", 300).get()

    narrowed = subset.to_query().where("price", 200).get()

    assert narrowed.pluck("id") == ["2"]


def test_collection_to_query_empty():
    with pytest.raises(EmptyIterableError):
        Collection().to_query()


def test_with_unknown_relationship(products: QueryBuilder):
    from storefront_orm.exceptions import UnknownRelationshipError

    with pytest.raises(UnknownRelationshipError):
        products.with_("suppliers")


def test_mass_update_rejects_primary_key(ten_categories: QueryBuilder):
    loaded = ten_categories.find("ID 1")

    with pytest.raises(IntegrityError):
        ten_categories.where("id", "ID 1").update({"id": "ID X", "name": "Renamed"})

    assert ten_categories.find("ID X") is None
    assert ten_categories.find("ID 1") is loaded
    assert loaded.name == "Name 1"


def test_mass_delete_honours_order_and_limit(ten_categories: QueryBuilder):
    deleted = ten_categories.order_by("id").limit(1).delete()

    assert deleted == 1
    assert ten_categories.count() == 9
    assert ten_categories.find("ID 0") is None


def test_mass_update_honours_offset_and_limit(ten_categories: QueryBuilder):
    affected = ten_categories.order_by("id").offset(2).limit(3).update({"description": "paged"})

    assert affected == 3
    assert sorted(ten_categories.where("description", "paged").pluck("id")) == ["ID 2", "ID 3", "ID 4"]


def test_collection_to_query_composite_key(db_session: Session, priced_products: QueryBuilder):
    _builder(db_session, Customer).insert([{"id": "EKO", "name": "Eko", "email": "eko@pzn.com"}])
    likes = _builder(db_session, Like)
    likes.insert([
        {"customer_id": "EKO", "product_id": "1"},
        {"customer_id": "EKO", "product_id": "2"},
    ])

    collection = likes.get()

    assert sorted(collection.keys()) == [("EKO", "1"), ("EKO", "2")]
    assert collection.to_query().count() == 2
    assert collection.to_query().where("product_id", "2").get().keys() == [("EKO", "2")]
    assert likes.where_key([]).count() == 0
