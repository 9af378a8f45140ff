import pytest
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from storefront_orm.exceptions import IntegrityError, SessionNotSetError, UnknownAttributeError
from storefront_orm.orm.persistence import delete_entity, save_entity
from storefront_orm.orm.schema import Base, Category, Comment, Product, Voucher


def _save(session: Session, entity) -> bool:
    return save_entity(session, Base.entities, entity)


def test_save_inserts_new_entity(db_session: Session):
    category = Category(id="GADGET", name="Gadget", is_active=True)

    assert _save(db_session, category) is True
    assert inspect(category).persistent
    assert db_session.get(Category, "GADGET") is category


def test_save_applies_plain_defaults(db_session: Session):
    comment = Comment(email="eko@pzn.com", commentable_id="1", commentable_type="product")

    _save(db_session, comment)

    assert comment.id is not None
    assert comment.title == "Sample Title"
    assert comment.comment == "Sample Comment"


def test_save_keeps_explicit_values_over_defaults(db_session: Session):
    comment = Comment(email="eko@pzn.com", title="Mine", commentable_id="1", commentable_type="product")

    _save(db_session, comment)

    assert comment.title == "Mine"
    assert comment.comment == "Sample Comment"


def test_save_applies_callable_defaults_per_entity(db_session: Session):
    first = Voucher(name="First")
    second = Voucher(name="Second")

    _save(db_session, first)
    _save(db_session, second)

    assert first.id and second.id
    assert first.id != second.id
    assert first.voucher_code != second.voucher_code


def test_save_maintains_timestamps(db_session: Session):
    comment = Comment(email="eko@pzn.com", commentable_id="1", commentable_type="product")
    _save(db_session, comment)
    created_at = comment.created_at

    assert created_at is not None
    assert comment.updated_at is not None

    comment.title = "Changed"
    _save(db_session, comment)

    assert comment.created_at == created_at
    assert comment.updated_at >= created_at


def test_save_without_timestamps_leaves_created_at(db_session: Session):
    category = Category(id="FOOD", name="Food", is_active=True)
    _save(db_session, category)

    assert category.created_at is None


def test_save_updates_persistent_entity(db_session: Session):
    category = Category(id="FOOD", name="Food", is_active=True)
    _save(db_session, category)

    category.name = "Food Updated"
    assert _save(db_session, category) is True

    db_session.expire(category)
    assert category.name == "Food Updated"


def test_save_rejects_primary_key_change(db_session: Session):
    category = Category(id="FOOD", name="Food", is_active=True)
    _save(db_session, category)

    category.id = "DRINK"

    with pytest.raises(IntegrityError):
        _save(db_session, category)


def test_save_duplicate_primary_key(db_session: Session):
    _save(db_session, Category(id="FOOD", name="Food", is_active=True))

    with pytest.raises(IntegrityError):
        _save(db_session, Category(id="FOOD", name="Other", is_active=True))

    assert db_session.get(Category, "FOOD").name == "Food"


def test_save_not_null_violation_keeps_session_usable(db_session: Session):
    with pytest.raises(IntegrityError):
        _save(db_session, Category(id="FOOD", is_active=True))

    _save(db_session, Category(id="DRINK", name="Drink", is_active=True))
    assert db_session.get(Category, "DRINK") is not None


def test_save_foreign_key_violation(db_session: Session):
    with pytest.raises(IntegrityError):
        _save(db_session, Product(id="1", name="Orphan", category_id="MISSING"))


def test_delete_entity(db_session: Session):
    category = Category(id="FOOD", name="Food", is_active=True)
    _save(db_session, category)

    assert delete_entity(db_session, Base.entities, category) is True
    assert db_session.get(Category, "FOOD") is None


def test_delete_unsaved_entity(db_session: Session):
    assert delete_entity(db_session, Base.entities, Category(id="FOOD", name="Food")) is False


def test_server_defaults_are_loaded_after_insert(db_session: Session):
    _save(db_session, Category(id="FOOD", name="Food", is_active=True))
    product = Product(id="1", name="Product 1", category_id="FOOD")
    _save(db_session, product)

    assert product.price == 0
    assert product.stock == 0


def test_fill_validates_attributes():
    category = Category().fill({"id": "FOOD", "name": "Food"})

    assert category.id == "FOOD"
    assert category.name == "Food"
    with pytest.raises(UnknownAttributeError):
        category.fill({"colour": "red"})


def test_to_dict():
    product = Product(id="1", name="Product 1", price=10)

    assert product.to_dict() == {
        "id": "1",
        "name": "Product 1",
        "description": None,
        "price": 10,
        "stock": None,
        "category_id": None,
    }


def test_relation_requires_session():
    with pytest.raises(SessionNotSetError):
        Category(id="FOOD", name="Food").relation("products")


def test_repr_shows_key():
    assert repr(Category(id="FOOD", name="Food")) == "<Category 'FOOD'>"
