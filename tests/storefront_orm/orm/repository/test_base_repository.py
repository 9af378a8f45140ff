import pytest
from sqlalchemy.orm import Session

from storefront_orm.exceptions import SessionNotSetError, UnknownEntityKindError
from storefront_orm.orm.repository.base import GenericRepository, create_repository, repository_context
from storefront_orm.orm.resolver import HasOneOrMany
from storefront_orm.orm.schema import Category, EntityKind, Product


@pytest.fixture
def category_repository(db_session: Session) -> GenericRepository[Category]:
    return GenericRepository(db_session, Category)


def test_create_repository_accepts_kind_or_model(db_session: Session):
    by_model = create_repository(db_session, Product)
    by_name = create_repository(db_session, "product")
    by_enum = create_repository(db_session, EntityKind.PRODUCT)

    assert by_model.model_cls is by_name.model_cls is by_enum.model_cls is Product
    assert by_name.definition.kind == "product"


def test_create_repository_unknown_kind(db_session: Session):
    with pytest.raises(UnknownEntityKindError):
        create_repository(db_session, "warehouse")


def test_repository_requires_session():
    with pytest.raises(SessionNotSetError):
        GenericRepository(None, Category)


def test_new_does_not_persist(category_repository: GenericRepository[Category]):
    category = category_repository.new({"id": "FOOD", "name": "Food"})

    assert isinstance(category, Category)
    assert category.name == "Food"
    assert category_repository.without_scopes().count() == 0


def test_create_then_find(category_repository: GenericRepository[Category]):
    created = category_repository.create({
        "id": "FOOD",
        "name": "Food",
        "description": "Food Category",
        "is_active": True,
    })

    found = category_repository.find("FOOD")

    assert found is created
    assert found.to_dict()["description"] == "Food Category"
    assert category_repository.exists("FOOD")
    assert not category_repository.exists("DRINK")


def test_save_and_delete(category_repository: GenericRepository[Category]):
    category = Category(id="FOOD", name="Food", is_active=True)

    assert category_repository.save(category) is True
    assert category_repository.count() == 1
    assert category_repository.delete(category) is True
    assert category_repository.count() == 0


def test_delete_by_id(category_repository: GenericRepository[Category]):
    category_repository.create({"id": "FOOD", "name": "Food", "is_active": True})

    assert category_repository.delete_by_id("FOOD") is True
    assert category_repository.delete_by_id("FOOD") is False


def test_insert_where_and_all(category_repository: GenericRepository[Category]):
    category_repository.insert([{"id": f"ID {i}", "name": f"Name {i}", "is_active": True} for i in range(5)])

    assert len(category_repository.all()) == 5
    assert category_repository.where("name", "Name 3").first().id == "ID 3"
    assert category_repository.where_null("description").count() == 5


def test_without_scopes(category_repository: GenericRepository[Category]):
    category_repository.create({"id": "FOOD", "name": "Food", "is_active": False})

    assert category_repository.find("FOOD") is None
    assert category_repository.without_scopes(["is_active"]).find("FOOD") is not None


def test_relation(category_repository: GenericRepository[Category]):
    category = category_repository.create({"id": "FOOD", "name": "Food", "is_active": True})

    relation = category_repository.relation(category, "products")

    assert isinstance(relation, HasOneOrMany)
    assert relation.count() == 0


def test_repository_context(session_factory):
    with repository_context(session_factory, Category) as (repo, uow):
        repo.create({"id": "FOOD", "name": "Food", "is_active": True})
        uow.commit()

    with repository_context(session_factory, "category") as (repo, _):
        assert repo.find("FOOD").name == "Food"


def test_repository_context_rolls_back_on_error(session_factory):
    with pytest.raises(RuntimeError), repository_context(session_factory, Category) as (repo, _):
        repo.create({"id": "FOOD", "name": "Food", "is_active": True})
        raise RuntimeError

    with repository_context(session_factory, Category) as (repo, _):
        assert repo.count() == 0
