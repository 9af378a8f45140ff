"""Storefront Unit of Work.

Groups one repository per storefront entity kind behind a single session so
that several writes across kinds commit or roll back together.
"""

from typing import ClassVar

from storefront_orm.orm.repository.base import GenericRepository
from storefront_orm.orm.repository.category import CategoryRepository
from storefront_orm.orm.repository.customer import CustomerRepository
from storefront_orm.orm.repository.product import ProductRepository
from storefront_orm.orm.schema import EntityKind
from storefront_orm.orm.uow.base import BaseUnitOfWork


class StorefrontUnitOfWork(BaseUnitOfWork):
    """Unit of Work over the whole storefront schema.

    Provides lazy-initialized repositories for efficient resource usage.
    """

    _REPOSITORY_ATTRS: ClassVar[dict[str, str]] = {
        "categories": "_category_repo",
        "products": "_product_repo",
        "customers": "_customer_repo",
        "wallets": "_wallet_repo",
        "virtual_accounts": "_virtual_account_repo",
        "reviews": "_review_repo",
        "comments": "_comment_repo",
        "images": "_image_repo",
        "vouchers": "_voucher_repo",
        "tags": "_tag_repo",
    }

    @property
    def categories(self) -> CategoryRepository:
        """Get the Category repository.

        Raises:
            SessionNotSetError: If session is not initialized.
        """
        return self._get_repository("_category_repo", CategoryRepository)

    @property
    def products(self) -> ProductRepository:
        return self._get_repository("_product_repo", ProductRepository)

    @property
    def customers(self) -> CustomerRepository:
        return self._get_repository("_customer_repo", CustomerRepository)

    @property
    def wallets(self) -> GenericRepository:
        return self._get_repository("_wallet_repo", GenericRepository, EntityKind.WALLET)

    @property
    def virtual_accounts(self) -> GenericRepository:
        return self._get_repository("_virtual_account_repo", GenericRepository, EntityKind.VIRTUAL_ACCOUNT)

    @property
    def reviews(self) -> GenericRepository:
        return self._get_repository("_review_repo", GenericRepository, EntityKind.REVIEW)

    @property
    def comments(self) -> GenericRepository:
        return self._get_repository("_comment_repo", GenericRepository, EntityKind.COMMENT)

    @property
    def images(self) -> GenericRepository:
        return self._get_repository("_image_repo", GenericRepository, EntityKind.IMAGE)

    @property
    def vouchers(self) -> GenericRepository:
        return self._get_repository("_voucher_repo", GenericRepository, EntityKind.VOUCHER)

    @property
    def tags(self) -> GenericRepository:
        return self._get_repository("_tag_repo", GenericRepository, EntityKind.TAG)
