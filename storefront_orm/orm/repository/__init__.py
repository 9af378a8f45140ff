"""Repository module for Storefront-ORM.

This module provides repository classes for data access layer operations.
"""

from storefront_orm.orm.repository.base import (
    GenericRepository,
    UnitOfWork,
    create_repository,
    repository_context,
)
from storefront_orm.orm.repository.category import CategoryRepository
from storefront_orm.orm.repository.customer import CustomerRepository
from storefront_orm.orm.repository.product import ProductRepository

__all__ = [
    "CategoryRepository",
    "CustomerRepository",
    "GenericRepository",
    "ProductRepository",
    "UnitOfWork",
    "create_repository",
    "repository_context",
]
