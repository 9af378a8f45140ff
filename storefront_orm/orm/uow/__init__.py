"""Unit of Work (UoW) pattern implementations for Storefront-ORM.

Provides transaction management and repository coordination:
- BaseUnitOfWork: Base class with common patterns
- StorefrontUnitOfWork: One repository per storefront entity kind
"""

from storefront_orm.orm.uow.base import BaseUnitOfWork
from storefront_orm.orm.uow.storefront_uow import StorefrontUnitOfWork

__all__ = [
    "BaseUnitOfWork",
    "StorefrontUnitOfWork",
]
