"""ORM schema definitions for the storefront.

Every model registers itself with ``Base.entities`` under a stable
:class:`EntityKind`. The kind value is what polymorphic relations store in
their ``*_type`` discriminator columns.

Example:
    from storefront_orm.orm.schema import Base, Category, Product

    category = Category(id="FOOD", name="Food", is_active=True)
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from storefront_orm.orm.model import Base
from storefront_orm.orm.relations import (
    belongs_to,
    belongs_to_many,
    has_many,
    has_many_through,
    has_one,
    has_one_of_many,
    has_one_through,
    morph_many,
    morph_one,
    morph_one_of_many,
    morph_to,
    morph_to_many,
    morphed_by_many,
)
from storefront_orm.orm.scopes import IsActiveScope


class EntityKind(str, Enum):
    """Stable identifiers of the storefront entity kinds."""

    CATEGORY = "category"
    PRODUCT = "product"
    CUSTOMER = "customer"
    WALLET = "wallet"
    VIRTUAL_ACCOUNT = "virtual_account"
    REVIEW = "review"
    COMMENT = "comment"
    IMAGE = "image"
    VOUCHER = "voucher"
    TAG = "tag"
    TAGGABLE = "taggable"
    LIKE = "like"


def _uuid() -> str:
    return str(uuid.uuid4())


class Category(Base):
    """Product category, hidden by the ``is_active`` scope unless active"""

    __tablename__ = "categories"
    __kind__ = EntityKind.CATEGORY
    __scopes__ = (IsActiveScope(),)

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    created_at: Mapped[datetime | None] = mapped_column(DateTime)

    products = has_many(EntityKind.PRODUCT, "category_id")
    cheapest_product = has_one_of_many(EntityKind.PRODUCT, "category_id", column="price", aggregate="min")
    most_expensive_product = has_one_of_many(EntityKind.PRODUCT, "category_id", column="price", aggregate="max")
    reviews = has_many_through(EntityKind.REVIEW, EntityKind.PRODUCT, first_key="category_id", second_key="product_id")


class Product(Base):
    """Product table"""

    __tablename__ = "products"
    __kind__ = EntityKind.PRODUCT

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    stock: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    category_id: Mapped[str | None] = mapped_column(String(100), ForeignKey("categories.id", ondelete="CASCADE"))

    category = belongs_to(EntityKind.CATEGORY, "category_id")
    image = morph_one(EntityKind.IMAGE, "imageable")
    comments = morph_many(EntityKind.COMMENT, "commentable")
    latest_comment = morph_one_of_many(EntityKind.COMMENT, "commentable", column="created_at", aggregate="max")
    oldest_comment = morph_one_of_many(EntityKind.COMMENT, "commentable", column="created_at", aggregate="min")
    tags = morph_to_many(EntityKind.TAG, EntityKind.TAGGABLE, "taggable", related_pivot_key="tag_id")
    reviews = has_many(EntityKind.REVIEW, "product_id")
    liked_by_customers = belongs_to_many(
        EntityKind.CUSTOMER, EntityKind.LIKE, foreign_pivot_key="product_id", related_pivot_key="customer_id"
    )


class Customer(Base):
    """Customer table"""

    __tablename__ = "customers"
    __kind__ = EntityKind.CUSTOMER

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    wallet = has_one(EntityKind.WALLET, "customer_id")
    virtual_account = has_one_through(
        EntityKind.VIRTUAL_ACCOUNT, EntityKind.WALLET, first_key="customer_id", second_key="wallet_id"
    )
    reviews = has_many(EntityKind.REVIEW, "customer_id")
    like_products = belongs_to_many(
        EntityKind.PRODUCT, EntityKind.LIKE, foreign_pivot_key="customer_id", related_pivot_key="product_id"
    )
    image = morph_one(EntityKind.IMAGE, "imageable")


class Wallet(Base):
    """Customer wallet, one per customer"""

    __tablename__ = "wallets"
    __kind__ = EntityKind.WALLET

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    customer = belongs_to(EntityKind.CUSTOMER, "customer_id")
    virtual_account = has_one(EntityKind.VIRTUAL_ACCOUNT, "wallet_id")


class VirtualAccount(Base):
    __tablename__ = "virtual_accounts"
    __kind__ = EntityKind.VIRTUAL_ACCOUNT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bank: Mapped[str] = mapped_column(String(100), nullable=False)
    va_number: Mapped[str] = mapped_column(String(100), nullable=False)
    wallet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    wallet = belongs_to(EntityKind.WALLET, "wallet_id")


class Review(Base):
    __tablename__ = "reviews"
    __kind__ = EntityKind.REVIEW

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String(100), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    customer_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)

    product = belongs_to(EntityKind.PRODUCT, "product_id")
    customer = belongs_to(EntityKind.CUSTOMER, "customer_id")


class Comment(Base):
    """Polymorphic comment on a product or a voucher"""

    __tablename__ = "comments"
    __kind__ = EntityKind.COMMENT
    __timestamps__ = True
    __default_attributes__ = {
        "title": "Sample Title",
        "comment": "Sample Comment",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    commentable_id: Mapped[str] = mapped_column(String(100), nullable=False)
    commentable_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)

    commentable = morph_to("commentable")


class Image(Base):
    """Polymorphic image of a product or a customer"""

    __tablename__ = "images"
    __kind__ = EntityKind.IMAGE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(255), nullable=False)
    imageable_id: Mapped[str] = mapped_column(String(100), nullable=False)
    imageable_type: Mapped[str] = mapped_column(String(100), nullable=False)

    imageable = morph_to("imageable")


class Voucher(Base):
    __tablename__ = "vouchers"
    __kind__ = EntityKind.VOUCHER
    __default_attributes__ = {
        "id": _uuid,
        "voucher_code": _uuid,
    }

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    voucher_code: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())

    comments = morph_many(EntityKind.COMMENT, "commentable")
    tags = morph_to_many(EntityKind.TAG, EntityKind.TAGGABLE, "taggable", related_pivot_key="tag_id")


class Tag(Base):
    __tablename__ = "tags"
    __kind__ = EntityKind.TAG

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    products = morphed_by_many(EntityKind.PRODUCT, EntityKind.TAGGABLE, "taggable", foreign_pivot_key="tag_id")
    vouchers = morphed_by_many(EntityKind.VOUCHER, EntityKind.TAGGABLE, "taggable", foreign_pivot_key="tag_id")


class Taggable(Base):
    """Polymorphic pivot between tags and taggable kinds"""

    __tablename__ = "taggables"
    __kind__ = EntityKind.TAGGABLE

    tag_id: Mapped[str] = mapped_column(String(100), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)
    taggable_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    taggable_type: Mapped[str] = mapped_column(String(100), primary_key=True)

    tag = belongs_to(EntityKind.TAG, "tag_id")
    taggable = morph_to("taggable")


class Like(Base):
    """Pivot model for customers liking products"""

    __tablename__ = "customers_likes_products"
    __kind__ = EntityKind.LIKE
    __timestamps__ = True

    customer_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("customers.id", ondelete="CASCADE"), primary_key=True
    )
    product_id: Mapped[str] = mapped_column(String(100), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime)

    customer = belongs_to(EntityKind.CUSTOMER, "customer_id")
    product = belongs_to(EntityKind.PRODUCT, "product_id")


__all__ = [
    "Base",
    "Category",
    "Comment",
    "Customer",
    "EntityKind",
    "Image",
    "Like",
    "Product",
    "Review",
    "Tag",
    "Taggable",
    "VirtualAccount",
    "Voucher",
    "Wallet",
]
