"""
Tables — SQLAlchemy models for offers, coupons and coupon usage.

Datetimes are stored as naive UTC; money as NUMERIC(12, 2).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pricing._types import ZERO, as_utc
from pricing.domain import CategoryOffer, Coupon, DiscountType, ProductOffer


def to_db_time(moment: datetime) -> datetime:
    return as_utc(moment).astimezone(timezone.utc).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


class ProductOfferTable(Base):
    __tablename__ = "product_offers"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_domain(self) -> ProductOffer:
        return ProductOffer(
            id=self.id,
            product_id=self.product_id,
            discount_type=DiscountType(self.discount_type),
            discount_value=Decimal(self.discount_value),
            start_date=as_utc(self.start_date),
            end_date=as_utc(self.end_date),
            is_active=self.is_active,
            name=self.name,
        )

    @classmethod
    def from_domain(cls, offer: ProductOffer) -> ProductOfferTable:
        return cls(
            id=offer.id,
            product_id=offer.product_id,
            name=offer.name,
            discount_type=offer.discount_type.value,
            discount_value=offer.discount_value,
            start_date=to_db_time(offer.start_date),
            end_date=to_db_time(offer.end_date),
            is_active=offer.is_active,
        )


class CategoryOfferTable(Base):
    __tablename__ = "category_offers"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    category_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_domain(self) -> CategoryOffer:
        return CategoryOffer(
            id=self.id,
            category_id=self.category_id,
            discount_type=DiscountType(self.discount_type),
            discount_value=Decimal(self.discount_value),
            start_date=as_utc(self.start_date),
            end_date=as_utc(self.end_date),
            is_active=self.is_active,
            name=self.name,
        )

    @classmethod
    def from_domain(cls, offer: CategoryOffer) -> CategoryOfferTable:
        return cls(
            id=offer.id,
            category_id=offer.category_id,
            name=offer.name,
            discount_type=offer.discount_type.value,
            discount_value=offer.discount_value,
            start_date=to_db_time(offer.start_date),
            end_date=to_db_time(offer.end_date),
            is_active=offer.is_active,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


class CouponTable(Base):
    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(50), primary_key=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_purchase: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_domain(self) -> Coupon:
        return Coupon(
            code=self.code,
            description=self.description,
            discount_type=DiscountType(self.discount_type),
            discount_value=Decimal(self.discount_value),
            start_date=as_utc(self.start_date),
            end_date=as_utc(self.end_date),
            min_purchase=Decimal(self.min_purchase),
            max_discount=Decimal(self.max_discount) if self.max_discount is not None else None,
            usage_limit=self.usage_limit,
            used_count=self.used_count,
            is_active=self.is_active,
        )

    @classmethod
    def from_domain(cls, coupon: Coupon) -> CouponTable:
        return cls(
            code=coupon.code,
            description=coupon.description,
            discount_type=coupon.discount_type.value,
            discount_value=coupon.discount_value,
            min_purchase=coupon.min_purchase,
            max_discount=coupon.max_discount,
            start_date=to_db_time(coupon.start_date),
            end_date=to_db_time(coupon.end_date),
            usage_limit=coupon.usage_limit,
            used_count=coupon.used_count,
            is_active=coupon.is_active,
        )


class CouponUsageTable(Base):
    """One row per reserved use; deleting it is what makes release idempotent."""

    __tablename__ = "coupon_usages"

    reservation_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    reserved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


__all__ = (
    "Base",
    "ProductOfferTable",
    "CategoryOfferTable",
    "CouponTable",
    "CouponUsageTable",
    "to_db_time",
    "create_database",
)
