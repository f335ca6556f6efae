"""
SQL sources — OfferSource, CouponSource and CouponLedger over SQLAlchemy.
"""

from __future__ import annotations

import uuid
from typing import Any, cast

from sqlalchemy import CursorResult, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricing._types import utc_now
from pricing.coupons import UsageReservation, remaining_from_counts
from pricing.domain import (
    CategoryOffer,
    Coupon,
    CouponNotFound,
    CouponUsageExceeded,
    ProductOffer,
    normalize_code,
)
from pricing.store._tables import (
    CategoryOfferTable,
    CouponTable,
    CouponUsageTable,
    ProductOfferTable,
    to_db_time,
)


class SqlOfferSource:
    """Reads offer records; failures propagate to the catalog, which degrades them."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def product_offers(self, product_id: str) -> list[ProductOffer]:
        async with self._session_factory() as session:
            stmt = select(ProductOfferTable).where(ProductOfferTable.product_id == product_id)
            rows = (await session.execute(stmt)).scalars().all()
            return [row.to_domain() for row in rows]

    async def category_offers(self, category_id: str) -> list[CategoryOffer]:
        async with self._session_factory() as session:
            stmt = select(CategoryOfferTable).where(CategoryOfferTable.category_id == category_id)
            rows = (await session.execute(stmt)).scalars().all()
            return [row.to_domain() for row in rows]


class SqlCouponSource:
    """
    Coupons and their usage counters.

    reserve_usage is a single conditional UPDATE, so two orders racing for
    the last use cannot both get it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def coupon_by_code(self, code: str) -> Coupon | None:
        async with self._session_factory() as session:
            row = await session.get(CouponTable, normalize_code(code))
            return row.to_domain() if row is not None else None

    async def remaining_uses(self, coupon: Coupon) -> int | None:
        current = await self.coupon_by_code(coupon.code)
        return remaining_from_counts(current or coupon)

    async def list_coupons(self) -> list[Coupon]:
        async with self._session_factory() as session:
            rows = (await session.execute(select(CouponTable).order_by(CouponTable.code))).scalars().all()
            return [row.to_domain() for row in rows]

    async def reserve_usage(self, code: str) -> UsageReservation:
        key = normalize_code(code)
        reservation = UsageReservation(key, f"CPN-{uuid.uuid4().hex[:12].upper()}")

        async with self._session_factory() as session:
            stmt = (
                update(CouponTable)
                .where(CouponTable.code == key)
                .where(
                    or_(
                        CouponTable.usage_limit.is_(None),
                        CouponTable.usage_limit == 0,
                        CouponTable.used_count < CouponTable.usage_limit,
                    )
                )
                .values(used_count=CouponTable.used_count + 1)
            )
            cursor = cast(CursorResult[Any], await session.execute(stmt))
            reserved = cursor.rowcount > 0
            if reserved:
                session.add(
                    CouponUsageTable(
                        reservation_id=reservation.reservation_id,
                        code=key,
                        reserved_at=to_db_time(utc_now()),
                    )
                )
                await session.commit()
                return reservation
            row = await session.get(CouponTable, key)
            exists = row is not None
            usage_limit = (row.usage_limit or 0) if row is not None else 0

        if not exists:
            raise CouponNotFound(key)
        raise CouponUsageExceeded(key, usage_limit)

    async def release_usage(self, reservation: UsageReservation) -> None:
        async with self._session_factory() as session:
            stmt = delete(CouponUsageTable).where(
                CouponUsageTable.reservation_id == reservation.reservation_id
            )
            cursor = cast(CursorResult[Any], await session.execute(stmt))
            if cursor.rowcount > 0:
                await session.execute(
                    update(CouponTable)
                    .where(CouponTable.code == reservation.code)
                    .where(CouponTable.used_count > 0)
                    .values(used_count=CouponTable.used_count - 1)
                )
            await session.commit()


__all__ = ("SqlOfferSource", "SqlCouponSource")
