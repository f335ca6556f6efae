"""
Coupon sources — where coupons and their usage counts live.

The admin side owns coupons; pricing reads them through CouponSource and
only touches usage through CouponLedger when an order is submitted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Protocol

from pricing.domain import Coupon, CouponNotFound, CouponUsageExceeded, normalize_code


class CouponSource(Protocol):
    """Read side used by the validator."""

    async def coupon_by_code(self, code: str) -> Coupon | None:
        """Coupon with this (normalised) code, or None."""
        ...

    async def remaining_uses(self, coupon: Coupon) -> int | None:
        """Uses left, or None when the coupon is unlimited."""
        ...

    async def list_coupons(self) -> list[Coupon]:
        ...


class CouponLedger(Protocol):
    """Write side used when an order is submitted."""

    async def reserve_usage(self, code: str) -> UsageReservation:
        ...

    async def release_usage(self, reservation: UsageReservation) -> None:
        ...


@dataclass(frozen=True, slots=True)
class UsageReservation:
    """One consumed coupon use; handed back to release_usage on rollback."""

    code: str
    reservation_id: str


def remaining_from_counts(coupon: Coupon) -> int | None:
    if not coupon.has_usage_limit:
        return None
    return max(0, (coupon.usage_limit or 0) - coupon.used_count)


# ═══════════════════════════════════════════════════════════════════════════════
# In-memory book (tests, demos, single-process deployments)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class InMemoryCouponBook:
    _coupons: dict[str, Coupon] = field(default_factory=dict[str, Coupon])
    _reservations: dict[str, UsageReservation] = field(
        default_factory=dict[str, UsageReservation]
    )
    _counter: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def put(self, coupon: Coupon) -> None:
        self._coupons[normalize_code(coupon.code)] = coupon

    def remove(self, code: str) -> None:
        self._coupons.pop(normalize_code(code), None)

    async def coupon_by_code(self, code: str) -> Coupon | None:
        return self._coupons.get(normalize_code(code))

    async def remaining_uses(self, coupon: Coupon) -> int | None:
        current = self._coupons.get(normalize_code(coupon.code), coupon)
        return remaining_from_counts(current)

    async def list_coupons(self) -> list[Coupon]:
        return list(self._coupons.values())

    async def reserve_usage(self, code: str) -> UsageReservation:
        async with self._lock:
            key = normalize_code(code)
            coupon = self._coupons.get(key)
            if coupon is None:
                raise CouponNotFound(key)
            remaining = remaining_from_counts(coupon)
            if remaining is not None and remaining <= 0:
                raise CouponUsageExceeded(key, coupon.usage_limit or 0)

            self._coupons[key] = replace(coupon, used_count=coupon.used_count + 1)
            self._counter += 1
            reservation = UsageReservation(key, f"CPN-{self._counter:04d}")
            self._reservations[reservation.reservation_id] = reservation
            return reservation

    async def release_usage(self, reservation: UsageReservation) -> None:
        async with self._lock:
            if self._reservations.pop(reservation.reservation_id, None) is None:
                return
            coupon = self._coupons.get(reservation.code)
            if coupon is not None:
                self._coupons[reservation.code] = replace(
                    coupon, used_count=max(0, coupon.used_count - 1)
                )


__all__ = (
    "CouponSource",
    "CouponLedger",
    "UsageReservation",
    "remaining_from_counts",
    "InMemoryCouponBook",
)
