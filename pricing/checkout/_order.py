"""
Order — freezing a quote into an order and paying for it.

    reserve coupon use ──(compensate: release)──▶ capture payment

If payment fails the coupon use is released. The OrderRecord is built
before the saga starts and never changes afterwards, whatever happens to
offers or coupons later.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Protocol

import combinators as C
from kungfu import LazyCoroResult, Ok, Error, Result

from pricing import saga as S
from pricing._log import get_logger
from pricing.coupons import CouponLedger, UsageReservation
from pricing.domain import CartLine, CheckoutError, PricingBreakdown

logger = get_logger("orders")


class CheckoutState(StrEnum):
    IDLE = "idle"
    PRICING_COMPUTED = "pricing_computed"
    COUPON_APPLIED = "coupon_applied"
    COUPON_REJECTED = "coupon_rejected"
    ORDER_SUBMITTED = "order_submitted"
    ORDER_CONFIRMED = "order_confirmed"
    PAYMENT_FAILED = "payment_failed"


# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderRecord:
    order_id: str
    lines: tuple[CartLine, ...]
    breakdown: PricingBreakdown
    submitted_at: datetime

    @property
    def coupon_code(self) -> str | None:
        return self.breakdown.coupon_code

    @property
    def amount_due(self) -> Decimal:
        return self.breakdown.grand_total


@dataclass(frozen=True, slots=True)
class PaymentReceipt:
    payment_id: str
    order_id: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class OrderConfirmation:
    order: OrderRecord
    payment: PaymentReceipt
    coupon_reservation: UsageReservation | None


class PaymentGateway(Protocol):
    async def capture(self, order_id: str, amount: Decimal) -> PaymentReceipt:
        """Charge the amount. Raises when the charge is declined or fails."""
        ...


def new_order_id(now: datetime) -> str:
    return f"ORD-{int(now.timestamp() * 1000)}-{secrets.token_hex(3).upper()}"


def as_checkout_error(e: Exception, fallback: str) -> CheckoutError:
    """Keep domain error codes (e.g. COUPON_USAGE_EXCEEDED) when they exist."""
    if isinstance(e, CheckoutError):
        return e
    code = getattr(e, "code", None)
    message = getattr(e, "message", None) or str(e)
    return CheckoutError(code if isinstance(code, str) else fallback, message)


# ═══════════════════════════════════════════════════════════════════════════════
# Submission saga
# ═══════════════════════════════════════════════════════════════════════════════


def _reserve_step(
    order: OrderRecord, ledger: CouponLedger | None
) -> S.SagaStep[UsageReservation | None, CheckoutError]:
    code = order.coupon_code
    if code is None or ledger is None:
        async def nothing() -> Result[UsageReservation | None, CheckoutError]:
            return Ok(None)

        return S.step(LazyCoroResult(nothing))

    async def release(reservation: UsageReservation | None) -> None:
        if reservation is not None:
            await ledger.release_usage(reservation)

    return S.from_async(
        lambda: ledger.reserve_usage(code),
        on_error=lambda e: as_checkout_error(e, "COUPON_RESERVATION_FAILED"),
        compensate=release,
    )


def _capture_step(
    order: OrderRecord,
    gateway: PaymentGateway,
    reservation: UsageReservation | None,
) -> S.SagaStep[OrderConfirmation, CheckoutError]:
    return S.step(
        C.catching_async(
            lambda: gateway.capture(order.order_id, order.amount_due),
            on_error=lambda e: as_checkout_error(e, "PAYMENT_FAILED"),
        ).map(lambda receipt: OrderConfirmation(order, receipt, reservation))
    )


async def submit_order(
    order: OrderRecord,
    gateway: PaymentGateway,
    ledger: CouponLedger | None = None,
) -> Result[OrderConfirmation, S.SagaError[CheckoutError]]:
    submission = _reserve_step(order, ledger).then(
        lambda reservation: _capture_step(order, gateway, reservation)
    )
    match await S.run_chain(submission):
        case Ok(done):
            logger.info(
                "order %s confirmed, charged %s", order.order_id, done.value.payment.amount
            )
            return Ok(done.value)
        case Error(failed):
            logger.warning(
                "order %s failed at step %d: %s (rollback complete: %s)",
                order.order_id, failed.step_failed, failed.error.code, failed.rollback_complete,
            )
            return Error(failed)


__all__ = (
    "CheckoutState",
    "OrderRecord",
    "PaymentReceipt",
    "OrderConfirmation",
    "PaymentGateway",
    "new_order_id",
    "as_checkout_error",
    "submit_order",
)
