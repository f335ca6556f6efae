"""
Checkout — async pricing pipeline, session state machine and order submission.

    Graph (nodnod):
        CheckoutInputNode → OfferSnapshotNode → LinesNode → CouponNode → BreakdownNode

    quote = await BreakdownNode.execute(CheckoutRequest(lines, "SAVE10"), catalog, validator)

    session = CheckoutSession(catalog, validator, ledger=coupon_book)
    await session.set_cart(lines)
    await session.apply_coupon("SAVE10")
    confirmation = await session.submit(gateway)
"""

from pricing.checkout._input import CheckoutRequest, CheckoutInputNode
from pricing.checkout._offers import OfferSnapshotNode
from pricing.checkout._lines import LinesNode
from pricing.checkout._coupon import CouponNode
from pricing.checkout._totals import BreakdownNode
from pricing.checkout._order import (
    CheckoutState,
    OrderRecord,
    PaymentReceipt,
    OrderConfirmation,
    PaymentGateway,
    new_order_id,
    as_checkout_error,
    submit_order,
)
from pricing.checkout._session import cart_signature, CheckoutSession

__all__ = (
    "CheckoutRequest",
    "CheckoutInputNode",
    "OfferSnapshotNode",
    "LinesNode",
    "CouponNode",
    "BreakdownNode",
    "CheckoutState",
    "OrderRecord",
    "PaymentReceipt",
    "OrderConfirmation",
    "PaymentGateway",
    "new_order_id",
    "as_checkout_error",
    "submit_order",
    "cart_signature",
    "CheckoutSession",
)
