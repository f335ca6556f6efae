"""
Input — the cart snapshot a checkout computation starts from.
"""

from dataclasses import dataclass

from pricing import graph as G
from pricing.domain import CartLine, normalize_code


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """Immutable cart snapshot plus the coupon code entered, if any."""

    lines: tuple[CartLine, ...]
    coupon_code: str | None = None


@G.node
class CheckoutInputNode:
    """Entry point: normalises the coupon code; blank means none."""

    def __init__(self, lines: tuple[CartLine, ...], coupon_code: str | None) -> None:
        self.lines = lines
        self.coupon_code = coupon_code

    @classmethod
    async def __compose__(cls, request: CheckoutRequest) -> "CheckoutInputNode":
        code = normalize_code(request.coupon_code) if request.coupon_code else ""
        return cls(tuple(request.lines), code or None)


__all__ = ("CheckoutRequest", "CheckoutInputNode")
