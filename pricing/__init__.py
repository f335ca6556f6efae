"""
pricing — storefront discount and checkout pricing.

    from pricing import resolver     # best offer per cart line
    from pricing import coupons      # coupon eligibility
    from pricing import calculator   # pure checkout breakdown
    from pricing import catalog      # active offers, cached
    from pricing import checkout     # async pipeline, session, order saga
"""

from pricing import resolver
from pricing import coupons
from pricing import calculator
from pricing import catalog
from pricing import checkout
from pricing._types import Amount, money
from pricing.config import PricingRules, Settings
from pricing.domain import CartLine, PricingBreakdown

__version__ = "0.1.0"

__all__ = (
    "resolver",
    "coupons",
    "calculator",
    "catalog",
    "checkout",
    "Amount",
    "money",
    "PricingRules",
    "Settings",
    "CartLine",
    "PricingBreakdown",
)
