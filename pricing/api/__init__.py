"""
API — FastAPI routes for pricing, coupons and checkout totals.

    app = create_app(PricingServices(catalog, validator))

or, for a server wired from the environment:

    uvicorn --factory pricing.api:create_app_from_env
"""

from pricing.api._schemas import (
    CartLineIn,
    LinePricingIn,
    CouponValidateIn,
    CheckoutTotalsIn,
    ErrorOut,
    AppliedOfferOut,
    LinePricingOut,
    AppliedCouponOut,
    CouponValidateOut,
    CheckoutTotalsOut,
)
from pricing.api._app import (
    PricingServices,
    build_services,
    get_services,
    create_app,
    create_app_from_env,
)

__all__ = (
    "CartLineIn",
    "LinePricingIn",
    "CouponValidateIn",
    "CheckoutTotalsIn",
    "ErrorOut",
    "AppliedOfferOut",
    "LinePricingOut",
    "AppliedCouponOut",
    "CouponValidateOut",
    "CheckoutTotalsOut",
    "PricingServices",
    "build_services",
    "get_services",
    "create_app",
    "create_app_from_env",
)
