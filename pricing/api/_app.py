"""
HTTP surface — FastAPI app over the pricing services.

    POST /pricing/line          best offer for one cart line
    POST /coupons/validate      404 unknown code, 400 other rejections
    GET  /coupons/available     coupons an order amount qualifies for
    POST /checkout/totals       full breakdown (coupon refusal is not an HTTP error)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated

import fastapi
from fastapi import Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kungfu import Ok, Error
from sqlalchemy.ext.asyncio import AsyncEngine

from pricing._log import get_logger
from pricing.api._schemas import (
    AppliedCouponOut,
    CheckoutTotalsIn,
    CheckoutTotalsOut,
    CouponValidateIn,
    CouponValidateOut,
    ErrorOut,
    LinePricingIn,
    LinePricingOut,
)
from pricing.calculator import DEFAULT_RULES
from pricing.catalog import OfferCatalog
from pricing.checkout import BreakdownNode
from pricing.config import PricingRules, Settings
from pricing.coupons import CouponValidator
from pricing.domain import CouponNotFound, InvalidCartLine
from pricing.resolver import compute_line_pricing
from pricing.store import SqlCouponSource, SqlOfferSource, create_database

logger = get_logger("api")


@dataclass(frozen=True, slots=True)
class PricingServices:
    catalog: OfferCatalog
    validator: CouponValidator
    rules: PricingRules = DEFAULT_RULES


async def build_services(settings: Settings) -> tuple[PricingServices, AsyncEngine]:
    """SQL-backed services; dispose the engine on shutdown."""
    session_factory, engine = await create_database(settings.database_url)
    services = PricingServices(
        catalog=OfferCatalog(
            SqlOfferSource(session_factory),
            cache_ttl=settings.offer_cache_ttl,
            cache_size=settings.offer_cache_size,
        ),
        validator=CouponValidator(SqlCouponSource(session_factory)),
        rules=settings.rules,
    )
    return services, engine


def get_services(request: Request) -> PricingServices:
    return request.app.state.services


Services = Annotated[PricingServices, Depends(get_services)]


def _error(status: int, body: ErrorOut) -> JSONResponse:
    return JSONResponse(status_code=status, content=body.model_dump())


# ═══════════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════════


def add_routes(app: fastapi.FastAPI) -> None:
    @app.post("/pricing/line", response_model=LinePricingOut)
    async def price_line(req: LinePricingIn, services: Services) -> LinePricingOut:
        line = req.to_domain()
        offers = await services.catalog.snapshot([line])
        return LinePricingOut.from_domain(compute_line_pricing(line, offers))

    @app.post("/coupons/validate", response_model=CouponValidateOut)
    async def validate_coupon(req: CouponValidateIn, services: Services) -> object:
        result = await services.validator.validate(req.code, req.order_amount)
        body = CouponValidateOut.from_domain(result)
        match result:
            case Ok(_):
                return body
            case Error(CouponNotFound()):
                return JSONResponse(status_code=404, content=body.model_dump())
            case Error(_):
                return JSONResponse(status_code=400, content=body.model_dump())

    @app.get("/coupons/available", response_model=list[AppliedCouponOut])
    async def available_coupons(
        services: Services,
        order_amount: Annotated[Decimal, Query(ge=0)],
    ) -> list[AppliedCouponOut]:
        eligible = await services.validator.available(order_amount)
        return [AppliedCouponOut.from_domain(a) for a in eligible]

    @app.post("/checkout/totals", response_model=CheckoutTotalsOut)
    async def checkout_totals(req: CheckoutTotalsIn, services: Services) -> object:
        result = await BreakdownNode.execute(
            req.to_domain(), services.catalog, services.validator, services.rules
        )
        match result:
            case Ok(quote):
                return CheckoutTotalsOut.from_domain(quote)
            case Error(e):
                return _error(503, ErrorOut.from_domain(e))


def add_error_handlers(app: fastapi.FastAPI) -> None:
    @app.exception_handler(InvalidCartLine)
    async def invalid_cart_line(request: Request, exc: InvalidCartLine) -> JSONResponse:
        logger.info("rejected cart line %s: %s", exc.product_id, exc.reason)
        return _error(422, ErrorOut(code=exc.code, message=exc.message))

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = tuple(first.get("loc", ()))
        code = "INVALID_CART_LINE" if {"line", "lines"} & set(loc) else "INVALID_REQUEST"
        where = ".".join(str(p) for p in loc)
        return _error(422, ErrorOut(code=code, message=f"{where}: {first.get('msg', 'invalid')}"))


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(services: PricingServices) -> fastapi.FastAPI:
    app = fastapi.FastAPI(title="pricing")
    app.state.services = services
    add_routes(app)
    add_error_handlers(app)
    return app


def create_app_from_env() -> fastapi.FastAPI:
    """App wired from Settings.from_env(); the database opens on startup."""
    settings = Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        services, engine = await build_services(settings)
        app.state.services = services
        logger.info("pricing service started on %s", settings.database_url)
        try:
            yield
        finally:
            await engine.dispose()

    app = fastapi.FastAPI(title="pricing", lifespan=lifespan)
    add_routes(app)
    add_error_handlers(app)
    return app


__all__ = (
    "PricingServices",
    "build_services",
    "get_services",
    "add_routes",
    "add_error_handlers",
    "create_app",
    "create_app_from_env",
)
