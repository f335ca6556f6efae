"""
Configuration — fixed business rules and runtime settings.

Values come from the environment (a .env file is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal

from dotenv import load_dotenv

from pricing._types import Amount, money


@dataclass(frozen=True, slots=True)
class PricingRules:
    """Flat tax and shipping rules applied to every checkout."""

    tax_rate: Decimal = Decimal("0.18")
    free_shipping_threshold: Decimal = Decimal("1000")  # strictly above → free
    shipping_fee: Decimal = Decimal("100")

    @classmethod
    def of(
        cls,
        tax_rate: Amount = "0.18",
        free_shipping_threshold: Amount = 1000,
        shipping_fee: Amount = 100,
    ) -> PricingRules:
        return cls(money(tax_rate), money(free_shipping_threshold), money(shipping_fee))


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings for the service wiring."""

    rules: PricingRules = field(default_factory=PricingRules)
    offer_cache_ttl: float = 30.0  # seconds
    offer_cache_size: int = 1000
    database_url: str = "sqlite+aiosqlite:///:memory:"

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> Settings:
        """Read PRICING_* variables; values already in the environment win over env_file."""
        if env_file is not None:
            load_dotenv(env_file)
        rules = PricingRules.of(
            tax_rate=os.getenv("PRICING_TAX_RATE", "0.18"),
            free_shipping_threshold=os.getenv("PRICING_FREE_SHIPPING_THRESHOLD", "1000"),
            shipping_fee=os.getenv("PRICING_SHIPPING_FEE", "100"),
        )
        return cls(
            rules=rules,
            offer_cache_ttl=float(os.getenv("PRICING_OFFER_CACHE_TTL", "30")),
            offer_cache_size=int(os.getenv("PRICING_OFFER_CACHE_SIZE", "1000")),
            database_url=os.getenv("PRICING_DATABASE_URL", "sqlite+aiosqlite:///:memory:"),
        )


__all__ = ("PricingRules", "Settings")
