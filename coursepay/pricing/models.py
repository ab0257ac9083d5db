"""
Value types for checkout pricing.

Every amount is an int in minor units (paise). Models are frozen: a new
PricingState is built on each coupon or wallet event instead of mutating the
old one.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coursepay.utils.money import format_price

COUPON_CODE_PATTERN = r"^[A-Z0-9]{3,20}$"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class Coupon(BaseModel):
    """A discount rule offered to the user."""
    model_config = ConfigDict(frozen=True)

    code: str = Field(pattern=COUPON_CODE_PATTERN)
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0, description="Percent (0-100) or flat amount in major units")
    min_order_amount: int = Field(default=0, ge=0, description="Minor units")
    max_discount: Optional[int] = Field(default=None, ge=0, description="Cap in minor units, percentage only")
    valid_from: Optional[datetime] = None
    valid_till: Optional[datetime] = None

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _check_percentage(self) -> "Coupon":
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError(f"percentage coupon {self.code} has discount_value > 100")
        return self

    def is_eligible(self, order_total: int) -> bool:
        """Client-side eligibility: only the minimum order amount is checked here."""
        return order_total >= self.min_order_amount


class AppliedCoupon(BaseModel):
    """A coupon the backend accepted and priced for this order."""
    model_config = ConfigDict(frozen=True)

    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    discount_amount: int = Field(ge=0)
    discount_percentage: Decimal = Field(default=Decimal(0), ge=0)
    final_price_after_discount: int = Field(ge=0)
    message: str = ""


class WalletSnapshot(BaseModel):
    """Read-only wallet balance captured once per checkout session."""
    model_config = ConfigDict(frozen=True)

    balance: int = Field(default=0, ge=0)


class PricingState(BaseModel):
    """
    Amounts for the active checkout.

    final_amount is what gets charged. Construction enforces
    0 <= final_amount <= original_total and that discount, wallet and final
    amount add back up to the original total.
    """
    model_config = ConfigDict(frozen=True)

    original_total: int = Field(ge=0)
    applied_coupon: Optional[AppliedCoupon] = None
    wallet_applied: bool = False
    wallet_balance: int = Field(default=0, ge=0)
    discount_amount: int = Field(default=0, ge=0)
    wallet_amount: int = Field(default=0, ge=0)
    final_amount: int = Field(ge=0)
    total_savings: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_invariants(self) -> "PricingState":
        if self.final_amount > self.original_total:
            raise ValueError("final_amount cannot exceed original_total")
        if self.wallet_amount > self.wallet_balance:
            raise ValueError("wallet_amount cannot exceed wallet_balance")
        if self.discount_amount + self.wallet_amount + self.final_amount != self.original_total:
            raise ValueError("discount + wallet + final must equal original_total")
        if self.total_savings != self.original_total - self.final_amount:
            raise ValueError("total_savings must equal original_total - final_amount")
        return self

    @classmethod
    def initial(cls, original_total: int, wallet_balance: int = 0) -> "PricingState":
        """State of a freshly opened checkout: no coupon, wallet off."""
        return cls(
            original_total=original_total,
            wallet_balance=wallet_balance,
            final_amount=original_total,
        )

    @property
    def coupon_code(self) -> Optional[str]:
        return self.applied_coupon.code if self.applied_coupon else None

    @property
    def needs_payment(self) -> bool:
        return self.final_amount > 0

    def to_display(self, symbol: str = "₹") -> Dict[str, str]:
        """Formatted amounts for the presentation layer."""
        return {
            "original_total": format_price(self.original_total, symbol),
            "discount_amount": format_price(self.discount_amount, symbol),
            "wallet_amount": format_price(self.wallet_amount, symbol),
            "final_amount": format_price(self.final_amount, symbol),
            "total_savings": format_price(self.total_savings, symbol),
        }
