"""
Pydantic models for the storefront backend's coupon, wallet and order endpoints.

Field names follow the backend's camelCase JSON; amounts on the wire are in
major units (rupees). Conversion to minor units happens in the to_* helpers.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from coursepay.pricing.models import AppliedCoupon, Coupon, DiscountType, WalletSnapshot
from coursepay.utils.money import to_minor


class WireModel(BaseModel):
    """
    Base for backend payloads: accept both alias and field names, ignore unknown
    keys. NaN and Infinity are valid to httpx's JSON decoder but never a price.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)


# ============================================================================
# GET /users/{userId}/coupon
# ============================================================================

class CouponPayload(WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    code: str
    discount_type: DiscountType = Field(default=DiscountType.PERCENTAGE, alias="discountType")
    discount_value: float = Field(alias="discountValue")
    min_order_amount: float = Field(default=0, alias="minOrderAmount")
    max_discount: Optional[float] = Field(default=None, alias="maxDiscount")
    valid_from: Optional[datetime] = Field(default=None, alias="validFrom")
    valid_till: Optional[datetime] = Field(default=None, alias="validTill")

    def to_coupon(self) -> Coupon:
        return Coupon(
            code=self.code,
            discount_type=self.discount_type,
            discount_value=Decimal(str(self.discount_value)),
            min_order_amount=to_minor(self.min_order_amount),
            # a zero cap means "no cap" on the backend
            max_discount=to_minor(self.max_discount) if self.max_discount else None,
            valid_from=self.valid_from,
            valid_till=self.valid_till,
        )


class CouponListResponse(WireModel):
    success: bool = False
    message: Optional[str] = None
    # raw dicts; entries are parsed one by one so a bad coupon doesn't sink the list
    coupons: List[Dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# POST /users/{userId}/coupon
# ============================================================================

class CouponValidationRequest(WireModel):
    code: str
    order_amount: float = Field(alias="orderAmount")


class CouponValidationResponse(WireModel):
    success: bool = False
    message: Optional[str] = None
    code: Optional[str] = None
    original_amount: Optional[float] = Field(default=None, alias="originalAmount")
    discount_type: Optional[DiscountType] = Field(default=None, alias="discountType")
    discount_value: Optional[float] = Field(default=None, alias="discountValue")
    discount_amount: Optional[float] = Field(default=None, alias="discountAmount")
    discount_percentage: Optional[float] = Field(default=None, alias="discountPercentage")
    final_price: Optional[float] = Field(default=None, alias="finalPrice")

    @property
    def final_price_minor(self) -> Optional[int]:
        if self.final_price is None:
            return None
        return to_minor(self.final_price)

    def to_applied_coupon(self, fallback_code: str) -> AppliedCoupon:
        """Build the AppliedCoupon; only call after the bound check has passed."""
        return AppliedCoupon(
            code=(self.code or fallback_code).upper(),
            discount_type=self.discount_type or DiscountType.PERCENTAGE,
            discount_value=Decimal(str(self.discount_value or 0)),
            discount_amount=max(0, to_minor(self.discount_amount or 0)),
            discount_percentage=Decimal(str(self.discount_percentage or 0)),
            final_price_after_discount=self.final_price_minor,
            message=self.message or "",
        )


# ============================================================================
# GET /wallet
# ============================================================================

class WalletPayload(WireModel):
    balance: float = 0


class WalletResponse(WireModel):
    success: bool = False
    message: Optional[str] = None
    wallet: Optional[WalletPayload] = None

    def to_snapshot(self) -> WalletSnapshot:
        balance = self.wallet.balance if self.wallet else 0
        return WalletSnapshot(balance=max(0, to_minor(balance)))


# ============================================================================
# POST /payment/order
# ============================================================================

class CreateOrderRequest(WireModel):
    amount: float
    is_cart: bool = Field(alias="isCart")
    course: List[str]
    wallet_amount: Optional[float] = Field(default=None, alias="walletAmount")
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")

    def to_payload(self) -> Dict[str, Any]:
        """JSON body with optional fields left out when unset."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OrderBreakdown(WireModel):
    original_amount: float = Field(default=0, alias="originalAmount")
    discount_amount: float = Field(default=0, alias="discountAmount")
    wallet_deduction: float = Field(default=0, alias="walletDeduction")
    final_amount: float = Field(default=0, alias="finalAmount")
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")
    needs_payment: bool = Field(default=True, alias="needsPayment")


class CreateOrderResponse(WireModel):
    """Opaque order handle; the payment gateway consumes order_id."""
    success: bool = False
    message: Optional[str] = None
    order_id: Optional[str] = Field(default=None, alias="orderId")
    amount: float = 0
    currency: str = "INR"
    breakdown: Optional[OrderBreakdown] = None
