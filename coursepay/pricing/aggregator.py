"""
Pricing aggregation: coupon first, then wallet.

Wallet always reduces the post-coupon amount. Reversing the order gives a
different total whenever a percentage coupon hits its max_discount cap.
"""
from typing import Optional

from coursepay.pricing.models import AppliedCoupon, PricingState
from coursepay.pricing.wallet import apply_wallet


def aggregate(
    original_total: int,
    applied_coupon: Optional[AppliedCoupon],
    wallet_applied: bool,
    wallet_balance: int,
) -> PricingState:
    """
    Build the PricingState for the current coupon and wallet choice.

    Args:
        original_total: Cart total in minor units
        applied_coupon: Coupon accepted by the backend, if any
        wallet_applied: Whether the wallet toggle is on
        wallet_balance: Wallet snapshot balance in minor units

    Returns:
        PricingState with discount, wallet and final amounts filled in
    """
    if applied_coupon is not None:
        after_coupon = applied_coupon.final_price_after_discount
    else:
        after_coupon = original_total
    # a coupon may only lower the price, and never below zero
    after_coupon = min(max(after_coupon, 0), original_total)

    wallet_amount, remaining = apply_wallet(after_coupon, wallet_balance, wallet_applied)

    return PricingState(
        original_total=original_total,
        applied_coupon=applied_coupon,
        wallet_applied=wallet_applied,
        wallet_balance=wallet_balance,
        discount_amount=original_total - after_coupon,
        wallet_amount=wallet_amount,
        final_amount=remaining,
        total_savings=original_total - remaining,
    )
