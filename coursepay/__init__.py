"""
coursepay - checkout pricing engine for the course storefront

Given a cart total, the user's coupons and wallet balance it:
- picks and auto-applies the best eligible coupon once per checkout
- validates typed or selected coupon codes against the backend
- applies the wallet after the coupon and derives the payable amount
"""

from coursepay.core.config import CheckoutConfig, get_config, set_config
from coursepay.core.session import AutoApplyState, CheckoutSession
from coursepay.pricing.models import AppliedCoupon, Coupon, DiscountType, PricingState

__all__ = [
    'CheckoutConfig',
    'get_config',
    'set_config',
    'AutoApplyState',
    'CheckoutSession',
    'AppliedCoupon',
    'Coupon',
    'DiscountType',
    'PricingState',
]

__version__ = '0.1.0'
