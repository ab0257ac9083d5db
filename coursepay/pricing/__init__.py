from coursepay.pricing.models import (
    AppliedCoupon,
    Coupon,
    DiscountType,
    PricingState,
    WalletSnapshot,
)
from coursepay.pricing.selector import candidate_discount, filter_eligible, select_best
from coursepay.pricing.wallet import WalletResult, apply_wallet
from coursepay.pricing.aggregator import aggregate

__all__ = [
    'AppliedCoupon',
    'Coupon',
    'DiscountType',
    'PricingState',
    'WalletSnapshot',
    'candidate_discount',
    'filter_eligible',
    'select_best',
    'WalletResult',
    'apply_wallet',
    'aggregate',
]
