from coursepay.coupons.catalog import CouponCatalogFetcher
from coursepay.coupons.validator import (
    NO_COUPON,
    CouponValidator,
    ValidationSource,
    ValidatorStatus,
    normalize_code,
)

__all__ = [
    'CouponCatalogFetcher',
    'CouponValidator',
    'NO_COUPON',
    'ValidationSource',
    'ValidatorStatus',
    'normalize_code',
]
