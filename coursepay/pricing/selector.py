"""
Best-coupon selection.

Pure functions over Coupon lists; nothing here touches the network.
"""
from typing import Iterable, List, Optional

from coursepay.pricing.models import Coupon, DiscountType
from coursepay.utils.money import percent_of, to_minor


def candidate_discount(coupon: Coupon, original_total: int) -> int:
    """
    Discount (minor units) a coupon would give on an order.

    Percentage discounts round down to the minor unit and are capped by
    max_discount when one is set. Flat discounts are the face value.
    """
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = percent_of(original_total, coupon.discount_value)
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
        return discount
    return to_minor(coupon.discount_value)


def filter_eligible(coupons: Iterable[Coupon], original_total: int) -> List[Coupon]:
    """Keep coupons whose minimum order amount the total reaches, preserving order."""
    return [c for c in coupons if c.is_eligible(original_total)]


def select_best(coupons: Iterable[Coupon], original_total: int) -> Optional[Coupon]:
    """
    Pick the coupon with the largest discount.

    Ties go to the coupon that appears first. Returns None when no coupon
    gives a positive discount.
    """
    best: Optional[Coupon] = None
    best_discount = 0
    for coupon in coupons:
        discount = candidate_discount(coupon, original_total)
        if discount > best_discount:
            best = coupon
            best_discount = discount
    return best
