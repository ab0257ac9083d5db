"""
Coupon catalog fetching.

Loads the coupons the backend offers this user and keeps the ones the current
cart total qualifies for.
"""
from typing import List, Optional

from pydantic import ValidationError

from coursepay.api.client import BackendClient
from coursepay.api.schemas import CouponPayload
from coursepay.core.errors import CatalogUnavailable, NetworkError
from coursepay.pricing.models import Coupon
from coursepay.pricing.selector import filter_eligible
from coursepay.utils.logger import get_logger

logger = get_logger("coupons.catalog")


class CouponCatalogFetcher:
    """Fetches eligible coupons, once per distinct order total."""

    def __init__(self, client: BackendClient, user_id: str):
        self.client = client
        self.user_id = user_id
        self._last_total: Optional[int] = None
        self._last_result: List[Coupon] = []

    async def fetch_eligible(self, original_total: int) -> List[Coupon]:
        """
        Return coupons usable for original_total (minor units).

        Raises:
            CatalogUnavailable: transport failure or the backend reported failure
        """
        if self._last_total == original_total:
            return list(self._last_result)

        try:
            response = await self.client.get_coupons(self.user_id)
        except NetworkError as e:
            raise CatalogUnavailable(f"Failed to load available coupons: {e.message}") from e
        if not response.success:
            raise CatalogUnavailable(response.message or "Failed to load available coupons")

        coupons = []
        for raw in response.coupons:
            try:
                coupons.append(CouponPayload.model_validate(raw).to_coupon())
            except (ValidationError, ValueError, ArithmeticError) as e:
                logger.warning(f"Skipping malformed coupon {raw.get('code')!r}: {e}")

        eligible = filter_eligible(coupons, original_total)
        logger.info(
            f"Coupon catalog for user {self.user_id}: {len(coupons)} offered, "
            f"{len(eligible)} eligible at total={original_total}"
        )
        self._last_total = original_total
        self._last_result = eligible
        return list(eligible)

    def invalidate(self) -> None:
        """Forget the cached result so the next call hits the backend."""
        self._last_total = None
        self._last_result = []
