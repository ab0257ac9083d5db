"""
Checkout session.

Owns the pricing state for one open checkout (cart sheet or single-course
purchase) and wires the pieces together:

    cart total -> coupon catalog -> best coupon (auto-applied once)
               -> coupon validator (manual overrides) -> wallet toggle
               -> aggregate() -> PricingState -> create order

The session is passed down explicitly to whatever renders the checkout; no
module-level state is shared between sessions.
"""
from enum import Enum
from typing import List, Optional

from coursepay.api.client import BackendClient
from coursepay.api.schemas import CreateOrderRequest, CreateOrderResponse
from coursepay.core.config import CheckoutConfig, get_config
from coursepay.core.errors import CatalogUnavailable, CheckoutError, NetworkError, StalePricing
from coursepay.core.notifications import ERROR, Notification, Notifier, log_notifier
from coursepay.coupons.catalog import CouponCatalogFetcher
from coursepay.coupons.validator import CouponValidator, ValidationSource
from coursepay.pricing.aggregator import aggregate
from coursepay.pricing.models import AppliedCoupon, Coupon, PricingState, WalletSnapshot
from coursepay.pricing.selector import select_best
from coursepay.utils.logger import checkout_logger
from coursepay.utils.money import to_wire


class AutoApplyState(str, Enum):
    NOT_YET_ATTEMPTED = "not_yet_attempted"
    ATTEMPTED = "attempted"


class CheckoutSession:
    """Pricing state and coupon/wallet event handling for one checkout."""

    def __init__(
        self,
        client: BackendClient,
        user_id: str,
        course_ids: List[str],
        is_cart: bool = False,
        config: Optional[CheckoutConfig] = None,
        notifier: Notifier = log_notifier,
    ):
        self.client = client
        self.user_id = user_id
        self.course_ids = list(course_ids)
        self.is_cart = is_cart
        self.config = config or get_config()
        self.notifier = notifier
        self.log = checkout_logger("core.session", user_id)

        self.original_total: Optional[int] = None
        self.wallet = WalletSnapshot()
        self.wallet_applied = False
        self.coupons: List[Coupon] = []
        self.best_coupon: Optional[Coupon] = None
        self.auto_apply = AutoApplyState.NOT_YET_ATTEMPTED

        self.catalog = CouponCatalogFetcher(client, user_id)
        self.validator: Optional[CouponValidator] = None
        self._applied_coupon: Optional[AppliedCoupon] = None
        self._state: Optional[PricingState] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> PricingState:
        if self._state is None:
            raise RuntimeError("Checkout session is not open")
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is not None

    async def open(self, original_total: int) -> PricingState:
        """
        Start pricing for a cart total (minor units).

        Fetches the wallet snapshot and the coupon catalog, then auto-applies
        the best coupon. Auto-apply is attempted exactly once per session.
        """
        if original_total < 0:
            raise ValueError("original_total must be non-negative")
        if self.is_open or self._closed:
            raise RuntimeError("Checkout session is already open or closed")

        self.original_total = original_total
        self.validator = CouponValidator(
            client=self.client,
            user_id=self.user_id,
            original_total=original_total,
            on_change=self._on_coupon_change,
            notifier=self.notifier,
            config=self.config,
        )
        self._recompute()
        self.log.info(f"Checkout opened: total={original_total} courses={self.course_ids}")

        await self.refresh_wallet()
        if original_total > 0:
            await self.load_coupons()
            await self._auto_apply_best()
        else:
            self.auto_apply = AutoApplyState.ATTEMPTED
        return self.state

    def close(self) -> None:
        """Cancel outstanding validation work and discard the pricing state."""
        if self.validator is not None:
            self.validator.cancel_pending()
        self._closed = True
        self._state = None
        self.log.info("Checkout closed")

    async def update_total(self, original_total: int) -> PricingState:
        """
        The cart changed (e.g. an item was removed).

        The applied coupon was priced against the old total, so it is dropped;
        the catalog is re-fetched for the new total. The best coupon is not
        auto-applied a second time.
        """
        if not self.is_open:
            raise RuntimeError("Checkout session is not open")
        if original_total < 0:
            raise ValueError("original_total must be non-negative")
        if original_total == self.original_total:
            return self.state

        self.log.info(f"Cart total changed {self.original_total} -> {original_total}")
        self.original_total = original_total
        self.validator.rebase(original_total)
        self._recompute()
        if original_total > 0:
            await self.load_coupons()
        else:
            self.coupons = []
            self.best_coupon = None
        return self.state

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    async def refresh_wallet(self) -> WalletSnapshot:
        """Fetch the wallet snapshot; failures keep the previous snapshot."""
        try:
            response = await self.client.get_wallet()
        except NetworkError as e:
            self.log.warning(f"Wallet unavailable: {e}")
            return self.wallet
        if not response.success:
            self.log.warning(f"Wallet fetch rejected: {response.message}")
            return self.wallet

        try:
            self.wallet = response.to_snapshot()
        except (ValueError, ArithmeticError) as e:
            self.log.warning(f"Unusable wallet balance: {e}")
            return self.wallet
        self.log.debug(f"Wallet snapshot: balance={self.wallet.balance}")
        self._recompute()
        return self.wallet

    async def load_coupons(self) -> List[Coupon]:
        """Load the eligible coupons; an unavailable catalog just means no coupons."""
        try:
            self.coupons = await self.catalog.fetch_eligible(self.original_total)
        except CatalogUnavailable as e:
            self.log.warning(f"Coupon catalog unavailable: {e}")
            self.notifier(Notification(ERROR, "Failed to load available coupons"))
            self.coupons = []
        self.best_coupon = select_best(self.coupons, self.original_total)
        return self.coupons

    async def _auto_apply_best(self) -> Optional[AppliedCoupon]:
        if self.auto_apply == AutoApplyState.ATTEMPTED:
            return None
        # flip before awaiting so a concurrent reload cannot fire it again
        self.auto_apply = AutoApplyState.ATTEMPTED
        if self.best_coupon is None:
            return None
        self.log.info(f"Auto-applying best coupon {self.best_coupon.code}")
        return await self.validator.validate(self.best_coupon.code, ValidationSource.AUTO)

    # ------------------------------------------------------------------
    # User events
    # ------------------------------------------------------------------

    def on_coupon_input(self, text: str):
        """Typed coupon field changed; validation runs after the debounce period."""
        return self.validator.on_input(text)

    async def select_coupon(self, code: Optional[str]) -> Optional[AppliedCoupon]:
        """Coupon picked from the list (NO_COUPON removes it)."""
        return await self.validator.select(code)

    async def retry_coupon(self) -> Optional[AppliedCoupon]:
        return await self.validator.retry()

    def remove_coupon(self) -> PricingState:
        self.validator.clear(notify=True)
        return self.state

    def set_wallet_applied(self, applied: bool) -> PricingState:
        """Wallet toggle. Turning it on with an empty wallet does nothing."""
        if applied and self.wallet.balance == 0:
            self.log.debug("Wallet toggle ignored: balance is zero")
            return self.state
        self.wallet_applied = applied
        self._recompute()
        return self.state

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def build_order_request(self) -> CreateOrderRequest:
        state = self.state
        return CreateOrderRequest(
            amount=to_wire(state.final_amount),
            is_cart=self.is_cart,
            course=self.course_ids,
            wallet_amount=to_wire(state.wallet_amount) if state.wallet_amount > 0 else None,
            coupon_code=state.coupon_code,
        )

    async def revalidate(self) -> PricingState:
        """Refresh the wallet snapshot and re-check the applied coupon."""
        await self.refresh_wallet()
        code = self.state.coupon_code
        if code:
            await self.validator.validate(code, ValidationSource.RECHECK)
        return self.state

    async def place_order(self) -> CreateOrderResponse:
        """
        Create the payment order for the current pricing.

        Raises:
            StalePricing: re-validation changed the amount the user was shown
            CheckoutError: the backend refused to create the order
            NetworkError: the order request never completed
        """
        shown = self.state
        if self.config.revalidate_at_payment:
            current = await self.revalidate()
            if current.final_amount != shown.final_amount:
                self.log.warning(f"Pricing changed before payment: {shown.final_amount} -> {current.final_amount}")
                raise StalePricing(shown, current)

        request = self.build_order_request()
        response = await self.client.create_order(request)
        if not response.success:
            raise CheckoutError(response.message or "Failed to create order")
        self.log.info(
            f"Order {response.order_id} created: "
            f"amount={request.amount} coupon={request.coupon_code} wallet={request.wallet_amount}"
        )
        return response

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_coupon_change(self, applied: Optional[AppliedCoupon]) -> None:
        self._applied_coupon = applied
        self._recompute()

    def _recompute(self) -> None:
        if self.original_total is None or self._closed:
            return
        self._state = aggregate(
            self.original_total,
            self._applied_coupon,
            self.wallet_applied,
            self.wallet.balance,
        )
