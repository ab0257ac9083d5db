"""
Coupon validation state machine.

States: idle -> validating -> valid | invalid, invalid -> validating on retry,
and any state -> idle on clear. Typed input is debounced; catalog picks and
the auto-applied best coupon validate immediately.

Only the most recently issued request may write state. Every request carries
a monotonic token; a response whose token is no longer the latest is dropped.
Issuing a request for one code cancels the in-flight request of any other
code, and a second request for a code already in flight joins the first.
"""
import asyncio
import itertools
import re
from enum import Enum
from typing import Callable, Dict, Optional

from coursepay.api.client import BackendClient
from coursepay.api.schemas import CouponValidationResponse
from coursepay.core.config import CheckoutConfig, get_config
from coursepay.core.errors import InvalidDiscountBound, NetworkError, ValidationFailed
from coursepay.core.notifications import ERROR, SUCCESS, Notification, Notifier, log_notifier
from coursepay.pricing.models import AppliedCoupon
from coursepay.utils.logger import get_logger

logger = get_logger("coupons.validator")

NO_COUPON = "NO_COUPON"

_NON_CODE_CHARS = re.compile(r"[^A-Z0-9]")


class ValidatorStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


class ValidationSource(str, Enum):
    AUTO = "auto"        # best coupon applied on catalog load
    MANUAL = "manual"    # typed code, after the debounce
    SELECT = "select"    # picked from the catalog list
    RETRY = "retry"      # user retried an invalid code
    RECHECK = "recheck"  # payment-time re-validation


CouponChangeHandler = Callable[[Optional[AppliedCoupon]], None]


def normalize_code(text: str, max_length: int = 20) -> str:
    """Upper-case, drop anything that isn't A-Z/0-9, truncate."""
    return _NON_CODE_CHARS.sub("", (text or "").upper())[:max_length]


class CouponValidator:
    """
    Validates coupon codes against the backend for one checkout session.

    on_change is called synchronously with the newly applied coupon (or None)
    every time the applied coupon changes, so the owner can recompute pricing.
    """

    def __init__(
        self,
        client: BackendClient,
        user_id: str,
        original_total: int,
        on_change: CouponChangeHandler,
        notifier: Notifier = log_notifier,
        config: Optional[CheckoutConfig] = None,
    ):
        self.client = client
        self.user_id = user_id
        self.original_total = original_total
        self.on_change = on_change
        self.notifier = notifier
        self.config = config or get_config()

        self.status = ValidatorStatus.IDLE
        self.code = ""
        self.applied: Optional[AppliedCoupon] = None
        self.error: Optional[ValidationFailed] = None

        self._tokens = itertools.count(1)
        self._latest_token = 0
        self._inflight: Dict[str, asyncio.Task] = {}
        self._debounce: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def message(self) -> Optional[str]:
        if self.applied is not None:
            return self.applied.message or None
        if self.error is not None:
            return self.error.message
        return None

    @property
    def is_pending(self) -> bool:
        """True while a debounce timer or a request is outstanding."""
        if self._debounce is not None and not self._debounce.done():
            return True
        return any(not t.done() for t in self._inflight.values())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_input(self, text: str) -> Optional[asyncio.Task]:
        """
        Handle a change of the typed coupon field.

        Must be called from inside the running event loop. Returns the
        debounce task when a validation was scheduled.
        """
        code = normalize_code(text, self.config.max_code_length)
        if code == self.code and self.status != ValidatorStatus.IDLE:
            return None

        # Any edit invalidates whatever the previous code produced
        self._reset(code)
        if len(code) < self.config.min_code_length:
            return None

        self._debounce = asyncio.get_running_loop().create_task(self._debounced(code))
        return self._debounce

    async def select(self, code: Optional[str]) -> Optional[AppliedCoupon]:
        """Handle a pick from the coupon list. Empty or NO_COUPON removes the coupon."""
        if not code or code == NO_COUPON:
            self.clear(notify=True)
            return None
        return await self.validate(code, ValidationSource.SELECT)

    async def retry(self) -> Optional[AppliedCoupon]:
        """Re-validate the current code after an invalid result."""
        if self.status != ValidatorStatus.INVALID or not self.code:
            return None
        return await self.validate(self.code, ValidationSource.RETRY)

    def clear(self, notify: bool = False) -> None:
        """Synchronously drop the coupon and return to idle; no network round trip."""
        self._reset("")
        if notify:
            self.notifier(Notification(SUCCESS, "Coupon removed"))

    def rebase(self, original_total: int) -> None:
        """Switch to a new order total; anything priced against the old one is dropped."""
        self.original_total = original_total
        self._reset("")

    def cancel_pending(self) -> None:
        """Cancel the debounce timer and every in-flight request, and orphan their tokens."""
        self._cancel_debounce()
        for task in self._inflight.values():
            task.cancel()
        self._inflight.clear()
        self._latest_token = next(self._tokens)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate(self, code: str, source: ValidationSource = ValidationSource.MANUAL) -> Optional[AppliedCoupon]:
        """
        Validate a code and apply it if the backend accepts it.

        Returns the applied coupon, or None when the code was rejected or the
        request was superseded before its result could be applied.
        """
        code = normalize_code(code, self.config.max_code_length)
        existing = self._inflight.get(code)
        if existing is not None and not existing.done():
            logger.debug(f"Joining in-flight validation for {code}")
            return await self._await_request(existing)

        self._cancel_debounce()
        for other, task in list(self._inflight.items()):
            if other != code:
                logger.debug(f"Aborting validation for {other}, superseded by {code}")
                task.cancel()
                del self._inflight[other]

        token = next(self._tokens)
        self._latest_token = token
        if self.applied is not None and self.applied.code != code:
            self._set_applied(None)
        self.code = code
        self.status = ValidatorStatus.VALIDATING
        self.error = None

        task = asyncio.get_running_loop().create_task(self._request(code, token, source))
        self._inflight[code] = task
        task.add_done_callback(lambda t, c=code: self._forget(c, t))
        return await self._await_request(task)

    async def _request(self, code: str, token: int, source: ValidationSource) -> Optional[AppliedCoupon]:
        logger.info(f"Validating coupon {code} for total={self.original_total} ({source.value})")
        response: Optional[CouponValidationResponse] = None
        failure: Optional[ValidationFailed] = None
        try:
            response = await self.client.validate_coupon(self.user_id, code, self.original_total)
        except NetworkError as e:
            failure = ValidationFailed(code, "Error validating coupon")
            logger.error(f"Coupon {code} validation request failed: {e}")
        except asyncio.CancelledError:
            logger.debug(f"Validation for {code} cancelled")
            raise
        except Exception as e:
            failure = ValidationFailed(code, "Error validating coupon")
            logger.exception(f"Unexpected error validating coupon {code}: {e}")

        if token != self._latest_token:
            logger.debug(f"Discarding stale validation result for {code} (token {token} != {self._latest_token})")
            return None

        if failure is None:
            try:
                applied = self._price(code, response)
            except ValidationFailed as e:
                failure = e
            else:
                self._succeed(applied, source)
                return applied

        self._fail(failure, source)
        return None

    def _price(self, code: str, response: CouponValidationResponse) -> AppliedCoupon:
        """Turn a backend response into an AppliedCoupon or raise ValidationFailed."""
        try:
            final_price = response.final_price_minor
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"Coupon {code} response has an unusable final price: {e}")
            raise ValidationFailed(code, "Invalid coupon response") from e
        if final_price is not None and (final_price > self.original_total or final_price < 0):
            raise InvalidDiscountBound(code, final_price, self.original_total)
        if not response.success or final_price is None:
            raise ValidationFailed(code, response.message or "Invalid coupon code")
        try:
            return response.to_applied_coupon(code)
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"Coupon {code} response failed validation: {e}")
            raise ValidationFailed(code, "Invalid coupon response") from e

    def _succeed(self, applied: AppliedCoupon, source: ValidationSource) -> None:
        self.status = ValidatorStatus.VALID
        self.error = None
        self._set_applied(applied)
        logger.info(
            f"Coupon {applied.code} applied: discount={applied.discount_amount} "
            f"final={applied.final_price_after_discount}"
        )
        if source == ValidationSource.AUTO:
            self.notifier(Notification(SUCCESS, f'Best coupon "{applied.code}" applied automatically!'))
        elif source != ValidationSource.RECHECK:
            self.notifier(Notification(SUCCESS, "Coupon applied successfully!"))

    def _fail(self, error: ValidationFailed, source: ValidationSource) -> None:
        self.status = ValidatorStatus.INVALID
        self.error = error
        self._set_applied(None)
        logger.warning(f"Coupon {error.code} rejected ({source.value}): {error.message}")
        # auto-apply failures stay silent; the user never asked for that coupon
        if source != ValidationSource.AUTO:
            self.notifier(Notification(ERROR, error.message))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _debounced(self, code: str) -> Optional[AppliedCoupon]:
        await asyncio.sleep(self.config.debounce_seconds)
        if code != self.code:
            return None
        return await self.validate(code, ValidationSource.MANUAL)

    @staticmethod
    async def _await_request(task: asyncio.Task) -> Optional[AppliedCoupon]:
        # wait() neither raises for a cancelled task nor cancels it if we are cancelled
        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    def _reset(self, code: str) -> None:
        self.cancel_pending()
        self.code = code
        self.status = ValidatorStatus.IDLE
        self.error = None
        self._set_applied(None, force=True)

    def _set_applied(self, applied: Optional[AppliedCoupon], force: bool = False) -> None:
        changed = applied != self.applied
        self.applied = applied
        if changed or force:
            self.on_change(applied)

    def _cancel_debounce(self) -> None:
        debounce, self._debounce = self._debounce, None
        if debounce is None or debounce.done():
            return
        if debounce is not asyncio.current_task():
            debounce.cancel()

    def _forget(self, code: str, task: asyncio.Task) -> None:
        if self._inflight.get(code) is task:
            del self._inflight[code]
