"""
Coupon validator state machine tests.

Uses ScriptedClient so each test decides which responses arrive and when.
Totals are minor units; the scripted backend answers in rupees.
"""

import asyncio

import httpx
import pytest

from coursepay.api.client import BackendClient
from coursepay.core.errors import InvalidDiscountBound, ValidationFailed
from coursepay.coupons.validator import (
    NO_COUPON,
    CouponValidator,
    ValidationSource,
    ValidatorStatus,
    normalize_code,
)
from fakes import ScriptedClient, accepted, network_down, rejected

TOTAL = 100000  # ₹1,000


def _run(coro):
    return asyncio.run(coro)


class Harness:
    """Validator plus a record of every on_change call."""

    def __init__(self, client, config, notes, total=TOTAL):
        self.changes = []
        self.validator = CouponValidator(
            client=client,
            user_id="user-1",
            original_total=total,
            on_change=self.changes.append,
            notifier=notes,
            config=config,
        )


@pytest.fixture
def scripted():
    return ScriptedClient({
        "SAVE10": accepted("SAVE10", 1000, 900),
        "SAVE20": accepted("SAVE20", 1000, 800, value=20),
    })


@pytest.fixture
def harness(scripted, config, notes):
    return Harness(scripted, config, notes)


class TestNormalizeCode:
    def test_strips_and_upper_cases(self):
        assert normalize_code("save-10 off!") == "SAVE10OFF"

    def test_truncates(self):
        assert normalize_code("A" * 25) == "A" * 20

    def test_handles_empty(self):
        assert normalize_code("") == ""
        assert normalize_code(None) == ""


class TestValidateOutcomes:
    def test_accepted_code_is_applied(self, harness, notes):
        v = harness.validator
        result = _run(v.validate("SAVE10", ValidationSource.SELECT))

        assert result.code == "SAVE10"
        assert result.discount_amount == 10000
        assert result.final_price_after_discount == 90000
        assert v.status == ValidatorStatus.VALID
        assert v.applied == result
        assert harness.changes[-1] == result
        assert notes.of_level("success") == ["Coupon applied successfully!"]

    def test_rejection_surfaces_server_message(self, scripted, harness, notes):
        scripted.responses["OLD2023"] = rejected("Coupon has expired")
        v = harness.validator
        assert _run(v.validate("OLD2023")) is None

        assert v.status == ValidatorStatus.INVALID
        assert isinstance(v.error, ValidationFailed)
        assert v.message == "Coupon has expired"
        assert v.applied is None
        assert notes.of_level("error") == ["Coupon has expired"]

    def test_network_failure_is_a_validation_failure(self, scripted, harness, notes):
        scripted.responses["SAVE10"] = network_down()
        v = harness.validator
        assert _run(v.validate("SAVE10")) is None

        assert v.status == ValidatorStatus.INVALID
        assert v.message == "Error validating coupon"

    def test_final_price_above_total_rejected(self, scripted, harness, notes):
        scripted.responses["EVIL"] = accepted("EVIL", 1000, 1200)
        v = harness.validator
        assert _run(v.validate("EVIL")) is None

        assert v.status == ValidatorStatus.INVALID
        assert isinstance(v.error, InvalidDiscountBound)
        assert v.error.final_price == 120000
        assert v.applied is None
        assert notes.of_level("error") == ["Invalid discount amount"]

    def test_bound_check_ignores_success_flag(self, scripted, harness):
        scripted.responses["EVIL"] = rejected("whatever", final=1200)
        v = harness.validator
        _run(v.validate("EVIL"))
        assert isinstance(v.error, InvalidDiscountBound)

    def test_success_without_final_price_is_rejected(self, scripted, harness):
        scripted.responses["HALF"] = rejected("Invalid coupon code")
        scripted.responses["HALF"] = scripted.responses["HALF"].model_copy(update={"success": True})
        v = harness.validator
        assert _run(v.validate("HALF")) is None
        assert v.status == ValidatorStatus.INVALID

    def test_auto_apply_failure_is_silent(self, scripted, harness, notes):
        scripted.responses["BEST"] = rejected("Coupon already used")
        _run(harness.validator.validate("BEST", ValidationSource.AUTO))
        assert notes.of_level("error") == []

    def test_auto_apply_success_message(self, harness, notes):
        _run(harness.validator.validate("SAVE10", ValidationSource.AUTO))
        assert notes.of_level("success") == ['Best coupon "SAVE10" applied automatically!']


class TestRetryAndClear:
    def test_retry_after_invalid(self, scripted, harness):
        scripted.responses["LATER"] = network_down()
        v = harness.validator

        async def scenario():
            await v.validate("LATER")
            assert v.status == ValidatorStatus.INVALID
            scripted.responses["LATER"] = accepted("LATER", 1000, 950)
            return await v.retry()

        result = _run(scenario())
        assert result.final_price_after_discount == 95000
        assert v.status == ValidatorStatus.VALID
        assert scripted.calls == ["LATER", "LATER"]

    def test_retry_only_from_invalid(self, scripted, harness):
        assert _run(harness.validator.retry()) is None
        assert scripted.calls == []

    def test_clear_is_synchronous(self, harness, notes):
        v = harness.validator
        _run(v.validate("SAVE10"))
        assert v.applied is not None

        v.clear(notify=True)
        assert v.status == ValidatorStatus.IDLE
        assert v.applied is None
        assert v.code == ""
        assert harness.changes[-1] is None
        assert notes.messages[-1] == "Coupon removed"

    def test_select_no_coupon_clears(self, scripted, harness):
        v = harness.validator
        _run(v.validate("SAVE10"))
        assert _run(v.select(NO_COUPON)) is None
        assert v.status == ValidatorStatus.IDLE
        assert harness.changes[-1] is None
        assert scripted.calls == ["SAVE10"]

    def test_rebase_drops_coupon(self, harness):
        v = harness.validator
        _run(v.validate("SAVE10"))
        v.rebase(50000)
        assert v.original_total == 50000
        assert v.applied is None
        assert v.status == ValidatorStatus.IDLE


class TestTypedInput:
    def test_debounce_sends_only_last_code(self, scripted, harness):
        v = harness.validator

        async def scenario():
            for text in ("S", "SA", "SAV", "SAVE", "SAVE1"):
                v.on_input(text)
            task = v.on_input("SAVE10")
            return await task

        result = _run(scenario())
        assert scripted.calls == ["SAVE10"]
        assert result.code == "SAVE10"
        assert v.status == ValidatorStatus.VALID

    def test_short_codes_never_sent(self, scripted, harness):
        v = harness.validator

        async def scenario():
            task = v.on_input("abc")
            await asyncio.sleep(0.05)
            return task

        assert _run(scenario()) is None
        assert scripted.calls == []
        assert v.status == ValidatorStatus.IDLE

    def test_input_is_normalized(self, scripted, harness):
        v = harness.validator

        async def scenario():
            return await v.on_input("save 10")

        _run(scenario())
        assert scripted.calls == ["SAVE10"]

    def test_editing_a_valid_code_drops_it_immediately(self, harness):
        v = harness.validator

        async def scenario():
            await v.validate("SAVE10")
            assert v.applied is not None
            pending = v.on_input("SAVE1")
            # no await yet: the coupon must already be gone
            assert v.applied is None
            assert harness.changes[-1] is None
            assert v.status == ValidatorStatus.IDLE
            return await pending

        assert _run(scenario()) is None
        assert v.status == ValidatorStatus.INVALID

    def test_same_text_while_valid_is_a_no_op(self, scripted, harness):
        v = harness.validator

        async def scenario():
            await v.on_input("SAVE10")
            return v.on_input("SAVE10")

        assert _run(scenario()) is None
        assert scripted.calls == ["SAVE10"]
        assert v.status == ValidatorStatus.VALID

    def test_clearing_input_cancels_debounce(self, scripted, harness):
        v = harness.validator

        async def scenario():
            task = v.on_input("SAVE10")
            v.on_input("")
            await asyncio.sleep(0.05)
            return task

        task = _run(scenario())
        assert task.cancelled()
        assert scripted.calls == []
        assert v.status == ValidatorStatus.IDLE


class TestRaces:
    def test_superseded_code_result_is_dropped(self, scripted, harness):
        v = harness.validator

        async def scenario():
            scripted.hold("SAVE10")
            first = asyncio.create_task(v.validate("SAVE10"))
            await asyncio.sleep(0.01)
            second = asyncio.create_task(v.validate("SAVE20"))
            await asyncio.sleep(0.01)
            scripted.release("SAVE10")
            return await first, await second

        first, second = _run(scenario())
        assert first is None
        assert second.code == "SAVE20"
        assert v.applied.code == "SAVE20"
        assert v.status == ValidatorStatus.VALID
        assert scripted.calls == ["SAVE10", "SAVE20"]

    def test_late_result_after_clear_is_discarded(self, scripted, harness):
        v = harness.validator
        # the user clears the field while the response is on its way back
        scripted.before_return["SAVE10"] = v.clear

        result = _run(v.validate("SAVE10"))
        assert result is None
        assert v.status == ValidatorStatus.IDLE
        assert v.applied is None
        assert all(change is None for change in harness.changes)

    def test_same_code_requests_share_one_call(self, scripted, harness):
        v = harness.validator

        async def scenario():
            scripted.hold("SAVE10")
            first = asyncio.create_task(v.validate("SAVE10"))
            second = asyncio.create_task(v.validate("save10"))
            await asyncio.sleep(0.01)
            assert v.is_pending
            scripted.release("SAVE10")
            return await asyncio.gather(first, second)

        first, second = _run(scenario())
        assert scripted.calls == ["SAVE10"]
        assert first == second
        assert not v.is_pending

    def test_retry_while_in_flight_joins(self, scripted, harness):
        scripted.responses["FLAKY"] = network_down()
        v = harness.validator

        async def scenario():
            await v.validate("FLAKY")
            scripted.responses["FLAKY"] = accepted("FLAKY", 1000, 990)
            scripted.hold("FLAKY")
            first = asyncio.create_task(v.retry())
            await asyncio.sleep(0.01)
            second = asyncio.create_task(v.validate("FLAKY", ValidationSource.RETRY))
            await asyncio.sleep(0.01)
            scripted.release("FLAKY")
            return await asyncio.gather(first, second)

        first, second = _run(scenario())
        assert scripted.calls == ["FLAKY", "FLAKY"]
        assert first.code == second.code == "FLAKY"


class TestUnusableResponses:
    @staticmethod
    def _backend_returning(body, config, notes):
        def handler(request):
            return httpx.Response(200, content=body, headers={"content-type": "application/json"})

        client = BackendClient(config, transport=httpx.MockTransport(handler))
        return Harness(client, config, notes)

    @pytest.mark.parametrize("final_price", [b"NaN", b"Infinity", b"-Infinity"])
    def test_non_finite_final_price_is_invalid(self, final_price, config, notes):
        body = b'{"success": true, "code": "SAVE10", "finalPrice": ' + final_price + b"}"
        v = self._backend_returning(body, config, notes).validator

        assert _run(v.validate("SAVE10")) is None
        assert v.status == ValidatorStatus.INVALID
        assert v.message == "Error validating coupon"
        assert v.applied is None
        assert not v.is_pending

    def test_unexpected_client_error_is_invalid_and_retryable(self, scripted, harness, notes):
        scripted.responses["BOOM"] = RuntimeError("decoder blew up")
        v = harness.validator

        async def scenario():
            assert await v.validate("BOOM") is None
            assert v.status == ValidatorStatus.INVALID
            scripted.responses["BOOM"] = accepted("BOOM", 1000, 900)
            return await v.retry()

        assert _run(scenario()).code == "BOOM"
        assert v.status == ValidatorStatus.VALID
        assert "Error validating coupon" in notes.of_level("error")
