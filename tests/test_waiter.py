"""Tests for the polling waiter and its state classification."""

import threading
from types import SimpleNamespace

import pytest

from fakes import FakeClock, ScriptedProber, make_gateway

from natgw_lifecycle.provisioners.models import NatGatewayState
from natgw_lifecycle.provisioners.nat_gateway import CREATED_CLASSIFIER, DELETED_CLASSIFIER
from natgw_lifecycle.provisioners.prober import Absent, AbsenceReason
from natgw_lifecycle.provisioners.waiter import (
    ABSENT_LABEL,
    Cancelled,
    Classification,
    Failed,
    PollPolicy,
    StateClassifier,
    Succeeded,
    TimedOut,
    Waiter,
    state_label,
)
from natgw_lifecycle.utils.errors import RemoteError, TransportError

GATEWAY_ID = "nat-0123456789abcdef0"


def absent() -> Absent:
    return Absent(GATEWAY_ID, AbsenceReason.EMPTY_RESPONSE)


def gateway(state: str, **kwargs):
    return make_gateway(GATEWAY_ID, state=state, **kwargs)


def policy(classifier: StateClassifier = CREATED_CLASSIFIER, **kwargs) -> PollPolicy:
    kwargs.setdefault("timeout", 600)
    kwargs.setdefault("jitter", 0)
    return PollPolicy(classifier=classifier, **kwargs)


class TestStateClassifier:
    """Tests for StateClassifier."""

    @pytest.mark.parametrize("classifier", [CREATED_CLASSIFIER, DELETED_CLASSIFIER])
    def test_every_label_has_exactly_one_classification(self, classifier: StateClassifier) -> None:
        """Test known, absent and unknown labels each map to one classification."""
        labels = [s.value for s in NatGatewayState] + [ABSENT_LABEL, "rebooting", ""]
        for label in labels:
            assert isinstance(classifier.classify(label), Classification)

    def test_create_classification(self) -> None:
        """Test the create wait targets available."""
        assert CREATED_CLASSIFIER.classify("available") is Classification.SUCCESS
        assert CREATED_CLASSIFIER.classify("pending") is Classification.TRANSITIONAL
        assert CREATED_CLASSIFIER.classify("failed") is Classification.FAILURE
        assert CREATED_CLASSIFIER.classify("deleting") is Classification.FAILURE
        assert CREATED_CLASSIFIER.classify(ABSENT_LABEL) is Classification.TRANSITIONAL

    def test_delete_classification(self) -> None:
        """Test the delete wait treats absence as success."""
        assert DELETED_CLASSIFIER.classify("deleted") is Classification.SUCCESS
        assert DELETED_CLASSIFIER.classify(ABSENT_LABEL) is Classification.SUCCESS
        assert DELETED_CLASSIFIER.classify("deleting") is Classification.TRANSITIONAL
        assert DELETED_CLASSIFIER.classify("failed") is Classification.FAILURE
        assert DELETED_CLASSIFIER.classify("available") is Classification.FAILURE

    def test_unknown_label_reason(self) -> None:
        """Test labels outside every set are reported as unexpected."""
        assert "unexpected state 'available'" in DELETED_CLASSIFIER.failure_reason("available")
        assert "failure state 'failed'" in DELETED_CLASSIFIER.failure_reason("failed")

    def test_overlapping_sets_rejected(self) -> None:
        """Test a label cannot be both success and transitional."""
        with pytest.raises(ValueError, match="more than once"):
            StateClassifier(success=frozenset({"ready"}), pending=frozenset({"ready"}))


class TestStateLabel:
    """Tests for state_label."""

    def test_absent(self) -> None:
        assert state_label(absent()) == ABSENT_LABEL

    def test_enum_state(self) -> None:
        assert state_label(gateway("pending")) == "pending"

    def test_plain_state(self) -> None:
        assert state_label(SimpleNamespace(state="ready")) == "ready"


class TestWaiter:
    """Tests for Waiter.wait."""

    def test_succeeds_after_transitional_states(self, waiter: Waiter, clock: FakeClock) -> None:
        """Test pending, pending, available yields the available object."""
        available = gateway("available")
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"), gateway("pending"), available)

        outcome = waiter.wait(prober, policy())

        assert outcome == Succeeded(available)
        assert prober.probes == 3
        assert clock.sleeps == [5.0, 7.5]

    def test_failure_state_includes_provider_reason(self, waiter: Waiter) -> None:
        """Test the provider's failure message is carried in the reason."""
        prober = ScriptedProber(
            GATEWAY_ID,
            gateway("pending"),
            gateway("failed", failure_code="InvalidSubnetID.NotFound", failure_message="Subnet does not exist"),
        )

        outcome = waiter.wait(prober, policy())

        assert isinstance(outcome, Failed)
        assert outcome.last_state == "failed"
        assert "InvalidSubnetID.NotFound: Subnet does not exist" in outcome.reason

    def test_unexpected_state_fails(self, waiter: Waiter) -> None:
        """Test a state outside the classifier's sets is terminal."""
        prober = ScriptedProber(GATEWAY_ID, gateway("available"))

        outcome = waiter.wait(prober, policy(DELETED_CLASSIFIER))

        assert isinstance(outcome, Failed)
        assert "unexpected state" in outcome.reason
        assert prober.probes == 1

    def test_times_out_at_budget(self, waiter: Waiter, clock: FakeClock) -> None:
        """Test a gateway stuck in pending times out exactly at the budget."""
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"))

        outcome = waiter.wait(prober, policy(timeout=60, interval=5, backoff=1.0))

        assert outcome == TimedOut(last_state="pending", elapsed=60.0)
        assert prober.probes == 13

    def test_sleep_never_exceeds_remaining_budget(self, waiter: Waiter, clock: FakeClock) -> None:
        """Test the last sleep is cut short so the final probe lands on the budget."""
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"))

        outcome = waiter.wait(prober, policy(timeout=12, interval=5, backoff=2.0))

        assert isinstance(outcome, TimedOut)
        assert clock.sleeps == [5.0, 7.0]
        assert clock.elapsed == 12.0

    @pytest.mark.parametrize("timeout", [0, 1, 7.5, 30, 90])
    def test_timeout_is_bounded(self, timeout: float) -> None:
        """Test elapsed time never exceeds the budget."""
        clock = FakeClock()
        waiter = Waiter(clock=clock, sleep=clock.sleep)
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"))

        outcome = waiter.wait(prober, policy(timeout=timeout, jitter=0.5))

        assert isinstance(outcome, TimedOut)
        assert timeout <= outcome.elapsed <= timeout + 1e-9

    def test_longer_timeout_never_probes_less(self) -> None:
        """Test probe count grows with the timeout."""
        probes = []
        for timeout in (10, 20, 40, 80, 160):
            clock = FakeClock()
            prober = ScriptedProber(GATEWAY_ID, gateway("pending"))
            Waiter(clock=clock, sleep=clock.sleep).wait(prober, policy(timeout=timeout))
            probes.append(prober.probes)

        assert probes == sorted(probes)

    def test_max_interval_caps_delay(self, waiter: Waiter, clock: FakeClock) -> None:
        """Test backoff stops growing at max_interval."""
        prober = ScriptedProber(GATEWAY_ID, *([gateway("pending")] * 6), gateway("available"))

        waiter.wait(prober, policy(interval=5, backoff=2.0, max_interval=12))

        assert clock.sleeps == [5.0, 10.0, 12.0, 12.0, 12.0, 12.0]

    def test_initial_delay(self, waiter: Waiter, clock: FakeClock) -> None:
        """Test the wait sleeps before the first probe when a delay is set."""
        prober = ScriptedProber(GATEWAY_ID, gateway("available"))

        waiter.wait(prober, policy(delay=3))

        assert clock.sleeps == [3.0]

    def test_cancelled_before_first_probe(self, waiter: Waiter) -> None:
        """Test an already-set event returns without probing."""
        cancel_event = threading.Event()
        cancel_event.set()
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"))

        outcome = waiter.wait(prober, policy(), cancel_event)

        assert isinstance(outcome, Cancelled)
        assert prober.probes == 0

    def test_cancelled_during_wait(self, waiter: Waiter) -> None:
        """Test setting the event mid-wait stops at the next sleep."""
        cancel_event = threading.Event()

        def cancel_on_second_probe(count: int) -> None:
            if count == 2:
                cancel_event.set()

        prober = ScriptedProber(GATEWAY_ID, gateway("pending"), on_probe=cancel_on_second_probe)

        outcome = waiter.wait(prober, policy(), cancel_event)

        assert outcome == Cancelled("cancelled by caller", "pending")
        assert prober.probes == 2

    def test_deadline_cancels(self, waiter: Waiter, clock: FakeClock) -> None:
        """Test an absolute deadline before the timeout yields Cancelled."""
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"))

        outcome = waiter.wait(
            prober, policy(timeout=100, interval=5, backoff=1.0), deadline=clock.now + 10
        )

        assert outcome == Cancelled("deadline exceeded", "pending")
        assert prober.probes == 3

    def test_transient_errors_tolerated(self, waiter: Waiter) -> None:
        """Test up to max_transient_errors consecutive transport errors are retried."""
        error = TransportError("RequestLimitExceeded", "Request limit exceeded.")
        available = gateway("available")
        prober = ScriptedProber(GATEWAY_ID, error, error, error, available)

        outcome = waiter.wait(prober, policy(max_transient_errors=3))

        assert outcome == Succeeded(available)

    def test_too_many_transient_errors(self, waiter: Waiter) -> None:
        """Test the wait gives up once the transient error limit is exceeded."""
        error = TransportError("RequestLimitExceeded", "Request limit exceeded.")
        prober = ScriptedProber(GATEWAY_ID, gateway("pending"), error)

        outcome = waiter.wait(prober, policy(max_transient_errors=2))

        assert isinstance(outcome, Failed)
        assert "transient" in outcome.reason
        assert outcome.last_state == "pending"
        assert outcome.error is error
        assert prober.probes == 4

    def test_transient_counter_resets(self, waiter: Waiter) -> None:
        """Test a successful probe resets the consecutive error count."""
        error = TransportError("Throttling", "Rate exceeded")
        available = gateway("available")
        prober = ScriptedProber(
            GATEWAY_ID, error, gateway("pending"), error, gateway("pending"), error, available
        )

        outcome = waiter.wait(prober, policy(max_transient_errors=1))

        assert outcome == Succeeded(available)

    def test_non_transient_error_propagates(self, waiter: Waiter) -> None:
        """Test errors that are not transient are raised, not retried."""
        prober = ScriptedProber(GATEWAY_ID, RemoteError("UnauthorizedOperation", "not authorized"))

        with pytest.raises(RemoteError, match="UnauthorizedOperation"):
            waiter.wait(prober, policy())

        assert prober.probes == 1

    def test_absent_during_create_is_bounded(self, waiter: Waiter) -> None:
        """Test a gateway that never shows up fails after not_found_checks."""
        prober = ScriptedProber(GATEWAY_ID, absent())

        outcome = waiter.wait(prober, policy(not_found_checks=2))

        assert outcome == Failed("not found after 2 consecutive checks", ABSENT_LABEL)
        assert prober.probes == 3

    def test_absent_then_visible(self, waiter: Waiter) -> None:
        """Test eventual consistency: absence followed by the created gateway."""
        available = gateway("available")
        prober = ScriptedProber(GATEWAY_ID, absent(), absent(), gateway("pending"), available)

        outcome = waiter.wait(prober, policy(not_found_checks=2))

        assert outcome == Succeeded(available)

    def test_absent_is_success_for_delete(self, waiter: Waiter) -> None:
        """Test absence ends a delete wait successfully."""
        result = absent()
        prober = ScriptedProber(GATEWAY_ID, gateway("deleting"), result)

        outcome = waiter.wait(prober, policy(DELETED_CLASSIFIER))

        assert outcome == Succeeded(result)

    def test_generic_objects(self, waiter: Waiter) -> None:
        """Test the waiter works with any object exposing a state label."""
        classifier = StateClassifier(success=frozenset({"ready"}), pending=frozenset({"building"}))
        ready = SimpleNamespace(state="ready")
        prober = ScriptedProber("image-1", SimpleNamespace(state="building"), ready)

        outcome = waiter.wait(prober, PollPolicy(classifier=classifier, timeout=60, jitter=0))

        assert outcome == Succeeded(ready)
