"""Polling waiter that drives a state prober until a terminal state is reached.

The waiter knows nothing about NAT gateways. It takes any prober whose
``probe()`` returns either an object with a ``state`` attribute or
``Absent``, and a ``PollPolicy`` describing timing and how to classify the
observed state labels.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional, Protocol, Union

from natgw_lifecycle.provisioners.prober import Absent
from natgw_lifecycle.utils.logging import get_logger
from natgw_lifecycle.utils.retry import BackoffStrategy

logger = get_logger(__name__)

ABSENT_LABEL = "absent"


class Classification(Enum):
    """Classification of a single probe result."""
    TRANSITIONAL = "transitional"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class StateClassifier:
    """Maps state labels onto exactly one classification.

    Labels in ``success`` and ``failure`` are terminal, labels in ``pending`` are
    transitional, and anything else is an unexpected state and therefore a
    terminal failure. Absence is success when ``absent_is_success`` is set and
    transitional otherwise.
    """
    success: FrozenSet[str]
    failure: FrozenSet[str] = frozenset()
    pending: FrozenSet[str] = frozenset()
    absent_is_success: bool = False

    def __post_init__(self):
        overlap = (self.success & self.failure) | (self.success & self.pending) | (self.failure & self.pending)
        if overlap:
            raise ValueError(f"State labels classified more than once: {sorted(overlap)}")

    def classify(self, label: str) -> Classification:
        if label == ABSENT_LABEL:
            return Classification.SUCCESS if self.absent_is_success else Classification.TRANSITIONAL
        if label in self.success:
            return Classification.SUCCESS
        if label in self.pending:
            return Classification.TRANSITIONAL
        return Classification.FAILURE

    def failure_reason(self, label: str) -> str:
        if label in self.failure:
            return f"entered failure state '{label}'"
        return f"unexpected state '{label}', wanted target '{', '.join(sorted(self.success))}'"


@dataclass(frozen=True)
class PollPolicy:
    """Timing and classification for one wait.

    Attributes:
        classifier: Maps observed state labels to a classification
        timeout: Maximum total wait in seconds
        delay: Seconds to sleep before the first probe
        interval: Seconds between the first and second probe
        max_interval: Upper bound on the delay between probes
        backoff: Multiplier applied to the delay after each probe
        jitter: Fraction of each delay added as random jitter
        max_transient_errors: Consecutive transient probe errors tolerated
        not_found_checks: Consecutive absent probes tolerated while absence is transitional
    """
    classifier: StateClassifier
    timeout: float
    delay: float = 0.0
    interval: float = 5.0
    max_interval: float = 30.0
    backoff: float = 1.5
    jitter: float = 0.1
    max_transient_errors: int = 3
    not_found_checks: int = 20

    def backoff_strategy(self) -> BackoffStrategy:
        return BackoffStrategy(
            interval=self.interval,
            max_interval=max(self.max_interval, self.interval),
            exponential_base=self.backoff,
            jitter=self.jitter,
        )


@dataclass(frozen=True)
class Succeeded:
    """The object reached a success state; ``value`` is the last probe result."""
    value: Any


@dataclass(frozen=True)
class Failed:
    """The object reached a failure state or the probe kept failing."""
    reason: str
    last_state: Optional[str] = None
    error: Optional[Exception] = field(default=None, compare=False)


@dataclass(frozen=True)
class TimedOut:
    """The object was still transitional when the wait budget ran out."""
    last_state: Optional[str]
    elapsed: float


@dataclass(frozen=True)
class Cancelled:
    """The caller aborted the wait or its deadline passed."""
    reason: str
    last_state: Optional[str] = None


WaitOutcome = Union[Succeeded, Failed, TimedOut, Cancelled]


class Prober(Protocol):
    object_id: str

    def probe(self) -> Any:
        ...


def _event_sleep(seconds: float, cancel_event: threading.Event) -> bool:
    return cancel_event.wait(seconds)


def state_label(result: Any) -> str:
    """Return the state label of a probe result."""
    if isinstance(result, Absent):
        return ABSENT_LABEL
    state = result.state
    return state.value if isinstance(state, Enum) else str(state)


class Waiter:
    """Polls a prober with backoff until a terminal classification, timeout or cancellation.

    Each ``wait`` call keeps its own counters, so one waiter can serve
    concurrent waits on different objects from different threads.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float, threading.Event], bool] = _event_sleep,
    ):
        """Initialize waiter.

        Args:
            clock: Monotonic clock in seconds
            sleep: Sleeps for the given seconds unless the event is set first;
                returns True when the sleep was interrupted by the event
        """
        self.clock = clock
        self.sleep = sleep

    def wait(
        self,
        prober: Prober,
        policy: PollPolicy,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> WaitOutcome:
        """Poll until the object reaches a terminal state.

        Args:
            prober: Probe bound to the object being waited on
            policy: Timing and classification for this wait
            cancel_event: Set by the caller to abort the wait
            deadline: Absolute time on ``clock`` after which the wait is cancelled

        Returns:
            Succeeded, Failed, TimedOut or Cancelled

        Raises:
            Exception: Non-transient probe errors propagate unchanged
        """
        cancel_event = cancel_event or threading.Event()
        backoff = policy.backoff_strategy()
        classifier = policy.classifier
        object_id = prober.object_id
        log_extra = {'nat_gateway_id': object_id, 'operation': 'wait'}

        start = self.clock()
        budget_end = start + policy.timeout
        stop_at = budget_end if deadline is None else min(budget_end, deadline)

        attempt = 0
        transient_errors = 0
        absent_checks = 0
        last_state: Optional[str] = None

        if policy.delay > 0:
            if self.sleep(min(policy.delay, max(stop_at - start, 0.0)), cancel_event):
                return Cancelled("cancelled by caller", last_state)

        while True:
            if cancel_event.is_set():
                return Cancelled("cancelled by caller", last_state)

            try:
                result = prober.probe()
            except Exception as e:
                if not backoff.is_transient(e):
                    raise
                transient_errors += 1
                logger.warning(
                    f"Transient error probing {object_id} "
                    f"({transient_errors}/{policy.max_transient_errors}): {e}",
                    extra=log_extra,
                )
                if transient_errors > policy.max_transient_errors:
                    return Failed(
                        f"giving up after {transient_errors} consecutive transient errors: {e}",
                        last_state,
                        error=e,
                    )
            else:
                transient_errors = 0
                label = state_label(result)
                classification = classifier.classify(label)
                if label != last_state:
                    logger.debug(f"{object_id} is {label} ({classification.value})", extra=log_extra)
                last_state = label

                if classification is Classification.SUCCESS:
                    return Succeeded(result)

                if classification is Classification.FAILURE:
                    reason = classifier.failure_reason(label)
                    detail = getattr(result, 'failure_reason', None)
                    if detail:
                        reason = f"{reason}: {detail}"
                    return Failed(reason, label)

                if label == ABSENT_LABEL:
                    absent_checks += 1
                    if absent_checks > policy.not_found_checks:
                        return Failed(
                            f"not found after {policy.not_found_checks} consecutive checks",
                            label,
                        )
                else:
                    absent_checks = 0

            now = self.clock()
            if now >= budget_end:
                logger.debug(f"Timed out waiting for {object_id} after {now - start:.1f}s", extra=log_extra)
                return TimedOut(last_state, now - start)
            if deadline is not None and now >= deadline:
                return Cancelled("deadline exceeded", last_state)

            delay = min(backoff.get_delay(attempt), stop_at - now)
            attempt += 1
            if self.sleep(delay, cancel_event):
                return Cancelled("cancelled by caller", last_state)
