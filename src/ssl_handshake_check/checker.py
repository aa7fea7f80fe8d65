# ssl_handshake_check/checker.py
"""
Check orchestration: one handshake attempt raced against deadline and cancel.

The handshake runs in a daemon worker thread. Three parties race to commit
the run's outcome into a single-assignment OutcomeSlot:

1. The worker, with None (success) or the exception it raised.
2. The orchestrator, with CheckTimeoutError once the overall timeout elapses.
3. cancel(), with CheckCancelledError (from a signal handler or any thread).

The first offer wins; later offers are ignored. The orchestrator never waits
for an abandoned worker: the worker bounds its own TLS negotiation by the
same timeout, closes its socket and then offers into a slot that is already
filled, which is a no-op.

Usage:
------
    checker = HandshakeChecker(target, settings, reporter)
    signal.signal(signal.SIGTERM, lambda *_: checker.cancel())
    result = checker.run()
"""

import logging
import threading
from typing import Final

from ssl_handshake_check.config import CheckSettings
from ssl_handshake_check.errors import (
    CheckCancelledError,
    CheckTimeoutError,
    ReporterError,
)
from ssl_handshake_check.handshake import ssl_handshake_with_trust_anchors
from ssl_handshake_check.kuberhealthy import ResultReporter
from ssl_handshake_check.models import CheckTarget, HandshakeResult, OutcomeKind
from ssl_handshake_check.trust_pool import TrustAnchorSet, build_trust_pool

__all__: list[str] = [
    'CANCELLED_REASON',
    'TIMEOUT_REASON',
    'HandshakeChecker',
    'OutcomeSlot',
    'report_result',
]

logger: logging.Logger = logging.getLogger(__name__)

TIMEOUT_REASON: Final[str] = 'Failed to complete SSL handshake in time. Timeout was reached.'
CANCELLED_REASON: Final[str] = 'Cancelling check and shutting down due to interrupt.'

_UNSET: Final[object] = object()


class OutcomeSlot:
    """
    A single-assignment cell guarded by a condition variable.

    Holds None for a successful run or the exception that ended it.
    """

    def __init__(self) -> None:
        # Reentrant: cancel() may run in a signal handler on a thread that is
        # already inside wait().
        self._condition = threading.Condition(threading.RLock())
        self._value: object = _UNSET

    @property
    def is_set(self) -> bool:
        with self._condition:
            return self._value is not _UNSET

    def offer(self, outcome: Exception | None) -> bool:
        """
        Commit an outcome unless one is already committed.

        Returns:
            True if this offer won, False if it was discarded.
        """
        with self._condition:
            if self._value is not _UNSET:
                return False
            self._value = outcome
            self._condition.notify_all()
            return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until an outcome is committed or timeout elapses."""
        with self._condition:
            return self._condition.wait_for(lambda: self._value is not _UNSET, timeout)

    def get(self) -> Exception | None:
        """
        Return the committed outcome.

        Raises:
            RuntimeError: If nothing has been committed yet.
        """
        with self._condition:
            if self._value is _UNSET:
                raise RuntimeError('no outcome has been committed')
            return self._value  # type: ignore[return-value]


def report_result(reporter: ResultReporter, result: HandshakeResult) -> None:
    """
    Hand a result to the reporter, logging (not raising) reporting failures.

    A failure to report never changes the outcome already determined.
    """
    try:
        if result.ok:
            reporter.report_success()
        else:
            reporter.report_failure([result.reason or result.kind.value])
    except ReporterError as error:
        logger.error('Error reporting %s status to Kuberhealthy servers: %s', result.kind.value, error)


class HandshakeChecker:
    """
    Runs one SSL handshake check and reports its outcome exactly once.

    Each call to run() is an independent check run with its own trust pool
    and outcome slot. cancel() affects the run in progress, or the next run
    if called before it starts. Each cancellation ends exactly one run; later
    runs proceed normally.

    Example:
        >>> checker = HandshakeChecker(target, CheckSettings(), reporter)
        >>> checker.run().ok
        True
    """

    def __init__(
        self,
        target: CheckTarget,
        settings: CheckSettings,
        reporter: ResultReporter,
    ) -> None:
        self._target: CheckTarget = target
        self._settings: CheckSettings = settings
        self._reporter: ResultReporter = reporter
        self._cancel_requested = threading.Event()
        self._slot_lock = threading.RLock()
        self._current_slot: OutcomeSlot | None = None

    @property
    def target(self) -> CheckTarget:
        return self._target

    def cancel(self) -> None:
        """Request cancellation of the current (or next) run."""
        self._cancel_requested.set()
        with self._slot_lock:
            slot: OutcomeSlot | None = self._current_slot
        if slot is not None and slot.offer(CheckCancelledError(CANCELLED_REASON)):
            logger.info(CANCELLED_REASON)

    def run(self) -> HandshakeResult:
        """
        Run the check, report the outcome and return it.

        Returns:
            The committed HandshakeResult.
        """
        result: HandshakeResult = self.execute()

        if result.ok:
            logger.info('SSL handshake check for %s succeeded', self._target.site_url)
        else:
            logger.error(
                'Error completing SSL handshake check for %s: %s',
                self._target.domain_name,
                result.reason,
            )

        report_result(self._reporter, result)
        return result

    def execute(self) -> HandshakeResult:
        """
        Run the check without reporting it.

        Returns:
            The outcome committed first by the worker, the deadline or
            cancellation.
        """
        # Publish the slot before checking for cancellation, so a cancel()
        # arriving in between either sees the slot or sets the flag we read.
        slot = OutcomeSlot()
        with self._slot_lock:
            self._current_slot = slot

        try:
            if self._cancel_requested.is_set():
                if slot.offer(CheckCancelledError(CANCELLED_REASON)):
                    logger.info(CANCELLED_REASON)
            else:
                self._race_worker(slot)

            outcome: Exception | None = slot.get()
        finally:
            with self._slot_lock:
                self._current_slot = None
                # A cancellation is consumed by the run it decided
                self._cancel_requested.clear()

        if outcome is None:
            return HandshakeResult.success()
        return HandshakeResult.from_error(outcome)

    def _race_worker(self, slot: OutcomeSlot) -> None:
        timeout_seconds: float = self._target.timeout.total_seconds()
        worker = threading.Thread(
            target=self._run_worker,
            args=(slot, timeout_seconds),
            name=f'ssl-handshake-{self._target.domain_name}',
            daemon=True,
        )
        worker.start()

        if not slot.wait(timeout_seconds) and slot.offer(CheckTimeoutError(TIMEOUT_REASON)):
            logger.info('Cancelling check and shutting down due to timeout.')

    def _run_worker(self, slot: OutcomeSlot, handshake_timeout: float) -> None:
        outcome: Exception | None = None
        try:
            self._do_checks(handshake_timeout)
        except Exception as error:  # noqa: BLE001 - every failure becomes the outcome
            outcome = error

        if not slot.offer(outcome):
            logger.debug('Discarding handshake result that arrived after the run was decided: %r', outcome)

    def _do_checks(self, handshake_timeout: float) -> None:
        trust_anchors: TrustAnchorSet = build_trust_pool(
            self._settings.trust, self_signed=self._target.self_signed
        )
        logger.debug(
            'Trust pool ready: mode=%s, extra_certs=%d, system_store=%s',
            trust_anchors.mode.value,
            trust_anchors.certificate_count,
            trust_anchors.includes_system_store,
        )
        ssl_handshake_with_trust_anchors(
            self._target.site_url,
            trust_anchors,
            connect_timeout=self._settings.handshake.connect_timeout_seconds,
            handshake_timeout=handshake_timeout,
        )
