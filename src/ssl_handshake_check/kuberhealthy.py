# ssl_handshake_check/kuberhealthy.py
"""
Kuberhealthy collaborators: deadline, readiness gate and result reporting.

Kuberhealthy runs each check as a pod and injects three environment variables:

- KH_REPORTING_URL: where the check POSTs its result
- KH_RUN_UUID: identifies this run; sent back in the `kh-run-uuid` header
- KH_CHECK_RUN_DEADLINE: unix timestamp by which the result must arrive

Retry Behavior:
---------------
Reports are retried on transient failures (transport errors and 5xx) with
exponential backoff. Any other non-2xx status fails immediately. The
readiness gate polls the reporting host at a fixed interval until it answers
or the gate's timeout elapses.
"""

import logging
import os
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from types import TracebackType
from typing import Any, Final, Protocol, Self

import httpx
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_fixed,
)

from ssl_handshake_check.errors import ReporterError

__all__: list[str] = [
    'KH_CHECK_RUN_DEADLINE_ENV',
    'KH_REPORTING_URL_ENV',
    'KH_RUN_UUID_ENV',
    'KuberhealthyReporter',
    'ResultReporter',
    'TransientReporterError',
    'get_deadline',
    'wait_for_kuberhealthy',
]

logger: logging.Logger = logging.getLogger(__name__)

KH_REPORTING_URL_ENV: Final[str] = 'KH_REPORTING_URL'
KH_RUN_UUID_ENV: Final[str] = 'KH_RUN_UUID'
KH_CHECK_RUN_DEADLINE_ENV: Final[str] = 'KH_CHECK_RUN_DEADLINE'

RUN_UUID_HEADER: Final[str] = 'kh-run-uuid'

HTTP_STATUS_SERVER_ERROR_MIN: Final[int] = 500

RETRY_BACKOFF_MIN_SECONDS: Final[float] = 1.0
RETRY_BACKOFF_MAX_SECONDS: Final[float] = 10.0
READINESS_POLL_INTERVAL_SECONDS: Final[float] = 1.0


class TransientReporterError(ReporterError):
    """Raised for reporter failures that should be retried."""

    pass


class ResultReporter(Protocol):
    """Sink for the terminal result of a check run."""

    def report_success(self) -> None: ...

    def report_failure(self, reasons: Sequence[str]) -> None: ...


# =============================================================================
# Deadline Provider
# =============================================================================


def get_deadline(environ: Mapping[str, str] | None = None) -> datetime:
    """
    Return the deadline Kuberhealthy set for this run.

    Args:
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Timezone-aware UTC deadline.

    Raises:
        ReporterError: If KH_CHECK_RUN_DEADLINE is unset or not a unix timestamp.
    """
    env: Mapping[str, str] = os.environ if environ is None else environ
    raw_deadline: str = env.get(KH_CHECK_RUN_DEADLINE_ENV, '')

    if not raw_deadline:
        raise ReporterError(f'{KH_CHECK_RUN_DEADLINE_ENV} environment variable has not been set')

    try:
        return datetime.fromtimestamp(int(raw_deadline), tz=UTC)
    except (ValueError, OverflowError, OSError) as error:
        raise ReporterError(
            f'unable to parse {KH_CHECK_RUN_DEADLINE_ENV} {raw_deadline!r}: {error}'
        ) from error


# =============================================================================
# Readiness Gate
# =============================================================================


def wait_for_kuberhealthy(
    reporting_url: str,
    timeout_seconds: float,
    http_client: httpx.Client | None = None,
) -> None:
    """
    Block until the Kuberhealthy reporting host answers HTTP requests.

    Any HTTP response counts as reachable, since the reporting endpoint only
    accepts POSTs from registered runs. Used to let a freshly started node
    finish joining the cluster network before the check runs.

    Args:
        reporting_url: The KH_REPORTING_URL of this run.
        timeout_seconds: Maximum time to keep polling.
        http_client: Optional client, for tests.

    Raises:
        ReporterError: If the host did not answer within timeout_seconds.
    """
    readiness_url: httpx.URL = httpx.URL(reporting_url).join('/')
    client: httpx.Client = http_client or httpx.Client(timeout=READINESS_POLL_INTERVAL_SECONDS * 5)

    logger.info('Waiting for Kuberhealthy at %s to be reachable...', readiness_url)
    try:
        for attempt in Retrying(
            retry=retry_if_exception_type(httpx.TransportError),
            wait=wait_fixed(READINESS_POLL_INTERVAL_SECONDS),
            stop=stop_after_delay(timeout_seconds),
        ):
            with attempt:
                client.get(readiness_url)
    except RetryError as error:
        last_error: BaseException | None = error.last_attempt.exception()
        raise ReporterError(
            f'Kuberhealthy was not reachable within {timeout_seconds}s: {last_error}'
        ) from error
    finally:
        if http_client is None:
            client.close()

    logger.info('Kuberhealthy is reachable')


# =============================================================================
# Result Reporter
# =============================================================================


class KuberhealthyReporter:
    """
    Reports check results to the Kuberhealthy reporting endpoint.

    Example:
        >>> with KuberhealthyReporter.from_env() as reporter:
        ...     reporter.report_failure(['handshake failed'])
    """

    def __init__(
        self,
        reporting_url: str,
        run_uuid: str,
        request_timeout_seconds: float = 10.0,
        max_attempts: int = 5,
        http_client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize the reporter.

        Args:
            reporting_url: KH_REPORTING_URL of this run.
            run_uuid: KH_RUN_UUID of this run.
            request_timeout_seconds: Per-request timeout.
            max_attempts: Total attempts on transient failures.
            http_client: Optional preconfigured client, for tests.
        """
        self._reporting_url: str = reporting_url
        self._run_uuid: str = run_uuid
        self._max_attempts: int = max_attempts
        self._http_client: httpx.Client = http_client or httpx.Client(
            timeout=request_timeout_seconds
        )

        logger.debug('Initialized KuberhealthyReporter: reporting_url=%r', reporting_url)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        request_timeout_seconds: float = 10.0,
        max_attempts: int = 5,
    ) -> Self:
        """
        Build a reporter from the KH_REPORTING_URL and KH_RUN_UUID variables.

        Raises:
            ReporterError: If either variable is unset.
        """
        env: Mapping[str, str] = os.environ if environ is None else environ

        reporting_url: str = env.get(KH_REPORTING_URL_ENV, '')
        if not reporting_url:
            raise ReporterError(f'{KH_REPORTING_URL_ENV} environment variable has not been set')

        run_uuid: str = env.get(KH_RUN_UUID_ENV, '')
        if not run_uuid:
            raise ReporterError(f'{KH_RUN_UUID_ENV} environment variable has not been set')

        return cls(
            reporting_url,
            run_uuid,
            request_timeout_seconds=request_timeout_seconds,
            max_attempts=max_attempts,
        )

    @property
    def reporting_url(self) -> str:
        return self._reporting_url

    def close(self) -> None:
        self._http_client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def report_success(self) -> None:
        """
        Report that the check passed.

        Raises:
            ReporterError: If Kuberhealthy did not accept the report.
        """
        self._send_report({'OK': True, 'Errors': []})
        logger.info('Successfully reported success status to Kuberhealthy servers')

    def report_failure(self, reasons: Sequence[str]) -> None:
        """
        Report that the check failed.

        Args:
            reasons: Human-readable failure reasons.

        Raises:
            ReporterError: If Kuberhealthy did not accept the report.
        """
        self._send_report({'OK': False, 'Errors': list(reasons)})
        logger.info('Successfully reported failure status to Kuberhealthy servers')

    def _send_report(self, payload: dict[str, Any]) -> None:
        try:
            for attempt in Retrying(
                retry=retry_if_exception_type(TransientReporterError),
                wait=wait_exponential(
                    min=RETRY_BACKOFF_MIN_SECONDS, max=RETRY_BACKOFF_MAX_SECONDS
                ),
                stop=stop_after_attempt(self._max_attempts),
                reraise=True,
            ):
                with attempt:
                    self._post_once(payload)
        except ReporterError as error:
            logger.error('Error reporting status to Kuberhealthy servers: %s', error)
            raise

    def _post_once(self, payload: dict[str, Any]) -> None:
        try:
            response: httpx.Response = self._http_client.post(
                self._reporting_url,
                json=payload,
                headers={RUN_UUID_HEADER: self._run_uuid},
            )
        except httpx.TransportError as error:
            logger.warning('Error sending report (will retry): %s', error)
            raise TransientReporterError(f'error sending report: {error}') from error

        if response.status_code >= HTTP_STATUS_SERVER_ERROR_MIN:
            logger.warning(
                'Kuberhealthy server error %d (will retry): %s',
                response.status_code,
                response.text[:200],
            )
            raise TransientReporterError(
                f'bad status code from kuberhealthy status reporting url: {response.status_code}',
                status_code=response.status_code,
            )

        if not response.is_success:
            raise ReporterError(
                f'bad status code from kuberhealthy status reporting url: {response.status_code}',
                status_code=response.status_code,
            )
