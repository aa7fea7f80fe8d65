# ssl_handshake_check/cli.py
"""
Process entry point for the ssl-handshake-check Kuberhealthy check.

Exit codes follow the Kuberhealthy check contract: once a result (pass or
fail) has been reported the process exits 0. It exits 1 only when no result
could be delivered at all.
"""

import logging
import signal
import sys
from types import FrameType
from typing import Any

import yaml

from ssl_handshake_check.checker import HandshakeChecker
from ssl_handshake_check.common import setup_logger
from ssl_handshake_check.config import CheckSettings, load_settings, parse_check_target
from ssl_handshake_check.errors import ConfigError, ReporterError
from ssl_handshake_check.kuberhealthy import KuberhealthyReporter, wait_for_kuberhealthy
from ssl_handshake_check.models import CheckTarget

__all__: list[str] = ['main']

logger: logging.Logger = logging.getLogger(__name__)


def _report_failure_and_exit(reporter: KuberhealthyReporter, error: Exception) -> int:
    try:
        reporter.report_failure([str(error)])
    except ReporterError as report_error:
        logger.critical('error reporting failure to kuberhealthy: %s', report_error)
        return 1
    return 0


def _install_signal_handlers(checker: HandshakeChecker) -> dict[signal.Signals, Any]:
    """Route SIGINT and SIGTERM to checker.cancel(), returning the old handlers."""

    def _handle_signal(signum: int, _frame: FrameType | None) -> None:
        logger.info('Received %s', signal.Signals(signum).name)
        checker.cancel()

    previous_handlers: dict[signal.Signals, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous_handlers[signum] = signal.signal(signum, _handle_signal)
    return previous_handlers


def run_check(settings: CheckSettings, reporter: KuberhealthyReporter) -> int:
    """
    Parse the target, wait for Kuberhealthy and run one reported check.

    Returns:
        Process exit code.
    """
    try:
        target: CheckTarget = parse_check_target(settings.handshake)
    except ConfigError as error:
        logger.error('Configuration error: %s', error)
        return _report_failure_and_exit(reporter, error)

    try:
        wait_for_kuberhealthy(
            reporter.reporting_url,
            settings.handshake.node_ready_timeout_seconds,
        )
    except ReporterError as error:
        logger.error('Failed to reach Kuberhealthy: %s', error)

    checker = HandshakeChecker(target, settings, reporter)
    previous_handlers: dict[signal.Signals, Any] = _install_signal_handlers(checker)
    try:
        checker.run()
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)
    return 0


def main() -> int:
    """Entry point for the ssl-handshake-check console script."""
    try:
        settings: CheckSettings = load_settings()
    except (OSError, ValueError, yaml.YAMLError) as error:
        setup_logger()
        logger.critical('Unable to load settings: %s', error)
        return 1

    setup_logger(config=settings.logging)

    try:
        reporter = KuberhealthyReporter.from_env(
            request_timeout_seconds=settings.reporter.request_timeout_seconds,
            max_attempts=settings.reporter.max_attempts,
        )
    except ReporterError as error:
        logger.critical('Unable to configure Kuberhealthy reporting: %s', error)
        return 1

    with reporter:
        return run_check(settings, reporter)


if __name__ == '__main__':
    sys.exit(main())
