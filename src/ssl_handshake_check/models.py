# ssl_handshake_check/models.py
"""
Immutable domain models for a single SSL handshake check run.

CheckTarget describes what to check, HandshakeResult describes how the run
ended. Both are frozen: a target is built once from validated configuration,
and a result is produced exactly once per run and handed straight to the
reporter.
"""

import logging
from datetime import timedelta
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ssl_handshake_check.errors import (
    CheckCancelledError,
    CheckTimeoutError,
    ConfigError,
    HandshakeError,
    NetworkError,
    TrustPoolError,
)

__all__: list[str] = [
    'CheckTarget',
    'HandshakeResult',
    'OutcomeKind',
    'TrustMode',
]

logger: logging.Logger = logging.getLogger(__name__)


class TrustMode(str, Enum):
    """Which trust anchors a check verifies against."""

    SELF_SIGNED = 'self_signed'
    SYSTEM = 'system'


class OutcomeKind(str, Enum):
    """Terminal outcome categories of a check run."""

    SUCCESS = 'success'
    CONFIG = 'config'
    TRUST_POOL = 'trust_pool'
    NETWORK = 'network'
    HANDSHAKE = 'handshake'
    TIMEOUT = 'timeout'
    CANCELLED = 'cancelled'


# Most specific classes first; the first isinstance match wins.
_ERROR_KINDS: tuple[tuple[type[Exception], OutcomeKind], ...] = (
    (ConfigError, OutcomeKind.CONFIG),
    (TrustPoolError, OutcomeKind.TRUST_POOL),
    (NetworkError, OutcomeKind.NETWORK),
    (HandshakeError, OutcomeKind.HANDSHAKE),
    (CheckTimeoutError, OutcomeKind.TIMEOUT),
    (CheckCancelledError, OutcomeKind.CANCELLED),
)


class CheckTarget(BaseModel):
    """
    The host and port to verify, and how long the whole run may take.

    Attributes:
        domain_name: Hostname (or IP literal) of the TLS endpoint.
        port: TCP port as given in the environment. Not validated as a
            number; an invalid value surfaces as a connection failure.
        self_signed: Operator flag declaring that a self-signed CA is mounted.
        timeout: Overall deadline for the handshake attempt.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    domain_name: str = Field(min_length=1)
    port: str = Field(min_length=1)
    self_signed: bool = False
    timeout: timedelta

    @field_validator('domain_name', 'port')
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        """Reject whitespace-only values."""
        if not value.strip():
            raise ValueError('value cannot be blank')
        return value

    @field_validator('timeout')
    @classmethod
    def validate_timeout_positive(cls, timeout: timedelta) -> timedelta:
        if timeout <= timedelta(0):
            raise ValueError(f'timeout must be positive, got: {timeout}')
        return timeout

    @property
    def site_url(self) -> str:
        """The https:// URL the handshake is performed against."""
        return f'https://{self.domain_name}:{self.port}'


class HandshakeResult(BaseModel):
    """
    Terminal outcome of one check run.

    Attributes:
        kind: Outcome category. SUCCESS for a verified handshake.
        reason: Human-readable failure reason, None on success.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    kind: OutcomeKind
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """True only if the handshake completed and verified."""
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls) -> Self:
        return cls(kind=OutcomeKind.SUCCESS)

    @classmethod
    def failure(cls, reason: str, kind: OutcomeKind = OutcomeKind.HANDSHAKE) -> Self:
        if kind is OutcomeKind.SUCCESS:
            raise ValueError('a failure result cannot have kind SUCCESS')
        return cls(kind=kind, reason=reason)

    @classmethod
    def from_error(cls, error: Exception) -> Self:
        """
        Classify an exception raised (or committed) during a run.

        Exceptions outside the package hierarchy are treated as handshake
        failures, since they can only come from the TLS stack.

        Args:
            error: The exception that ended the run.

        Returns:
            A failure result carrying the error message as its reason.
        """
        for error_type, kind in _ERROR_KINDS:
            if isinstance(error, error_type):
                return cls.failure(str(error), kind)

        logger.debug('Unclassified error %r, treating as handshake failure', error)
        return cls.failure(str(error) or type(error).__name__, OutcomeKind.HANDSHAKE)
