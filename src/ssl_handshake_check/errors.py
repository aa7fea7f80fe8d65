# ssl_handshake_check/errors.py
"""
Exception hierarchy for the SSL handshake check.

Every failure mode of a check run maps to exactly one exception class below.
All of them are terminal for a single run: nothing in this package retries the
handshake. Catch SSLCheckError to handle any check failure, or a subclass for
more specific handling.

Hierarchy:
----------
    SSLCheckError
    ├── ConfigError            missing/malformed environment input
    ├── TrustPoolError         trust anchors could not be built
    │   ├── FileReadError
    │   ├── CertParseError
    │   └── NoTrustStoreError
    ├── NetworkError           DNS or TCP connect failure
    ├── HandshakeError         TLS negotiation or verification failure
    │   └── SchemeError
    ├── CheckTimeoutError      overall deadline elapsed
    ├── CheckCancelledError    external interrupt
    └── ReporterError          Kuberhealthy could not be reached
"""

__all__: list[str] = [
    'CertParseError',
    'CheckCancelledError',
    'CheckTimeoutError',
    'ConfigError',
    'FileReadError',
    'HandshakeError',
    'NetworkError',
    'NoTrustStoreError',
    'ReporterError',
    'SSLCheckError',
    'SchemeError',
    'TrustPoolError',
]


class SSLCheckError(Exception):
    """Base exception for all SSL handshake check failures."""

    pass


class ConfigError(SSLCheckError):
    """
    Raised when required configuration is missing or malformed.

    Fatal: the run aborts before any network activity.
    """

    pass


# =============================================================================
# Trust Pool Errors
# =============================================================================


class TrustPoolError(SSLCheckError):
    """
    Raised when the set of trust anchors cannot be constructed.

    Attributes:
        path: Filesystem path involved in the failure, if any.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path: str | None = path


class FileReadError(TrustPoolError):
    """Raised when a certificate file exists but cannot be read."""

    pass


class CertParseError(TrustPoolError):
    """Raised when a certificate file holds no parseable PEM certificate."""

    pass


class NoTrustStoreError(TrustPoolError):
    """Raised when the platform's system trust store cannot be obtained."""

    pass


# =============================================================================
# Handshake Errors
# =============================================================================


class NetworkError(SSLCheckError):
    """Raised when the target cannot be resolved or the TCP dial fails."""

    pass


class HandshakeError(SSLCheckError):
    """
    Raised when TLS negotiation fails.

    Covers expired certificates, untrusted chains, hostname mismatch and
    protocol version rejection.
    """

    pass


class SchemeError(HandshakeError):
    """Raised when the handshake target is not an https:// URL."""

    pass


class CheckTimeoutError(SSLCheckError):
    """Raised (or committed as the outcome) when the overall deadline elapses."""

    pass


class CheckCancelledError(SSLCheckError):
    """Committed as the outcome when the run is cancelled externally."""

    pass


class ReporterError(SSLCheckError):
    """
    Raised when a Kuberhealthy collaborator fails.

    Attributes:
        status_code: HTTP status code if a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code
