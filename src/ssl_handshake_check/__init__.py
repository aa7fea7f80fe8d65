# ssl_handshake_check/__init__.py
"""
SSL Handshake Check - Kuberhealthy check verifying TLS endpoints.

The check completes one verified TLS handshake against DOMAIN_NAME:PORT and
reports pass/fail to Kuberhealthy.

Trust Selection:
    - A CA mounted at the self-signed path is the ONLY trust anchor
    - Otherwise the system trust store, plus the cluster CA when readable

Handshake Semantics:
    - Fixed 10 second TCP connect timeout
    - Certificate and hostname verification always on, TLS 1.2 minimum
    - One attempt per run, raced against the Kuberhealthy deadline and
      external cancellation; exactly one result is reported

Quick Start:
    >>> from ssl_handshake_check import CheckSettings, build_trust_pool
    >>> from ssl_handshake_check import ssl_handshake_with_trust_anchors
    >>>
    >>> pool = build_trust_pool(CheckSettings().trust)
    >>> ssl_handshake_with_trust_anchors('https://example.com:443', pool)
"""

__version__ = '0.1.0'

from ssl_handshake_check.checker import HandshakeChecker, OutcomeSlot
from ssl_handshake_check.common import setup_logger
from ssl_handshake_check.config import CheckSettings, TrustConfig, load_settings, parse_check_target
from ssl_handshake_check.errors import (
    CertParseError,
    CheckCancelledError,
    CheckTimeoutError,
    ConfigError,
    FileReadError,
    HandshakeError,
    NetworkError,
    NoTrustStoreError,
    ReporterError,
    SchemeError,
    SSLCheckError,
    TrustPoolError,
)
from ssl_handshake_check.handshake import ssl_handshake, ssl_handshake_with_trust_anchors
from ssl_handshake_check.kuberhealthy import KuberhealthyReporter, ResultReporter
from ssl_handshake_check.models import CheckTarget, HandshakeResult, OutcomeKind, TrustMode
from ssl_handshake_check.trust_pool import TrustAnchorSet, build_trust_pool

__all__: list[str] = [
    'CertParseError',
    'CheckCancelledError',
    'CheckSettings',
    'CheckTarget',
    'CheckTimeoutError',
    'ConfigError',
    'FileReadError',
    'HandshakeChecker',
    'HandshakeError',
    'HandshakeResult',
    'KuberhealthyReporter',
    'NetworkError',
    'NoTrustStoreError',
    'OutcomeKind',
    'OutcomeSlot',
    'ReporterError',
    'ResultReporter',
    'SSLCheckError',
    'SchemeError',
    'TrustAnchorSet',
    'TrustConfig',
    'TrustMode',
    'TrustPoolError',
    '__version__',
    'build_trust_pool',
    'load_settings',
    'parse_check_target',
    'setup_logger',
    'ssl_handshake',
    'ssl_handshake_with_trust_anchors',
]
