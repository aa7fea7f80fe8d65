"""
Tests for ssl_handshake_check.models module.

Tests CheckTarget validation and HandshakeResult classification.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from ssl_handshake_check.errors import (
    CertParseError,
    CheckCancelledError,
    CheckTimeoutError,
    ConfigError,
    FileReadError,
    HandshakeError,
    NetworkError,
    NoTrustStoreError,
    SchemeError,
)
from ssl_handshake_check.models import CheckTarget, HandshakeResult, OutcomeKind


class TestCheckTarget:
    """Test CheckTarget model validation."""

    def test_valid_target(self) -> None:
        """Should build a target and expose its https URL."""
        target = CheckTarget(domain_name='kuberhealthy.io', port='8443', timeout=timedelta(seconds=30))

        assert target.site_url == 'https://kuberhealthy.io:8443'
        assert target.self_signed is False

    @pytest.mark.parametrize('domain_name', ['', '   '])
    def test_blank_domain_rejected(self, domain_name: str) -> None:
        """Should reject empty and whitespace-only domain names."""
        with pytest.raises(ValidationError):
            CheckTarget(domain_name=domain_name, port='443', timeout=timedelta(seconds=1))

    def test_blank_port_rejected(self) -> None:
        """Should reject an empty port."""
        with pytest.raises(ValidationError):
            CheckTarget(domain_name='example.com', port='', timeout=timedelta(seconds=1))

    def test_port_not_validated_as_number(self) -> None:
        """Should keep a non-numeric port for the dial to reject."""
        target = CheckTarget(domain_name='example.com', port='https', timeout=timedelta(seconds=1))

        assert target.site_url == 'https://example.com:https'

    @pytest.mark.parametrize('seconds', [0, -5])
    def test_non_positive_timeout_rejected(self, seconds: int) -> None:
        """Should reject zero and negative timeouts."""
        with pytest.raises(ValidationError, match='timeout must be positive'):
            CheckTarget(domain_name='example.com', port='443', timeout=timedelta(seconds=seconds))

    def test_frozen(self) -> None:
        """Should reject attribute assignment."""
        target = CheckTarget(domain_name='example.com', port='443', timeout=timedelta(seconds=1))

        with pytest.raises(ValidationError):
            target.port = '80'  # type: ignore[misc]

    def test_extra_fields_forbidden(self) -> None:
        """Should reject unknown fields."""
        with pytest.raises(ValidationError):
            CheckTarget(
                domain_name='example.com',
                port='443',
                timeout=timedelta(seconds=1),
                scheme='http',  # type: ignore[call-arg]
            )


class TestHandshakeResult:
    """Test HandshakeResult constructors and classification."""

    def test_success(self) -> None:
        """Should be ok with no reason."""
        result: HandshakeResult = HandshakeResult.success()

        assert result.ok is True
        assert result.reason is None

    def test_failure_defaults_to_handshake(self) -> None:
        """Should default failures to the HANDSHAKE kind."""
        result: HandshakeResult = HandshakeResult.failure('bad cert')

        assert result.ok is False
        assert result.kind is OutcomeKind.HANDSHAKE
        assert result.reason == 'bad cert'

    def test_failure_cannot_be_success(self) -> None:
        """Should refuse a failure of kind SUCCESS."""
        with pytest.raises(ValueError):
            HandshakeResult.failure('nope', OutcomeKind.SUCCESS)

    @pytest.mark.parametrize(
        ('error', 'kind'),
        [
            (ConfigError('DOMAIN_NAME environment variable has not been set'), OutcomeKind.CONFIG),
            (FileReadError('unreadable', path='/x'), OutcomeKind.TRUST_POOL),
            (CertParseError('no certs'), OutcomeKind.TRUST_POOL),
            (NoTrustStoreError('no store'), OutcomeKind.TRUST_POOL),
            (NetworkError('connection refused'), OutcomeKind.NETWORK),
            (HandshakeError('certificate verification failed'), OutcomeKind.HANDSHAKE),
            (SchemeError('not https'), OutcomeKind.HANDSHAKE),
            (CheckTimeoutError('too slow'), OutcomeKind.TIMEOUT),
            (CheckCancelledError('interrupted'), OutcomeKind.CANCELLED),
        ],
    )
    def test_from_error_classifies(self, error: Exception, kind: OutcomeKind) -> None:
        """Should map each error class to its outcome kind and keep the message."""
        result: HandshakeResult = HandshakeResult.from_error(error)

        assert result.kind is kind
        assert result.reason == str(error)

    def test_from_error_unknown_is_handshake(self) -> None:
        """Should treat foreign exceptions as handshake failures."""
        result: HandshakeResult = HandshakeResult.from_error(RuntimeError())

        assert result.kind is OutcomeKind.HANDSHAKE
        assert result.reason == 'RuntimeError'
