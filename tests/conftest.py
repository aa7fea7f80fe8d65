"""
Shared pytest fixtures for ssl_handshake_check tests.

Certificates are generated per test with `cryptography`, and TLS
servers run on the loopback interface in background threads, so no test
needs network access or real filesystem mounts.
"""

import ipaddress
import logging
import socket
import ssl
import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ssl_handshake_check.common.logger import PACKAGE_LOGGER_NAME
from ssl_handshake_check.config import CheckSettings, TrustConfig
from ssl_handshake_check.models import CheckTarget

LOOPBACK_HOST: str = '127.0.0.1'

# =============================================================================
# Certificate Helpers
# =============================================================================


@dataclass(frozen=True)
class IssuedCert:
    """A certificate with its private key, and PEM files written to disk."""

    certificate: x509.Certificate
    private_key: ec.EllipticCurvePrivateKey
    cert_path: Path
    key_path: Path

    @property
    def cert_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _write_pair(
    directory: Path,
    stem: str,
    certificate: x509.Certificate,
    private_key: ec.EllipticCurvePrivateKey,
) -> IssuedCert:
    directory.mkdir(parents=True, exist_ok=True)
    cert_path: Path = directory / f'{stem}.crt'
    key_path: Path = directory / f'{stem}.key'
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return IssuedCert(certificate, private_key, cert_path, key_path)


def _server_sans(hosts: Sequence[str]) -> x509.SubjectAlternativeName:
    names: list[x509.GeneralName] = []
    for host in hosts:
        try:
            names.append(x509.IPAddress(ipaddress.ip_address(host)))
        except ValueError:
            names.append(x509.DNSName(host))
    return x509.SubjectAlternativeName(names)


def make_ca(
    directory: Path,
    common_name: str = 'Test Root CA',
    hosts: Sequence[str] = (),
) -> IssuedCert:
    """Create a self-signed certificate authority.

    With hosts, the CA doubles as a self-signed server certificate for them.
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    now: datetime = datetime.now(UTC)
    builder: x509.CertificateBuilder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(common_name))
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        )
    )
    if hosts:
        builder = builder.add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        ).add_extension(_server_sans(hosts), critical=False)

    certificate: x509.Certificate = builder.sign(private_key, hashes.SHA256())
    return _write_pair(directory, 'ca', certificate, private_key)


def make_server_cert(
    directory: Path,
    issuer: IssuedCert,
    hosts: Sequence[str] = (LOOPBACK_HOST, 'localhost'),
    valid_for: timedelta = timedelta(days=30),
) -> IssuedCert:
    """Create a server certificate for hosts, signed by issuer."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    now: datetime = datetime.now(UTC)
    not_valid_before: datetime = min(now - timedelta(days=1), now + valid_for - timedelta(days=1))
    certificate: x509.Certificate = (
        x509.CertificateBuilder()
        .subject_name(_name(hosts[0]))
        .issuer_name(issuer.certificate.subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_valid_before)
        .not_valid_after(now + valid_for)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(_server_sans(hosts), critical=False)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.private_key.public_key()),
            critical=False,
        )
        .sign(issuer.private_key, hashes.SHA256())
    )
    return _write_pair(directory, 'server', certificate, private_key)


# =============================================================================
# Loopback Servers
# =============================================================================


class TLSTestServer:
    """Loopback TLS server that completes handshakes and hangs up."""

    def __init__(
        self,
        server_cert: IssuedCert,
        maximum_version: ssl.TLSVersion | None = None,
    ) -> None:
        self._context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self._context.load_cert_chain(server_cert.cert_path, server_cert.key_path)
        if maximum_version is not None:
            self._context.minimum_version = ssl.TLSVersion.MINIMUM_SUPPORTED
            self._context.maximum_version = maximum_version
        self._listener: socket.socket = socket.create_server((LOOPBACK_HOST, 0))
        self._listener.settimeout(0.1)
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self.handshakes_completed: int = 0

    @property
    def port(self) -> int:
        return self._listener.getsockname()[1]

    def start(self) -> 'TLSTestServer':
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=5)
        self._listener.close()

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                connection, _ = self._listener.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            connection.settimeout(5)
            try:
                with self._context.wrap_socket(connection, server_side=True):
                    self.handshakes_completed += 1
            except (ssl.SSLError, OSError):
                # Clients rejecting our certificate end up here
                connection.close()


@dataclass
class StallingServer:
    """Loopback TCP server that accepts connections and never answers."""

    listener: socket.socket = field(default_factory=lambda: socket.create_server((LOOPBACK_HOST, 0)))
    client_closed: threading.Event = field(default_factory=threading.Event)
    _connections: list[socket.socket] = field(default_factory=list)
    _stopped: threading.Event = field(default_factory=threading.Event)

    @property
    def port(self) -> int:
        return self.listener.getsockname()[1]

    def start(self) -> 'StallingServer':
        self.listener.settimeout(0.1)
        threading.Thread(target=self._serve, daemon=True).start()
        return self

    def stop(self) -> None:
        self._stopped.set()
        for connection in self._connections:
            connection.close()
        self.listener.close()

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                connection, _ = self.listener.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            self._connections.append(connection)
            threading.Thread(target=self._drain, args=(connection,), daemon=True).start()

    def _drain(self, connection: socket.socket) -> None:
        # Read and discard until the client hangs up
        try:
            while connection.recv(4096):
                pass
        except OSError:
            return
        self.client_closed.set()


# =============================================================================
# Reporter Double
# =============================================================================


class RecordingReporter:
    """ResultReporter that records every report it receives."""

    def __init__(self) -> None:
        self.reports: list[tuple[bool, list[str]]] = []

    def report_success(self) -> None:
        self.reports.append((True, []))

    def report_failure(self, reasons: Sequence[str]) -> None:
        self.reports.append((False, list(reasons)))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Drop handlers installed by setup_logger so they never outlive a test."""
    yield
    package_logger: logging.Logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for certificate files."""
    return tmp_path


@pytest.fixture
def test_ca(temp_dir: Path) -> IssuedCert:
    """Provide a certificate authority the tests control."""
    return make_ca(temp_dir / 'test-ca')


@pytest.fixture
def other_ca(temp_dir: Path) -> IssuedCert:
    """Provide a second, unrelated certificate authority."""
    return make_ca(temp_dir / 'other-ca', common_name='Other Root CA')


@pytest.fixture
def server_cert(temp_dir: Path, test_ca: IssuedCert) -> IssuedCert:
    """Provide a loopback server certificate issued by test_ca."""
    return make_server_cert(temp_dir / 'server', test_ca)


@pytest.fixture
def tls_server(server_cert: IssuedCert) -> Iterator[TLSTestServer]:
    """Provide a running loopback TLS server presenting server_cert."""
    server = TLSTestServer(server_cert).start()
    yield server
    server.stop()


@pytest.fixture
def stalling_server() -> Iterator[StallingServer]:
    """Provide a running loopback server that never completes a handshake."""
    server = StallingServer().start()
    yield server
    server.stop()


@pytest.fixture
def missing_paths_trust_config(temp_dir: Path) -> TrustConfig:
    """Provide a TrustConfig whose self-signed and cluster CA files do not exist."""
    return TrustConfig(
        self_signed_cert_path=temp_dir / 'absent' / 'certificate.crt',
        cluster_ca_path=temp_dir / 'absent' / 'ca.crt',
    )


@pytest.fixture
def self_signed_trust_config(temp_dir: Path, test_ca: IssuedCert) -> TrustConfig:
    """Provide a TrustConfig with test_ca mounted as the self-signed CA."""
    return TrustConfig(
        self_signed_cert_path=test_ca.cert_path,
        cluster_ca_path=temp_dir / 'absent' / 'ca.crt',
    )


@pytest.fixture
def cluster_ca_trust_config(temp_dir: Path, test_ca: IssuedCert) -> TrustConfig:
    """Provide a TrustConfig in system mode with test_ca as the cluster CA."""
    return TrustConfig(
        self_signed_cert_path=temp_dir / 'absent' / 'certificate.crt',
        cluster_ca_path=test_ca.cert_path,
    )


@pytest.fixture
def reporter() -> RecordingReporter:
    """Provide a reporter that records reports."""
    return RecordingReporter()


def make_target(port: int, timeout_seconds: float = 5.0, self_signed: bool = False) -> CheckTarget:
    """Build a CheckTarget pointing at a loopback port."""
    return CheckTarget(
        domain_name=LOOPBACK_HOST,
        port=str(port),
        self_signed=self_signed,
        timeout=timedelta(seconds=timeout_seconds),
    )


def make_settings(trust_config: TrustConfig) -> CheckSettings:
    """Build CheckSettings around a TrustConfig."""
    return CheckSettings(trust=trust_config)
