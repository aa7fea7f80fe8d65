# ssl_handshake_check/trust_pool.py
"""
Trust pool construction for the SSL handshake check.

Decides which certificate authorities a check trusts and builds the verifying
SSLContext from them. There are two mutually exclusive modes:

Self-signed mode:
-----------------
Triggered by the presence of the self-signed certificate file. Mounting that
file is an explicit operator signal meaning "trust only this", so the pool
holds exactly the certificate(s) in it and nothing from the system store.
Every failure is fatal: an unreadable file raises FileReadError, a file with
no parseable PEM certificate raises CertParseError.

System mode:
------------
The system trust store, plus the cluster CA when it can be read. The cluster
CA is a supplement, so a missing, unreadable or malformed cluster CA file is
logged and skipped. Only failing to obtain the system store itself
(NoTrustStoreError) is fatal.
"""

import logging
import re
import ssl
from pathlib import Path
from ssl import SSLContext

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from pydantic import BaseModel, ConfigDict

from ssl_handshake_check.common import (
    build_default_ssl_context,
    build_empty_ssl_context,
    build_truststore_ssl_context,
)
from ssl_handshake_check.config import TrustConfig
from ssl_handshake_check.errors import (
    CertParseError,
    FileReadError,
    NoTrustStoreError,
)
from ssl_handshake_check.models import TrustMode

__all__: list[str] = [
    'TrustAnchorSet',
    'build_trust_pool',
    'cluster_ca_present',
    'fetch_self_signed_cert_from_disk',
    'load_pem_certificates',
    'self_signed_ca_present',
]

logger: logging.Logger = logging.getLogger(__name__)

_PEM_CERTIFICATE_BLOCK: re.Pattern[bytes] = re.compile(
    rb'-----BEGIN CERTIFICATE-----\r?\n.+?-----END CERTIFICATE-----', re.DOTALL
)


class TrustAnchorSet(BaseModel):
    """
    The trust anchors one check run verifies against.

    Built once per run by build_trust_pool() and only read afterwards, so it
    can be shared with the handshake worker thread without locking.

    Attributes:
        mode: Whether the pool came from a self-signed CA or system trust.
        certificates: CA certificates loaded from disk. In self-signed mode
            these are the only anchors; in system mode they are the cluster
            CA certificates appended to the system store (possibly none).
        includes_system_store: True if the system trust store is part of
            the pool.
        ssl_context: Verifying client context holding exactly these anchors.
    """

    model_config = ConfigDict(extra='forbid', frozen=True, arbitrary_types_allowed=True)

    mode: TrustMode
    certificates: tuple[x509.Certificate, ...] = ()
    includes_system_store: bool
    ssl_context: SSLContext

    @property
    def certificate_count(self) -> int:
        return len(self.certificates)


# =============================================================================
# File Presence Checks
# =============================================================================


def _file_present(file_path: Path) -> bool:
    try:
        return file_path.exists()
    except OSError:
        # Unreadable parent directories count as absent
        return False


def self_signed_ca_present(trust_config: TrustConfig) -> bool:
    """Return True if a self-signed CA certificate is mounted."""
    return _file_present(trust_config.self_signed_cert_path)


def cluster_ca_present(trust_config: TrustConfig) -> bool:
    """Return True if the cluster CA certificate is mounted."""
    return _file_present(trust_config.cluster_ca_path)


# =============================================================================
# Certificate Loading
# =============================================================================


def _read_cert_file(file_path: Path, description: str) -> bytes:
    try:
        return file_path.read_bytes()
    except OSError as error:
        raise FileReadError(
            f'error reading {description} file {file_path}: {error}',
            path=str(file_path),
        ) from error


def fetch_self_signed_cert_from_disk(trust_config: TrustConfig) -> bytes:
    """
    Read the raw bytes of the mounted self-signed certificate.

    Raises:
        FileReadError: If the file cannot be read.
    """
    return _read_cert_file(trust_config.self_signed_cert_path, 'custom certificate')


def load_pem_certificates(file_path: Path, description: str = 'certificate') -> tuple[x509.Certificate, ...]:
    """
    Read and parse every PEM certificate in a file.

    Args:
        file_path: File holding one or more PEM-encoded certificates.
        description: What the file is, for error messages.

    Returns:
        The parsed certificates, in file order. Never empty. Blocks that
        fail to parse are logged and skipped.

    Raises:
        FileReadError: If the file cannot be read.
        CertParseError: If the file holds no parseable PEM certificate.
    """
    cert_bytes: bytes = _read_cert_file(file_path, description)
    return _parse_pem_certificates(cert_bytes, file_path)


def _split_pem_blocks(cert_bytes: bytes) -> list[bytes]:
    return [match.group(0) for match in _PEM_CERTIFICATE_BLOCK.finditer(cert_bytes)]


def _parse_pem_certificates(cert_bytes: bytes, file_path: Path) -> tuple[x509.Certificate, ...]:
    """Parse each CERTIFICATE block on its own, skipping blocks that fail."""
    certificates: list[x509.Certificate] = []

    for index, pem_block in enumerate(_split_pem_blocks(cert_bytes), start=1):
        try:
            certificates.append(x509.load_pem_x509_certificate(pem_block))
        except ValueError as error:
            logger.warning('Skipping unparseable certificate block %d in %s: %s', index, file_path, error)

    if not certificates:
        raise CertParseError(
            f'error parsing certs from file {file_path}: no certificates found',
            path=str(file_path),
        )

    return tuple(certificates)


def _to_pem_bundle(certificates: tuple[x509.Certificate, ...]) -> str:
    return ''.join(cert.public_bytes(Encoding.PEM).decode('ascii') for cert in certificates)


def _load_into_context(
    ssl_context: SSLContext,
    certificates: tuple[x509.Certificate, ...],
    file_path: Path,
) -> None:
    try:
        ssl_context.load_verify_locations(cadata=_to_pem_bundle(certificates))
    except ssl.SSLError as error:
        raise CertParseError(
            f'error appending certs from file {file_path} to cert pool: {error}',
            path=str(file_path),
        ) from error


# =============================================================================
# Pool Construction
# =============================================================================


def _build_self_signed_pool(trust_config: TrustConfig) -> TrustAnchorSet:
    cert_path: Path = trust_config.self_signed_cert_path
    logger.info('Using self signed CA mounted from %s', cert_path)

    certificates = load_pem_certificates(cert_path, 'custom certificate')
    ssl_context: SSLContext = build_empty_ssl_context()
    _load_into_context(ssl_context, certificates, cert_path)

    logger.info('Certificate file successfully appended to cert pool')
    return TrustAnchorSet(
        mode=TrustMode.SELF_SIGNED,
        certificates=certificates,
        includes_system_store=False,
        ssl_context=ssl_context,
    )


def _build_system_context(trust_config: TrustConfig) -> SSLContext:
    try:
        if trust_config.use_truststore:
            logger.debug('Building SSLContext from truststore (native OS trust)')
            return build_truststore_ssl_context()
        return build_default_ssl_context()
    except (ssl.SSLError, OSError) as error:
        raise NoTrustStoreError(f'unable to load system trust store: {error}') from error


def _append_cluster_ca(
    ssl_context: SSLContext, trust_config: TrustConfig
) -> tuple[x509.Certificate, ...]:
    """Append the cluster CA to the context, returning what was appended."""
    ca_path: Path = trust_config.cluster_ca_path
    logger.info('Appending Kubernetes SSL certificate authority to cert pool...')

    if not cluster_ca_present(trust_config):
        logger.warning('Kubernetes certificate authority file %s not found, using system trust only', ca_path)
        return ()

    try:
        certificates = load_pem_certificates(ca_path, 'kubernetes certificate authority')
        _load_into_context(ssl_context, certificates, ca_path)
    except FileReadError as error:
        logger.warning('error fetching cert data from disk: %s', error)
        return ()
    except CertParseError as error:
        logger.warning(
            'failed to append cert to pem when appending kubernetes certs to cert pool: %s',
            error,
        )
        return ()

    logger.info('Certificate file successfully appended to cert pool')
    return certificates


def _build_system_pool(trust_config: TrustConfig) -> TrustAnchorSet:
    logger.info(
        'Using default certs plus Kubernetes cluster CA mounted from %s',
        trust_config.cluster_ca_path,
    )
    ssl_context: SSLContext = _build_system_context(trust_config)
    certificates = _append_cluster_ca(ssl_context, trust_config)

    return TrustAnchorSet(
        mode=TrustMode.SYSTEM,
        certificates=certificates,
        includes_system_store=True,
        ssl_context=ssl_context,
    )


def build_trust_pool(trust_config: TrustConfig, self_signed: bool = False) -> TrustAnchorSet:
    """
    Build the trust anchors for one check run.

    Mode is decided by the presence of the self-signed certificate file, not
    by the flag: the flag only produces a warning when it promises a file
    that is not mounted.

    Args:
        trust_config: Locations of the trust material.
        self_signed: The operator's SELF_SIGNED flag.

    Returns:
        A fully constructed TrustAnchorSet.

    Raises:
        FileReadError: Self-signed file present but unreadable.
        CertParseError: Self-signed file holds no parseable certificate.
        NoTrustStoreError: System trust store unavailable.
    """
    if self_signed_ca_present(trust_config):
        return _build_self_signed_pool(trust_config)

    if self_signed:
        logger.warning(
            'SELF_SIGNED is set but no certificate is mounted at %s; falling back to system trust',
            trust_config.self_signed_cert_path,
        )

    return _build_system_pool(trust_config)
