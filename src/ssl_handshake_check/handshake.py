# ssl_handshake_check/handshake.py
"""
Single TLS handshake against an https:// endpoint.

The handshake primitive dials the target with a fixed connect timeout, wraps
the socket with a verifying SSLContext and explicitly completes the handshake,
so verification errors surface before any application data would flow. The
socket is closed on every exit path.

Failure Classification:
-----------------------
- SchemeError: the URL is not https://
- NetworkError: unparseable URL or port, DNS failure, TCP connect failure
- HandshakeError: certificate verification (expired, untrusted, hostname
  mismatch), protocol version rejection, or the peer dropping the connection
  during negotiation
"""

import logging
import socket
import ssl
from typing import Final

import httpx

from ssl_handshake_check.common import build_default_ssl_context
from ssl_handshake_check.errors import HandshakeError, NetworkError, SchemeError
from ssl_handshake_check.models import TrustMode
from ssl_handshake_check.trust_pool import TrustAnchorSet

__all__: list[str] = [
    'CONNECT_TIMEOUT_SECONDS',
    'ssl_handshake',
    'ssl_handshake_with_trust_anchors',
]

logger: logging.Logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS: Final[float] = 10.0
HTTPS_DEFAULT_PORT: Final[int] = 443


def _parse_site_url(site_url: str) -> tuple[str, int]:
    try:
        url = httpx.URL(site_url)
    except httpx.InvalidURL as error:
        raise NetworkError(f'error parsing url {site_url}: {error}') from error

    if url.scheme != 'https':
        raise SchemeError(
            f'error doing SSL handshake. The url specified {site_url} was not an https URL'
        )

    if not url.host:
        raise NetworkError(f'error parsing url {site_url}: no host specified')

    return url.host, url.port or HTTPS_DEFAULT_PORT


def _describe_handshake_error(error: Exception) -> str:
    if isinstance(error, ssl.SSLCertVerificationError):
        return f'certificate verification failed: {error.verify_message or error}'
    if isinstance(error, TimeoutError):
        return 'timed out during TLS negotiation'
    return str(error) or type(error).__name__


def ssl_handshake_with_trust_anchors(
    site_url: str,
    trust_anchors: TrustAnchorSet,
    connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
    handshake_timeout: float | None = None,
) -> None:
    """
    Perform a TLS handshake with the given trust anchors.

    Args:
        site_url: Target as https://host:port.
        trust_anchors: Trust pool to verify the server certificate against.
        connect_timeout: Timeout for the TCP dial only.
        handshake_timeout: Timeout for socket operations during TLS
            negotiation. None blocks until the peer answers or drops.

    Raises:
        SchemeError: If site_url is not an https URL.
        NetworkError: If the target cannot be resolved or connected to.
        HandshakeError: If TLS negotiation or verification fails.
    """
    host, port = _parse_site_url(site_url)

    logger.debug('Dialing %s:%d (connect timeout %.1fs)', host, port, connect_timeout)
    try:
        raw_socket: socket.socket = socket.create_connection((host, port), timeout=connect_timeout)
    except OSError as error:
        raise NetworkError(
            f'error making connection to perform TLS handshake: {error}'
        ) from error

    with raw_socket:
        raw_socket.settimeout(handshake_timeout)
        try:
            with trust_anchors.ssl_context.wrap_socket(raw_socket, server_hostname=host) as tls_socket:
                # Completed by wrap_socket on a connected socket; repeated so a
                # verification failure is raised here and nowhere later.
                tls_socket.do_handshake()
                logger.debug(
                    'Negotiated %s with %s:%d using %s',
                    tls_socket.version(),
                    host,
                    port,
                    tls_socket.cipher(),
                )
        except (ssl.SSLError, OSError) as error:
            raise HandshakeError(
                f'unable to perform TLS handshake: {_describe_handshake_error(error)}'
            ) from error

    logger.info('TLS handshake with %s:%d succeeded', host, port)


def ssl_handshake(
    site_url: str,
    connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
    handshake_timeout: float | None = None,
) -> None:
    """
    Perform a TLS handshake trusting only the system trust store.

    Raises:
        SchemeError: If site_url is not an https URL.
        NetworkError: If the target cannot be resolved or connected to.
        HandshakeError: If TLS negotiation or verification fails.
    """
    trust_anchors = TrustAnchorSet(
        mode=TrustMode.SYSTEM,
        includes_system_store=True,
        ssl_context=build_default_ssl_context(),
    )
    ssl_handshake_with_trust_anchors(site_url, trust_anchors, connect_timeout, handshake_timeout)
