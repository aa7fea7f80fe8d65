# ssl_handshake_check/common/truststore_context.py
"""
Verifying client SSLContext factories.

Both factories return a context that requires a verified peer certificate,
checks the hostname and refuses anything older than TLS 1.2. Insecure
(skip-verify) contexts are never produced here.

Two flavors of system trust are offered:

- `build_default_ssl_context()`: the stdlib context loaded from OpenSSL's
  default certificate paths (the usual choice inside Linux containers).
- `build_truststore_ssl_context()`: a `truststore` context that delegates
  verification to the operating system's native trust store, for hosts whose
  trusted roots are managed by the OS rather than an OpenSSL bundle.

`build_empty_ssl_context()` trusts nothing until CA data is loaded into it; it
backs self-signed mode.
"""

import ssl
from ssl import SSLContext

import truststore

__all__: list[str] = [
    'MINIMUM_TLS_VERSION',
    'build_default_ssl_context',
    'build_empty_ssl_context',
    'build_truststore_ssl_context',
]

MINIMUM_TLS_VERSION: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2


def _enforce_verification(ssl_context: SSLContext) -> SSLContext:
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    ssl_context.minimum_version = MINIMUM_TLS_VERSION
    return ssl_context


def build_default_ssl_context() -> SSLContext:
    """
    Create an SSLContext verifying against OpenSSL's default CA paths.

    Returns:
        SSLContext loaded with the system trust store.

    Raises:
        ssl.SSLError: If the default certificates cannot be loaded.
        OSError: If the default certificate paths cannot be read.
    """
    ssl_context: SSLContext = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    return _enforce_verification(ssl_context)


def build_truststore_ssl_context() -> SSLContext:
    """
    Create an SSLContext using truststore for system certificate validation.

    Explicitly uses PROTOCOL_TLS_CLIENT for secure client-side TLS with
    automatic protocol negotiation and certificate verification. Extra CA
    data loaded with load_verify_locations() is trusted in addition to the
    OS store.

    Returns:
        SSLContext: Configured SSLContext using OS trust store.

    Notes:
        - Safe for library code (no global monkey-patching)
    """
    ssl_context: SSLContext = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ssl_context.minimum_version = MINIMUM_TLS_VERSION
    return ssl_context


def build_empty_ssl_context() -> SSLContext:
    """
    Create a verifying SSLContext with no trusted certificates.

    Every handshake fails verification until CA data is loaded with
    load_verify_locations().
    """
    return _enforce_verification(SSLContext(ssl.PROTOCOL_TLS_CLIENT))
