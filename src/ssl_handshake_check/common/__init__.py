# ssl_handshake_check/common/__init__.py

from ssl_handshake_check.common.logger import setup_logger
from ssl_handshake_check.common.truststore_context import (
    MINIMUM_TLS_VERSION,
    build_default_ssl_context,
    build_empty_ssl_context,
    build_truststore_ssl_context,
)

__all__: list[str] = [
    'MINIMUM_TLS_VERSION',
    'build_default_ssl_context',
    'build_empty_ssl_context',
    'build_truststore_ssl_context',
    'setup_logger',
]
