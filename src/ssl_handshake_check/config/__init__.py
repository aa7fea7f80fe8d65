"""
Configuration Package for the SSL Handshake Check.

Exposes the settings models, the YAML settings loader and the environment
parser for the check target.
"""

from ssl_handshake_check.config.config_models import (
    DEFAULT_CLUSTER_CA_PATH,
    DEFAULT_SELF_SIGNED_CERT_PATH,
    CheckSettings,
    HandshakeConfig,
    LoggingConfig,
    ReporterConfig,
    TrustConfig,
)
from ssl_handshake_check.config.loader import (
    compute_check_timeout,
    load_settings,
    parse_bool,
    parse_check_target,
)

__all__: list[str] = [
    'DEFAULT_CLUSTER_CA_PATH',
    'DEFAULT_SELF_SIGNED_CERT_PATH',
    'CheckSettings',
    'HandshakeConfig',
    'LoggingConfig',
    'ReporterConfig',
    'TrustConfig',
    'compute_check_timeout',
    'load_settings',
    'parse_bool',
    'parse_check_target',
]
