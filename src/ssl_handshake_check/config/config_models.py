# ssl_handshake_check/config/config_models.py
"""
Settings models for the SSL handshake check.

The check target itself (domain, port, self-signed flag) always comes from the
environment, because Kuberhealthy injects it into the check pod. Everything
else (where trust material is mounted, timeouts, reporter behavior, logging)
lives in the models below, with defaults that match a standard Kubernetes pod.
A YAML file may override any of them.

Design Decisions:
-----------------
- All models use `extra='forbid'` so a typo in the settings file fails loudly
  instead of silently falling back to a default.

- Trust material paths are settings rather than constants, so tests and
  non-Kubernetes deployments can point them anywhere.

- No logging occurs within this module because the logging configuration itself
  is defined here.

Usage:
------
    from ssl_handshake_check.config import CheckSettings

    settings = CheckSettings()  # all defaults
    settings = CheckSettings.model_validate(
        {'trust': {'use_truststore': True}}
    )
"""

from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# =============================================================================
# Public API
# =============================================================================

__all__: list[str] = [
    'DEFAULT_CLUSTER_CA_PATH',
    'DEFAULT_SELF_SIGNED_CERT_PATH',
    'CheckSettings',
    'HandshakeConfig',
    'LoggingConfig',
    'ReporterConfig',
    'TrustConfig',
]

# =============================================================================
# Constants
# =============================================================================

# Service account CA mounted into every pod by Kubernetes.
DEFAULT_CLUSTER_CA_PATH: Path = Path(
    '/var/run/secrets/kubernetes.io/serviceaccount/ca.crt'
)

# Where operators mount a self-signed CA for the checked endpoint.
DEFAULT_SELF_SIGNED_CERT_PATH: Path = Path('/etc/ssl/selfsign/certificate.crt')

LOG_LEVEL_NAME_TO_INT: dict[str, int] = {
    'DEBUG': 10,
    'INFO': 20,
    'WARNING': 30,
    'ERROR': 40,
    'CRITICAL': 50,
}

LOG_LEVEL_VALUES: frozenset[int] = frozenset(LOG_LEVEL_NAME_TO_INT.values())


# =============================================================================
# Trust Configuration
# =============================================================================


class TrustConfig(BaseModel):
    """Where trust material is mounted and how the system store is loaded.

    Mode Selection:
        If a file exists at self_signed_cert_path, it becomes the only trust
        anchor. Otherwise the system trust store is used, with the cluster CA
        appended when it can be read.

    Attributes:
        self_signed_cert_path: PEM file holding the self-signed CA.
        cluster_ca_path: PEM file holding the cluster CA.
        use_truststore: Load the system store through the `truststore`
            library (native OS verification) instead of OpenSSL's default
            certificate paths.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    self_signed_cert_path: Path = Field(
        default=DEFAULT_SELF_SIGNED_CERT_PATH,
        description='PEM file whose presence switches the check to self-signed mode',
    )
    cluster_ca_path: Path = Field(
        default=DEFAULT_CLUSTER_CA_PATH,
        description='PEM file appended to the system trust store when readable',
    )
    use_truststore: bool = Field(
        default=False,
        description='Use truststore for native OS certificate verification',
    )


# =============================================================================
# Handshake Configuration
# =============================================================================


class HandshakeConfig(BaseModel):
    """Timeouts governing a check run.

    The connect timeout bounds only the TCP dial. It is deliberately not
    reduced when the overall check deadline is shorter.

    Attributes:
        connect_timeout_seconds: TCP dial timeout.
        default_check_timeout_seconds: Overall deadline used when the
            Kuberhealthy deadline cannot be obtained.
        deadline_margin_seconds: Subtracted from the Kuberhealthy deadline to
            leave time for reporting.
        node_ready_timeout_seconds: How long to wait for Kuberhealthy to be
            reachable before running anyway.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    connect_timeout_seconds: float = Field(default=10.0, gt=0.0)
    default_check_timeout_seconds: float = Field(default=20.0, gt=0.0)
    deadline_margin_seconds: float = Field(default=5.0, ge=0.0)
    node_ready_timeout_seconds: float = Field(default=60.0, gt=0.0)


# =============================================================================
# Reporter Configuration
# =============================================================================


class ReporterConfig(BaseModel):
    """HTTP behavior of the Kuberhealthy reporter.

    Attributes:
        request_timeout_seconds: Per-request timeout for report POSTs.
        max_attempts: Total attempts (initial + retries) on transient errors.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    request_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_attempts: int = Field(default=5, ge=1, le=10)


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Console and optional file logging for the check pod.

    Levels may be written as names in any case ('info', 'WARNING') or as the
    standard numeric values; both are normalized to integers.

    Attributes:
        file_path: Log file. None keeps logging on stdout only.
        console_level: Minimum level written to stdout.
        file_level: Minimum level written to file_path. Defaults to DEBUG
            whenever file_path is set.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    file_path: Path | None = Field(
        default=None,
        description='Log file path. None disables file logging.',
    )
    console_level: int = Field(
        default=LOG_LEVEL_NAME_TO_INT['INFO'],
        description='Console log level name or number',
    )
    file_level: int | None = Field(
        default=None,
        description='File log level name or number. Requires file_path.',
    )

    @model_validator(mode='before')
    @classmethod
    def default_file_level(cls, data: Any) -> Any:
        """Default file_level to DEBUG; reject file_level without file_path."""
        if not isinstance(data, dict):
            return data

        has_file_path: bool = data.get('file_path') is not None
        has_file_level: bool = data.get('file_level') is not None

        if has_file_level and not has_file_path:
            raise ValueError('file_level requires file_path to be set')
        if has_file_path and not has_file_level:
            return {**data, 'file_level': LOG_LEVEL_NAME_TO_INT['DEBUG']}
        return data

    @field_validator('console_level', 'file_level', mode='before')
    @classmethod
    def normalize_log_level(cls, raw_level: Any) -> Any:
        """Map level names to numbers and reject non-standard numbers.

        Raises:
            ValueError: If the level is not a standard logging level.
        """
        if raw_level is None:
            return None

        if isinstance(raw_level, str):
            level_name: str = raw_level.strip().upper()
            if level_name not in LOG_LEVEL_NAME_TO_INT:
                raise ValueError(
                    f'Log level must be one of {sorted(LOG_LEVEL_NAME_TO_INT)}, got: {raw_level!r}'
                )
            return LOG_LEVEL_NAME_TO_INT[level_name]

        if raw_level not in LOG_LEVEL_VALUES:
            raise ValueError(
                f'Numeric log level must be one of {sorted(LOG_LEVEL_VALUES)}, got: {raw_level}'
            )
        return raw_level


# =============================================================================
# Root Configuration
# =============================================================================


class CheckSettings(BaseModel):
    """Root settings model for the SSL handshake check.

    Every section has defaults, so an empty settings file (or none at all)
    yields a configuration suitable for a Kuberhealthy check pod.

    Attributes:
        trust: Trust material locations.
        handshake: Check timeouts.
        reporter: Kuberhealthy reporting behavior.
        logging: Console and file logging.
    """

    model_config = ConfigDict(extra='forbid')

    trust: TrustConfig = Field(default_factory=TrustConfig)
    handshake: HandshakeConfig = Field(default_factory=HandshakeConfig)
    reporter: ReporterConfig = Field(default_factory=ReporterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
