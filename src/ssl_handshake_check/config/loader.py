# ssl_handshake_check/config/loader.py
"""
Configuration Loading Logic.

Two sources feed a check run:

    1.  Settings: an optional YAML file validated into `CheckSettings`.
    2.  Target: the DOMAIN_NAME, PORT and SELF_SIGNED environment variables,
        plus the overall deadline derived from Kuberhealthy, validated into a
        `CheckTarget`.

Low-level I/O, parsing and validation errors are logged with context before
being raised.
"""

import logging
import os
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ssl_handshake_check.config.config_models import CheckSettings, HandshakeConfig
from ssl_handshake_check.errors import ConfigError, ReporterError
from ssl_handshake_check.kuberhealthy import get_deadline
from ssl_handshake_check.models import CheckTarget

__all__: list[str] = [
    'SETTINGS_PATH_ENV_VAR',
    'compute_check_timeout',
    'load_settings',
    'parse_bool',
    'parse_check_target',
]

logger: logging.Logger = logging.getLogger(__name__)

SETTINGS_PATH_ENV_VAR: str = 'SSL_CHECK_CONFIG'

# Spellings accepted by Go's strconv.ParseBool, which check manifests are
# written against.
_TRUE_VALUES: frozenset[str] = frozenset({'1', 't', 'T', 'TRUE', 'true', 'True'})
_FALSE_VALUES: frozenset[str] = frozenset({'0', 'f', 'F', 'FALSE', 'false', 'False'})


def load_settings(config_path: Path | str | None = None) -> CheckSettings:
    """Load and validate check settings from a YAML file.

    Args:
        config_path: Path to the YAML settings file. If None, the path in the
            SSL_CHECK_CONFIG environment variable is used; if that is unset
            too, default settings are returned.

    Returns:
        Validated CheckSettings instance.

    Raises:
        FileNotFoundError: If an explicitly given settings file does not exist.
        yaml.YAMLError: If the YAML file is malformed.
        ValueError: If the settings fail Pydantic validation.
    """
    if config_path is None:
        env_path: str | None = os.environ.get(SETTINGS_PATH_ENV_VAR)
        if not env_path:
            logger.debug('No settings file provided, using defaults')
            return CheckSettings()
        config_path = env_path

    config_path = Path(config_path)
    logger.info('Loading check settings from: %s', config_path)

    if not config_path.exists():
        error_message: str = f'Settings file not found: {config_path}'
        logger.error(error_message)
        raise FileNotFoundError(error_message)

    try:
        with Path.open(config_path, encoding='utf-8') as config_file:
            raw_config_data: Any = yaml.safe_load(config_file)
    except yaml.YAMLError as error:
        error_message = f'Failed to parse YAML settings: {error}'
        logger.error(error_message)
        raise yaml.YAMLError(error_message) from error

    # An empty file parses to None
    if raw_config_data is None:
        raw_config_data = {}

    try:
        validated_settings = CheckSettings.model_validate(raw_config_data)
    except ValidationError as error:
        error_message = f'Settings validation failed: {error}'
        logger.error(error_message)
        raise ValueError(error_message) from error

    logger.info('Settings loaded and validated successfully')
    return validated_settings


def parse_bool(raw_value: str) -> bool:
    """Parse a boolean the way check manifests spell them.

    Raises:
        ValueError: If the value is not a recognized boolean spelling.
    """
    if raw_value in _TRUE_VALUES:
        return True
    if raw_value in _FALSE_VALUES:
        return False
    raise ValueError(f'invalid boolean value: {raw_value!r}')


def compute_check_timeout(
    handshake_config: HandshakeConfig,
    deadline_provider: Callable[[], datetime] = get_deadline,
    now: datetime | None = None,
) -> timedelta:
    """Derive the overall check timeout from the Kuberhealthy deadline.

    The deadline minus the safety margin is used when it is available and
    still in the future; otherwise the configured default applies.

    Args:
        handshake_config: Margin and default timeout settings.
        deadline_provider: Callable returning the run deadline.
        now: Current time, for tests. Defaults to the current UTC time.

    Returns:
        Positive timeout for the whole check.
    """
    default_timeout = timedelta(seconds=handshake_config.default_check_timeout_seconds)
    current_time: datetime = now if now is not None else datetime.now(UTC)

    try:
        deadline: datetime = deadline_provider()
    except ReporterError as error:
        logger.info('There was an issue getting the check deadline: %s', error)
        logger.info('Check time limit set to default: %s', default_timeout)
        return default_timeout

    margin = timedelta(seconds=handshake_config.deadline_margin_seconds)
    check_timeout: timedelta = deadline - (current_time + margin)

    if check_timeout <= timedelta(0):
        logger.warning(
            'Deadline %s leaves no time for the check, using default: %s',
            deadline.isoformat(),
            default_timeout,
        )
        return default_timeout

    logger.info('Check time limit set to: %s', check_timeout)
    return check_timeout


def parse_check_target(
    handshake_config: HandshakeConfig,
    environ: Mapping[str, str] | None = None,
    deadline_provider: Callable[[], datetime] = get_deadline,
) -> CheckTarget:
    """Build the CheckTarget from environment variables.

    Args:
        handshake_config: Timeout settings used to compute the deadline.
        environ: Environment mapping. Defaults to os.environ.
        deadline_provider: Callable returning the Kuberhealthy run deadline.

    Returns:
        Validated, immutable CheckTarget.

    Raises:
        ConfigError: If DOMAIN_NAME, PORT or SELF_SIGNED is missing, or
            SELF_SIGNED is not a boolean.
    """
    env: Mapping[str, str] = os.environ if environ is None else environ

    check_timeout: timedelta = compute_check_timeout(handshake_config, deadline_provider)

    domain_name: str = env.get('DOMAIN_NAME', '')
    if not domain_name:
        raise ConfigError('DOMAIN_NAME environment variable has not been set')

    port: str = env.get('PORT', '')
    if not port:
        raise ConfigError('PORT environment variable has not been set')

    self_signed_raw: str = env.get('SELF_SIGNED', '')
    if not self_signed_raw:
        raise ConfigError('SELF_SIGNED environment variable has not been set')

    try:
        self_signed: bool = parse_bool(self_signed_raw)
    except ValueError as error:
        raise ConfigError(f'failed to parse SELF_SIGNED: {error}') from error

    try:
        return CheckTarget(
            domain_name=domain_name,
            port=port,
            self_signed=self_signed,
            timeout=check_timeout,
        )
    except ValidationError as error:
        raise ConfigError(f'invalid check target: {error}') from error
