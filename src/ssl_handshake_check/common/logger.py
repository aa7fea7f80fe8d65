# ssl_handshake_check/common/logger.py
"""
Logging configuration for the ssl_handshake_check package.

Every module logs through `logging.getLogger(__name__)`, so configuring the
package logger once is enough. Check pods ship stdout to the cluster log
pipeline; the console handler therefore writes to stdout, not stderr.
"""

import logging
import sys

from ssl_handshake_check.config import LoggingConfig

__all__: list[str] = ['PACKAGE_LOGGER_NAME', 'setup_logger']

PACKAGE_LOGGER_NAME: str = 'ssl_handshake_check'

LOG_FORMAT: str = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'


def _file_handler(config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler | None:
    if config.file_path is None:
        return None

    config.file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(filename=str(config.file_path), mode='a', encoding='utf-8')
    handler.setFormatter(formatter)
    if config.file_level is not None:
        handler.setLevel(config.file_level)
    return handler


def setup_logger(
    logging_level: int | None = None,
    config: LoggingConfig | None = None,
) -> logging.Logger:
    """
    Configure the package logger for a check run.

    Safe to call more than once: existing handlers are removed before the new
    ones are attached.

    Args:
        logging_level: Console level when no config is given. Defaults to
            logging.INFO.
        config: Validated logging settings. When given, its console_level
            wins over logging_level and a file handler is attached if
            file_path is set.

    Returns:
        The 'ssl_handshake_check' logger.

    Example:
        >>> setup_logger(logging_level=logging.DEBUG)
        >>> setup_logger(config=load_settings().logging)
    """
    package_logger: logging.Logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for existing_handler in package_logger.handlers[:]:
        package_logger.removeHandler(existing_handler)
        existing_handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if config is not None:
        console_level: int = config.console_level
    else:
        console_level = logging.INFO if logging_level is None else logging_level

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(console_level)
    package_logger.addHandler(console_handler)

    handler_levels: list[int] = [console_level]
    file_handler: logging.Handler | None = _file_handler(config, formatter) if config else None
    if file_handler is not None:
        package_logger.addHandler(file_handler)
        handler_levels.append(file_handler.level)

    # The logger filters before its handlers do, so it must be at least as
    # verbose as the most verbose handler.
    package_logger.setLevel(min(handler_levels))

    return package_logger
