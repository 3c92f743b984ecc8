"""
Logging setup for the lungctx package.

Library modules obtain their loggers through :func:`get_logger`, so every
message is emitted below the ``lungctx`` logger. Nothing is printed unless
the application configures a handler; a ``NullHandler`` is attached at import.

Resolution decisions (direct call, reduction, composition) and cache
activity are logged at DEBUG level, which is usually what you want to switch
on when a result comes back at an unexpected region.

Example:
    >>> import logging
    >>> from lungctx.logging import configure_logging
    >>> configure_logging(level=logging.DEBUG)

    >>> from lungctx.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.debug("Resolving %s", "Lungs")
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

LIBRARY_LOGGER_NAME = "lungctx"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a logger in the lungctx hierarchy.

    Args:
        name: Module name, usually ``__name__``. Names already under
              ``lungctx`` are used as-is; anything else becomes a child of the
              library logger. ``None`` returns the library logger itself.

    Returns:
        The requested logger
    """
    if name is None:
        return logging.getLogger(LIBRARY_LOGGER_NAME)

    if name == LIBRARY_LOGGER_NAME or name.startswith(LIBRARY_LOGGER_NAME + "."):
        return logging.getLogger(name)

    return logging.getLogger(f"{LIBRARY_LOGGER_NAME}.{name}")


def configure_logging(
    level: Union[int, str] = logging.INFO,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
    stream: Optional[object] = None,
) -> logging.Logger:
    """
    Attach a single handler to the lungctx logger.

    Calling this repeatedly replaces the previously configured handler
    instead of stacking duplicates.

    Args:
        level: Level as an int or a case-insensitive name such as ``"debug"``
        format_string: Format for the handler's formatter.
                       Defaults to :data:`DEFAULT_FORMAT`.
        handler: Handler to install. A ``StreamHandler`` is created when omitted.
        stream: Stream for the default handler (``sys.stderr`` when omitted)

    Returns:
        The configured library logger

    Raises:
        ValueError: If ``level`` is a string that is not a logging level name
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level!r}")
        level = resolved

    logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    logger.setLevel(level)

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    if handler.formatter is None:
        handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    handler.setLevel(level)

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _install_null_handler() -> None:
    logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


_install_null_handler()
