"""
prodrag - Logging Implementation
=================================
Provides a pre-configured logger factory for consistent, readable
log output across all prodrag modules.

A single stdout handler is attached to the ``prodrag`` package logger;
module loggers obtained through ``get_logger(__name__)`` propagate to it.

Logging verbosity is driven by ``Settings.ENV`` via ``configure_logging``:
  • ``"dev"``  → DEBUG level  (maximum detail)
  • ``"prod"`` → WARNING level (errors & warnings only)

Usage:
    from prodrag.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys

_ROOT_LOGGER_NAME = "prodrag"

# ── Environment mode → level ──────────────────────────────────────────
_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = logging.INFO


def _root_logger() -> logging.Logger:
    root = logging.getLogger(_ROOT_LOGGER_NAME)

    # Avoid adding duplicate handlers on re-import
    if not root.handlers:
        root.setLevel(_DEFAULT_LEVEL)

        # ── Console Handler ────────────────────────────────────────────
        console_handler = logging.StreamHandler(sys.stdout)

        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

        # Prevent log propagation to the root logger (avoids duplicates)
        root.propagate = False

    return root


def get_logger(name: str) -> logging.Logger:
    """
    Return a named logger wired to the shared ``prodrag`` handler.

    Args:
        name: Typically ``__name__`` of the calling module.

    Returns:
        A ``logging.Logger`` that propagates to the package logger.
    """
    _root_logger()
    return logging.getLogger(name)


def configure_logging(env: str, level: int | None = None) -> None:
    """
    Set the package-wide level from the environment mode.

    Args:
        env:   ``"dev"`` or ``"prod"`` (``Settings.ENV``).
        level: Explicit override; wins over *env* when given.
    """
    resolved = level if level is not None else _ENV_LEVEL_MAP.get(env, _DEFAULT_LEVEL)
    _root_logger().setLevel(resolved)
