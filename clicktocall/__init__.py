"""click-to-call: turn tel: links into call-origination requests on your PBX.

Clicking a ``tel:`` (or ``callto:``) link anywhere on the desktop launches
``clicktocall dial <link>``, which normalizes the number, loads the saved
PBX settings (domain, extension, API key, auto-answer) and sends one HTTPS
GET to the PBX click-to-call endpoint.  The PBX rings the user's extension
and connects it to the dialed number.  No SIP or media is handled locally.

Typical usage::

    from clicktocall import place_call

    outcome = place_call("tel:+1-555-123-4567")
    print(outcome.describe())
"""

import os
import sys
from pathlib import Path

from loguru import logger

__version__ = "0.1.0"

from clicktocall.appconfig import ApiTemplate, AppConfig, load_app_config
from clicktocall.dispatcher import CallDispatcher
from clicktocall.errors import (
    ClickToCallError,
    IncompleteSettings,
    InvalidNumber,
    NotConfigured,
    PersistenceError,
    RegistrationError,
)
from clicktocall.handler import SchemeHandler
from clicktocall.notify import Notifier
from clicktocall.number import normalize
from clicktocall.outcome import CallOutcome, OutcomeKind
from clicktocall.request_builder import CallRequest, build
from clicktocall.settings import Settings, SettingsStore

__all__ = [
    "__version__",
    "configure_logging",
    "place_call",
    "ApiTemplate",
    "AppConfig",
    "CallDispatcher",
    "CallOutcome",
    "CallRequest",
    "ClickToCallError",
    "IncompleteSettings",
    "InvalidNumber",
    "NotConfigured",
    "Notifier",
    "OutcomeKind",
    "PersistenceError",
    "RegistrationError",
    "SchemeHandler",
    "Settings",
    "SettingsStore",
    "build",
    "load_app_config",
    "normalize",
]

logger_fmt: str = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{module}</cyan>::<cyan>{extra[classname]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def configure_logging(log_file: str | Path | None = None) -> None:
    """(Re)configure loguru: stderr sink plus an optional rotating file sink.

    The level comes from ``LOGURU_LEVEL`` (default ``INFO``).  A file sink is
    useful because the OS launches the scheme handler without a terminal.

    Args:
        log_file: Additional log file, rotated at 1 MB, three files kept.
    """
    level = os.getenv("LOGURU_LEVEL", "INFO")
    logger.remove()
    logger.configure(extra={"classname": "None"})
    if sys.stderr is not None:
        logger.add(sys.stderr, level=level, format=logger_fmt)
    if log_file is not None:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level=level, format=logger_fmt, rotation="1 MB", retention=3, colorize=False)


def place_call(link: str, config: AppConfig | None = None, notify: bool = False) -> CallOutcome:
    """Convenience function: handle one link with the stored settings.

    Args:
        link: ``tel:`` / ``callto:`` link or bare number.
        config: Deployment config; loaded from YAML/env when omitted.
        notify: Also show a desktop notification.

    Returns:
        The ``CallOutcome`` of the attempt.
    """
    config = config if config is not None else load_app_config()
    dispatcher = CallDispatcher(verify_tls=config.verify_tls, user_agent=config.user_agent)
    try:
        handler = SchemeHandler(SettingsStore(), dispatcher, Notifier(desktop=notify), config)
        return handler.handle(link)
    finally:
        dispatcher.close()
