from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_FORMAT = "%(levelname)s %(name)s - %(message)s"

PACKAGE_LOGGER = "pseudo_events"


def configure_library_logging(
    level: int = logging.INFO,
    format: str = DEFAULT_FORMAT,
    *,
    use_rich: bool = False,
) -> logging.Handler | None:
    """Attach a stderr handler to the package logger if it only has NullHandlers.

    Plain dispatch traces (``set_event_trace(..., use_rich=False)``) and
    lifecycle warnings go through this logger.

    Returns:
        The handler that was installed, or None when one was already present
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    if any(
        not isinstance(handler, logging.NullHandler)
        for handler in package_logger.handlers
    ):
        return None

    handler: logging.Handler
    if use_rich:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(format))

    handler.setLevel(level)
    package_logger.addHandler(handler)
    return handler
