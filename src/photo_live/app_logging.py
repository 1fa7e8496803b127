"""Logging configuration helpers."""

import logging

_NOISY_LOGGERS = ("PIL", "httpx", "hpack")


def configure_logging(level: str = "INFO") -> None:
    """Configure the ``photo_live`` logger with a single stream handler.

    Safe to call more than once; the level is updated but no second handler is
    attached. Chatty third-party loggers are capped at WARNING so per-variant
    image work does not flood the output.
    """
    logger = logging.getLogger("photo_live")
    logger.setLevel(level.upper())
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
