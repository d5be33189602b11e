"""Logging setup and per-exchange loggers."""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

APP_NAME = "jqproxy"


def setup_logging(debug: bool = False) -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if debug:
        logging.getLogger(APP_NAME).setLevel(logging.DEBUG)


class ExchangeLogger(logging.LoggerAdapter):
    """Logger carrying the fields of one exchange.

    Fields are attached as record attributes. Per-call ``extra`` is merged
    over the bound fields instead of replacing them.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **fields: Any) -> ExchangeLogger:
        """Return a new adapter with additional fields."""
        return ExchangeLogger(self.logger, {**(self.extra or {}), **fields})


def exchange_logger(logger: logging.Logger, **fields: Any) -> ExchangeLogger:
    """Create a logger for one exchange.

    Args:
        logger: Underlying module logger
        **fields: Exchange fields (method, path, phase, ...)

    Returns:
        Adapter tagged with ``app`` and the given fields
    """
    return ExchangeLogger(logger, {"app": APP_NAME, **fields})
