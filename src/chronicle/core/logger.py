"""
Key=value structured logging on top of the standard ``logging`` module.

Every call names an event and attaches fields as keyword arguments::

    log = Logger("refresher")
    log.info("trust_network_installed", members=412, hops=2)
    # info refresher trust_network_installed members=412 hops=2

Fields ride on the record as the ``structured_kv`` extra and are rendered by
[StructuredFormatter][chronicle.core.logger.StructuredFormatter], which the
CLI installs on the root handler. Modules in ``models`` and ``utils`` log
through ``logging.getLogger(__name__)`` and end up in the same layout.
"""

from __future__ import annotations

import datetime
import json
import logging
from functools import partialmethod
from typing import Any


DEFAULT_MAX_VALUE_LENGTH = 1000

_NEEDS_QUOTES = frozenset(" =\"'")


def _clip(text: str, limit: int | None) -> str:
    if not limit or len(text) <= limit:
        return text
    return f"{text[:limit]}...<truncated {len(text) - limit} chars>"


def _render_value(value: Any, limit: int | None) -> str:
    text = _clip(str(value), limit)
    if text and _NEEDS_QUOTES.isdisjoint(text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = DEFAULT_MAX_VALUE_LENGTH,
    prefix: str = " ",
) -> str:
    """Render *kwargs* as ``key=value`` pairs joined by spaces.

    Empty values and values containing whitespace, ``=`` or quotes are
    wrapped in double quotes. ``max_value_length=None`` disables clipping.
    An empty mapping renders as ``""`` without the prefix.
    """
    if not kwargs:
        return ""
    return prefix + " ".join(
        f"{key}={_render_value(value, max_value_length)}" for key, value in kwargs.items()
    )


class StructuredFormatter(logging.Formatter):
    """``<level> <logger> <message> key=value ...`` plus any traceback."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        line += format_kv_pairs(getattr(record, "structured_kv", None) or {})
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class Logger:
    """Named logger whose methods accept fields as keyword arguments.

    With ``json_output=True`` the message itself becomes a JSON document
    holding ``timestamp``, ``level``, ``service``, ``message`` and the fields.
    """

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._limit = DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, msg: str, exc_info: bool = False, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return

        if self._json_output:
            document = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": "error" if exc_info else logging.getLevelName(level).lower(),
                "service": self.name,
                "message": msg,
                **fields,
            }
            self._logger.log(level, json.dumps(document, default=str), exc_info=exc_info)
            return

        extra = None
        if fields:
            extra = {
                "structured_kv": {
                    key: _clip(value, self._limit) if isinstance(value, str) else value
                    for key, value in fields.items()
                }
            }
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    debug = partialmethod(_emit, logging.DEBUG)
    info = partialmethod(_emit, logging.INFO)
    warning = partialmethod(_emit, logging.WARNING)
    error = partialmethod(_emit, logging.ERROR)
    critical = partialmethod(_emit, logging.CRITICAL)
    exception = partialmethod(_emit, logging.ERROR, exc_info=True)
