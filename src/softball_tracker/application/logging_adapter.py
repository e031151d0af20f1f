from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


def _format_context(context: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in context.items())


class StandardLogger:
    """Logger port adapter that forwards to a stdlib ``logging.Logger``.

    The context is rendered as ``key=value`` pairs after the message and is
    also attached to the record as ``record.context``.
    """

    def __init__(self, name: str = "softball_tracker.workflow") -> None:
        self._logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        message: str,
        context: Mapping[str, Any] | None,
        error: BaseException | None = None,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        ctx = dict(context or {})
        if ctx:
            self._logger.log(level, "%s %s", message, _format_context(ctx), exc_info=error, extra={"context": ctx})
        else:
            self._logger.log(level, "%s", message, exc_info=error, extra={"context": ctx})

    def debug(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.INFO, message, context)

    def warn(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.WARNING, message, context)

    def error(
        self,
        message: str,
        context: Mapping[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        self._log(logging.ERROR, message, context, error)
