"""
prodrag - Diagnostic Events
============================
Leveled, structured events emitted by the clients and orchestrators
(truncation, per-record failures, throttling, stage failures …).

Components receive a ``PipelineObserver`` at construction time.  The
default ``LoggingObserver`` writes every event to the package logger;
tests inject a recording observer and assert on event names/fields
instead of parsing log text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from prodrag.src.utils.logger import get_logger

logger = get_logger(__name__)

EventFields = dict[str, str | int | float | None]


@dataclass(frozen=True)
class PipelineEvent:
    """One diagnostic event (``name`` is dotted, e.g. ``"etl.record_failed"``)."""

    name: str
    message: str
    level: int = logging.INFO
    fields: EventFields = field(default_factory=dict)


@runtime_checkable
class PipelineObserver(Protocol):
    """Anything that accepts diagnostic events."""

    def emit(self, event: PipelineEvent) -> None: ...


class LoggingObserver:
    """Default observer: forwards each event to a ``logging.Logger``."""

    __slots__ = ("_logger",)

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger


    def emit(self, event: PipelineEvent) -> None:
        if event.fields:
            details = ", ".join(f"{k}={v}" for k, v in event.fields.items())
            self._logger.log(event.level, "[%s] %s (%s)", event.name, event.message, details)
        else:
            self._logger.log(event.level, "[%s] %s", event.name, event.message)


def emit(observer: PipelineObserver, name: str, message: str, level: int = logging.INFO, /, **fields: str | int | float | None) -> None:
    """Shorthand for ``observer.emit(PipelineEvent(...))``."""
    observer.emit(PipelineEvent(name=name, message=message, level=level, fields=dict(fields)))
