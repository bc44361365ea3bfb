"""
Operation lifecycle hooks.

The SDK notifies observers when a write starts, completes or fails. Observers
never influence the operation: an exception raised by one is logged and
dropped.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

import structlog

from .encoding import OperationKind

logger = logging.getLogger(__name__)


def new_operation_id() -> str:
    return f"op_{uuid.uuid4().hex[:12]}"


@dataclass
class OperationEvent:
    """Snapshot passed to observers."""
    operation_id: str
    kind: OperationKind
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class OperationObserver(Protocol):
    def on_operation_started(self, event: OperationEvent) -> None: ...

    def on_operation_completed(self, event: OperationEvent) -> None: ...

    def on_operation_failed(self, event: OperationEvent) -> None: ...


class LoggingObserver:
    """Writes one structured log line per lifecycle event."""

    def __init__(self, logger_name: str = "unifiedid.operations"):
        self._log = structlog.stdlib.get_logger(logger_name)

    def on_operation_started(self, event: OperationEvent) -> None:
        self._log.info(
            "operation_started",
            operation_id=event.operation_id,
            kind=event.kind.value,
            **event.data,
        )

    def on_operation_completed(self, event: OperationEvent) -> None:
        self._log.info(
            "operation_completed",
            operation_id=event.operation_id,
            kind=event.kind.value,
            **event.data,
        )

    def on_operation_failed(self, event: OperationEvent) -> None:
        self._log.warning(
            "operation_failed",
            operation_id=event.operation_id,
            kind=event.kind.value,
            **event.data,
        )


class ObserverGroup:
    """Fans events out to every registered observer."""

    def __init__(self, observers: Optional[Iterable[OperationObserver]] = None):
        self._observers: List[OperationObserver] = list(observers or [])

    def add(self, observer: OperationObserver) -> None:
        self._observers.append(observer)

    def remove(self, observer: OperationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def __len__(self) -> int:
        return len(self._observers)

    def _emit(self, hook: str, event: OperationEvent) -> None:
        for observer in list(self._observers):
            callback = getattr(observer, hook, None)
            if callback is None:
                continue
            try:
                callback(event)
            except Exception as e:
                logger.warning(
                    "Observer %s.%s raised: %s", type(observer).__name__, hook, e
                )

    def started(self, event: OperationEvent) -> None:
        self._emit("on_operation_started", event)

    def completed(self, event: OperationEvent) -> None:
        self._emit("on_operation_completed", event)

    def failed(self, event: OperationEvent) -> None:
        self._emit("on_operation_failed", event)


__all__ = [
    "OperationEvent",
    "OperationObserver",
    "LoggingObserver",
    "ObserverGroup",
    "new_operation_id",
]
