from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Protocol

from .schemas import TelemetryEvent

logger = logging.getLogger(__name__)

# (category, action) pairs emitted by the game core
WORD_ACCEPTED = ('Puzzle', 'Valid Word')
WORD_REJECTED = ('Puzzle', 'Invalid Word')
REMOTE_ERROR = ('Puzzle', 'API Error')
LOOKUP_CANCELLED = ('Puzzle', 'Validation Cancelled')
PUZZLE_LOADED = ('Puzzle', 'Load Success')
CLUE_UNLOCKED = ('Trivia', 'Clue Unlocked')
FINAL_SHOWN = ('Trivia', 'Final Trivia Shown')
FINAL_COMPLETED = ('Trivia', 'Final Trivia Success')
FINAL_WRONG = ('Trivia', 'Final Trivia Miss')


class TelemetrySink(Protocol):
    def record(self, event: TelemetryEvent) -> None: ...


class LoggingSink:
    def record(self, event: TelemetryEvent) -> None:
        logger.info('[event] %s / %s label=%s value=%s', event.category, event.action, event.label, event.value)


class MemorySink:
    def __init__(self):
        self.events: List[TelemetryEvent] = []

    def record(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[tuple]:
        return [(e.category, e.action) for e in self.events]


class Telemetry:
    """Fans events out to sinks; a failing sink never affects the game."""

    def __init__(self, sinks: Optional[Iterable[TelemetrySink]] = None):
        self.sinks: List[TelemetrySink] = list(sinks) if sinks is not None else [LoggingSink()]

    def track(self, kind: tuple, label: Optional[str] = None, value: Optional[float] = None) -> TelemetryEvent:
        category, action = kind
        event = TelemetryEvent(category=category, action=action, label=label, value=value)
        self.emit(event)
        return event

    def emit(self, event: TelemetryEvent) -> None:
        for sink in self.sinks:
            try:
                sink.record(event)
            except Exception:
                logger.exception('Telemetry sink %r failed', sink)
