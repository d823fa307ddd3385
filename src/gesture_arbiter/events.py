"""Completion events raised by the engine, and the listener hub.

Listeners register by event name:

    engine.on(SIGNATURE_TRAINED, lambda evt: print(evt.progress))

or with the decorator API:

    @engine.handler(SMART_IDENTIFY_MATCHED)
    def on_match(evt):
        print(evt.gesture, evt.source)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from gesture_arbiter.errors import EngineError
from gesture_arbiter.modes import Mode, SecurityLevel

logger = logging.getLogger("gesture_arbiter.events")

SIGNATURE_TRAINED = "signature_trained"
SIGNATURE_MATCHED = "signature_matched"
PREDEFINED_MATCHED = "predefined_matched"
SMART_IDENTIFY_MATCHED = "smart_identify_matched"
CUSTOM_GESTURE_ADDED = "custom_gesture_added"
CUSTOM_GESTURE_MATCHED = "custom_gesture_matched"
GESTURE_TRIGGERED = "gesture_triggered"
DRAW_STARTED = "draw_started"

EVENT_NAMES = (
    SIGNATURE_TRAINED,
    SIGNATURE_MATCHED,
    PREDEFINED_MATCHED,
    SMART_IDENTIFY_MATCHED,
    CUSTOM_GESTURE_ADDED,
    CUSTOM_GESTURE_MATCHED,
    GESTURE_TRIGGERED,
    DRAW_STARTED,
)


@dataclass
class SignatureTrainedEvent:
    gesture_id: int
    target: int
    progress: float
    security_level: SecurityLevel = SecurityLevel.NONE
    error: Optional[EngineError] = None


@dataclass
class SignatureMatchedEvent:
    gesture_id: int
    match: bool
    target_index: int
    error: Optional[EngineError] = None


@dataclass
class PredefinedMatchedEvent:
    gesture_id: int
    gesture: str
    score: float
    confidence: float = 0.0
    error: Optional[EngineError] = None


@dataclass
class SmartIdentifyMatchedEvent:
    gesture_id: int
    gesture: str
    source: Optional[str] = None  # "common", "user" or None when nothing matched
    error: Optional[EngineError] = None


@dataclass
class CustomGestureAddedEvent:
    gesture_id: int
    counts: dict[int, int] = field(default_factory=dict)


@dataclass
class CustomGestureMatchedEvent:
    gesture_id: int
    match: int
    confidence: float = 0.0
    error: Optional[EngineError] = None


@dataclass
class GestureTriggeredEvent:
    """Raised before dispatch. Listeners may veto or remap the operation."""
    gesture_id: int
    mode: Mode
    targets: list[int]
    proceed: bool = True


@dataclass
class DrawStartedEvent:
    started: bool


class EventHub:
    """Named-event listener registry.

    A failing listener is logged and skipped; it never stops delivery to
    the remaining listeners.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()

    def on(self, name: str, callback: Callable[[Any], None]):
        if name not in EVENT_NAMES:
            raise ValueError(f"unknown event: {name}")
        with self._lock:
            self._listeners.setdefault(name, []).append(callback)

    def off(self, name: str, callback: Callable[[Any], None]):
        with self._lock:
            listeners = self._listeners.get(name, [])
            if callback in listeners:
                listeners.remove(callback)

    def handler(self, name: str):
        """Decorator form of on()."""
        def decorator(fn: Callable[[Any], None]):
            self.on(name, fn)
            return fn
        return decorator

    def has_listeners(self, name: str) -> bool:
        with self._lock:
            return bool(self._listeners.get(name))

    def emit(self, name: str, event: Any):
        with self._lock:
            listeners = list(self._listeners.get(name, []))
        if not listeners:
            logger.debug("No listener for %s", name)
            return
        for callback in listeners:
            try:
                callback(event)
            except Exception as e:
                logger.error("Listener for %s failed: %s", name, e)
