"""
Calibration State
=================

Optional positive constants that survive restarts:

- CalibrationState  grey-card K factor (absolute luma -> EV mapping)
- ApertureOverride  user-entered f-number replacing the detected lens value

Both are absent-or-positive. They accept a persisted value at startup and
push every change to the injected store and to subscribed listeners.
Writes are serialized by a lock and reach the store before the in-memory
value changes. Listeners run after the lock is released.
"""

import logging
import math
import threading
from typing import Any, Callable, List, Optional

from nanometer import config

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[float]], None]


class InvalidCalibrationError(ValueError):
    """Calibration constant is not a positive finite number."""


class PersistedConstant:
    """Absent-or-positive float mirrored to a key-value store."""

    key = ""
    name = "value"
    error = ValueError

    def __init__(self, value: Optional[float] = None, store: Any = None):
        self._store = store
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

        if value is None and store is not None:
            value = store.get(self.key)
        self._value = self._coerce_initial(value)

    def _coerce_initial(self, value: Any) -> Optional[float]:
        if value is None:
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring persisted {self.name} {value!r}: not a number")
            return None
        if not self._valid(value):
            logger.warning(f"Ignoring persisted {self.name} {value!r}: must be positive")
            return None
        return value

    @staticmethod
    def _valid(value: float) -> bool:
        return math.isfinite(value) and value > 0

    @property
    def value(self) -> Optional[float]:
        return self._value

    @property
    def is_set(self) -> bool:
        return self._value is not None

    def set(self, value: float) -> None:
        """Store a new positive value. Raises (and keeps the old value) otherwise."""
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise self.error(f"{self.name} must be a positive number, got {value!r}") from None
        if not self._valid(value):
            raise self.error(f"{self.name} must be a positive number, got {value!r}")

        with self._lock:
            self._push(value)
            self._value = value
        self._emit(value)

    def clear(self) -> None:
        with self._lock:
            if self._value is None:
                return
            self._push(None)
            self._value = None
        self._emit(None)

    def serialize(self) -> Optional[float]:
        """Current value as stored externally (None when absent)."""
        return self._value

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(value)` after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _push(self, value: Optional[float]) -> None:
        # Store errors propagate before the in-memory value changes
        if self._store is None:
            return
        if value is None:
            self._store.delete(self.key)
        else:
            self._store.set(self.key, value)

    def _changed(self, value: Optional[float]) -> None:
        pass

    def _emit(self, value: Optional[float]) -> None:
        # Runs outside the lock; listeners may call set() or clear()
        self._changed(value)
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(f"{self.name} listener failed")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class CalibrationState(PersistedConstant):
    """
    Grey-card calibration constant K.

    When present, scene EV becomes log2(L * K) instead of the relative
    correction against the frame average. A second calibration overwrites
    the first; there is no averaging.
    """

    key = config.CALIBRATION_KEY
    name = "calibration constant"
    error = InvalidCalibrationError

    def __init__(self, constant: Optional[float] = None, store: Any = None):
        super().__init__(constant, store)

    @property
    def constant(self) -> Optional[float]:
        return self._value

    def _changed(self, value: Optional[float]) -> None:
        if value is None:
            logger.info("Grey-card calibration cleared")
        else:
            logger.info(f"Grey-card calibration set: K={value:.4f}")


class ApertureOverride(PersistedConstant):
    """User-entered f-number; wins over the detected lens aperture."""

    key = config.APERTURE_OVERRIDE_KEY
    name = "aperture override"

    def __init__(self, aperture: Optional[float] = None, store: Any = None):
        super().__init__(aperture, store)

    @property
    def aperture(self) -> Optional[float]:
        return self._value
