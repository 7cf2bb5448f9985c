"""
Calibration State and Settings Store Tests
==========================================
"""

import json
import math
import threading

import pytest

from nanometer import config
from nanometer.calibration import ApertureOverride, CalibrationState, InvalidCalibrationError
from nanometer.store import JsonFileStore, MemoryStore


# ============================================================================
# CALIBRATION STATE
# ============================================================================

def test_starts_absent():
    state = CalibrationState()
    assert state.constant is None
    assert not state.is_set
    assert state.serialize() is None


def test_set_and_clear():
    state = CalibrationState()
    state.set(812.5)
    assert state.constant == 812.5
    assert state.is_set

    state.set(1000)
    assert state.constant == 1000.0

    state.clear()
    assert state.constant is None


@pytest.mark.parametrize("bad", [0, -3.5, float("nan"), float("inf"), "abc", None])
def test_rejects_invalid_constant_and_keeps_previous(bad):
    state = CalibrationState(constant=42.0)
    with pytest.raises(InvalidCalibrationError):
        state.set(bad)
    assert state.constant == 42.0


def test_invalid_calibration_is_value_error():
    assert issubclass(InvalidCalibrationError, ValueError)


def test_changes_pushed_to_store():
    store = MemoryStore()
    state = CalibrationState(store=store)

    state.set(256.0)
    assert store.get(config.CALIBRATION_KEY) == 256.0

    state.clear()
    assert config.CALIBRATION_KEY not in store


def test_rejected_value_not_pushed():
    store = MemoryStore({config.CALIBRATION_KEY: 10.0})
    state = CalibrationState(store=store)
    with pytest.raises(InvalidCalibrationError):
        state.set(-1)
    assert store.get(config.CALIBRATION_KEY) == 10.0


def test_loads_persisted_value_at_startup():
    store = MemoryStore({config.CALIBRATION_KEY: 512.0})
    assert CalibrationState(store=store).constant == 512.0


def test_explicit_value_wins_over_store():
    store = MemoryStore({config.CALIBRATION_KEY: 512.0})
    assert CalibrationState(constant=3.0, store=store).constant == 3.0


@pytest.mark.parametrize("persisted", [-5.0, 0.0, "garbage", [1, 2]])
def test_ignores_invalid_persisted_value(persisted):
    store = MemoryStore({config.CALIBRATION_KEY: persisted})
    assert CalibrationState(store=store).constant is None


def test_listeners_notified_on_every_change():
    state = CalibrationState()
    seen = []
    unsubscribe = state.subscribe(seen.append)

    state.set(2.0)
    state.set(3.0)
    state.clear()
    state.clear()  # Already absent: not a change

    assert seen == [2.0, 3.0, None]

    unsubscribe()
    state.set(4.0)
    assert seen == [2.0, 3.0, None]


def test_failing_listener_does_not_block_others():
    state = CalibrationState()
    seen = []

    def broken(value):
        raise RuntimeError("listener gone")

    state.subscribe(broken)
    state.subscribe(seen.append)
    state.set(7.0)

    assert seen == [7.0]
    assert state.constant == 7.0


def test_listener_may_change_state():
    state = CalibrationState(store=MemoryStore())
    seen = []

    def reset_out_of_range(value):
        seen.append(value)
        if value is not None and value > 100:
            state.clear()

    state.subscribe(reset_out_of_range)

    worker = threading.Thread(target=state.set, args=(500.0,), daemon=True)
    worker.start()
    worker.join(timeout=3)

    assert not worker.is_alive()
    assert state.constant is None
    assert seen == [500.0, None]


class FailingStore(MemoryStore):
    """Store whose writes fail like a full or read-only disk."""

    def set(self, key, value):
        raise OSError("No space left on device")

    def delete(self, key):
        raise OSError("Read-only file system")


def test_failed_store_write_keeps_value():
    store = FailingStore({config.CALIBRATION_KEY: 42.0})
    state = CalibrationState(store=store)
    seen = []
    state.subscribe(seen.append)

    with pytest.raises(OSError):
        state.set(99.0)
    assert state.constant == 42.0

    with pytest.raises(OSError):
        state.clear()
    assert state.constant == 42.0

    assert seen == []
    assert store.get(config.CALIBRATION_KEY) == 42.0


# ============================================================================
# APERTURE OVERRIDE
# ============================================================================

def test_aperture_override_round_trip():
    store = MemoryStore()
    override = ApertureOverride(store=store)
    override.set(1.9)
    assert ApertureOverride(store=store).aperture == 1.9

    override.clear()
    assert ApertureOverride(store=store).aperture is None


def test_aperture_override_rejects_non_positive():
    override = ApertureOverride(aperture=2.0)
    with pytest.raises(ValueError):
        override.set(0)
    with pytest.raises(ValueError):
        override.set(-1.4)
    assert override.aperture == 2.0


# ============================================================================
# JSON FILE STORE
# ============================================================================

def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    store = JsonFileStore(path)
    CalibrationState(store=store).set(640.0)
    ApertureOverride(store=store).set(1.78)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data[config.CALIBRATION_KEY] == 640.0

    reopened = JsonFileStore(path)
    assert CalibrationState(store=reopened).constant == 640.0
    assert ApertureOverride(store=reopened).aperture == 1.78


def test_json_store_delete(tmp_path):
    path = tmp_path / "settings.json"
    store = JsonFileStore(path)
    store.set("a", 1)
    store.delete("a")
    store.delete("missing")
    assert json.loads(path.read_text(encoding="utf-8")) == {}


def test_json_store_missing_file_is_empty(tmp_path):
    store = JsonFileStore(tmp_path / "none.json")
    assert store.get(config.CALIBRATION_KEY) is None
    assert not (tmp_path / "none.json").exists()


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_json_store_corrupt_file_is_empty(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")

    store = JsonFileStore(path)
    assert store.get(config.CALIBRATION_KEY) is None

    store.set(config.CALIBRATION_KEY, 9.0)
    assert json.loads(path.read_text(encoding="utf-8")) == {config.CALIBRATION_KEY: 9.0}


def test_serialized_value_is_plain_float():
    state = CalibrationState()
    state.set(math.pi)
    assert isinstance(state.serialize(), float)


def test_json_store_unwritable_path_keeps_state(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileStore(blocker / "settings.json")
    state = CalibrationState(store=store)

    with pytest.raises(OSError):
        state.set(640.0)

    assert state.constant is None
    assert store.get(config.CALIBRATION_KEY) is None
    assert config.CALIBRATION_KEY not in store
