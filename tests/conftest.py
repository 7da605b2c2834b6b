from __future__ import annotations

import itertools
import time
from typing import Callable, Dict, List

import pytest
from PyQt6.QtCore import QCoreApplication

import audio_transport


class FakeClock:
    """Manually advanced millisecond time source."""

    def __init__(self, start_ms: int = 50_000) -> None:
        self.now_ms = int(start_ms)

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, delta_ms: int) -> int:
        self.now_ms += int(delta_ms)
        return self.now_ms


class FakeTransport:
    """In-memory AudioTransport double that records every call."""

    def __init__(self, *, fail_load: bool = False, fail_on_ended: bool = False) -> None:
        self.fail_load = fail_load
        self.fail_on_ended = fail_on_ended
        self.calls: List[tuple] = []
        self.positions: Dict[int, int] = {}
        self.loaded: Dict[int, str] = {}
        self._callbacks: Dict[int, List[Callable[[], None]]] = {}
        self._error_callbacks: Dict[int, List[Callable[[str], None]]] = {}
        self._handles = itertools.count(1)

    def load(self, source: str) -> int:
        self.calls.append(("load", source))
        if self.fail_load:
            raise audio_transport.AudioTransportError(f"cannot open {source}")
        handle = next(self._handles)
        self.loaded[handle] = source
        self.positions[handle] = 0
        return handle

    def play(self, handle: int) -> None:
        self.calls.append(("play", handle))

    def stop(self, handle: int) -> None:
        self.calls.append(("stop", handle))

    def seek(self, handle: int, position_ms: int) -> None:
        self.calls.append(("seek", handle, int(position_ms)))
        self.positions[handle] = int(position_ms)

    def get_position(self, handle: int) -> int:
        return self.positions.get(handle, 0)

    def on_ended(self, handle: int, callback: Callable[[], None]) -> None:
        if self.fail_on_ended:
            raise audio_transport.AudioTransportError("end-of-track notifications unsupported")
        self._callbacks.setdefault(handle, []).append(callback)

    def on_error(self, handle: int, callback: Callable[[str], None]) -> None:
        self._error_callbacks.setdefault(handle, []).append(callback)

    def unload(self, handle: int) -> None:
        self.calls.append(("unload", handle))
        self.loaded.pop(handle, None)
        self._callbacks.pop(handle, None)
        self._error_callbacks.pop(handle, None)

    def fire_ended(self, handle: int) -> None:
        for callback in list(self._callbacks.get(handle, [])):
            callback()

    def fire_error(self, handle: int, message: str) -> None:
        for callback in list(self._error_callbacks.get(handle, [])):
            callback(message)

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


def wait_for(qapp: QCoreApplication, predicate: Callable[[], bool], timeout_ms: int = 2000) -> bool:
    deadline = time.monotonic() + timeout_ms / 1000.0
    while time.monotonic() < deadline:
        qapp.processEvents()
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "TAIKOBEAT_CONFIG_PATH",
        "TAIKOBEAT_TIMING_WINDOW_MS",
        "TAIKOBEAT_TICK_INTERVAL_MS",
        "TAIKOBEAT_HARD_MODE",
        "TAIKOBEAT_AUDIO_ENABLED",
        "TAIKOBEAT_SONGS_DIR",
        "TAIKOBEAT_HIGH_SCORES_PATH",
        "TAIKOBEAT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

