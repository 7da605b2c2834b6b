# -*- coding: utf-8 -*-
########################
# timing_model.py
########################
# Purpose:
# - Single source of truth for the song clock during a play session.
# - Converts wall-clock time into session clock milliseconds.
#
# Design notes:
# - The clock value is always derived as now() - clock_start_epoch_ms. It is never advanced by a
#   fixed step, so timer jitter never accumulates into drift.
# - The time source is injected so tests can drive the clock deterministically.
# - No Qt usage. Keep this module pure.
#
########################
# Interfaces:
# Public functions:
# - monotonic_ms() -> int
#
# Public dataclasses:
# - ClockSnapshot(clock_start_epoch_ms: Optional[int], clock_ms: int, is_started: bool)
#
# Public classes:
# - class SessionClock
#   - __init__(time_source_ms: Optional[Callable[[], int]] = None)
#   - now_ms() -> int
#   - start() -> int
#   - is_started() -> bool
#   - clock_start_epoch_ms() -> Optional[int]
#   - clock_ms() -> int
#   - snapshot() -> ClockSnapshot
#
########################

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Callable, Optional


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000.0)


@dataclass(frozen=True)
class ClockSnapshot:
    clock_start_epoch_ms: Optional[int]
    clock_ms: int
    is_started: bool


class SessionClock:
    def __init__(self, time_source_ms: Optional[Callable[[], int]] = None) -> None:
        self._time_source_ms: Callable[[], int] = time_source_ms if time_source_ms is not None else monotonic_ms
        self._clock_start_epoch_ms: Optional[int] = None

    def now_ms(self) -> int:
        return int(self._time_source_ms())

    def start(self) -> int:
        self._clock_start_epoch_ms = self.now_ms()
        return self._clock_start_epoch_ms

    def is_started(self) -> bool:
        return self._clock_start_epoch_ms is not None

    def clock_start_epoch_ms(self) -> Optional[int]:
        return self._clock_start_epoch_ms

    def clock_ms(self) -> int:
        # Contract choice: before start() the clock reads 0.
        if self._clock_start_epoch_ms is None:
            return 0
        return self.now_ms() - int(self._clock_start_epoch_ms)

    def snapshot(self) -> ClockSnapshot:
        return ClockSnapshot(
            clock_start_epoch_ms=self._clock_start_epoch_ms,
            clock_ms=self.clock_ms(),
            is_started=self.is_started(),
        )


def _run_unit_tests() -> None:
    now = [10_000]
    clock = SessionClock(lambda: now[0])
    assert clock.clock_ms() == 0
    assert not clock.is_started()

    clock.start()
    now[0] += 1234
    assert clock.clock_ms() == 1234

    snap = clock.snapshot()
    assert snap.clock_start_epoch_ms == 10_000
    assert snap.is_started


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_model.py: ok")
