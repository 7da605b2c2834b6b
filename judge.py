# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit judgement and scoring engine.
# - Matches InputEvent to the nearest pending note of the same lane within the timing window.
# - Generates JudgementResult for hits, stray presses and expired notes.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Strict inputs: consume only InputEvent and clock_ms.
# - NoteScheduler owns the pending notes; a judged note is removed through the scheduler boundary.
# - Score bonus uses the combo built before the current hit (pre-increment).
#
########################
# Interfaces:
# Public constants:
# - TIMING_WINDOW_MS = 300
# - BASE_POINTS: dict[JudgementKind, int]
#
# Public dataclasses:
# - JudgementWindows(perfect_ms: int, good_ms: int, ok_ms: int)
#   - classify_delta(delta_ms: int) -> Optional[JudgementKind]
#   - from_timing_window(timing_window_ms, *, perfect_ms, good_ratio) -> JudgementWindows
# - ScoreState(score, combo, max_combo, perfect_count, good_count, ok_count, miss_count, stray_count)
#   - apply_hit(kind: JudgementKind) -> int
#   - apply_miss(*, stray: bool) -> None
#
# Public functions:
# - score_for_hit(base_points: int, combo_before_hit: int) -> int
#
# Public classes:
# - class JudgeEngine
#   - __init__(note_scheduler: NoteScheduler, judgement_windows: JudgementWindows)
#   - score_state() -> ScoreState
#   - judgement_windows() -> JudgementWindows
#   - last_judgement() -> Optional[JudgementResult]
#   - on_input_event(input_event: InputEvent) -> Optional[JudgementResult]
#   - update_for_time(clock_ms: int) -> list[JudgementResult]
#
# Inputs:
# - InputEvent(lane: LaneType, at_clock_ms: int)
# - clock_ms: int (from SessionClock)
#
# Outputs:
# - JudgementResult objects for UI and stats.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Dict, List, Optional

from beatmap_models import InputEvent, JudgementKind, JudgementResult, LaneType, Note
import note_scheduler


TIMING_WINDOW_MS = 300
PERFECT_WINDOW_MS = 100
GOOD_WINDOW_RATIO = 0.7

BASE_POINTS: Dict[JudgementKind, int] = {
    JudgementKind.PERFECT: 100,
    JudgementKind.GOOD: 75,
    JudgementKind.OK: 50,
}

# Combo bonus is 10% per combo step, capped at +200%.
_COMBO_BONUS_STEP = 0.1
_COMBO_BONUS_CAP = 2.0


def score_for_hit(base_points: int, combo_before_hit: int) -> int:
    combo = max(0, int(combo_before_hit))
    # Float expression kept as is: combo 13 floors to 229 for base 100, not 230.
    multiplier = 1.0 + min(combo * _COMBO_BONUS_STEP, _COMBO_BONUS_CAP)
    return int(math.floor(int(base_points) * multiplier))


@dataclass(frozen=True)
class JudgementWindows:
    perfect_ms: int = PERFECT_WINDOW_MS
    good_ms: int = int(round(TIMING_WINDOW_MS * GOOD_WINDOW_RATIO))
    ok_ms: int = TIMING_WINDOW_MS

    @classmethod
    def from_timing_window(
        cls,
        timing_window_ms: int,
        *,
        perfect_ms: int = PERFECT_WINDOW_MS,
        good_ratio: float = GOOD_WINDOW_RATIO,
    ) -> "JudgementWindows":
        window = int(timing_window_ms)
        return cls(
            perfect_ms=min(int(perfect_ms), window),
            good_ms=min(int(round(window * float(good_ratio))), window),
            ok_ms=window,
        )

    def classify_delta(self, delta_ms: int) -> Optional[JudgementKind]:
        abs_delta = abs(int(delta_ms))
        if abs_delta <= int(self.perfect_ms):
            return JudgementKind.PERFECT
        if abs_delta <= int(self.good_ms):
            return JudgementKind.GOOD
        if abs_delta <= int(self.ok_ms):
            return JudgementKind.OK
        return None


@dataclass
class ScoreState:
    score: int = 0
    combo: int = 0
    max_combo: int = 0
    perfect_count: int = 0
    good_count: int = 0
    ok_count: int = 0
    miss_count: int = 0
    stray_count: int = 0

    def apply_hit(self, kind: JudgementKind) -> int:
        base_points = BASE_POINTS.get(kind)
        if base_points is None:
            # Miss and unknown kinds never award points.
            return 0

        score_delta = score_for_hit(base_points, self.combo)
        self.score += score_delta
        self.combo += 1
        if self.combo > self.max_combo:
            self.max_combo = self.combo

        if kind == JudgementKind.PERFECT:
            self.perfect_count += 1
        elif kind == JudgementKind.GOOD:
            self.good_count += 1
        else:
            self.ok_count += 1
        return score_delta

    def apply_miss(self, *, stray: bool) -> None:
        self.combo = 0
        if stray:
            self.stray_count += 1
        else:
            self.miss_count += 1


class JudgeEngine:
    def __init__(self, note_scheduler_obj: note_scheduler.NoteScheduler, judgement_windows: JudgementWindows) -> None:
        self._note_scheduler = note_scheduler_obj
        self._judgement_windows = judgement_windows
        self._score_state = ScoreState()
        self._last_judgement: Optional[JudgementResult] = None

    def score_state(self) -> ScoreState:
        return self._score_state

    def judgement_windows(self) -> JudgementWindows:
        return self._judgement_windows

    def last_judgement(self) -> Optional[JudgementResult]:
        return self._last_judgement

    def on_input_event(self, input_event: InputEvent) -> Optional[JudgementResult]:
        lane = getattr(input_event, "lane", None)
        at_clock_ms = getattr(input_event, "at_clock_ms", None)
        if not isinstance(lane, LaneType):
            return None
        if not isinstance(at_clock_ms, int) or isinstance(at_clock_ms, bool) or at_clock_ms < 0:
            return None

        index = self._note_scheduler.find_nearest_pending_index(
            lane=lane,
            target_time_ms=at_clock_ms,
            max_window_ms=int(self._judgement_windows.ok_ms),
        )
        if index is None:
            # Wrong lane or nothing in range: the press itself is the miss, no note is consumed.
            self._score_state.apply_miss(stray=True)
            return self._record(JudgementKind.MISS, score_delta=0, note=None, at_clock_ms=at_clock_ms)

        note = self._note_scheduler.take(index)
        kind = self._judgement_windows.classify_delta(at_clock_ms - int(note.time_ms))
        if kind is None:
            # Unreachable while the search window equals ok_ms.
            kind = JudgementKind.OK
        score_delta = self._score_state.apply_hit(kind)
        return self._record(kind, score_delta=score_delta, note=note, at_clock_ms=at_clock_ms)

    def update_for_time(self, clock_ms: int) -> List[JudgementResult]:
        misses: List[JudgementResult] = []
        expired_notes = self._note_scheduler.take_expired(
            clock_ms=int(clock_ms),
            window_ms=int(self._judgement_windows.ok_ms),
        )
        for note in expired_notes:
            self._score_state.apply_miss(stray=False)
            misses.append(self._record(JudgementKind.MISS, score_delta=0, note=note, at_clock_ms=int(clock_ms)))
        return misses

    def _record(
        self,
        kind: JudgementKind,
        *,
        score_delta: int,
        note: Optional[Note],
        at_clock_ms: int,
    ) -> JudgementResult:
        result = JudgementResult(kind=kind, score_delta=int(score_delta), note=note, at_clock_ms=int(at_clock_ms))
        self._last_judgement = result
        return result


def _run_unit_tests() -> None:
    scheduler = note_scheduler.NoteScheduler(
        [Note(time_ms=1000, lane=LaneType.CENTER), Note(time_ms=2000, lane=LaneType.RIM)]
    )
    engine = JudgeEngine(scheduler, JudgementWindows())

    first = engine.on_input_event(InputEvent(lane=LaneType.CENTER, at_clock_ms=1000))
    assert first is not None and first.kind == JudgementKind.PERFECT and first.score_delta == 100
    second = engine.on_input_event(InputEvent(lane=LaneType.RIM, at_clock_ms=2000))
    assert second is not None and second.kind == JudgementKind.PERFECT and second.score_delta == 110
    assert engine.score_state().score == 210
    assert engine.score_state().max_combo == 2

    stray = engine.on_input_event(InputEvent(lane=LaneType.RIM, at_clock_ms=2000))
    assert stray is not None and stray.kind == JudgementKind.MISS and stray.note is None
    assert engine.score_state().combo == 0

    late = JudgeEngine(note_scheduler.NoteScheduler([Note(time_ms=1000, lane=LaneType.CENTER)]), JudgementWindows())
    assert len(late.update_for_time(1301)) == 1
    assert late.update_for_time(10000) == []


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
