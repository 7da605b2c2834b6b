# -*- coding: utf-8 -*-
########################
# play_session.py
########################
# Purpose:
# - Runtime state of one play session (pending notes, score, combo, clock) and its lifecycle.
# - Prepares beatmap notes for play (timing offset and minimum lead-in).
# - Decides when an exhausted session is finished.
#
# Design notes:
# - No Qt usage. SessionController drives this object from its timers; tests drive it directly.
# - Lifecycle: NOT_STARTED -> COUNTING -> ACTIVE -> FINISHED, or ABANDONED from any phase.
# - Input is only judged while ACTIVE. Every mutation happens on the caller's thread; the caller
#   must serialize input and tick calls (single writer).
# - Completion is clock driven: pending notes exhausted, clock past min_elapsed_ms, then settle_delay_ms.
#
########################
# Interfaces:
# Public enums:
# - class SessionPhase(enum.Enum): NOT_STARTED | COUNTING | ACTIVE | FINISHED | ABANDONED
#
# Public dataclasses:
# - SessionTimings(countdown_from, countdown_tick_ms, tick_interval_ms, min_start_time_ms,
#                  settle_delay_ms, results_hold_ms, min_elapsed_ms)
# - SessionResults(title, score, max_combo, perfect_count, good_count, ok_count, miss_count,
#                  stray_count, total_notes)
#
# Public functions:
# - prepare_notes_for_play(beatmap: Beatmap, *, min_start_time_ms: int) -> tuple[Note, ...]
#
# Public classes:
# - class JudgementSession
#   - __init__(beatmap, *, judgement_windows, timings, clock)
#   - phase() / beatmap() / clock() / countdown_value() / score_state() / last_judgement()
#   - pending_notes() -> tuple[Note, ...]
#   - begin_countdown() -> int
#   - countdown_step() -> int
#   - start() -> None
#   - judge_input(lane, at_clock_ms) -> Optional[JudgementResult]
#   - advance() -> list[JudgementResult]
#   - abandon() -> None
#   - results() -> SessionResults
#
########################

from __future__ import annotations

from dataclasses import dataclass
import enum
from typing import List, Optional, Tuple

from beatmap_models import Beatmap, InputEvent, JudgementResult, Note, sort_notes
import judge
import note_scheduler
import timing_model


class SessionPhase(enum.Enum):
    NOT_STARTED = "not_started"
    COUNTING = "countdown"
    ACTIVE = "active"
    FINISHED = "finished"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class SessionTimings:
    countdown_from: int = 3
    countdown_tick_ms: int = 1000
    tick_interval_ms: int = 16
    min_start_time_ms: int = 3000
    settle_delay_ms: int = 1000
    results_hold_ms: int = 2000
    min_elapsed_ms: int = 5000


@dataclass(frozen=True)
class SessionResults:
    title: str
    score: int
    max_combo: int
    perfect_count: int
    good_count: int
    ok_count: int
    miss_count: int
    stray_count: int
    total_notes: int


def prepare_notes_for_play(beatmap: Beatmap, *, min_start_time_ms: int) -> Tuple[Note, ...]:
    """Shift notes by the beatmap offset, then push them past the minimum lead-in if needed."""
    offset_ms = int(beatmap.timing_offset_ms)
    shifted = [Note(time_ms=int(note.time_ms) + offset_ms, lane=note.lane) for note in beatmap.notes]
    if not shifted:
        return ()

    earliest_ms = min(note.time_ms for note in shifted)
    if earliest_ms < int(min_start_time_ms):
        lead_in_ms = int(min_start_time_ms) - earliest_ms
        shifted = [Note(time_ms=note.time_ms + lead_in_ms, lane=note.lane) for note in shifted]
    return sort_notes(shifted)


class JudgementSession:
    def __init__(
        self,
        beatmap: Beatmap,
        *,
        judgement_windows: judge.JudgementWindows,
        timings: SessionTimings,
        clock: timing_model.SessionClock,
    ) -> None:
        self._beatmap = beatmap
        self._judgement_windows = judgement_windows
        self._timings = timings
        self._clock = clock

        self._phase = SessionPhase.NOT_STARTED
        self._countdown_value = int(timings.countdown_from)
        self._note_scheduler: Optional[note_scheduler.NoteScheduler] = None
        self._judge_engine: Optional[judge.JudgeEngine] = None
        self._finish_due_clock_ms: Optional[int] = None

    def phase(self) -> SessionPhase:
        return self._phase

    def beatmap(self) -> Beatmap:
        return self._beatmap

    def clock(self) -> timing_model.SessionClock:
        return self._clock

    def timings(self) -> SessionTimings:
        return self._timings

    def countdown_value(self) -> int:
        return self._countdown_value

    def score_state(self) -> judge.ScoreState:
        if self._judge_engine is None:
            return judge.ScoreState()
        return self._judge_engine.score_state()

    def last_judgement(self) -> Optional[JudgementResult]:
        if self._judge_engine is None:
            return None
        return self._judge_engine.last_judgement()

    def pending_notes(self) -> Tuple[Note, ...]:
        if self._note_scheduler is None:
            return ()
        return self._note_scheduler.pending_notes()

    def begin_countdown(self) -> int:
        if self._phase != SessionPhase.NOT_STARTED:
            raise RuntimeError(f"Countdown cannot begin from phase {self._phase.value}")
        self._phase = SessionPhase.COUNTING
        self._countdown_value = int(self._timings.countdown_from)
        if self._countdown_value <= 0:
            self.start()
        return self._countdown_value

    def countdown_step(self) -> int:
        if self._phase != SessionPhase.COUNTING:
            return self._countdown_value
        self._countdown_value = max(0, self._countdown_value - 1)
        if self._countdown_value == 0:
            self.start()
        return self._countdown_value

    def start(self) -> None:
        if self._phase not in (SessionPhase.NOT_STARTED, SessionPhase.COUNTING):
            raise RuntimeError(f"Session cannot start from phase {self._phase.value}")
        self._clock.start()
        notes = prepare_notes_for_play(self._beatmap, min_start_time_ms=int(self._timings.min_start_time_ms))
        self._note_scheduler = note_scheduler.NoteScheduler(notes)
        self._judge_engine = judge.JudgeEngine(self._note_scheduler, self._judgement_windows)
        self._countdown_value = 0
        self._finish_due_clock_ms = None
        self._phase = SessionPhase.ACTIVE

    def judge_input(self, lane: object, at_clock_ms: Optional[int] = None) -> Optional[JudgementResult]:
        if self._phase != SessionPhase.ACTIVE or self._judge_engine is None:
            return None
        clock_value = self._clock.clock_ms() if at_clock_ms is None else at_clock_ms
        return self._judge_engine.on_input_event(InputEvent(lane=lane, at_clock_ms=clock_value))  # type: ignore[arg-type]

    def advance(self) -> List[JudgementResult]:
        """Run one tick: expire overdue notes, then check for completion."""
        if self._phase != SessionPhase.ACTIVE or self._judge_engine is None or self._note_scheduler is None:
            return []

        clock_ms = self._clock.clock_ms()
        misses = self._judge_engine.update_for_time(clock_ms)

        if self._finish_due_clock_ms is None:
            exhausted = self._note_scheduler.is_empty() and self._note_scheduler.original_count() > 0
            if exhausted and clock_ms >= int(self._timings.min_elapsed_ms):
                self._finish_due_clock_ms = clock_ms + int(self._timings.settle_delay_ms)

        if self._finish_due_clock_ms is not None and clock_ms >= self._finish_due_clock_ms:
            self._phase = SessionPhase.FINISHED

        return misses

    def abandon(self) -> None:
        if self._phase in (SessionPhase.FINISHED, SessionPhase.ABANDONED):
            return
        self._phase = SessionPhase.ABANDONED

    def results(self) -> SessionResults:
        score_state = self.score_state()
        return SessionResults(
            title=str(self._beatmap.title),
            score=int(score_state.score),
            max_combo=int(score_state.max_combo),
            perfect_count=int(score_state.perfect_count),
            good_count=int(score_state.good_count),
            ok_count=int(score_state.ok_count),
            miss_count=int(score_state.miss_count),
            stray_count=int(score_state.stray_count),
            total_notes=len(self._beatmap.notes),
        )
