# -*- coding: utf-8 -*-
########################
# note_scheduler.py
########################
# Purpose:
# - Own the pending (unjudged) notes of one play session.
# - Provide the nearest-candidate query used by JudgeEngine and the expiry query used by the tick loop.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Pending notes only shrink. A note leaves the list exactly once, by take() or take_expired().
#   Removal is the single point that guarantees at most one judgement per note.
# - Pending order is the beatmap order (ascending time, stable for equal times).
#
########################
# Interfaces:
# Public classes:
# - class NoteScheduler
#   - __init__(notes: Iterable[Note])
#   - original_count() -> int
#   - pending_count() -> int
#   - is_empty() -> bool
#   - pending_notes() -> tuple[Note, ...]
#   - find_nearest_pending_index(*, lane: LaneType, target_time_ms: int, max_window_ms: int) -> Optional[int]
#   - take(index: int) -> Note
#   - take_expired(*, clock_ms: int, window_ms: int) -> list[Note]
#
# Inputs:
# - Notes (already offset-adjusted by the session) and clock values in milliseconds.
#
# Outputs:
# - Candidate indexes and removed notes for JudgeEngine.
#
########################

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from beatmap_models import LaneType, Note, sort_notes


class NoteScheduler:
    def __init__(self, notes: Iterable[Note]) -> None:
        self._pending: List[Note] = list(sort_notes(notes))
        self._original_count = len(self._pending)

    def original_count(self) -> int:
        return self._original_count

    def pending_count(self) -> int:
        return len(self._pending)

    def is_empty(self) -> bool:
        return not self._pending

    def pending_notes(self) -> Tuple[Note, ...]:
        return tuple(self._pending)

    def find_nearest_pending_index(
        self,
        *,
        lane: LaneType,
        target_time_ms: int,
        max_window_ms: int,
    ) -> Optional[int]:
        target = int(target_time_ms)
        window = int(max_window_ms)

        best_index: Optional[int] = None
        best_abs_delta = 0
        best_note_time = 0

        # Linear scan over every pending note: the nearest in time wins, not the first in list order.
        for index, candidate in enumerate(self._pending):
            if candidate.lane != lane:
                continue
            abs_delta = abs(int(candidate.time_ms) - target)
            if abs_delta > window:
                continue

            if best_index is None or abs_delta < best_abs_delta:
                best_index = index
                best_abs_delta = abs_delta
                best_note_time = int(candidate.time_ms)
            elif abs_delta == best_abs_delta and int(candidate.time_ms) < best_note_time:
                # Tie break: the earlier note wins when equidistant.
                best_index = index
                best_note_time = int(candidate.time_ms)

        return best_index

    def take(self, index: int) -> Note:
        return self._pending.pop(int(index))

    def take_expired(self, *, clock_ms: int, window_ms: int) -> List[Note]:
        cutoff_ms = int(clock_ms) - int(window_ms)
        expired = [note for note in self._pending if int(note.time_ms) < cutoff_ms]
        if expired:
            self._pending = [note for note in self._pending if int(note.time_ms) >= cutoff_ms]
        return expired


def _run_unit_tests() -> None:
    notes = [
        Note(time_ms=1000, lane=LaneType.RIM),
        Note(time_ms=1000, lane=LaneType.CENTER),
        Note(time_ms=500, lane=LaneType.CENTER),
    ]
    scheduler = NoteScheduler(notes)
    assert [note.time_ms for note in scheduler.pending_notes()] == [500, 1000, 1000]

    nearest = scheduler.find_nearest_pending_index(lane=LaneType.CENTER, target_time_ms=900, max_window_ms=300)
    assert nearest is not None
    assert scheduler.pending_notes()[nearest] == Note(time_ms=1000, lane=LaneType.CENTER)

    expired = scheduler.take_expired(clock_ms=900, window_ms=300)
    assert expired == [Note(time_ms=500, lane=LaneType.CENTER)]
    assert scheduler.pending_count() == 2
    assert scheduler.original_count() == 3


if __name__ == "__main__":
    _run_unit_tests()
    print("note_scheduler.py: ok")
