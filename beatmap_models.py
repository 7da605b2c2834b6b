# -*- coding: utf-8 -*-
########################
# beatmap_models.py
########################
# Purpose:
# - Core data models shared by the chart parser, augmenter, judge and session controller.
# - Defines the internal Beatmap representation and gameplay events.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain dataclasses and enums.
# - Lanes are a tagged enum. Raw lane codes (1/'don', 2/'ka') are only accepted by LaneType.from_code.
#
########################
# Interfaces:
# Public enums:
# - class LaneType(enum.Enum): CENTER | RIM
#   - from_code(value: object) -> LaneType
# - class DifficultyTier(enum.Enum): EASY | MEDIUM | HARD
#   - from_overall_difficulty(overall_difficulty: float) -> DifficultyTier
# - class JudgementKind(enum.Enum): PERFECT | GOOD | OK | MISS
#
# Public dataclasses:
# - Note(time_ms: int, lane: LaneType)
# - Beatmap(title: str, artist: str, bpm: Optional[int], difficulty_tier: DifficultyTier,
#           timing_offset_ms: int, notes: tuple[Note, ...], audio_filename: Optional[str])
#   - with_notes(notes: Iterable[Note]) -> Beatmap
# - HitObjectRecord(x_position, time_ms, type_bits, hit_sound_bits, slider_repeats,
#                   slider_duration_ms, spinner_end_time_ms)
# - InputEvent(lane: LaneType, at_clock_ms: int)
# - JudgementResult(kind: JudgementKind, score_delta: int, note: Optional[Note], at_clock_ms: int)
#
# Public functions:
# - sort_notes(notes: Iterable[Note]) -> tuple[Note, ...]
#
########################

from __future__ import annotations

from dataclasses import dataclass, replace
import enum
from typing import Iterable, Optional, Tuple


class LaneType(enum.Enum):
    CENTER = "center"
    RIM = "rim"

    @classmethod
    def from_code(cls, value: object) -> "LaneType":
        if isinstance(value, LaneType):
            return value
        text = str(value).strip().lower()
        if text in ("1", "don", "center"):
            return cls.CENTER
        if text in ("2", "ka", "rim"):
            return cls.RIM
        raise ValueError(f"Unknown lane code: {value!r}")


class DifficultyTier(enum.Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def from_overall_difficulty(cls, overall_difficulty: float) -> "DifficultyTier":
        value = float(overall_difficulty)
        if value < 3.0:
            return cls.EASY
        if value < 6.0:
            return cls.MEDIUM
        return cls.HARD


class JudgementKind(enum.Enum):
    PERFECT = "perfect"
    GOOD = "good"
    OK = "ok"
    MISS = "miss"


@dataclass(frozen=True)
class Note:
    time_ms: int
    lane: LaneType


def sort_notes(notes: Iterable[Note]) -> Tuple[Note, ...]:
    # Stable: simultaneous notes keep their emission order.
    return tuple(sorted(notes, key=lambda note: note.time_ms))


@dataclass(frozen=True)
class Beatmap:
    title: str = "Unknown Song"
    artist: str = "Unknown Artist"
    bpm: Optional[int] = None
    difficulty_tier: DifficultyTier = DifficultyTier.MEDIUM
    timing_offset_ms: int = 0
    notes: Tuple[Note, ...] = ()
    audio_filename: Optional[str] = None

    def with_notes(self, notes: Iterable[Note]) -> "Beatmap":
        return replace(self, notes=sort_notes(notes))


@dataclass(frozen=True)
class HitObjectRecord:
    x_position: int
    time_ms: int
    type_bits: int
    hit_sound_bits: int = 0
    slider_repeats: Optional[int] = None
    slider_duration_ms: Optional[int] = None
    spinner_end_time_ms: Optional[int] = None


@dataclass(frozen=True)
class InputEvent:
    lane: LaneType
    at_clock_ms: int


@dataclass(frozen=True)
class JudgementResult:
    kind: JudgementKind
    score_delta: int
    note: Optional[Note]
    at_clock_ms: int
