# default_chart.py
from __future__ import annotations

from beatmap_models import Beatmap, DifficultyTier, LaneType, Note


DEFAULT_CHART_TITLE = "Practice Drum"
DEFAULT_CHART_ARTIST = "TaikoBeat"

# (time_ms, legacy lane code) pairs; codes are normalized through LaneType.from_code.
_DEFAULT_PATTERN = [
    (1000, "don"),
    (2000, "ka"),
    (3000, "don"),
    (3500, "don"),
    (4000, "ka"),
    (4500, "don"),
    (5000, "ka"),
    (5500, "don"),
    (6000, "don"),
    (6500, "ka"),
    (7000, "don"),
]


def build_default_beatmap() -> Beatmap:
    """Built-in chart used when a selected beatmap has no notes."""
    notes = [Note(time_ms=int(time_ms), lane=LaneType.from_code(code)) for time_ms, code in _DEFAULT_PATTERN]
    return Beatmap(
        title=DEFAULT_CHART_TITLE,
        artist=DEFAULT_CHART_ARTIST,
        bpm=120,
        difficulty_tier=DifficultyTier.EASY,
        timing_offset_ms=0,
    ).with_notes(notes)
