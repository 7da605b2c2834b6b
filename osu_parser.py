# -*- coding: utf-8 -*-
########################
# osu_parser.py
########################
# Purpose:
# - Parse osu! .osu beatmap text into the internal beatmap_models.Beatmap representation.
# - Convert osu! hit objects (circles, sliders, spinners) into two-lane Center/Rim notes.
#
# Design notes:
# - No Qt usage. Pure parsing.
# - Structurally lenient: malformed lines are skipped so partially broken community charts stay playable.
# - Only undecodable input (or an unreadable file) is a hard error (ParseError).
# - Lane codes never leave this module as raw numbers; notes carry LaneType.
#
########################
# Interfaces:
# Public exceptions:
# - class ParseError(Exception)
#
# Public functions:
# - parse(raw_text: str | bytes) -> Beatmap
# - parse_hit_object_line(line_text: str) -> Optional[HitObjectRecord]
# - notes_from_hit_object(record: HitObjectRecord) -> list[Note]
# - load_beatmap_file(chart_path: pathlib.Path) -> Beatmap
#
# Inputs:
# - UTF-8 text in the [Section] / Key: Value / CSV hybrid format of .osu files.
#
# Outputs:
# - Beatmap with notes sorted ascending by time (stable for equal times).
#
########################

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Union

from beatmap_models import Beatmap, DifficultyTier, HitObjectRecord, LaneType, Note, sort_notes


_LOGGER = logging.getLogger(__name__)

DEFAULT_TITLE = "Unknown Song"
DEFAULT_ARTIST = "Unknown Artist"
DEFAULT_DIFFICULTY_TIER = DifficultyTier.MEDIUM

SPINNER_NOTE_INTERVAL_MS = 200

# Plain hit objects with x at or beyond the playfield midline become Rim notes.
RIM_X_THRESHOLD = 256

_TYPE_BIT_SLIDER = 2
_TYPE_BIT_SPINNER = 8
_HIT_SOUND_WHISTLE = 2
_HIT_SOUND_CLAP = 8


class ParseError(Exception):
    """Raised when chart input cannot be read or decoded as text at all."""


def _decode_text(raw_text: Union[str, bytes]) -> str:
    if isinstance(raw_text, str):
        return raw_text
    if isinstance(raw_text, (bytes, bytearray)):
        try:
            return bytes(raw_text).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError("Chart is not valid UTF-8 text") from exc
    raise ParseError(f"Chart input must be str or bytes, got {type(raw_text).__name__}")


def _parse_int(text: str) -> Optional[int]:
    value_text = str(text or "").strip()
    if not value_text:
        return None
    try:
        return int(value_text)
    except ValueError:
        pass
    try:
        value = float(value_text)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return int(value)


def _parse_float(text: str) -> Optional[float]:
    value_text = str(text or "").strip()
    if not value_text:
        return None
    try:
        value = float(value_text)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _split_key_value(line_text: str) -> Optional[tuple]:
    colon_index = line_text.find(":")
    if colon_index <= 0:
        return None
    key = line_text[:colon_index].strip()
    value = line_text[colon_index + 1:].strip()
    return key, value


def _bpm_from_timing_line(line_text: str) -> Optional[int]:
    parts = line_text.split(",")
    if len(parts) < 2:
        return None
    beat_length_ms = _parse_float(parts[1])
    if beat_length_ms is None or beat_length_ms <= 0.0:
        return None
    return int(math.floor(60000.0 / beat_length_ms + 0.5))


def parse_hit_object_line(line_text: str) -> Optional[HitObjectRecord]:
    """Parse one [HitObjects] line. Returns None for malformed lines.

    Layout: x,y,time,type,hitSound,... where sliders carry repeats and duration
    at fields 6 and 7, and spinners carry their end time at field 5.
    """
    parts = [part.strip() for part in str(line_text).split(",")]
    if len(parts) < 4:
        return None

    x_position = _parse_int(parts[0])
    time_ms = _parse_int(parts[2])
    type_bits = _parse_int(parts[3])
    if x_position is None or time_ms is None or type_bits is None:
        return None

    hit_sound_bits = 0
    if len(parts) > 4:
        hit_sound_bits = _parse_int(parts[4]) or 0

    slider_repeats: Optional[int] = None
    slider_duration_ms: Optional[int] = None
    spinner_end_time_ms: Optional[int] = None

    if type_bits & _TYPE_BIT_SPINNER:
        if len(parts) > 5:
            spinner_end_time_ms = _parse_int(parts[5])
    elif type_bits & _TYPE_BIT_SLIDER:
        if len(parts) > 7:
            slider_repeats = _parse_int(parts[6])
            slider_duration_ms = _parse_int(parts[7])

    return HitObjectRecord(
        x_position=x_position,
        time_ms=time_ms,
        type_bits=type_bits,
        hit_sound_bits=hit_sound_bits,
        slider_repeats=slider_repeats,
        slider_duration_ms=slider_duration_ms,
        spinner_end_time_ms=spinner_end_time_ms,
    )


def notes_from_hit_object(record: HitObjectRecord) -> List[Note]:
    start_ms = int(record.time_ms)

    if record.type_bits & _TYPE_BIT_SPINNER:
        end_ms = record.spinner_end_time_ms
        if end_ms is None or end_ms < start_ms:
            return [Note(time_ms=start_ms, lane=LaneType.CENTER)]
        return [
            Note(time_ms=time_ms, lane=LaneType.CENTER)
            for time_ms in range(start_ms, int(end_ms) + 1, SPINNER_NOTE_INTERVAL_MS)
        ]

    if record.type_bits & _TYPE_BIT_SLIDER:
        notes = [Note(time_ms=start_ms, lane=LaneType.CENTER)]
        repeats = record.slider_repeats
        duration_ms = record.slider_duration_ms
        if repeats is not None and duration_ms is not None and repeats > 0 and duration_ms > 0:
            tick_interval_ms = float(duration_ms) / float(repeats + 1)
            for tick_index in range(1, repeats + 1):
                tick_time_ms = int(math.floor(start_ms + tick_interval_ms * tick_index))
                notes.append(Note(time_ms=tick_time_ms, lane=LaneType.RIM))
        return notes

    lane = LaneType.CENTER
    if record.x_position >= RIM_X_THRESHOLD:
        lane = LaneType.RIM
    if record.hit_sound_bits & (_HIT_SOUND_WHISTLE | _HIT_SOUND_CLAP):
        lane = LaneType.RIM
    return [Note(time_ms=start_ms, lane=lane)]


def parse(raw_text: Union[str, bytes]) -> Beatmap:
    text = _decode_text(raw_text)

    metadata: Dict[str, str] = {}
    overall_difficulty: Optional[float] = None
    bpm: Optional[int] = None
    notes: List[Note] = []
    skipped_lines = 0

    current_section: Optional[str] = None
    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line_text = raw_line.strip()
        if not line_text or line_text.startswith("//"):
            continue

        if line_text.startswith("[") and line_text.endswith("]"):
            current_section = line_text[1:-1].strip()
            continue

        if current_section in ("General", "Metadata"):
            key_value = _split_key_value(line_text)
            if key_value is not None:
                key, value = key_value
                if key in ("Title", "Artist", "AudioFilename", "AudioLeadIn"):
                    metadata[key] = value

        elif current_section == "Difficulty":
            key_value = _split_key_value(line_text)
            if key_value is not None and key_value[0] == "OverallDifficulty":
                parsed_difficulty = _parse_float(key_value[1])
                if parsed_difficulty is not None:
                    overall_difficulty = parsed_difficulty

        elif current_section == "TimingPoints":
            if bpm is None:
                bpm = _bpm_from_timing_line(line_text)

        elif current_section == "HitObjects":
            record = parse_hit_object_line(line_text)
            if record is None:
                skipped_lines += 1
                _LOGGER.debug("Skipping malformed hit object on line %d: %r", line_number, line_text)
                continue
            notes.extend(notes_from_hit_object(record))

    difficulty_tier = DEFAULT_DIFFICULTY_TIER
    if overall_difficulty is not None:
        difficulty_tier = DifficultyTier.from_overall_difficulty(overall_difficulty)

    timing_offset_ms = _parse_int(metadata.get("AudioLeadIn", "")) or 0
    audio_filename = metadata.get("AudioFilename", "").strip() or None

    beatmap = Beatmap(
        title=metadata.get("Title", "").strip() or DEFAULT_TITLE,
        artist=metadata.get("Artist", "").strip() or DEFAULT_ARTIST,
        bpm=bpm,
        difficulty_tier=difficulty_tier,
        timing_offset_ms=int(timing_offset_ms),
        notes=sort_notes(notes),
        audio_filename=audio_filename,
    )
    if skipped_lines:
        _LOGGER.debug("Parsed %r with %d malformed hit object line(s) skipped", beatmap.title, skipped_lines)
    return beatmap


def load_beatmap_file(chart_path: Path) -> Beatmap:
    try:
        raw_bytes = Path(chart_path).read_bytes()
    except OSError as exc:
        raise ParseError(f"Failed to read chart: {chart_path}") from exc
    return parse(raw_bytes)


def _run_unit_tests() -> None:
    beatmap = parse(
        "[General]\nTitle: T\nArtist: A\n[Difficulty]\nOverallDifficulty: 7\n[HitObjects]\n100,100,1000,1,0"
    )
    assert beatmap.title == "T"
    assert beatmap.artist == "A"
    assert beatmap.difficulty_tier == DifficultyTier.HARD
    assert beatmap.notes == (Note(time_ms=1000, lane=LaneType.CENTER),)

    spinner = parse("[HitObjects]\n256,192,0,8,0,1000")
    assert [note.time_ms for note in spinner.notes] == [0, 200, 400, 600, 800, 1000]
    assert all(note.lane == LaneType.CENTER for note in spinner.notes)

    lenient = parse("[HitObjects]\nbroken\n1,2,x,1\n300,0,500,1,0")
    assert lenient.notes == (Note(time_ms=500, lane=LaneType.RIM),)
    assert lenient.title == DEFAULT_TITLE


if __name__ == "__main__":
    _run_unit_tests()
    print("osu_parser.py: ok")
