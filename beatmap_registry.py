# -*- coding: utf-8 -*-
########################
# beatmap_registry.py
########################
# Purpose:
# - Locate .osu charts in the songs directory, parse them once and serve them by song id.
# - Provide song-select summaries (title, artist, tier, bpm, note count).
#
# Key Logic:
# - Explicit lifecycle owned by whoever composes the SessionController: create, initialize(), dispose().
#   There is no module-level cache.
# - Scan order is deterministic: *.osu files sorted by file name. Song id is the file stem.
# - A chart that fails to parse is logged and skipped; one bad file never blocks the library.
#
########################
# Interfaces:
# Public dataclasses:
# - SongSummary(song_id, title, artist, difficulty_tier, bpm, note_count)
# - RegisteredSong(song_id, beatmap, chart_path, audio_path)
#   - summary() -> SongSummary
#
# Public classes:
# - class BeatmapRegistry
#   - __init__(songs_dir: pathlib.Path)
#   - is_initialized() -> bool
#   - initialize() -> int
#   - dispose() -> None
#   - songs() -> list[SongSummary]
#   - get(song_id: str) -> Optional[RegisteredSong]
#   - add_chart(chart_path: pathlib.Path, *, song_id: Optional[str] = None) -> RegisteredSong
#
# Inputs:
# - songs_dir from config.library.songs_dir
#
# Outputs:
# - RegisteredSong for the session controller, SongSummary for song selection.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import Dict, List, Optional

from beatmap_models import Beatmap, DifficultyTier
import osu_parser


_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SongSummary:
    song_id: str
    title: str
    artist: str
    difficulty_tier: DifficultyTier
    bpm: Optional[int]
    note_count: int


@dataclass(frozen=True)
class RegisteredSong:
    song_id: str
    beatmap: Beatmap
    chart_path: Path
    audio_path: Optional[Path]

    def summary(self) -> SongSummary:
        return SongSummary(
            song_id=self.song_id,
            title=self.beatmap.title,
            artist=self.beatmap.artist,
            difficulty_tier=self.beatmap.difficulty_tier,
            bpm=self.beatmap.bpm,
            note_count=len(self.beatmap.notes),
        )


def _list_chart_files(directory_path: Path) -> List[Path]:
    if not directory_path.exists():
        return []
    if not directory_path.is_dir():
        return []
    return sorted([path for path in directory_path.glob("*.osu") if path.is_file()], key=lambda item: item.name)


def _resolve_audio_path(chart_path: Path, audio_filename: Optional[str]) -> Optional[Path]:
    if not audio_filename:
        return None
    candidate = chart_path.parent / audio_filename
    if candidate.is_file():
        return candidate
    return None


def _generated_song_id() -> str:
    return f"beatmap_{int(time.time() * 1000)}"


class BeatmapRegistry:
    def __init__(self, songs_dir: Path) -> None:
        self._songs_dir = Path(songs_dir)
        self._songs: Dict[str, RegisteredSong] = {}
        self._initialized = False

    @property
    def songs_dir(self) -> Path:
        return self._songs_dir

    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> int:
        """Load every chart in the songs directory. Safe to call twice."""
        if self._initialized:
            return len(self._songs)

        for chart_path in _list_chart_files(self._songs_dir):
            try:
                self._register(chart_path, song_id=chart_path.stem)
            except osu_parser.ParseError as exc:
                _LOGGER.error("Skipping chart %s: %s", chart_path, exc)

        self._initialized = True
        _LOGGER.info("Beatmap registry initialized with %d song(s) from %s", len(self._songs), self._songs_dir)
        return len(self._songs)

    def dispose(self) -> None:
        self._songs.clear()
        self._initialized = False

    def songs(self) -> List[SongSummary]:
        return [song.summary() for song in self._songs.values()]

    def get(self, song_id: str) -> Optional[RegisteredSong]:
        return self._songs.get(str(song_id))

    def add_chart(self, chart_path: Path, *, song_id: Optional[str] = None) -> RegisteredSong:
        """Parse and register one chart. Raises osu_parser.ParseError when unreadable."""
        song_id_text = str(song_id or "").strip() or _generated_song_id()
        registered = self._register(Path(chart_path), song_id=song_id_text)
        _LOGGER.info("Added beatmap %r as %s", registered.beatmap.title, registered.song_id)
        return registered

    def _register(self, chart_path: Path, *, song_id: str) -> RegisteredSong:
        beatmap = osu_parser.load_beatmap_file(chart_path)
        registered = RegisteredSong(
            song_id=song_id,
            beatmap=beatmap,
            chart_path=chart_path,
            audio_path=_resolve_audio_path(chart_path, beatmap.audio_filename),
        )
        self._songs[song_id] = registered
        _LOGGER.debug("Loaded %r (%d notes) from %s", beatmap.title, len(beatmap.notes), chart_path)
        return registered
