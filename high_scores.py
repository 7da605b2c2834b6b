# high_scores.py
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Protocol, runtime_checkable


_LOGGER = logging.getLogger(__name__)


class HighScoreStoreError(Exception):
    pass


@runtime_checkable
class HighScoreStore(Protocol):
    def get(self, song_id: str) -> int: ...

    def set(self, song_id: str, score: int) -> None: ...


class JsonHighScoreStore:
    """
    songId -> highScore mapping persisted as one JSON object.

    - Missing file reads as an empty mapping
    - Writes go through a temporary file and an atomic replace
    """

    def __init__(self, store_path: Path) -> None:
        self._store_path = Path(store_path)
        self._lock = threading.Lock()

    @property
    def store_path(self) -> Path:
        return self._store_path

    def get(self, song_id: str) -> int:
        with self._lock:
            return int(self._read_all().get(str(song_id), 0))

    def set(self, song_id: str, score: int) -> None:
        with self._lock:
            scores = self._read_all()
            scores[str(song_id)] = int(score)
            self._write_all(scores)

    def all_scores(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._read_all())

    def _read_all(self) -> Dict[str, int]:
        if not self._store_path.exists():
            return {}
        try:
            payload = json.loads(self._store_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise HighScoreStoreError(f"Failed to read high scores: {self._store_path}. Error: {exc}") from exc
        if not isinstance(payload, dict):
            raise HighScoreStoreError(f"High score file root must be a JSON object: {self._store_path}")

        scores: Dict[str, int] = {}
        for key, value in payload.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                _LOGGER.warning("Ignoring non-numeric high score for %r in %s", key, self._store_path)
                continue
            scores[str(key)] = int(value)
        return scores

    def _write_all(self, scores: Dict[str, int]) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        temporary_path = self._store_path.with_suffix(".json.tmp")
        temporary_path.write_text(json.dumps(scores, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
        temporary_path.replace(self._store_path)


def record_high_score(store: HighScoreStore, song_id: str, score: int) -> bool:
    """Store score only when it beats the existing one. Returns True when written."""
    song_key = str(song_id or "").strip()
    if not song_key:
        raise ValueError("song_id must be a non-empty string")
    if int(score) <= int(store.get(song_key)):
        return False
    store.set(song_key, int(score))
    _LOGGER.info("New high score for %s: %d", song_key, int(score))
    return True
