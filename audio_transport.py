# -*- coding: utf-8 -*-
########################
# audio_transport.py
########################
# Purpose:
# - Audio transport port consumed by SessionController: load, play, stop, seek, position, end-of-track.
# - Qt Multimedia implementation of the port for local audio files.
#
# Design notes:
# - The engine never decodes audio. It only starts, stops, seeks and queries the transport.
# - Transport calls are fire-and-forget from the judgement path; failures raise AudioTransportError
#   and are reported by the caller as a non-fatal status.
# - Errors the backend only detects after load (unreadable or undecodable media) arrive through
#   on_error callbacks on the Qt thread.
# - QtMultimedia is imported when QtMediaTransport is constructed, so pure modules and tests
#   never need a multimedia backend.
#
########################
# Interfaces:
# Public exceptions:
# - class AudioTransportError(Exception)
#
# Public protocols:
# - class AudioTransport(Protocol)
#   - load(source: str) -> int
#   - play(handle: int) -> None
#   - stop(handle: int) -> None
#   - seek(handle: int, position_ms: int) -> None
#   - get_position(handle: int) -> int
#   - on_ended(handle: int, callback: Callable[[], None]) -> None
#   - on_error(handle: int, callback: Callable[[str], None]) -> None
#   - unload(handle: int) -> None
#
# Public classes:
# - class QtMediaTransport(PyQt6.QtCore.QObject)
#
########################

from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from PyQt6.QtCore import QObject, QUrl


_LOGGER = logging.getLogger(__name__)


class AudioTransportError(Exception):
    """Raised when the audio transport cannot load or control a track."""


@runtime_checkable
class AudioTransport(Protocol):
    def load(self, source: str) -> int: ...

    def play(self, handle: int) -> None: ...

    def stop(self, handle: int) -> None: ...

    def seek(self, handle: int, position_ms: int) -> None: ...

    def get_position(self, handle: int) -> int: ...

    def on_ended(self, handle: int, callback: Callable[[], None]) -> None: ...

    def on_error(self, handle: int, callback: Callable[[str], None]) -> None: ...

    def unload(self, handle: int) -> None: ...


class _LoadedTrack:
    def __init__(self, player: Any, audio_output: Any) -> None:
        self.player = player
        self.audio_output = audio_output
        self.ended_callbacks: list = []
        self.error_callbacks: list = []


class QtMediaTransport(QObject):
    """QMediaPlayer backed transport. One player per loaded handle."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        try:
            from PyQt6 import QtMultimedia
        except ImportError as exc:
            raise AudioTransportError(f"Qt Multimedia is not available: {exc}") from exc
        self._multimedia = QtMultimedia
        self._tracks: Dict[int, _LoadedTrack] = {}
        self._handle_counter = itertools.count(1)

    def load(self, source: str) -> int:
        source_path = Path(str(source)).expanduser()
        if not source_path.is_file():
            raise AudioTransportError(f"Audio file not found: {source_path}")

        player = self._multimedia.QMediaPlayer(self)
        audio_output = self._multimedia.QAudioOutput(self)
        player.setAudioOutput(audio_output)
        player.setSource(QUrl.fromLocalFile(str(source_path.resolve())))

        handle = next(self._handle_counter)
        track = _LoadedTrack(player, audio_output)
        self._tracks[handle] = track

        player.mediaStatusChanged.connect(lambda status, h=handle: self._on_media_status_changed(h, status))
        player.errorOccurred.connect(lambda error, text, h=handle: self._on_player_error(h, text))
        _LOGGER.debug("Loaded audio handle %d from %s", handle, source_path)
        return handle

    def play(self, handle: int) -> None:
        self._track(handle).player.play()

    def stop(self, handle: int) -> None:
        self._track(handle).player.stop()

    def seek(self, handle: int, position_ms: int) -> None:
        self._track(handle).player.setPosition(max(0, int(position_ms)))

    def get_position(self, handle: int) -> int:
        return int(self._track(handle).player.position())

    def on_ended(self, handle: int, callback: Callable[[], None]) -> None:
        self._track(handle).ended_callbacks.append(callback)

    def on_error(self, handle: int, callback: Callable[[str], None]) -> None:
        self._track(handle).error_callbacks.append(callback)

    def unload(self, handle: int) -> None:
        track = self._tracks.pop(int(handle), None)
        if track is None:
            return
        track.ended_callbacks.clear()
        track.error_callbacks.clear()
        track.player.stop()
        track.player.setSource(QUrl())
        track.player.deleteLater()
        track.audio_output.deleteLater()

    def _track(self, handle: int) -> _LoadedTrack:
        track = self._tracks.get(int(handle))
        if track is None:
            raise AudioTransportError(f"Unknown audio handle: {handle}")
        return track

    def _on_media_status_changed(self, handle: int, status: Any) -> None:
        if status != self._multimedia.QMediaPlayer.MediaStatus.EndOfMedia:
            return
        track = self._tracks.get(handle)
        if track is None:
            return
        for callback in list(track.ended_callbacks):
            callback()

    def _on_player_error(self, handle: int, error_text: str) -> None:
        _LOGGER.warning("Audio handle %d reported an error: %s", handle, error_text)
        track = self._tracks.get(handle)
        if track is None:
            return
        for callback in list(track.error_callbacks):
            callback(str(error_text) or "playback error")
