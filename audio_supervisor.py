# -*- coding: utf-8 -*-
########################
# audio_supervisor.py
########################
# Purpose:
# - Background stall recovery for the audio transport.
# - Polls the playback position on its own timer and restarts playback when it stops advancing.
#
# Design notes:
# - Retry policy, not a state machine: a bounded number of consecutive restarts, reset by any progress.
# - Decoupled from the judgement tick. A dead transport never blocks or slows judging.
# - Transport errors during a poll count as a stall.
#
########################
# Interfaces:
# Public classes:
# - class AudioSupervisor(PyQt6.QtCore.QObject)
#   - Signals:
#     - stalled(int)      # consecutive attempt number that triggered a restart
#     - gaveUp()
#   - __init__(transport, handle, *, poll_interval_ms: int, max_restart_attempts: int, parent=None)
#   - start() -> None
#   - stop() -> None
#   - is_running() -> bool
#   - reset_baseline() -> None
#   - poll_once() -> bool
#
########################

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

import audio_transport


_LOGGER = logging.getLogger(__name__)


class AudioSupervisor(QObject):
    stalled = pyqtSignal(int)
    gaveUp = pyqtSignal()

    def __init__(
        self,
        transport: audio_transport.AudioTransport,
        handle: int,
        *,
        poll_interval_ms: int = 500,
        max_restart_attempts: int = 3,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._transport = transport
        self._handle = int(handle)
        self._max_restart_attempts = max(0, int(max_restart_attempts))

        self._last_position_ms: Optional[int] = None
        self._consecutive_stalls = 0

        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(max(1, int(poll_interval_ms)))
        self._poll_timer.timeout.connect(self.poll_once)

    def start(self) -> None:
        self.reset_baseline()
        self._poll_timer.start()

    def stop(self) -> None:
        self._poll_timer.stop()

    def is_running(self) -> bool:
        return bool(self._poll_timer.isActive())

    def reset_baseline(self) -> None:
        self._last_position_ms = None
        self._consecutive_stalls = 0

    def poll_once(self) -> bool:
        """Check playback progress once. Returns True if a restart was issued."""
        try:
            position_ms: Optional[int] = int(self._transport.get_position(self._handle))
        except audio_transport.AudioTransportError as exc:
            _LOGGER.debug("Position query failed for audio handle %d: %s", self._handle, exc)
            position_ms = None

        if position_ms is not None and (self._last_position_ms is None or position_ms > self._last_position_ms):
            self._last_position_ms = position_ms
            self._consecutive_stalls = 0
            return False

        self._consecutive_stalls += 1
        if self._consecutive_stalls > self._max_restart_attempts:
            _LOGGER.warning(
                "Audio handle %d stalled %d times in a row, giving up",
                self._handle,
                self._consecutive_stalls - 1,
            )
            self.stop()
            self.gaveUp.emit()
            return False

        _LOGGER.info("Audio handle %d stalled, restarting (attempt %d)", self._handle, self._consecutive_stalls)
        try:
            self._transport.play(self._handle)
        except audio_transport.AudioTransportError as exc:
            _LOGGER.debug("Restart failed for audio handle %d: %s", self._handle, exc)
        self.stalled.emit(self._consecutive_stalls)
        return True
