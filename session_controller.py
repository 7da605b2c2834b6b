# -*- coding: utf-8 -*-
########################
# session_controller.py
########################
# Purpose:
# - Orchestrates one play session: countdown, clock start, judgement tick, audio binding, completion.
# - Integrates JudgementSession + SessionClock + AudioTransport + AudioSupervisor + high score store.
# - Emits lifecycle signals (countdown, active, finished) and judgement results to the UI layer.
#
# Design notes:
# - Every timer and every input call runs on the controller's thread, so the Qt event loop is the
#   single writer of pending notes, score and combo.
# - Clock values come from SessionClock (now - start), never from counting ticks.
# - Audio never blocks gameplay. Load, play and playback errors (transport on_error) are reported through
#   audioStatusChanged as "unavailable: <reason>" and the session keeps running on the virtual clock.
# - Once load succeeds the handle belongs to the controller and is released on teardown or failed binding.
# - End of track while ACTIVE loops the audio from 0. Note exhaustion, not audio exhaustion, ends a session.
# - An empty beatmap falls back to the built-in default chart (degraded mode).
#
########################
# Interfaces:
# Public classes:
# - class SessionController(PyQt6.QtCore.QObject)
#   - Signals:
#     - countdownTick(int)
#     - phaseChanged(str)          # "countdown" | "active" | "finished" | "abandoned"
#     - judgementMade(JudgementResult)
#     - audioStatusChanged(str)
#     - degradedMode(str)
#     - resultsReady(SessionResults)
#   - __init__(beatmap, *, song_id=None, transport=None, audio_source=None, gameplay=None, audio=None,
#              high_score_store=None, time_source_ms=None, rng=None, parent=None)
#   - start() -> None
#   - step_countdown() -> None      # countdown timer slot
#   - tick() -> None                # judgement tick timer slot
#   - submit_input(lane: LaneType, at_clock_ms: Optional[int] = None) -> Optional[JudgementResult]
#   - abandon() -> None
#   - phase() / beatmap() / clock_ms() / pending_notes() / score_state() / results() / is_degraded()
#
# Inputs:
# - Beatmap (post-parse), lane taps from the UI, transport end-of-track and error callbacks.
#
# Outputs:
# - Qt signals for UI; high score writes on completion.
#
########################

from __future__ import annotations

import logging
from pathlib import Path
import random
from typing import Callable, Optional, Tuple, Union

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from beatmap_models import Beatmap, JudgementResult, LaneType, Note
import audio_supervisor
import audio_transport
import config as config_module
import default_chart
import difficulty_augmenter
import high_scores
import judge
import play_session
import timing_model


_LOGGER = logging.getLogger(__name__)

AUDIO_STATUS_NONE = "no audio"
AUDIO_STATUS_LOADED = "loaded"
AUDIO_STATUS_PLAYING = "playing"
AUDIO_STATUS_LOOPED = "looped"
AUDIO_STATUS_STALLED = "stalled"
AUDIO_STATUS_STOPPED = "stopped"


def session_timings_from_config(gameplay: config_module.GameplayConfig) -> play_session.SessionTimings:
    return play_session.SessionTimings(
        countdown_from=int(gameplay.countdown_from),
        countdown_tick_ms=int(gameplay.countdown_tick_ms),
        tick_interval_ms=int(gameplay.tick_interval_ms),
        min_start_time_ms=int(gameplay.min_start_time_ms),
        settle_delay_ms=int(gameplay.settle_delay_ms),
        results_hold_ms=int(gameplay.results_hold_ms),
        min_elapsed_ms=int(gameplay.min_elapsed_ms),
    )


def judgement_windows_from_config(gameplay: config_module.GameplayConfig) -> judge.JudgementWindows:
    return judge.JudgementWindows.from_timing_window(
        int(gameplay.timing_window_ms),
        perfect_ms=int(gameplay.perfect_window_ms),
        good_ratio=float(gameplay.good_window_ratio),
    )


class SessionController(QObject):
    countdownTick = pyqtSignal(int)
    phaseChanged = pyqtSignal(str)
    judgementMade = pyqtSignal(object)
    audioStatusChanged = pyqtSignal(str)
    degradedMode = pyqtSignal(str)
    resultsReady = pyqtSignal(object)

    def __init__(
        self,
        beatmap: Beatmap,
        *,
        song_id: Optional[str] = None,
        transport: Optional[audio_transport.AudioTransport] = None,
        audio_source: Optional[Union[str, Path]] = None,
        gameplay: Optional[config_module.GameplayConfig] = None,
        audio: Optional[config_module.AudioConfig] = None,
        high_score_store: Optional[high_scores.HighScoreStore] = None,
        time_source_ms: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._gameplay = gameplay if gameplay is not None else config_module.GameplayConfig()
        self._audio_config = audio if audio is not None else config_module.AudioConfig()

        self._degraded_reason: Optional[str] = None
        if not beatmap.notes:
            self._degraded_reason = f"{beatmap.title!r} has no notes, playing the default chart instead"
            _LOGGER.warning("Degraded mode: %s", self._degraded_reason)
            beatmap = default_chart.build_default_beatmap()
        if self._gameplay.hard_mode:
            beatmap = difficulty_augmenter.augment(beatmap, rng=rng)
        self._beatmap = beatmap

        self._timings = session_timings_from_config(self._gameplay)
        self._session: Optional[play_session.JudgementSession] = play_session.JudgementSession(
            beatmap,
            judgement_windows=judgement_windows_from_config(self._gameplay),
            timings=self._timings,
            clock=timing_model.SessionClock(time_source_ms),
        )
        self._phase = play_session.SessionPhase.NOT_STARTED
        self._results: Optional[play_session.SessionResults] = None

        self._song_id = str(song_id).strip() if song_id else None
        self._high_score_store = high_score_store

        self._transport = transport
        self._audio_source = audio_source
        self._audio_handle: Optional[int] = None
        self._audio_supervisor: Optional[audio_supervisor.AudioSupervisor] = None
        self._audio_failed = False

        self._countdown_timer = QTimer(self)
        self._countdown_timer.setInterval(int(self._timings.countdown_tick_ms))
        self._countdown_timer.timeout.connect(self.step_countdown)

        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(int(self._timings.tick_interval_ms))
        self._tick_timer.timeout.connect(self.tick)

        self._results_hold_timer = QTimer(self)
        self._results_hold_timer.setSingleShot(True)
        self._results_hold_timer.setInterval(int(self._timings.results_hold_ms))
        self._results_hold_timer.timeout.connect(self._on_results_hold_timeout)

    # -----------------
    # Read-only views
    # -----------------

    def phase(self) -> play_session.SessionPhase:
        return self._phase

    def beatmap(self) -> Beatmap:
        return self._beatmap

    def is_degraded(self) -> bool:
        return self._degraded_reason is not None

    def clock_ms(self) -> int:
        if self._session is None:
            return 0
        return self._session.clock().clock_ms()

    def clock_snapshot(self) -> Optional[timing_model.ClockSnapshot]:
        if self._session is None:
            return None
        return self._session.clock().snapshot()

    def pending_notes(self) -> Tuple[Note, ...]:
        if self._session is None:
            return ()
        return self._session.pending_notes()

    def score_state(self) -> judge.ScoreState:
        if self._session is None:
            return judge.ScoreState()
        return self._session.score_state()

    def results(self) -> Optional[play_session.SessionResults]:
        return self._results

    # -----------------
    # Core operations
    # -----------------

    def start(self) -> None:
        if self._session is None or self._phase != play_session.SessionPhase.NOT_STARTED:
            return

        if self._degraded_reason is not None:
            self.degradedMode.emit(self._degraded_reason)

        self._load_audio()

        countdown_value = self._session.begin_countdown()
        self._phase = play_session.SessionPhase.COUNTING
        self.phaseChanged.emit(self._phase.value)
        self.countdownTick.emit(int(countdown_value))

        if self._session.phase() == play_session.SessionPhase.ACTIVE:
            self._on_clock_started()
        else:
            self._countdown_timer.start()

    def submit_input(self, lane: LaneType, at_clock_ms: Optional[int] = None) -> Optional[JudgementResult]:
        if self._session is None:
            return None
        result = self._session.judge_input(lane, at_clock_ms)
        if result is not None:
            self.judgementMade.emit(result)
        return result

    def abandon(self) -> None:
        if self._phase in (play_session.SessionPhase.FINISHED, play_session.SessionPhase.ABANDONED):
            self._results_hold_timer.stop()
            return

        # Stop judging before releasing audio.
        self._countdown_timer.stop()
        self._tick_timer.stop()
        self._results_hold_timer.stop()

        if self._session is not None:
            self._session.abandon()
        self._phase = play_session.SessionPhase.ABANDONED
        self._teardown_audio()
        self._session = None
        _LOGGER.info("Session for %r abandoned", self._beatmap.title)
        self.phaseChanged.emit(self._phase.value)

    # -----------------
    # Timer callbacks
    # -----------------

    def step_countdown(self) -> None:
        if self._session is None or self._session.phase() != play_session.SessionPhase.COUNTING:
            self._countdown_timer.stop()
            return

        countdown_value = self._session.countdown_step()
        self.countdownTick.emit(int(countdown_value))

        if self._session.phase() == play_session.SessionPhase.ACTIVE:
            self._countdown_timer.stop()
            self._on_clock_started()

    def _on_clock_started(self) -> None:
        self._phase = play_session.SessionPhase.ACTIVE
        self._start_audio()
        self._tick_timer.start()
        _LOGGER.info("Session for %r active with %d notes", self._beatmap.title, len(self._beatmap.notes))
        self.phaseChanged.emit(self._phase.value)

    def tick(self) -> None:
        if self._session is None:
            self._tick_timer.stop()
            return

        for miss in self._session.advance():
            self.judgementMade.emit(miss)

        if self._session.phase() == play_session.SessionPhase.FINISHED:
            self._finish()

    def _finish(self) -> None:
        self._tick_timer.stop()
        session = self._session
        if session is None:
            return

        self._phase = play_session.SessionPhase.FINISHED
        self._results = session.results()
        self._teardown_audio()
        self._session = None
        self._record_high_score(self._results)

        _LOGGER.info(
            "Session for %r finished: score=%d max_combo=%d",
            self._results.title,
            self._results.score,
            self._results.max_combo,
        )
        self.phaseChanged.emit(self._phase.value)
        self._results_hold_timer.start()

    def _on_results_hold_timeout(self) -> None:
        if self._results is not None:
            self.resultsReady.emit(self._results)

    def _record_high_score(self, results: play_session.SessionResults) -> None:
        if self._high_score_store is None or not self._song_id:
            return
        try:
            high_scores.record_high_score(self._high_score_store, self._song_id, results.score)
        except high_scores.HighScoreStoreError as exc:
            _LOGGER.error("Failed to record high score for %s: %s", self._song_id, exc)

    # -----------------
    # Audio binding
    # -----------------

    def _load_audio(self) -> None:
        if self._transport is None or self._audio_source is None or not self._audio_config.enabled:
            self.audioStatusChanged.emit(AUDIO_STATUS_NONE)
            return
        try:
            handle = self._transport.load(str(self._audio_source))
        except audio_transport.AudioTransportError as exc:
            self._report_audio_unavailable(str(exc))
            return

        self._audio_handle = handle
        try:
            self._transport.on_ended(handle, self._on_audio_ended)
            self._transport.on_error(handle, self._on_audio_error)
        except audio_transport.AudioTransportError as exc:
            self._release_audio_handle()
            self._report_audio_unavailable(str(exc))
            return
        self.audioStatusChanged.emit(AUDIO_STATUS_LOADED)

    def _start_audio(self) -> None:
        if self._transport is None or self._audio_handle is None or self._audio_failed:
            return
        try:
            self._transport.play(self._audio_handle)
        except audio_transport.AudioTransportError as exc:
            self._report_audio_unavailable(str(exc))
            return

        supervisor = audio_supervisor.AudioSupervisor(
            self._transport,
            self._audio_handle,
            poll_interval_ms=int(self._audio_config.poll_interval_ms),
            max_restart_attempts=int(self._audio_config.max_restart_attempts),
            parent=self,
        )
        supervisor.gaveUp.connect(lambda: self.audioStatusChanged.emit(AUDIO_STATUS_STALLED))
        supervisor.start()
        self._audio_supervisor = supervisor
        self.audioStatusChanged.emit(AUDIO_STATUS_PLAYING)

    def _on_audio_ended(self) -> None:
        if self._phase != play_session.SessionPhase.ACTIVE or self._audio_failed:
            return
        if self._transport is None or self._audio_handle is None:
            return
        try:
            self._transport.seek(self._audio_handle, 0)
            self._transport.play(self._audio_handle)
        except audio_transport.AudioTransportError as exc:
            self._report_audio_unavailable(str(exc))
            return
        if self._audio_supervisor is not None:
            self._audio_supervisor.reset_baseline()
        self.audioStatusChanged.emit(AUDIO_STATUS_LOOPED)

    def _on_audio_error(self, error_text: str) -> None:
        if self._audio_handle is None or self._audio_failed:
            return
        self._stop_audio_supervisor()
        self._report_audio_unavailable(error_text)

    def _report_audio_unavailable(self, reason: str) -> None:
        # The handle stays loaded until teardown; the session keeps running on the virtual clock.
        self._audio_failed = True
        _LOGGER.warning("Audio unavailable for %r: %s", self._beatmap.title, reason)
        self.audioStatusChanged.emit(f"unavailable: {reason}")

    def _stop_audio_supervisor(self) -> None:
        if self._audio_supervisor is None:
            return
        self._audio_supervisor.stop()
        self._audio_supervisor.deleteLater()
        self._audio_supervisor = None

    def _release_audio_handle(self) -> bool:
        if self._transport is None or self._audio_handle is None:
            return False
        handle = self._audio_handle
        self._audio_handle = None
        try:
            self._transport.stop(handle)
            self._transport.unload(handle)
        except audio_transport.AudioTransportError as exc:
            _LOGGER.debug("Audio teardown reported: %s", exc)
        return True

    def _teardown_audio(self) -> None:
        self._stop_audio_supervisor()
        if self._release_audio_handle():
            self.audioStatusChanged.emit(AUDIO_STATUS_STOPPED)
