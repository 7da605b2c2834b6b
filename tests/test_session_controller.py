import random

import pytest

from beatmap_models import Beatmap, JudgementKind, LaneType, Note
from conftest import FakeTransport, wait_for
import config as config_module
import high_scores
import play_session
import session_controller


TWO_NOTES = Beatmap(title="Two").with_notes(
    [Note(time_ms=1000, lane=LaneType.CENTER), Note(time_ms=2000, lane=LaneType.RIM)]
)


class SignalLog:
    def __init__(self, controller):
        self.countdown = []
        self.phases = []
        self.judgements = []
        self.audio = []
        self.degraded = []
        self.results = []
        controller.countdownTick.connect(self.countdown.append)
        controller.phaseChanged.connect(self.phases.append)
        controller.judgementMade.connect(self.judgements.append)
        controller.audioStatusChanged.connect(self.audio.append)
        controller.degradedMode.connect(self.degraded.append)
        controller.resultsReady.connect(self.results.append)


@pytest.fixture
def make_controller(qapp, fake_clock):
    created = []

    def factory(beatmap=TWO_NOTES, **kwargs):
        gameplay_overrides = kwargs.pop("gameplay_overrides", {})
        controller = session_controller.SessionController(
            beatmap,
            gameplay=config_module.GameplayConfig(**gameplay_overrides),
            time_source_ms=fake_clock,
            **kwargs,
        )
        created.append(controller)
        return controller, SignalLog(controller)

    yield factory

    for controller in created:
        controller.abandon()
        controller.deleteLater()
    qapp.processEvents()


def test_countdown_ticks_then_active(make_controller):
    controller, log = make_controller()

    controller.start()
    assert log.phases == ["countdown"]
    assert log.countdown == [3]
    assert controller.phase() == play_session.SessionPhase.COUNTING

    for _ in range(3):
        controller.step_countdown()

    assert log.countdown == [3, 2, 1, 0]
    assert log.phases == ["countdown", "active"]
    assert controller.phase() == play_session.SessionPhase.ACTIVE
    assert controller.clock_ms() == 0
    assert log.audio == [session_controller.AUDIO_STATUS_NONE]


def test_start_is_ignored_when_already_started(make_controller):
    controller, log = make_controller(gameplay_overrides={"countdown_from": 0})

    controller.start()
    controller.start()

    assert log.phases == ["countdown", "active"]


def test_full_session_with_audio_and_high_score(qapp, make_controller, fake_clock, tmp_path):
    transport = FakeTransport()
    store = high_scores.JsonHighScoreStore(tmp_path / "high_scores.json")
    controller, log = make_controller(
        song_id="two",
        transport=transport,
        audio_source=tmp_path / "song.mp3",
        high_score_store=store,
        gameplay_overrides={"countdown_from": 0, "results_hold_ms": 0},
    )

    controller.start()
    assert log.audio == [session_controller.AUDIO_STATUS_LOADED, session_controller.AUDIO_STATUS_PLAYING]
    assert transport.call_names() == ["load", "play"]

    fake_clock.advance(3000)
    first = controller.submit_input(LaneType.CENTER)
    fake_clock.advance(1000)
    second = controller.submit_input(LaneType.RIM)
    assert [result.score_delta for result in (first, second)] == [100, 110]
    assert log.judgements == [first, second]

    fake_clock.advance(2000)
    controller.tick()
    assert controller.phase() == play_session.SessionPhase.ACTIVE

    fake_clock.advance(1000)
    controller.tick()

    assert controller.phase() == play_session.SessionPhase.FINISHED
    assert log.phases[-1] == "finished"
    assert transport.call_names()[-2:] == ["stop", "unload"]
    assert log.audio[-1] == session_controller.AUDIO_STATUS_STOPPED
    assert controller.results().score == 210
    assert controller.results().max_combo == 2
    assert store.get("two") == 210

    assert wait_for(qapp, lambda: bool(log.results))
    assert log.results[0].score == 210


def test_lower_score_does_not_replace_high_score(make_controller, fake_clock, tmp_path):
    store = high_scores.JsonHighScoreStore(tmp_path / "high_scores.json")
    store.set("two", 500)
    controller, _log = make_controller(
        song_id="two",
        high_score_store=store,
        gameplay_overrides={"countdown_from": 0},
    )

    controller.start()
    fake_clock.advance(10_000)
    controller.tick()
    fake_clock.advance(1000)
    controller.tick()

    assert controller.phase() == play_session.SessionPhase.FINISHED
    assert controller.results().score == 0
    assert controller.results().miss_count == 2
    assert store.get("two") == 500


def test_tick_emits_expiry_misses(make_controller, fake_clock):
    controller, log = make_controller(gameplay_overrides={"countdown_from": 0})
    controller.start()

    fake_clock.advance(3301)
    controller.tick()

    assert [result.kind for result in log.judgements] == [JudgementKind.MISS]
    assert log.judgements[0].note == Note(time_ms=3000, lane=LaneType.CENTER)
    assert controller.pending_notes() == (Note(time_ms=4000, lane=LaneType.RIM),)


def test_stray_press_is_reported(make_controller, fake_clock):
    controller, log = make_controller(gameplay_overrides={"countdown_from": 0})
    controller.start()

    result = controller.submit_input(LaneType.RIM, 3000)

    assert result.kind == JudgementKind.MISS
    assert result.note is None
    assert log.judgements == [result]
    assert controller.score_state().stray_count == 1
    assert len(controller.pending_notes()) == 2


def test_input_before_active_is_dropped(make_controller):
    controller, log = make_controller()
    controller.start()

    assert controller.submit_input(LaneType.CENTER, 3000) is None
    assert log.judgements == []


def test_audio_end_loops_while_active(make_controller, tmp_path):
    transport = FakeTransport()
    controller, log = make_controller(
        transport=transport,
        audio_source=tmp_path / "song.mp3",
        gameplay_overrides={"countdown_from": 0},
    )
    controller.start()
    handle = next(iter(transport.loaded))

    transport.positions[handle] = 90_000
    transport.fire_ended(handle)

    assert transport.calls[-2:] == [("seek", handle, 0), ("play", handle)]
    assert log.audio[-1] == session_controller.AUDIO_STATUS_LOOPED
    assert controller.phase() == play_session.SessionPhase.ACTIVE


def test_audio_load_failure_is_not_fatal(make_controller, tmp_path):
    transport = FakeTransport(fail_load=True)
    controller, log = make_controller(
        transport=transport,
        audio_source=tmp_path / "missing.mp3",
        gameplay_overrides={"countdown_from": 0},
    )

    controller.start()

    assert log.audio[0].startswith("unavailable")
    assert "play" not in transport.call_names()
    assert controller.phase() == play_session.SessionPhase.ACTIVE
    assert controller.submit_input(LaneType.CENTER, 3000).kind == JudgementKind.PERFECT


def test_playback_error_after_start_reports_unavailable(make_controller, tmp_path):
    transport = FakeTransport()
    controller, log = make_controller(
        transport=transport,
        audio_source=tmp_path / "song.mp3",
        gameplay_overrides={"countdown_from": 0},
    )
    controller.start()
    handle = next(iter(transport.loaded))
    assert log.audio[-1] == session_controller.AUDIO_STATUS_PLAYING

    transport.fire_error(handle, "decoder crashed")
    transport.fire_ended(handle)

    assert log.audio[-1] == "unavailable: decoder crashed"
    assert session_controller.AUDIO_STATUS_STALLED not in log.audio
    assert session_controller.AUDIO_STATUS_LOOPED not in log.audio
    assert "seek" not in transport.call_names()
    assert controller.phase() == play_session.SessionPhase.ACTIVE
    assert controller.submit_input(LaneType.CENTER, 3000).kind == JudgementKind.PERFECT

    controller.abandon()
    assert ("unload", handle) in transport.calls


def test_failed_callback_registration_releases_the_handle(make_controller, tmp_path):
    transport = FakeTransport(fail_on_ended=True)
    controller, log = make_controller(
        transport=transport,
        audio_source=tmp_path / "song.mp3",
        gameplay_overrides={"countdown_from": 0},
    )

    controller.start()

    assert transport.loaded == {}
    assert ("unload", 1) in transport.calls
    assert "play" not in transport.call_names()
    assert log.audio[-1].startswith("unavailable")
    assert controller.phase() == play_session.SessionPhase.ACTIVE


def test_audio_disabled_in_config_skips_transport(make_controller, tmp_path):
    transport = FakeTransport()
    controller, log = make_controller(
        transport=transport,
        audio_source=tmp_path / "song.mp3",
        audio=config_module.AudioConfig(enabled=False),
        gameplay_overrides={"countdown_from": 0},
    )

    controller.start()

    assert transport.calls == []
    assert log.audio == [session_controller.AUDIO_STATUS_NONE]


def test_empty_beatmap_falls_back_to_default_chart(make_controller):
    controller, log = make_controller(Beatmap(title="Empty"), gameplay_overrides={"countdown_from": 0})

    assert controller.is_degraded()
    assert controller.beatmap().title == "Practice Drum"
    assert len(controller.beatmap().notes) == 11

    controller.start()

    assert len(log.degraded) == 1
    assert "Empty" in log.degraded[0]
    assert len(controller.pending_notes()) == 11


def test_hard_mode_augments_the_beatmap(make_controller):
    controller, _log = make_controller(rng=random.Random(5), gameplay_overrides={"hard_mode": True})

    assert [note.time_ms for note in controller.beatmap().notes] == [1000, 1500, 2000]
    assert not controller.is_degraded()


def test_abandon_tears_down_synchronously(make_controller, fake_clock, tmp_path):
    transport = FakeTransport()
    store = high_scores.JsonHighScoreStore(tmp_path / "high_scores.json")
    controller, log = make_controller(
        song_id="two",
        transport=transport,
        audio_source=tmp_path / "song.mp3",
        high_score_store=store,
        gameplay_overrides={"countdown_from": 0},
    )
    controller.start()

    controller.abandon()

    assert controller.phase() == play_session.SessionPhase.ABANDONED
    assert log.phases[-1] == "abandoned"
    assert transport.call_names()[-2:] == ["stop", "unload"]
    assert transport.loaded == {}
    assert controller.pending_notes() == ()
    assert controller.submit_input(LaneType.CENTER, 3000) is None

    fake_clock.advance(10_000)
    controller.tick()
    assert log.judgements == []
    assert controller.results() is None
    assert store.all_scores() == {}


def test_abandon_during_countdown(make_controller):
    controller, log = make_controller()
    controller.start()

    controller.abandon()
    controller.step_countdown()

    assert log.phases == ["countdown", "abandoned"]
    assert log.countdown == [3]
