import pytest

import audio_supervisor
import audio_transport
from conftest import FakeTransport, wait_for


class BrokenTransport(FakeTransport):
    def get_position(self, handle):
        raise audio_transport.AudioTransportError("backend gone")


@pytest.fixture
def supervised(qapp, fake_transport):
    handle = fake_transport.load("song.mp3")
    supervisor = audio_supervisor.AudioSupervisor(fake_transport, handle, poll_interval_ms=50, max_restart_attempts=2)
    stalls = []
    gave_up = []
    supervisor.stalled.connect(stalls.append)
    supervisor.gaveUp.connect(lambda: gave_up.append(True))
    yield supervisor, fake_transport, handle, stalls, gave_up
    supervisor.stop()


def test_fake_transport_satisfies_protocol(fake_transport):
    assert isinstance(fake_transport, audio_transport.AudioTransport)


def test_progress_is_not_a_stall(supervised):
    supervisor, transport, handle, stalls, _gave_up = supervised

    assert supervisor.poll_once() is False
    transport.positions[handle] = 500
    assert supervisor.poll_once() is False
    transport.positions[handle] = 1000
    assert supervisor.poll_once() is False

    assert stalls == []
    assert "play" not in transport.call_names()


def test_stall_restarts_until_limit_then_gives_up(supervised):
    supervisor, transport, handle, stalls, gave_up = supervised
    supervisor.start()
    assert supervisor.is_running()

    supervisor.poll_once()
    assert supervisor.poll_once() is True
    assert supervisor.poll_once() is True
    assert supervisor.poll_once() is False

    assert stalls == [1, 2]
    assert transport.call_names().count("play") == 2
    assert gave_up == [True]
    assert not supervisor.is_running()


def test_progress_resets_the_attempt_count(supervised):
    supervisor, transport, handle, stalls, gave_up = supervised

    supervisor.poll_once()
    supervisor.poll_once()
    transport.positions[handle] = 250
    supervisor.poll_once()
    supervisor.poll_once()
    supervisor.poll_once()

    assert stalls == [1, 1, 2]
    assert gave_up == []


def test_reset_baseline_after_seek(supervised):
    supervisor, transport, handle, stalls, _gave_up = supervised
    transport.positions[handle] = 90_000
    supervisor.poll_once()

    transport.positions[handle] = 0
    supervisor.reset_baseline()

    assert supervisor.poll_once() is False
    assert stalls == []


def test_position_errors_count_as_stalls(qapp):
    transport = BrokenTransport()
    handle = transport.load("song.mp3")
    supervisor = audio_supervisor.AudioSupervisor(transport, handle, max_restart_attempts=0)
    gave_up = []
    supervisor.gaveUp.connect(lambda: gave_up.append(True))

    assert supervisor.poll_once() is False
    assert gave_up == [True]


def test_timer_drives_polling(qapp, supervised):
    supervisor, _transport, _handle, _stalls, gave_up = supervised
    supervisor.start()

    assert wait_for(qapp, lambda: bool(gave_up), timeout_ms=3000)
