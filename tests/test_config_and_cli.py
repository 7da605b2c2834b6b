import json
import logging
from pathlib import Path

import pytest

import config as config_module
import logging_setup
import taikobeat


FAST_GAMEPLAY = {
    "countdown_from": 0,
    "min_start_time_ms": 100,
    "min_elapsed_ms": 0,
    "settle_delay_ms": 0,
    "results_hold_ms": 0,
}

CHART = "[Metadata]\nTitle: Cli Song\nArtist: Tester\n[HitObjects]\n100,100,0,1,0\n300,100,200,1,0\n"


@pytest.fixture(autouse=True)
def _no_user_config(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "_default_config_candidates", lambda: [tmp_path / "taikobeat_config.json"])
    config_module.get_config.cache_clear()
    yield
    config_module.get_config.cache_clear()


def _write_config(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_defaults_without_config_file():
    app_config, config_path = config_module.load_config()

    assert config_path is None
    assert app_config.gameplay.timing_window_ms == 300
    assert app_config.gameplay.tick_interval_ms == 16
    assert app_config.gameplay.hard_mode is False
    assert app_config.audio.max_restart_attempts == 3
    assert app_config.logging.level == "INFO"
    assert app_config.library.songs_dir.name == "Songs"


def test_config_file_in_working_directory(tmp_path):
    _write_config(tmp_path / "taikobeat_config.json", {"gameplay": {"perfect_window_ms": 80}, "logging": {"level": "warn"}})

    app_config, config_path = config_module.load_config()

    assert config_path == tmp_path / "taikobeat_config.json"
    assert app_config.gameplay.perfect_window_ms == 80
    assert app_config.logging.level == "WARNING"


def test_explicit_config_path_wins(tmp_path, monkeypatch):
    _write_config(tmp_path / "taikobeat_config.json", {"gameplay": {"countdown_from": 1}})
    explicit = _write_config(tmp_path / "other.json", {"gameplay": {"countdown_from": 5}})
    monkeypatch.setenv("TAIKOBEAT_CONFIG_PATH", str(explicit))

    app_config, config_path = config_module.load_config()

    assert config_path == explicit
    assert app_config.gameplay.countdown_from == 5


def test_missing_explicit_config_path_is_an_error(tmp_path, monkeypatch):
    monkeypatch.setenv("TAIKOBEAT_CONFIG_PATH", str(tmp_path / "absent.json"))

    with pytest.raises(OSError):
        config_module.load_config()


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("TAIKOBEAT_TIMING_WINDOW_MS", "250")
    monkeypatch.setenv("TAIKOBEAT_TICK_INTERVAL_MS", "not a number")
    monkeypatch.setenv("TAIKOBEAT_HARD_MODE", "yes")
    monkeypatch.setenv("TAIKOBEAT_AUDIO_ENABLED", "off")
    monkeypatch.setenv("TAIKOBEAT_SONGS_DIR", str(tmp_path / "songs"))
    monkeypatch.setenv("TAIKOBEAT_LOG_LEVEL", "debug")

    app_config, _config_path = config_module.load_config()

    assert app_config.gameplay.timing_window_ms == 250
    assert app_config.gameplay.tick_interval_ms == 16
    assert app_config.gameplay.hard_mode is True
    assert app_config.audio.enabled is False
    assert app_config.library.songs_dir == tmp_path / "songs"
    assert app_config.logging.level == "DEBUG"


def test_home_is_expanded_in_library_paths(tmp_path):
    _write_config(tmp_path / "taikobeat_config.json", {"library": {"songs_dir": "~/TaikoSongs"}})

    app_config, _config_path = config_module.load_config()

    assert app_config.library.songs_dir == Path("~/TaikoSongs").expanduser()


@pytest.mark.parametrize(
    "payload",
    [
        {"gameplay": {"tick_interval_ms": 50}},
        {"gameplay": {"good_window_ratio": 1.5}},
        {"logging": {"level": "loud"}},
        ["not", "an", "object"],
    ],
)
def test_invalid_config_raises_value_error(tmp_path, payload):
    _write_config(tmp_path / "taikobeat_config.json", payload)

    with pytest.raises(ValueError):
        config_module.load_config()


def test_invalid_json_raises_value_error(tmp_path):
    (tmp_path / "taikobeat_config.json").write_text("{", encoding="utf-8")

    with pytest.raises(ValueError):
        config_module.load_config()


def test_to_json_round_trips_through_the_model():
    app_config, _config_path = config_module.load_config()

    reloaded = config_module.AppConfig.model_validate(json.loads(config_module.to_json(app_config)))

    assert reloaded == app_config


def test_setup_logging_respects_existing_handlers(monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [logging.NullHandler()])
    level_before = root.level

    logging_setup.setup_logging(None, config_level="DEBUG")

    assert root.level == level_before


def test_setup_logging_priority(monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", logging.WARNING)
    monkeypatch.setenv("TAIKOBEAT_LOG_LEVEL", "error")

    class Args:
        quiet = False
        verbose = True

    logging_setup.setup_logging(Args(), config_level="INFO")

    assert root.level == logging.ERROR


class _Flags:
    def __init__(self, quiet=False, verbose=False):
        self.quiet = quiet
        self.verbose = verbose


@pytest.mark.parametrize(
    "environ, flags, config_level, expected",
    [
        ({}, None, None, logging.INFO),
        ({}, None, "warn", logging.WARNING),
        ({}, _Flags(quiet=True), "DEBUG", logging.WARNING),
        ({}, _Flags(quiet=True, verbose=True), None, logging.DEBUG),
        ({"TAIKOBEAT_LOG_LEVEL": "critical"}, _Flags(verbose=True), "INFO", logging.CRITICAL),
        ({"TAIKOBEAT_LOG_LEVEL": "chatty"}, None, "ERROR", logging.ERROR),
    ],
)
def test_resolve_log_level(environ, flags, config_level, expected):
    assert logging_setup.resolve_log_level(flags, config_level=config_level, environ=environ) == expected


def test_cli_inspect(tmp_path, capsys):
    chart_path = tmp_path / "cli.osu"
    chart_path.write_text(CHART, encoding="utf-8")

    assert taikobeat.main(["inspect", str(chart_path), "--hard", "--seed", "3"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["title"] == "Cli Song"
    assert payload["note_count"] == 3
    assert [note["time_ms"] for note in payload["notes"]] == [0, 100, 200]
    assert payload["notes"][0]["lane"] == "center"


def test_cli_inspect_missing_chart(tmp_path, capsys):
    assert taikobeat.main(["inspect", str(tmp_path / "missing.osu")]) == 2

    error = json.loads(capsys.readouterr().err)
    assert error["ok"] is False


def test_cli_reports_bad_config(tmp_path, capsys):
    (tmp_path / "taikobeat_config.json").write_text("{", encoding="utf-8")

    assert taikobeat.main(["config"]) == 2
    assert "not valid JSON" in json.loads(capsys.readouterr().err)["error"]


def test_cli_config_and_scores(tmp_path, monkeypatch, capsys):
    scores_path = tmp_path / "scores.json"
    scores_path.write_text(json.dumps({"song": 42}), encoding="utf-8")
    monkeypatch.setenv("TAIKOBEAT_HIGH_SCORES_PATH", str(scores_path))

    assert taikobeat.main(["config"]) == 0
    assert json.loads(capsys.readouterr().out)["gameplay"]["timing_window_ms"] == 300

    assert taikobeat.main(["scores"]) == 0
    assert json.loads(capsys.readouterr().out) == {"song": 42}


def test_cli_autoplay_hits_every_note(qapp, tmp_path, monkeypatch, capsys):
    chart_path = tmp_path / "auto.osu"
    chart_path.write_text(CHART, encoding="utf-8")
    scores_path = tmp_path / "scores.json"
    _write_config(tmp_path / "taikobeat_config.json", {"gameplay": FAST_GAMEPLAY})
    monkeypatch.setenv("TAIKOBEAT_HIGH_SCORES_PATH", str(scores_path))

    assert taikobeat.main(["autoplay", str(chart_path), "--no-audio"]) == 0

    results = json.loads(capsys.readouterr().out)
    assert results["title"] == "Cli Song"
    assert results["total_notes"] == 2
    assert results["miss"] == 0
    assert results["max_combo"] == 2
    assert json.loads(scores_path.read_text(encoding="utf-8"))["auto"] == results["score"]


def test_cli_autoplay_by_song_id_from_the_library(qapp, tmp_path, monkeypatch, capsys):
    songs_dir = tmp_path / "songs"
    songs_dir.mkdir()
    (songs_dir / "library_song.osu").write_text(CHART, encoding="utf-8")
    scores_path = tmp_path / "scores.json"
    _write_config(tmp_path / "taikobeat_config.json", {"gameplay": FAST_GAMEPLAY})
    monkeypatch.setenv("TAIKOBEAT_SONGS_DIR", str(songs_dir))
    monkeypatch.setenv("TAIKOBEAT_HIGH_SCORES_PATH", str(scores_path))

    assert taikobeat.main(["autoplay", "library_song", "--no-audio"]) == 0

    results = json.loads(capsys.readouterr().out)
    assert results["title"] == "Cli Song"
    assert results["miss"] == 0
    assert json.loads(scores_path.read_text(encoding="utf-8"))["library_song"] == results["score"]


def test_cli_autoplay_unknown_song_id(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("TAIKOBEAT_SONGS_DIR", str(tmp_path / "songs"))

    assert taikobeat.main(["autoplay", "nothing_here", "--no-audio"]) == 2
    assert "nothing_here" in json.loads(capsys.readouterr().err)["error"]


def test_cli_songs_lists_the_library(tmp_path, monkeypatch, capsys):
    songs_dir = tmp_path / "songs"
    songs_dir.mkdir()
    (songs_dir / "b_song.osu").write_text(CHART, encoding="utf-8")
    (songs_dir / "a_song.osu").write_text(CHART.replace("Cli Song", "First"), encoding="utf-8")
    monkeypatch.setenv("TAIKOBEAT_SONGS_DIR", str(songs_dir))

    assert taikobeat.main(["songs"]) == 0

    listing = json.loads(capsys.readouterr().out)
    assert [entry["song_id"] for entry in listing] == ["a_song", "b_song"]
    assert listing[0]["title"] == "First"
    assert listing[1]["note_count"] == 2
