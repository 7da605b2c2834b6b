"""
taikobeat.py

Command line entrypoint.

Subcommands
- inspect CHART   Parse a .osu chart and print its summary and notes as JSON
- autoplay SONG   Play a chart (path or song id) in real time under a QCoreApplication, pressing every note on time
- songs           List the charts found in the songs directory
- scores          Print stored high scores
- config          Print the resolved configuration

Integration
- Loads config (config.get_config) and configures logging (logging_setup)
- autoplay and songs resolve charts through BeatmapRegistry (library.songs_dir)
- autoplay builds a SessionController, optionally bound to QtMediaTransport, and records the high score
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import random
import sys
from typing import Any, Dict, Optional, Sequence

from PyQt6.QtCore import QCoreApplication, QTimer

from beatmap_models import Beatmap
import audio_transport
import beatmap_registry
import config as config_module
import difficulty_augmenter
import high_scores
import logging_setup
import osu_parser
import play_session
import session_controller


_LOGGER = logging.getLogger("taikobeat")


def _print_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
    sys.stdout.flush()


def _print_error(message: str) -> int:
    sys.stderr.write(json.dumps({"ok": False, "error": message}, ensure_ascii=False) + "\n")
    sys.stderr.flush()
    return 2


def _beatmap_to_dict(beatmap: Beatmap) -> Dict[str, Any]:
    return {
        "title": beatmap.title,
        "artist": beatmap.artist,
        "bpm": beatmap.bpm,
        "difficulty_tier": beatmap.difficulty_tier.value,
        "timing_offset_ms": int(beatmap.timing_offset_ms),
        "audio_filename": beatmap.audio_filename,
        "note_count": len(beatmap.notes),
        "notes": [{"time_ms": int(note.time_ms), "lane": note.lane.value} for note in beatmap.notes],
    }


def _results_to_dict(results: play_session.SessionResults) -> Dict[str, Any]:
    return {
        "title": results.title,
        "score": results.score,
        "max_combo": results.max_combo,
        "perfect": results.perfect_count,
        "good": results.good_count,
        "ok": results.ok_count,
        "miss": results.miss_count,
        "stray": results.stray_count,
        "total_notes": results.total_notes,
    }


def _make_rng(seed: Optional[int]) -> Optional[random.Random]:
    if seed is None:
        return None
    return random.Random(int(seed))


def _command_inspect(parsed_args: argparse.Namespace, app_config: config_module.AppConfig) -> int:
    beatmap = osu_parser.load_beatmap_file(Path(parsed_args.chart))
    if parsed_args.hard:
        beatmap = difficulty_augmenter.augment(beatmap, rng=_make_rng(parsed_args.seed))
    _print_json(_beatmap_to_dict(beatmap))
    return 0


def _resolve_song(
    registry: beatmap_registry.BeatmapRegistry, target: str
) -> Optional[beatmap_registry.RegisteredSong]:
    chart_path = Path(target)
    if chart_path.suffix.lower() == ".osu" or chart_path.is_file():
        return registry.add_chart(chart_path, song_id=chart_path.stem)
    registry.initialize()
    return registry.get(target)


def _command_songs(parsed_args: argparse.Namespace, app_config: config_module.AppConfig) -> int:
    registry = beatmap_registry.BeatmapRegistry(app_config.library.songs_dir)
    try:
        registry.initialize()
        _print_json(
            [
                {
                    "song_id": summary.song_id,
                    "title": summary.title,
                    "artist": summary.artist,
                    "difficulty_tier": summary.difficulty_tier.value,
                    "bpm": summary.bpm,
                    "note_count": summary.note_count,
                }
                for summary in registry.songs()
            ]
        )
    finally:
        registry.dispose()
    return 0


def _command_autoplay(parsed_args: argparse.Namespace, app_config: config_module.AppConfig) -> int:
    registry = beatmap_registry.BeatmapRegistry(app_config.library.songs_dir)
    try:
        song = _resolve_song(registry, parsed_args.song)
        if song is None:
            return _print_error(f"No chart {parsed_args.song!r} in {registry.songs_dir}")
        return _autoplay_song(song, parsed_args, app_config)
    finally:
        registry.dispose()


def _autoplay_song(
    song: beatmap_registry.RegisteredSong,
    parsed_args: argparse.Namespace,
    app_config: config_module.AppConfig,
) -> int:
    beatmap = song.beatmap

    gameplay_config = app_config.gameplay
    if parsed_args.hard:
        gameplay_config = gameplay_config.model_copy(update={"hard_mode": True})

    qt_application = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    transport: Optional[audio_transport.AudioTransport] = None
    audio_source: Optional[Path] = None
    if app_config.audio.enabled and not parsed_args.no_audio and song.audio_path is not None:
        try:
            transport = audio_transport.QtMediaTransport()
            audio_source = song.audio_path
        except audio_transport.AudioTransportError as exc:
            _LOGGER.warning("Continuing without audio: %s", exc)

    store = high_scores.JsonHighScoreStore(app_config.library.high_scores_path)
    controller = session_controller.SessionController(
        beatmap,
        song_id=song.song_id,
        transport=transport,
        audio_source=audio_source,
        gameplay=gameplay_config,
        audio=app_config.audio,
        high_score_store=store,
        rng=_make_rng(parsed_args.seed),
    )

    offset_ms = int(parsed_args.offset_ms)
    outcome: Dict[str, Any] = {}

    autoplay_timer = QTimer(controller)
    autoplay_timer.setInterval(int(gameplay_config.tick_interval_ms))

    def press_due_notes() -> None:
        clock_ms = controller.clock_ms()
        for note in controller.pending_notes():
            if note.time_ms + offset_ms > clock_ms:
                break
            controller.submit_input(note.lane)

    def on_phase_changed(phase_value: str) -> None:
        _LOGGER.info("Phase: %s", phase_value)
        if phase_value == play_session.SessionPhase.ACTIVE.value:
            snapshot = controller.clock_snapshot()
            if snapshot is not None:
                _LOGGER.debug("Clock started at epoch %s ms", snapshot.clock_start_epoch_ms)
            autoplay_timer.start()
        elif phase_value == play_session.SessionPhase.FINISHED.value:
            autoplay_timer.stop()
        elif phase_value == play_session.SessionPhase.ABANDONED.value:
            autoplay_timer.stop()
            qt_application.quit()

    def on_results_ready(results: play_session.SessionResults) -> None:
        outcome["results"] = _results_to_dict(results)
        qt_application.quit()

    autoplay_timer.timeout.connect(press_due_notes)
    controller.phaseChanged.connect(on_phase_changed)
    controller.countdownTick.connect(lambda value: _LOGGER.info("Countdown: %d", value))
    controller.audioStatusChanged.connect(lambda status: _LOGGER.info("Audio: %s", status))
    controller.degradedMode.connect(lambda reason: _LOGGER.warning("Degraded mode: %s", reason))
    controller.resultsReady.connect(on_results_ready)

    controller.start()
    qt_application.exec()

    if "results" not in outcome:
        return _print_error("Session ended without results")
    _print_json(outcome["results"])
    return 0


def _command_scores(parsed_args: argparse.Namespace, app_config: config_module.AppConfig) -> int:
    store = high_scores.JsonHighScoreStore(app_config.library.high_scores_path)
    _print_json(store.all_scores())
    return 0


def _command_config(parsed_args: argparse.Namespace, app_config: config_module.AppConfig) -> int:
    sys.stdout.write(config_module.to_json(app_config) + "\n")
    return 0


def _build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(prog="taikobeat", description="TaikoBeat chart tools")
    argument_parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors.")
    argument_parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = argument_parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Parse a chart and print it as JSON.")
    inspect_parser.add_argument("chart", help="Path to a .osu file.")
    inspect_parser.add_argument("--hard", action="store_true", help="Apply hard mode augmentation.")
    inspect_parser.add_argument("--seed", type=int, default=None, help="Seed for augmentation lanes.")
    inspect_parser.set_defaults(handler=_command_inspect)

    autoplay_parser = subparsers.add_parser("autoplay", help="Play a chart with perfect input.")
    autoplay_parser.add_argument("song", help="Path to a .osu file, or a song id from the songs directory.")
    autoplay_parser.add_argument("--hard", action="store_true", help="Apply hard mode augmentation.")
    autoplay_parser.add_argument("--seed", type=int, default=None, help="Seed for augmentation lanes.")
    autoplay_parser.add_argument("--offset-ms", type=int, default=0, help="Press every note this late (negative: early).")
    autoplay_parser.add_argument("--no-audio", action="store_true", help="Do not load chart audio.")
    autoplay_parser.set_defaults(handler=_command_autoplay)

    songs_parser = subparsers.add_parser("songs", help="List the charts in the songs directory.")
    songs_parser.set_defaults(handler=_command_songs)

    scores_parser = subparsers.add_parser("scores", help="Print stored high scores.")
    scores_parser.set_defaults(handler=_command_scores)

    config_parser = subparsers.add_parser("config", help="Print the resolved configuration.")
    config_parser.set_defaults(handler=_command_config)

    return argument_parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parsed_args = _build_argument_parser().parse_args(argv)

    try:
        app_config, config_path = config_module.get_config()
    except (OSError, ValueError) as exc:
        logging_setup.setup_logging(parsed_args)
        return _print_error(str(exc))

    logging_setup.setup_logging(parsed_args, config_level=app_config.logging.level)
    _LOGGER.debug("Config source: %s", config_path if config_path is not None else "(defaults)")

    try:
        return int(parsed_args.handler(parsed_args, app_config))
    except osu_parser.ParseError as exc:
        return _print_error(str(exc))
    except high_scores.HighScoreStoreError as exc:
        return _print_error(str(exc))


if __name__ == "__main__":
    raise SystemExit(main())
