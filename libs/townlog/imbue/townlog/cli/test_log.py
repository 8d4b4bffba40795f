"""Integration tests for the log command."""

import json
import threading
import time
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from imbue.townlog.api.record import record_event
from imbue.townlog.cli.common_opts import CommonCliOptions
from imbue.townlog.cli.log import LogCliOptions
from imbue.townlog.cli.log import build_event_filter
from imbue.townlog.errors import UserInputError
from imbue.townlog.events.data_types import TownEvent
from imbue.townlog.main import cli
from imbue.townlog.primitives import LogLevel
from imbue.townlog.primitives import OutputFormat


def _write_events(root: Path, events: list[TownEvent]) -> None:
    log_path = root / "logs" / "town.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a") as handle:
        for event in events:
            handle.write(event.to_log_line())


def _make_opts(**overrides: object) -> LogCliOptions:
    defaults: dict[str, object] = {
        "root": None,
        "log_level": LogLevel.WARNING,
        "tail": None,
        "type": None,
        "agent": None,
        "since": None,
        "follow": False,
        "output_format": OutputFormat.HUMAN,
    }
    defaults.update(overrides)
    return LogCliOptions.model_validate(defaults)


def test_log_cli_options_extend_common_options() -> None:
    assert issubclass(LogCliOptions, CommonCliOptions)


def test_no_log_file_yet(cli_runner: CliRunner, town_root: Path) -> None:
    result = cli_runner.invoke(cli, ["log", "--root", str(town_root)], catch_exceptions=False)

    assert result.exit_code == 0
    assert "No log file yet" in result.output


def test_empty_log_file(cli_runner: CliRunner, town_root: Path) -> None:
    (town_root / "logs").mkdir()
    (town_root / "logs" / "town.log").write_text("")

    result = cli_runner.invoke(cli, ["log", "--root", str(town_root)], catch_exceptions=False)

    assert result.exit_code == 0
    assert "No events in log" in result.output


def test_end_to_end_spawn_then_wake_filtered_by_type(cli_runner: CliRunner, town_root: Path) -> None:
    record_event(town_root, "spawn", "town/crew/max", "issue-42")
    record_event(town_root, "wake", "town/crew/max", "")

    result = cli_runner.invoke(
        cli,
        ["log", "--root", str(town_root), "--type", "spawn", "--format", "jsonl"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    records = [json.loads(line) for line in result.stdout.splitlines()]
    assert len(records) == 1
    assert records[0]["type"] == "spawn"
    assert records[0]["context"] == "issue-42"


def test_human_output_shows_rendered_events(cli_runner: CliRunner, town_root: Path) -> None:
    record_event(town_root, "spawn", "town/crew/max", "issue-42")
    record_event(town_root, "crash", "town/crew/max", "exit 1")

    result = cli_runner.invoke(cli, ["log", "--root", str(town_root)], catch_exceptions=False)

    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert len(lines) == 2
    assert "[spawn] town/crew/max spawned for issue-42" in lines[0]
    assert "[crash] town/crew/max exited unexpectedly (exit 1)" in lines[1]


def test_default_tail_shows_last_twenty(cli_runner: CliRunner, town_root: Path) -> None:
    base = datetime.now(timezone.utc) - timedelta(hours=1)
    _write_events(
        town_root,
        [TownEvent(timestamp=base + timedelta(seconds=i), type="nudge", agent=f"a/{i}", context="") for i in range(25)],
    )

    result = cli_runner.invoke(cli, ["log", "--root", str(town_root), "--format", "jsonl"], catch_exceptions=False)

    agents = [json.loads(line)["agent"] for line in result.stdout.splitlines()]
    assert agents == [f"a/{i}" for i in range(5, 25)]


def test_tail_option_and_zero_means_all(cli_runner: CliRunner, town_root: Path) -> None:
    for index in range(5):
        record_event(town_root, "done", f"a/{index}", "")

    last_two = cli_runner.invoke(cli, ["log", "--root", str(town_root), "-n", "2", "--format", "jsonl"])
    everything = cli_runner.invoke(cli, ["log", "--root", str(town_root), "-n", "0", "--format", "jsonl"])

    assert [json.loads(line)["agent"] for line in last_two.stdout.splitlines()] == ["a/3", "a/4"]
    assert len(everything.stdout.splitlines()) == 5


def test_agent_prefix_and_no_match_message(cli_runner: CliRunner, town_root: Path) -> None:
    record_event(town_root, "spawn", "town/crew/max", "")
    record_event(town_root, "spawn", "town/crew2/joe", "")

    matched = cli_runner.invoke(cli, ["log", "--root", str(town_root), "-a", "town/crew/", "--format", "jsonl"])
    unmatched = cli_runner.invoke(cli, ["log", "--root", str(town_root), "-a", "elsewhere/"])

    assert [json.loads(line)["agent"] for line in matched.stdout.splitlines()] == ["town/crew/max"]
    assert "No events match filter" in unmatched.output


def test_since_window_excludes_old_events(cli_runner: CliRunner, town_root: Path) -> None:
    now = datetime.now(timezone.utc)
    _write_events(
        town_root,
        [
            TownEvent(timestamp=now - timedelta(hours=3), type="spawn", agent="old", context=""),
            TownEvent(timestamp=now - timedelta(minutes=5), type="spawn", agent="recent", context=""),
        ],
    )

    result = cli_runner.invoke(
        cli, ["log", "--root", str(town_root), "--since", "1h", "--format", "jsonl"], catch_exceptions=False
    )

    assert [json.loads(line)["agent"] for line in result.stdout.splitlines()] == ["recent"]


def test_invalid_since_fails_before_reading(cli_runner: CliRunner, town_root: Path) -> None:
    result = cli_runner.invoke(cli, ["log", "--root", str(town_root), "--since", "yesterday"])

    assert result.exit_code != 0
    assert "Invalid duration" in result.output
    assert "No log file yet" not in result.output


def test_log_path_that_is_a_directory_fails(cli_runner: CliRunner, town_root: Path) -> None:
    (town_root / "logs" / "town.log").mkdir(parents=True)

    result = cli_runner.invoke(cli, ["log", "--root", str(town_root)])

    assert result.exit_code != 0
    assert "not a regular file" in result.output
    assert "No log file yet" not in result.output


def test_not_in_a_town_fails(cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    result = cli_runner.invoke(cli, ["log"])

    assert result.exit_code != 0
    assert "Not in a town workspace" in result.output


def test_root_is_discovered_from_cwd(cli_runner: CliRunner, town_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    record_event(town_root, "kill", "town/crew/max", "stuck")
    monkeypatch.chdir(town_root)

    result = cli_runner.invoke(cli, ["log"], catch_exceptions=False)

    assert "[kill] town/crew/max killed (stuck)" in result.output


def test_corrupt_line_does_not_hide_other_events(cli_runner: CliRunner, town_root: Path) -> None:
    record_event(town_root, "spawn", "a", "one")
    with (town_root / "logs" / "town.log").open("a") as handle:
        handle.write("{broken\n")
    record_event(town_root, "spawn", "b", "two")

    result = cli_runner.invoke(cli, ["log", "--root", str(town_root), "--format", "jsonl"], catch_exceptions=False)

    assert result.exit_code == 0
    assert [json.loads(line)["agent"] for line in result.stdout.splitlines()] == ["a", "b"]


def test_follow_streams_new_lines_until_interrupted(town_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOWNLOG_FOLLOW_POLL_INTERVAL_SECONDS", "0.01")
    emitted: list[str] = []

    def _fake_stdout_writer(content: str) -> None:
        emitted.append(content)
        if content.strip():
            raise KeyboardInterrupt

    monkeypatch.setattr("imbue.townlog.cli.log._write_and_flush_stdout", _fake_stdout_writer)

    def _append_soon() -> None:
        time.sleep(0.3)
        record_event(town_root, "wake", "town/crew/max", "followed")

    appender = threading.Thread(target=_append_soon, daemon=True)
    appender.start()
    result = CliRunner().invoke(cli, ["log", "--root", str(town_root), "-f"], catch_exceptions=False)
    appender.join(timeout=5)

    assert result.exit_code == 0
    assert "Following" in result.output
    assert '"context":"followed"' in emitted[0]
    assert emitted[-1] == "\n"


def test_build_event_filter_maps_options() -> None:
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    event_filter = build_event_filter(_make_opts(type="spawn", agent="town/", since="30m"), now)

    assert event_filter.event_type == "spawn"
    assert event_filter.agent_prefix == "town/"
    assert event_filter.since == now - timedelta(minutes=30)


def test_build_event_filter_without_options_has_no_constraints() -> None:
    event_filter = build_event_filter(_make_opts(), datetime.now(timezone.utc))

    assert event_filter.event_type is None
    assert event_filter.agent_prefix is None
    assert event_filter.since is None


def test_build_event_filter_rejects_bad_since() -> None:
    with pytest.raises(UserInputError):
        build_event_filter(_make_opts(since="soon"), datetime.now(timezone.utc))
