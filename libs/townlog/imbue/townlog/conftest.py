from pathlib import Path

import pytest
from click.testing import CliRunner

from imbue.townlog.config.data_types import TownLogConfig

_TOWNLOG_ENV_VARS = (
    "TOWNLOG_ROOT",
    "TOWNLOG_APPEND_STRATEGY",
    "TOWNLOG_ATOMIC_WRITE_LIMIT_BYTES",
    "TOWNLOG_FOLLOW_POLL_INTERVAL_SECONDS",
)


@pytest.fixture(autouse=True)
def isolate_townlog_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's TOWNLOG_* settings out of every test."""
    for name in _TOWNLOG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def town_root(tmp_path: Path) -> Path:
    """An empty town: a directory carrying the workspace marker and no log yet."""
    root = tmp_path / "town"
    marker = root / TownLogConfig().workspace_marker
    marker.parent.mkdir(parents=True)
    marker.write_text("{}")
    return root


@pytest.fixture
def fast_config() -> TownLogConfig:
    """Config with a short follow poll interval so follow tests finish quickly."""
    return TownLogConfig(follow_poll_interval_seconds=0.01)


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
