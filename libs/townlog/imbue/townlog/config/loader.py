import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from typing import Final

from loguru import logger
from pydantic import ValidationError

from imbue.townlog.config.data_types import CONFIG_FILENAME
from imbue.townlog.config.data_types import CONFIG_TABLE_NAME
from imbue.townlog.config.data_types import TownLogConfig
from imbue.townlog.errors import ConfigParseError

# Environment variables that override individual config fields.
# Values are validated by the TownLogConfig model like any file value.
_ENV_OVERRIDES: Final[dict[str, str]] = {
    "TOWNLOG_APPEND_STRATEGY": "append_strategy",
    "TOWNLOG_ATOMIC_WRITE_LIMIT_BYTES": "atomic_write_limit_bytes",
    "TOWNLOG_FOLLOW_POLL_INTERVAL_SECONDS": "follow_poll_interval_seconds",
}


def load_config(root: Path | None, environ: Mapping[str, str] | None = None) -> TownLogConfig:
    """Load the townlog config for a town.

    Precedence (lowest to highest):
    1. Defaults from TownLogConfig
    2. The [townlog] table of <root>/.townlog.toml (if root is given and the file exists)
    3. TOWNLOG_* environment variables
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if root is not None:
        values.update(_read_config_file(root / CONFIG_FILENAME))

    for env_name, field_name in _ENV_OVERRIDES.items():
        raw_value = env.get(env_name)
        if raw_value:
            logger.trace("Config override from {}: {}={}", env_name, field_name, raw_value)
            values[field_name] = raw_value

    try:
        return TownLogConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigParseError(f"Invalid townlog config: {e}") from e


def _read_config_file(config_path: Path) -> dict[str, Any]:
    """Read the [townlog] table from a TOML file, or return {} if the file does not exist."""
    try:
        raw = config_path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigParseError(f"Cannot read config file {config_path}: {e}") from e

    try:
        parsed = tomllib.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigParseError(f"Cannot parse config file {config_path}: {e}") from e

    table = parsed.get(CONFIG_TABLE_NAME, {})
    if not isinstance(table, dict):
        raise ConfigParseError(f"[{CONFIG_TABLE_NAME}] in {config_path} must be a table")

    logger.debug("Loaded townlog config from {}", config_path)
    return dict(table)
