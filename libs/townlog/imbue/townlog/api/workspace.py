import os
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from loguru import logger

from imbue.townlog.config.data_types import TownLogConfig
from imbue.townlog.errors import WorkspaceNotFoundError

ROOT_ENV_VAR: Final[str] = "TOWNLOG_ROOT"


def find_town_root(
    start_dir: Path,
    config: TownLogConfig,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Find the town root containing start_dir, or None if there is none.

    TOWNLOG_ROOT, when set, wins over the directory walk. Otherwise walks up
    from start_dir looking for the configured workspace marker. Raises
    WorkspaceNotFoundError if the walk itself fails (e.g. permission denied).
    """
    explicit_root = _root_from_environment(environ)
    if explicit_root is not None:
        return explicit_root

    try:
        resolved = start_dir.resolve()
        for candidate in (resolved, *resolved.parents):
            if (candidate / config.workspace_marker).exists():
                logger.trace("Found town root at {}", candidate)
                return candidate
    except OSError as e:
        raise WorkspaceNotFoundError(start_dir, str(config.workspace_marker), detail=str(e)) from e
    return None


def find_town_root_from_cwd(
    config: TownLogConfig,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Like find_town_root, starting from the current working directory.

    Raises WorkspaceNotFoundError if the working directory cannot be
    determined, e.g. because it has been deleted.
    """
    explicit_root = _root_from_environment(environ)
    if explicit_root is not None:
        return explicit_root

    try:
        start_dir = Path.cwd()
    except OSError as e:
        raise WorkspaceNotFoundError(Path("."), str(config.workspace_marker), detail=str(e)) from e
    return find_town_root(start_dir, config, environ)


def find_town_root_or_error(
    start_dir: Path,
    config: TownLogConfig,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Like find_town_root, but raises WorkspaceNotFoundError instead of returning None."""
    root = find_town_root(start_dir, config, environ)
    if root is None:
        raise WorkspaceNotFoundError(start_dir, str(config.workspace_marker))
    return root


def _root_from_environment(environ: Mapping[str, str] | None) -> Path | None:
    env = os.environ if environ is None else environ
    explicit_root = env.get(ROOT_ENV_VAR)
    if not explicit_root:
        return None
    logger.trace("Using town root from {}: {}", ROOT_ENV_VAR, explicit_root)
    return Path(explicit_root).expanduser()
