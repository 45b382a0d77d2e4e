"""
Hierarchical configuration loader for trac_live_sync.

Provides convention-based config file discovery, YAML !include support,
env var interpolation, and hierarchical merge with "project wins" semantics.

Usage:
    from trac_live_sync.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TRAC_LIVE_SYNC_CONFIG"
CONFIG_DIR_NAME = ".trac_live_sync"

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and interpolate env vars in all strings."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass with ``!include`` support.

    A dedicated subclass keeps the global ``yaml.SafeLoader`` untouched.
    Each load carries an *include stack* used to detect circular includes.
    """


def _include_constructor(
    loader: ConfigLoader, node: yaml.ScalarNode
) -> Any:
    """Handle ``!include path/to/file.yml`` directives."""
    include_path = Path(loader.construct_scalar(node))
    if not include_path.is_absolute():
        include_path = Path(loader.name).resolve().parent / include_path
    include_path = include_path.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in include_stack:
        chain = " -> ".join(str(p) for p in [*include_stack, include_path])
        raise ValueError(f"Circular include detected: {chain}")

    if not include_path.exists():
        raise FileNotFoundError(
            f"Include file not found: {include_path} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(
        include_path, _include_stack=[*include_stack, include_path]
    )


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML file using the ``ConfigLoader`` (with ``!include``)."""
    path = path.resolve()
    if _include_stack is None:
        _include_stack = [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``TRAC_LIVE_SYNC_CONFIG`` env var (explicit single path)
        2. ``.trac_live_sync/config.yml`` in CWD (project-level)
        3. ``.trac_live_sync/config.yaml`` in CWD (alternate extension)
        4. ``~/.config/trac_live_sync/config.yml`` (XDG global)
        5. ``~/.trac_live_sync/config.yaml`` (home global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / CONFIG_DIR_NAME
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(
        Path.home() / ".config" / "trac_live_sync" / "config.yml"
    )
    candidates.append(Path.home() / CONFIG_DIR_NAME / "config.yaml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# trac-live-sync configuration
#
# Trac connection settings can also be set via environment variables:
#   TRAC_URL, TRAC_USERNAME, TRAC_PASSWORD, TRAC_INSECURE
#
# trac:
#   url: https://trac.example.com
#   username: admin
#   password: ${TRAC_PASSWORD}
#   max_parallel_requests: 5
#
# Live sync of a local Markdown folder into the wiki.  The settings below
# only seed the persisted state file; later changes made through the
# live_sync_configure tool win.
#
# live_sync:
#   vault_root: notes
#   state_file: .trac_live_sync/live_sync.json
#   wiki_namespace: Notes
#   folder_to_publish: Published
#   key_backlink: "[[Publish]]"
#   enabled: true
#   strategy: both
#   debounce_seconds: 5
#   interval_minutes: 30
#   orphan_cleanup_interval_hours: 24
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the single config file path that should be used.

    The highest-precedence existing file wins; with none on disk the
    project-level default ``CWD / .trac_live_sync / config.yml`` is returned.
    This does NOT create the file -- use ``ensure_config()`` for that.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / CONFIG_DIR_NAME / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Ensure a config file exists, creating directory and starter file if needed.

    Args:
        target: Explicit path to create. If ``None``, uses
            ``resolve_config_path()``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)

    return config_path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are loaded from lowest precedence to highest and each file's
    top-level keys **replace** (not deep-merge) those from earlier files.
    Env var interpolation runs after the merge.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files()

    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
