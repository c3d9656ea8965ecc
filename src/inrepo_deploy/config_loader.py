"""
Hierarchical configuration loader for inrepo_deploy.

Provides convention-based config file discovery, YAML !include support,
env var interpolation, and hierarchical merge with "project wins" semantics.

Usage:
    from inrepo_deploy.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

PROJECT_CONFIG_DIR = ".inrepo"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


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
# 2. YAML !include support (dedicated SafeLoader subclass)
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
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        # loader.name is the path of the file being parsed
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if target in include_stack:
        chain = " -> ".join(str(p) for p in [*include_stack, target])
        raise ValueError(f"Circular include detected: {chain}")

    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(
        target, _include_stack=[*include_stack, target]
    )


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML file using the ``ConfigLoader`` (with ``!include``)."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``INREPO_CONFIG`` env var (explicit single path)
        2. ``.inrepo/config.yml`` in CWD (project-level)
        3. ``.inrepo/config.yaml`` in CWD (alternate extension)
        4. ``~/.config/inrepo/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get("INREPO_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / PROJECT_CONFIG_DIR / "config.yml")
    candidates.append(cwd / PROJECT_CONFIG_DIR / "config.yaml")
    candidates.append(Path.home() / ".config" / "inrepo" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 3a. Config bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# inrepo-deploy configuration
#
# Remote settings can also be set via environment variables:
#   INREPO_REPO (owner/name), INREPO_BRANCH, INREPO_TOKEN, INREPO_API_URL
#
# remote:
#   owner: my-org
#   repo: my-game
#   branch: main
#   token: ${GITHUB_TOKEN}
#   timeout: 60
#
# workspace:
#   root: .
#   state_dir: .inrepo
#   documents:
#     - game/project.json
#     - game/scenes/*.json
#   assets: []
#   manifest_path: game/project.json
#
# deploy:
#   conflict_strategy: interactive   # overwrite | pull | skip | cancel
#   commit_message: "Update via InRepo Studio - {timestamp}"
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Ensure a config file exists, creating a commented starter if needed.

    If a config file already exists (per ``discover_config_files()``),
    its path is returned without modification.

    Args:
        target: Explicit path to create. Defaults to
            ``CWD / .inrepo / config.yml``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)

    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Merge strategy ("project wins"):
        Files are loaded from lowest precedence to highest.  Each file's
        top-level keys **replace** (not deep-merge) those from earlier files.

    After merging, env var interpolation is applied to all string values.

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
