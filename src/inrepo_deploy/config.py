"""Runtime configuration for the deploy engine.

Reads remote repository settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    INREPO_REPO: Target repository as ``owner/name`` (required)
    INREPO_BRANCH: Branch to publish to (optional, default: repository default)
    INREPO_API_URL: API base URL (optional, default: https://api.github.com)
    INREPO_TOKEN: Bearer token (optional, falls back to GITHUB_TOKEN, then
        to the stored token)
    INREPO_WORKSPACE: Local working directory (optional, default: .)
    INREPO_STATE_DIR: Directory for deploy state (optional, default: .inrepo)
    INREPO_CONFLICT_STRATEGY: How conflicts are answered (optional,
        default: interactive)
    INREPO_INSECURE: Skip SSL verification (optional, default: false)
    INREPO_TIMEOUT: Read timeout in seconds (optional, default: 60)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

CONFLICT_STRATEGIES = ("interactive", "overwrite", "pull", "skip", "cancel")


@dataclass
class Config:
    repo_owner: str
    repo_name: str
    api_url: str = DEFAULT_API_URL
    branch: str | None = None
    token: str | None = None
    workspace_root: str = "."
    state_dir: str = ".inrepo"
    conflict_strategy: str = "interactive"
    insecure: bool = False
    debug: bool = False
    timeout: int = 60

    @property
    def repo_slug(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    @property
    def state_path(self) -> Path:
        """State directory, relative paths taken from the workspace root."""
        state_dir = Path(self.state_dir).expanduser()
        if not state_dir.is_absolute():
            state_dir = Path(self.workspace_root) / state_dir
        return state_dir


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Split ``owner/name`` into its two parts.

    Raises:
        ValueError: If the slug is not exactly two non-empty segments.
    """
    parts = slug.strip().strip("/").split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise ValueError(
            f"Invalid repository '{slug}': expected 'owner/name'"
        )
    return parts[0].strip(), parts[1].strip()


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed, the repository is
            incomplete, or the conflict strategy is unknown.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.repo_owner.strip() or not config.repo_name.strip():
        raise ValueError(
            "Repository cannot be empty. Set INREPO_REPO to 'owner/name'."
        )

    if config.conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Invalid conflict strategy '{config.conflict_strategy}': "
            f"must be one of {', '.join(CONFLICT_STRATEGIES)}"
        )

    if not (1 <= config.timeout <= 600):
        raise ValueError(
            f"Invalid timeout '{config.timeout}': must be between 1 and 600 seconds"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def load_config(
    repo: str | None = None,
    token: str | None = None,
    branch: str | None = None,
    api_url: str | None = None,
    workspace: str | None = None,
    state_dir: str | None = None,
    conflict_strategy: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        repo: Override repository slug ``owner/name``.
        token: Override bearer token.
        branch: Override target branch.
        api_url: Override API base URL.
        workspace: Override local working directory.
        state_dir: Override deploy state directory.
        conflict_strategy: Override conflict strategy.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values derived from the YAML config.
            Used as fallback when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the repository is missing after checking all sources
            or any value fails validation.
    """
    fb = yaml_fallbacks or {}

    # --- Repository: CLI > env > YAML > error ---

    repo_slug = repo or os.getenv("INREPO_REPO")
    if repo_slug:
        owner, name = parse_repo_slug(repo_slug)
    elif fb.get("owner") and fb.get("repo"):
        owner, name = str(fb["owner"]).strip(), str(fb["repo"]).strip()
    else:
        raise ValueError(
            "Repository not found. Set INREPO_REPO environment variable, "
            "pass --repo CLI argument, or add 'owner' and 'repo' to the "
            "remote section of config.yml."
        )

    # --- Optional string fields: CLI > env > YAML > default ---

    final_token = (
        token
        or os.getenv("INREPO_TOKEN")
        or os.getenv("GITHUB_TOKEN")
        or fb.get("token")
    )
    final_token = final_token.strip() if final_token else None

    final_branch = branch or os.getenv("INREPO_BRANCH") or fb.get("branch")
    final_api_url = (
        api_url
        or os.getenv("INREPO_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )
    final_workspace = (
        workspace or os.getenv("INREPO_WORKSPACE") or fb.get("root") or "."
    )
    final_state_dir = (
        state_dir
        or os.getenv("INREPO_STATE_DIR")
        or fb.get("state_dir")
        or ".inrepo"
    )
    final_strategy = (
        conflict_strategy
        or os.getenv("INREPO_CONFLICT_STRATEGY")
        or fb.get("conflict_strategy")
        or "interactive"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if insecure:
        final_insecure = True
    else:
        env_insecure = get_bool_env("INREPO_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("INREPO_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("INREPO_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = int(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid INREPO_TIMEOUT '{timeout_raw}': must be a number between 1 and 600"
            ) from None
    elif "timeout" in fb:
        final_timeout = int(fb["timeout"])
    else:
        final_timeout = 60

    config = Config(
        repo_owner=owner,
        repo_name=name,
        api_url=final_api_url,
        branch=final_branch,
        token=final_token,
        workspace_root=final_workspace,
        state_dir=final_state_dir,
        conflict_strategy=final_strategy,
        insecure=final_insecure,
        debug=final_debug,
        timeout=final_timeout,
    )

    validate_config(config)

    return config
