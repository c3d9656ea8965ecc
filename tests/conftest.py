"""Shared pytest fixtures for inrepo-deploy tests."""

from pathlib import Path

import pytest
from fakes import FakeAuth, FakeGateway, doc_bytes, manifest, scene

from inrepo_deploy.config import Config
from inrepo_deploy.deploy.fingerprints import STORE_FILENAME, FingerprintStore
from inrepo_deploy.deploy.workspace import DirectoryWorkspace


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live repository API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live repository API"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer environment variables out of config resolution."""
    for key in (
        "INREPO_REPO",
        "INREPO_TOKEN",
        "GITHUB_TOKEN",
        "INREPO_BRANCH",
        "INREPO_API_URL",
        "INREPO_WORKSPACE",
        "INREPO_STATE_DIR",
        "INREPO_CONFLICT_STRATEGY",
        "INREPO_INSECURE",
        "INREPO_DEBUG",
        "INREPO_TIMEOUT",
        "INREPO_CONFIG",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """A Config pointing at a temporary workspace."""
    return Config(
        repo_owner="acme",
        repo_name="game",
        api_url="https://api.example.com",
        branch="main",
        token="ghp_test",
        workspace_root=str(tmp_path),
    )


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """A workspace holding a valid manifest and one scene."""
    root = tmp_path / "ws"
    (root / "game" / "scenes").mkdir(parents=True)
    (root / "game" / "project.json").write_bytes(doc_bytes(manifest()))
    (root / "game" / "scenes" / "main.json").write_bytes(doc_bytes(scene()))
    return root


@pytest.fixture
def workspace(workspace_root: Path) -> DirectoryWorkspace:
    return DirectoryWorkspace(
        workspace_root,
        documents=["game/project.json", "game/scenes/*.json"],
        assets=["game/assets/**/*.png"],
    )


@pytest.fixture
def store(tmp_path: Path) -> FingerprintStore:
    return FingerprintStore.load(tmp_path / ".inrepo" / STORE_FILENAME)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth()
