"""Tests for the command-line interface.

Configuration resolution and context wiring are patched so every command
runs against a DeployContext built from in-memory fakes.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fakes import FakeAuth, FakeGateway, doc_bytes, manifest, scene

from inrepo_deploy.cli import main
from inrepo_deploy.config_schema import UnifiedConfig
from inrepo_deploy.context import DeployContext
from inrepo_deploy.core.auth import AuthManager, TokenStorage, TokenValidationResult

SCENE_PATH = "game/scenes/main.json"


def _validator(token: str) -> TokenValidationResult:
    if token == "ghp_good":
        return TokenValidationResult(valid=True, username="octo", scopes=["repo"])
    return TokenValidationResult(valid=False, error="Invalid token.", rejected=True)


@pytest.fixture
def ctx(mock_config, workspace, gateway) -> DeployContext:
    return DeployContext(
        config=mock_config,
        unified=UnifiedConfig(),
        client=MagicMock(),
        auth=FakeAuth(),
        gateway=gateway,
        workspace=workspace,
    )


@pytest.fixture
def cli(ctx, mock_config):
    """Patch config resolution and wiring; yields the resolve_config mock."""
    with (
        patch(
            "inrepo_deploy.cli.resolve_config",
            return_value=(mock_config, ctx.unified, []),
        ) as mock_resolve,
        patch("inrepo_deploy.cli.build_context", return_value=ctx),
        patch("inrepo_deploy.cli.setup_logging"),
        patch("inrepo_deploy.cli.apply_logging_config"),
    ):
        yield mock_resolve


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


class TestStatus:
    def test_preview(self, cli, gateway, capsys):
        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "DRY RUN" in out
        assert "[A] game/project.json" in out
        assert gateway.writes == []

    def test_json(self, cli, capsys):
        assert main(["status", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["dry_run"] is True
        assert data["counts"]["changes"] == 2

    def test_unauthenticated(self, cli, ctx, capsys):
        ctx.auth = FakeAuth(authenticated=False)
        assert main(["status"]) == 1
        assert "Not authenticated" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# deploy
# ---------------------------------------------------------------------------


class TestDeploy:
    def test_clean_deploy(self, cli, gateway, capsys):
        assert main(["deploy"]) == 0
        captured = capsys.readouterr()
        assert "Successfully deployed 2 file(s)." in captured.out
        # Progress goes to stderr
        assert "Deploying 1/2..." in captured.err
        assert len(gateway.writes) == 2

    def test_dry_run(self, cli, gateway, capsys):
        assert main(["deploy", "--dry-run"]) == 0
        assert "DRY RUN" in capsys.readouterr().out
        assert gateway.writes == []

    def test_conflict_without_terminal_cancels(
        self, cli, gateway, workspace_root: Path, capsys
    ):
        assert main(["deploy"]) == 0
        gateway.writes.clear()
        gateway.seed(SCENE_PATH, doc_bytes(scene(name="Remote")))
        (workspace_root / SCENE_PATH).write_bytes(doc_bytes(scene(name="Local")))

        with patch("inrepo_deploy.cli.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            assert main(["deploy"]) == 1
        assert "Deploy cancelled." in capsys.readouterr().out
        assert gateway.writes == []

    def test_strategy_passed_to_config(self, cli):
        main(["deploy", "--strategy", "skip", "--json"])
        overrides = cli.call_args.args[0]
        assert overrides["conflict_strategy"] == "skip"

    def test_global_options_passed_to_config(self, cli):
        main(["--repo", "acme/other", "--branch", "dev", "--insecure", "status"])
        assert cli.call_args.args[0] == {
            "repo": "acme/other",
            "branch": "dev",
            "insecure": True,
        }

    def test_partial_failure_exit_code(self, cli, gateway, capsys):
        from inrepo_deploy.errors import RemoteApiError

        gateway.fail_writes[SCENE_PATH] = RemoteApiError("boom", 500)
        assert main(["deploy", "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["counts"]["failed"] == 1


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------


class TestUpload:
    def test_upload_files(self, cli, gateway: FakeGateway, tmp_path, capsys):
        gateway.seed("game/project.json", doc_bytes(manifest()))
        image = tmp_path / "Mossy Stone.png"
        image.write_bytes(b"\x89PNG\r\n\x1a\n")

        code = main(
            ["upload", "--group-type", "props", "--group", "Rocks", str(image)]
        )

        assert code == 0
        assert "Uploaded 1 asset(s) to props/rocks." in capsys.readouterr().out
        assert gateway.content_of("game/assets/props/rocks/mossy-stone.png")

    def test_requires_authentication(self, cli, ctx, tmp_path, capsys):
        ctx.auth = FakeAuth(authenticated=False)
        image = tmp_path / "a.png"
        image.write_bytes(b"x")
        assert main(["upload", "--group-type", "props", "--group", "R", str(image)]) == 1
        assert "Not authenticated" in capsys.readouterr().err

    def test_missing_file(self, cli, tmp_path, capsys):
        missing = tmp_path / "missing.png"
        assert main(["upload", "--group-type", "props", "--group", "R", str(missing)]) == 1
        assert "Error:" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# login / logout / whoami
# ---------------------------------------------------------------------------


class TestAccountCommands:
    @pytest.fixture
    def real_auth(self, ctx, tmp_path) -> AuthManager:
        ctx.auth = AuthManager(TokenStorage(tmp_path / "state"), _validator)
        return ctx.auth

    def test_login_persists_token(self, cli, real_auth, capsys):
        assert main(["login", "--token", "ghp_good"]) == 0
        assert "Logged in as octo" in capsys.readouterr().out
        assert real_auth.storage.has_persistent_token()

    def test_login_prompts(self, cli, real_auth):
        with patch("inrepo_deploy.cli.getpass.getpass", return_value=" ghp_good "):
            assert main(["login"]) == 0
        assert real_auth.storage.get_token() == "ghp_good"

    def test_login_rejected(self, cli, real_auth, capsys):
        assert main(["login", "--token", "ghp_bad"]) == 1
        assert "Login failed: Invalid token." in capsys.readouterr().err
        assert real_auth.storage.get_token() is None

    def test_logout(self, cli, real_auth, capsys):
        real_auth.authenticate("ghp_good", persistent=True)
        assert main(["logout"]) == 0
        assert real_auth.storage.get_token() is None

    def test_whoami(self, cli, real_auth, capsys):
        real_auth.authenticate("ghp_good", persistent=True)
        assert main(["whoami"]) == 0
        assert capsys.readouterr().out.strip() == "octo (scopes: repo)"

    def test_whoami_signed_out(self, cli, real_auth, capsys):
        assert main(["whoami"]) == 1
        assert "Not authenticated." in capsys.readouterr().out


# ---------------------------------------------------------------------------
# init and error handling
# ---------------------------------------------------------------------------


class TestMisc:
    def test_init(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        with patch("inrepo_deploy.cli.setup_logging"):
            assert main(["init"]) == 0
        assert (tmp_path / ".inrepo" / "config.yml").exists()
        assert "Config file:" in capsys.readouterr().out

    def test_config_error(self, capsys):
        with (
            patch(
                "inrepo_deploy.cli.resolve_config",
                side_effect=ValueError("Repository not found."),
            ),
            patch("inrepo_deploy.cli.setup_logging"),
        ):
            assert main(["status"]) == 1
        assert "Error: Repository not found." in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "inrepo-deploy version" in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])
