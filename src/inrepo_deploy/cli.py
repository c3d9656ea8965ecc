"""Command-line interface for the deploy engine.

Subcommands:

- ``status``  -- dry run: planned changes and conflicts.
- ``deploy``  -- publish changed files, deciding conflicts interactively or
  with ``--strategy``.
- ``upload``  -- upload image files into an asset group and register them
  in the project manifest.
- ``login`` / ``logout`` / ``whoami`` -- manage the stored token.
- ``init``    -- create a starter ``.inrepo/config.yml``.

Exit status is 0 on success and 1 on any failure or cancelled deploy.
"""

import argparse
import getpass
import json
import logging
import mimetypes
import sys
from pathlib import Path

from . import __version__
from .config_loader import ensure_config
from .context import DeployContext, build_context, resolve_config
from .deploy.assets import AssetGroup, AssetGroupType, AssetItem, slugify
from .deploy.models import DeployPhase, DeployStatus
from .deploy.reporter import (
    format_change_preview,
    format_deploy_report,
    format_upload_result,
    report_to_json,
)
from .deploy.resolver import STRATEGIES, create_resolver
from .errors import DeployError
from .logger import apply_logging_config, setup_logging

logger = logging.getLogger(__name__)


def _print_status(status: DeployStatus) -> None:
    if status.phase not in (DeployPhase.DONE, DeployPhase.ERROR):
        print(status.message, file=sys.stderr)


def _load_context(args: argparse.Namespace) -> DeployContext:
    overrides = {
        "repo": args.repo,
        "branch": args.branch,
        "api_url": args.api_url,
        "workspace": args.workspace,
        "insecure": args.insecure,
        "debug": args.debug,
    }
    if getattr(args, "strategy", None):
        overrides["conflict_strategy"] = args.strategy
    config, unified, sources = resolve_config(
        {k: v for k, v in overrides.items() if v}
    )
    apply_logging_config(
        unified.logging.level, None if args.log_file else unified.logging.file
    )
    logger.debug("Configuration loaded from: %s", ", ".join(sources))
    return build_context(config, unified)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_status(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    report = ctx.orchestrator(create_resolver("cancel")).deploy(dry_run=True)
    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif report.phase == DeployPhase.ERROR:
        print(format_deploy_report(report))
    else:
        print(format_change_preview(report))
    return 1 if report.phase == DeployPhase.ERROR else 0


def _cmd_deploy(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    strategy = ctx.config.conflict_strategy
    if strategy == "interactive" and not sys.stdin.isatty():
        logger.warning("No terminal for interactive resolution; conflicts cancel the deploy")
        strategy = "cancel"
    resolver = create_resolver(strategy, fetch_remote=ctx.gateway.fetch_content)
    orchestrator = ctx.orchestrator(
        resolver, on_status=None if args.json else _print_status
    )
    report = orchestrator.deploy(dry_run=args.dry_run)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif args.dry_run and report.phase == DeployPhase.DONE:
        print(format_change_preview(report))
    else:
        print(format_deploy_report(report))

    if report.phase == DeployPhase.ERROR or report.cancelled:
        return 1
    return 0


def _cmd_upload(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    if not ctx.auth.is_authenticated():
        print("Not authenticated. Run 'inrepo-deploy login' first.", file=sys.stderr)
        return 1

    assets: list[AssetItem] = []
    for index, file_name in enumerate(args.files, start=1):
        path = Path(file_name)
        mime_type, _ = mimetypes.guess_type(path.name)
        assets.append(
            AssetItem(
                id=str(index),
                name=path.stem,
                data=path.read_bytes(),
                mime_type=mime_type,
            )
        )

    group = AssetGroup(
        type=AssetGroupType(args.group_type),
        slug=slugify(args.group, fallback="group"),
        name=args.group,
    )
    result = ctx.uploader().upload_group(group, assets)
    print(format_upload_result(result))
    return 0 if result.error is None else 1


def _cmd_login(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    token = args.token or getpass.getpass("Personal Access Token: ")
    if not token.strip():
        print("No token given.", file=sys.stderr)
        return 1
    # A session-only token would not outlive this process
    result = ctx.auth.authenticate(token.strip(), persistent=True)
    if not result.valid:
        print(f"Login failed: {result.error}", file=sys.stderr)
        return 1
    print(f"Logged in as {result.username}; token saved to {ctx.state_dir}.")
    return 0


def _cmd_logout(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    ctx.auth.logout()
    print("Logged out.")
    return 0


def _cmd_whoami(args: argparse.Namespace) -> int:
    ctx = _load_context(args)
    state = ctx.auth.get_state()
    if not state.is_authenticated:
        print("Not authenticated.")
        return 1
    scopes = ", ".join(state.scopes) if state.scopes else "none reported"
    print(f"{state.username} (scopes: {scopes})")
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inrepo-deploy",
        description="Deploy a local workspace to its remote repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would be deployed
  inrepo-deploy status

  # Deploy, overwriting remote copies of conflicting files
  inrepo-deploy deploy --strategy overwrite

  # Upload two tiles into the "Forest Floor" tileset
  inrepo-deploy upload --group-type tilesets --group "Forest Floor" grass.png dirt.png
        """,
    )
    parser.add_argument("--repo", help="Target repository as owner/name")
    parser.add_argument("--branch", help="Branch to publish to")
    parser.add_argument("--api-url", help="API base URL")
    parser.add_argument("--workspace", help="Local working directory")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"inrepo-deploy version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show planned changes and conflicts")
    status.add_argument("--json", action="store_true", help="JSON output")
    status.set_defaults(func=_cmd_status)

    deploy = sub.add_parser("deploy", help="Publish changed files")
    deploy.add_argument(
        "--dry-run", action="store_true", help="Preview without writing"
    )
    deploy.add_argument(
        "--strategy",
        choices=STRATEGIES,
        help="How to decide conflicts (default: from config, else interactive)",
    )
    deploy.add_argument("--json", action="store_true", help="JSON output")
    deploy.set_defaults(func=_cmd_deploy)

    upload = sub.add_parser("upload", help="Upload assets into a group")
    upload.add_argument(
        "--group-type",
        required=True,
        choices=[t.value for t in AssetGroupType],
    )
    upload.add_argument("--group", required=True, help="Group display name")
    upload.add_argument("files", nargs="+", help="Image files to upload")
    upload.set_defaults(func=_cmd_upload)

    login = sub.add_parser("login", help="Validate a token and save it in the state directory")
    login.add_argument("--token", help="Token (prompted for if omitted)")
    login.set_defaults(func=_cmd_login)

    logout = sub.add_parser("logout", help="Forget the stored token")
    logout.set_defaults(func=_cmd_logout)

    whoami = sub.add_parser("whoami", help="Show the authenticated user")
    whoami.set_defaults(func=_cmd_whoami)

    init = sub.add_parser("init", help="Create a starter config file")
    init.set_defaults(func=_cmd_init)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )

    try:
        return args.func(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except DeployError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
