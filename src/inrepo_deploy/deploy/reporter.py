"""Deploy report formatting functions.

Provides human-readable and machine-readable output for deploy operations:

- ``format_deploy_report`` -- full post-deploy summary.
- ``format_change_preview`` -- dry-run preview of planned changes.
- ``format_conflict_diff`` -- unified diff for interactive conflict review.
- ``report_to_json`` -- structured dict for MCP tool output.
- ``format_upload_result`` -- summary of an asset group upload.
"""

from __future__ import annotations

import difflib
from typing import TYPE_CHECKING

from .models import FileStatus

if TYPE_CHECKING:
    from .assets import AssetUploadResult
    from .models import ConflictInfo, DeployReport

_STATUS_LABEL = {
    FileStatus.ADDED: "A",
    FileStatus.MODIFIED: "M",
    FileStatus.DELETED: "D",
}


def _decode(content: bytes | None) -> str | None:
    if content is None:
        return None
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return None


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_deploy_report(report: DeployReport) -> str:
    """Format a completed deploy attempt as human-readable text.

    Sections are only included when they contain at least one path.

    Args:
        report: The deploy report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [report.message]
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if report.succeeded:
        lines.append("Deployed:")
        for r in report.succeeded:
            suffix = f" ({r.new_version_id[:7]})" if r.new_version_id else ""
            lines.append(f"  {r.path}{suffix}")
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        for r in report.failed:
            lines.append(f"  {r.path}: {r.error}")
        lines.append("")

    if report.pulled:
        lines.append("Pulled from remote:")
        lines.extend(f"  {p}" for p in report.pulled)
        lines.append("")

    if report.skipped:
        lines.append("Skipped:")
        lines.extend(f"  {p}" for p in report.skipped)
        lines.append("")

    if report.baselined:
        lines.append(f"Already up to date remotely: {len(report.baselined)} file(s)")
        lines.append("")

    if report.error and not report.results:
        lines.append(f"Error: {report.error}")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_change_preview(report: DeployReport) -> str:
    """Format a dry-run report as a list of planned changes.

    Each change is shown as ``[A|M|D] path``; conflicts are flagged with
    the remote version they would be checked against.
    """
    lines: list[str] = ["DRY RUN -- No changes will be made", ""]

    conflicting = {c.path: c for c in report.conflicts}
    if report.changes:
        lines.append("Planned changes:")
        for change in report.changes:
            label = _STATUS_LABEL[change.status]
            line = f"  [{label}] {change.path}"
            conflict = conflicting.get(change.path)
            if conflict is not None:
                remote = conflict.remote_version_id or "deleted"
                line += f"  CONFLICT (remote: {remote})"
            lines.append(line)
        lines.append("")
    else:
        lines.append("No changes to deploy.")
        lines.append("")

    if report.baselined:
        lines.append(
            f"Already up to date remotely: {len(report.baselined)} file(s)"
        )
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict diff
# ------------------------------------------------------------------


def format_conflict_diff(
    conflict: ConflictInfo, remote_content: bytes | None = None
) -> str:
    """Format a single conflict for interactive review.

    Shows a unified diff between local and remote content when both are
    text; otherwise describes the conflict.

    Args:
        conflict: The conflict details.
        remote_content: Current remote bytes, if fetched.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [f"Conflict: {conflict.path} ({conflict.status.value} locally)"]

    if conflict.remote_version_id is None:
        lines.append("  The remote file was deleted since your last deploy.")
        return "\n".join(lines)
    if conflict.status == FileStatus.DELETED:
        lines.append("  You deleted this file, but it changed remotely.")
        return "\n".join(lines)

    local_text = _decode(conflict.content)
    remote_text = _decode(remote_content)
    if local_text is None or remote_text is None:
        lines.append("  (binary or unavailable content; no diff shown)")
        return "\n".join(lines)

    diff_text = "".join(
        difflib.unified_diff(
            remote_text.splitlines(keepends=True),
            local_text.splitlines(keepends=True),
            fromfile=f"remote: {conflict.path}",
            tofile=f"local: {conflict.path}",
        )
    )
    lines.append(diff_text.rstrip() if diff_text else "(no textual differences)")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: DeployReport) -> dict:
    """Convert a deploy report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output. File contents are never
    included.
    """
    results_list = []
    for r in report.results:
        entry: dict = {"path": r.path, "success": r.success}
        if r.new_version_id:
            entry["new_version_id"] = r.new_version_id
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    conflicting = {c.path: c.remote_version_id for c in report.conflicts}
    return {
        "phase": report.phase.value,
        "message": report.message,
        "dry_run": report.dry_run,
        "cancelled": report.cancelled,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "changes": len(report.changes),
            "conflicts": len(report.conflicts),
            "succeeded": len(report.succeeded),
            "failed": len(report.failed),
            "pulled": len(report.pulled),
            "skipped": len(report.skipped),
            "baselined": len(report.baselined),
        },
        "changes": [
            {
                "path": c.path,
                "status": c.status.value,
                "conflict": c.path in conflicting,
            }
            for c in report.changes
        ],
        "results": results_list,
        "pulled": list(report.pulled),
        "skipped": list(report.skipped),
        "baselined": list(report.baselined),
        "error": report.error,
    }


# ------------------------------------------------------------------
# Asset uploads
# ------------------------------------------------------------------


def format_upload_result(result: AssetUploadResult) -> str:
    """Format an asset group upload as human-readable text."""
    lines: list[str] = [result.message, ""]
    for asset in result.assets:
        if asset.success:
            lines.append(f"  OK    {asset.path}")
        else:
            lines.append(f"  FAIL  {asset.path or asset.name}: {asset.error}")
    if result.manifest_result is not None:
        m = result.manifest_result
        state = "updated" if m.success else f"FAILED: {m.error}"
        lines.append(f"  Manifest {m.path} {state}")
    return "\n".join(lines).rstrip()
