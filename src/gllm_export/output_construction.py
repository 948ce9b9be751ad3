from __future__ import annotations

import io
from typing import TYPE_CHECKING

from gllm_export.config import guess_language
from gllm_export.file_manipulation import now_iso
from gllm_export.models import first_line
from gllm_export.writer import branch_artifact_path, commit_artifact_path, file_artifact_path

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gllm_export.models import CommitRecord, RepositoryIdentity

READING_HINT = (
    "Recommendation: first feed index.md + branches/<branch>.md + the last N commits. "
    "Then request diffs/files for specific commits."
)


def _fence(body: str, lang: str = "") -> str:
    """Wrap `body` in a code fence longer than any backtick run it contains."""
    longest = 0
    run = 0
    for ch in body:
        run = run + 1 if ch == "`" else 0
        longest = max(longest, run)
    ticks = "`" * max(3, longest + 1)
    text = body.rstrip("\n")
    return f"{ticks}{lang}\n{text}\n{ticks}\n"


def build_readme(identity: RepositoryIdentity, output_root: str) -> str:
    """Build the top-level README of an export.

    Args:
        identity (RepositoryIdentity): the exported repository
        output_root (str): where the export is written, for reference

    Returns:
        str: the README markdown
    """
    out = io.StringIO()
    out.write(f"# Git export of {identity.name}\n\n")
    out.write(f"root={identity.top_level}\n")
    out.write(f"output={output_root}\n")
    out.write(f"generated_at={now_iso()}\n")
    out.write(f"branches={len(identity.branches)} tags={len(identity.tags)}\n\n")
    out.write("## Layout\n")
    out.write("- `index.md`: exported branches\n")
    out.write("- `tags.md`: repository tags\n")
    out.write("- `branches/<branch>.md`: recent commits of a branch\n")
    out.write("- `commits/<sha>.md`: metadata, message and diff of a commit\n")
    out.write("- `files/<path>@<sha>.md`: file snapshots at a commit\n")
    out.write("- `alerts/`: potential secrets found in snapshots\n\n")
    out.write(READING_HINT + "\n")
    return out.getvalue()


def build_tags(tags: Sequence[str]) -> str:
    out = io.StringIO()
    out.write("# Tags\n\n")
    if not tags:
        out.write("_No tags._\n")
    for tag in tags:
        out.write(f"- {tag}\n")
    return out.getvalue()


def build_index(repo_name: str, branches: Sequence[str]) -> str:
    """Build the index listing every branch selected for export."""
    out = io.StringIO()
    out.write(f"# {repo_name}\n\n")
    out.write(f"Branches ({len(branches)}):\n\n")
    for branch in branches:
        out.write(f"- [{branch}]({branch_artifact_path(branch)})\n")
    return out.getvalue()


def build_branch_summary(branch: str, commits: Sequence[CommitRecord]) -> str:
    """Build a branch page listing its recent commits, newest first.

    Args:
        branch (str): branch name
        commits (Sequence[CommitRecord]): every candidate commit of the branch,
            processed or not

    Returns:
        str: the branch markdown
    """
    out = io.StringIO()
    out.write(f"# Branch {branch}\n\n")
    out.write(f"Commits (last {len(commits)}):\n\n")
    for info in commits:
        link = commit_artifact_path(info.sha)
        out.write(f"- [{info.sha}](../{link}): {info.summary} ({info.author_name})\n")
    return out.getvalue()


def build_commit_markdown(
    info: CommitRecord,
    *,
    repo: str,
    branch: str,
    diff: str,
    files: Sequence[str],
) -> str:
    """Build the document of one commit.

    The document holds a front-matter header, the full message, the diff and
    links to one snapshot artifact per retained file.

    Args:
        info (CommitRecord): commit metadata
        repo (str): repository identifier written in the header
        branch (str): branch the commit was exported from
        diff (str): patch of the commit against its first parent
        files (Sequence[str]): retained file paths of the commit's tree

    Returns:
        str: the commit markdown
    """
    out = io.StringIO()
    out.write("---\n")
    out.write(f"repo: {repo}\n")
    out.write(f"branch: {branch}\n")
    out.write(f"commit: {info.sha}\n")
    out.write(f"author: {info.author_name} <{info.author_email}>\n")
    out.write(f"date: {info.date}\n")
    if info.parents:
        out.write("parents:\n")
        for parent in info.parents:
            out.write(f"  - {parent}\n")
    out.write(f"files_changed: {len(files)}\n")
    out.write(f"summary: {first_line(info.message)}\n")
    out.write("---\n\n")

    out.write(f"# Commit {info.sha}\n\n")
    out.write(f"**Author:** {info.author_name}  \n**Date:** {info.date}\n\n")
    out.write(f"## Message\n{info.message}\n\n---\n\n")
    out.write("## Patch (diff)\n")
    out.write(_fence(diff, "diff"))
    out.write("\n## Files snapshot (links)\n")
    for path in files:
        link = file_artifact_path(info.sha, path)
        out.write(f"- `{path}`: snapshot [`{link}`](../{link})\n")
    return out.getvalue()


def build_file_snapshot(path: str, sha: str, content: str) -> str:
    """Wrap a blob in a fenced block tagged by its extension."""
    out = io.StringIO()
    out.write(f"# Snapshot of `{path}` @ {sha}\n")
    out.write(f"Commit: {sha}\n\n")
    out.write(_fence(content, guess_language(path)))
    return out.getvalue()


def build_skipped_snapshot(path: str, sha: str, max_file_size: int) -> str:
    return (
        f"# Snapshot skipped (too large or unreadable) `{path}` @ {sha}\n"
        f"Size exceeded {max_file_size} bytes or the blob can't be read as text.\n"
    )


def build_disabled_snapshot(path: str, sha: str) -> str:
    return (
        f"# Snapshot skipped `{path}` @ {sha}\n"
        "File snapshots are disabled for this export (use --include-files).\n"
    )


def build_secret_alert(path: str, sha: str, categories: Sequence[str]) -> str:
    """List the secret categories found in a file, never the matched text."""
    out = io.StringIO()
    out.write(f"Potential secrets detected in {path} @ {sha}:\n")
    for name in categories:
        out.write(f"{name}\n")
    return out.getvalue()
