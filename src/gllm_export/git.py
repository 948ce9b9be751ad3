"""Read-only access to a git repository through the `git` command line."""

from __future__ import annotations

import asyncio
import shlex
from pathlib import Path
from typing import Protocol

from gllm_export.exceptions import GitCommandError, NotAGitRepositoryError
from gllm_export.logging import logger
from gllm_export.models import CommitRecord, RepositoryIdentity

# %x00 separated so that names and messages may contain newlines.
_COMMIT_FORMAT = "%H%x00%an%x00%ae%x00%ad%x00%P%x00%B"


class SourceControlProvider(Protocol):
    """What the export pipeline needs from a repository.

    Every call may be slow and may fail; failures raise.
    """

    async def identity(self) -> RepositoryIdentity: ...

    async def branch_commits(self, branch: str, limit: int) -> list[str]: ...

    async def commit_meta(self, sha: str) -> CommitRecord: ...

    async def commit_diff(self, sha: str) -> str: ...

    async def tree_files(self, sha: str) -> list[str]: ...

    async def blob_size(self, sha: str, path: str) -> int | None: ...

    async def blob_content(self, sha: str, path: str, max_bytes: int) -> str | None: ...


def _lines(out: bytes) -> list[str]:
    return [s.strip() for s in out.decode("utf-8", errors="replace").splitlines() if s.strip()]


class GitProvider:
    """`SourceControlProvider` backed by `git` subprocesses.

    Args:
        repo (Path): any directory inside the working tree
        git_bin (str): git executable
    """

    def __init__(self, repo: Path, git_bin: str = "git") -> None:
        self.repo = Path(repo)
        self.git_bin = git_bin

    async def _run(self, *args: str) -> bytes:
        """Run `git <args>` in the repository and return its raw stdout.

        Raises:
            GitCommandError: if git cannot be started or exits non-zero
        """
        command = shlex.join([self.git_bin, *args])
        try:
            proc = await asyncio.create_subprocess_exec(
                self.git_bin,
                *args,
                cwd=str(self.repo),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GitCommandError(command=command, returncode=-1, stderr=str(e)) from e
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise GitCommandError(
                command=command,
                returncode=proc.returncode if proc.returncode is not None else -1,
                stdout=stdout.decode("utf-8", errors="replace"),
                stderr=stderr.decode("utf-8", errors="replace"),
            )
        return stdout

    async def top_level(self) -> str:
        try:
            out = await self._run("rev-parse", "--show-toplevel")
        except GitCommandError as e:
            raise NotAGitRepositoryError(folder=self.repo) from e
        return out.decode("utf-8").strip()

    async def branches(self) -> list[str]:
        out = await self._run("for-each-ref", "--format=%(refname:short)", "refs/heads/")
        return _lines(out)

    async def tags(self) -> list[str]:
        return _lines(await self._run("tag", "--list"))

    async def identity(self) -> RepositoryIdentity:
        top_level = await self.top_level()
        branches, tags = await asyncio.gather(self.branches(), self.tags())
        return RepositoryIdentity(
            name=Path(top_level).name,
            top_level=top_level,
            branches=branches,
            tags=tags,
        )

    async def branch_commits(self, branch: str, limit: int) -> list[str]:
        """Newest-first ids of at most `limit` first-parent commits of `branch`."""
        out = await self._run("rev-list", f"--max-count={limit}", "--first-parent", branch, "--")
        return _lines(out)

    async def commit_meta(self, sha: str) -> CommitRecord:
        out = await self._run("show", "-s", f"--format={_COMMIT_FORMAT}", sha, "--")
        parts = out.decode("utf-8", errors="replace").split("\x00", 5)
        if len(parts) < 6:  # noqa: PLR2004
            raise GitCommandError(
                command=f"git show -s {sha}",
                returncode=0,
                stdout=out.decode("utf-8", errors="replace"),
                stderr="unexpected commit format",
            )
        full_sha, author_name, author_email, date, parents, message = parts
        return CommitRecord(
            sha=full_sha.strip(),
            author_name=author_name,
            author_email=author_email,
            date=date,
            message=message.strip(),
            parents=parents.split(),
        )

    async def commit_diff(self, sha: str) -> str:
        """Patch of `sha` against its first parent, full content for a root commit."""
        out = await self._run(
            "show",
            "--no-color",
            "--pretty=fuller",
            "--patch",
            "--diff-merges=first-parent",
            sha,
            "--",
        )
        return out.decode("utf-8", errors="replace")

    async def tree_files(self, sha: str) -> list[str]:
        out = await self._run("ls-tree", "-r", "--name-only", "-z", sha)
        return [p for p in out.decode("utf-8", errors="replace").split("\x00") if p]

    async def blob_size(self, sha: str, path: str) -> int | None:
        try:
            out = await self._run("cat-file", "-s", f"{sha}:{path}")
            return int(out.decode("utf-8").strip())
        except (GitCommandError, ValueError) as e:
            logger.debug("No blob size for %s@%s: %s", path, sha, e)
            return None

    async def blob_content(self, sha: str, path: str, max_bytes: int) -> str | None:
        """Read a blob as UTF-8 text.

        Returns:
            str | None: the content, or None when the blob is missing, larger than
                `max_bytes` or not valid UTF-8
        """
        try:
            raw = await self._run("cat-file", "blob", f"{sha}:{path}")
        except GitCommandError as e:
            logger.debug("Unreadable blob %s@%s: %s", path, sha, e)
            return None
        if len(raw) > max_bytes:
            return None
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Blob %s@%s is not UTF-8 text", path, sha)
            return None
