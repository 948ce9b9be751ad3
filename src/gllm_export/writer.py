"""Artifact sink: text files under the export root."""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

from gllm_export.file_manipulation import safe_name

README_PATH = "README.md"
TAGS_PATH = "tags.md"
INDEX_PATH = "index.md"


def branch_artifact_path(branch: str) -> str:
    return f"branches/{safe_name(branch)}.md"


def commit_artifact_path(sha: str) -> str:
    return f"commits/{safe_name(sha)}.md"


def file_artifact_path(sha: str, path: str) -> str:
    """Snapshot location of `path` at revision `sha`."""
    return f"files/{safe_name(path)}@{safe_name(sha)}.md"


def alert_artifact_path(sha: str, path: str) -> str:
    return f"alerts/{safe_name(path)}@{safe_name(sha)}.secret.txt"


class ArtifactWriter:
    """Write named text artifacts under an output root, overwriting.

    Relative paths are expected to be pre-sanitized; anything that would escape
    the root is rejected.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def resolve(self, relative_path: str) -> Path:
        rel = PurePosixPath(relative_path)
        if rel.is_absolute() or ".." in rel.parts:
            msg = f"Artifact path escapes the output root: {relative_path}"
            raise ValueError(msg)
        return self.root.joinpath(*rel.parts)

    def write_sync(self, relative_path: str, text: str) -> Path:
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return target

    async def write(self, relative_path: str, text: str) -> Path:
        """Write `text` to `relative_path` under the root.

        Args:
            relative_path (str): POSIX path relative to the output root
            text (str): artifact content

        Raises:
            OSError: if the file cannot be written
            ValueError: if the path leaves the output root

        Returns:
            Path: the written file
        """
        return await asyncio.to_thread(self.write_sync, relative_path, text)
