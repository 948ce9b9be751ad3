"""Persisted resumption state of incremental exports."""

from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from gllm_export.config import STATE_FILE_NAME
from gllm_export.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class ResumptionState(BaseModel):
    """What previous runs already exported.

    The two collections are sets in memory and deduplicated, sorted lists on disk.
    """

    model_config = ConfigDict(extra="forbid")

    last_export: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processed_commits: set[str] = Field(default_factory=set)
    exported_branches: set[str] = Field(default_factory=set)

    @field_serializer("processed_commits", "exported_branches")
    def _serialize_set(self, value: set[str]) -> list[str]:
        return sorted(value)


class IncrementalStats(BaseModel):
    """Counts reported by `gllm --stats`."""

    processed_commits: int = 0
    exported_branches: int = 0
    last_export: datetime | None = None


class ResumptionStateStore:
    """Owns the resumption state file under the output root.

    The state is read once with `load`, mutated in memory while branches and
    commits complete, and written once with `save`. Saving replaces the file
    atomically so an interrupted run never corrupts the previous state.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self.state_file = self.output_dir / STATE_FILE_NAME
        self.state: ResumptionState = self.initial_state()
        self._dirty = False

    @staticmethod
    def initial_state() -> ResumptionState:
        """Return a fresh state stamped with the current time."""
        return ResumptionState()

    def _read(self) -> ResumptionState | None:
        if not self.state_file.exists():
            return None
        try:
            return ResumptionState.model_validate_json(self.state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Failed to load incremental state from %s: %s", self.state_file, e)
            return None

    def load(self) -> ResumptionState:
        """Load the persisted state, falling back to a fresh one.

        Returns:
            ResumptionState: the loaded state, also kept as `self.state`
        """
        loaded = self._read()
        if loaded is None:
            logger.info("Starting from an initial incremental state", state_file=str(self.state_file))
            loaded = self.initial_state()
        self.state = loaded
        self._dirty = False
        return loaded

    def save(self, state: ResumptionState | None = None) -> None:
        """Write the state to disk, replacing the previous file.

        `last_export` is refreshed only when the run changed the state, so a run
        that exported nothing leaves the file byte-identical. I/O errors are
        logged and dropped.

        Args:
            state (ResumptionState | None): state to write; defaults to `self.state`
        """
        target = state if state is not None else self.state
        if self._dirty:
            target.last_export = datetime.now(UTC)
        payload = target.model_dump_json(indent=2) + "\n"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".gllm-state-", suffix=".tmp", dir=self.output_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                Path(tmp_name).replace(self.state_file)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning("Failed to save incremental state to %s: %s", self.state_file, e)
            return
        self._dirty = False

    def stats(self) -> IncrementalStats:
        """Read the state on disk and count its entries."""
        loaded = self._read()
        if loaded is None:
            return IncrementalStats()
        return IncrementalStats(
            processed_commits=len(loaded.processed_commits),
            exported_branches=len(loaded.exported_branches),
            last_export=loaded.last_export,
        )

    def is_commit_processed(self, sha: str) -> bool:
        return sha in self.state.processed_commits

    def is_branch_exported(self, branch: str) -> bool:
        return branch in self.state.exported_branches

    def mark_commit_processed(self, sha: str) -> None:
        if sha not in self.state.processed_commits:
            self.state.processed_commits.add(sha)
            self._dirty = True

    def mark_branch_exported(self, branch: str) -> None:
        if branch not in self.state.exported_branches:
            self.state.exported_branches.add(branch)
            self._dirty = True

    def touch(self) -> None:
        """Flag the state as changed, so the next save refreshes `last_export`."""
        self._dirty = True

    def unprocessed_of(self, shas: Sequence[str] | Iterable[str]) -> list[str]:
        """Filter out processed commit ids, keeping the input order."""
        return [sha for sha in shas if sha not in self.state.processed_commits]

    def should_skip_branch(self, branch: str, force_update: bool = False) -> bool:  # noqa: FBT001, FBT002
        """Tell whether a branch is skipped entirely by this run.

        A branch exported once stays skipped even when new commits landed on it;
        only a forced run refreshes it.
        """
        if force_update:
            return False
        return self.is_branch_exported(branch)
