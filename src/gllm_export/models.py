"""Data model shared by the export pipeline."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SecretPatternSpec(BaseModel):
    """A user supplied secret pattern, as written in a configuration file."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Risk category reported on match.")
    pattern: str = Field(..., min_length=1, description="Regular expression source.")


class RepositoryIdentity(BaseModel):
    """Identity of the exported repository, fetched once per run."""

    model_config = ConfigDict(frozen=True)

    name: str
    top_level: str = Field(..., description="Canonical root path of the working tree.")
    branches: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class CommitRecord(BaseModel):
    """Metadata of a single commit.

    Attributes:
        sha: Full revision identifier.
        author_name: Author name as recorded by git.
        author_email: Author contact as recorded by git.
        date: Commit date, kept as the opaque string git prints.
        message: Full commit message.
        parents: Parent revision identifiers, first parent first.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    author_name: str = ""
    author_email: str = ""
    date: str = ""
    message: str = ""
    parents: list[str] = Field(default_factory=list)

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return first_line(self.message)


class BranchTask(BaseModel):
    """A branch and the newest-first commit ids considered for it this run."""

    branch: str
    commits: list[str] = Field(default_factory=list)


class BranchExportOutcome(BaseModel):
    """Result of exporting one branch."""

    branch: str
    commits: list[str] = Field(default_factory=list, description="Commit ids exported this run.")
    success: bool = True
    error: str | None = None


class ExportProgress(BaseModel):
    """Progress snapshot emitted after each branch batch."""

    total_branches: int = Field(..., ge=0)
    completed_branches: int = Field(default=0, ge=0)
    current_branch: str | None = None
    errors: list[str] = Field(default_factory=list)

    @property
    def percentage(self) -> int:
        """Completed share of branches, rounded to an integer percentage."""
        if not self.total_branches:
            return 100
        return round(self.completed_branches * 100 / self.total_branches)


class ExportSummary(BaseModel):
    """Aggregate report of a finished export run."""

    branches_attempted: int = 0
    branches_succeeded: int = 0
    commits_exported: int = 0
    failed_branches: list[str] = Field(default_factory=list)
    outcomes: list[BranchExportOutcome] = Field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[BranchExportOutcome]) -> ExportSummary:
        """Summarize a list of branch outcomes."""
        return cls(
            branches_attempted=len(outcomes),
            branches_succeeded=sum(1 for o in outcomes if o.success),
            commits_exported=sum(len(o.commits) for o in outcomes),
            failed_branches=[o.branch for o in outcomes if not o.success],
            outcomes=list(outcomes),
        )


def first_line(text: str) -> str:
    """Return the first line of `text`, or an empty string."""
    lines = text.splitlines()
    return lines[0] if lines else ""
