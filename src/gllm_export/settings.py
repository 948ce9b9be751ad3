from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gllm_export.config import ALL_BRANCHES, DEFAULT_OUTPUT_DIR, MAX_COMMIT_BATCH
from gllm_export.models import SecretPatternSpec


def split_csv(value: Any) -> Any:  # noqa: ANN401
    """Turn a comma list (or a list) into a list of trimmed, non-empty strings."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(part).strip() for part in value if str(part).strip()]
    return value


def join_branches(value: Any) -> Any:  # noqa: ANN401
    """Accept a branch selection given as a list."""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v).strip() for v in value)
    return value


class Settings(BaseModel):
    """Fully resolved options of one export run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    repo: Path = Field(default_factory=Path.cwd, description="Repository root.")
    out: Path = Field(default=Path(DEFAULT_OUTPUT_DIR), description="Output folder.")
    branches: str = Field(
        default=ALL_BRANCHES,
        description="'all' or comma-separated branch names.",
    )
    commits_per_branch: int = Field(default=30, gt=0, description="Commits per branch.")
    max_file_size: int = Field(
        default=200_000,
        gt=0,
        description="Max blob size in bytes for file snapshots.",
    )
    include_files: bool = Field(default=False, description="Include file snapshots.")
    exclude: list[str] = Field(default_factory=list, description="Excluded path prefixes.")
    secret_scan: bool = Field(default=True, description="Scan file snapshots for secrets.")
    concurrency: int = Field(default=4, gt=0, description="Branches processed in parallel.")
    force_update: bool = Field(default=False, description="Ignore incremental state.")
    custom_patterns: list[SecretPatternSpec] = Field(
        default_factory=list,
        description="Extra secret patterns.",
    )
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("branches", mode="before")
    @classmethod
    def _join_branches(cls, value: Any) -> Any:  # noqa: ANN401
        return join_branches(value)

    @field_validator("exclude", mode="before")
    @classmethod
    def _parse_exclude(cls, value: Any) -> Any:  # noqa: ANN401
        return split_csv(value)

    @property
    def commit_batch_size(self) -> int:
        """Number of commits of one branch processed concurrently."""
        return min(MAX_COMMIT_BATCH, self.concurrency)

    def resolve_branches(self, available: list[str]) -> list[str]:
        """Expand the branch selection against the repository's branches.

        Args:
            available (list[str]): every local branch of the repository

        Returns:
            list[str]: `available` for "all", else the trimmed non-empty names
        """
        if self.branches.strip() == ALL_BRANCHES:
            return list(available)
        return [b.strip() for b in self.branches.split(",") if b.strip()]


class ConfigOverrides(BaseModel):
    """One configuration layer (file or command line); unset fields are None."""

    model_config = ConfigDict(extra="forbid")

    repo: Path | None = None
    out: Path | None = None
    branches: str | None = None
    commits_per_branch: int | None = None
    max_file_size: int | None = None
    include_files: bool | None = None
    exclude: list[str] | None = None
    secret_scan: bool | None = None
    concurrency: int | None = None
    force_update: bool | None = None
    custom_patterns: list[SecretPatternSpec] | None = None
    log_file: str | None = None

    @field_validator("branches", mode="before")
    @classmethod
    def _join_branches(cls, value: Any) -> Any:  # noqa: ANN401
        return join_branches(value)

    @field_validator("exclude", mode="before")
    @classmethod
    def _parse_exclude(cls, value: Any) -> Any:  # noqa: ANN401
        return split_csv(value)

    def apply_to(self, base: Settings) -> Settings:
        """Return `base` with every field set in this layer replaced.

        Raises:
            pydantic.ValidationError: if the merged options are invalid
        """
        merged = base.model_dump()
        merged.update(self.model_dump(exclude_none=True))
        return Settings.model_validate(merged)
