from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class GllmExportError(Exception):
    """Base exception for errors in the gllm_export package."""


@dataclass(frozen=True)
class GitCommandError(GllmExportError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        msg = f"Command failed ({self.returncode}): {self.command}"
        return f"{msg}\n{detail}" if detail else msg


@dataclass(frozen=True)
class NotAGitRepositoryError(GllmExportError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."

    def __str__(self) -> str:
        return f"{self.message} ({self.folder})"


@dataclass(frozen=True)
class ConfigurationError(GllmExportError):
    """Raised when the resolved configuration fails validation."""

    errors: tuple[str, ...] = field(default_factory=tuple)
    source: str = ""

    def __str__(self) -> str:
        where = f" in {self.source}" if self.source else ""
        return f"Invalid configuration{where}: " + "; ".join(self.errors)
