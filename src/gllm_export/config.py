from __future__ import annotations

from pathlib import PurePosixPath

DEFAULT_OUTPUT_DIR = "gllm_export"
STATE_FILE_NAME = ".gllm-state.json"
ALL_BRANCHES = "all"
MAX_COMMIT_BATCH = 10

CONFIG_FILE_NAMES: tuple[str, ...] = (
    ".gllmrc",
    ".gllmrc.json",
    ".gllmrc.yaml",
    ".gllmrc.yml",
    "gllm.config.json",
)
PYPROJECT_TOOL_KEY = "gllm"

# Code fence info strings by file extension. Unlisted extensions get a bare fence.
FENCE_LANGUAGES: dict[str, str] = {
    ".bash": "bash",
    ".c": "c",
    ".cc": "cpp",
    ".cfg": "ini",
    ".conf": "ini",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".css": "css",
    ".cxx": "cpp",
    ".go": "go",
    ".h": "c",
    ".hpp": "cpp",
    ".htm": "html",
    ".html": "html",
    ".ini": "ini",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".jsx": "javascript",
    ".kt": "kotlin",
    ".markdown": "markdown",
    ".md": "markdown",
    ".mjs": "javascript",
    ".php": "php",
    ".py": "python",
    ".rb": "ruby",
    ".rs": "rust",
    ".sh": "bash",
    ".sql": "sql",
    ".swift": "swift",
    ".toml": "toml",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".zsh": "bash",
}


def guess_language(path: str) -> str:
    """Get the code fence language for a repository path.

    Args:
        path (str): The repository-relative file path (POSIX separators).

    Returns:
        str: The language tag for code fences, or empty string if unknown.
    """
    return FENCE_LANGUAGES.get(PurePosixPath(path).suffix.lower(), "")
