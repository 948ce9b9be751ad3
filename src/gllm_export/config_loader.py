"""Discovery, parsing and three-way merging of export configuration.

Options are resolved from three layers, later layers winning:

1. built-in defaults (`Settings()`),
2. the nearest configuration file found upward from the working directory,
3. command-line options.

The merged options are validated after each layer. Hard errors raise
`ConfigurationError`; questionable but usable values only produce warnings.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import tomlkit
import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tomlkit.exceptions import TOMLKitError

from gllm_export.config import CONFIG_FILE_NAMES, PYPROJECT_TOOL_KEY
from gllm_export.exceptions import ConfigurationError
from gllm_export.logging import logger
from gllm_export.settings import ConfigOverrides, Settings

if TYPE_CHECKING:
    from collections.abc import Mapping

MAX_FILE_SIZE_WARNING = 100 * 1024 * 1024
COMMITS_PER_BRANCH_WARNING = 1000
CONCURRENCY_WARNING = 20
MAX_LIST_INDEX = 255

# Nested configuration keys, as written in config files, mapped to Settings fields.
NESTED_KEYS: dict[str, str] = {
    "output.directory": "out",
    "output.includeFiles": "include_files",
    "output.maxFileSize": "max_file_size",
    "branches.selection": "branches",
    "branches.commitsPerBranch": "commits_per_branch",
    "security.secretScan": "secret_scan",
    "security.customPatterns": "custom_patterns",
    "performance.concurrency": "concurrency",
    "filters.exclude": "exclude",
}
# Values kept verbatim in key=value files: regex sources may contain commas.
_RAW_VALUE_SUFFIXES = (".name", ".pattern")
_INDEXED_KEY = re.compile(r"^(?P<name>[^\[\]]+)\[(?P<index>\d+)\]$")
_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?\d+\.\d+$")


class ConfigSource(BaseModel):
    """Where one configuration layer came from."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["default", "file", "cli"]
    priority: int
    path: str | None = None


class ResolvedConfig(BaseModel):
    """Merged settings with their provenance and validation warnings."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    sources: list[ConfigSource] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def find_config_file(start: Path) -> Path | None:
    """Search `start` and its parents for a configuration file.

    In each directory the dedicated file names are tried first, then a
    `pyproject.toml` carrying a `[tool.gllm]` table.

    Args:
        start (Path): directory to start from

    Returns:
        Path | None: the first configuration file found, or None
    """
    current = start.resolve()
    while True:
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        pyproject = current / "pyproject.toml"
        if pyproject.is_file() and _pyproject_section(pyproject) is not None:
            return pyproject
        if current.parent == current:
            return None
        current = current.parent


def _pyproject_section(path: Path) -> dict[str, Any] | None:
    try:
        doc = tomlkit.parse(path.read_text(encoding="utf-8")).unwrap()
    except (OSError, TOMLKitError) as e:
        logger.warning("Cannot read %s: %s", path, e)
        return None
    tool = doc.get("tool")
    if not isinstance(tool, dict):
        return None
    section = tool.get(PYPROJECT_TOOL_KEY)
    return section if isinstance(section, dict) else None


def parse_scalar(value: str) -> Any:  # noqa: ANN401
    """Interpret a `key=value` string as a bool, number, list or string."""
    trimmed = value.strip().strip("\"'")
    low = trimmed.lower()
    if low == "true":
        return True
    if low == "false":
        return False
    if _INT.match(trimmed):
        return int(trimmed)
    if _FLOAT.match(trimmed):
        return float(trimmed)
    if "," in trimmed:
        return [parse_scalar(part) for part in trimmed.split(",")]
    return trimmed


def _set_dotted(target: dict[str, Any], key: str, value: Any) -> None:  # noqa: ANN401
    """Set `value` at a dotted key path, supporting `name[0]` list indices.

    Raises:
        ValueError: if `key` descends into a scalar set by an earlier key, or
            indexes past `MAX_LIST_INDEX`
    """
    cur: Any = target
    parts = key.split(".")
    for i, part in enumerate(parts):
        if not isinstance(cur, dict):
            msg = f"key {key!r} conflicts with an earlier value"
            raise ValueError(msg)
        last = i == len(parts) - 1
        m = _INDEXED_KEY.match(part)
        if m:
            seq = cur.setdefault(m["name"], [])
            idx = int(m["index"])
            if not isinstance(seq, list):
                msg = f"key {key!r} conflicts with an earlier value"
                raise ValueError(msg)
            if idx > MAX_LIST_INDEX:
                msg = f"index {idx} in key {key!r} exceeds {MAX_LIST_INDEX}"
                raise ValueError(msg)
            while len(seq) <= idx:
                seq.append({})
            if last:
                seq[idx] = value
            else:
                cur = seq[idx]
        elif last:
            cur[part] = value
        else:
            cur = cur.setdefault(part, {})


def parse_simple_config(path: Path) -> dict[str, Any]:
    """Parse a `key=value` configuration file with dotted nested keys.

    Args:
        path (Path): the file to read

    Returns:
        dict[str, Any]: the nested configuration
    """
    data: dict[str, Any] = {}
    for key, raw in dotenv_values(path, interpolate=False).items():
        if raw is None:
            continue
        key = key.strip()  # noqa: PLW2901
        value = raw.strip() if key.endswith(_RAW_VALUE_SUFFIXES) else parse_scalar(raw)
        _set_dotted(data, key, value)
    return data


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict) and dotted not in NESTED_KEYS:
            flat.update(_flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def to_overrides(data: Mapping[str, Any], source: str = "") -> ConfigOverrides:
    """Map a nested or flat configuration mapping onto `ConfigOverrides`.

    Nested keys (`output.directory`) and flat field names (`out`) are both
    accepted. Keys that configure nothing in this tool are ignored.

    Raises:
        ConfigurationError: if a recognized value has the wrong type
    """
    fields: dict[str, Any] = {}
    for key, value in _flatten(data).items():
        name = NESTED_KEYS.get(key) or key.replace("-", "_")
        if name in ConfigOverrides.model_fields:
            fields[name] = value
        else:
            logger.debug("Ignoring configuration key %s", key, source=source)
    try:
        return ConfigOverrides.model_validate(fields)
    except ValidationError as e:
        raise ConfigurationError(errors=_errors(e), source=source) from e


def read_config_data(path: Path) -> dict[str, Any]:
    """Parse one configuration file into a mapping.

    `.json` files are JSON, `.yaml`/`.yml` files are YAML, `pyproject.toml`
    contributes its `[tool.gllm]` table, and anything else is tried as JSON and
    then as `key=value` lines.

    Raises:
        ConfigurationError: if the file cannot be read or parsed
    """
    source = str(path)
    try:
        if path.name == "pyproject.toml":
            data: Any = _pyproject_section(path) or {}
        elif path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        elif path.suffix.lower() == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        else:
            text = path.read_text(encoding="utf-8")
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = parse_simple_config(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(errors=(f"cannot parse configuration: {e}",), source=source) from e
    if not isinstance(data, dict):
        raise ConfigurationError(errors=("configuration root must be a mapping",), source=source)
    return data


def load_config_file(path: Path) -> ConfigOverrides:
    """Read one configuration file as a configuration layer.

    Raises:
        ConfigurationError: if the file cannot be parsed or holds invalid values
    """
    return to_overrides(read_config_data(path), source=str(path))


def _errors(exc: ValidationError) -> tuple[str, ...]:
    return tuple(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())


def validate_settings(settings: Settings) -> list[str]:
    """Return warnings about valid but questionable settings."""
    warnings: list[str] = []
    if settings.max_file_size > MAX_FILE_SIZE_WARNING:
        warnings.append("max_file_size is very large (>100MB), this may cause performance issues")
    if settings.commits_per_branch > COMMITS_PER_BRANCH_WARNING:
        warnings.append("commits_per_branch is very large (>1000), this may cause performance issues")
    if settings.concurrency > CONCURRENCY_WARNING:
        warnings.append("concurrency is very high (>20), this may cause system overload")
    for idx, spec in enumerate(settings.custom_patterns):
        try:
            re.compile(spec.pattern)
        except re.error as e:
            warnings.append(f"custom_patterns[{idx}] ({spec.name}) is not a valid regular expression: {e}")
    branches = [b.strip() for b in settings.branches.split(",")]
    if any(" " in b for b in branches):
        warnings.append("branches contains names with spaces")
    return warnings


def _merge(base: Settings, layer: ConfigOverrides, source: str) -> Settings:
    try:
        return layer.apply_to(base)
    except ValidationError as e:
        raise ConfigurationError(errors=_errors(e), source=source) from e


def resolve_settings(
    cli: ConfigOverrides | None = None,
    *,
    working_dir: Path | None = None,
    config_file: Path | None = None,
) -> ResolvedConfig:
    """Merge defaults, the discovered configuration file and CLI options.

    Args:
        cli (ConfigOverrides | None): options given on the command line
        working_dir (Path | None): where discovery starts; defaults to the CLI
            `repo` option, then the current directory
        config_file (Path | None): explicit configuration file, skipping discovery

    Raises:
        ConfigurationError: if any layer is invalid

    Returns:
        ResolvedConfig: the final settings, their sources and warnings
    """
    cli = cli or ConfigOverrides()
    settings = Settings()
    sources = [ConfigSource(kind="default", priority=0)]

    start = working_dir or cli.repo or Path.cwd()
    path = config_file or find_config_file(Path(start))
    if path is not None:
        try:
            data = read_config_data(path)
        except ConfigurationError as e:
            logger.warning("Failed to load config file %s: %s", path, e)
        else:
            settings = _merge(settings, to_overrides(data, source=str(path)), str(path))
            sources.append(ConfigSource(kind="file", priority=1, path=str(path)))

    if cli.model_dump(exclude_none=True):
        settings = _merge(settings, cli, "command line")
        sources.append(ConfigSource(kind="cli", priority=2))

    warnings = validate_settings(settings)
    for warning in warnings:
        logger.warning("Configuration warning: %s", warning)
    return ResolvedConfig(settings=settings, sources=sources, warnings=warnings)


def describe_config(resolved: ResolvedConfig) -> str:
    """Render the configuration sources and the active options."""
    s = resolved.settings
    lines = ["Configuration sources (in order of priority):"]
    for source in sorted(resolved.sources, key=lambda src: src.priority, reverse=True):
        if source.kind == "file":
            lines.append(f"  file: {source.path}")
        elif source.kind == "cli":
            lines.append("  CLI arguments")
        else:
            lines.append("  default values")
    lines.extend(
        [
            "",
            "Active configuration:",
            f"  Output directory: {s.out}",
            f"  Branches: {s.branches}",
            f"  Commits per branch: {s.commits_per_branch}",
            f"  Include files: {s.include_files}",
            f"  Max file size: {s.max_file_size} bytes",
            f"  Exclude: {', '.join(s.exclude) or '-'}",
            f"  Secret scan: {s.secret_scan}",
            f"  Custom patterns: {len(s.custom_patterns)}",
            f"  Concurrency: {s.concurrency}",
        ],
    )
    return "\n".join(lines) + "\n"


SAMPLE_CONFIG: dict[str, Any] = {
    "output": {"directory": "gllm_export", "includeFiles": True, "maxFileSize": 500_000},
    "branches": {"selection": "main,develop", "commitsPerBranch": 50},
    "security": {
        "secretScan": True,
        "customPatterns": [{"name": "Custom API Key", "pattern": "api_key_[a-zA-Z0-9]{32}"}],
    },
    "performance": {"concurrency": 6},
    "filters": {"exclude": ["node_modules", "dist"]},
}

_SAMPLE_SIMPLE = """\
# gllm configuration file
# Simple key=value format, nested keys are dotted.

# Output settings
output.directory=gllm_export
output.includeFiles=true
output.maxFileSize=500000

# Branch settings ("all" or a comma-separated list)
branches.selection=main,develop
branches.commitsPerBranch=50

# Security settings
security.secretScan=true
security.customPatterns[0].name=Custom API Key
security.customPatterns[0].pattern=api_key_[a-zA-Z0-9]{32}

# Performance settings
performance.concurrency=6

# Excluded path prefixes
filters.exclude=node_modules,dist
"""


def create_sample_config(path: Path) -> Path:
    """Write a sample configuration file in the format implied by its name."""
    suffix = path.suffix.lower()
    if suffix == ".json":
        content = json.dumps(SAMPLE_CONFIG, indent=2) + "\n"
    elif suffix in {".yaml", ".yml"}:
        content = yaml.safe_dump(SAMPLE_CONFIG, sort_keys=False)
    else:
        content = _SAMPLE_SIMPLE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
