"""gllm: export git history into Markdown suitable for LLMs.

Overview
--------
Walks the selected branches of the repository in the current directory (or
`--repo`) and writes, under the output folder:

- `README.md`, `index.md` and `tags.md`,
- one page per branch listing its recent commits,
- one page per commit with metadata, message, diff and links to file snapshots,
- optional file snapshots (`--include-files`) and secret alerts.

Runs are incremental: branches and commits recorded in `.gllm-state.json` are
skipped on the next run unless `--force-update` is given.

Usage
-----
    gllm --out export --branches main,develop --include-files
    gllm --stats
    gllm --init-config .gllmrc
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from gllm_export import __version__
from gllm_export.config_loader import create_sample_config, describe_config, resolve_settings
from gllm_export.exceptions import ConfigurationError
from gllm_export.exporter import ExportCoordinator
from gllm_export.logging import logger, setup_logging
from gllm_export.output_construction import READING_HINT
from gllm_export.settings import ConfigOverrides

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gllm_export.models import ExportProgress, ExportSummary

DEFAULT_INIT_CONFIG = ".gllmrc"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gllm",
        description="Export git repository into Markdown suitable for LLMs.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--repo", type=Path, default=None, help="Repository root (default: current directory).")
    p.add_argument("-o", "--out", type=Path, default=None, help="Output folder.")
    p.add_argument("-b", "--branches", type=str, default=None, help="'all' or comma-separated branch names.")
    p.add_argument("-c", "--commits-per-branch", type=int, default=None, help="Commits per branch.")
    p.add_argument("--max-file-size", type=int, default=None, help="Max file size to include (bytes).")
    p.add_argument("--include-files", action="store_true", default=None, help="Include file snapshots.")
    p.add_argument("--exclude", type=str, default=None, help="Comma-separated path prefixes to exclude.")
    p.add_argument(
        "--no-secret-scan",
        dest="secret_scan",
        action="store_false",
        default=None,
        help="Disable quick secret scanning (not recommended).",
    )
    p.add_argument(
        "--force-update",
        action="store_true",
        default=None,
        help="Force update all branches (ignore incremental state).",
    )
    p.add_argument("--concurrency", type=int, default=None, help="Number of branches processed in parallel.")
    p.add_argument("--config", type=Path, default=None, help="Configuration file (skips discovery).")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument("--stats", action="store_true", help="Show incremental export statistics.")
    p.add_argument("--config-info", action="store_true", help="Show configuration information.")
    p.add_argument(
        "--init-config",
        nargs="?",
        const=DEFAULT_INIT_CONFIG,
        default=None,
        metavar="PATH",
        help=f"Create a sample configuration file (default: {DEFAULT_INIT_CONFIG}).",
    )
    return p


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def cli_overrides(args: argparse.Namespace) -> ConfigOverrides:
    """Keep the options actually given on the command line."""
    fields = (
        "repo",
        "out",
        "branches",
        "commits_per_branch",
        "max_file_size",
        "include_files",
        "exclude",
        "secret_scan",
        "concurrency",
        "force_update",
        "log_file",
    )
    return ConfigOverrides.model_validate({f: getattr(args, f) for f in fields if getattr(args, f) is not None})


def print_progress(progress: ExportProgress) -> None:
    print(
        f"Progress: {progress.completed_branches}/{progress.total_branches} branches ({progress.percentage}%)",
    )
    if progress.current_branch:
        print(f"Current: {progress.current_branch}")
    if progress.errors:
        print(f"Errors: {len(progress.errors)}")


def print_summary(summary: ExportSummary) -> None:
    print("\nExport finished:")
    print(f"- Branches processed: {summary.branches_succeeded}/{summary.branches_attempted}")
    print(f"- Total commits exported: {summary.commits_exported}")
    if summary.failed_branches:
        print(f"- Failed branches: {', '.join(summary.failed_branches)}")
    print(f"\n{READING_HINT}")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line.

    Returns:
        int: 0 on success (even when some branches failed), 1 on fatal errors
    """
    args = parse_args(argv)
    if args.log_file:
        setup_logging(args.log_file)

    if args.init_config is not None:
        path = create_sample_config(Path(args.init_config))
        print(f"Sample configuration created: {path}")
        print("Edit this file to customize your export settings.")
        return 0

    try:
        resolved = resolve_settings(cli_overrides(args), config_file=args.config)
    except ConfigurationError as e:
        logger.error("Configuration failed: %s", e)
        print(f"Fatal: {e}", file=sys.stderr)
        return 1

    settings = resolved.settings
    if settings.log_file and not args.log_file:
        setup_logging(settings.log_file)

    if args.config_info:
        print(describe_config(resolved), end="")
        return 0

    coordinator = ExportCoordinator(settings)
    if args.stats:
        stats = coordinator.incremental_stats()
        print("Incremental Export Statistics:")
        print(f"- Processed commits: {stats.processed_commits}")
        print(f"- Exported branches: {stats.exported_branches}")
        if stats.last_export is not None:
            print(f"- Last export: {stats.last_export.isoformat()}")
        return 0

    print(f"Writing export to: {settings.out}")
    try:
        summary = asyncio.run(coordinator.export(on_progress=print_progress))
    except Exception as e:  # noqa: BLE001
        logger.error("Export failed: %s", e)
        print(f"Fatal: {e}", file=sys.stderr)
        return 1

    print_summary(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
