"""Top-level driver of an export run."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from gllm_export.git import GitProvider
from gllm_export.logging import logger
from gllm_export.models import ExportSummary
from gllm_export.orchestrator import BranchOrchestrator
from gllm_export.output_construction import build_index, build_readme, build_tags
from gllm_export.secret_scan import SecretScanner
from gllm_export.state import IncrementalStats, ResumptionStateStore
from gllm_export.writer import INDEX_PATH, README_PATH, TAGS_PATH, ArtifactWriter

if TYPE_CHECKING:
    from gllm_export.git import SourceControlProvider
    from gllm_export.orchestrator import ProgressCallback
    from gllm_export.settings import Settings


class ExportCoordinator:
    """Wire the collaborators of one export and run it.

    Every collaborator can be injected; by default the repository is read with
    `GitProvider(settings.repo)` and artifacts go to `settings.out`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        provider: SourceControlProvider | None = None,
        scanner: SecretScanner | None = None,
        writer: ArtifactWriter | None = None,
        state_store: ResumptionStateStore | None = None,
    ) -> None:
        self.settings = settings
        self.provider: SourceControlProvider = provider or GitProvider(settings.repo)
        base_scanner = scanner or SecretScanner()
        self.scanner = (
            base_scanner.with_custom_patterns(settings.custom_patterns) if settings.custom_patterns else base_scanner
        )
        self.writer = writer or ArtifactWriter(settings.out)
        self.state_store = state_store or ResumptionStateStore(settings.out)

    async def export(
        self,
        force_update: bool | None = None,  # noqa: FBT001
        on_progress: ProgressCallback | None = None,
    ) -> ExportSummary:
        """Run the export.

        Errors raised before branch processing starts (unreadable repository,
        unwritable output root) propagate and leave the saved state untouched.
        Branch failures are reported in the summary instead.

        Args:
            force_update (bool | None): reprocess branches and commits already
                exported; defaults to `settings.force_update`
            on_progress (ProgressCallback | None): receives progress snapshots

        Returns:
            ExportSummary: counts and per-branch outcomes
        """
        force = self.settings.force_update if force_update is None else force_update
        state = await asyncio.to_thread(self.state_store.load)

        identity = await self.provider.identity()
        logger.info(
            "Exporting repository",
            repo=identity.name,
            top_level=identity.top_level,
            output=str(self.settings.out),
        )

        branches = self.settings.resolve_branches(identity.branches)

        await self.writer.write(README_PATH, build_readme(identity, str(self.settings.out)))
        await self.writer.write(TAGS_PATH, build_tags(identity.tags))
        await self.writer.write(INDEX_PATH, build_index(identity.name, branches))

        orchestrator = BranchOrchestrator(
            self.provider,
            self.scanner,
            self.state_store,
            self.writer,
            self.settings,
            repo_name=identity.name,
        )
        outcomes = await orchestrator.process_branches(branches, force, on_progress)

        await asyncio.to_thread(self.state_store.save, state)

        summary = ExportSummary.from_outcomes(outcomes)
        logger.info(
            "Export finished",
            branches_succeeded=summary.branches_succeeded,
            branches_attempted=summary.branches_attempted,
            commits_exported=summary.commits_exported,
            failed_branches=summary.failed_branches,
        )
        return summary

    def incremental_stats(self) -> IncrementalStats:
        return self.state_store.stats()


def run_export(
    settings: Settings,
    on_progress: ProgressCallback | None = None,
    **collaborators: object,
) -> ExportSummary:
    """Synchronous wrapper around `ExportCoordinator.export`."""
    coordinator = ExportCoordinator(settings, **collaborators)  # type: ignore[arg-type]
    return asyncio.run(coordinator.export(on_progress=on_progress))
