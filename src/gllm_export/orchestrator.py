"""Concurrent export of branches, commits and file snapshots."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

from gllm_export.file_manipulation import chunked, filter_paths
from gllm_export.logging import logger
from gllm_export.models import BranchExportOutcome, BranchTask, CommitRecord, ExportProgress
from gllm_export.output_construction import (
    build_branch_summary,
    build_commit_markdown,
    build_disabled_snapshot,
    build_file_snapshot,
    build_secret_alert,
    build_skipped_snapshot,
)
from gllm_export.writer import (
    alert_artifact_path,
    branch_artifact_path,
    commit_artifact_path,
    file_artifact_path,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from gllm_export.git import SourceControlProvider
    from gllm_export.secret_scan import SecretScanner
    from gllm_export.settings import Settings
    from gllm_export.state import ResumptionStateStore
    from gllm_export.writer import ArtifactWriter

    ProgressCallback = Callable[[ExportProgress], None]

T = TypeVar("T")


async def _settle(aws: Sequence[Awaitable[T]]) -> list[T]:
    """Await all of `aws` concurrently, then re-raise the first failure.

    Unlike a bare `asyncio.gather`, siblings of a failing awaitable always run to
    completion before the error surfaces.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)  # type: ignore[arg-type]


class BranchOrchestrator:
    """Export a list of branches under two nested concurrency bounds.

    Branches run in consecutive batches of `settings.concurrency`: batches are
    sequential, branches inside a batch are concurrent. Inside a branch, commits
    run in sub-batches of `min(10, concurrency)` the same way, and the files of
    one commit all run concurrently.

    Failures are isolated per branch: any error raised while exporting a branch
    yields a failed `BranchExportOutcome` for it and the run goes on. Commits
    finished before the failure stay marked as processed.

    The state store is mutated from concurrent tasks without a lock; every
    mutation happens on the event loop thread between two awaits.
    """

    def __init__(
        self,
        provider: SourceControlProvider,
        scanner: SecretScanner,
        state_store: ResumptionStateStore,
        writer: ArtifactWriter,
        settings: Settings,
        *,
        repo_name: str = "",
    ) -> None:
        self.provider = provider
        self.scanner = scanner
        self.state_store = state_store
        self.writer = writer
        self.settings = settings
        self.repo_name = repo_name or str(settings.repo)
        self.concurrency = settings.concurrency
        self._commit_cache: dict[str, asyncio.Future[CommitRecord]] = {}

    @property
    def commit_batch_size(self) -> int:
        return self.settings.commit_batch_size

    @staticmethod
    def _emit(progress: ExportProgress, on_progress: ProgressCallback | None) -> None:
        if on_progress is not None:
            on_progress(progress.model_copy(deep=True))

    async def process_branches(
        self,
        branches: Sequence[str],
        force_update: bool | None = None,  # noqa: FBT001
        on_progress: ProgressCallback | None = None,
    ) -> list[BranchExportOutcome]:
        """Export `branches` and return one outcome per branch, in input order.

        Args:
            branches (Sequence[str]): resolved branch names
            force_update (bool | None): ignore the incremental state; defaults to
                `settings.force_update`
            on_progress (ProgressCallback | None): called with a progress snapshot
                before the first batch and after every batch

        Returns:
            list[BranchExportOutcome]: outcomes in the order of `branches`
        """
        force = self.settings.force_update if force_update is None else force_update
        batches = list(chunked(list(branches), self.concurrency))
        progress = ExportProgress(
            total_branches=len(branches),
            current_branch=batches[0][0] if batches else None,
        )
        self._emit(progress, on_progress)

        outcomes: list[BranchExportOutcome] = []
        for idx, batch in enumerate(batches):
            batch_outcomes = await asyncio.gather(*(self._process_branch(b, force) for b in batch))
            outcomes.extend(batch_outcomes)

            progress.completed_branches += len(batch)
            progress.errors.extend(f"{o.branch}: {o.error}" for o in batch_outcomes if not o.success)
            progress.current_branch = batches[idx + 1][0] if idx + 1 < len(batches) else None
            self._emit(progress, on_progress)

        return outcomes

    async def _process_branch(self, branch: str, force_update: bool) -> BranchExportOutcome:  # noqa: FBT001
        if self.state_store.should_skip_branch(branch, force_update):
            logger.info("Skipping branch %s (already exported)", branch)
            return BranchExportOutcome(branch=branch)

        logger.info("Processing branch: %s", branch)
        exported: list[str] = []
        try:
            candidates = await self.provider.branch_commits(branch, self.settings.commits_per_branch)
            task = BranchTask(branch=branch, commits=candidates)
            pending = list(task.commits) if force_update else self.state_store.unprocessed_of(task.commits)

            if not pending:
                logger.info("No new commits in branch %s", branch)
                self.state_store.mark_branch_exported(branch)
                return BranchExportOutcome(branch=branch)

            await self._export_branch_summary(task)

            for batch in chunked(pending, self.commit_batch_size):
                results = await asyncio.gather(
                    *(self._process_commit(sha, branch) for sha in batch),
                    return_exceptions=True,
                )
                failures = [res for res in results if isinstance(res, BaseException)]
                exported.extend(
                    sha for sha, res in zip(batch, results, strict=True) if not isinstance(res, BaseException)
                )
                if force_update and exported:
                    # Re-exported commits are already in the set.
                    self.state_store.touch()
                if failures:
                    raise failures[0]

            self.state_store.mark_branch_exported(branch)
            return BranchExportOutcome(branch=branch, commits=exported)
        except Exception as e:
            logger.error("Error processing branch %s: %s", branch, e)
            return BranchExportOutcome(branch=branch, commits=exported, success=False, error=str(e))

    async def commit_info(self, sha: str) -> CommitRecord:
        """Fetch commit metadata once per revision, sharing in-flight lookups."""
        fut = self._commit_cache.get(sha)
        if fut is None:
            fut = asyncio.ensure_future(self.provider.commit_meta(sha))
            self._commit_cache[sha] = fut
        try:
            return await fut
        except Exception:
            if self._commit_cache.get(sha) is fut:
                del self._commit_cache[sha]
            raise

    async def _export_branch_summary(self, task: BranchTask) -> None:
        infos: list[CommitRecord] = []
        for batch in chunked(task.commits, self.commit_batch_size):
            infos.extend(await _settle([self.commit_info(sha) for sha in batch]))
        await self.writer.write(branch_artifact_path(task.branch), build_branch_summary(task.branch, infos))

    async def _process_commit(self, sha: str, branch: str) -> None:
        info = await self.commit_info(sha)
        diff = await self.provider.commit_diff(sha)
        files = await self.provider.tree_files(sha)
        retained = filter_paths(files, self.settings.exclude)

        await _settle([self._process_file(sha, path) for path in retained])

        doc = build_commit_markdown(info, repo=self.repo_name, branch=branch, diff=diff, files=retained)
        await self.writer.write(commit_artifact_path(sha), doc)
        # Marked only once the document is on disk: a crash before this line retries the commit.
        self.state_store.mark_commit_processed(sha)
        logger.debug("Exported commit %s of %s (%d files)", sha, branch, len(retained))

    async def _process_file(self, sha: str, path: str) -> None:
        link = file_artifact_path(sha, path)
        if not self.settings.include_files:
            await self.writer.write(link, build_disabled_snapshot(path, sha))
            return

        max_size = self.settings.max_file_size
        size = await self.provider.blob_size(sha, path)
        content = None
        if size is not None and size <= max_size:
            content = await self.provider.blob_content(sha, path, max_size)
        if content is None:
            await self.writer.write(link, build_skipped_snapshot(path, sha, max_size))
            return

        await self.writer.write(link, build_file_snapshot(path, sha, content))

        if self.settings.secret_scan:
            hits = self.scanner.scan(content)
            if hits:
                await self.writer.write(alert_artifact_path(sha, path), build_secret_alert(path, sha, hits))
                logger.warning(
                    "Potential secrets detected in %s @ %s: %s (alert file written)",
                    path,
                    sha,
                    ", ".join(hits),
                )
