"""Cleanup of branches whose pull requests are gone.

A branch under the reserved prefix is either the head of an open pull
request or an orphan. Orphans are found with a layered detection strategy,
most authoritative first:

1. Pull request heads: ``refs/pull/*/head`` SHAs matched against branch
   tips, with each candidate pull request's state checked over HTTP
2. Branches committed within the emergency window (24 hours) are protected;
   the layer fails when any commit date stays unknown
3. Branches committed within the conservative window (30 days) are
   protected; unknown dates are protected too, a failed lookup ends here
4. Everything is protected

Only exact detection deletes every orphan. After a fallback, orphans are
deleted only when their commit date is known and older than the cutoff.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import structlog

from depsync.config.settings import DepSyncSettings
from depsync.engine.pr_status import PullRequestStateChecker
from depsync.engine.types import CleanupReport, DetectionResult
from depsync.enums import DetectionStrategy
from depsync.exceptions import DepSyncError
from depsync.git.workspace import GitWorkspace
from depsync.models.domain import RemoteBranch
from depsync.providers.base import RemoteRepository

log = structlog.get_logger(__name__)


class DetectionUnavailable(DepSyncError):
    """A detection layer could not produce a result."""

    pass


class BranchLifecycleManager:
    """Finds and deletes orphaned reserved-prefix branches.

    Args:
        settings: depsync settings
        remote: Host API client
        workspace: Native checkout used for bulk listing and PR head refs
        state_checker: HTTP pull request state checker
        clock: Returns the current time
        sleep: Awaitable sleep between batches
    """

    def __init__(
        self,
        settings: DepSyncSettings,
        remote: RemoteRepository,
        workspace: GitWorkspace | None = None,
        state_checker: PullRequestStateChecker | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.config = settings.cleanup
        self.prefix = settings.engine.reserved_prefix
        self.remote = remote
        self.workspace = workspace
        self.state_checker = state_checker
        self._clock = clock
        self._sleep = sleep
        self._dates_by_sha: dict[str, datetime | None] = {}

    async def cleanup(self, dry_run: bool = False) -> CleanupReport:
        """Delete orphaned branches and report what happened."""
        branches = await self.list_branches()
        if not branches:
            log.info("cleanup_no_branches", prefix=self.prefix)
            return CleanupReport(strategy=DetectionStrategy.PR_HEAD_SHA, dry_run=dry_run)

        named = await self._open_pull_request_heads()
        candidates = [b for b in branches if b.name not in named]
        detection = await self.detect(candidates)

        protected = set(named) | detection.protected
        orphans = [b for b in branches if b.name not in protected]
        deletable, retained = self._apply_age_policy(orphans, detection)

        report = CleanupReport(
            strategy=detection.strategy,
            scanned=branches,
            protected=sorted(protected & {b.name for b in branches}),
            orphaned=[b.name for b in orphans],
            retained=retained,
            dry_run=dry_run,
        )

        if dry_run:
            report.deleted = [b.name for b in deletable]
        else:
            report.deleted, report.failed = await self._delete(deletable)

        log.info(
            "cleanup_completed",
            strategy=str(detection.strategy),
            scanned=len(branches),
            protected=len(report.protected),
            orphaned=len(orphans),
            deleted=len(report.deleted),
            retained=len(retained),
            failed=len(report.failed),
            dry_run=dry_run,
        )
        return report

    async def list_branches(self) -> list[RemoteBranch]:
        """All reserved-prefix branches in one bulk listing."""
        if self.workspace is not None and self.settings.engine.use_native_git:
            try:
                await self.workspace.fetch(prune=True)
                return await self.workspace.list_remote_branches(self.prefix)
            except DepSyncError as e:
                log.warning("native_branch_listing_failed", error=str(e), fallback="api")
        return await self.remote.list_branches(f"{self.prefix}/")

    async def _open_pull_request_heads(self) -> set[str]:
        try:
            prs = await self.remote.list_pull_requests("open")
        except DepSyncError as e:
            log.warning("open_pull_request_listing_failed", error=str(e))
            return set()
        return {pr.head_branch for pr in prs}

    async def detect(self, branches: list[RemoteBranch]) -> DetectionResult:
        """Run the detection layers until one succeeds."""
        layers = (
            self._detect_by_pull_request_heads,
            self._detect_by_emergency_window,
            self._detect_by_conservative_window,
        )
        for layer in layers:
            name = layer.__name__.removeprefix("_detect_by_")
            try:
                return await layer(branches)
            except DetectionUnavailable as e:
                log.warning("detection_layer_unavailable", layer=name, reason=e.message)
            except DepSyncError as e:
                log.warning("detection_layer_failed", layer=name, error=str(e))

        log.warning("detection_protecting_everything", branches=len(branches))
        return DetectionResult(
            strategy=DetectionStrategy.PROTECT_ALL,
            protected=frozenset(b.name for b in branches),
            reason="every detection layer failed",
        )

    async def _detect_by_pull_request_heads(self, branches: list[RemoteBranch]) -> DetectionResult:
        if self.workspace is None or self.state_checker is None:
            raise DetectionUnavailable("pull request head refs need a native checkout")

        heads = await self.workspace.pull_request_heads()
        if not heads:
            raise DetectionUnavailable("no pull request head refs visible")

        tips: dict[str, list[str]] = {}
        for branch in branches:
            tips.setdefault(branch.head_sha, []).append(branch.name)

        candidates = sorted(number for number, sha in heads.items() if sha in tips)
        states = await self.state_checker.open_states(candidates)

        protected: set[str] = set()
        for number in candidates:
            if states.get(number, True):
                protected.update(tips[heads[number]])

        return DetectionResult(
            strategy=DetectionStrategy.PR_HEAD_SHA,
            protected=frozenset(protected),
            reason=f"{len(candidates)} pull request head(s) matched branch tips",
            commit_dates={b.name: b.last_commit_at for b in branches},
        )

    async def _commit_dates(self, branches: list[RemoteBranch]) -> dict[str, datetime | None]:
        """Commit date per branch, looking up dates the listing did not report."""
        dates: dict[str, datetime | None] = {}
        for branch in branches:
            if branch.last_commit_at is not None:
                dates[branch.name] = branch.last_commit_at
                continue
            if branch.head_sha not in self._dates_by_sha:
                self._dates_by_sha[branch.head_sha] = await self.remote.get_commit_date(branch.head_sha)
            dates[branch.name] = self._dates_by_sha[branch.head_sha]
        return dates

    async def _detect_by_emergency_window(self, branches: list[RemoteBranch]) -> DetectionResult:
        dates = await self._commit_dates(branches)
        missing = [name for name, date in dates.items() if date is None]
        if missing:
            raise DetectionUnavailable(f"{len(missing)} branch(es) without a commit date")

        window = timedelta(hours=self.config.emergency_window_hours)
        return self._protect_recent(DetectionStrategy.RECENT_24H, dates, window)

    async def _detect_by_conservative_window(self, branches: list[RemoteBranch]) -> DetectionResult:
        dates = await self._commit_dates(branches)
        window = timedelta(days=self.config.conservative_window_days)
        return self._protect_recent(DetectionStrategy.RECENT_30D, dates, window)

    def _protect_recent(
        self,
        strategy: DetectionStrategy,
        dates: dict[str, datetime | None],
        window: timedelta,
    ) -> DetectionResult:
        now = self._clock()
        protected = {name for name, date in dates.items() if date is None or now - date <= window}
        return DetectionResult(
            strategy=strategy,
            protected=frozenset(protected),
            reason=f"protected branches committed within {window}",
            commit_dates=dates,
        )

    def _apply_age_policy(
        self,
        orphans: list[RemoteBranch],
        detection: DetectionResult,
    ) -> tuple[list[RemoteBranch], list[str]]:
        """Split orphans into deletable branches and retained names."""
        if detection.strategy.is_exact:
            return orphans, []

        cutoff = timedelta(days=self.config.max_age_days)
        now = self._clock()
        deletable: list[RemoteBranch] = []
        retained: list[str] = []

        for branch in orphans:
            date = detection.commit_dates.get(branch.name) or branch.last_commit_at
            if date is not None and now - date > cutoff:
                deletable.append(branch)
            else:
                log.info("orphan_retained", branch=branch.name, committed_at=str(date) if date else None)
                retained.append(branch.name)

        return deletable, retained

    async def _delete(self, branches: list[RemoteBranch]) -> tuple[list[str], dict[str, str]]:
        deleted: list[str] = []
        failed: dict[str, str] = {}
        size = self.config.deletion_batch_size

        for start in range(0, len(branches), size):
            if start:
                await self._sleep(self.config.deletion_batch_delay)

            for branch in branches[start : start + size]:
                try:
                    await self.remote.delete_branch(branch.name)
                except DepSyncError as e:
                    log.warning("branch_delete_failed", branch=branch.name, error=str(e))
                    failed[branch.name] = str(e)
                else:
                    log.info("branch_deleted", branch=branch.name)
                    deleted.append(branch.name)

        return deleted, failed
