"""Per-group synchronization of update groups with pull requests.

For every group the engine decides, from observed remote state only,
which terminal state applies:

- ``SKIP``: an open pull request already proposes exactly these updates,
  or the generated tree equals the branch tip
- ``REFRESH_EXISTING``: the matching pull request proposes something else;
  its branch gets a new commit and its title, body and labels are updated
  in place, keeping the pull request number
- ``CREATE_NEW``: no pull request represents the group; a branch, a commit
  and a pull request are created
- ``CLOSED``: a pull request is obsolete under the current configuration
  and was closed with its branch deleted
- ``FAILED``: the group could not be synchronized; the pass continues

Groups are processed sequentially because they share one working tree.
"""

from collections.abc import Iterable

import structlog

from depsync.config.settings import DepSyncSettings
from depsync.engine.committer import Committer
from depsync.engine.file_changes import FileChangeGenerator
from depsync.engine.labels import generate_labels
from depsync.engine.matching import BranchNameGenerator, find_matching_pull_request, is_engine_pull_request
from depsync.engine.pr_body import parse_package_table, updates_identical
from depsync.engine.types import SyncOutcome
from depsync.enums import SyncAction
from depsync.exceptions import DepSyncError
from depsync.git.workspace import GitWorkspace
from depsync.manifests.registry import path_ignored
from depsync.models.domain import FileChange, PullRequestRecord, UpdateGroup
from depsync.processors.update_scanner import is_dynamic_version, name_ignored
from depsync.providers.base import RemoteRepository

log = structlog.get_logger(__name__)

# Outcome label for pull requests closed outside any current group.
UNMATCHED_GROUP = "unmatched pull request"


class SyncEngine:
    """Keeps one open pull request per update group.

    Args:
        settings: depsync settings
        remote: Host API client
        file_changes: Applies updates to manifest contents
        committer: Commits file sets with the no-op guard
        workspace: Native checkout, or None to work through the API only
        branch_names: Branch name generator (defaults to the reserved prefix)
        dry_run: Decide and log, but mutate nothing
    """

    def __init__(
        self,
        settings: DepSyncSettings,
        remote: RemoteRepository,
        file_changes: FileChangeGenerator,
        committer: Committer,
        workspace: GitWorkspace | None = None,
        branch_names: BranchNameGenerator | None = None,
        dry_run: bool = False,
    ) -> None:
        self.settings = settings
        self.remote = remote
        self.file_changes = file_changes
        self.committer = committer
        self.workspace = workspace
        self.branch_names = branch_names or BranchNameGenerator(settings.engine.reserved_prefix)
        self.dry_run = dry_run
        self.base_branch = settings.require_repository().base_branch

    async def sync_all(self, groups: Iterable[UpdateGroup]) -> list[SyncOutcome]:
        """Synchronize every group, then close obsolete unmatched pull requests.

        A failing group is reported as ``FAILED`` and does not stop the pass.
        """
        groups = list(groups)
        outcomes: list[SyncOutcome] = []
        handled: set[int] = set()

        for group in groups:
            with structlog.contextvars.bound_contextvars(group=group.name):
                try:
                    outcome = await self.sync_group(group)
                except DepSyncError as e:
                    log.error("group_sync_failed", error=str(e))
                    outcome = SyncOutcome(group=group.name, action=SyncAction.FAILED, reason=str(e))
                except Exception as e:
                    log.error("group_sync_crashed", error=str(e), error_type=type(e).__name__, exc_info=True)
                    outcome = SyncOutcome(group=group.name, action=SyncAction.FAILED, reason=f"{type(e).__name__}: {e}")
                log.info(
                    "group_synced",
                    action=str(outcome.action),
                    reason=outcome.reason,
                    pr=outcome.pr_number,
                    branch=outcome.branch,
                )
            outcomes.append(outcome)
            if outcome.pr_number is not None:
                handled.add(outcome.pr_number)

        try:
            outcomes.extend(await self.close_obsolete_pull_requests(handled))
        except Exception as e:
            log.error("obsolete_pr_reconciliation_failed", error=str(e), exc_info=not isinstance(e, DepSyncError))

        return outcomes

    async def sync_group(self, group: UpdateGroup) -> SyncOutcome:
        """Run the state machine for one group."""
        open_prs = await self.remote.list_pull_requests("open")
        match = find_matching_pull_request(group, open_prs, self.settings.engine)

        if match is None:
            log.debug("no_matching_pull_request")
            return await self._create(group)

        reason = self.obsolete_reason(match, group)
        if reason is not None:
            log.info("pull_request_obsolete", pr=match.number, reason=reason)
            if self.dry_run:
                return SyncOutcome(group.name, SyncAction.CLOSED, f"dry run: would close #{match.number}: {reason}")
            await self._close(match, reason)
            created = await self._create(group)
            if created.action is SyncAction.SKIP:
                return SyncOutcome(group.name, SyncAction.CLOSED, f"closed #{match.number}: {reason}")
            return created

        if updates_identical(match.body, group.updates):
            return SyncOutcome(
                group.name,
                SyncAction.SKIP,
                "pull request already proposes these updates",
                pr_number=match.number,
                branch=match.head_branch,
            )

        return await self._refresh(match, group)

    def obsolete_reason(self, pr: PullRequestRecord, group: UpdateGroup | None = None) -> str | None:
        """Why ``pr`` should be closed under the current configuration, if at all.

        A pull request is obsolete when its package table lists a file that
        is now ignored, or a package the configuration now leaves alone
        (ignored, or pinned to a dynamic version while ``respect_latest`` is
        on) that the group no longer updates.
        """
        packages = self.settings.packages
        covered = group.package_names if group is not None else set()

        for (name, file), (current, _) in parse_package_table(pr.body).items():
            if path_ignored(file, packages.ignore_paths):
                return f"{file} is now ignored"
            if name in covered:
                continue
            if packages.respect_latest and is_dynamic_version(current):
                return f"{name} uses dynamic version '{current}'"
            if name_ignored(name, packages.ignore):
                return f"{name} is now ignored"
        return None

    async def close_obsolete_pull_requests(self, handled: set[int]) -> list[SyncOutcome]:
        """Close engine pull requests no group claimed that policy now excludes."""
        outcomes = []
        for pr in await self.remote.list_pull_requests("open"):
            if pr.number in handled or not is_engine_pull_request(pr, self.settings.engine):
                continue
            reason = self.obsolete_reason(pr)
            if reason is None:
                continue
            if not self.dry_run:
                await self._close(pr, reason)
            outcomes.append(
                SyncOutcome(UNMATCHED_GROUP, SyncAction.CLOSED, reason, pr_number=pr.number, branch=pr.head_branch)
            )
        return outcomes

    async def _close(self, pr: PullRequestRecord, reason: str) -> None:
        await self.remote.close_pull_request(pr.number)
        if pr.head_branch.startswith(f"{self.settings.engine.reserved_prefix}/"):
            await self.remote.delete_branch(pr.head_branch)
        log.info("pull_request_closed", pr=pr.number, branch=pr.head_branch, reason=reason)

    async def _generate_changes(self, group: UpdateGroup) -> list[FileChange]:
        """Apply the group's updates to the base branch contents."""
        if self.workspace is not None:
            workspace = self.workspace
            await workspace.reset_to_base()

            async def read(path: str) -> str | None:
                return workspace.read_file(path)

        else:

            async def read(path: str) -> str | None:
                return await self.remote.get_file(path, self.base_branch)

        return await self.file_changes.generate(group.updates, read)

    async def _create(self, group: UpdateGroup) -> SyncOutcome:
        branch = self.branch_names(group.name)
        if self.dry_run:
            return SyncOutcome(group.name, SyncAction.CREATE_NEW, "dry run", branch=branch)

        changes = await self._generate_changes(group)
        if not changes:
            return SyncOutcome(group.name, SyncAction.SKIP, "updates produce no file changes")

        if self.workspace is not None:
            await self.workspace.create_branch(branch)
        else:
            await self.remote.create_branch(branch, self.base_branch)

        result = await self.committer.commit(branch, changes, group.title)
        if not result.committed:
            await self.remote.delete_branch(branch)
            return SyncOutcome(group.name, SyncAction.SKIP, "generated tree equals the base branch")

        pr = await self.remote.create_pull_request(
            title=group.title,
            body=group.body,
            head=branch,
            base=self.base_branch,
            draft=self.settings.pull_request.draft,
        )
        await self._apply_metadata(pr.number, group)
        log.info("pull_request_created", pr=pr.number, branch=branch, degraded=result.degraded)

        return SyncOutcome(
            group.name,
            SyncAction.CREATE_NEW,
            "marker commit, privileged files skipped" if result.marker else "",
            pr_number=pr.number,
            branch=branch,
            committed=True,
        )

    async def _refresh(self, pr: PullRequestRecord, group: UpdateGroup) -> SyncOutcome:
        branch = pr.head_branch
        if self.dry_run:
            return SyncOutcome(group.name, SyncAction.REFRESH_EXISTING, "dry run", pr_number=pr.number, branch=branch)

        changes = await self._generate_changes(group)
        if not changes:
            return SyncOutcome(
                group.name,
                SyncAction.SKIP,
                "updates produce no file changes",
                pr_number=pr.number,
                branch=branch,
            )

        if self.workspace is not None:
            await self.workspace.checkout_existing(branch)
            merge = await self.workspace.merge_base_into(branch)
            if not merge.ok:
                log.warning("refresh_without_base_merge", pr=pr.number, detail=merge.detail)

        result = await self.committer.commit(branch, changes, group.title)
        if not result.committed:
            return SyncOutcome(
                group.name,
                SyncAction.SKIP,
                "branch already contains these changes",
                pr_number=pr.number,
                branch=branch,
            )

        await self.remote.update_pull_request(pr.number, title=group.title, body=group.body)
        await self._apply_metadata(pr.number, group, replace_labels=True)
        log.info("pull_request_refreshed", pr=pr.number, branch=branch)

        return SyncOutcome(
            group.name,
            SyncAction.REFRESH_EXISTING,
            pr_number=pr.number,
            branch=branch,
            committed=True,
        )

    async def _apply_metadata(self, pr_number: int, group: UpdateGroup, replace_labels: bool = False) -> None:
        pr_config = self.settings.pull_request
        labels = generate_labels(group, pr_config, self.settings.engine)
        if replace_labels:
            await self.remote.set_labels(pr_number, labels)
        else:
            await self.remote.add_labels(pr_number, labels)
        await self.remote.request_reviewers(pr_number, pr_config.reviewers)
        await self.remote.add_assignees(pr_number, pr_config.assignees)
