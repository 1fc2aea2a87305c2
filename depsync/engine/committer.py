"""Commits a group's file changes to its branch.

The native git client is tried first; when it fails the host API's
blob/tree/commit primitives take over. Both paths refuse to push a tree
identical to the branch tip.

When the token may not touch privileged files (CI workflows), those files
are dropped and the rest committed. If nothing remains, a deliberate empty
marker commit is made so the branch still carries a commit of its own.
"""

import structlog

from depsync.engine.file_changes import is_privileged_path
from depsync.engine.types import CommitResult
from depsync.exceptions import GitOperationError, RemotePermissionError
from depsync.git.workspace import GitWorkspace
from depsync.models.domain import FileChange
from depsync.providers.base import RemoteRepository

log = structlog.get_logger(__name__)


def is_permission_failure(error: GitOperationError) -> bool:
    """True when a push was rejected for lack of workflow scope."""
    stderr = (error.stderr or "").lower()
    return "refusing to allow" in stderr or ("workflow" in stderr and ("permission" in stderr or "scope" in stderr))


class Committer:
    """Commits file sets, native first, API second.

    Args:
        remote: Host API client
        base_branch: Branch new branches start from
        workspace: Native checkout, or None to use the API only
    """

    def __init__(self, remote: RemoteRepository, base_branch: str, workspace: GitWorkspace | None = None) -> None:
        self.remote = remote
        self.base_branch = base_branch
        self.workspace = workspace

    async def commit(self, branch: str, changes: list[FileChange], message: str) -> CommitResult:
        """Commit ``changes`` onto ``branch`` with permission degradation."""
        try:
            return await self._commit_once(branch, changes, message, allow_empty=False)
        except RemotePermissionError as e:
            privileged = [c.clean_path for c in changes if is_privileged_path(c.clean_path)]
            if not privileged:
                raise

            remaining = [c for c in changes if not is_privileged_path(c.clean_path)]
            log.warning(
                "privileged_files_dropped",
                branch=branch,
                dropped=privileged,
                remaining=len(remaining),
                error=str(e),
            )

            if remaining:
                result = await self._commit_api(branch, remaining, message, allow_empty=False)
            else:
                log.warning("marker_commit", branch=branch, reason="all changes need elevated scope")
                result = await self._commit_api(
                    branch,
                    [],
                    f"{message}\n\nWorkflow file changes were skipped: the token lacks the workflow scope.",
                    allow_empty=True,
                )

            return CommitResult(
                committed=result.committed,
                sha=result.sha,
                method=result.method,
                degraded=True,
                skipped_paths=tuple(privileged),
                marker=result.marker,
            )

    async def _commit_once(
        self,
        branch: str,
        changes: list[FileChange],
        message: str,
        allow_empty: bool,
    ) -> CommitResult:
        if self.workspace is not None:
            try:
                self.workspace.write_files(changes)
                return await self.workspace.commit_and_push(branch, message, allow_empty=allow_empty)
            except GitOperationError as e:
                if is_permission_failure(e):
                    raise RemotePermissionError(f"push to {branch} rejected: {e.stderr or e.message}") from e
                log.warning("native_commit_failed", branch=branch, error=str(e), fallback="api")

        return await self._commit_api(branch, changes, message, allow_empty)

    async def _commit_api(
        self,
        branch: str,
        changes: list[FileChange],
        message: str,
        allow_empty: bool,
    ) -> CommitResult:
        if await self.remote.get_branch(branch) is None:
            await self.remote.create_branch(branch, self.base_branch)
        return await self.remote.commit_files(branch, changes, message, allow_empty=allow_empty)
