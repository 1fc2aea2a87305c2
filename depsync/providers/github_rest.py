"""GitHub remote repository backed by PyGithub.

PyGithub is synchronous, so every call runs in a worker thread and its
failures are translated into the depsync remote errors before retrying.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

import requests
import structlog
from github import Auth, Github, GithubException, InputGitTreeElement  # type: ignore[import-not-found]
from github.GitRef import GitRef  # type: ignore[import-not-found]
from github.Issue import Issue as GHIssue  # type: ignore[import-not-found]
from github.PullRequest import PullRequest as GHPullRequest  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from depsync.engine.types import CommitResult
from depsync.enums import PullRequestState
from depsync.exceptions import RemoteError, RemotePermissionError, TransientRemoteError
from depsync.models.domain import FileChange, PullRequestRecord, RemoteBranch, TrackingIssue
from depsync.providers.base import RemoteRepository
from depsync.utils.retry import TRANSIENT_ERRORS, async_retry

log = structlog.get_logger(__name__)

T = TypeVar("T")

FILE_MODE = "100644"


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a blocking PyGithub call in the default executor."""
    return await asyncio.to_thread(func)


def translate_github_exception(e: GithubException, operation: str) -> RemoteError:
    """Map a PyGithub exception onto the depsync remote error hierarchy."""
    status = e.status
    detail = e.data.get("message", "") if isinstance(e.data, dict) else str(e.data or "")
    message = f"{operation} failed: {detail}" if detail else f"{operation} failed"

    if status == 429 or (status is not None and status >= 500):
        return TransientRemoteError(message, status_code=status)
    if status == 403 and "rate limit" in detail.lower():
        return TransientRemoteError(message, status_code=status)
    if status in (401, 403) or "workflow" in detail.lower():
        return RemotePermissionError(message, status_code=status)
    return RemoteError(message, status_code=status)


class GitHubRestProvider(RemoteRepository):
    """Branches, commits and pull requests of one GitHub repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
    ):
        """
        Args:
            token: GitHub token with repository write scope
            owner: Repository owner (user or organization)
            repo: Repository name
            base_url: GitHub API base URL (for GitHub Enterprise)
        """
        self.token = token.strip() if token else token
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self._client: Github | None = None
        self._repo: GHRepository | None = None

    @property
    def repository(self) -> GHRepository:
        if self._repo is None:
            raise RemoteError("GitHub provider is not connected")
        return self._repo

    async def connect(self) -> None:
        """Authenticate and resolve the repository."""

        def _connect() -> tuple[Github, GHRepository]:
            client = Github(auth=Auth.Token(self.token), base_url=self.base_url)
            repo = client.get_repo(f"{self.owner}/{self.repo}")
            return client, repo

        self._client, self._repo = await self._call(_connect, "connect")
        log.info("github_connected", base_url=self.base_url, owner=self.owner, repo=self.repo)

    async def disconnect(self) -> None:
        """Close the client; safe to call when never connected."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repo = None

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=TRANSIENT_ERRORS)
    async def _call(self, func: Callable[[], T], operation: str, **context: object) -> T:
        """Run a PyGithub call off the event loop, translating its failures."""
        try:
            return await _run_sync(func)
        except GithubException as e:
            log.error(f"github_{operation}_failed", status=e.status, **context)
            raise translate_github_exception(e, operation) from e
        except requests.RequestException as e:
            log.warning(f"github_{operation}_unreachable", error=str(e), **context)
            raise TransientRemoteError(f"{operation} failed: {e}") from e

    # Branches

    async def get_branch(self, branch_name: str) -> RemoteBranch | None:
        """Return the branch tip, or None when the branch does not exist."""

        def _get_branch() -> RemoteBranch | None:
            try:
                gh_branch = self.repository.get_branch(branch_name)
            except GithubException as e:
                if e.status == 404:
                    return None
                raise
            return RemoteBranch(
                name=gh_branch.name,
                head_sha=gh_branch.commit.sha,
                last_commit_at=gh_branch.commit.commit.committer.date,
            )

        return await self._call(_get_branch, "get_branch", branch=branch_name)

    async def create_branch(self, branch_name: str, from_branch: str) -> RemoteBranch:
        """Create ``branch_name`` at the current tip of ``from_branch``."""
        log.info("create_branch", branch=branch_name, from_branch=from_branch)

        def _create_branch() -> RemoteBranch:
            source_ref = self.repository.get_git_ref(f"heads/{from_branch}")
            source_sha = source_ref.object.sha
            self.repository.create_git_ref(ref=f"refs/heads/{branch_name}", sha=source_sha)
            return RemoteBranch(name=branch_name, head_sha=source_sha)

        return await self._call(_create_branch, "create_branch", branch=branch_name)

    async def delete_branch(self, branch_name: str) -> None:
        log.info("delete_branch", branch=branch_name)

        def _delete_branch() -> None:
            try:
                self.repository.get_git_ref(f"heads/{branch_name}").delete()
            except GithubException as e:
                if e.status in (404, 422):
                    log.debug("github_branch_already_gone", branch=branch_name)
                    return
                raise

        await self._call(_delete_branch, "delete_branch", branch=branch_name)

    async def list_branches(self, prefix: str) -> list[RemoteBranch]:
        def _list() -> list[GitRef]:
            return list(self.repository.get_git_matching_refs(f"heads/{prefix}"))

        refs = await self._call(_list, "list_branches", prefix=prefix)
        return [RemoteBranch(name=ref.ref.removeprefix("refs/heads/"), head_sha=ref.object.sha) for ref in refs]

    async def get_commit_date(self, sha: str) -> datetime | None:
        def _get_date() -> datetime | None:
            return self.repository.get_commit(sha).commit.committer.date

        return await self._call(_get_date, "get_commit_date", sha=sha)

    # Files

    async def get_file(self, path: str, ref: str) -> str | None:
        """Return decoded file text at ``ref``, or None for missing paths and directories."""

        def _get_file() -> str | None:
            try:
                contents = self.repository.get_contents(path, ref=ref)
            except GithubException as e:
                if e.status == 404:
                    return None
                raise
            if isinstance(contents, list):
                raise RemoteError(f"Path {path} is a directory, not a file")
            return contents.decoded_content.decode("utf-8")

        return await self._call(_get_file, "get_file", path=path, ref=ref)

    async def commit_files(
        self,
        branch: str,
        changes: list[FileChange],
        message: str,
        allow_empty: bool = False,
    ) -> CommitResult:
        """Commit through blob, tree and commit objects, then move the ref.

        The new tree is compared with the parent's tree; an unchanged tree
        is not committed unless ``allow_empty`` asks for a marker commit.
        """
        log.info("commit_files", branch=branch, files=len(changes), allow_empty=allow_empty)

        def _commit() -> CommitResult:
            repo = self.repository
            ref = repo.get_git_ref(f"heads/{branch}")
            parent = repo.get_git_commit(ref.object.sha)

            elements = []
            for change in changes:
                if change.change_type == "delete":
                    elements.append(InputGitTreeElement(change.clean_path, FILE_MODE, "blob", sha=None))
                    continue
                blob = repo.create_git_blob(change.content, "utf-8")
                elements.append(InputGitTreeElement(change.clean_path, FILE_MODE, "blob", sha=blob.sha))

            tree = repo.create_git_tree(elements, base_tree=parent.tree) if elements else parent.tree
            if tree.sha == parent.tree.sha and not allow_empty:
                log.info("commit_skipped_no_changes", branch=branch, method="api")
                return CommitResult(committed=False, sha=parent.sha, method="api")

            commit = repo.create_git_commit(message, tree, [parent])
            ref.edit(commit.sha, force=True)
            return CommitResult(committed=True, sha=commit.sha, method="api", marker=tree.sha == parent.tree.sha)

        return await self._call(_commit, "commit_files", branch=branch)

    # Pull requests

    async def list_pull_requests(self, state: str = "open") -> list[PullRequestRecord]:
        gh_state = state if state in ("open", "closed", "all") else "open"

        def _list() -> list[GHPullRequest]:
            return list(self.repository.get_pulls(state=gh_state))

        gh_prs = await self._call(_list, "list_pull_requests", state=gh_state)
        return [self._convert_pull_request(pr) for pr in gh_prs]

    async def get_pull_request(self, pr_number: int) -> PullRequestRecord:
        gh_pr = await self._call(lambda: self.repository.get_pull(pr_number), "get_pull_request", number=pr_number)
        return self._convert_pull_request(gh_pr)

    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool = False,
    ) -> PullRequestRecord:
        """Open a pull request and return its record."""
        log.info("create_pull_request", title=title, head=head, base=base)

        def _create_pr() -> GHPullRequest:
            return self.repository.create_pull(title=title, body=body, head=head, base=base, draft=draft)

        gh_pr = await self._call(_create_pr, "create_pull_request", head=head)
        return self._convert_pull_request(gh_pr)

    async def update_pull_request(
        self,
        pr_number: int,
        title: str | None = None,
        body: str | None = None,
    ) -> PullRequestRecord:
        log.info("update_pull_request", number=pr_number)

        def _update() -> GHPullRequest:
            gh_pr = self.repository.get_pull(pr_number)
            fields = {k: v for k, v in (("title", title), ("body", body)) if v is not None}
            if fields:
                gh_pr.edit(**fields)
            return self.repository.get_pull(pr_number)

        gh_pr = await self._call(_update, "update_pull_request", number=pr_number)
        return self._convert_pull_request(gh_pr)

    async def close_pull_request(self, pr_number: int) -> None:
        log.info("close_pull_request", number=pr_number)
        await self._call(
            lambda: self.repository.get_pull(pr_number).edit(state="closed"),
            "close_pull_request",
            number=pr_number,
        )

    async def add_labels(self, pr_number: int, labels: list[str]) -> None:
        if not labels:
            return
        await self._call(
            lambda: self.repository.get_issue(pr_number).add_to_labels(*labels),
            "add_labels",
            number=pr_number,
        )

    async def set_labels(self, pr_number: int, labels: list[str]) -> None:
        await self._call(
            lambda: self.repository.get_issue(pr_number).set_labels(*labels),
            "set_labels",
            number=pr_number,
        )

    async def request_reviewers(self, pr_number: int, reviewers: list[str]) -> None:
        if not reviewers:
            return
        await self._call(
            lambda: self.repository.get_pull(pr_number).create_review_request(reviewers=reviewers),
            "request_reviewers",
            number=pr_number,
        )

    async def add_assignees(self, pr_number: int, assignees: list[str]) -> None:
        if not assignees:
            return
        await self._call(
            lambda: self.repository.get_issue(pr_number).add_to_assignees(*assignees),
            "add_assignees",
            number=pr_number,
        )

    # Tracking issues

    async def get_issues(self, labels: list[str] | None = None, state: str = "open") -> list[TrackingIssue]:
        """List tracking issues, skipping the pull requests GitHub mixes into the issue list."""
        gh_state = state if state in ("open", "closed", "all") else "open"

        def _list() -> list[GHIssue]:
            issues = self.repository.get_issues(state=gh_state, labels=labels or [])
            return [issue for issue in issues if issue.pull_request is None]

        gh_issues = await self._call(_list, "get_issues", labels=labels, state=gh_state)
        return [self._convert_issue(issue) for issue in gh_issues]

    async def create_issue(self, title: str, body: str, labels: list[str] | None = None) -> TrackingIssue:
        log.info("create_issue", title=title, labels=labels)
        gh_issue = await self._call(
            lambda: self.repository.create_issue(title=title, body=body, labels=labels or []),
            "create_issue",
        )
        return self._convert_issue(gh_issue)

    async def update_issue(
        self,
        issue_number: int,
        title: str | None = None,
        body: str | None = None,
        labels: list[str] | None = None,
    ) -> TrackingIssue:
        log.info("update_issue", number=issue_number)

        def _update() -> GHIssue:
            gh_issue = self.repository.get_issue(issue_number)
            fields = {k: v for k, v in (("title", title), ("body", body), ("labels", labels)) if v is not None}
            if fields:
                gh_issue.edit(**fields)
            return self.repository.get_issue(issue_number)

        gh_issue = await self._call(_update, "update_issue", number=issue_number)
        return self._convert_issue(gh_issue)

    async def close_issue(self, issue_number: int) -> None:
        log.info("close_issue", number=issue_number)
        await self._call(
            lambda: self.repository.get_issue(issue_number).edit(state="closed"),
            "close_issue",
            number=issue_number,
        )

    def _convert_pull_request(self, gh_pr: GHPullRequest) -> PullRequestRecord:
        """Convert GitHub PullRequest to our PullRequestRecord model."""
        if gh_pr.state == "open":
            state = PullRequestState.OPEN
        elif gh_pr.merged_at is not None:
            state = PullRequestState.MERGED
        else:
            state = PullRequestState.CLOSED

        return PullRequestRecord(
            number=gh_pr.number,
            title=gh_pr.title,
            head_branch=gh_pr.head.ref,
            base_branch=gh_pr.base.ref,
            state=state,
            body=gh_pr.body or "",
            labels=tuple(label.name for label in gh_pr.labels),
            author=gh_pr.user.login if gh_pr.user else "",
            url=gh_pr.html_url,
            head_sha=gh_pr.head.sha,
        )

    def _convert_issue(self, gh_issue: GHIssue) -> TrackingIssue:
        """Convert GitHub Issue to our TrackingIssue model."""
        return TrackingIssue(
            number=gh_issue.number,
            title=gh_issue.title,
            body=gh_issue.body or "",
            state=gh_issue.state,
            labels=tuple(label.name for label in gh_issue.labels),
            url=gh_issue.html_url,
        )
