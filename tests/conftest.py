"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from depsync.config.settings import DepSyncSettings
from depsync.engine.types import CommitResult
from depsync.enums import PullRequestState, UpdateType
from depsync.exceptions import RemoteError, RemotePermissionError
from depsync.models.domain import FileChange, PackageUpdate, PullRequestRecord, RemoteBranch, TrackingIssue
from depsync.providers.base import RemoteRepository

SERVICE_IDENTITY = "github-actions[bot]"


class FakeRemoteRepository(RemoteRepository):
    """In-memory repository host.

    Branches carry full file snapshots so commits can be compared against
    the tip the same way a real host compares trees.
    """

    def __init__(self, base_branch: str = "main", files: dict[str, str] | None = None) -> None:
        self.base_branch = base_branch
        self.branches: dict[str, RemoteBranch] = {}
        self.files: dict[str, dict[str, str]] = {}
        self.pull_requests: dict[int, PullRequestRecord] = {}
        self.labels: dict[int, list[str]] = {}
        self.reviewers: dict[int, list[str]] = {}
        self.assignees: dict[int, list[str]] = {}
        self.issues: dict[int, TrackingIssue] = {}
        self.commits: list[tuple[str, str]] = []
        self.deleted_branches: list[str] = []
        self.commit_dates: dict[str, datetime] = {}
        self.reject_privileged = False
        self.fail_delete: set[str] = set()
        self.connected = False
        self._next_number = 1
        self._next_sha = 1
        self._put_branch(base_branch, dict(files or {}))

    def _sha(self) -> str:
        sha = f"{self._next_sha:040x}"
        self._next_sha += 1
        return sha

    def _put_branch(self, name: str, files: dict[str, str], sha: str | None = None) -> RemoteBranch:
        branch = RemoteBranch(name=name, head_sha=sha or self._sha(), last_commit_at=datetime.now(UTC))
        self.branches[name] = branch
        self.files[name] = files
        return branch

    def add_pull_request(
        self,
        title: str,
        head: str,
        body: str = "",
        author: str = SERVICE_IDENTITY,
        state: PullRequestState = PullRequestState.OPEN,
    ) -> PullRequestRecord:
        if head not in self.branches:
            self._put_branch(head, dict(self.files[self.base_branch]))
        pr = PullRequestRecord(
            number=self._next_number,
            title=title,
            head_branch=head,
            base_branch=self.base_branch,
            state=state,
            body=body,
            author=author,
            head_sha=self.branches[head].head_sha,
        )
        self.pull_requests[pr.number] = pr
        self._next_number += 1
        return pr

    def open_pull_requests(self) -> list[PullRequestRecord]:
        return [pr for pr in self.pull_requests.values() if pr.state is PullRequestState.OPEN]

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def get_branch(self, branch_name: str) -> RemoteBranch | None:
        return self.branches.get(branch_name)

    async def create_branch(self, branch_name: str, from_branch: str) -> RemoteBranch:
        if branch_name in self.branches:
            raise RemoteError(f"Reference already exists: {branch_name}", status_code=422)
        source = self.branches[from_branch]
        return self._put_branch(branch_name, dict(self.files[from_branch]), sha=source.head_sha)

    async def delete_branch(self, branch_name: str) -> None:
        if branch_name in self.fail_delete:
            raise RemoteError(f"delete_branch failed: {branch_name}", status_code=422)
        if self.branches.pop(branch_name, None) is not None:
            self.files.pop(branch_name, None)
            self.deleted_branches.append(branch_name)

    async def list_branches(self, prefix: str) -> list[RemoteBranch]:
        return [branch for name, branch in sorted(self.branches.items()) if name.startswith(prefix)]

    async def get_commit_date(self, sha: str) -> datetime | None:
        return self.commit_dates.get(sha)

    async def get_file(self, path: str, ref: str) -> str | None:
        return self.files.get(ref, {}).get(path)

    async def commit_files(
        self,
        branch: str,
        changes: list[FileChange],
        message: str,
        allow_empty: bool = False,
    ) -> CommitResult:
        if self.reject_privileged and any(c.clean_path.startswith(".github/workflows/") for c in changes):
            raise RemotePermissionError("refusing to allow a token to update workflow files", status_code=403)

        current = self.files[branch]
        updated = dict(current)
        for change in changes:
            if change.change_type == "delete":
                updated.pop(change.clean_path, None)
            else:
                updated[change.clean_path] = change.content

        if updated == current and not allow_empty:
            return CommitResult(committed=False, sha=self.branches[branch].head_sha, method="api")

        tip = self._put_branch(branch, updated)
        self.commits.append((branch, message))
        return CommitResult(committed=True, sha=tip.head_sha, method="api", marker=updated == current)

    async def list_pull_requests(self, state: str = "open") -> list[PullRequestRecord]:
        if state == "all":
            return list(self.pull_requests.values())
        return [pr for pr in self.pull_requests.values() if pr.state.value == state]

    async def get_pull_request(self, pr_number: int) -> PullRequestRecord:
        return self.pull_requests[pr_number]

    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool = False,
    ) -> PullRequestRecord:
        return self.add_pull_request(title, head, body=body)

    async def update_pull_request(
        self,
        pr_number: int,
        title: str | None = None,
        body: str | None = None,
    ) -> PullRequestRecord:
        pr = self.pull_requests[pr_number]
        updated = PullRequestRecord(
            number=pr.number,
            title=title if title is not None else pr.title,
            head_branch=pr.head_branch,
            base_branch=pr.base_branch,
            state=pr.state,
            body=body if body is not None else pr.body,
            author=pr.author,
            head_sha=self.branches[pr.head_branch].head_sha,
        )
        self.pull_requests[pr_number] = updated
        return updated

    async def close_pull_request(self, pr_number: int) -> None:
        pr = self.pull_requests[pr_number]
        self.pull_requests[pr_number] = PullRequestRecord(
            number=pr.number,
            title=pr.title,
            head_branch=pr.head_branch,
            base_branch=pr.base_branch,
            state=PullRequestState.CLOSED,
            body=pr.body,
            author=pr.author,
        )

    async def add_labels(self, pr_number: int, labels: list[str]) -> None:
        existing = self.labels.setdefault(pr_number, [])
        existing.extend(label for label in labels if label not in existing)

    async def set_labels(self, pr_number: int, labels: list[str]) -> None:
        self.labels[pr_number] = list(labels)

    async def request_reviewers(self, pr_number: int, reviewers: list[str]) -> None:
        self.reviewers[pr_number] = list(reviewers)

    async def add_assignees(self, pr_number: int, assignees: list[str]) -> None:
        self.assignees[pr_number] = list(assignees)

    async def get_issues(self, labels: list[str] | None = None, state: str = "open") -> list[TrackingIssue]:
        wanted = set(labels or [])
        return [i for i in self.issues.values() if i.state == state and wanted <= set(i.labels)]

    async def create_issue(self, title: str, body: str, labels: list[str] | None = None) -> TrackingIssue:
        issue = TrackingIssue(number=self._next_number, title=title, body=body, state="open", labels=tuple(labels or []))
        self.issues[issue.number] = issue
        self._next_number += 1
        return issue

    async def update_issue(
        self,
        issue_number: int,
        title: str | None = None,
        body: str | None = None,
        labels: list[str] | None = None,
    ) -> TrackingIssue:
        issue = self.issues[issue_number]
        updated = TrackingIssue(
            number=issue.number,
            title=title if title is not None else issue.title,
            body=body if body is not None else issue.body,
            state=issue.state,
            labels=tuple(labels) if labels is not None else issue.labels,
        )
        self.issues[issue_number] = updated
        return updated

    async def close_issue(self, issue_number: int) -> None:
        issue = self.issues[issue_number]
        self.issues[issue_number] = TrackingIssue(
            number=issue.number, title=issue.title, body=issue.body, state="closed", labels=issue.labels
        )


class StaticLookup:
    """Version lookup answering from a fixed table."""

    def __init__(self, versions: dict[str, str]) -> None:
        self.versions = versions
        self.calls: list[str] = []
        self.closed = False

    async def latest_version(self, name: str) -> str | None:
        self.calls.append(name)
        return self.versions.get(name)

    async def close(self) -> None:
        self.closed = True


def make_update(
    name: str,
    current: str,
    new: str,
    update_type: UpdateType = UpdateType.PATCH,
    source_file: str = "package.json",
    dependency_type: str = "dependencies",
) -> PackageUpdate:
    """Helper to create test updates."""
    return PackageUpdate(
        name=name,
        current_version=current,
        new_version=new,
        update_type=update_type,
        dependency_type=dependency_type,
        source_file=source_file,
    )


@pytest.fixture
def settings(tmp_path: Path) -> DepSyncSettings:
    """Settings for a test repository with a token."""
    return DepSyncSettings(
        repository={"owner": "acme", "name": "webapp", "base_branch": "main"},
        token="test-token",
        engine={"workspace": str(tmp_path), "use_native_git": False},
        cleanup={"deletion_batch_delay": 0.0, "status_batch_delay": 0.0, "status_max_jitter": 0.0},
    )


@pytest.fixture
def package_json() -> str:
    """A manifest with two outdated dependencies."""
    return (
        "{\n"
        '  "name": "webapp",\n'
        '  "dependencies": {\n'
        '    "lodash": "^4.17.20",\n'
        '    "express": "~4.18.0"\n'
        "  },\n"
        '  "devDependencies": {\n'
        '    "typescript": "4.9.5"\n'
        "  }\n"
        "}\n"
    )


@pytest.fixture
def remote(package_json: str) -> FakeRemoteRepository:
    """In-memory remote whose base branch holds package.json."""
    return FakeRemoteRepository(files={"package.json": package_json})


@pytest.fixture
def static_lookup() -> type[StaticLookup]:
    return StaticLookup


@pytest.fixture
def sample_updates() -> list[PackageUpdate]:
    """Two patch-level updates and one major update in package.json."""
    return [
        make_update("lodash", "^4.17.20", "4.17.21"),
        make_update("express", "~4.18.0", "4.18.3"),
        make_update("typescript", "4.9.5", "5.4.2", UpdateType.MAJOR, dependency_type="devDependencies"),
    ]
