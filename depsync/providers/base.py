"""
Abstract base class for remote repository hosts.

This module defines the minimum set of operations the engine needs from a
repository host: branches, file sets, pull requests and tracking issues.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from depsync.engine.types import CommitResult
from depsync.models.domain import FileChange, PullRequestRecord, RemoteBranch, TrackingIssue


class RemoteRepository(ABC):
    """Abstract base class for repository host implementations.

    Implementations translate host-specific failures into the depsync
    remote error hierarchy:

    - TransientRemoteError for rate limiting and server errors (retried)
    - RemotePermissionError when the token lacks a required scope
    - RemoteError for everything else

    All methods are async to support non-blocking I/O.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish the client and resolve the repository."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the client."""
        pass

    # Branches

    @abstractmethod
    async def get_branch(self, branch_name: str) -> RemoteBranch | None:
        """Get a branch with its tip and commit date, or None if absent."""
        pass

    @abstractmethod
    async def create_branch(self, branch_name: str, from_branch: str) -> RemoteBranch:
        """Create ``branch_name`` at the current tip of ``from_branch``."""
        pass

    @abstractmethod
    async def delete_branch(self, branch_name: str) -> None:
        """Delete a branch. Deleting a missing branch is not an error."""
        pass

    @abstractmethod
    async def list_branches(self, prefix: str) -> list[RemoteBranch]:
        """List every branch whose name starts with ``prefix`` in one call.

        Implementations may leave ``last_commit_at`` unset when the bulk
        listing does not carry commit dates.
        """
        pass

    @abstractmethod
    async def get_commit_date(self, sha: str) -> datetime | None:
        """Committer date of a commit, or None when unknown."""
        pass

    # Files

    @abstractmethod
    async def get_file(self, path: str, ref: str) -> str | None:
        """Read a file at ``ref``, or None if it does not exist."""
        pass

    @abstractmethod
    async def commit_files(
        self,
        branch: str,
        changes: list[FileChange],
        message: str,
        allow_empty: bool = False,
    ) -> CommitResult:
        """Commit a file set on top of ``branch`` through the host API.

        Args:
            branch: Branch to advance
            changes: Full new contents of each changed file
            message: Commit message
            allow_empty: Create the commit even when the tree is unchanged.
                Only used for deliberate marker commits.

        Returns:
            CommitResult with ``committed=False`` when the resulting tree
            equals the parent tree and ``allow_empty`` is False.
        """
        pass

    # Pull requests

    @abstractmethod
    async def list_pull_requests(self, state: str = "open") -> list[PullRequestRecord]:
        """List pull requests by state (``open``, ``closed`` or ``all``)."""
        pass

    @abstractmethod
    async def get_pull_request(self, pr_number: int) -> PullRequestRecord:
        pass

    @abstractmethod
    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool = False,
    ) -> PullRequestRecord:
        pass

    @abstractmethod
    async def update_pull_request(
        self,
        pr_number: int,
        title: str | None = None,
        body: str | None = None,
    ) -> PullRequestRecord:
        """Update title and body in place; the number never changes."""
        pass

    @abstractmethod
    async def close_pull_request(self, pr_number: int) -> None:
        pass

    @abstractmethod
    async def add_labels(self, pr_number: int, labels: list[str]) -> None:
        pass

    @abstractmethod
    async def set_labels(self, pr_number: int, labels: list[str]) -> None:
        """Replace every label on the pull request with ``labels``."""
        pass

    @abstractmethod
    async def request_reviewers(self, pr_number: int, reviewers: list[str]) -> None:
        pass

    @abstractmethod
    async def add_assignees(self, pr_number: int, assignees: list[str]) -> None:
        pass

    # Tracking issues

    @abstractmethod
    async def get_issues(self, labels: list[str] | None = None, state: str = "open") -> list[TrackingIssue]:
        """List issues (pull requests excluded) matching ALL given labels."""
        pass

    @abstractmethod
    async def create_issue(self, title: str, body: str, labels: list[str] | None = None) -> TrackingIssue:
        pass

    @abstractmethod
    async def update_issue(
        self,
        issue_number: int,
        title: str | None = None,
        body: str | None = None,
        labels: list[str] | None = None,
    ) -> TrackingIssue:
        pass

    @abstractmethod
    async def close_issue(self, issue_number: int) -> None:
        pass
