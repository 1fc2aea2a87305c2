"""Core domain models for depsync.

Key Models:
    - PackageUpdate: One proposed dependency change
    - UpdateGroup: Updates batched into one pull request
    - RemoteBranch: Branch observed on the remote
    - PullRequestRecord: Pull request observed on the remote
    - FileChange: New content for a file
    - TrackingIssue: Dashboard issue

Example:
    >>> from depsync.models import PackageUpdate, UpdateGroup
"""

from depsync.models.domain import (
    FileChange,
    PackageUpdate,
    PullRequestRecord,
    RemoteBranch,
    TrackingIssue,
    UpdateGroup,
)

__all__ = [
    "FileChange",
    "PackageUpdate",
    "PullRequestRecord",
    "RemoteBranch",
    "TrackingIssue",
    "UpdateGroup",
]
