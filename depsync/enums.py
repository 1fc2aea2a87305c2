"""Enumerations shared across depsync components."""

from enum import Enum


class UpdateType(str, Enum):
    """Severity of a version change."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    def __str__(self) -> str:
        return self.value

    @property
    def severity(self) -> int:
        """Numeric rank used for sorting (major is highest)."""
        return _SEVERITY[self]


_SEVERITY = {
    UpdateType.PATCH: 1,
    UpdateType.MINOR: 2,
    UpdateType.MAJOR: 3,
}


class UpdateStrategy(str, Enum):
    """Which update severities are proposed.

    - patch: keep every update
    - minor: drop major updates
    - major: keep only major updates
    - all: keep every update
    """

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    ALL = "all"

    def __str__(self) -> str:
        return self.value

    def allows(self, update_type: UpdateType) -> bool:
        """Return True if an update of the given severity passes this strategy."""
        if self == UpdateStrategy.MINOR:
            return update_type != UpdateType.MAJOR
        if self == UpdateStrategy.MAJOR:
            return update_type == UpdateType.MAJOR
        return True


class PullRequestState(str, Enum):
    """Normalized pull request state."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"

    def __str__(self) -> str:
        return self.value


class SyncAction(str, Enum):
    """Terminal state reached by the sync state machine for one group."""

    SKIP = "skip"
    REFRESH_EXISTING = "refresh_existing"
    CREATE_NEW = "create_new"
    CLOSED = "closed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class DetectionStrategy(str, Enum):
    """Which orphan-detection layer produced the protected branch set.

    Ordered from most to least authoritative.
    """

    PR_HEAD_SHA = "pr_head_sha"
    RECENT_24H = "recent_24h"
    RECENT_30D = "recent_30d"
    PROTECT_ALL = "protect_all"

    def __str__(self) -> str:
        return self.value

    @property
    def is_exact(self) -> bool:
        """True when orphan detection is exact and age caution is unnecessary."""
        return self == DetectionStrategy.PR_HEAD_SHA


class MergeStatus(str, Enum):
    """Result of merging the base branch into a pull request branch."""

    CLEAN = "clean"
    RESOLVED_WITH_BASE = "resolved_with_base"
    UNRESOLVED = "unresolved"

    def __str__(self) -> str:
        return self.value
