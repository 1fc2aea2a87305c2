"""Outcome types returned by the engine components.

Recoverable conditions are reported through these values rather than raised:
a commit that had nothing to commit, a merge that needed the base version,
a detection layer that was unavailable, a group that failed while the rest
of the pass continued.

Example:
    Inspecting a pass::

        outcomes = await engine.sync_all(groups)
        failed = [o for o in outcomes if o.action is SyncAction.FAILED]
"""

from dataclasses import dataclass, field
from datetime import datetime

from depsync.enums import DetectionStrategy, MergeStatus, SyncAction
from depsync.models.domain import PackageUpdate, RemoteBranch, UpdateGroup


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal state reached for one group."""

    group: str
    action: SyncAction
    reason: str = ""
    pr_number: int | None = None
    branch: str | None = None
    committed: bool = False
    """True when a commit was pushed during this pass."""


@dataclass(frozen=True)
class CommitResult:
    """Result of committing a file set to a branch."""

    committed: bool
    """False when the tree already matched the tip and nothing was pushed."""

    sha: str | None = None
    method: str = "native"
    """``native`` for the git client, ``api`` for blob/tree/commit calls."""

    degraded: bool = False
    """True when privileged files were dropped to satisfy token scope."""

    skipped_paths: tuple[str, ...] = ()
    marker: bool = False
    """True for a deliberate empty commit created after degradation."""


@dataclass(frozen=True)
class MergeResult:
    """Result of merging the base branch into a pull request branch."""

    status: MergeStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is not MergeStatus.UNRESOLVED


@dataclass(frozen=True)
class DetectionResult:
    """Protected branch set and the detection layer that produced it."""

    strategy: DetectionStrategy
    protected: frozenset[str]
    reason: str = ""
    commit_dates: dict[str, datetime | None] = field(default_factory=dict)
    """Commit dates resolved while detecting, keyed by branch name."""


@dataclass
class CleanupReport:
    """What a cleanup pass found and did."""

    strategy: DetectionStrategy
    scanned: list[RemoteBranch] = field(default_factory=list)
    protected: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    """Orphans kept because they were too young or their age was unknown."""

    failed: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False


@dataclass
class ScanResult:
    """Updates found in one scan, ready for grouping."""

    updates: list[PackageUpdate]
    total_manifests: int
    scanned_at: datetime
    duration: float
    groups: list[UpdateGroup] = field(default_factory=list)
