"""
Domain models for depsync.

This module contains the data classes shared by every component: the updates
produced by manifest handlers, the groups built from them, and the observed
remote state (branches, pull requests, tracking issues) that the engine
reconciles against but does not own.

Lifecycle:
    PackageUpdate and UpdateGroup are scan-scoped and discarded after one
    pass. RemoteBranch and PullRequestRecord are snapshots of external state,
    fetched fresh on every run and never cached across runs.

Example:
    Building an update from a manifest handler::

        update = PackageUpdate(
            name="lodash",
            current_version="^4.17.20",
            new_version="4.17.21",
            update_type=UpdateType.PATCH,
            dependency_type="dependencies",
            source_file="package.json",
        )
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from depsync.enums import PullRequestState, UpdateType


@dataclass(frozen=True)
class PackageUpdate:
    """A single proposed dependency change.

    Immutable once produced by a manifest handler. Two updates describe the
    same dependency slot when their :attr:`identity` is equal.
    """

    name: str
    """Package name as written in the manifest."""

    current_version: str
    """Version or constraint currently in the manifest (e.g. ``^1.2.3``)."""

    new_version: str
    """Proposed version, usually without a range operator."""

    update_type: UpdateType
    """Severity of the change."""

    dependency_type: str
    """Manifest section, e.g. ``dependencies`` or ``devDependencies``."""

    source_file: str
    """Path of the manifest relative to the project root."""

    homepage: str | None = None
    """Optional link rendered in pull request bodies."""

    @property
    def identity(self) -> tuple[str, str]:
        """Identity used for matching: ``(name, source_file)``."""
        return (self.name, self.source_file)


@dataclass
class UpdateGroup:
    """A set of updates proposed together in one pull request.

    Created fresh on every scan. ``update_type`` is the highest severity among
    the members and is only recomputed while the grouping pass is still
    changing membership.
    """

    name: str
    update_type: UpdateType
    title: str
    body: str
    updates: list[PackageUpdate] = field(default_factory=list)

    def recompute_update_type(self) -> None:
        """Reset ``update_type`` to the highest member severity."""
        if not self.updates:
            self.update_type = UpdateType.PATCH
            return
        self.update_type = max((u.update_type for u in self.updates), key=lambda t: t.severity)

    @property
    def package_names(self) -> set[str]:
        """Names of every package in the group."""
        return {u.name for u in self.updates}


@dataclass(frozen=True)
class RemoteBranch:
    """A branch as observed on the remote during this run."""

    name: str
    head_sha: str
    last_commit_at: datetime | None = None
    """Committer date of the tip. None when the host did not report it."""


@dataclass(frozen=True)
class PullRequestRecord:
    """A pull request as observed on the remote.

    The engine only reads these and requests mutations through the provider.
    """

    number: int
    title: str
    head_branch: str
    base_branch: str
    state: PullRequestState
    body: str = ""
    labels: tuple[str, ...] = ()
    author: str = ""
    url: str = ""
    head_sha: str | None = None


@dataclass(frozen=True)
class FileChange:
    """New content for one file, relative to the repository root."""

    path: str
    content: str
    change_type: Literal["update", "delete"] = "update"

    @property
    def clean_path(self) -> str:
        """Path without leading ``./`` or slashes, as hosts require."""
        path = self.path
        while path.startswith("./"):
            path = path[2:]
        return path.lstrip("/")


@dataclass(frozen=True)
class TrackingIssue:
    """An issue used by the dashboard collaborator to summarize state."""

    number: int
    title: str
    body: str
    state: str
    labels: tuple[str, ...] = ()
    url: str = ""
