"""Branch naming and matching of existing pull requests to update groups.

A pull request represents a group only when the engine can prove it: it
must be ours (service identity or reserved branch prefix), must not belong
to another automation tool, and must carry the group's title, the group's
branch prefix, or a title the similarity rules accept. When nothing is
proven the caller creates a new pull request instead of guessing.
"""

import re
import time
from collections.abc import Callable

import structlog

from depsync.config.settings import EngineConfig
from depsync.models.domain import PullRequestRecord, UpdateGroup

log = structlog.get_logger(__name__)

_SINGLE_DEPENDENCY_RES = (
    re.compile(r"\bupdate dependency (\S+)", re.IGNORECASE),
    re.compile(r"\bMajor Update - (\S+)", re.IGNORECASE),
)
_SEVERITY_WORDS_RE = re.compile(r"\b(non-major|major|minor|patch)\b")
_NUMBERS_RE = re.compile(r"\b\d+\b")

# Ranks of the reasons a pull request matched, strongest first.
MATCH_EXACT_TITLE = 0
MATCH_BRANCH_PREFIX = 1
MATCH_SIMILAR_TITLE = 2


def branch_slug(group_name: str) -> str:
    """Lowercase the group name and turn each whitespace run into ``-``."""
    return re.sub(r"\s+", "-", group_name.lower())


def group_branch_prefix(reserved_prefix: str, group_name: str) -> str:
    return f"{reserved_prefix}/update-{branch_slug(group_name)}-"


def branch_name(reserved_prefix: str, group_name: str, millis: int) -> str:
    """``<prefix>/update-<slug>-<unix millis>``."""
    return f"{group_branch_prefix(reserved_prefix, group_name)}{millis}"


def has_group_branch_prefix(branch: str, reserved_prefix: str, group_name: str) -> bool:
    """True if ``branch`` was named for this group.

    The remainder after the prefix must be the timestamp alone, so the
    branch of ``pkg`` never claims the branch of ``pkg-a``.
    """
    prefix = group_branch_prefix(reserved_prefix, group_name)
    return branch.startswith(prefix) and branch[len(prefix) :].isdigit()


class BranchNameGenerator:
    """Produces branch names with strictly increasing millisecond stamps."""

    def __init__(self, reserved_prefix: str, clock: Callable[[], float] = time.time) -> None:
        self.reserved_prefix = reserved_prefix
        self._clock = clock
        self._last = 0

    def next_millis(self) -> int:
        millis = max(int(self._clock() * 1000), self._last + 1)
        self._last = millis
        return millis

    def __call__(self, group_name: str) -> str:
        return branch_name(self.reserved_prefix, group_name, self.next_millis())


def single_dependency_package(title: str) -> str | None:
    """Package named by a single-dependency title, or None for aggregates."""
    for pattern in _SINGLE_DEPENDENCY_RES:
        match = pattern.search(title)
        if match:
            return match.group(1)
    return None


def normalize_title(title: str) -> str:
    lowered = title.lower()
    lowered = _SEVERITY_WORDS_RE.sub("", lowered)
    lowered = _NUMBERS_RE.sub("", lowered)
    return re.sub(r"\s+", " ", lowered).strip()


def titles_similar(existing: str, proposed: str) -> bool:
    """Decide whether two pull request titles describe the same group.

    Identical titles are similar. Two single-dependency titles are similar
    only when they name the same package. An aggregate title is never
    similar to a single-dependency title. Two aggregate titles are similar
    when they agree after dropping severity words and numbers.
    """
    if existing == proposed:
        return True

    existing_package = single_dependency_package(existing)
    proposed_package = single_dependency_package(proposed)

    if existing_package is not None and proposed_package is not None:
        return existing_package == proposed_package
    if existing_package is not None or proposed_package is not None:
        return False
    return normalize_title(existing) == normalize_title(proposed)


def is_engine_pull_request(pr: PullRequestRecord, config: EngineConfig) -> bool:
    """True for pull requests this engine may manage."""
    if any(pr.head_branch.startswith(prefix) for prefix in config.competing_prefixes):
        return False
    return pr.author == config.service_identity or pr.head_branch.startswith(f"{config.reserved_prefix}/")


def match_rank(pr: PullRequestRecord, group: UpdateGroup, config: EngineConfig) -> int | None:
    """Strongest reason ``pr`` represents ``group``, or None."""
    if not is_engine_pull_request(pr, config):
        return None
    if pr.title == group.title:
        return MATCH_EXACT_TITLE
    if has_group_branch_prefix(pr.head_branch, config.reserved_prefix, group.name):
        return MATCH_BRANCH_PREFIX
    if titles_similar(pr.title, group.title):
        return MATCH_SIMILAR_TITLE
    return None


def find_matching_pull_request(
    group: UpdateGroup,
    open_prs: list[PullRequestRecord],
    config: EngineConfig,
) -> PullRequestRecord | None:
    """Pick the single pull request that represents ``group``.

    Ties are broken by rank, then by the lowest (oldest) number. Every other
    candidate is reported as a duplicate and left alone.
    """
    candidates = []
    for pr in open_prs:
        rank = match_rank(pr, group, config)
        if rank is not None:
            candidates.append((rank, pr.number, pr))

    if not candidates:
        return None

    candidates.sort(key=lambda c: (c[0], c[1]))
    chosen = candidates[0][2]
    for _, number, pr in candidates[1:]:
        log.warning(
            "duplicate_pull_request",
            group=group.name,
            kept=chosen.number,
            duplicate=number,
            branch=pr.head_branch,
        )
    return chosen
