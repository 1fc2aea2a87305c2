"""Partitioning of a flat update list into pull request groups."""

from collections.abc import Iterable
from fnmatch import fnmatchcase

import structlog

from depsync.config.settings import GroupConfig, PackagesConfig
from depsync.engine.pr_body import render_body
from depsync.enums import UpdateType
from depsync.models.domain import PackageUpdate, UpdateGroup
from depsync.processors.update_scanner import sort_updates
from depsync.processors.version_classifier import highest_update_type, version_tuple

log = structlog.get_logger(__name__)

NON_MAJOR_GROUP = "Non-Major Updates"
NON_MAJOR_TITLE = "chore(deps): update all non-major dependencies"


def major_group_name(package: str) -> str:
    return f"Major Update - {package}"


def single_dependency_title(package: str, version: str) -> str:
    return f"chore(deps): update dependency {package} to {version}"


def configured_group_title(group_name: str) -> str:
    return f"chore(deps): update {group_name}"


def _build_group(name: str, title: str, updates: list[PackageUpdate]) -> UpdateGroup:
    updates = sort_updates(updates)
    return UpdateGroup(
        name=name,
        update_type=highest_update_type(u.update_type for u in updates),
        title=title,
        body=render_body(updates),
        updates=updates,
    )


class GroupingEngine:
    """Builds update groups from configured patterns, then the default split.

    Configured groups claim updates greedily in declaration order; an update
    claimed by an earlier group is no longer a candidate for later ones.
    Whatever no group claims falls through to the default grouping: one
    group per major package and a single group for everything else.
    """

    def __init__(self, config: PackagesConfig) -> None:
        self.config = config

    def group(self, updates: Iterable[PackageUpdate]) -> list[UpdateGroup]:
        pool = list(updates)
        groups: list[UpdateGroup] = []

        for group_config in self.config.groups:
            claimed = [u for u in pool if self._matches(u, group_config)]
            if not claimed:
                continue
            pool = [u for u in pool if not self._matches(u, group_config)]

            members = claimed
            if group_config.strategy is not None:
                members = [u for u in claimed if group_config.strategy.allows(u.update_type)]
                dropped = len(claimed) - len(members)
                if dropped:
                    log.info(
                        "group_strategy_filtered",
                        group=group_config.name,
                        strategy=str(group_config.strategy),
                        dropped=dropped,
                    )

            if not members:
                log.info("group_empty", group=group_config.name)
                continue

            groups.append(_build_group(group_config.name, configured_group_title(group_config.name), members))

        groups.extend(self.default_groups(pool))
        log.info("groups_built", groups=len(groups), updates=sum(len(g.updates) for g in groups))
        return groups

    @staticmethod
    def _matches(update: PackageUpdate, group_config: GroupConfig) -> bool:
        return any(fnmatchcase(update.name, pattern) for pattern in group_config.patterns)

    @staticmethod
    def default_groups(updates: Iterable[PackageUpdate]) -> list[UpdateGroup]:
        """One group per major package plus one group of non-major updates.

        A package with major updates in several manifests stays one group.
        """
        majors: dict[str, list[PackageUpdate]] = {}
        non_major: list[PackageUpdate] = []

        for update in updates:
            if update.update_type is UpdateType.MAJOR:
                majors.setdefault(update.name, []).append(update)
            else:
                non_major.append(update)

        groups = []
        for package in sorted(majors):
            members = majors[package]
            target = max((u.new_version for u in members), key=version_tuple)
            groups.append(_build_group(major_group_name(package), single_dependency_title(package, target), members))

        if non_major:
            groups.append(_build_group(NON_MAJOR_GROUP, NON_MAJOR_TITLE, non_major))

        return groups
