"""Manifest discovery and update aggregation.

The scanner turns the per-handler update lists into one filtered, sorted,
de-duplicated list. Filtering runs in a fixed order, each step on the output
of the previous one:

1. ignore step: ignored names, ignored paths, dynamic versions, downgrades
2. strategy step: severities excluded by the active strategy
3. de-duplication on (name, current, new, file)
"""

import time
from collections.abc import Iterable
from datetime import UTC, datetime
from fnmatch import fnmatchcase
from pathlib import Path

import structlog

from depsync.config.settings import PackagesConfig
from depsync.engine.types import ScanResult
from depsync.exceptions import ManifestError
from depsync.manifests.registry import ManifestRegistry, path_ignored
from depsync.models.domain import PackageUpdate
from depsync.processors.version_classifier import is_newer

log = structlog.get_logger(__name__)

DYNAMIC_VERSIONS = frozenset({"latest", "*", "main", "master", "develop", "dev"})


def is_dynamic_version(version: str) -> bool:
    """True for unpinned markers such as ``latest`` or ``*``."""
    return version.strip().lower() in DYNAMIC_VERSIONS


def name_ignored(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatchcase(name, pattern) for pattern in patterns)


def sort_updates(updates: Iterable[PackageUpdate]) -> list[PackageUpdate]:
    """Severity descending, then name ascending. Stable."""
    return sorted(updates, key=lambda u: (-u.update_type.severity, u.name))


class UpdateScanner:
    """Aggregates the updates every manifest handler reports.

    Args:
        registry: Handlers resolved at startup
        config: Package filtering configuration
        root: Repository working tree to scan
    """

    def __init__(self, registry: ManifestRegistry, config: PackagesConfig, root: Path) -> None:
        self.registry = registry
        self.config = config
        self.root = root

    async def scan(self) -> ScanResult:
        """Discover manifests, parse them and aggregate the results.

        A handler failing on one file is logged and that file skipped.
        """
        started = time.monotonic()
        manifests = self.registry.discover(self.root, self.config.ignore_paths)

        update_lists: list[list[PackageUpdate]] = []
        for handler, path in manifests:
            try:
                content = (self.root / path).read_text(encoding="utf-8")
                update_lists.append(await handler.parse(path, content))
            except (OSError, UnicodeDecodeError, ManifestError) as e:
                log.warning("manifest_parse_failed", path=path, handler=handler.manifest_type, error=str(e))

        updates = self.aggregate(update_lists)
        duration = time.monotonic() - started
        log.info("scan_completed", manifests=len(manifests), updates=len(updates), duration=round(duration, 3))

        return ScanResult(
            updates=updates,
            total_manifests=len(manifests),
            scanned_at=datetime.now(UTC),
            duration=duration,
        )

    def aggregate(self, update_lists: Iterable[list[PackageUpdate]]) -> list[PackageUpdate]:
        """Merge, filter, de-duplicate and sort handler output."""
        merged = [update for updates in update_lists for update in updates]

        kept = [u for u in merged if self._passes_ignore(u)]
        kept = [u for u in kept if self._passes_strategy(u)]

        unique: list[PackageUpdate] = []
        seen: set[tuple[str, str, str, str]] = set()
        for update in kept:
            key = (update.name, update.current_version, update.new_version, update.source_file)
            if key in seen:
                log.debug("duplicate_update_dropped", package=update.name, file=update.source_file)
                continue
            seen.add(key)
            unique.append(update)

        return sort_updates(unique)

    def _passes_ignore(self, update: PackageUpdate) -> bool:
        if name_ignored(update.name, self.config.ignore):
            log.debug("update_ignored", package=update.name, reason="ignore")
            return False
        if path_ignored(update.source_file, self.config.ignore_paths):
            log.debug("update_ignored", package=update.name, reason="ignore_paths", file=update.source_file)
            return False
        if self.config.respect_latest and is_dynamic_version(update.current_version):
            log.debug("update_ignored", package=update.name, reason="dynamic_version", current=update.current_version)
            return False
        if not is_newer(update.current_version, update.new_version):
            log.debug(
                "update_ignored",
                package=update.name,
                reason="not_newer",
                current=update.current_version,
                proposed=update.new_version,
            )
            return False
        return True

    def _passes_strategy(self, update: PackageUpdate) -> bool:
        if self.config.strategy.allows(update.update_type):
            return True
        log.debug("update_ignored", package=update.name, reason="strategy", strategy=str(self.config.strategy))
        return False
