"""Handler for npm ``package.json`` manifests."""

from __future__ import annotations

import json
import re
from pathlib import PurePosixPath

import structlog

from depsync.exceptions import ManifestError
from depsync.manifests.registry import VersionLookup
from depsync.models.domain import PackageUpdate
from depsync.processors.version_classifier import apply_range_prefix, classify, is_newer

log = structlog.get_logger(__name__)

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

# Specifiers that do not resolve against the registry.
_NON_REGISTRY_PREFIXES = ("file:", "link:", "workspace:", "npm:", "git", "http:", "https:", "github:")


class PackageJsonHandler:
    """Reads dependency sections of ``package.json`` and rewrites versions in place.

    Rewrites are textual so indentation, key order and trailing newlines
    survive untouched.
    """

    manifest_type = "package.json"
    file_patterns = ["package.json", "**/package.json"]

    def __init__(self, lookup: VersionLookup) -> None:
        self.lookup = lookup

    def detect(self, path: str) -> bool:
        parts = PurePosixPath(path).parts
        return bool(parts) and parts[-1] == "package.json" and "node_modules" not in parts

    async def parse(self, path: str, content: str) -> list[PackageUpdate]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid JSON: {e.msg}", path=path) from e
        if not isinstance(data, dict):
            raise ManifestError("Manifest root must be an object", path=path)

        updates: list[PackageUpdate] = []
        for section in DEPENDENCY_SECTIONS:
            entries = data.get(section)
            if not isinstance(entries, dict):
                continue

            for name, current in entries.items():
                if not isinstance(current, str) or current.startswith(_NON_REGISTRY_PREFIXES) or "/" in current:
                    continue

                latest = await self.lookup.latest_version(name)
                if latest is None or not is_newer(current, latest):
                    continue

                updates.append(
                    PackageUpdate(
                        name=name,
                        current_version=current,
                        new_version=latest,
                        update_type=classify(current, latest),
                        dependency_type=section,
                        source_file=path,
                        homepage=f"https://www.npmjs.com/package/{name}",
                    )
                )

        log.debug("manifest_parsed", path=path, updates=len(updates))
        return updates

    def apply_updates(self, path: str, content: str, updates: list[PackageUpdate]) -> str:
        for update in updates:
            if update.source_file != path:
                continue

            pattern = re.compile(
                r'("' + re.escape(update.name) + r'"\s*:\s*")' + re.escape(update.current_version) + r'(")'
            )
            replacement = apply_range_prefix(update.current_version, update.new_version)
            content, count = pattern.subn(lambda m: f"{m.group(1)}{replacement}{m.group(2)}", content)
            if count == 0:
                log.warning(
                    "manifest_entry_not_found",
                    path=path,
                    package=update.name,
                    current=update.current_version,
                )

        return content
