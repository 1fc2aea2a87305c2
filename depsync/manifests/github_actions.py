"""Handler for ``uses: owner/repo@ref`` references in GitHub Actions workflows."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

import structlog

from depsync.manifests.registry import VersionLookup
from depsync.models.domain import PackageUpdate
from depsync.processors.version_classifier import classify, is_newer

log = structlog.get_logger(__name__)

_USES_RE = re.compile(r"""^\s*(?:-\s*)?uses:\s*["'`]?([^\s"'`#]+)""")
_VERSION_REF_RE = re.compile(r"^v?\d+(\.\d+)*$")


class GitHubActionsHandler:
    """Proposes newer release tags for actions pinned to a version tag.

    Local actions, docker references and refs that are not version tags
    (branches, commit SHAs) are left alone.
    """

    manifest_type = "github-actions"
    file_patterns = [".github/workflows/*.yml", ".github/workflows/*.yaml"]

    def __init__(self, lookup: VersionLookup) -> None:
        self.lookup = lookup

    def detect(self, path: str) -> bool:
        pure = PurePosixPath(path)
        return pure.parent.as_posix().endswith(".github/workflows") and pure.suffix in (".yml", ".yaml")

    async def parse(self, path: str, content: str) -> list[PackageUpdate]:
        updates: list[PackageUpdate] = []
        seen: set[tuple[str, str]] = set()

        for line in content.splitlines():
            match = _USES_RE.match(line)
            if not match:
                continue

            reference = match.group(1)
            if reference.startswith(("./", "docker://")) or reference.count("@") != 1:
                continue

            action, current = reference.split("@")
            if not _VERSION_REF_RE.match(current) or (action, current) in seen:
                continue
            seen.add((action, current))

            latest = await self.lookup.latest_version(action)
            if latest is None or not is_newer(current, latest):
                continue

            updates.append(
                PackageUpdate(
                    name=action,
                    current_version=current,
                    new_version=latest,
                    update_type=classify(current, latest),
                    dependency_type="github-actions",
                    source_file=path,
                    homepage=f"https://github.com/{action}",
                )
            )

        return updates

    def apply_updates(self, path: str, content: str, updates: list[PackageUpdate]) -> str:
        for update in updates:
            if update.source_file != path:
                continue

            pattern = re.compile(
                r"(uses:\s*[\"'`]?)(" + re.escape(update.name) + r")@" + re.escape(update.current_version) + r"(?=[\s\"'`#]|$)",
                re.MULTILINE,
            )
            content = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}@{update.new_version}", content)

        return content
