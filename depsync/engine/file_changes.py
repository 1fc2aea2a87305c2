"""Turns a group's updates into new file contents."""

from collections.abc import Awaitable, Callable

import structlog

from depsync.manifests.registry import ManifestRegistry
from depsync.models.domain import FileChange, PackageUpdate

log = structlog.get_logger(__name__)

FileReader = Callable[[str], Awaitable[str | None]]

PRIVILEGED_PREFIXES = (".github/workflows/",)


def is_privileged_path(path: str) -> bool:
    """True for files that need an elevated token scope to modify."""
    return path.removeprefix("./").startswith(PRIVILEGED_PREFIXES)


class FileChangeGenerator:
    """Applies updates to manifest contents through their handlers."""

    def __init__(self, registry: ManifestRegistry) -> None:
        self.registry = registry

    async def generate(self, updates: list[PackageUpdate], read: FileReader) -> list[FileChange]:
        """Return one change per manifest whose content actually changes.

        Args:
            updates: Updates of a single group
            read: Returns the current content of a path, or None if missing
        """
        by_file: dict[str, list[PackageUpdate]] = {}
        for update in updates:
            by_file.setdefault(update.source_file, []).append(update)

        changes: list[FileChange] = []
        for path in sorted(by_file):
            handler = self.registry.handler_for(path)
            if handler is None:
                log.warning("no_handler_for_file", path=path)
                continue

            content = await read(path)
            if content is None:
                log.warning("manifest_missing", path=path)
                continue

            updated = handler.apply_updates(path, content, by_file[path])
            if updated == content:
                log.debug("file_unchanged", path=path)
                continue
            changes.append(FileChange(path=path, content=updated))

        return changes
