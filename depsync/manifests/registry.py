"""Manifest handler registry: discover manifest files and match them to handlers."""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from depsync.models.domain import PackageUpdate

log = structlog.get_logger(__name__)


@runtime_checkable
class ManifestHandler(Protocol):
    """Interface that every manifest handler must satisfy.

    Paths are POSIX paths relative to the repository root.
    """

    manifest_type: str
    file_patterns: list[str]

    def detect(self, path: str) -> bool: ...

    async def parse(self, path: str, content: str) -> list[PackageUpdate]: ...

    def apply_updates(self, path: str, content: str, updates: list[PackageUpdate]) -> str: ...


@runtime_checkable
class VersionLookup(Protocol):
    """Resolves the newest published version of a dependency."""

    async def latest_version(self, name: str) -> str | None: ...

    async def close(self) -> None: ...


def path_ignored(path: str, patterns: list[str]) -> bool:
    """Return True if ``path`` matches any ignore glob.

    A pattern without a wildcard also matches everything below it, so
    ``packages/legacy`` ignores ``packages/legacy/package.json``.
    """
    path = path.removeprefix("./")
    for pattern in patterns:
        pattern = pattern.strip().removeprefix("./").rstrip("/")
        if not pattern:
            continue
        if fnmatch(path, pattern) or fnmatch(path, f"{pattern}/*"):
            return True
    return False


class ManifestRegistry:
    """Handlers keyed by manifest type, resolved once at startup."""

    def __init__(self, handlers: list[ManifestHandler] | None = None) -> None:
        self._handlers: dict[str, ManifestHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ManifestHandler) -> None:
        """Register a handler instance by its manifest_type."""
        if not isinstance(handler, ManifestHandler):
            raise TypeError(f"{handler!r} does not implement ManifestHandler")
        self._handlers[handler.manifest_type] = handler

    def get(self, manifest_type: str) -> ManifestHandler | None:
        return self._handlers.get(manifest_type)

    @property
    def handlers(self) -> list[ManifestHandler]:
        return list(self._handlers.values())

    def handler_for(self, path: str) -> ManifestHandler | None:
        """Return the first handler that detects ``path``."""
        for handler in self._handlers.values():
            if handler.detect(path):
                return handler
        return None

    def discover(self, root: Path, ignore_paths: list[str] | None = None) -> list[tuple[ManifestHandler, str]]:
        """Walk ``root`` and match manifest files to registered handlers.

        Returns (handler, relative path) pairs; each file appears once.
        """
        ignore_paths = ignore_paths or []
        matches: list[tuple[ManifestHandler, str]] = []
        seen: set[str] = set()

        for handler in self._handlers.values():
            for pattern in handler.file_patterns:
                for hit in sorted(root.glob(pattern)):
                    if not hit.is_file():
                        continue
                    relative = hit.relative_to(root).as_posix()
                    if relative in seen or not handler.detect(relative):
                        continue
                    if path_ignored(relative, ignore_paths):
                        log.info("manifest_ignored", path=relative, reason="ignore_paths")
                        continue
                    seen.add(relative)
                    matches.append((handler, relative))

        return matches
