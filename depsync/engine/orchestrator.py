"""
Orchestration of one depsync pass.

A pass runs the components in order: precondition checks, scan, grouping,
per-group synchronization, then the independent branch cleanup. Everything
is constructed from one settings object and passed explicitly; no
component reads configuration or credentials from the environment itself.

Example:
    >>> settings = DepSyncSettings.from_yaml("depsync.yaml")
    >>> async with PassOrchestrator.from_settings(settings) as orchestrator:
    ...     outcomes, report = await orchestrator.run()
"""

from typing import Any

import structlog

from depsync.config.settings import DepSyncSettings
from depsync.engine.branch_lifecycle import BranchLifecycleManager
from depsync.engine.committer import Committer
from depsync.engine.file_changes import FileChangeGenerator
from depsync.engine.grouping import GroupingEngine
from depsync.engine.pr_status import PullRequestStateChecker
from depsync.engine.sync import SyncEngine
from depsync.engine.types import CleanupReport, ScanResult, SyncOutcome
from depsync.git.workspace import GitWorkspace
from depsync.lookups.github_releases import GitHubReleaseLookup
from depsync.lookups.npm import NpmRegistryLookup
from depsync.manifests import build_default_registry
from depsync.manifests.registry import ManifestRegistry, VersionLookup
from depsync.processors.update_scanner import UpdateScanner
from depsync.providers.base import RemoteRepository
from depsync.providers.factory import create_remote_repository
from depsync.utils.connection_pool import HTTPConnectionPool, github_headers

log = structlog.get_logger(__name__)


class PassOrchestrator:
    """Coordinates scan, sync and cleanup for one invocation.

    Attributes:
        settings: depsync settings
        registry: Manifest handlers resolved at startup
        remote: Host API client; only required for update and cleanup
        workspace: Native checkout, or None when native git is disabled
    """

    def __init__(
        self,
        settings: DepSyncSettings,
        registry: ManifestRegistry,
        remote: RemoteRepository | None = None,
        workspace: GitWorkspace | None = None,
        lookups: list[VersionLookup] | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.remote = remote
        self.workspace = workspace
        self.lookups = lookups or []
        self._connected = False

    @classmethod
    def from_settings(cls, settings: DepSyncSettings, require_remote: bool = True) -> "PassOrchestrator":
        """Build every collaborator from settings.

        Raises:
            ConfigurationError: If ``require_remote`` and the repository is missing
            MissingTokenError: If ``require_remote`` and no token is configured
        """
        remote = create_remote_repository(settings) if require_remote else None
        token = settings.token.get_secret_value() if settings.token else None
        api_url = settings.repository.api_url if settings.repository else "https://api.github.com"

        npm_lookup = NpmRegistryLookup()
        release_lookup = GitHubReleaseLookup(api_url=api_url, token=token)

        workspace = None
        if settings.engine.use_native_git and settings.repository is not None:
            workspace = GitWorkspace(
                settings.workspace_dir,
                settings.repository.base_branch,
                settings.engine.service_identity,
            )

        return cls(
            settings,
            build_default_registry(npm_lookup, release_lookup),
            remote=remote,
            workspace=workspace,
            lookups=[npm_lookup, release_lookup],
        )

    async def __aenter__(self) -> "PassOrchestrator":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        for lookup in self.lookups:
            await lookup.close()
        if self.remote is not None and self._connected:
            await self.remote.disconnect()
            self._connected = False

    async def _remote(self) -> RemoteRepository:
        if self.remote is None:
            self.remote = create_remote_repository(self.settings)
        if not self._connected:
            await self.remote.connect()
            self._connected = True
        return self.remote

    async def _native_workspace(self) -> GitWorkspace | None:
        if self.workspace is None:
            return None
        if not await self.workspace.is_available():
            log.warning("native_git_unavailable", path=str(self.workspace.root), fallback="api")
            self.workspace = None
        return self.workspace

    async def scan(self) -> ScanResult:
        """Scan manifests and group the updates."""
        scanner = UpdateScanner(self.registry, self.settings.packages, self.settings.workspace_dir)
        result = await scanner.scan()
        result.groups = GroupingEngine(self.settings.packages).group(result.updates)
        return result

    async def update(self, dry_run: bool = False) -> list[SyncOutcome]:
        """Scan, group and synchronize every group with its pull request."""
        self.settings.require_write_access()
        result = await self.scan()
        if not result.groups:
            log.info("no_updates_found")

        remote = await self._remote()
        workspace = await self._native_workspace()
        engine = SyncEngine(
            self.settings,
            remote,
            FileChangeGenerator(self.registry),
            Committer(remote, self.settings.require_repository().base_branch, workspace),
            workspace=workspace,
            dry_run=dry_run,
        )
        return await engine.sync_all(result.groups)

    async def cleanup(self, dry_run: bool = False) -> CleanupReport:
        """Delete branches whose pull requests are gone."""
        token = self.settings.require_write_access()
        repository = self.settings.require_repository()
        remote = await self._remote()
        workspace = await self._native_workspace()

        checker = PullRequestStateChecker(
            HTTPConnectionPool(
                repository.api_url,
                headers=github_headers(token),
            ),
            repository.full_name,
            self.settings.cleanup,
        )
        try:
            manager = BranchLifecycleManager(self.settings, remote, workspace=workspace, state_checker=checker)
            return await manager.cleanup(dry_run=dry_run)
        finally:
            await checker.close()

    async def run(self, dry_run: bool = False) -> tuple[list[SyncOutcome], CleanupReport]:
        """One full pass: update, then cleanup."""
        outcomes = await self.update(dry_run=dry_run)
        report = await self.cleanup(dry_run=dry_run)
        return outcomes, report
