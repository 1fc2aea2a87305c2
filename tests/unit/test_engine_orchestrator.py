"""Tests for one full depsync pass."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import StaticLookup

from depsync.config.settings import DepSyncSettings
from depsync.engine.orchestrator import PassOrchestrator
from depsync.enums import DetectionStrategy, SyncAction
from depsync.exceptions import ConfigurationError, MissingTokenError
from depsync.git.workspace import GitWorkspace
from depsync.manifests import build_default_registry
from depsync.providers.github_rest import GitHubRestProvider

VERSIONS = {"lodash": "4.17.21", "express": "4.18.3", "typescript": "5.4.2"}


@pytest.fixture
def lookup() -> StaticLookup:
    return StaticLookup(VERSIONS)


@pytest.fixture
def orchestrator(settings, remote, lookup, tmp_path, package_json) -> PassOrchestrator:
    (tmp_path / "package.json").write_text(package_json)
    return PassOrchestrator(
        settings,
        build_default_registry(lookup, StaticLookup({})),
        remote=remote,
        lookups=[lookup],
    )


class TestScan:
    @pytest.mark.asyncio
    async def test_scan_groups_updates(self, orchestrator):
        result = await orchestrator.scan()

        assert result.total_manifests == 1
        assert [g.name for g in result.groups] == ["Major Update - typescript", "Non-Major Updates"]


class TestUpdate:
    @pytest.mark.asyncio
    async def test_creates_pull_requests(self, orchestrator, remote):
        outcomes = await orchestrator.update()

        assert [o.action for o in outcomes] == [SyncAction.CREATE_NEW, SyncAction.CREATE_NEW]
        assert len(remote.open_pull_requests()) == 2
        assert remote.connected

    @pytest.mark.asyncio
    async def test_second_pass_changes_nothing(self, orchestrator, remote):
        await orchestrator.update()
        commits = list(remote.commits)

        outcomes = await orchestrator.update()

        assert all(o.action is SyncAction.SKIP for o in outcomes)
        assert remote.commits == commits

    @pytest.mark.asyncio
    async def test_missing_token_aborts_before_writing(self, orchestrator, remote, settings):
        settings.token = None

        with pytest.raises(MissingTokenError):
            await orchestrator.update()

        assert remote.pull_requests == {}

    @pytest.mark.asyncio
    async def test_unavailable_workspace_falls_back_to_api(self, orchestrator, remote):
        workspace = MagicMock(spec=GitWorkspace)
        workspace.root = "/nowhere"
        workspace.is_available = AsyncMock(return_value=False)
        orchestrator.workspace = workspace

        outcomes = await orchestrator.update()

        assert orchestrator.workspace is None
        assert all(o.action is SyncAction.CREATE_NEW for o in outcomes)


class TestRun:
    @pytest.mark.asyncio
    async def test_full_pass(self, orchestrator, remote):
        outcomes, report = await orchestrator.run()

        assert len(outcomes) == 2
        assert report.strategy is DetectionStrategy.RECENT_24H
        assert sorted(report.protected) == sorted(pr.head_branch for pr in remote.open_pull_requests())
        assert report.deleted == []

    @pytest.mark.asyncio
    async def test_close_releases_resources(self, orchestrator, remote, lookup):
        async with orchestrator:
            await orchestrator.update()

        assert lookup.closed
        assert not remote.connected


class TestFromSettings:
    def test_builds_collaborators(self, settings):
        orchestrator = PassOrchestrator.from_settings(settings)

        assert isinstance(orchestrator.remote, GitHubRestProvider)
        assert orchestrator.workspace is None
        assert len(orchestrator.lookups) == 2
        assert {h.manifest_type for h in orchestrator.registry.handlers} == {"package.json", "github-actions"}

    def test_native_workspace(self, settings):
        settings.engine.use_native_git = True

        assert isinstance(PassOrchestrator.from_settings(settings).workspace, GitWorkspace)

    def test_scan_only_needs_no_repository(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("DEPSYNC_TOKEN", raising=False)

        orchestrator = PassOrchestrator.from_settings(DepSyncSettings(), require_remote=False)

        assert orchestrator.remote is None

    def test_remote_requires_repository(self):
        with pytest.raises(ConfigurationError):
            PassOrchestrator.from_settings(DepSyncSettings(token="t"))
