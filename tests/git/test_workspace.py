"""Tests for native git operations against a local bare remote.

Tests cover:
- Availability checks
- Resetting to the base branch
- Commit and push with the no-op guard
- Remote branch listing with commit dates
- Merging the base branch with conflict fallback
"""

import shutil
from pathlib import Path

import pytest
import pytest_asyncio

from depsync.enums import MergeStatus
from depsync.git.workspace import GitWorkspace, identity_email
from depsync.models.domain import FileChange
from depsync.utils.async_subprocess import run_command

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed"),
]

IDENTITY = {
    "GIT_AUTHOR_NAME": "tester",
    "GIT_AUTHOR_EMAIL": "tester@example.com",
    "GIT_COMMITTER_NAME": "tester",
    "GIT_COMMITTER_EMAIL": "tester@example.com",
}

MANIFEST = '{\n  "dependencies": {\n    "lodash": "^4.17.20"\n  }\n}\n'
BRANCH = "depsync/update-non-major-updates-1700000000000"


async def git(cwd: Path, *args: str) -> str:
    stdout, _, _ = await run_command("git", *args, cwd=cwd, env=IDENTITY)
    return stdout.strip()


@pytest_asyncio.fixture
async def checkout(tmp_path: Path) -> Path:
    """A clone whose origin is a local bare repository with one commit on main."""
    origin = tmp_path / "origin.git"
    work = tmp_path / "work"
    await run_command("git", "init", "--bare", str(origin))
    await run_command("git", "clone", str(origin), str(work))
    await git(work, "checkout", "-b", "main")
    (work / "package.json").write_text(MANIFEST)
    await git(work, "add", "package.json")
    await git(work, "commit", "-m", "initial")
    await git(work, "push", "origin", "HEAD:refs/heads/main")
    return work


@pytest.fixture
def workspace(checkout: Path) -> GitWorkspace:
    return GitWorkspace(checkout, "main", "github-actions[bot]")


def test_identity_email():
    assert identity_email("github-actions[bot]") == "41898282+github-actions[bot]@users.noreply.github.com"
    assert identity_email("deps-bot") == "deps-bot@users.noreply.github.com"


@pytest.mark.asyncio
async def test_is_available(workspace, tmp_path):
    assert await workspace.is_available()

    plain = tmp_path / "plain"
    plain.mkdir()
    assert not await GitWorkspace(plain, "main", "bot").is_available()


@pytest.mark.asyncio
async def test_reset_discards_local_changes(workspace, checkout):
    (checkout / "package.json").write_text("{}\n")
    (checkout / "stray.txt").write_text("x")

    await workspace.reset_to_base()

    assert workspace.read_file("package.json") == MANIFEST
    assert not (checkout / "stray.txt").exists()
    assert workspace.read_file("missing.json") is None


@pytest.mark.asyncio
async def test_commit_and_push(workspace, checkout):
    await workspace.reset_to_base()
    await workspace.create_branch(BRANCH)
    workspace.write_files([FileChange("package.json", MANIFEST.replace("4.17.20", "4.17.21"))])

    result = await workspace.commit_and_push(BRANCH, "chore(deps): update all non-major dependencies")

    assert result.committed
    assert result.method == "native"
    assert await git(checkout, "log", "-1", "--format=%ae") == identity_email("github-actions[bot]")

    again = await workspace.commit_and_push(BRANCH, "chore(deps): update all non-major dependencies")
    assert not again.committed

    await workspace.fetch(prune=True)
    branches = await workspace.list_remote_branches("depsync")
    assert [(b.name, b.head_sha) for b in branches] == [(BRANCH, result.sha)]
    assert branches[0].last_commit_at is not None


@pytest.mark.asyncio
async def test_marker_commit(workspace):
    await workspace.reset_to_base()
    await workspace.create_branch(BRANCH)

    result = await workspace.commit_and_push(BRANCH, "marker", allow_empty=True)

    assert result.committed
    assert result.marker


@pytest.mark.asyncio
async def test_merge_conflict_resolved_with_base(workspace):
    await workspace.reset_to_base()
    await workspace.create_branch(BRANCH)
    workspace.write_files([FileChange("package.json", MANIFEST.replace("4.17.20", "4.17.21"))])
    await workspace.commit_and_push(BRANCH, "branch change")

    await workspace.reset_to_base()
    base_manifest = MANIFEST.replace("4.17.20", "4.18.0")
    workspace.write_files([FileChange("package.json", base_manifest)])
    await workspace.commit_and_push("main", "base change")

    await workspace.checkout_existing(BRANCH)
    merge = await workspace.merge_base_into(BRANCH)

    assert merge.status is MergeStatus.RESOLVED_WITH_BASE
    assert merge.ok
    assert workspace.read_file("package.json") == base_manifest


@pytest.mark.asyncio
async def test_no_pull_request_heads_on_plain_remote(workspace):
    assert await workspace.pull_request_heads() == {}
