"""Native git operations over the shared working tree.

Groups are processed one at a time against the same checkout. Every group
starts from :meth:`GitWorkspace.reset_to_base`, and the tree is never
advanced except by applying exactly one group's changes.
"""

import subprocess
from datetime import datetime
from pathlib import Path

import structlog

from depsync.engine.types import CommitResult, MergeResult
from depsync.enums import MergeStatus
from depsync.exceptions import GitOperationError
from depsync.models.domain import FileChange, RemoteBranch
from depsync.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

GIT_TIMEOUT = 120.0


def identity_email(identity: str) -> str:
    """Noreply address for the service identity."""
    if identity == "github-actions[bot]":
        return "41898282+github-actions[bot]@users.noreply.github.com"
    return f"{identity}@users.noreply.github.com"


class GitWorkspace:
    """The local working tree and its ``origin`` remote.

    Args:
        root: Path of the checkout
        base_branch: Branch pull requests target
        identity: Name used as commit author and committer
    """

    def __init__(self, root: Path, base_branch: str, identity: str) -> None:
        self.root = root
        self.base_branch = base_branch
        self.identity = identity

    async def _git(self, *args: str, check: bool = True) -> tuple[str, int]:
        try:
            stdout, stderr, code = await run_command(
                "git",
                *args,
                cwd=self.root,
                check=check,
                timeout=GIT_TIMEOUT,
                env={
                    "GIT_AUTHOR_NAME": self.identity,
                    "GIT_AUTHOR_EMAIL": identity_email(self.identity),
                    "GIT_COMMITTER_NAME": self.identity,
                    "GIT_COMMITTER_EMAIL": identity_email(self.identity),
                    "GIT_TERMINAL_PROMPT": "0",
                },
            )
        except subprocess.CalledProcessError as e:
            raise GitOperationError("git command failed", command=args, stderr=e.stderr) from e
        except (OSError, TimeoutError) as e:
            raise GitOperationError(f"git could not run: {e}", command=args) from e
        return stdout, code

    async def is_available(self) -> bool:
        """True when ``root`` is a git checkout with an ``origin`` remote."""
        try:
            _, code = await self._git("remote", "get-url", "origin", check=False)
        except GitOperationError:
            return False
        return code == 0

    async def fetch(self, prune: bool = False) -> None:
        args = ["fetch", "origin"]
        if prune:
            args.append("--prune")
        await self._git(*args)

    async def reset_to_base(self) -> None:
        """Discard local state and check out the remote base tip."""
        await self._git("fetch", "origin", self.base_branch)
        await self._git("checkout", "--force", "-B", self.base_branch, f"origin/{self.base_branch}")
        await self._git("reset", "--hard", f"origin/{self.base_branch}")
        await self._git("clean", "-fd")
        log.debug("workspace_reset", base=self.base_branch)

    async def create_branch(self, branch: str) -> None:
        """Start ``branch`` at the current base tip."""
        await self._git("checkout", "-B", branch, f"origin/{self.base_branch}")

    async def checkout_existing(self, branch: str) -> None:
        """Check out the remote state of an existing branch."""
        await self._git("fetch", "origin", branch)
        await self._git("checkout", "--force", "-B", branch, f"origin/{branch}")

    async def merge_base_into(self, branch: str) -> MergeResult:
        """Merge the base branch into ``branch``, falling back to the base's hunks.

        First a plain merge; on conflict the merge is aborted and retried
        with the base branch winning conflicting hunks; if that fails too
        the merge is aborted and the caller proceeds on the branch as is.
        """
        target = f"origin/{self.base_branch}"

        _, code = await self._git("merge", "--no-edit", target, check=False)
        if code == 0:
            return MergeResult(MergeStatus.CLEAN)

        log.warning("merge_conflict", branch=branch, base=self.base_branch)
        await self._git("merge", "--abort", check=False)

        _, code = await self._git("merge", "--no-edit", "-X", "theirs", target, check=False)
        if code == 0:
            log.info("merge_resolved_with_base", branch=branch)
            return MergeResult(MergeStatus.RESOLVED_WITH_BASE)

        await self._git("merge", "--abort", check=False)
        log.warning("merge_unresolved", branch=branch, base=self.base_branch)
        return MergeResult(MergeStatus.UNRESOLVED, detail="merge with base failed, continuing on branch tip")

    def read_file(self, path: str) -> str | None:
        file_path = self.root / path
        if not file_path.is_file():
            return None
        return file_path.read_text(encoding="utf-8")

    def write_files(self, changes: list[FileChange]) -> None:
        for change in changes:
            file_path = self.root / change.clean_path
            if change.change_type == "delete":
                file_path.unlink(missing_ok=True)
                continue
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(change.content, encoding="utf-8")

    async def status_porcelain(self) -> str:
        stdout, _ = await self._git("status", "--porcelain")
        return stdout.strip()

    async def commit_and_push(self, branch: str, message: str, allow_empty: bool = False) -> CommitResult:
        """Commit the working tree and push it with ``--force-with-lease``.

        Nothing is committed or pushed when ``git status`` is clean, unless
        ``allow_empty`` asks for a deliberate marker commit.
        """
        if not await self.status_porcelain() and not allow_empty:
            log.info("commit_skipped_no_changes", branch=branch, method="native")
            return CommitResult(committed=False, method="native")

        await self._git("add", "--all")
        commit_args = ["commit", "-m", message]
        if allow_empty:
            commit_args.append("--allow-empty")
        await self._git(*commit_args)
        await self._git("push", "--force-with-lease", "origin", f"HEAD:refs/heads/{branch}")

        sha, _ = await self._git("rev-parse", "HEAD")
        log.info("commit_pushed", branch=branch, sha=sha.strip(), method="native")
        return CommitResult(committed=True, sha=sha.strip(), method="native", marker=allow_empty)

    async def discard_changes(self) -> None:
        await self._git("reset", "--hard", "HEAD")
        await self._git("clean", "-fd")

    async def list_remote_branches(self, prefix: str) -> list[RemoteBranch]:
        """Remote-tracking branches under ``prefix`` with tips and commit dates.

        Call :meth:`fetch` with ``prune=True`` first so deleted branches do
        not linger.
        """
        stdout, _ = await self._git(
            "for-each-ref",
            "--format=%(refname:strip=3)%09%(objectname)%09%(committerdate:iso-strict)",
            f"refs/remotes/origin/{prefix}",
        )
        branches = []
        for line in stdout.splitlines():
            parts = line.split("\t")
            if len(parts) != 3:
                continue
            name, sha, date = parts
            try:
                committed_at = datetime.fromisoformat(date) if date else None
            except ValueError:
                committed_at = None
            branches.append(RemoteBranch(name=name, head_sha=sha, last_commit_at=committed_at))
        return branches

    async def pull_request_heads(self) -> dict[int, str]:
        """Map of pull request number to head SHA from ``refs/pull/*/head``.

        Needs only read access to the remote.
        """
        stdout, _ = await self._git("ls-remote", "origin", "refs/pull/*/head")
        heads: dict[int, str] = {}
        for line in stdout.splitlines():
            parts = line.split("\t")
            if len(parts) != 2:
                continue
            sha, ref = parts
            segments = ref.split("/")
            if len(segments) == 4 and segments[2].isdigit():
                heads[int(segments[2])] = sha
        return heads
