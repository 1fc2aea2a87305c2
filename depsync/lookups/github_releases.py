"""GitHub releases client used by the workflow action handler."""

import structlog
from pydantic import ValidationError

from depsync.exceptions import RemoteError
from depsync.models.remote import GitHubRelease
from depsync.utils.connection_pool import HTTPConnectionPool, github_headers, raise_for_remote_status
from depsync.utils.retry import TRANSIENT_ERRORS, async_retry

log = structlog.get_logger(__name__)


class GitHubReleaseLookup:
    """Resolve the latest release tag of ``owner/repo`` actions."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str | None = None,
        pool: HTTPConnectionPool | None = None,
    ) -> None:
        self.pool = pool or HTTPConnectionPool(api_url, headers=github_headers(token))
        self._cache: dict[str, str | None] = {}

    async def close(self) -> None:
        await self.pool.close()

    async def latest_version(self, action: str) -> str | None:
        """Return the latest release tag of an action, or None.

        ``action`` may carry a sub-path (``github/codeql-action/init``); only
        the owner and repository are used.
        """
        parts = action.split("/")
        if len(parts) < 2:
            return None
        repository = f"{parts[0]}/{parts[1]}"

        if repository not in self._cache:
            try:
                release = await self._fetch(repository)
            except (RemoteError, ValidationError) as e:
                log.warning("release_lookup_failed", repository=repository, error=str(e))
                release = None
            self._cache[repository] = release.tag_name if release else None

        return self._cache[repository]

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=TRANSIENT_ERRORS)
    async def _fetch(self, repository: str) -> GitHubRelease | None:
        response = await self.pool.get(f"/repos/{repository}/releases/latest")
        if response.status_code == 404:
            return None
        raise_for_remote_status(response)
        return GitHubRelease.model_validate(response.json())
