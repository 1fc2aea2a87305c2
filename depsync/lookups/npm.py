"""npm registry client used by the package.json handler."""

from urllib.parse import quote

import structlog
from pydantic import ValidationError

from depsync.exceptions import RemoteError
from depsync.models.remote import NpmPackageDocument
from depsync.utils.connection_pool import HTTPConnectionPool, raise_for_remote_status
from depsync.utils.retry import TRANSIENT_ERRORS, async_retry

log = structlog.get_logger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"


class NpmRegistryLookup:
    """Resolve the ``latest`` dist-tag of npm packages.

    Results are memoized for the lifetime of the lookup, which is one pass,
    since the same package often appears in several manifests.
    """

    def __init__(self, pool: HTTPConnectionPool | None = None) -> None:
        self.pool = pool or HTTPConnectionPool(
            NPM_REGISTRY_URL,
            headers={"Accept": "application/vnd.npm.install-v1+json"},
        )
        self._cache: dict[str, NpmPackageDocument | None] = {}

    async def close(self) -> None:
        await self.pool.close()

    async def latest_version(self, name: str) -> str | None:
        """Return the latest published version, or None if unknown."""
        document = await self.package_document(name)
        if document is None:
            return None
        return document.dist_tags.latest

    async def package_document(self, name: str) -> NpmPackageDocument | None:
        if name in self._cache:
            return self._cache[name]

        try:
            document = await self._fetch(name)
        except (RemoteError, ValidationError) as e:
            log.warning("npm_lookup_failed", package=name, error=str(e))
            document = None

        self._cache[name] = document
        return document

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=TRANSIENT_ERRORS)
    async def _fetch(self, name: str) -> NpmPackageDocument | None:
        # Scoped names keep their leading "@" but escape the slash.
        response = await self.pool.get(f"/{quote(name, safe='@')}")
        if response.status_code == 404:
            log.debug("npm_package_not_found", package=name)
            return None
        raise_for_remote_status(response)
        return NpmPackageDocument.model_validate(response.json())
