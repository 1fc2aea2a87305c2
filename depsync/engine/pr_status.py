"""Throttled pull request state checks over plain HTTP.

States are fetched in small batches with per-request jitter and a pause
between batches so the checks fit in the anonymous request budget. A check
that fails for any reason reports the pull request as open: an unknown
state must protect branches, never expose them.
"""

import asyncio
import random

import httpx
import structlog
from pydantic import ValidationError

from depsync.config.settings import CleanupConfig
from depsync.exceptions import RemoteError
from depsync.models.remote import PullStateResponse
from depsync.utils.connection_pool import HTTPConnectionPool, raise_for_remote_status

log = structlog.get_logger(__name__)


class PullRequestStateChecker:
    """Answers "is pull request N open?" for many pull requests.

    Args:
        pool: HTTP pool whose base URL is the host API
        repository: ``owner/name``
        config: Batch size, jitter and inter-batch delay
    """

    def __init__(self, pool: HTTPConnectionPool, repository: str, config: CleanupConfig) -> None:
        self.pool = pool
        self.repository = repository
        self.config = config

    async def close(self) -> None:
        await self.pool.close()

    async def open_states(self, numbers: list[int]) -> dict[int, bool]:
        """Return ``{number: is_open}`` for every requested pull request."""
        states: dict[int, bool] = {}
        batch_size = self.config.status_batch_size
        batches = [numbers[i : i + batch_size] for i in range(0, len(numbers), batch_size)]

        for index, batch in enumerate(batches):
            results = await asyncio.gather(*(self._check(number) for number in batch))
            states.update(zip(batch, results, strict=True))
            if index < len(batches) - 1:
                await asyncio.sleep(self.config.status_batch_delay)

        log.debug("pull_states_checked", checked=len(states), open=sum(states.values()))
        return states

    async def _check(self, number: int) -> bool:
        await asyncio.sleep(random.uniform(0, self.config.status_max_jitter))  # nosec B311
        try:
            response = await self.pool.get(f"/repos/{self.repository}/pulls/{number}")
            raise_for_remote_status(response)
            return PullStateResponse.model_validate(response.json()).is_open
        except (RemoteError, httpx.HTTPError, ValidationError, ValueError) as e:
            log.warning("pull_state_check_failed", pr=number, error=str(e), assumed="open")
            return True
