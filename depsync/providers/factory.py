"""Builds the remote repository client from settings."""

from depsync.config.settings import DepSyncSettings
from depsync.providers.base import RemoteRepository
from depsync.providers.github_rest import GitHubRestProvider


def create_remote_repository(settings: DepSyncSettings) -> RemoteRepository:
    """Create the host client for the configured repository.

    Raises:
        ConfigurationError: If the repository section is missing
        MissingTokenError: If no access token is configured
    """
    token = settings.require_write_access()
    repository = settings.require_repository()
    return GitHubRestProvider(
        token=token,
        owner=repository.owner,
        repo=repository.name,
        base_url=repository.api_url,
    )
