"""
Configuration system using Pydantic for type-safe settings management.

This module provides the configuration sections for every depsync component:
the target repository, package filtering and grouping, pull request metadata,
branch cleanup throttling, and engine identity. Settings are passed
explicitly through component constructors; nothing reads them globally.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from depsync.enums import UpdateStrategy
from depsync.exceptions import ConfigurationError, MissingTokenError


class RepositoryConfig(BaseModel):
    """Repository configuration."""

    owner: str = Field(..., description="Repository owner/organization")
    name: str = Field(..., description="Repository name")
    base_branch: str = Field(default="main", description="Branch pull requests target")
    api_url: str = Field(default="https://api.github.com", description="REST API base URL")

    @property
    def full_name(self) -> str:
        """``owner/name`` as the host API expects it."""
        return f"{self.owner}/{self.name}"


class GroupConfig(BaseModel):
    """One explicitly configured update group."""

    name: str = Field(..., min_length=1, description="Group name, used in titles and branch names")
    patterns: list[str] = Field(..., min_length=1, description="Glob patterns matched against package names")
    strategy: UpdateStrategy | None = Field(default=None, description="Group-local strategy override")


class PackagesConfig(BaseModel):
    """Which updates are proposed and how they are grouped."""

    strategy: UpdateStrategy = Field(default=UpdateStrategy.ALL, description="Global update strategy")
    ignore: list[str] = Field(default_factory=list, description="Glob patterns of package names to ignore")
    ignore_paths: list[str] = Field(default_factory=list, description="Glob patterns of manifest paths to ignore")
    groups: list[GroupConfig] = Field(default_factory=list, description="Explicit groups, first match wins")
    respect_latest: bool = Field(
        default=True,
        description="Leave dynamic versions such as 'latest' or '*' untouched",
    )


class PullRequestConfig(BaseModel):
    """Metadata applied to every pull request the engine opens or refreshes."""

    labels: list[str] = Field(default_factory=list, description="Static labels")
    reviewers: list[str] = Field(default_factory=list, description="Requested reviewers")
    assignees: list[str] = Field(default_factory=list, description="Assignees")
    draft: bool = Field(default=False, description="Open pull requests as drafts")


class CleanupConfig(BaseModel):
    """Throttling and safety windows for orphaned branch cleanup."""

    max_age_days: int = Field(default=7, ge=0, description="Age cutoff when only a fallback detection ran")
    deletion_batch_size: int = Field(default=5, ge=1)
    deletion_batch_delay: float = Field(default=3.0, ge=0.0, description="Seconds between deletion batches")
    status_batch_size: int = Field(default=5, ge=1)
    status_batch_delay: float = Field(default=0.5, ge=0.0, description="Seconds between status check batches")
    status_max_jitter: float = Field(default=0.1, ge=0.0, description="Upper bound of per-check jitter in seconds")
    emergency_window_hours: int = Field(default=24, ge=1)
    conservative_window_days: int = Field(default=30, ge=1)


class EngineConfig(BaseModel):
    """Engine identity and local workspace."""

    reserved_prefix: str = Field(default="depsync", description="Branch prefix owned by this engine")
    service_identity: str = Field(default="github-actions[bot]", description="Login that authors the PRs")
    competing_prefixes: list[str] = Field(
        default_factory=lambda: ["renovate/", "dependabot/"],
        description="Branch prefixes owned by other automation, never matched",
    )
    workspace: str = Field(default=".", description="Path of the local working tree")
    use_native_git: bool = Field(default=True, description="Commit with the git client before the API")
    security_packages: list[str] = Field(
        default_factory=lambda: ["helmet", "express-rate-limit", "cors", "bcrypt", "jsonwebtoken"],
        description="Name fragments that earn the 'security' label",
    )

    @field_validator("reserved_prefix")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        value = value.strip("/")
        if not value:
            raise ValueError("reserved_prefix must not be empty")
        return value


class DepSyncSettings(BaseSettings):
    """Main depsync settings.

    Combines all configuration sections and provides methods for loading from
    YAML files with environment variable interpolation. The access token is
    read from ``DEPSYNC_TOKEN`` or ``GITHUB_TOKEN``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEPSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    repository: RepositoryConfig | None = None
    packages: PackagesConfig = Field(default_factory=PackagesConfig)
    pull_request: PullRequestConfig = Field(default_factory=PullRequestConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("DEPSYNC_TOKEN", "GITHUB_TOKEN", "token"),
    )

    @property
    def workspace_dir(self) -> Path:
        """Get the workspace as a Path object."""
        return Path(self.engine.workspace)

    def require_repository(self) -> RepositoryConfig:
        """Return the repository section or raise the fatal precondition."""
        if self.repository is None:
            raise ConfigurationError("Missing repository configuration (repository.owner and repository.name)")
        return self.repository

    def require_write_access(self) -> str:
        """Check every precondition for writing to the remote.

        Returns:
            The access token.

        Raises:
            ConfigurationError: If the repository section is missing
            MissingTokenError: If no token is configured
        """
        self.require_repository()
        if self.token is None or not self.token.get_secret_value():
            raise MissingTokenError()
        return self.token.get_secret_value()

    @classmethod
    def from_yaml(cls, config_path: str) -> DepSyncSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            DepSyncSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_file.read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            if default_value is not None:
                return default_value
            raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
