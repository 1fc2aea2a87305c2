"""Custom exception hierarchy for depsync.

Exceptions are reserved for conditions the caller cannot recover from at the
point they occur. Expected-but-recoverable situations (a merge that needed the
base version, a commit that had nothing to commit, a detection layer that was
unavailable) are reported through the outcome types in
``depsync.engine.types`` instead.

Exception Hierarchy:
    DepSyncError (base)
    ├── ConfigurationError
    │   └── MissingTokenError
    ├── GitOperationError
    │   └── MergeConflictError
    ├── RemoteError
    │   ├── TransientRemoteError
    │   └── RemotePermissionError
    ├── ManifestError
    └── SyncError

Example Usage:
    >>> from depsync.exceptions import ConfigurationError
    >>> try:
    ...     settings = DepSyncSettings.from_yaml(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""


class DepSyncError(Exception):
    """Base exception for all depsync errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(DepSyncError):
    """Configuration-related errors.

    Raised when the configuration file is invalid or a fatal precondition
    (such as a missing repository section) is not met. These abort the run
    before any write happens.

    Examples:
        - Configuration file not found
        - Invalid YAML syntax
        - Missing repository configuration
    """

    pass


class MissingTokenError(ConfigurationError):
    """No repository-write access token is available."""

    def __init__(self, message: str = "DEPSYNC_TOKEN or GITHUB_TOKEN environment variable is required") -> None:
        super().__init__(message)


class GitOperationError(DepSyncError):
    """A native git command failed.

    Attributes:
        command: The git arguments that failed
        stderr: Captured standard error, if any
    """

    def __init__(
        self,
        message: str,
        command: tuple[str, ...] | None = None,
        stderr: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            command: Git arguments that were executed
            stderr: Standard error output of the failed command
        """
        self.command = command
        self.stderr = stderr

        full_message = message
        if command:
            full_message = f"{message} (git {' '.join(command)})"

        super().__init__(full_message)
        self.message = message


class MergeConflictError(GitOperationError):
    """Merging the base branch produced conflicts."""

    pass


class RemoteError(DepSyncError):
    """The remote repository host rejected or failed a request.

    Attributes:
        status_code: HTTP status code (if applicable)
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code returned by the host
        """
        self.status_code = status_code

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class TransientRemoteError(RemoteError):
    """Rate limiting, server errors and other failures worth retrying."""

    pass


class RemotePermissionError(RemoteError):
    """The token lacks the scope needed for the request.

    Typically raised when a commit touches CI workflow files and the token
    does not carry the workflow scope.
    """

    pass


class ManifestError(DepSyncError):
    """A manifest could not be parsed or rewritten."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(f"{message} ({path})" if path else message)
        self.message = message


class SyncError(DepSyncError):
    """A group could not be synchronized with its pull request."""

    def __init__(self, message: str, group: str | None = None) -> None:
        self.group = group
        super().__init__(f"{message} (group: {group})" if group else message)
        self.message = message
