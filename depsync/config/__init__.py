"""Configuration system for depsync.

Key Components:
    - DepSyncSettings: Main configuration container with YAML loading support
    - RepositoryConfig: Target repository
    - PackagesConfig: Strategy, ignore lists and explicit groups
    - PullRequestConfig: Labels, reviewers and assignees
    - CleanupConfig: Orphaned branch cleanup throttling
    - EngineConfig: Reserved branch prefix and service identity

Example:
    >>> from depsync.config.settings import DepSyncSettings
    >>> settings = DepSyncSettings.from_yaml("depsync.yaml")
"""
