"""Manifest handlers and the registry that resolves them.

Key Components:
    - ManifestHandler: Protocol every handler satisfies
    - ManifestRegistry: Handlers keyed by manifest type
    - PackageJsonHandler: npm ``package.json``
    - GitHubActionsHandler: ``uses:`` references in workflow files
"""

from depsync.manifests.github_actions import GitHubActionsHandler
from depsync.manifests.package_json import PackageJsonHandler
from depsync.manifests.registry import ManifestHandler, ManifestRegistry, VersionLookup, path_ignored


def build_default_registry(npm_lookup: VersionLookup, release_lookup: VersionLookup) -> ManifestRegistry:
    """Registry with every bundled handler, wired to its version lookup."""
    return ManifestRegistry([PackageJsonHandler(npm_lookup), GitHubActionsHandler(release_lookup)])


__all__ = [
    "GitHubActionsHandler",
    "ManifestHandler",
    "ManifestRegistry",
    "PackageJsonHandler",
    "VersionLookup",
    "build_default_registry",
    "path_ignored",
]
