"""depsync: dependency update automation.

Scans a source tree for outdated dependencies, groups the updates and keeps
exactly one branch and pull request per update group on the remote host.
"""

__version__ = "0.1.0"
