"""Remote repository hosts.

Key Components:
    - RemoteRepository: Abstract base every host implementation satisfies
    - GitHubRestProvider: GitHub REST API implementation (PyGithub)
"""
