"""Clients that resolve the latest published version of a dependency."""
