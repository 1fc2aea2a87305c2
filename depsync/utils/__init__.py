"""Shared utilities: logging, retry, subprocess and HTTP pooling."""
