"""Typed payloads of the raw HTTP endpoints depsync reads directly.

Responses are validated at the boundary; unknown fields are ignored and
absent optional fields become ``None`` instead of propagating missing keys.
"""

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PullStateResponse(_Payload):
    """``GET /repos/{owner}/{repo}/pulls/{number}``, reduced to its state."""

    number: int
    state: str
    merged: bool | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "open"


class NpmDistTags(_Payload):
    latest: str | None = None


class NpmPackageDocument(_Payload):
    """The abbreviated npm registry document for one package."""

    name: str
    dist_tags: NpmDistTags = Field(default_factory=NpmDistTags, alias="dist-tags")
    homepage: str | None = None


class GitHubRelease(_Payload):
    """``GET /repos/{owner}/{repo}/releases/latest``."""

    tag_name: str
    html_url: str | None = None
    draft: bool = False
    prerelease: bool = False
