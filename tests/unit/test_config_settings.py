"""Tests for depsync settings loading."""

from pathlib import Path

import pytest

from depsync.config.settings import DepSyncSettings, EngineConfig
from depsync.enums import UpdateStrategy
from depsync.exceptions import ConfigurationError, MissingTokenError

CONFIG = """
repository:
  owner: acme
  name: webapp
  base_branch: ${DEPSYNC_TEST_BASE:-develop}

# token: ${NOT_SET_ANYWHERE}
packages:
  strategy: minor
  ignore:
    - "@types/*"
  groups:
    - name: lint
      patterns: ["eslint*", "prettier"]
      strategy: patch

pull_request:
  labels: [automerge]

cleanup:
  max_age_days: 14
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DEPSYNC_TOKEN", "GITHUB_TOKEN", "DEPSYNC_TEST_BASE"):
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path: Path, content: str = CONFIG) -> str:
    path = tmp_path / "depsync.yaml"
    path.write_text(content)
    return str(path)


class TestFromYaml:
    def test_loads_sections(self, tmp_path):
        settings = DepSyncSettings.from_yaml(write_config(tmp_path))

        assert settings.repository.full_name == "acme/webapp"
        assert settings.repository.base_branch == "develop"
        assert settings.packages.strategy is UpdateStrategy.MINOR
        assert settings.packages.groups[0].strategy is UpdateStrategy.PATCH
        assert settings.pull_request.labels == ["automerge"]
        assert settings.cleanup.max_age_days == 14
        assert settings.cleanup.deletion_batch_size == 5
        assert settings.engine.reserved_prefix == "depsync"

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEPSYNC_TEST_BASE", "trunk")

        settings = DepSyncSettings.from_yaml(write_config(tmp_path))

        assert settings.repository.base_branch == "trunk"

    def test_missing_env_var(self, tmp_path):
        with pytest.raises(ConfigurationError, match="NOT_SET_EITHER"):
            DepSyncSettings.from_yaml(write_config(tmp_path, "repository:\n  owner: ${NOT_SET_EITHER}\n"))

    def test_token_from_github_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_abc")

        settings = DepSyncSettings.from_yaml(write_config(tmp_path))

        assert settings.require_write_access() == "ghs_abc"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            DepSyncSettings.from_yaml(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            DepSyncSettings.from_yaml(write_config(tmp_path, "repository: [unclosed"))

    def test_non_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="YAML object"):
            DepSyncSettings.from_yaml(write_config(tmp_path, "- a\n- b\n"))

    def test_validation_error(self, tmp_path):
        with pytest.raises(ConfigurationError, match="validate"):
            DepSyncSettings.from_yaml(write_config(tmp_path, "packages:\n  strategy: sometimes\n"))

    def test_empty_file_uses_defaults(self, tmp_path):
        settings = DepSyncSettings.from_yaml(write_config(tmp_path, ""))

        assert settings.repository is None
        assert settings.packages.respect_latest is True


class TestPreconditions:
    def test_missing_repository(self):
        with pytest.raises(ConfigurationError, match="repository"):
            DepSyncSettings().require_repository()

    def test_missing_token(self):
        settings = DepSyncSettings(repository={"owner": "acme", "name": "webapp"})

        with pytest.raises(MissingTokenError):
            settings.require_write_access()

    def test_empty_token(self):
        settings = DepSyncSettings(repository={"owner": "acme", "name": "webapp"}, token="")

        with pytest.raises(MissingTokenError):
            settings.require_write_access()

    def test_token_from_depsync_env(self, monkeypatch):
        monkeypatch.setenv("DEPSYNC_TOKEN", "tok")

        assert DepSyncSettings(repository={"owner": "a", "name": "b"}).require_write_access() == "tok"


class TestEngineConfig:
    def test_prefix_slashes_stripped(self):
        assert EngineConfig(reserved_prefix="/bots/deps/").reserved_prefix == "bots/deps"

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(reserved_prefix="//")
