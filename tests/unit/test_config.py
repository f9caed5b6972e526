"""Tests for configuration loading."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from shipit.config import (
    Config,
    ReleaseType,
    check_deprecated,
    create_sample_config,
    find_config_file,
    get_config,
    load_extend_config,
    load_json_config,
)
from shipit.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("SHIPIT_GITLAB_HOST", "SHIPIT_GITLAB_TOKEN", "GITLAB_TOKEN", "SHIPIT_PROJECT", "CI_PROJECT_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestConfig:
    """Tests for the Config model."""

    def test_defaults(self):
        config = Config()

        assert config.gitlab_host == "https://gitlab.com"
        assert config.base_branch == "main"
        assert config.prerelease_branches == ["next"]
        assert config.plugins == ["git-tag"]
        assert [label.name for label in config.labels][:3] == ["major", "minor", "patch"]

    def test_host_gets_scheme(self):
        assert Config(gitlab_host="gitlab.example.com").gitlab_host == "https://gitlab.example.com"

    def test_labels_are_normalized(self):
        config = Config(labels=[{"name": "breaking", "releaseType": "major"}])
        breaking = next(label for label in config.labels if label.name == "breaking")

        assert breaking.release_type == ReleaseType.MAJOR
        assert breaking.changelog_title == "💥 Breaking Change"


class TestGetConfig:
    """Tests for get_config()."""

    def test_found_file(self, tmp_path):
        write_json(tmp_path / ".shipitrc", {"project": "group/app", "base_branch": "trunk"})

        config = get_config()

        assert config.project == "group/app"
        assert config.base_branch == "trunk"
        assert config.config_file == ".shipitrc"

    def test_no_file(self):
        assert find_config_file() is None
        assert get_config().config_file is None

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = write_json(tmp_path / "shipit.json", {"project": "group/app", "gitlab_token": "from-file"})
        monkeypatch.setenv("GITLAB_TOKEN", "from-env")
        monkeypatch.setenv("CI_PROJECT_PATH", "group/ci")

        config = get_config(path)

        assert config.gitlab_token == "from-env"
        assert config.project == "group/ci"

    def test_overrides_win(self, tmp_path, monkeypatch):
        path = write_json(tmp_path / "shipit.json", {"project": "group/app"})
        monkeypatch.setenv("SHIPIT_PROJECT", "group/env")

        config = get_config(path, project="group/cli", gitlab_token=None)

        assert config.project == "group/cli"

    def test_invalid_json(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            get_config(str(tmp_path / "broken.json"))

        assert exc_info.value.path == str(tmp_path / "broken.json")

    def test_invalid_values(self, tmp_path):
        path = write_json(tmp_path / "shipit.json", {"labels": [{"name": "x", "releaseType": "huge"}]})

        with pytest.raises(ConfigurationError) as exc_info:
            get_config(path)

        assert exc_info.value.path == path
        assert "Invalid configuration" in str(exc_info.value)

    def test_wrong_field_type(self, tmp_path):
        path = write_json(tmp_path / "shipit.json", {"prerelease_branches": 3})

        with pytest.raises(ConfigurationError):
            get_config(path)

    def test_not_an_object(self, tmp_path):
        path = write_json(tmp_path / "list.json", ["git-tag"])

        with pytest.raises(ConfigurationError, match="JSON object"):
            load_json_config(path)

    def test_extends_file(self, tmp_path):
        write_json(tmp_path / "base.json", {
            "base_branch": "develop",
            "project": "group/base",
            "labels": [{"name": "breaking", "release_type": "major"}],
            "plugins": ["git-tag"],
        })
        path = write_json(tmp_path / "shipit.json", {
            "extends": "./base.json",
            "project": "group/app",
            "labels": [{"name": "feature", "release_type": "minor"}],
            "plugins": ["conventional-commits"],
        })

        config = get_config(path)
        names = [label.name for label in config.labels]

        assert config.base_branch == "develop"
        assert config.project == "group/app"
        assert "breaking" in names and "feature" in names
        assert config.plugins == ["git-tag", "conventional-commits"]
        assert config.extends is None

    def test_extends_url(self, tmp_path):
        path = write_json(tmp_path / "shipit.json", {"extends": "https://example.com/shipit.json"})
        response = MagicMock()
        response.json.return_value = {"base_branch": "develop"}

        with patch("shipit.config.settings.requests.get", return_value=response) as get:
            config = get_config(path)

        get.assert_called_once_with("https://example.com/shipit.json", timeout=30)
        assert config.base_branch == "develop"

    def test_extends_url_failure(self, tmp_path):
        path = write_json(tmp_path / "shipit.json", {"extends": "https://example.com/shipit.json"})

        with patch("shipit.config.settings.requests.get", side_effect=requests.ConnectionError("offline")):
            with pytest.raises(ConfigurationError, match="Failed to get extended config"):
                get_config(path)

    def test_extends_missing_file(self, tmp_path):
        path = write_json(tmp_path / "shipit.json", {"extends": "./nowhere.json"})

        with pytest.raises(ConfigurationError, match="Unable to load extended config"):
            get_config(path)

    def test_extends_javascript(self):
        with pytest.raises(ConfigurationError, match="JavaScript"):
            load_extend_config("./shipit.config.js")

    def test_deprecated_labels_object(self, tmp_path):
        path = write_json(tmp_path / "shipit.json", {"labels": {"major": "breaking"}})

        with pytest.raises(ConfigurationError, match="no longer supports configuration with an object"):
            get_config(path)

    def test_deprecated_skip_release_labels(self):
        with pytest.raises(ConfigurationError, match="skipReleaseLabels"):
            check_deprecated({"skipReleaseLabels": ["wip"]})


class TestFiles:
    """Tests for config file discovery and creation."""

    def test_search_order(self, tmp_path):
        write_json(tmp_path / "shipit.json", {})
        write_json(tmp_path / ".shipitrc.json", {})

        assert find_config_file() == ".shipitrc.json"

    def test_home_config(self, tmp_path):
        home = tmp_path / "home"
        home.mkdir()
        write_json(home / ".shipit.json", {})

        assert find_config_file() == str(home / ".shipit.json")

    def test_create_sample_config(self, tmp_path):
        create_sample_config(str(tmp_path / ".shipitrc"))

        data = load_json_config(str(tmp_path / ".shipitrc"))
        assert data["plugins"] == ["git-tag", "conventional-commits"]
        assert Config(**data).project == "group/project-name"
