"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from shipit import __version__
from shipit.cli.main import cli
from shipit.config import Config
from shipit.errors import PublishError
from shipit.models import ReleaseContext, ShipResult
from shipit.semver import SemVer


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def shipit_class(config):
    with patch("shipit.cli.main.Shipit") as shipit_class:
        shipit_class.return_value.load_config = AsyncMock(return_value=config)
        yield shipit_class


@pytest.fixture
def app(shipit_class):
    return shipit_class.return_value


class TestCli:
    """Tests for the shipit command group."""

    def test_version_option(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_global_options_are_passed(self, runner, shipit_class, app):
        app.version = AsyncMock(return_value=SemVer.PATCH)

        runner.invoke(cli, ["--project", "group/cli", "-c", "custom.json", "version"])

        kwargs = shipit_class.call_args.kwargs
        assert kwargs["config_file"] == "custom.json"
        assert kwargs["project"] == "group/cli"
        assert kwargs["gitlab_token"] is None

    def test_version(self, runner, app):
        app.version = AsyncMock(return_value=SemVer.MINOR)

        result = runner.invoke(cli, ["version", "--from", "v1.0.0"])

        assert result.exit_code == 0
        assert result.output.strip() == "minor"
        app.version.assert_awaited_once_with("v1.0.0")

    def test_missing_token(self, runner, app):
        app.load_config = AsyncMock(return_value=Config(gitlab_token=None, project="group/project", plugins=[]))

        result = runner.invoke(cli, ["version"])

        assert result.exit_code == 1
        assert "Error: GitLab token is required" in result.output

    def test_missing_project(self, runner, app):
        app.load_config = AsyncMock(return_value=Config(gitlab_token="token", project=None, plugins=[]))

        result = runner.invoke(cli, ["version"])

        assert result.exit_code == 1
        assert "Error: Project is required" in result.output

    def test_errors_exit_non_zero(self, runner, app):
        app.run_release = AsyncMock(side_effect=PublishError("publish release failed: Forbidden", stage="publish release", status=403))

        result = runner.invoke(cli, ["release"])

        assert result.exit_code == 1
        assert "Error: publish release failed: Forbidden (stage=publish release, status=403)" in result.output


class TestCommands:
    """Tests for the individual commands."""

    def test_init_config(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init-config"])

            with open(".shipitrc", encoding="utf-8") as f:
                data = json.load(f)

        assert result.exit_code == 0
        assert data["project"] == "group/project-name"

    def test_create_labels(self, runner, app):
        app.create_labels = AsyncMock(return_value=["major"])

        result = runner.invoke(cli, ["create-labels", "--dry-run"])

        assert result.exit_code == 0
        app.create_labels.assert_awaited_once_with(dry_run=True)

    def test_changelog_dry_run(self, runner, app):
        app.changelog = AsyncMock(return_value="#### 🐛 Bug Fix\n\n- Fix")

        result = runner.invoke(cli, ["changelog", "--dry-run", "--from", "v1.0.0"])

        assert result.exit_code == 0
        assert "- Fix" in result.output
        app.changelog.assert_awaited_once_with(start="v1.0.0", end="HEAD", dry_run=True)

    def test_release(self, runner, app):
        app.run_release = AsyncMock(return_value=ReleaseContext(last_release="v1.2.3", new_version="v1.2.4"))

        result = runner.invoke(cli, ["release", "--use-version", "1.2.4"])

        assert result.exit_code == 0
        assert "Successfully created release v1.2.4" in result.output
        app.run_release.assert_awaited_once_with(start=None, use_version="1.2.4", prerelease=False, dry_run=False)

    def test_release_nothing(self, runner, app):
        app.run_release = AsyncMock(return_value=None)

        assert "Nothing released" in runner.invoke(cli, ["release"]).output

    def test_shipit(self, runner, app):
        app.shipit = AsyncMock(return_value=ShipResult(new_version="v1.3.0"))

        result = runner.invoke(cli, ["shipit"])

        assert result.exit_code == 0
        assert "Published v1.3.0" in result.output

    def test_next_dry_run(self, runner, app):
        app.next = AsyncMock(return_value=None)

        result = runner.invoke(cli, ["next", "--dry-run"])

        assert "(Dry run - no changes made)" in result.output
        app.next.assert_awaited_once_with(dry_run=True)

    def test_canary(self, runner, app):
        app.canary = AsyncMock(return_value=ShipResult(new_version="v1.2.4-canary.3.4"))

        result = runner.invoke(cli, ["canary", "--pr", "3", "--build", "4"])

        assert "Published v1.2.4-canary.3.4" in result.output
        app.canary.assert_awaited_once_with(pr=3, build=4, dry_run=False)
