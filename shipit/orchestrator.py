"""The release orchestrator: ties config, git, provider, plugins and the pipeline together."""

import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from .config import Config, get_config
from .errors import PreconditionError, ProviderError, PublishError
from .git import GitRepository
from .gitlab import GitLabClient
from .hooks import ShipitHooks
from .models import Commit, ReleaseContext, ShipResult
from .plugins import load_plugin
from .provider import Provider
from .releasenote import Release
from .semver import SemVer, calculate_bump, is_version


class Shipit:
    """Runs the release lifecycle.

    Nothing works before :meth:`load_config`; every operation raises
    :class:`PreconditionError` until it has run.
    """

    def __init__(
        self,
        config_file: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        git: Optional[GitRepository] = None,
        provider: Optional[Provider] = None,
        **overrides: Any,
    ):
        """Initialize the orchestrator.

        Args:
            config_file: Path to a JSON config file; searched for when omitted
            logger: Logger instance
            git: Local repository, defaults to the working directory
            provider: Hosting service client, defaults to a GitLabClient built from the config
            **overrides: Config values that win over the file and environment
        """
        self.config_file = config_file
        self.overrides = overrides
        self.logger = logger or logging.getLogger(__name__)
        self.hooks = ShipitHooks()
        self.git = git or GitRepository(logger=self.logger)

        self._provider = provider
        self.provider: Optional[Provider] = None
        self.config: Optional[Config] = None
        self.release: Optional[Release] = None
        self.plugins: List[Any] = []

    async def load_config(self, config: Optional[Config] = None) -> Config:
        """Load config and plugins, then build the provider and release manager."""
        config = config or get_config(self.config_file, **self.overrides)

        self.plugins = [load_plugin(spec) for spec in config.plugins]
        for plugin in self.plugins:
            self.logger.debug(f"Loading plugin {plugin.name}")
            plugin.apply(self)

        self.config = await self.hooks.modify_config.call(config)
        self.provider = self._provider or GitLabClient(self.config, self.logger)

        self.release = Release(self.git, self.provider, self.config, self.logger)
        self.release.hooks.on_create_changelog.tap("Shipit", self.hooks.on_create_changelog.call)
        self.release.hooks.on_create_log_parse.tap("Shipit", self.hooks.on_create_log_parse.call)

        await self.hooks.on_create_release.call(self.release)
        await self.hooks.before_run.call(self.config)
        return self.config

    def _require_release(self, operation: str) -> Release:
        if self.release is None or self.config is None:
            raise PreconditionError(operation)
        return self.release

    # Version helpers

    def prefix_release(self, release: str) -> str:
        """Add the ``v`` prefix unless disabled or already present."""
        if self.config and self.config.no_version_prefix:
            return release
        return release if release.startswith("v") else f"v{release}"

    async def get_last_release(self) -> str:
        """Tag of the latest published release, or the first commit when there is none."""
        try:
            latest = await self.provider.get_latest_release()
        except ProviderError as e:
            self.logger.warning(f"Could not get the latest release: {e}")
            latest = None

        if latest:
            return latest
        return await self.git.get_first_commit()

    async def get_current_version(self, last_release: str) -> str:
        """The version the code is at now, as reported by plugins."""
        previous = await self.hooks.get_previous_version.call()
        if previous:
            return previous

        self.logger.warning("Could not get previous version from plugins. Using last release.")
        return last_release if is_version(last_release) else "0.0.0"

    # Operations

    async def create_labels(self, dry_run: bool = False) -> List[str]:
        release = self._require_release("create_labels")
        return await release.add_labels_to_project(self.config.labels, dry_run=dry_run)

    async def version(self, start: Optional[str] = None) -> SemVer:
        """Calculate the version bump since ``start`` (default: the latest release)."""
        release = self._require_release("version")
        last_release = start or await self.get_last_release()
        return await release.get_semver_bump(last_release)

    async def changelog(self, start: Optional[str] = None, end: str = "HEAD", dry_run: bool = False) -> str:
        """Render release notes for the range and prepend them to the changelog file."""
        release = self._require_release("changelog")
        last_release = start or await self.get_last_release()

        bump = await release.get_semver_bump(last_release, end)
        release_notes = await release.generate_release_notes(last_release, end, bump)

        if dry_run:
            self.logger.info("Potential Changelog Addition:")
            self.logger.info(release_notes)
            return release_notes

        current_version = await self.get_current_version(last_release)
        await release.add_to_changelog(release_notes, last_release, current_version)
        await self.git.commit(f"Update {Path(self.config.changelog_file).name} [skip ci]")
        return release_notes

    async def run_release(
        self,
        start: Optional[str] = None,
        use_version: Optional[str] = None,
        prerelease: bool = False,
        dry_run: bool = False,
    ) -> Optional[ReleaseContext]:
        """Publish a release on the hosting service for the current version.

        Does nothing, and fires no ``after_release``, when the current
        version equals the last release.
        """
        release = self._require_release("run_release")

        if start:
            last_release = start
        elif prerelease:
            last_release = await self.git.get_previous_tag_in_branch() or await self.get_last_release()
        else:
            last_release = await self.get_last_release()

        if is_version(last_release):
            last_release = self.prefix_release(last_release)

        commits = await release.get_commits_in_release(last_release)
        release_notes = await release.generate_release_notes(last_release)

        if dry_run:
            self.logger.info(f"Would have released (unless ran with \"shipit\"):\n{release_notes}")
            return None

        new_version = use_version or await self.get_current_version(last_release)
        if is_version(new_version) and is_version(last_release) and new_version.lstrip("vV") == last_release.lstrip("vV"):
            self.logger.warning("Nothing released to the hosting service. Version to be released is the same as the latest release.")
            return None

        new_version = self.prefix_release(new_version)
        self.logger.info(f"Publishing {new_version} to the hosting service.")
        try:
            response = await self.provider.publish(release_notes, new_version, prerelease)
        except ProviderError as e:
            raise PublishError(f"Could not publish {new_version}: {e.message}", stage="publish release", status=e.status) from e

        context = ReleaseContext(
            last_release=last_release,
            new_version=new_version,
            commits=commits,
            release_notes=release_notes,
            response=response,
        )
        await self.hooks.after_release.call(context)
        return context

    async def shipit(self, dry_run: bool = False) -> Optional[ShipResult]:
        """Release from whatever context we are in.

        Merge request pipelines publish a canary, prerelease branches a
        prerelease and everything else a full release.
        """
        self._require_release("shipit")

        branch = os.getenv("CI_COMMIT_BRANCH") or await self.git.get_current_branch()
        if os.getenv("CI_MERGE_REQUEST_IID"):
            result = await self.canary(dry_run=dry_run)
        elif branch and branch in self.config.prerelease_branches:
            result = await self.next(dry_run=dry_run)
        else:
            if branch and branch != self.config.base_branch:
                self.logger.warning(f"Releasing from {branch}, which is not the base branch {self.config.base_branch}")
            result = await self.publish_full_release(dry_run=dry_run)

        if result is None:
            return None

        await self.hooks.after_ship_it.call(result.new_version, result.commits)
        return result

    async def publish_full_release(self, dry_run: bool = False) -> Optional[ShipResult]:
        release = self._require_release("shipit")

        last_release = await self.get_last_release()
        bump = await release.get_semver_bump(last_release)
        if not bump.is_release:
            self.logger.info("No version published.")
            return None

        commits = await release.get_commits_in_release(last_release)
        await self.changelog(start=last_release, dry_run=dry_run)

        if dry_run:
            self.logger.info(f"Would have published a {bump} release")
            return None

        await self.hooks.version.call(bump)
        self.logger.info("Bumped version")
        await self.hooks.publish.call(bump)

        context = await self.run_release(start=last_release)
        if context is None or not context.new_version:
            return None
        return ShipResult(new_version=context.new_version, commits=commits, context=context)

    async def next(self, dry_run: bool = False) -> Optional[ShipResult]:
        """Publish a prerelease of everything since the last full release."""
        release = self._require_release("next")

        last_release = await self.get_last_release()
        last_tag = await self.git.get_latest_tag_in_branch() or last_release

        commits = await release.get_commits_in_release(last_tag)
        release_notes = await release.generate_release_notes(last_tag)
        bump = await release.get_semver_bump(last_release)

        if dry_run:
            self.logger.info(f"Would have published a prerelease for a {bump} bump")
            self.logger.info(release_notes)
            return None

        versions = await self.hooks.next.call([], bump) or []
        if not versions:
            self.logger.warning("No prerelease version was published by any plugin.")
            return None

        new_version = versions[-1]
        try:
            response = await self.provider.publish(release_notes, new_version, True)
        except ProviderError as e:
            raise PublishError(f"Could not publish {new_version}: {e.message}", stage="publish prerelease", status=e.status) from e

        context = ReleaseContext(
            last_release=last_tag,
            new_version=new_version,
            commits=commits,
            release_notes=release_notes,
            response=response,
        )
        await self.hooks.after_release.call(context)
        return ShipResult(new_version=", ".join(versions), commits=commits, context=context)

    async def canary(
        self,
        pr: Optional[int] = None,
        build: Optional[int] = None,
        dry_run: bool = False,
    ) -> Optional[ShipResult]:
        """Publish a throwaway version for a merge request or a commit.

        The version suffix is ``.<pr>.<build>`` with merge request context,
        otherwise ``.<short sha>``. Merge request and build numbers fall back
        to the GitLab CI variables.
        """
        release = self._require_release("canary")

        pr = pr or _int_env("CI_MERGE_REQUEST_IID")
        build = build or _int_env("CI_PIPELINE_IID")

        try:
            from_ref = await self.git.get_latest_tag_in_branch()
        except ProviderError:
            from_ref = None
        if not from_ref:
            from_ref = await self.git.get_first_commit()

        commits = await release.get_commits(from_ref)
        if not commits:
            commits = await release.get_commits(await self.git.get_first_commit())
        bump = self._canary_bump(commits)

        commits_in_release = await release.get_commits_in_release(from_ref)

        if pr:
            suffix = f".{pr}.{build}" if build else f".{pr}"
        else:
            suffix = f".{await self.git.get_sha(short=True)}"

        if dry_run:
            self.logger.info(f"Would have published a canary version with suffix {suffix}")
            return None

        result = await self.hooks.canary.call(bump, suffix)
        if isinstance(result, dict) and result.get("error"):
            self.logger.warning(f"Canary not published: {result['error']}")
            return None
        if not result:
            self.logger.info("No canary version was published by any plugin.")
            return None

        new_version = str(result)
        self.logger.info(f"Published canary version: {new_version}")
        if pr:
            try:
                await self.provider.create_comment(pr, f"Published canary version: `{new_version}`")
            except ProviderError as e:
                raise PublishError(f"Could not comment on !{pr}: {e.message}", stage="canary comment", status=e.status) from e

        return ShipResult(new_version=new_version, commits=commits_in_release)

    def _canary_bump(self, commits: List[Commit]) -> SemVer:
        bump = calculate_bump(
            (commit.labels for commit in commits),
            self.release.version_map,
            self.config.only_publish_with_release_label,
        )
        return bump if bump.is_release else SemVer.PATCH


def _int_env(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value and value.isdigit() else None
