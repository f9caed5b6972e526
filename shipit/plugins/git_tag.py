"""Version a project with nothing but git tags."""

import logging
from typing import TYPE_CHECKING, List, Optional

from ..errors import ConfigurationError, ProviderError
from ..semver import SemVer, determine_next_version, inc_version, is_version
from .base import Plugin


if TYPE_CHECKING:
    from ..orchestrator import Shipit


logger = logging.getLogger(__name__)


class GitTagPlugin(Plugin):
    """Tag the repository with each new version.

    * ``get_previous_version``: latest tag in the branch, ``v0.0.0`` without one
    * ``version``: tags the bumped version
    * ``publish``: pushes the tags
    * ``next``: tags and pushes ``X.Y.Z-<branch>.N``
    * ``canary``: computes ``X.Y.Z-canary<suffix>`` without tagging
    """

    name = "git-tag"

    def apply(self, shipit: "Shipit") -> None:
        async def get_tag() -> str:
            try:
                tag = await shipit.git.get_latest_tag_in_branch()
            except ProviderError:
                tag = None
            return tag or shipit.prefix_release("0.0.0")

        async def get_previous_version() -> str:
            return await get_tag()

        async def version(bump: SemVer) -> None:
            last_tag = await get_tag()
            new_tag = inc_version(last_tag, bump)
            if not new_tag:
                logger.info("No release found, doing nothing")
                return

            prefixed = shipit.prefix_release(new_tag)
            logger.info(f"Tagging new version: {last_tag} => {prefixed}")
            await shipit.git.tag(prefixed)

        async def publish(bump: SemVer) -> None:
            branch = await shipit.git.get_current_branch() or shipit.config.base_branch
            logger.info("Pushing new tag to GitLab")
            await shipit.git.push_tags(branch=branch)

        async def next_version(prerelease_versions: List[str], bump: SemVer) -> List[str]:
            branches = shipit.config.prerelease_branches
            branch = await shipit.git.get_current_branch() or ""
            if not branches:
                raise ConfigurationError(
                    "No prerelease branches configured; add one to prerelease_branches to publish with next",
                    path=shipit.config.config_file,
                )
            preid = branch if branch in branches else branches[0]

            last_release = await shipit.get_last_release()
            current = await shipit.get_current_version(last_release)
            base = last_release if is_version(last_release) else current
            prerelease = determine_next_version(base, current, bump, preid)
            if not prerelease:
                return prerelease_versions

            prerelease = shipit.prefix_release(prerelease)
            await shipit.git.tag(prerelease)
            await shipit.git.push_tags()
            return [*prerelease_versions, prerelease]

        async def canary(bump: SemVer, suffix: str) -> Optional[str]:
            next_release = inc_version(await get_tag(), bump)
            if not next_release:
                return None
            return shipit.prefix_release(f"{next_release.lstrip('vV')}-canary{suffix}")

        shipit.hooks.get_previous_version.tap(self.name, get_previous_version)
        shipit.hooks.version.tap(self.name, version)
        shipit.hooks.publish.tap(self.name, publish)
        shipit.hooks.next.tap(self.name, next_version)
        shipit.hooks.canary.tap(self.name, canary)
