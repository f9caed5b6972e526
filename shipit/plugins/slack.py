"""Announce releases in Slack."""

import asyncio
import logging
import os
import re
from typing import TYPE_CHECKING, Any, Dict

import requests

from ..config.labels import ReleaseType
from ..errors import ConfigurationError, PublishError, ProviderError
from ..models import ReleaseContext
from .base import Plugin


if TYPE_CHECKING:
    from ..orchestrator import Shipit


logger = logging.getLogger(__name__)

LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
HEADING_RE = re.compile(r"^#+\s*(.*?)\s*$")
BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


def sanitize_markdown(markdown: str) -> str:
    """Convert GitLab-flavored markdown to Slack mrkdwn."""
    lines = []
    for line in markdown.split("\n"):
        heading = HEADING_RE.match(line)
        if heading:
            line = f"*{heading.group(1)}*"
        line = BOLD_RE.sub(r"*\1*", line)
        line = LINK_RE.sub(r"<\2|\1>", line)
        lines.append(line)
    return "\n".join(lines)


class SlackPlugin(Plugin):
    """Post the release notes of every new release to a Slack webhook.

    Options: ``url`` (or the URL as a plain string), ``at_target``
    (default ``channel``) and ``publish_prerelease`` (default off).
    ``SLACK_TOKEN`` is appended to the URL when set.
    """

    name = "slack"

    def __init__(self, options: Any = None):
        super().__init__(options)
        if isinstance(options, str):
            options = {"url": options}
        options = options or {}

        self.url = options.get("url")
        self.at_target = options.get("at_target", options.get("atTarget", "channel"))
        self.publish_prerelease = options.get("publish_prerelease", options.get("publishPreRelease", False))

    def apply(self, shipit: "Shipit") -> None:
        async def after_release(context: ReleaseContext) -> None:
            if not context.new_version:
                return
            if not context.commits:
                return

            skip_labels = {
                label.name for label in shipit.config.labels if label.release_type == ReleaseType.SKIP
            }
            if all(skip_labels.intersection(commit.labels) for commit in context.commits):
                return

            branch = await shipit.git.get_current_branch()
            if branch in shipit.config.prerelease_branches and not self.publish_prerelease:
                return

            if not self.url:
                raise ConfigurationError("Slack url must be set to post a message to slack.")

            await self.post_to_slack(shipit, context.new_version, context.release_notes)

        shipit.hooks.after_release.tap(self.name, after_release)

    def build_message(self, project_url: str, new_version: str, release_notes: str) -> Dict[str, Any]:
        release_url = f"{project_url.rstrip('/')}/-/releases/{new_version}"
        text = f"@{self.at_target}: New release *<{release_url}|{new_version}>*\n{sanitize_markdown(release_notes)}"
        return {"text": text, "link_names": 1}

    async def post_to_slack(self, shipit: "Shipit", new_version: str, release_notes: str) -> None:
        """Send the announcement.

        Raises:
            PublishError: if Slack rejects the message or cannot be reached
        """
        token = os.getenv("SLACK_TOKEN")
        if not token:
            logger.warning("Slack may need a token to send a message")

        try:
            project_url = await shipit.provider.get_project_url()
        except ProviderError as e:
            logger.warning(f"Could not get project URL for the Slack message: {e}")
            project_url = f"{shipit.config.gitlab_host.rstrip('/')}/{shipit.config.project or ''}"

        url = f"{self.url}?token={token}" if token else self.url
        message = self.build_message(project_url, new_version, release_notes)

        try:
            response = await asyncio.to_thread(requests.post, url, json=message, timeout=30)
            response.raise_for_status()
        except requests.RequestException as e:
            status = e.response.status_code if e.response is not None else None
            raise PublishError(f"Posting to Slack failed: {e}", stage="slack", status=status) from e

        logger.debug("Posted release notes to slack.")
