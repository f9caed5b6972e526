"""Derive version labels from conventional commit messages."""

import logging
import re
from typing import TYPE_CHECKING, Optional

from ..config.labels import ReleaseType, first_label_name
from ..errors import ProviderError
from ..models import Commit
from ..semver import SemVer
from .base import Plugin


if TYPE_CHECKING:
    from ..orchestrator import Shipit
    from ..releasenote import LogParse


logger = logging.getLogger(__name__)

# type(scope)!: subject
CONVENTIONAL_RE = re.compile(r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^)]*)\))?(?P<breaking>!)?: (?P<subject>.+)$")
MERGE_MARKER_RE = re.compile(r"^Merge (pull request #\d+|branch '[^']+')")

TYPE_BUMPS = {
    "feat": SemVer.MINOR,
    "fix": SemVer.PATCH,
    "perf": SemVer.PATCH,
}

VERSION_TYPES = (
    ReleaseType.MAJOR,
    ReleaseType.MINOR,
    ReleaseType.PATCH,
    ReleaseType.SKIP,
    ReleaseType.RELEASE,
)


def parse_bump(message: str) -> Optional[SemVer]:
    """Bump a conventional commit message asks for, or None for other messages."""
    subject, _, body = message.strip().partition("\n")
    match = CONVENTIONAL_RE.match(subject.strip())
    if not match:
        return None

    commit_type = match.group("type")
    if match.group("breaking") or commit_type.upper() == "BREAKING" or "BREAKING CHANGE" in body:
        return SemVer.MAJOR
    return TYPE_BUMPS.get(commit_type.lower())


class ConventionalCommitsPlugin(Plugin):
    """Label commits from ``type(scope)!: subject`` messages.

    Also omits a label-less merge commit when a commit inside its merge
    request already carries a conventional message, so the change is not
    counted twice.
    """

    name = "conventional-commits"

    def apply(self, shipit: "Shipit") -> None:
        def version_label_names():
            labels = shipit.config.labels
            return {label.name for label in labels if label.release_type in VERSION_TYPES}

        async def parse_commit(commit: Commit) -> Commit:
            bump = parse_bump(f"{commit.subject}\n\n{commit.body}")
            if bump is None:
                return commit
            return commit.with_labels(first_label_name(shipit.config.labels, ReleaseType(bump.value)))

        async def omit_merge_commit(commit: Commit) -> bool:
            if not commit.pull_request or not MERGE_MARKER_RE.match(commit.subject):
                return False
            if version_label_names().intersection(commit.labels):
                return False

            try:
                pr_commits = await shipit.provider.get_commits_for_pr(commit.pull_request.number)
            except ProviderError as e:
                logger.debug(f"Could not list commits of !{commit.pull_request.number}: {e}")
                return False

            return any(parse_bump(pr_commit.message) for pr_commit in pr_commits)

        def on_create_log_parse(log_parse: "LogParse") -> None:
            log_parse.hooks.parse_commit.tap(self.name, parse_commit)
            log_parse.hooks.omit_commit.tap(self.name, omit_merge_commit)

        shipit.hooks.on_create_log_parse.tap(self.name, on_create_log_parse)
