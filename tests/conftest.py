"""Shared fixtures."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from shipit.config import Config
from shipit.errors import ProviderError
from shipit.git import GitRepository
from shipit.models import (
    Commit,
    CommitAuthor,
    ProviderCommit,
    ProviderUser,
    PullRequest,
    PullRequestRef,
    ReleaseInfo,
)


class FakeProvider:
    """In-memory stand-in for the GitLab client."""

    def __init__(self):
        self.project_url = "https://gitlab.example.com/group/project"
        self.pull_requests: Dict[int, PullRequest] = {}
        self.pr_commits: Dict[int, List[ProviderCommit]] = {}
        self.commits: Dict[str, ProviderCommit] = {}
        self.users: Dict[str, ProviderUser] = {}
        self.merged_prs: List[PullRequest] = []
        self.latest_release: Optional[ReleaseInfo] = None
        self.labels: List[str] = []
        self.failing: set = set()

        self.created_labels = []
        self.updated_labels = []
        self.published = []
        self.comments = []

    def _check(self, stage):
        if stage in self.failing:
            raise ProviderError(f"{stage} failed", stage=stage, status=500)

    async def get_project_url(self):
        self._check("get_project_url")
        return self.project_url

    async def get_pull_request(self, number):
        self._check("get_pull_request")
        if number not in self.pull_requests:
            raise ProviderError("Not found", stage="get_pull_request", status=404)
        return self.pull_requests[number]

    async def get_commits_for_pr(self, number):
        self._check("get_commits_for_pr")
        return self.pr_commits.get(number, [])

    async def get_commit(self, sha):
        self._check("get_commit")
        return self.commits.get(sha)

    async def get_user_by_username(self, username):
        self._check("get_user_by_username")
        return self.users.get(username)

    async def get_user_by_email(self, email):
        self._check("get_user_by_email")
        return next((user for user in self.users.values() if user.email == email), None)

    async def search_merged_prs_since(self, since):
        self._check("search_merged_prs_since")
        return self.merged_prs

    async def get_latest_release_info(self):
        if self.latest_release is None:
            raise ProviderError("Project has no releases", stage="latest release", status=404)
        return self.latest_release

    async def get_latest_release(self):
        return self.latest_release.tag_name if self.latest_release else None

    async def get_project_labels(self):
        return self.labels

    async def create_label(self, label):
        self._check("create_label")
        self.created_labels.append(label.name)

    async def update_label(self, label):
        self._check("update_label")
        self.updated_labels.append(label.name)

    async def publish(self, release_notes, version, prerelease=False):
        self._check("publish")
        self.published.append((release_notes, version, prerelease))
        return {"tag_name": version}

    async def create_comment(self, number, body):
        self._check("create_comment")
        self.comments.append((number, body))


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def git():
    """GitRepository double; every coroutine method is an AsyncMock."""
    repo = MagicMock(spec=GitRepository)
    repo.get_log.return_value = []
    repo.is_ancestor.return_value = False
    repo.get_first_commit.return_value = "f1r5tc0mm1t"
    repo.get_commit_date.return_value = datetime(2024, 1, 1, tzinfo=timezone.utc)
    repo.get_sha.return_value = "abcd123"
    repo.get_current_branch.return_value = "main"
    repo.get_latest_tag_in_branch.return_value = "v1.2.3"
    repo.get_previous_tag_in_branch.return_value = "v1.2.2"
    return repo


@pytest.fixture
def config():
    return Config(gitlab_token="token", project="group/project", plugins=[])


@pytest.fixture
def logger():
    return logging.getLogger("shipit.tests")


@pytest.fixture
def make_commit():
    """Factory for enriched commits."""
    counter = iter(range(1, 10_000))

    def factory(
        subject: str = "Test Commit",
        labels=(),
        pr: Optional[int] = None,
        pr_body: Optional[str] = None,
        pr_base: Optional[str] = None,
        authors=None,
        hash: Optional[str] = None,
        body: str = "",
    ) -> Commit:
        sha = hash or f"{next(counter):040x}"
        if authors is None:
            authors = [CommitAuthor(name="Adam Dierkens", email="adam@dierkens.com", username="adierkens", resolved=True)]
        return Commit(
            hash=sha,
            subject=subject,
            body=body,
            author_name="Adam Dierkens",
            author_email="adam@dierkens.com",
            authors=tuple(authors),
            pull_request=PullRequestRef(number=pr, body=pr_body, base=pr_base) if pr else None,
            labels=tuple(labels),
        )

    return factory
