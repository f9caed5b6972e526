"""GitLab client wrapper using python-gitlab library."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import gitlab
import requests
from dateutil import parser as date_parser
from gitlab.v4.objects import Project, ProjectMergeRequest

from ..config import Config
from ..config.labels import LabelDefinition
from ..errors import ProviderError
from ..models import ProviderCommit, ProviderUser, PullRequest, ReleaseInfo


T = TypeVar("T")

DEFAULT_LABEL_COLOR = "#ededed"


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    return date_parser.isoparse(value) if value else None


class GitLabClient:
    """Async provider backed by the blocking python-gitlab API.

    Each call runs in a worker thread so that the event loop can keep many
    lookups in flight. A single ``gitlab.Gitlab`` session is shared.
    """

    def __init__(self, config: Config, logger: Optional[logging.Logger] = None, gl: Optional[gitlab.Gitlab] = None):
        """Initialize GitLab client.

        Args:
            config: Configuration object containing GitLab settings
            logger: Logger instance
            gl: Pre-built python-gitlab session, mainly for tests
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self.gl = gl or gitlab.Gitlab(
            url=config.gitlab_host,
            private_token=config.gitlab_token,
            timeout=300
        )

        self._project: Optional[Project] = None

    def _get_project(self) -> Project:
        """Get project instance with caching."""
        if self._project is None:
            if not self.config.project:
                raise ProviderError("No GitLab project configured", stage="get project")
            self._project = self.gl.projects.get(self.config.project)
        return self._project

    async def _call(self, stage: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except gitlab.GitlabError as e:
            raise ProviderError(
                f"GitLab request failed: {e.error_message}", stage=stage, status=e.response_code
            ) from e
        except requests.RequestException as e:
            raise ProviderError(f"GitLab unreachable: {e}", stage=stage) from e

    # Conversions

    @staticmethod
    def _merge_request_to_pull_request(mr: ProjectMergeRequest) -> PullRequest:
        author = getattr(mr, 'author', None) or {}
        return PullRequest(
            number=mr.iid,
            title=mr.title,
            body=mr.description or '',
            labels=list(mr.labels or []),
            base=mr.target_branch,
            author_username=author.get('username'),
            merge_commit_sha=getattr(mr, 'merge_commit_sha', None) or getattr(mr, 'squash_commit_sha', None),
            web_url=mr.web_url,
            merged_at=_parse_date(getattr(mr, 'merged_at', None)),
            head_sha=getattr(mr, 'sha', None),
        )

    @staticmethod
    def _to_user(user: Any) -> ProviderUser:
        return ProviderUser(
            username=user.username,
            name=getattr(user, 'name', None),
            email=getattr(user, 'public_email', None) or None,
            web_url=getattr(user, 'web_url', None),
        )

    @staticmethod
    def _to_commit(commit: Any) -> ProviderCommit:
        return ProviderCommit(
            sha=commit.id,
            message=commit.message or '',
            author_name=commit.author_name,
            author_email=commit.author_email,
        )

    # Blocking implementations

    def _project_url(self) -> str:
        return self._get_project().web_url

    def _pull_request(self, number: int) -> PullRequest:
        mr = self._get_project().mergerequests.get(number)
        return self._merge_request_to_pull_request(mr)

    def _commits_for_pr(self, number: int) -> List[ProviderCommit]:
        mr = self._get_project().mergerequests.get(number, lazy=True)
        return [self._to_commit(commit) for commit in mr.commits(get_all=True)]

    def _commit(self, sha: str) -> Optional[ProviderCommit]:
        try:
            return self._to_commit(self._get_project().commits.get(sha))
        except gitlab.GitlabGetError:
            return None

    def _user_by_username(self, username: str) -> Optional[ProviderUser]:
        users = self.gl.users.list(username=username, get_all=False)
        return self._to_user(users[0]) if users else None

    def _user_by_email(self, email: str) -> Optional[ProviderUser]:
        users = self.gl.users.list(search=email, get_all=False)
        return self._to_user(users[0]) if users else None

    def _merged_since(self, since: datetime) -> List[PullRequest]:
        mrs = self._get_project().mergerequests.list(
            state='merged',
            updated_after=since.isoformat(),
            get_all=True,
            per_page=100,
        )

        result = []
        for mr in mrs:
            pull_request = self._merge_request_to_pull_request(mr)
            if pull_request.merged_at and pull_request.merged_at < since:
                continue
            result.append(pull_request)
        return result

    def _latest_release_info(self) -> ReleaseInfo:
        releases = self._get_project().releases.list(order_by='released_at', sort='desc', get_all=False, per_page=1)
        if not releases:
            raise ProviderError("Project has no releases", stage="latest release", status=404)

        release = releases[0]
        return ReleaseInfo(
            tag_name=release.tag_name,
            published_at=_parse_date(getattr(release, 'released_at', None) or getattr(release, 'created_at', None)),
            description=getattr(release, 'description', '') or '',
        )

    def _labels(self) -> List[str]:
        return [label.name for label in self._get_project().labels.list(get_all=True)]

    def _create_label(self, label: LabelDefinition) -> None:
        self._get_project().labels.create({
            'name': label.name,
            'color': label.color or DEFAULT_LABEL_COLOR,
            'description': label.description or '',
        })

    def _update_label(self, label: LabelDefinition) -> None:
        data: Dict[str, Any] = {'description': label.description or ''}
        if label.color:
            data['color'] = label.color
        self._get_project().labels.update(label.name, data)

    def _publish(self, release_notes: str, version: str) -> Dict[str, Any]:
        release = self._get_project().releases.create({
            'tag_name': version,
            'name': version,
            'description': release_notes,
        })
        return {'tag_name': release.tag_name, 'name': getattr(release, 'name', version)}

    def _comment(self, number: int, body: str) -> None:
        mr = self._get_project().mergerequests.get(number, lazy=True)
        mr.notes.create({'body': body})

    # Provider interface

    async def get_project_url(self) -> str:
        return await self._call("get project", self._project_url)

    async def get_pull_request(self, number: int) -> PullRequest:
        """Get merge request by IID.

        Args:
            number: Merge request internal ID

        Returns:
            The merge request as a provider-neutral PullRequest
        """
        return await self._call(f"get pull request !{number}", self._pull_request, number)

    async def get_commits_for_pr(self, number: int) -> List[ProviderCommit]:
        return await self._call(f"get commits for !{number}", self._commits_for_pr, number)

    async def get_commit(self, sha: str) -> Optional[ProviderCommit]:
        return await self._call(f"get commit {sha[:8]}", self._commit, sha)

    async def get_user_by_username(self, username: str) -> Optional[ProviderUser]:
        return await self._call("get user by username", self._user_by_username, username)

    async def get_user_by_email(self, email: str) -> Optional[ProviderUser]:
        return await self._call("get user by email", self._user_by_email, email)

    async def search_merged_prs_since(self, since: datetime) -> List[PullRequest]:
        """List merge requests merged at or after ``since``."""
        return await self._call("search merged pull requests", self._merged_since, since)

    async def get_latest_release_info(self) -> ReleaseInfo:
        return await self._call("latest release", self._latest_release_info)

    async def get_latest_release(self) -> Optional[str]:
        """Tag name of the latest release, or None when the project has none."""
        try:
            info = await self.get_latest_release_info()
        except ProviderError as e:
            if e.status == 404:
                return None
            raise
        return info.tag_name

    async def get_project_labels(self) -> List[str]:
        return await self._call("list labels", self._labels)

    async def create_label(self, label: LabelDefinition) -> None:
        self.logger.debug(f"Creating label {label.name}")
        await self._call(f"create label {label.name}", self._create_label, label)

    async def update_label(self, label: LabelDefinition) -> None:
        self.logger.debug(f"Updating label {label.name}")
        await self._call(f"update label {label.name}", self._update_label, label)

    async def publish(self, release_notes: str, version: str, prerelease: bool = False) -> Dict[str, Any]:
        """Create a GitLab release for ``version``.

        GitLab has no prerelease flag on releases; prereleases are told apart
        by their version string.
        """
        self.logger.info(f"Publishing {'prerelease' if prerelease else 'release'} {version}")
        return await self._call(f"publish {version}", self._publish, release_notes, version)

    async def create_comment(self, number: int, body: str) -> None:
        await self._call(f"comment on !{number}", self._comment, number, body)
