"""Release manager: commit ranges, enrichment, bump calculation and changelog upkeep."""

import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Config
from ..config.labels import LabelDefinition, ReleaseType, get_version_map
from ..errors import ProviderError, PublishError
from ..git import GitRepository
from ..hooks import ReleaseHooks
from ..lazy import Lazy
from ..models import INVALID_EMAIL_USERNAME, Commit, CommitAuthor, PullRequest, PullRequestRef
from ..provider import Provider
from ..semver import SemVer, calculate_bump, inc_version
from .changelog import Changelog, ChangelogOptions
from .log_parse import LogParse


VERSION_RE = re.compile(r"\d+\.\d+\.\d+")


class Release:
    """Everything between "here are two refs" and "here are the release notes"."""

    def __init__(
        self,
        git: GitRepository,
        provider: Provider,
        config: Config,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the release manager.

        Args:
            git: Local repository
            provider: Hosting service client, shared by every lookup
            config: Loaded configuration
            logger: Logger instance
        """
        self.git = git
        self.provider = provider
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.hooks = ReleaseHooks()
        self.version_map = get_version_map(config.labels)

        self._log_parse: Lazy[LogParse] = Lazy(self._create_log_parse)
        self._prs_since_last_release: Lazy[List[PullRequest]] = Lazy(self._get_prs_since_last_release)
        self._changelogs: Dict[Optional[SemVer], Lazy[Changelog]] = {}

    # Changelog

    async def make_changelog(self, version: Optional[SemVer] = None) -> Changelog:
        """The changelog renderer for ``version``, built once per bump."""
        if version not in self._changelogs:
            self._changelogs[version] = Lazy(lambda: self._create_changelog(version))
        return await self._changelogs[version].get()

    async def _create_changelog(self, version: Optional[SemVer]) -> Changelog:
        try:
            base_url = await self.provider.get_project_url()
        except ProviderError as e:
            self.logger.warning(f"Could not get project URL, building links from config: {e}")
            base_url = f"{self.config.gitlab_host.rstrip('/')}/{self.config.project or ''}"

        changelog = Changelog(self.logger, ChangelogOptions(
            base_url=base_url,
            labels=self.config.labels,
            base_branch=self.config.base_branch,
            prerelease_branches=self.config.prerelease_branches,
        ))

        await self.hooks.on_create_changelog.call(changelog, version)
        changelog.load_default_hooks()
        return changelog

    async def generate_release_notes(self, start: str, end: str = "HEAD", version: Optional[SemVer] = None) -> str:
        """Generate a changelog from a range of commits.

        Args:
            start: sha or tag to start the changelog from
            end: sha or tag to end the changelog at
            version: The bump being released, passed to ``on_create_changelog`` taps

        Returns:
            Markdown release notes
        """
        commits = await self.get_commits_in_release(start, end)
        changelog = await self.make_changelog(version)
        return await changelog.generate_release_notes(commits)

    async def update_changelog_file(self, title: str, release_notes: str, changelog_path: str) -> None:
        """Prepend ``release_notes`` to the changelog file and stage it."""
        date = datetime.now().strftime("%a %b %d %Y")
        heading = f"# {title} ({date})" if title else f"# ({date})"
        new_changelog = f"{heading}\n\n{release_notes}"

        path = Path(changelog_path)
        try:
            if path.exists():
                self.logger.debug("Old changelog exists, prepending changes.")
                new_changelog = f"{new_changelog}\n\n---\n\n{path.read_text(encoding='utf-8')}"
            path.write_text(new_changelog, encoding="utf-8")
        except OSError as e:
            raise PublishError.wrap(e, "update changelog file") from e

        self.logger.debug(f"Wrote new changelog to {changelog_path}")
        await self.git.add(changelog_path)

    async def add_to_changelog(self, release_notes: str, last_release: str, current_version: str) -> None:
        """Prepend a set of release notes to the changelog file.

        Args:
            release_notes: Release notes to prepend
            last_release: Last released version, or a commit sha when nothing was released yet
            current_version: Current version of the code
        """
        self.logger.debug("Adding new changes to changelog.")
        title = await self.hooks.create_changelog_title.call(last_release, current_version)
        if not title:
            title = await self._default_changelog_title(last_release, current_version)

        await self.update_changelog_file(title or "", release_notes, self.config.changelog_file)

    async def _default_changelog_title(self, last_release: str, current_version: str) -> str:
        if VERSION_RE.search(last_release):
            version = await self.calc_next_version(last_release)
        else:
            # last_release is a sha, nothing has been released yet
            bump = await self.get_semver_bump(last_release)
            version = inc_version(current_version, bump)

        self.logger.debug(f"Calculated next version to be: {version}")
        if not version:
            return ""
        if self.config.no_version_prefix or version.startswith("v"):
            return version
        return f"v{version}"

    # Commits

    async def get_commits(self, start: str, end: str = "HEAD") -> List[Commit]:
        """Enriched commits in ``start..end`` that are not already released."""
        self.logger.debug(f"Getting commits from {start} to {end}")
        gitlog = await self.git.get_log(start, end)

        log_parse = await self._log_parse.get()
        commits = await log_parse.normalize_commits(gitlog)

        released = await asyncio.gather(*(self._is_released(commit, start) for commit in commits))
        return [commit for commit, done in zip(commits, released) if not done]

    async def _is_released(self, commit: Commit, start: str) -> bool:
        try:
            released = await self.git.is_ancestor(commit.hash, start)
        except ProviderError as e:
            self.logger.debug(f"Could not check ancestry of {commit.short_hash}: {e}")
            return False

        if released:
            self.logger.debug(f'Commit already released omitting: "{commit.short_hash}" with message "{commit.subject}"')
        return released

    async def get_commits_in_release(self, start: str, end: str = "HEAD") -> List[Commit]:
        """Commits that belong in the release notes.

        Drops commits that only appear because they are part of a listed PR
        and commits marked ``[skip ci]``.
        """
        all_commits = await self.get_commits(start, end)

        async def pr_commit_hashes(commit: Commit) -> List[str]:
            try:
                pr_commits = await self.provider.get_commits_for_pr(commit.pull_request.number)
            except ProviderError as e:
                self.logger.warning(f"Could not list commits of !{commit.pull_request.number}: {e}")
                return []
            return [pr_commit.sha for pr_commit in pr_commits]

        hash_lists = await asyncio.gather(*(
            pr_commit_hashes(commit) for commit in all_commits if commit.pull_request
        ))
        pr_hashes = {sha for hashes in hash_lists for sha in hashes}

        return [
            commit
            for commit in all_commits
            if (commit.pull_request or commit.hash not in pr_hashes) and "[skip ci]" not in commit.subject
        ]

    # Labels and versions

    async def add_labels_to_project(self, labels: List[LabelDefinition], dry_run: bool = False) -> List[str]:
        """Create or update the configured labels on the project.

        Returns:
            Names of the labels that were (or would have been) written
        """
        old_labels = {name.lower() for name in await self.provider.get_project_labels() or []}
        only_release = self.config.only_publish_with_release_label

        labels_to_create = [
            label
            for label in labels
            if not (label.release_type == ReleaseType.RELEASE and not only_release)
            and not (label.release_type == ReleaseType.SKIP and only_release)
        ]

        if not dry_run:
            async def write(label: LabelDefinition) -> None:
                if label.name.lower() in old_labels:
                    await self.provider.update_label(label)
                else:
                    await self.provider.create_label(label)

            try:
                await asyncio.gather(*(write(label) for label in labels_to_create))
            except ProviderError as e:
                raise PublishError(f"Could not write labels: {e.message}", stage="create labels", status=e.status) from e

        names = [label.name for label in labels_to_create]
        if names:
            state = "Would have created" if dry_run else "Created"
            self.logger.info(f"{state} labels: {', '.join(names)}")
        else:
            state = "would have been" if dry_run else "were"
            self.logger.info(f"No labels {state} created, they must have already been present on your project.")

        if not dry_run:
            project_url = await self.provider.get_project_url()
            self.logger.info(f"You can see these, and more at {project_url}/-/labels")

        return names

    async def get_semver_bump(self, start: str, end: str = "HEAD") -> SemVer:
        """Calculate the version bump over a range of commits from their labels."""
        commits = await self.get_commits(start, end)
        labels = [commit.labels for commit in commits]

        self.logger.debug(f"Calculating SEMVER bump using: {labels}")
        result = calculate_bump(labels, self.version_map, self.config.only_publish_with_release_label)
        self.logger.info(f"Calculated SEMVER bump: {result}")
        return result

    async def calc_next_version(self, last_tag: str) -> Optional[str]:
        """Given a tag get the next incremented version."""
        bump = await self.get_semver_bump(last_tag)
        return inc_version(last_tag, bump)

    # Enrichment

    async def _create_log_parse(self) -> LogParse:
        log_parse = LogParse(self.logger)
        log_parse.hooks.parse_commit.tap("Author Info", self.attach_author)
        log_parse.hooks.parse_commit.tap("PR Information", self.add_pr_info)
        log_parse.hooks.parse_commit.tap("PR Commits", self.recover_rebased_pr)

        await self.hooks.on_create_log_parse.call(log_parse)
        return log_parse

    async def _get_prs_since_last_release(self) -> List[PullRequest]:
        try:
            since = (await self.provider.get_latest_release_info()).published_at
        except ProviderError:
            try:
                since = await self.git.get_commit_date(await self.git.get_first_commit())
            except ProviderError as e:
                self.logger.warning(f"Could not date the last release: {e}")
                return []

        if since is None:
            return []

        try:
            return await self.provider.search_merged_prs_since(since)
        except ProviderError as e:
            self.logger.warning(f"Could not search merged pull requests: {e}")
            return []

    async def _lookup_user(self, username: Optional[str] = None, email: Optional[str] = None):
        try:
            if username:
                return await self.provider.get_user_by_username(username)
            if email:
                return await self.provider.get_user_by_email(email)
        except ProviderError as e:
            self.logger.debug(f"User lookup failed for {username or email}: {e}")
        return None

    async def _resolve_author(
        self,
        sha: str,
        name: Optional[str],
        email: Optional[str],
        username: Optional[str] = None,
    ) -> CommitAuthor:
        user = await self._lookup_user(username=username, email=None if username else email)
        if user is None or user.username == INVALID_EMAIL_USERNAME:
            return CommitAuthor(name=name, email=email, username=username, hash=sha)

        return CommitAuthor(
            name=user.name or name,
            email=user.email or email,
            username=user.username,
            hash=sha,
            resolved=True,
        )

    async def attach_author(self, commit: Commit) -> Commit:
        """Resolve who wrote ``commit``: every author in its PR, or its own author."""
        if commit.pull_request:
            try:
                pr_commits = await self.provider.get_commits_for_pr(commit.pull_request.number)
            except ProviderError as e:
                self.logger.warning(f"Author Info skipped for !{commit.pull_request.number}: {e}")
                return commit

            authors = await asyncio.gather(*(
                self._resolve_author(pr_commit.sha, pr_commit.author_name, pr_commit.author_email, pr_commit.author_username)
                for pr_commit in pr_commits
            ))
            return commit.with_authors(authors) if authors else commit

        try:
            response = await self.provider.get_commit(commit.hash)
        except ProviderError as e:
            self.logger.debug(f"Could not fetch commit {commit.short_hash}: {e}")
            response = None

        username = response.author_username if response else None
        if not username and not commit.author_email:
            return commit

        author = await self._resolve_author(commit.hash, commit.author_name, commit.author_email, username)
        self.logger.debug(f"Found author: {author.username} {author.email} {author.name}")
        return commit.with_authors([author])

    async def add_pr_info(self, commit: Commit) -> Commit:
        """Merge the PR's labels and body into ``commit`` and credit whoever opened it."""
        if not commit.pull_request:
            return commit

        try:
            pr = await self.provider.get_pull_request(commit.pull_request.number)
        except ProviderError as e:
            self.logger.warning(f"PR Information skipped for !{commit.pull_request.number}: {e}")
            return commit

        modified = commit.with_labels(*pr.labels, first=True).with_pull_request(
            commit.pull_request.model_copy(update={"body": pr.body})
        )

        opener = pr.author_username
        if opener and not any(author.username == opener for author in modified.authors):
            user = await self._lookup_user(username=opener)
            if user:
                modified = modified.with_authors([
                    *modified.authors,
                    CommitAuthor(name=user.name, email=user.email, username=user.username, resolved=True),
                ])

        return modified

    async def recover_rebased_pr(self, commit: Commit) -> Commit:
        """Attach the PR whose merge commit is ``commit`` when the message lost the reference."""
        if commit.pull_request:
            return commit

        pull_requests = await self._prs_since_last_release.get()
        match = next((pr for pr in pull_requests if pr.merge_commit_sha == commit.hash), None)
        if match is None:
            return commit

        return commit.with_labels(*match.labels, first=True).with_pull_request(
            PullRequestRef(number=match.number, body=match.body)
        )
