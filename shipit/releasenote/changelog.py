"""Render release notes from classified commits."""

import asyncio
import logging
import re
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from ..config.labels import (
    BUMP_ORDER,
    RELEASED_LABEL,
    LabelDefinition,
    ReleaseType,
    first_label_name,
)
from ..hooks import ChangelogHooks
from ..models import INVALID_EMAIL_USERNAME, Commit, CommitAuthor


RELEASE_NOTES_TITLE_RE = re.compile(r"^#{0,5} *release notes$", re.IGNORECASE)

PUSH_TO_BASE_BRANCH_LABEL = "pushToBaseBranch"

BOT_AUTHORS = ("renovate-pro[bot]", "renovate-bot", "dependabot[bot]")

AuthorPair = Tuple[Commit, CommitAuthor]


def header_depth(line: str) -> int:
    """Number of ``#`` characters on a markdown line."""
    return line.count("#")


def extract_release_notes(body: str) -> Optional[str]:
    """Pull the "Release Notes" block out of a PR description.

    The block starts at a line like ``## Release Notes`` and runs until the
    next heading at the same or a shallower depth.

    Returns:
        The block's text without its heading, or None when the body has none
    """
    lines = [line.rstrip("\r") for line in body.split("\n")]
    start = next((i for i, line in enumerate(lines) if RELEASE_NOTES_TITLE_RE.match(line)), None)
    if start is None:
        return None

    depth = header_depth(lines[start])
    notes = []
    for line in lines[start:]:
        is_title = bool(RELEASE_NOTES_TITLE_RE.match(line))
        if line.startswith("#") and header_depth(line) <= depth and not is_title:
            break
        if not is_title:
            notes.append(line)

    return "\n".join(notes).strip()


class ChangelogOptions(BaseModel):
    """What the renderer needs to know about the project."""

    #: Web URL of the project, used for merge request and user links.
    base_url: str
    labels: List[LabelDefinition]
    base_branch: str = "main"
    prerelease_branches: List[str] = Field(default_factory=lambda: ["next"])
    #: Path segment between ``base_url`` and a merge request number.
    pr_path: str = "-/merge_requests"


class Changelog:
    """Builds the markdown body of a release.

    Output layout, sections separated by a blank line:

    1. anything ``add_to_body`` taps contribute
    2. ``### Release Notes`` collected from PR descriptions
    3. one section per changelog title, highest bump first
    4. ``#### Authors: N``
    """

    def __init__(self, logger: logging.Logger, options: ChangelogOptions):
        self.logger = logger
        self.hooks = ChangelogHooks()

        labels = list(options.labels)
        if not any(label.name == PUSH_TO_BASE_BRANCH_LABEL for label in labels):
            labels.append(LabelDefinition(
                name=PUSH_TO_BASE_BRANCH_LABEL,
                changelog_title=f"⚠️ Pushed to {options.base_branch}",
                description="N/A",
                release_type=ReleaseType.PATCH,
            ))
        self.options = options.model_copy(update={"labels": labels})

        self._authors: List[AuthorPair] = []

    def load_default_hooks(self) -> None:
        """Tap the default renderers. Call after plugins have tapped theirs."""
        self.hooks.render_changelog_author.tap("Default", self.create_user_link)
        self.hooks.render_changelog_author_line.tap("Default", _default_author_line)
        self.hooks.render_changelog_line.tap("Default", lambda pair: pair)
        self.hooks.render_changelog_title.tap(
            "Default", lambda label, titles: f"#### {titles.get(label, label)}\n"
        )
        self.hooks.omit_release_notes.tap("Bots", _is_bot_commit)

    async def generate_release_notes(self, commits: List[Commit]) -> str:
        """Render the release notes for ``commits``. Empty input renders nothing."""
        if not commits:
            return ""

        self.logger.debug(f"Generating release notes for {len(commits)} commits")
        split = self.split_commits(commits)
        self.logger.debug(f"Split commits into groups: {list(split)}")

        sections: List[str] = []

        extra = await self.hooks.add_to_body.call([], commits) or []
        sections.extend(note for note in extra if note)

        notes_section = await self.create_release_notes_section(commits)
        if notes_section:
            sections.append(notes_section)

        self._authors = self.get_all_authors(split)
        sections.extend(await self.create_label_sections(split))

        author_section = await self.create_author_section()
        if author_section:
            sections.append(author_section)

        return "\n\n".join(sections)

    def create_user_link(self, author: CommitAuthor, commit: Commit, options: Optional[ChangelogOptions] = None) -> Optional[str]:
        """Markdown link to ``author``'s profile, or their email when they have no username."""
        if author.username == INVALID_EMAIL_USERNAME:
            return None

        if author.username:
            parts = urlsplit(self.options.base_url)
            origin = f"{parts.scheme}://{parts.netloc}" if parts.netloc else self.options.base_url.rstrip("/")
            return f"[@{author.username}]({origin}/{author.username})"

        return author.email or commit.author_email

    def split_commits(self, commits: List[Commit]) -> Dict[str, List[Commit]]:
        """File each commit under exactly one titled label.

        Commits that match no titled label, or whose only label is the
        ``released`` marker, are filed under the first patch label.
        """
        order = [release_type.value for release_type in BUMP_ORDER]

        def precedence(label: LabelDefinition) -> int:
            value = label.release_type.value if label.release_type else ""
            return order.index(value) if value in order else len(order)

        sections = sorted((label for label in self.options.labels if label.changelog_title), key=precedence)
        section_names = {label.name for label in sections}
        default_patch = first_label_name(self.options.labels, ReleaseType.PATCH)

        remaining = []
        for commit in commits:
            untitled = not section_names.intersection(commit.labels)
            only_released = commit.labels == (RELEASED_LABEL,)
            remaining.append(commit.with_labels(default_patch) if untitled or only_released else commit)

        split: Dict[str, List[Commit]] = {}
        for label in sections:
            matched = [commit for commit in remaining if label.name in commit.labels]
            if matched:
                split[label.name] = matched
                remaining = [commit for commit in remaining if label.name not in commit.labels]

        return split

    @staticmethod
    def get_all_authors(split: Dict[str, List[Commit]]) -> List[AuthorPair]:
        """Every valid (commit, author) pair, platform-resolved authors first."""
        pairs = [
            (commit, author)
            for section in split.values()
            for commit in section
            for author in commit.authors
            if author.is_valid
        ]
        return sorted(pairs, key=lambda pair: 0 if pair[1].resolved else 1)

    def _known_author(self, author: CommitAuthor) -> CommitAuthor:
        for _, known in self._authors:
            if (
                (known.name and author.name and known.name == author.name)
                or (known.email and author.email and known.email == author.email)
                or (known.username and author.username and known.username == author.username)
            ):
                return known
        return author

    async def create_user_link_list(self, commit: Commit) -> str:
        links = await asyncio.gather(*(
            self.hooks.render_changelog_author.call(self._known_author(author), commit, self.options)
            for author in commit.authors
        ))
        return " ".join(dict.fromkeys(link for link in links if link))

    async def generate_commit_note(self, commit: Commit) -> str:
        """Render ``- subject [#N](url) (authors)``."""
        parts = [f"- {commit.subject.strip()}"]

        if commit.pull_request and commit.pull_request.number:
            number = commit.pull_request.number
            url = f"{self.options.base_url.rstrip('/')}/{self.options.pr_path.strip('/')}/{number}"
            parts.append(f"[#{number}]({url})")

        users = await self.create_user_link_list(commit)
        if users:
            parts.append(f"({users})")

        return " ".join(parts)

    def _on_prerelease_branch(self, commit: Commit) -> bool:
        base = commit.pull_request.base if commit.pull_request else None
        if not base:
            return False
        return base.rsplit("/", 1)[-1] in self.options.prerelease_branches

    async def _render_line(self, commit: Commit) -> Optional[str]:
        # Prerelease work keeps its release notes but gets no changelog line.
        if self._on_prerelease_branch(commit):
            return None

        note = await self.generate_commit_note(commit)
        _, line = await self.hooks.render_changelog_line.call((commit, note))
        return line

    async def _render_section(self, label: str, commits: List[Commit], titles: Dict[str, str]) -> Tuple[str, List[str]]:
        title = await self.hooks.render_changelog_title.call(label, titles)
        lines = await asyncio.gather(*(self._render_line(commit) for commit in commits))
        unique = list(dict.fromkeys(line for line in lines if line))
        return title, sorted(unique, key=lambda line: len(line.split("\n")))

    async def create_label_sections(self, split: Dict[str, List[Commit]]) -> List[str]:
        titles = {label.name: label.changelog_title for label in self.options.labels if label.changelog_title}
        rendered = await asyncio.gather(*(
            self._render_section(label, commits, titles) for label, commits in split.items()
        ))

        # Labels sharing a title share a section.
        merged: Dict[str, List[str]] = {}
        for title, lines in rendered:
            merged.setdefault(title, []).extend(lines)

        return ["\n".join([title, *lines]) for title, lines in merged.items() if lines]

    async def create_author_section(self) -> Optional[str]:
        full_data = [author for _, author in self._authors if author.resolved]

        async def render(commit: Commit, author: CommitAuthor) -> Optional[str]:
            info = next(
                (
                    known
                    for known in full_data
                    if (author.name and known.name == author.name)
                    or (author.email and known.email == author.email)
                ),
                author,
            )
            user = await self.hooks.render_changelog_author.call(info, commit, self.options)
            return await self.hooks.render_changelog_author_line.call(info, user)

        entries = await asyncio.gather(*(render(commit, author) for commit, author in self._authors))
        authors: Set[str] = {entry for entry in entries if entry}
        if not authors:
            return None

        lines = sorted(authors, key=lambda entry: (entry.casefold(), entry))
        return f"#### Authors: {len(authors)}\n\n" + "\n".join(lines)

    async def create_release_notes_section(self, commits: List[Commit]) -> Optional[str]:
        """Collect PR "Release Notes" blocks, one per PR, in commit order."""
        omitted = await asyncio.gather(*(self.hooks.omit_release_notes.call(commit) for commit in commits))

        visited: Set[int] = set()
        section = ""
        for commit, omit in zip(commits, omitted):
            pr = commit.pull_request
            if omit or not pr or not pr.body or pr.number in visited:
                continue

            notes = extract_release_notes(pr.body)
            if notes is None:
                continue

            visited.add(pr.number)
            section += f"_From #{pr.number}_\n\n{notes}\n\n"

        if not section:
            return None
        return f"### Release Notes\n\n{section}---"


def _default_author_line(author: CommitAuthor, user: Optional[str]) -> Optional[str]:
    if not user:
        return None
    return f"- {author.name} ({user})" if author.name else f"- {user}"


def _is_bot_commit(commit: Commit) -> bool:
    return any(
        (author.name and author.name in BOT_AUTHORS) or (author.username and author.username in BOT_AUTHORS)
        for author in commit.authors
    )
