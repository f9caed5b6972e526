"""Data passed between the git reader, the provider and the release pipeline."""

from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from .config.labels import unique_labels


#: Username GitHub-style hosts report for commits whose email matches no account.
INVALID_EMAIL_USERNAME = "invalid-email-address"


class RawCommit(BaseModel):
    """A commit as the git log reports it."""

    model_config = ConfigDict(frozen=True)

    hash: str
    subject: str
    body: str = ""
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    pr_number: Optional[int] = None
    #: Branch named by the merge message, e.g. ``owner/next``.
    pr_base: Optional[str] = None


class CommitAuthor(BaseModel):
    """One identity that contributed to a commit."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    hash: Optional[str] = None
    #: True when the identity came back from a platform user lookup.
    resolved: bool = False

    @property
    def is_valid(self) -> bool:
        if self.username == INVALID_EMAIL_USERNAME:
            return False
        return bool(self.name or self.email or self.username)


class PullRequestRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    base: Optional[str] = None
    body: Optional[str] = None


class Commit(BaseModel):
    """A commit enriched with authors, PR information and labels.

    Instances are immutable; every enrichment step returns a copy.
    """

    model_config = ConfigDict(frozen=True)

    hash: str
    subject: str
    body: str = ""
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    authors: Tuple[CommitAuthor, ...] = ()
    pull_request: Optional[PullRequestRef] = None
    labels: Tuple[str, ...] = ()

    @field_validator("labels", mode="before")
    @classmethod
    def collapse_duplicates(cls, value: Any) -> Tuple[str, ...]:
        return unique_labels(value or ())

    @classmethod
    def from_raw(cls, raw: RawCommit) -> "Commit":
        pull_request = None
        if raw.pr_number:
            pull_request = PullRequestRef(number=raw.pr_number, base=raw.pr_base)

        authors: Tuple[CommitAuthor, ...] = ()
        if raw.author_name or raw.author_email:
            authors = (CommitAuthor(name=raw.author_name, email=raw.author_email, hash=raw.hash),)

        return cls(
            hash=raw.hash,
            subject=raw.subject,
            body=raw.body,
            author_name=raw.author_name,
            author_email=raw.author_email,
            authors=authors,
            pull_request=pull_request,
        )

    @property
    def short_hash(self) -> str:
        return self.hash[:8]

    def with_labels(self, *labels: str, first: bool = False) -> "Commit":
        """Copy with ``labels`` added. ``first`` puts them ahead of the current ones."""
        merged = (*labels, *self.labels) if first else (*self.labels, *labels)
        return self.model_copy(update={"labels": unique_labels(merged)})

    def with_authors(self, authors: Iterable[CommitAuthor]) -> "Commit":
        return self.model_copy(update={"authors": tuple(authors)})

    def with_pull_request(self, pull_request: Optional[PullRequestRef]) -> "Commit":
        return self.model_copy(update={"pull_request": pull_request})


class ProviderUser(BaseModel):
    """A platform account."""

    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    web_url: Optional[str] = None


class ProviderCommit(BaseModel):
    """A commit as the hosting service reports it."""

    sha: str
    message: str = ""
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    #: Platform login of the author, when the service knows it.
    author_username: Optional[str] = None


class PullRequest(BaseModel):
    """A pull request (GitLab: merge request)."""

    number: int
    title: str = ""
    body: Optional[str] = None
    labels: List[str] = []
    base: Optional[str] = None
    author_username: Optional[str] = None
    merge_commit_sha: Optional[str] = None
    web_url: Optional[str] = None
    merged_at: Optional[datetime] = None
    head_sha: Optional[str] = None


class ReleaseInfo(BaseModel):
    tag_name: str
    published_at: Optional[datetime] = None
    description: str = ""


class ReleaseContext(BaseModel):
    """What ``after_release`` taps receive."""

    last_release: str
    new_version: Optional[str] = None
    commits: List[Commit] = []
    release_notes: str = ""
    response: Any = None


class ShipResult(BaseModel):
    """Outcome of a publish, passed to ``after_ship_it`` taps."""

    new_version: str
    commits: List[Commit] = []
    context: Optional[ReleaseContext] = None
