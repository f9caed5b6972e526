"""Interface shipit expects from the source-hosting service."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .config.labels import LabelDefinition
from .models import ProviderCommit, ProviderUser, PullRequest, ReleaseInfo


@runtime_checkable
class Provider(Protocol):
    """Async client for a hosting service.

    Read methods raise :class:`~shipit.errors.ProviderError` on failure.
    Lookups that find nothing return ``None`` instead of raising.
    """

    async def get_project_url(self) -> str: ...

    async def get_pull_request(self, number: int) -> PullRequest: ...

    async def get_commits_for_pr(self, number: int) -> List[ProviderCommit]: ...

    async def get_commit(self, sha: str) -> Optional[ProviderCommit]: ...

    async def get_user_by_username(self, username: str) -> Optional[ProviderUser]: ...

    async def get_user_by_email(self, email: str) -> Optional[ProviderUser]: ...

    async def search_merged_prs_since(self, since: datetime) -> List[PullRequest]: ...

    async def get_latest_release_info(self) -> ReleaseInfo: ...

    async def get_latest_release(self) -> Optional[str]: ...

    async def get_project_labels(self) -> List[str]: ...

    async def create_label(self, label: LabelDefinition) -> None: ...

    async def update_label(self, label: LabelDefinition) -> None: ...

    async def publish(self, release_notes: str, version: str, prerelease: bool = False) -> Dict[str, Any]: ...

    async def create_comment(self, number: int, body: str) -> None: ...
