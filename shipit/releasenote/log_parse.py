"""Turn raw git log entries into enriched commits."""

import asyncio
import logging
from typing import Iterable, List, Optional, Union

from ..hooks import LogParseHooks
from ..models import Commit, RawCommit


class LogParse:
    """Per-commit transform pipeline.

    Enrichment steps tap ``hooks.parse_commit`` (waterfall, in tap order);
    predicates tap ``hooks.omit_commit`` (bail, first ``True`` omits).
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.hooks = LogParseHooks()
        self.logger = logger or logging.getLogger(__name__)

    async def normalize_commit(self, commit: Union[RawCommit, Commit]) -> Optional[Commit]:
        """Run ``commit`` through every parse step.

        Returns:
            The enriched commit, or None when an omission predicate rejects it
        """
        if isinstance(commit, RawCommit):
            commit = Commit.from_raw(commit)

        extended = await self.hooks.parse_commit.call(commit)
        if await self.hooks.omit_commit.call(extended):
            self.logger.debug(f"Omitting commit {extended.short_hash}: {extended.subject}")
            return None

        return extended

    async def normalize_commits(self, commits: Iterable[Union[RawCommit, Commit]]) -> List[Commit]:
        """Normalize all commits concurrently, keeping input order and dropping omitted ones."""
        results = await asyncio.gather(*(self.normalize_commit(commit) for commit in commits))
        return [commit for commit in results if commit is not None]
