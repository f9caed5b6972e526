"""Read and write the local git repository."""

import asyncio
import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple

from dateutil import parser as date_parser

from ..errors import ProviderError, PublishError
from ..models import RawCommit


FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = f"%H{FIELD_SEP}%an{FIELD_SEP}%ae{FIELD_SEP}%B{RECORD_SEP}"

# "Merge pull request #12 from owner/branch"
MERGE_PR_RE = re.compile(r"^Merge pull request #(\d+) from (\S+)")
# "Merge branch 'feature' into 'main'" ... "See merge request group/project!12"
MERGE_BRANCH_RE = re.compile(r"^Merge branch '([^']+)' into '([^']+)'")
MERGE_REQUEST_REF_RE = re.compile(r"See merge request \S*!(\d+)")
# "Add a thing (#12)"
SQUASH_RE = re.compile(r"\(#(\d+)\)\s*$")


def parse_pr_reference(subject: str, body: str = "") -> Tuple[Optional[int], Optional[str]]:
    """Find the PR number and source branch a commit message points at.

    Args:
        subject: First line of the commit message
        body: Rest of the commit message

    Returns:
        ``(number, branch)``; either may be ``None``
    """
    match = MERGE_PR_RE.match(subject)
    if match:
        return int(match.group(1)), match.group(2)

    match = MERGE_BRANCH_RE.match(subject)
    if match:
        ref = MERGE_REQUEST_REF_RE.search(body)
        return (int(ref.group(1)) if ref else None), match.group(1)

    match = SQUASH_RE.search(subject)
    if match:
        return int(match.group(1)), None

    return None, None


def parse_log(output: str) -> List[RawCommit]:
    """Parse ``git log`` output written with :data:`LOG_FORMAT`."""
    commits = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue

        parts = record.split(FIELD_SEP, 3)
        if len(parts) != 4:
            continue

        sha, author_name, author_email, message = parts
        subject, _, body = message.strip().partition("\n")
        body = body.strip()
        pr_number, pr_base = parse_pr_reference(subject, body)

        commits.append(RawCommit(
            hash=sha.strip(),
            subject=subject.strip(),
            body=body,
            author_name=author_name or None,
            author_email=author_email or None,
            pr_number=pr_number,
            pr_base=pr_base,
        ))
    return commits


class GitRepository:
    """Thin async wrapper over the ``git`` executable."""

    def __init__(self, path: str = ".", logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger(__name__)

    async def _git(self, *args: str) -> Tuple[int, str, str]:
        self.logger.debug(f"Running git {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                "git", *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.path,
            )
        except OSError as e:
            raise ProviderError(f"Could not run git: {e}", stage=f"git {args[0]}") from e

        stdout, stderr = await proc.communicate()
        return proc.returncode, stdout.decode("utf-8", "replace"), stderr.decode("utf-8", "replace")

    async def _read(self, *args: str) -> str:
        code, stdout, stderr = await self._git(*args)
        if code != 0:
            raise ProviderError(f"git {' '.join(args)} failed: {stderr.strip()}", stage=f"git {args[0]}")
        return stdout

    async def _write(self, *args: str) -> str:
        code, stdout, stderr = await self._git(*args)
        if code != 0:
            raise PublishError(f"git {' '.join(args)} failed: {stderr.strip()}", stage=f"git {args[0]}")
        return stdout

    async def get_log(self, start: str, end: str = "HEAD") -> List[RawCommit]:
        """Commits reachable from ``end`` but not from ``start``, newest first."""
        output = await self._read("log", f"--format={LOG_FORMAT}", f"{start}..{end}")
        return parse_log(output)

    async def is_ancestor(self, sha: str, ref: str) -> bool:
        code, _, stderr = await self._git("merge-base", "--is-ancestor", sha, ref)
        if code == 0:
            return True
        if code == 1:
            return False
        raise ProviderError(f"git merge-base failed: {stderr.strip()}", stage="git merge-base")

    async def get_first_commit(self) -> str:
        output = await self._read("rev-list", "--max-parents=0", "HEAD")
        return output.split()[-1]

    async def get_commit_date(self, sha: str) -> datetime:
        output = await self._read("show", "-s", "--format=%cI", sha)
        return date_parser.isoparse(output.strip())

    async def get_sha(self, short: bool = False) -> str:
        args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
        return (await self._read(*args)).strip()

    async def get_current_branch(self) -> Optional[str]:
        branch = (await self._read("rev-parse", "--abbrev-ref", "HEAD")).strip()
        return None if branch == "HEAD" else branch

    async def get_latest_tag_in_branch(self, ref: str = "HEAD") -> Optional[str]:
        code, stdout, _ = await self._git("describe", "--tags", "--abbrev=0", ref)
        return stdout.strip() if code == 0 and stdout.strip() else None

    async def get_previous_tag_in_branch(self) -> Optional[str]:
        latest = await self.get_latest_tag_in_branch()
        if not latest:
            return None
        return await self.get_latest_tag_in_branch(f"{latest}^")

    async def tag(self, name: str, message: Optional[str] = None) -> None:
        await self._write("tag", name, "-m", message or f"Update version to {name}")

    async def push_tags(self, remote: str = "origin", branch: Optional[str] = None) -> None:
        if branch:
            await self._write("push", "--follow-tags", "--set-upstream", remote, branch)
        else:
            await self._write("push", remote, "--tags")

    async def add(self, *paths: str) -> None:
        await self._write("add", *paths)

    async def commit(self, message: str) -> None:
        await self._write("commit", "-m", message, "--no-verify")
