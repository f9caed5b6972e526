"""Semantic version bumps: classification from labels and version increments."""

import re
from enum import Enum
from typing import Iterable, Optional, Set, Tuple

from packaging.version import InvalidVersion, Version

from .config.labels import BUMP_ORDER, ReleaseType, VersionMap


class SemVer(str, Enum):
    """Outcome of classifying a set of commits."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    NO_VERSION = "none"
    SKIPPED = "skipped"

    @property
    def is_release(self) -> bool:
        return self in (SemVer.MAJOR, SemVer.MINOR, SemVer.PATCH)

    def __str__(self) -> str:
        return self.value


def calculate_bump(
    label_sets: Iterable[Iterable[str]],
    version_map: VersionMap,
    only_publish_with_release_label: bool = False,
) -> SemVer:
    """Compute the aggregate bump for the label sets of a range of commits.

    ``major`` beats ``minor`` beats ``patch``. A commit carrying a ``skip``
    label does not contribute unless it also carries a ``release`` label.
    With ``only_publish_with_release_label`` nothing is released unless some
    commit carries a ``release`` label. A ``release`` label with no bump
    label anywhere releases a patch.

    Returns ``SKIPPED`` when skip labels are the only reason nothing is
    released, ``NO_VERSION`` for any other empty outcome.
    """
    skip_labels = set(version_map.get(ReleaseType.SKIP, ()))
    release_labels = set(version_map.get(ReleaseType.RELEASE, ()))
    bump_labels = {
        release_type: set(version_map.get(release_type, ())) for release_type in BUMP_ORDER
    }

    found: Set[ReleaseType] = set()
    has_release_label = False
    skipped = False

    for labels in label_sets:
        labels = set(labels)
        releases = bool(labels & release_labels)
        has_release_label = has_release_label or releases

        if labels & skip_labels and not releases:
            skipped = True
            continue

        for release_type, names in bump_labels.items():
            if labels & names:
                found.add(release_type)

    if only_publish_with_release_label and not has_release_label:
        return SemVer.NO_VERSION

    for release_type in BUMP_ORDER:
        if release_type in found:
            return SemVer(release_type.value)

    if has_release_label:
        return SemVer.PATCH
    if skipped:
        return SemVer.SKIPPED
    return SemVer.NO_VERSION


_PRERELEASE_RE = re.compile(r"^(?P<id>[0-9A-Za-z-]+)\.(?P<number>\d+)$")


def split_version(version: str) -> Tuple[str, Version, Optional[str]]:
    """Split ``v1.2.3-next.0`` into ``("v", Version("1.2.3"), "next.0")``.

    Raises:
        InvalidVersion: if the core part is not a version
    """
    prefix = "v" if version[:1] in ("v", "V") else ""
    core, _, prerelease = version[len(prefix):].partition("-")
    parsed = Version(core)
    if parsed.pre or parsed.dev or parsed.post or parsed.local:
        raise InvalidVersion(f"Not a plain release version: {version!r}")
    return prefix, parsed, prerelease or None


def _bump_release(base: Version, bump: SemVer) -> Tuple[int, int, int]:
    major, minor, micro = (list(base.release) + [0, 0, 0])[:3]
    if bump == SemVer.MAJOR:
        return major + 1, 0, 0
    if bump == SemVer.MINOR:
        return major, minor + 1, 0
    return major, minor, micro + 1


def inc_version(version: str, bump: SemVer) -> Optional[str]:
    """Increment ``version`` by ``bump``, keeping a leading ``v``.

    A prerelease version is promoted to its release version for any bump,
    as in ``1.3.0-next.2`` -> ``1.3.0``. Returns ``None`` when ``bump`` is
    not a release or ``version`` cannot be parsed.
    """
    if not bump.is_release:
        return None
    try:
        prefix, base, prerelease = split_version(version)
    except InvalidVersion:
        return None

    if prerelease:
        return f"{prefix}{base}"
    return prefix + ".".join(str(part) for part in _bump_release(base, bump))


def inc_prerelease(version: str, bump: SemVer, preid: str = "next") -> Optional[str]:
    """Next prerelease on the ``preid`` channel.

    ``1.2.3`` + minor -> ``1.3.0-next.0``; ``1.3.0-next.0`` -> ``1.3.0-next.1``.
    """
    if not bump.is_release:
        return None
    try:
        prefix, base, prerelease = split_version(version)
    except InvalidVersion:
        return None

    if prerelease:
        match = _PRERELEASE_RE.match(prerelease)
        if match and match.group("id") == preid:
            return f"{prefix}{base}-{preid}.{int(match.group('number')) + 1}"
        return f"{prefix}{base}-{preid}.0"

    release = ".".join(str(part) for part in _bump_release(base, bump))
    return f"{prefix}{release}-{preid}.0"


def strip_prefix(version: str) -> str:
    return version[1:] if version[:1] in ("v", "V") else version


def is_version(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        split_version(value)
    except InvalidVersion:
        return False
    return True


def determine_next_version(
    last_version: str,
    current_version: Optional[str],
    bump: SemVer,
    preid: str = "next",
) -> Optional[str]:
    """Next prerelease given the last release and the latest prerelease tag.

    Keeps counting on ``current_version`` while it is a prerelease at or
    above the release ``bump`` leads to; otherwise starts a new prerelease
    from ``last_version``.
    """
    next_release = inc_version(last_version, bump)
    if not next_release:
        return None

    if current_version and is_version(current_version):
        _, current_base, prerelease = split_version(current_version)
        _, next_base, _ = split_version(next_release)
        if prerelease and current_base >= next_base:
            return inc_prerelease(current_version, bump, preid)

    return inc_prerelease(last_version, bump, preid)
