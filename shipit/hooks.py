"""Extension points that plugins tap into.

Every hook keeps an ordered list of named taps and a strategy that decides
how the taps' results combine:

- ``WATERFALL``: each tap receives the running value and may return a new
  one. Returning ``None`` keeps the value unchanged.
- ``BAIL``: taps run in order until one returns a truthy value, which
  becomes the result. ``None`` when no tap answers.
- ``SERIES``: every tap runs; the list of their results is returned.

Taps may be plain functions or coroutine functions.
"""

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Tuple, Union


logger = logging.getLogger(__name__)

Tap = Callable[..., Union[Any, Awaitable[Any]]]


class HookType(Enum):
    WATERFALL = "waterfall"
    BAIL = "bail"
    SERIES = "series"


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class Hook:
    """A named extension point."""

    def __init__(self, name: str, hook_type: HookType):
        self.name = name
        self.hook_type = hook_type
        self._taps: List[Tuple[str, Tap]] = []

    def __repr__(self) -> str:
        return f"Hook({self.name!r}, {self.hook_type.value}, taps={self.tap_names})"

    @property
    def tap_names(self) -> List[str]:
        return [name for name, _ in self._taps]

    def tap(self, name: str, fn: Tap) -> Tap:
        """Register ``fn`` under ``name``. Taps run in registration order."""
        self._taps.append((name, fn))
        return fn

    def is_used(self) -> bool:
        return bool(self._taps)

    async def call(self, *args: Any) -> Any:
        dispatch = {
            HookType.WATERFALL: self._waterfall,
            HookType.BAIL: self._bail,
            HookType.SERIES: self._series,
        }
        return await dispatch[self.hook_type](*args)

    async def _waterfall(self, value: Any = None, *rest: Any) -> Any:
        for name, fn in self._taps:
            result = await _resolve(fn(value, *rest))
            if result is not None:
                value = result
            logger.debug("Hook %s: tap '%s' applied", self.name, name)
        return value

    async def _bail(self, *args: Any) -> Any:
        for name, fn in self._taps:
            result = await _resolve(fn(*args))
            if result:
                logger.debug("Hook %s: tap '%s' answered", self.name, name)
                return result
        return None

    async def _series(self, *args: Any) -> List[Any]:
        results = []
        for _, fn in self._taps:
            results.append(await _resolve(fn(*args)))
        return results


def _hook(name: str, hook_type: HookType):
    return field(default_factory=lambda: Hook(name, hook_type))


@dataclass
class LogParseHooks:
    #: (commit) -> commit
    parse_commit: Hook = _hook("parse_commit", HookType.WATERFALL)
    #: (commit) -> bool, True omits the commit from the release
    omit_commit: Hook = _hook("omit_commit", HookType.BAIL)


@dataclass
class ChangelogHooks:
    #: ((commit, line)) -> (commit, line)
    render_changelog_line: Hook = _hook("render_changelog_line", HookType.WATERFALL)
    #: (label, titles) -> str
    render_changelog_title: Hook = _hook("render_changelog_title", HookType.BAIL)
    #: (author, commit, options) -> str, the link used on lines and in the authors list
    render_changelog_author: Hook = _hook("render_changelog_author", HookType.BAIL)
    #: (author, user_link) -> str, one entry of the authors section
    render_changelog_author_line: Hook = _hook("render_changelog_author_line", HookType.BAIL)
    #: (extra_sections, commits) -> extra_sections
    add_to_body: Hook = _hook("add_to_body", HookType.WATERFALL)
    #: (commit) -> bool, True keeps the commit's PR body out of the release notes
    omit_release_notes: Hook = _hook("omit_release_notes", HookType.BAIL)


@dataclass
class ReleaseHooks:
    on_create_changelog: Hook = _hook("on_create_changelog", HookType.SERIES)
    on_create_log_parse: Hook = _hook("on_create_log_parse", HookType.SERIES)
    #: (last_release, current_version) -> str
    create_changelog_title: Hook = _hook("create_changelog_title", HookType.BAIL)


@dataclass
class ShipitHooks:
    """Lifecycle hooks of the release orchestrator."""

    #: (config) -> config
    modify_config: Hook = _hook("modify_config", HookType.WATERFALL)
    #: (config)
    before_run: Hook = _hook("before_run", HookType.SERIES)
    #: (release)
    on_create_release: Hook = _hook("on_create_release", HookType.SERIES)
    #: (changelog, bump)
    on_create_changelog: Hook = _hook("on_create_changelog", HookType.SERIES)
    #: (log_parse)
    on_create_log_parse: Hook = _hook("on_create_log_parse", HookType.SERIES)
    #: () -> str
    get_previous_version: Hook = _hook("get_previous_version", HookType.BAIL)
    #: (bump)
    version: Hook = _hook("version", HookType.SERIES)
    #: (bump)
    publish: Hook = _hook("publish", HookType.SERIES)
    #: (release_context)
    after_release: Hook = _hook("after_release", HookType.SERIES)
    #: (new_version, commits)
    after_ship_it: Hook = _hook("after_ship_it", HookType.SERIES)
    #: (bump, suffix) -> version string or {"error": str}
    canary: Hook = _hook("canary", HookType.BAIL)
    #: (prerelease_versions, bump) -> prerelease_versions
    next: Hook = _hook("next", HookType.WATERFALL)
