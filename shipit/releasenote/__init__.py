"""Release note generation module."""

from .changelog import Changelog, ChangelogOptions, extract_release_notes
from .log_parse import LogParse
from .release import Release

__all__ = [
    "Changelog",
    "ChangelogOptions",
    "LogParse",
    "Release",
    "extract_release_notes",
]
