"""Local git access."""

from .repository import GitRepository, parse_log, parse_pr_reference

__all__ = ["GitRepository", "parse_log", "parse_pr_reference"]
