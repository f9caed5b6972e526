"""GitLab provider."""

from .client import GitLabClient

__all__ = ["GitLabClient"]
