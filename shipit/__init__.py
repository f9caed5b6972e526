"""Label-driven semantic release automation for GitLab projects."""

__version__ = "0.1.0"
