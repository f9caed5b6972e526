"""Configuration management for shipit."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigurationError
from .labels import LabelDefinition, normalize_labels


logger = logging.getLogger(__name__)

PluginSpec = Union[str, List[Any]]


class Config(BaseSettings):
    """Configuration settings for shipit."""

    model_config = SettingsConfigDict(env_prefix="SHIPIT_", case_sensitive=False)

    gitlab_host: str = "https://gitlab.com"
    gitlab_token: Optional[str] = None
    project: Optional[str] = None
    config_file: Optional[str] = None

    base_branch: str = "main"
    prerelease_branches: List[str] = Field(default_factory=lambda: ["next"])
    only_publish_with_release_label: bool = False
    no_version_prefix: bool = False
    labels: List[LabelDefinition] = Field(default_factory=normalize_labels)
    plugins: List[PluginSpec] = Field(default_factory=lambda: ["git-tag"])
    changelog_file: str = "CHANGELOG.md"
    extends: Optional[str] = None

    @field_validator('gitlab_host')
    @classmethod
    def normalize_gitlab_host(cls, v):
        """Ensure GitLab host has proper protocol."""
        if v and not v.startswith(('http://', 'https://')):
            return f"https://{v}"
        return v

    @field_validator('labels', mode='before')
    @classmethod
    def merge_default_labels(cls, v):
        return normalize_labels(v)


DEPRECATED_LABELS_OBJECT = """\
You're using a deprecated configuration option!

The "labels" option no longer supports configuration with an object.
Instead supply your labels as an array of label objects.

ex:

|  {
|    "labels": [
|      {
|        "name": "my-label",
|        "description": "Really big stuff",
|        "release_type": "major"
|      }
|    ]
|  }"""

DEPRECATED_SKIP_RELEASE_LABELS = """\
You're using a deprecated configuration option!

The "skipReleaseLabels" option no longer exists.
Instead set "release_type" to "skip" in your label configuration.

ex:

|  {
|    "labels": [
|      {
|        "name": "my-label",
|        "description": "Really big stuff",
|        "release_type": "skip"
|      }
|    ]
|  }"""


def check_deprecated(config_data: Dict[str, Any], path: Optional[str] = None) -> None:
    """Reject configuration shapes that are no longer supported.

    Raises:
        ConfigurationError: describing the replacement shape
    """
    if 'labels' in config_data and not isinstance(config_data['labels'], list):
        raise ConfigurationError(DEPRECATED_LABELS_OBJECT, path=path)

    if 'skipReleaseLabels' in config_data or 'skip_release_labels' in config_data:
        raise ConfigurationError(DEPRECATED_SKIP_RELEASE_LABELS, path=path)


def load_json_config(config_path: str) -> dict:
    """Load configuration from JSON file.

    Args:
        config_path: Path to JSON configuration file

    Returns:
        Configuration dictionary
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error loading config file {config_path}: {e}", path=config_path) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a JSON object", path=config_path)
    return data


def load_extend_config(extend: str, relative_to: Optional[str] = None) -> dict:
    """Load the configuration named by an ``extends`` value.

    Args:
        extend: URL or path of a JSON config
        relative_to: Config file the value came from; relative paths resolve against its directory

    Returns:
        Configuration dictionary
    """
    if extend.endswith(('.js', '.mjs')):
        raise ConfigurationError("Extended config cannot be a JavaScript file", path=extend)

    if extend.startswith(('http://', 'https://')):
        try:
            response = requests.get(extend, timeout=30)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ConfigurationError(f"Failed to get extended config from {extend} -- {e}", path=extend) from e
        logger.debug(f"{extend} found: {data}")
    else:
        path = Path(extend).expanduser()
        if not path.is_absolute() and relative_to:
            path = Path(relative_to).expanduser().parent / path
        if not path.is_file():
            raise ConfigurationError(f"Unable to load extended config {extend}", path=str(path))
        data = load_json_config(str(path))

    if not isinstance(data, dict):
        raise ConfigurationError(f"Extended config {extend} must be a JSON object", path=extend)
    return data


def merge_extended(config_data: Dict[str, Any], extended: Dict[str, Any]) -> Dict[str, Any]:
    """Layer ``config_data`` over ``extended``. Label and plugin lists are concatenated."""
    merged = {**extended, **config_data}
    for key in ('labels', 'plugins'):
        if isinstance(extended.get(key), list) and isinstance(config_data.get(key), list):
            merged[key] = extended[key] + config_data[key]
    merged.pop('extends', None)
    return merged


def find_config_file() -> Optional[str]:
    """Find configuration file in common locations.

    Returns:
        Path to config file or None if not found
    """
    search_paths = [
        ".shipitrc",
        ".shipitrc.json",
        "shipit.json",
        "~/.shipit.json",
        "~/.config/shipit/config.json",
    ]

    for path_str in search_paths:
        path = Path(path_str).expanduser()
        if path.exists() and path.is_file():
            return str(path)

    return None


def get_config(config_file: Optional[str] = None, **overrides: Any) -> Config:
    """Load configuration from a JSON file, environment variables and explicit overrides.

    Args:
        config_file: Optional path to JSON config file
        **overrides: Values that win over everything else; ``None`` values are ignored

    Returns:
        Configuration object
    """
    config_data: Dict[str, Any] = {}

    json_config_path = config_file or find_config_file()
    if json_config_path:
        config_data = load_json_config(json_config_path)
        check_deprecated(config_data, json_config_path)

        if config_data.get('extends'):
            extended = load_extend_config(config_data['extends'], json_config_path)
            check_deprecated(extended, config_data['extends'])
            config_data = merge_extended(config_data, extended)

        config_data['config_file'] = json_config_path

    # Environment variables override JSON config
    env_config = {
        'gitlab_host': os.getenv('SHIPIT_GITLAB_HOST'),
        'gitlab_token': os.getenv('SHIPIT_GITLAB_TOKEN') or os.getenv('GITLAB_TOKEN'),
        'project': os.getenv('SHIPIT_PROJECT') or os.getenv('CI_PROJECT_PATH'),
    }

    env_config = {k: v for k, v in env_config.items() if v is not None}
    config_data.update(env_config)
    config_data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", path=json_config_path) from e


def create_sample_config(path: str = ".shipitrc") -> None:
    """Create a sample configuration file.

    Args:
        path: Path where to create the sample config file
    """
    sample_config = {
        "gitlab_host": "https://gitlab.com",
        "project": "group/project-name",
        "base_branch": "main",
        "prerelease_branches": ["next"],
        "plugins": ["git-tag", "conventional-commits"],
        "labels": [
            {"name": "breaking", "release_type": "major"},
            {"name": "feature", "release_type": "minor"},
        ],
    }

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2)
