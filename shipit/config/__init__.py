"""Configuration module."""

from .labels import (
    DEFAULT_LABELS,
    LabelDefinition,
    ReleaseType,
    get_version_map,
    normalize_label,
    normalize_labels,
)
from .settings import (
    Config,
    check_deprecated,
    create_sample_config,
    find_config_file,
    get_config,
    load_extend_config,
    load_json_config,
)

__all__ = [
    "Config",
    "DEFAULT_LABELS",
    "LabelDefinition",
    "ReleaseType",
    "check_deprecated",
    "create_sample_config",
    "find_config_file",
    "get_config",
    "get_version_map",
    "load_extend_config",
    "load_json_config",
    "normalize_label",
    "normalize_labels",
]
