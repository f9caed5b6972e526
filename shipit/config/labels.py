"""Label taxonomy: which labels bump which part of the version."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ReleaseType(str, Enum):
    """What merging a labeled change means for the release."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    SKIP = "skip"
    RELEASE = "release"
    NONE = "none"


#: Release types that bump the version, highest precedence first.
BUMP_ORDER: Tuple[ReleaseType, ...] = (ReleaseType.MAJOR, ReleaseType.MINOR, ReleaseType.PATCH)

#: Label the release process may put on merged PRs. Not a version label.
RELEASED_LABEL = "released"


class LabelDefinition(BaseModel):
    """A project label and its semantic meaning."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    release_type: Optional[ReleaseType] = Field(
        default=None,
        validation_alias=AliasChoices("release_type", "releaseType", "type"),
    )
    changelog_title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("changelog_title", "changelogTitle", "title"),
    )
    description: Optional[str] = None
    color: Optional[str] = None
    overwrite: bool = False


DEFAULT_LABELS: Tuple[LabelDefinition, ...] = (
    LabelDefinition(
        name="major",
        changelog_title="💥 Breaking Change",
        description="Increment the major version when merged",
        release_type=ReleaseType.MAJOR,
    ),
    LabelDefinition(
        name="minor",
        changelog_title="🚀 Enhancement",
        description="Increment the minor version when merged",
        release_type=ReleaseType.MINOR,
    ),
    LabelDefinition(
        name="patch",
        changelog_title="🐛 Bug Fix",
        description="Increment the patch version when merged",
        release_type=ReleaseType.PATCH,
    ),
    LabelDefinition(
        name="skip-release",
        description="Preserve the current version when merged",
        release_type=ReleaseType.SKIP,
    ),
    LabelDefinition(
        name="release",
        description="Create a release when this pr is merged",
        release_type=ReleaseType.RELEASE,
    ),
    LabelDefinition(
        name="internal",
        changelog_title="🏠 Internal",
        description="Changes only affect the internal API",
        release_type=ReleaseType.NONE,
    ),
    LabelDefinition(
        name="documentation",
        changelog_title="📝 Documentation",
        description="Changes only affect the documentation",
        release_type=ReleaseType.NONE,
    ),
)

LabelInput = Union[LabelDefinition, Dict[str, Any]]

VersionMap = Mapping[ReleaseType, Tuple[str, ...]]


def _explicit_fields(label: LabelInput) -> Dict[str, Any]:
    if isinstance(label, LabelDefinition):
        return label.model_dump(exclude_unset=True)
    return LabelDefinition.model_validate(label).model_dump(exclude_unset=True)


def normalize_label(label: LabelInput) -> LabelDefinition:
    """Fill in the fields a user label omits from the matching default.

    A default matches when it shares the label's release type or its name.
    Fields the user set always win.
    """
    fields = _explicit_fields(label)
    release_type = fields.get("release_type")
    base = next(
        (
            default
            for default in DEFAULT_LABELS
            if (release_type and default.release_type == release_type)
            or default.name == fields["name"]
        ),
        None,
    )

    merged = base.model_dump(exclude_unset=True) if base else {}
    merged.update(fields)
    return LabelDefinition(**merged)


def normalize_labels(labels: Optional[Iterable[LabelInput]] = None) -> List[LabelDefinition]:
    """Merge user labels with the defaults.

    A default label is dropped when a user label has the same name, or when
    a user label of the same release type sets ``overwrite``. Later user
    labels replace earlier ones with the same name.
    """
    if labels is None:
        return list(DEFAULT_LABELS)

    user_labels: Dict[str, LabelDefinition] = {}
    for label in labels:
        normalized = normalize_label(label)
        user_labels[normalized.name] = normalized

    overwritten = {
        label.release_type
        for label in user_labels.values()
        if label.overwrite and label.release_type
    }
    base_labels = [
        default
        for default in DEFAULT_LABELS
        if default.name not in user_labels and default.release_type not in overwritten
    ]

    return base_labels + list(user_labels.values())


def get_version_map(labels: Iterable[LabelDefinition] = DEFAULT_LABELS) -> VersionMap:
    """Build the read-only ``release type -> label names`` mapping."""
    version_map: Dict[ReleaseType, List[str]] = {}
    for label in labels:
        if label.release_type is None:
            continue
        names = version_map.setdefault(label.release_type, [])
        if label.name not in names:
            names.append(label.name)

    return MappingProxyType({key: tuple(names) for key, names in version_map.items()})


def unique_labels(labels: Iterable[str]) -> Tuple[str, ...]:
    """Collapse duplicate label names, keeping first-seen order."""
    return tuple(dict.fromkeys(label for label in labels if label))


def first_label_name(labels: Iterable[LabelDefinition], release_type: ReleaseType) -> str:
    """Name of the first label with ``release_type``, or the type's own name."""
    for label in labels:
        if label.release_type == release_type:
            return label.name
    return release_type.value
