"""Built-in plugins and the registry that loads them by name."""

from typing import Any, Dict, List, Type, Union

from ..errors import ConfigurationError
from .base import Plugin
from .conventional_commits import ConventionalCommitsPlugin
from .git_tag import GitTagPlugin
from .slack import SlackPlugin


PLUGINS: Dict[str, Type[Plugin]] = {
    GitTagPlugin.name: GitTagPlugin,
    ConventionalCommitsPlugin.name: ConventionalCommitsPlugin,
    SlackPlugin.name: SlackPlugin,
}


def load_plugin(spec: Union[str, List[Any]]) -> Plugin:
    """Instantiate a plugin from ``"name"`` or ``["name", options]``.

    Raises:
        ConfigurationError: for unknown plugin names or malformed entries
    """
    options: Any = None
    if isinstance(spec, (list, tuple)):
        if not spec or len(spec) > 2:
            raise ConfigurationError(f"Invalid plugin entry: {spec!r}")
        name = spec[0]
        options = spec[1] if len(spec) == 2 else None
    else:
        name = spec

    plugin_class = PLUGINS.get(name)
    if plugin_class is None:
        known = ", ".join(sorted(PLUGINS))
        raise ConfigurationError(f"Unknown plugin '{name}'. Available plugins: {known}")

    return plugin_class(options)


__all__ = [
    "ConventionalCommitsPlugin",
    "GitTagPlugin",
    "PLUGINS",
    "Plugin",
    "SlackPlugin",
    "load_plugin",
]
