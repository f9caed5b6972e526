"""Plugin base class."""

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from ..orchestrator import Shipit


class Plugin:
    """Something that taps the orchestrator's hooks.

    Subclasses set ``name`` and implement :meth:`apply`.
    """

    name: str = ""

    def __init__(self, options: Any = None):
        self.options = options

    def apply(self, shipit: "Shipit") -> None:
        raise NotImplementedError
