"""
Ref-like handles given to presentation consumers of a field.

The engine only ever asks a field to focus; what focusing means is up to the
object the host stores in ``ref.current``.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


class FieldRef:
    """
    Mutable holder for the host object presenting a field.

    Usage in a host:
        field = form.field("email")
        field.ref.current = text_input   # any object with a focus() method
        form.focus_field("email")        # calls text_input.focus()
    """
    __slots__ = ("name", "current")

    def __init__(self, name: str, current: Any = None):
        self.name = name
        self.current = current

    def focus(self) -> bool:
        """
        Focus the referenced object.

        Returns:
            True if a focus callback was invoked, False if nothing was registered
        """
        focus = getattr(self.current, "focus", None)
        if not callable(focus):
            logger.debug("No focus target registered for field '%s'", self.name)
            return False

        focus()
        return True

    def __repr__(self):
        return f"FieldRef(name={self.name!r}, current={self.current!r})"
