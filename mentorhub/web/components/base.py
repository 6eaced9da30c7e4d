"""
Base class for server-rendered HTML components.

Components are plain Python objects with a `render()` method. Every piece of
user-provided text goes through `escape`; there is no template engine.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all MentorHub UI components."""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """HTML-escape `text`; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Join CSS classes, adding each keyword class whose value is truthy.

        Example:
            >>> Component.classes("btn", primary=True, disabled=False)
            'btn primary'
        """
        names = [a for a in args if a]
        names.extend(key.replace("_", "-") for key, on in conditionals.items() if on)
        return " ".join(names)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build an escaped HTML attribute string.

        `class_` -> `class`, `hx_get` -> `hx-get`; True renders a bare boolean
        attribute, False/None are omitted.
        """
        parts = []
        for key, value in attrs.items():
            key = key[:-1] if key.endswith("_") else key.replace("_", "-")
            if value is True:
                parts.append(key)
            elif value is not False and value is not None:
                parts.append(f'{key}="{html.escape(str(value))}"')
        return " ".join(parts)
