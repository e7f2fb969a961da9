"""Progress output shared by every component.

Components mix in :class:`Outputter` and call ``self.emit(...)``. Hosts
subscribe listeners; :class:`ConsoleOutputter` renders messages with rich,
colored by the emitting component's role.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

logger = logging.getLogger(__name__)

Listener = Callable[[object, str], None]

ROLE_STYLES = {
    "generator": "magenta",
    "runner": "cyan",
    "fixer": "yellow",
    "enhancer": "blue",
    "sorcerer": "green",
    "function": "dark_green",
    "crawler": "bright_black",
    "analyzer": "bright_black",
}


class Outputter:
    """Mixin that gives a component a progress channel."""

    output_role = "component"

    @property
    def _listeners(self) -> list[Listener]:
        listeners = self.__dict__.get("_output_listeners")
        if listeners is None:
            listeners = []
            self.__dict__["_output_listeners"] = listeners
        return listeners

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def emit(self, message: str) -> None:
        logger.debug("[%s] %s", type(self).__name__, message)
        for listener in self._listeners:
            listener(self, message)


class ConsoleOutputter:
    """Render component messages to a rich console as ``[Component] - message``."""

    def __init__(self, console: Console | None = None, show_code: bool = True):
        self.console = console or Console()
        self.show_code = show_code

    def __call__(self, sender: object, message: str) -> None:
        role = getattr(sender, "output_role", "component")
        style = ROLE_STYLES.get(role, "white")
        name = getattr(sender, "display_name", None) or type(sender).__name__
        self.console.print(Text(f"[{name}] - {message}", style=style))

    def attach(self, *components: Outputter) -> None:
        for component in components:
            component.subscribe(self)

    def code(self, content: str, language: str, title: str) -> None:
        """Show a generated test file with syntax highlighting."""
        if not self.show_code or not content:
            return
        self.console.print(
            Panel(
                Syntax(content, language, theme="monokai", line_numbers=True),
                title=title,
                border_style="green",
            )
        )

    @contextmanager
    def status(self, message: str) -> Iterator[None]:
        with self.console.status(f"[bold green]{message}", spinner="dots"):
            yield
