"""Named user commands shared by the toolbar, the menu and the shortcuts."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from ideacanvas.engine import CanvasEngine
from ideacanvas.models import ItemKind

logger = logging.getLogger(__name__)


def _always() -> bool:
    return True


@dataclass
class Command:
    """One user action."""
    name: str
    label: str
    icon: str
    accel: Optional[str]
    callback: Callable[..., Any]
    enabled: Callable[[], bool] = _always
    needs_input: bool = False  # opens the create form before running

    def is_enabled(self) -> bool:
        return self.enabled()


class CommandSurface:
    """Registry of commands bound to one engine.

    Coroutine results are spawned on the engine's background tasks, so
    callers never await.
    """

    def __init__(self, engine: CanvasEngine):
        self.engine = engine
        self._commands: Dict[str, Command] = {}

        # Callbacks
        self.on_request_input: Optional[Callable[[Command], None]] = None

        self._register_defaults()

    def _register_defaults(self):
        engine = self.engine

        def has_active() -> bool:
            return engine.active_id.value is not None

        defaults = [
            Command("create-branch", "New Branch", "folder-new-symbolic", "<Control><Shift>n",
                    lambda label="", extra_context="": engine.create_item(
                        ItemKind.BRANCH, label, extra_context),
                    needs_input=True),
            Command("create-leaf", "New Idea", "list-add-symbolic", "<Control>n",
                    lambda label="", extra_context="": engine.create_item(
                        ItemKind.LEAF, label, extra_context),
                    needs_input=True),
            Command("create-note", "New Note", "document-new-symbolic", "<Control><Alt>n",
                    engine.create_note),
            Command("center-view", "Center View", "find-location-symbolic", "<Control>0",
                    engine.center_view),
            Command("refresh-children", "Refresh Children", "view-refresh-symbolic", "<Control>r",
                    engine.refresh_children, enabled=lambda: engine.can_refresh),
            Command("generate-more", "Generate More", "list-add-symbolic", "<Control>g",
                    engine.generate_more, enabled=has_active),
            Command("elaborate", "Elaborate", "dialog-information-symbolic", "<Control>i",
                    engine.elaborate, enabled=has_active),
            Command("toggle-like", "Save Idea", "starred-symbolic", "<Control>l",
                    engine.toggle_like, enabled=has_active),
            Command("delete-active", "Delete", "user-trash-symbolic", None,
                    self._delete_selection,
                    enabled=lambda: has_active() or engine.selected_note_id.value is not None),
            Command("generate-links", "Find Useful Links", "web-browser-symbolic", None,
                    engine.generate_links,
                    enabled=lambda: bool(engine.tree.topic_context) and not engine.links.busy.value),
            Command("refresh-links", "Replace Useful Links", "view-refresh-symbolic", None,
                    engine.refresh_links,
                    enabled=lambda: len(engine.links) > 0 and not engine.links.busy.value),
            Command("toggle-grid", "Toggle Grid", "view-grid-symbolic", None,
                    engine.toggle_grid),
            Command("toggle-auto-generation", "Auto-generate Ideas", "system-run-symbolic", None,
                    engine.toggle_auto_generation),
        ]
        for command in defaults:
            self.register(command)

    def register(self, command: Command):
        if command.name in self._commands:
            raise ValueError(f"command {command.name!r} already registered")
        self._commands[command.name] = command

    def get(self, name: str) -> Command:
        return self._commands[name]

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands.values())

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    @property
    def names(self) -> List[str]:
        return list(self._commands)

    @property
    def can_refresh(self) -> bool:
        return self.engine.can_refresh

    def activate(self, name: str):
        """Entry point for buttons and shortcuts.

        Commands that need a label ask for input first; the form then calls
        :meth:`run` with what the user typed.
        """
        command = self.get(name)
        if command.needs_input and self.on_request_input:
            self.on_request_input(command)
            return None
        return self.run(name)

    def run(self, name: str, **kwargs):
        command = self.get(name)
        if not command.is_enabled():
            logger.debug("Command %s is disabled", name)
            return None
        result = command.callback(**kwargs)
        if asyncio.iscoroutine(result):
            return self.engine.tasks.spawn(result, name)
        return result

    async def _delete_selection(self) -> bool:
        if self.engine.active_id.value is not None:
            return await self.engine.delete_item()
        return await self.engine.delete_note()
