"""Canvas engine: the one place that owns in-memory canvas state.

The engine ties the viewport, the item tree and the generation orchestrator
together and exposes the operations the widgets and commands call. Input
handlers call the synchronous methods; anything that talks to a port is a
coroutine, which callers in the UI spawn through :attr:`CanvasEngine.tasks`.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ideacanvas import placement, scene
from ideacanvas.config import ViewSettings
from ideacanvas.generation import DEFAULT_TIMEOUT
from ideacanvas.links import LinkShelf
from ideacanvas.models import TRUNK_ID, Item, ItemKind, Note, Scope, UsefulLink
from ideacanvas.orchestrator import GenerationOrchestrator
from ideacanvas.ports import GenerationPort, PersistencePort
from ideacanvas.state import StateSlice
from ideacanvas.tasks import BackgroundTasks
from ideacanvas.tree import LABEL_DEBOUNCE_SECONDS, ItemTree
from ideacanvas.viewport import Viewport

logger = logging.getLogger(__name__)

DEFAULT_LABELS = {
    ItemKind.BRANCH: "New branch",
    ItemKind.LEAF: "New idea",
}


class CanvasEngine:
    """State and operations of one open project canvas."""

    def __init__(self, store: PersistencePort, generator: GenerationPort, scope: Scope,
                 topic_context: str = "", *,
                 viewport: Optional[Viewport] = None,
                 tasks: Optional[BackgroundTasks] = None,
                 view_settings: Optional[ViewSettings] = None,
                 branch_labels_editable: bool = True,
                 generation_timeout: float = DEFAULT_TIMEOUT,
                 label_debounce: float = LABEL_DEBOUNCE_SECONDS):
        settings = view_settings or ViewSettings()
        self.tasks = tasks or BackgroundTasks()
        self.viewport = viewport or Viewport()
        self.tree = ItemTree(store, scope, topic_context, tasks=self.tasks,
                             label_debounce=label_debounce)
        self.orchestrator = GenerationOrchestrator(
            self.tree, generator, auto_generate=settings.auto_generate,
            timeout=generation_timeout,
        )
        self.links = LinkShelf(store, scope, self.orchestrator)
        self.branch_labels_editable = branch_labels_editable

        # Shared state slices
        self.show_grid: StateSlice[bool] = StateSlice(settings.show_grid)
        self.selected_note_id: StateSlice[Optional[str]] = StateSlice(None)
        self.elaboration: StateSlice[Optional[Tuple[str, str]]] = StateSlice(None)
        self.content_version: StateSlice[int] = StateSlice(0)  # bumped on item or note changes

        # Callbacks
        self.on_changed: Optional[Callable[[], None]] = None
        self.on_settings_changed: Optional[Callable[[ViewSettings], None]] = None

        self.tree.on_changed = self._on_tree_changed
        self.viewport.on_changed = self._changed
        self.orchestrator.on_elaboration = self._on_elaboration
        self.tree.active_id.subscribe(self._on_active_changed)

    # ==================== Shared state ====================

    @property
    def active_id(self) -> StateSlice:
        return self.tree.active_id

    @property
    def generating(self) -> StateSlice:
        return self.orchestrator.generating

    @property
    def auto_generate(self) -> StateSlice:
        return self.orchestrator.auto_generate

    @property
    def view_settings(self) -> ViewSettings:
        return ViewSettings(show_grid=self.show_grid.value,
                            auto_generate=self.auto_generate.value)

    def _changed(self):
        if self.on_changed:
            self.on_changed()

    def _on_tree_changed(self):
        self.content_version.set(self.content_version.value + 1)
        self._changed()

    def _settings_changed(self):
        if self.on_settings_changed:
            self.on_settings_changed(self.view_settings)
        self._changed()

    def _on_elaboration(self, item_id: str, text: str):
        self.elaboration.set((item_id, text))

    def _on_active_changed(self, active_id: Optional[str]):
        current = self.elaboration.value
        if current is not None and current[0] != active_id:
            self.elaboration.set(None)

    # ==================== Lifecycle ====================

    async def start(self) -> List[Item]:
        """Load the canvas and seed it if it is empty."""
        await self.tree.load()
        await self.links.load()
        return await self.orchestrator.bootstrap(self.viewport.view_center())

    async def shutdown(self):
        await self.tree.flush()

    # ==================== Selection ====================

    def hit_test(self, sx: float, sy: float) -> Optional[scene.Hit]:
        return scene.hit_test(self.tree, self.viewport.transform, sx, sy)

    def click_item(self, item_id: str):
        """Activate an item and ease the view to it.

        Returns the spawned generation task, if the click may generate.
        """
        item = self.tree.get(item_id)
        self.selected_note_id.set(None)
        self.tree.set_active(item_id)
        self.viewport.focus_on(item.position)
        if item_id == TRUNK_ID:
            return None
        return self.tasks.spawn(self.orchestrator.on_item_activated(item_id),
                                f"activate {item_id}")

    def select_note(self, note_id: Optional[str]):
        if note_id is not None and note_id not in self.tree.notes:
            raise KeyError(note_id)
        self.tree.set_active(None)
        self.selected_note_id.set(note_id)

    def clear_selection(self):
        self.tree.set_active(None)
        self.selected_note_id.set(None)

    def _target(self, item_id: Optional[str]) -> Optional[str]:
        return item_id if item_id is not None else self.tree.active_id.value

    # ==================== Creation ====================

    async def create_item(self, kind: ItemKind, label: str = "",
                          extra_context: str = "") -> Optional[Item]:
        """Create a manual branch or leaf near the view center and activate it."""
        kind = ItemKind(kind)
        spot = placement.find_open_spot(self.viewport.view_center(), self.tree.positions())
        try:
            item = await self.tree.add(kind, label.strip() or DEFAULT_LABELS[kind], spot,
                                       manually_created=True)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to create %s: %s", kind.value, exc, exc_info=exc)
            return None
        if extra_context:
            self.tree.set_extra_context(item.id, extra_context)
        self.click_item(item.id)
        return item

    async def create_note(self, text: str = "") -> Optional[Note]:
        spot = placement.find_open_spot(self.viewport.view_center(), self.tree.positions())
        try:
            note = await self.tree.add_note(spot, text)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to create note: %s", exc, exc_info=exc)
            return None
        self.select_note(note.id)
        return note

    # ==================== Editing ====================

    def can_edit(self, item_id: str) -> bool:
        if item_id == TRUNK_ID or item_id not in self.tree:
            return False
        if self.tree.get(item_id).kind == ItemKind.BRANCH:
            return self.branch_labels_editable
        return True

    def edit_label(self, item_id: str, label: str):
        if not self.can_edit(item_id):
            raise ValueError(f"label of {item_id} is not editable")
        self.tree.update_label(item_id, label)

    def edit_note(self, note_id: str, text: str):
        self.tree.update_note_text(note_id, text)

    def toggle_like(self, item_id: Optional[str] = None) -> Optional[bool]:
        target = self._target(item_id)
        if target is None or target == TRUNK_ID:
            return None
        return self.tree.toggle_liked(target)

    def set_extra_context(self, item_id: str, text: str):
        self.tree.set_extra_context(item_id, text)

    async def delete_item(self, item_id: Optional[str] = None) -> bool:
        """Remove an item (the active one by default) with its descendants."""
        target = self._target(item_id)
        if target is None or target == TRUNK_ID:
            return False
        return await self.tree.remove(target)

    async def delete_note(self, note_id: Optional[str] = None) -> bool:
        target = note_id if note_id is not None else self.selected_note_id.value
        if target is None:
            return False
        removed = await self.tree.remove_note(target)
        if removed and self.selected_note_id.value == target:
            self.selected_note_id.set(None)
        return removed

    # ==================== Generation ====================

    @property
    def can_refresh(self) -> bool:
        active = self.tree.active_id.value
        return active is not None and self.tree.has_children(active)

    async def generate_more(self, item_id: Optional[str] = None) -> List[Item]:
        target = self._target(item_id)
        if target is None:
            return []
        return await self.orchestrator.generate_more(target)

    async def refresh_children(self, item_id: Optional[str] = None) -> List[Item]:
        target = self._target(item_id)
        if target is None:
            return []
        return await self.orchestrator.refresh_children(target)

    async def elaborate(self, item_id: Optional[str] = None) -> Optional[str]:
        target = self._target(item_id)
        if target is None:
            return None
        return await self.orchestrator.elaborate(target)

    # ==================== Links ====================

    def _focus_label(self) -> Optional[str]:
        item = self.tree.active_item
        if item is None or item.id == TRUNK_ID:
            return None
        return item.label

    async def generate_links(self) -> List[UsefulLink]:
        """Suggest links for the topic, narrowed to the active idea if any."""
        return await self.links.generate(self._focus_label())

    async def refresh_links(self) -> List[UsefulLink]:
        return await self.links.refresh(self._focus_label())

    async def delete_link(self, link_id: str) -> bool:
        return await self.links.delete(link_id)

    # ==================== View ====================

    def center_view(self):
        self.viewport.reset_view()

    def toggle_grid(self) -> bool:
        self.show_grid.set(not self.show_grid.value)
        self._settings_changed()
        return self.show_grid.value

    def toggle_auto_generation(self) -> bool:
        self.auto_generate.set(not self.auto_generate.value)
        self._settings_changed()
        return self.auto_generate.value
