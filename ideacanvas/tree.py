"""In-memory item tree with write-through persistence.

Mutations apply to memory first and synchronously so the canvas can repaint
at once. Writes then go to the persistence port:

* labels and note text are debounced per record;
* likes are fire-and-forget;
* creation and removal are awaited because callers need the id, or need the
  cascade finished, before they continue.
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Dict, List, Optional

from ideacanvas.models import TRUNK_ID, Item, ItemKind, Note, Point, Scope, make_trunk
from ideacanvas.ports import PersistencePort
from ideacanvas.state import StateSlice
from ideacanvas.tasks import BackgroundTasks

logger = logging.getLogger(__name__)

LABEL_DEBOUNCE_SECONDS = 0.5


class ItemTree:
    """Items, notes and the virtual trunk of one project canvas."""

    def __init__(self, store: PersistencePort, scope: Scope, topic_context: str = "",
                 tasks: Optional[BackgroundTasks] = None,
                 label_debounce: float = LABEL_DEBOUNCE_SECONDS):
        self.store = store
        self.scope = scope
        self.tasks = tasks or BackgroundTasks()
        self.label_debounce = label_debounce

        self.trunk = make_trunk(topic_context)
        self.items: Dict[str, Item] = {}
        self.notes: Dict[str, Note] = {}
        self._extra_context: Dict[str, str] = {}

        # Pending debounced writes, keyed by record id
        self._label_timers: Dict[str, asyncio.TimerHandle] = {}
        self._note_timers: Dict[str, asyncio.TimerHandle] = {}

        self.active_id: StateSlice[Optional[str]] = StateSlice(None)

        # Callbacks
        self.on_changed: Optional[Callable[[], None]] = None

    @property
    def topic_context(self) -> str:
        return self.trunk.label

    def _changed(self):
        if self.on_changed:
            self.on_changed()

    # ==================== Loading ====================

    async def load(self):
        """Replace memory with what the store holds for this scope."""
        items = await self.store.list_nodes(self.scope)
        notes = await self.store.list_notes(self.scope)
        self.items = {item.id: item for item in items}
        self.notes = {note.id: note for note in notes}
        logger.info("Loaded %d items and %d notes for project %s",
                    len(self.items), len(self.notes), self.scope.project_id)
        self._changed()

    # ==================== Queries ====================

    def get(self, item_id: str) -> Item:
        """Look up an item; the trunk id resolves to the virtual trunk."""
        if item_id == TRUNK_ID:
            return self.trunk
        return self.items[item_id]

    def __contains__(self, item_id: str) -> bool:
        return item_id == TRUNK_ID or item_id in self.items

    def __len__(self) -> int:
        return len(self.items)

    def children_of(self, item_id: str) -> List[Item]:
        return [item for item in self.items.values() if item.parent_id == item_id]

    def has_children(self, item_id: str) -> bool:
        return any(item.parent_id == item_id for item in self.items.values())

    def descendants_of(self, item_id: str) -> List[Item]:
        """Every item below ``item_id``, breadth first, excluding itself."""
        found = []
        queue = deque([item_id])
        while queue:
            current = queue.popleft()
            for child in self.children_of(current):
                found.append(child)
                queue.append(child.id)
        return found

    def positions(self) -> List[Point]:
        """Occupied world points, items and notes alike."""
        points = [item.position for item in self.items.values()]
        points.extend(note.position for note in self.notes.values())
        return points

    def saved_ideas(self) -> List[Item]:
        return [item for item in self.items.values() if item.liked]

    @property
    def active_item(self) -> Optional[Item]:
        active = self.active_id.value
        if active is None or active not in self:
            return None
        return self.get(active)

    def set_active(self, item_id: Optional[str]):
        if item_id is not None and item_id not in self:
            raise KeyError(item_id)
        self.active_id.set(item_id)

    # ==================== Item Mutations ====================

    async def add(self, kind: ItemKind, label: str, position: Point,
                  parent_id: Optional[str] = None, manually_created: bool = False) -> Item:
        """Create an item through the store, then add it to memory."""
        kind = ItemKind(kind)
        if kind == ItemKind.NOTE:
            raise ValueError("notes are created with add_note()")
        if parent_id is not None and parent_id not in self:
            raise KeyError(parent_id)

        item_id = await self.store.create_node(
            self.scope, label, parent_id, position.x, position.y,
            kind=kind, manually_created=manually_created,
        )
        item = Item(id=item_id, kind=kind, x=position.x, y=position.y, label=label,
                    parent_id=parent_id, manually_created=manually_created)
        self.items[item_id] = item
        self._changed()
        return item

    def update_label(self, item_id: str, label: str):
        """Change a label now; write it once edits pause."""
        if item_id == TRUNK_ID:
            raise ValueError("the trunk label is the topic context and cannot be edited")
        item = self.items[item_id]
        if item.label == label:
            return
        item.label = label
        self._changed()
        self._debounce(self._label_timers, item_id, self._write_label)

    def toggle_liked(self, item_id: str) -> bool:
        if item_id == TRUNK_ID:
            raise ValueError("the trunk cannot be liked")
        item = self.items[item_id]
        item.liked = not item.liked
        self._changed()
        self.tasks.spawn(self.store.update_node(self.scope, item_id, liked=item.liked),
                         f"like {item_id}")
        return item.liked

    async def remove(self, item_id: str) -> bool:
        """Delete an item and everything below it.

        Deletes run deepest first and each item leaves memory as soon as the
        store has dropped it, so a failure part way keeps memory and store in
        step without orphaning a child. Returns False if any delete failed.
        """
        if item_id == TRUNK_ID:
            raise ValueError("the trunk cannot be removed")
        if item_id not in self.items:
            raise KeyError(item_id)

        doomed = [item_id] + [item.id for item in self.descendants_of(item_id)]
        removed = []
        ok = True
        for doomed_id in reversed(doomed):
            try:
                await self.store.delete_node(self.scope, doomed_id)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Failed to delete %s: %s", doomed_id, exc, exc_info=exc)
                ok = False
                break
            self._forget(doomed_id)
            removed.append(doomed_id)

        if self.active_id.value in removed:
            self.active_id.set(None)
        if removed:
            logger.debug("Removed %d of %d item(s) under %s", len(removed), len(doomed), item_id)
            self._changed()
        return ok

    def _forget(self, item_id: str):
        self.items.pop(item_id, None)
        self._extra_context.pop(item_id, None)
        timer = self._label_timers.pop(item_id, None)
        if timer is not None:
            timer.cancel()

    # ==================== Notes ====================

    async def add_note(self, position: Point, text: str = "") -> Note:
        note_id = await self.store.create_note(self.scope, position.x, position.y, text)
        note = Note(id=note_id, x=position.x, y=position.y, text=text)
        self.notes[note_id] = note
        self._changed()
        return note

    def update_note_text(self, note_id: str, text: str):
        note = self.notes[note_id]
        if note.text == text:
            return
        note.text = text
        self._changed()
        self._debounce(self._note_timers, note_id, self._write_note)

    async def remove_note(self, note_id: str) -> bool:
        if note_id not in self.notes:
            raise KeyError(note_id)
        try:
            await self.store.delete_note(self.scope, note_id)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to delete note %s: %s", note_id, exc, exc_info=exc)
            return False
        self.notes.pop(note_id)
        timer = self._note_timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()
        self._changed()
        return True

    # ==================== Extra Context ====================

    def set_extra_context(self, item_id: str, text: str):
        """Attach free text to feed the next generation for ``item_id``."""
        if item_id not in self:
            raise KeyError(item_id)
        text = text.strip()
        if text:
            self._extra_context[item_id] = text
        else:
            self._extra_context.pop(item_id, None)

    def extra_context_for(self, item_id: str) -> Optional[str]:
        return self._extra_context.get(item_id)

    def clear_extra_context(self, item_id: str):
        """Drop the context once a generation has used it."""
        if self._extra_context.pop(item_id, None) is not None:
            self._changed()

    # ==================== Write-through ====================

    def _debounce(self, timers: Dict[str, asyncio.TimerHandle], record_id: str,
                  write: Callable[[str], None]):
        pending = timers.pop(record_id, None)
        if pending is not None:
            pending.cancel()
        loop = asyncio.get_running_loop()
        timers[record_id] = loop.call_later(self.label_debounce, write, record_id)

    def _write_label(self, item_id: str):
        self._label_timers.pop(item_id, None)
        item = self.items.get(item_id)
        if item is None:
            return
        self.tasks.spawn(self.store.update_node(self.scope, item_id, label=item.label),
                         f"save label {item_id}")

    def _write_note(self, note_id: str):
        self._note_timers.pop(note_id, None)
        note = self.notes.get(note_id)
        if note is None:
            return
        self.tasks.spawn(self.store.update_note(self.scope, note_id, text=note.text),
                         f"save note {note_id}")

    @property
    def pending_writes(self) -> int:
        return len(self._label_timers) + len(self._note_timers)

    async def flush(self):
        """Write pending edits now and wait for every background write."""
        for timers, write in ((self._label_timers, self._write_label),
                              (self._note_timers, self._write_note)):
            for record_id, timer in list(timers.items()):
                timer.cancel()
                write(record_id)
        await self.tasks.drain()
