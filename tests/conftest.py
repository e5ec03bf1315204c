"""Shared fixtures: in-memory store, scripted generator, tmp_path database."""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import pytest

from ideacanvas.database import Database
from ideacanvas.generation import (
    LINK_COUNT, GenerationError, GenerationMode, GenerationRequest, GenerationResponse,
    LinkSuggestion,
)
from ideacanvas.models import Item, ItemKind, Note, Point, Scope, UsefulLink
from ideacanvas.tree import ItemTree
from ideacanvas.viewport import Viewport

SCOPE = Scope("tester", "1")
TOPIC = "Urban gardening"


class FakeStore:
    """Persistence port kept in dictionaries, with failure injection."""

    def __init__(self):
        self.nodes: Dict[str, Item] = {}
        self.notes: Dict[str, Note] = {}
        self.links: Dict[str, UsefulLink] = {}
        self.calls: List[tuple] = []
        self.fail_create = False
        self.fail_delete_ids: set = set()
        self.fail_link_titles: set = set()
        self.fail_clear_links = False
        self._ids = itertools.count(1)

    async def create_node(self, scope, label, parent_id, x, y, kind=ItemKind.LEAF,
                          manually_created=False) -> str:
        self.calls.append(("create_node", label, parent_id))
        if self.fail_create:
            raise RuntimeError("store unavailable")
        node_id = str(next(self._ids))
        self.nodes[node_id] = Item(id=node_id, kind=ItemKind(kind), x=x, y=y, label=label,
                                   parent_id=parent_id, manually_created=manually_created)
        return node_id

    async def list_nodes(self, scope) -> List[Item]:
        return [Item(**vars(item)) for item in self.nodes.values()]

    async def update_node(self, scope, node_id, **fields: Any):
        self.calls.append(("update_node", node_id, fields))
        item = self.nodes.get(node_id)
        if item is not None:
            for name, value in fields.items():
                setattr(item, name, value)

    async def delete_node(self, scope, node_id):
        self.calls.append(("delete_node", node_id))
        if node_id in self.fail_delete_ids:
            raise RuntimeError(f"cannot delete {node_id}")
        self.nodes.pop(node_id, None)

    async def create_note(self, scope, x, y, text="") -> str:
        self.calls.append(("create_note", text))
        note_id = str(next(self._ids))
        self.notes[note_id] = Note(id=note_id, x=x, y=y, text=text)
        return note_id

    async def list_notes(self, scope) -> List[Note]:
        return [Note(**vars(note)) for note in self.notes.values()]

    async def update_note(self, scope, note_id, **fields: Any):
        self.calls.append(("update_note", note_id, fields))
        note = self.notes.get(note_id)
        if note is not None:
            for name, value in fields.items():
                setattr(note, name, value)

    async def delete_note(self, scope, note_id):
        self.calls.append(("delete_note", note_id))
        self.notes.pop(note_id, None)

    async def create_link(self, scope, title, url, snippet="") -> str:
        self.calls.append(("create_link", title))
        if title in self.fail_link_titles:
            raise RuntimeError(f"cannot save {title}")
        link_id = str(next(self._ids))
        self.links[link_id] = UsefulLink(id=link_id, title=title, url=url, snippet=snippet)
        return link_id

    async def list_links(self, scope) -> List[UsefulLink]:
        return [UsefulLink(**vars(link)) for link in self.links.values()]

    async def delete_link(self, scope, link_id):
        self.calls.append(("delete_link", link_id))
        self.links.pop(link_id, None)

    async def delete_all_links(self, scope) -> int:
        self.calls.append(("delete_all_links",))
        if self.fail_clear_links:
            raise RuntimeError("cannot clear links")
        count = len(self.links)
        self.links.clear()
        return count

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeGenerator:
    """Generation port that records requests and answers from a script.

    Each scripted entry is a list of labels (or of LinkSuggestions for link
    requests), an elaboration string, an exception instance to raise, or None
    for the default batch.
    """

    def __init__(self, delay: float = 0.0):
        self.requests: List[GenerationRequest] = []
        self.script: List[Any] = []
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self._counter = itertools.count(1)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        entry = self.script.pop(0) if self.script else None
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, str):
            return GenerationResponse(elaboration=entry)
        if entry is None:
            n = next(self._counter)
            if request.mode == GenerationMode.ELABORATE:
                return GenerationResponse(elaboration=f"About {request.parent_label}")
            if request.mode == GenerationMode.LINKS:
                return GenerationResponse(links=[
                    LinkSuggestion(title=f"Link {n}.{i}", url=f"https://example.org/{n}/{i}",
                                   snippet=f"Resource {i}")
                    for i in range(1, (request.count or LINK_COUNT) + 1)])
            entry = [f"idea {n}.{i}" for i in range(1, 4)]
        if not entry:
            raise GenerationError("response labels are empty")
        if request.mode == GenerationMode.LINKS:
            return GenerationResponse(links=list(entry))
        return GenerationResponse(labels=list(entry))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def tree(store) -> ItemTree:
    """Tree over the fake store with a short label debounce."""
    return ItemTree(store, SCOPE, TOPIC, label_debounce=0.01)


@pytest.fixture
def viewport() -> Viewport:
    return Viewport(800, 600)


@pytest.fixture
def db(tmp_path) -> Database:
    """SQLite database in a temporary directory."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def point(x: float, y: float) -> Point:
    return Point(float(x), float(y))
