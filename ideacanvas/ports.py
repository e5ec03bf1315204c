"""Interfaces of the services the canvas engine consumes."""

from typing import Any, List, Optional, Protocol

from ideacanvas.generation import GenerationRequest, GenerationResponse
from ideacanvas.models import Item, ItemKind, Note, Scope, UsefulLink


class PersistencePort(Protocol):
    """Asynchronous store for items, notes and links, scoped by user and project."""

    async def create_node(self, scope: Scope, label: str, parent_id: Optional[str],
                          x: float, y: float, kind: ItemKind = ItemKind.LEAF,
                          manually_created: bool = False) -> str: ...

    async def list_nodes(self, scope: Scope) -> List[Item]: ...

    async def update_node(self, scope: Scope, node_id: str, **fields: Any) -> None: ...

    async def delete_node(self, scope: Scope, node_id: str) -> None: ...

    async def create_note(self, scope: Scope, x: float, y: float, text: str = "") -> str: ...

    async def list_notes(self, scope: Scope) -> List[Note]: ...

    async def update_note(self, scope: Scope, note_id: str, **fields: Any) -> None: ...

    async def delete_note(self, scope: Scope, note_id: str) -> None: ...

    async def create_link(self, scope: Scope, title: str, url: str, snippet: str = "") -> str: ...

    async def list_links(self, scope: Scope) -> List[UsefulLink]: ...

    async def delete_link(self, scope: Scope, link_id: str) -> None: ...

    async def delete_all_links(self, scope: Scope) -> int: ...


class GenerationPort(Protocol):
    """Produces new labels, an elaboration or link suggestions for a topic."""

    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...
