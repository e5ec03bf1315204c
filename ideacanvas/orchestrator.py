"""Decides when to ask the generation service for ideas and merges the results.

Every request registers an operation token for as long as it runs. The
``generating`` slice stays true while any token is outstanding, so a fast
request finishing never hides a slow one that is still going.
"""

import asyncio
import itertools
import logging
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Set

import httpx

from ideacanvas import placement
from ideacanvas.generation import (
    BATCH_SIZE, DEFAULT_TIMEOUT, LINK_COUNT, GenerationError, GenerationMode,
    GenerationRequest, GenerationResponse, LinkSuggestion,
)
from ideacanvas.models import TRUNK_ID, Item, ItemKind, Point
from ideacanvas.ports import GenerationPort
from ideacanvas.state import StateSlice
from ideacanvas.tree import ItemTree

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Generation triggers for one canvas."""

    def __init__(self, tree: ItemTree, generator: GenerationPort,
                 auto_generate: bool = True, batch_size: int = BATCH_SIZE,
                 timeout: float = DEFAULT_TIMEOUT):
        self.tree = tree
        self.generator = generator
        self.batch_size = batch_size
        self.timeout = timeout

        self.auto_generate: StateSlice[bool] = StateSlice(auto_generate)
        self.generating: StateSlice[bool] = StateSlice(False)
        self.visited: Set[str] = set()

        self._operations: Dict[int, str] = {}
        self._tokens = itertools.count(1)
        self._bootstrapping = False

        # Callbacks
        self.on_elaboration: Optional[Callable[[str, str], None]] = None

    # ==================== Operation tracking ====================

    @property
    def in_flight(self) -> List[str]:
        return list(self._operations.values())

    @contextmanager
    def _operation(self, description: str):
        token = next(self._tokens)
        self._operations[token] = description
        self.generating.set(True)
        try:
            yield token
        finally:
            del self._operations[token]
            self.generating.set(bool(self._operations))

    async def _request(self, request: GenerationRequest,
                       description: str) -> Optional[GenerationResponse]:
        """Run one request under the timeout. Any failure yields None."""
        with self._operation(description):
            try:
                return await asyncio.wait_for(self.generator.generate(request), self.timeout)
            except asyncio.TimeoutError:
                logger.warning("%s timed out after %.1fs", description, self.timeout)
            except httpx.HTTPStatusError as exc:
                logger.warning("%s failed with HTTP %s", description, exc.response.status_code)
            except httpx.HTTPError as exc:
                logger.warning("%s failed: %s", description, exc)
            except GenerationError as exc:
                logger.warning("%s returned an unusable response: %s", description, exc)
        return None

    # ==================== Triggers ====================

    async def bootstrap(self, center: Point) -> List[Item]:
        """Seed an empty canvas with a first batch around ``center``."""
        topic = self.tree.topic_context
        if len(self.tree) or not topic or not self.auto_generate.value or self._bootstrapping:
            return []

        self._bootstrapping = True
        try:
            response = await self._request(
                GenerationRequest(GenerationMode.INITIAL, topic), "initial ideas")
            if response is None:
                return []
            labels = response.labels[:self.batch_size]
            spots = placement.layout_initial(center, len(labels), self.tree.positions())
            return await self._create_leaves(labels, spots, TRUNK_ID)
        finally:
            self._bootstrapping = False

    async def on_item_activated(self, item_id: str) -> List[Item]:
        """Generate children the first time an eligible item is activated."""
        if item_id == TRUNK_ID:
            return []
        item = self.tree.get(item_id)
        first_visit = item_id not in self.visited
        self.visited.add(item_id)

        if not first_visit or not self.auto_generate.value:
            return []
        if item.manually_created or not self.tree.topic_context:
            logger.debug("No automatic generation for %s", item_id)
            return []
        if self.tree.has_children(item_id):
            return []
        return await self._generate_children(item)

    async def generate_more(self, item_id: str) -> List[Item]:
        """Append a related batch under ``item_id``, then drop its extra context."""
        item = self.tree.get(item_id)
        if not self.tree.topic_context:
            logger.debug("No topic context; nothing to generate for %s", item_id)
            return []
        try:
            return await self._generate_children(item)
        finally:
            self.tree.clear_extra_context(item_id)

    async def refresh_children(self, item_id: str) -> List[Item]:
        """Replace the direct children of ``item_id`` with a fresh batch."""
        item = self.tree.get(item_id)
        if not self.tree.topic_context:
            logger.debug("No topic context; nothing to refresh for %s", item_id)
            return []
        for child in self.tree.children_of(item_id):
            if not await self.tree.remove(child.id):
                logger.warning("Refresh of %s stopped; could not remove %s", item_id, child.id)
                return []
        try:
            return await self._generate_children(item)
        finally:
            self.tree.clear_extra_context(item_id)

    async def elaborate(self, item_id: str) -> Optional[str]:
        """Ask for a short elaboration of one item. Nothing is stored."""
        item = self.tree.get(item_id)
        topic = self.tree.topic_context
        if not topic:
            return None
        request = GenerationRequest(
            GenerationMode.ELABORATE, topic,
            parent_label=None if item.id == TRUNK_ID else item.label,
            extra_context=self.tree.extra_context_for(item_id),
        )
        response = await self._request(request, f"elaborate {item_id}")
        if response is None:
            return None
        if self.on_elaboration:
            self.on_elaboration(item_id, response.elaboration)
        return response.elaboration

    async def suggest_links(self, focus_label: Optional[str] = None,
                            count: int = LINK_COUNT) -> List[LinkSuggestion]:
        """Ask for external resources on the topic, narrowed to ``focus_label``."""
        topic = self.tree.topic_context
        if not topic:
            logger.debug("No topic context; no links to suggest")
            return []
        request = GenerationRequest(GenerationMode.LINKS, topic,
                                    parent_label=focus_label or None, count=count)
        response = await self._request(request, "useful links")
        if response is None:
            return []
        return response.links[:count]

    # ==================== Merging ====================

    async def _generate_children(self, item: Item) -> List[Item]:
        request = GenerationRequest(
            GenerationMode.RELATED, self.tree.topic_context,
            parent_label=item.label,
            extra_context=self.tree.extra_context_for(item.id),
        )
        response = await self._request(request, f"related ideas for {item.id}")
        if response is None:
            return []
        if item.id not in self.tree:
            logger.info("%s was removed while generating; dropping results", item.id)
            return []
        labels = response.labels[:self.batch_size]
        spots = placement.layout_children(item.position, len(labels), self.tree.positions())
        return await self._create_leaves(labels, spots, item.id)

    async def _create_leaves(self, labels: List[str], spots: List[Point],
                             parent_id: str) -> List[Item]:
        created = []
        for label, spot in zip(labels, spots):
            try:
                created.append(await self.tree.add(ItemKind.LEAF, label, spot, parent_id=parent_id))
            except KeyError:
                logger.info("Parent %s vanished; keeping %d of %d new items",
                            parent_id, len(created), len(labels))
                break
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Failed to store generated item %r; dropping the rest of the batch: %s",
                             label, exc, exc_info=exc)
                break
        logger.debug("Added %d item(s) under %s", len(created), parent_id)
        return created
