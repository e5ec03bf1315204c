"""Useful links saved alongside a project.

Links are suggested by the generation service for the topic, or for the
active idea when there is one, and stored through the persistence port.
They can be removed one at a time or replaced all at once.
"""

import logging
from typing import List, Optional

from ideacanvas.models import Scope, UsefulLink
from ideacanvas.orchestrator import GenerationOrchestrator
from ideacanvas.ports import PersistencePort
from ideacanvas.state import StateSlice

logger = logging.getLogger(__name__)


class LinkShelf:
    """The saved links of one project."""

    def __init__(self, store: PersistencePort, scope: Scope,
                 orchestrator: GenerationOrchestrator):
        self.store = store
        self.scope = scope
        self.orchestrator = orchestrator

        self.links: StateSlice[List[UsefulLink]] = StateSlice([])
        self.busy: StateSlice[bool] = StateSlice(False)  # generating or refreshing

    def __len__(self) -> int:
        return len(self.links.value)

    def __contains__(self, link_id: str) -> bool:
        return any(link.id == link_id for link in self.links.value)

    async def load(self) -> List[UsefulLink]:
        try:
            links = await self.store.list_links(self.scope)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to load links: %s", exc, exc_info=exc)
            return self.links.value
        self.links.set(links)
        return links

    async def generate(self, focus_label: Optional[str] = None) -> List[UsefulLink]:
        """Add a fresh set of suggestions to the saved ones."""
        if self.busy.value:
            logger.debug("Links are already being generated")
            return []
        self.busy.set(True)
        try:
            return await self._add_suggestions(focus_label)
        finally:
            self.busy.set(False)

    async def refresh(self, focus_label: Optional[str] = None) -> List[UsefulLink]:
        """Replace every saved link with a fresh set.

        If the store cannot drop the old links nothing is requested.
        """
        if self.busy.value:
            logger.debug("Links are already being generated")
            return []
        self.busy.set(True)
        try:
            try:
                removed = await self.store.delete_all_links(self.scope)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Failed to clear links: %s", exc, exc_info=exc)
                return []
            logger.debug("Cleared %d link(s)", removed)
            self.links.set([])
            return await self._add_suggestions(focus_label)
        finally:
            self.busy.set(False)

    async def delete(self, link_id: str) -> bool:
        if link_id not in self:
            raise KeyError(link_id)
        try:
            await self.store.delete_link(self.scope, link_id)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to delete link %s: %s", link_id, exc, exc_info=exc)
            return False
        self.links.set([link for link in self.links.value if link.id != link_id])
        return True

    async def _add_suggestions(self, focus_label: Optional[str]) -> List[UsefulLink]:
        suggestions = await self.orchestrator.suggest_links(focus_label)
        saved = []
        # A failed write skips only that link
        for suggestion in suggestions:
            try:
                link_id = await self.store.create_link(
                    self.scope, suggestion.title, suggestion.url, suggestion.snippet)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Failed to save link %r: %s", suggestion.title, exc, exc_info=exc)
                continue
            saved.append(UsefulLink(id=link_id, title=suggestion.title,
                                    url=suggestion.url, snippet=suggestion.snippet))
        if saved:
            self.links.set(self.links.value + saved)
        logger.debug("Saved %d of %d suggested link(s)", len(saved), len(suggestions))
        return saved
