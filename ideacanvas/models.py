"""Data model for canvas items, notes, links and projects."""

from typing import Optional, NamedTuple
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse


# Sentinel parent id meaning "attached to the root context card".
TRUNK_ID = "trunk"


class ItemKind(str, Enum):
    """Kinds of things living on the canvas."""
    BRANCH = "branch"
    LEAF = "leaf"
    NOTE = "note"


class Point(NamedTuple):
    """A position in world coordinates."""
    x: float
    y: float


ORIGIN = Point(0.0, 0.0)


@dataclass(frozen=True)
class Scope:
    """Owning user and project pair that scopes every stored record."""
    user_id: str
    project_id: str


@dataclass
class Project:
    """A canvas and the topic context it grows from."""
    id: str
    name: str = "Untitled Project"
    main_context: str = ""
    created_at: str = ""


@dataclass
class Item:
    """A spatial idea node (branch or leaf)."""
    id: str
    kind: ItemKind = ItemKind.LEAF
    x: float = 0.0
    y: float = 0.0
    label: str = ""
    liked: bool = False
    parent_id: Optional[str] = None  # another item id, TRUNK_ID, or None
    manually_created: bool = False

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)

    @property
    def is_trunk(self) -> bool:
        return self.id == TRUNK_ID


@dataclass
class Note:
    """A freeform note. Notes never have parents or children."""
    id: str
    x: float = 0.0
    y: float = 0.0
    text: str = ""

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)


@dataclass
class UsefulLink:
    """An external resource saved for a project."""
    id: str
    title: str
    url: str
    snippet: str = ""

    @property
    def hostname(self) -> str:
        return urlparse(self.url).hostname or self.url


def make_trunk(topic_context: str) -> Item:
    """Build the virtual root card for a topic. It is never persisted."""
    return Item(
        id=TRUNK_ID,
        kind=ItemKind.BRANCH,
        x=0.0,
        y=0.0,
        label=topic_context,
        manually_created=True,
    )
