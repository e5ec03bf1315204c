"""Card geometry and hit testing in world units.

Item and note positions are card centers. The renderer and the pointer
handlers share these helpers so what is drawn is what gets clicked.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ideacanvas.models import Item, Note
from ideacanvas.viewport import Transform

# Layout constants
NODE_PADDING = 16
NODE_MIN_WIDTH = 120
NODE_MAX_WIDTH = 300
NODE_HEIGHT = 40
TRUNK_MIN_WIDTH = 160
TRUNK_HEIGHT = 56
CHAR_WIDTH = 9  # average advance of the card font at 13px
NOTE_WIDTH = 200
NOTE_HEIGHT = 120


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return (self.x <= px <= self.x + self.width and
                self.y <= py <= self.y + self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


class HitKind(str, Enum):
    ITEM = "item"
    NOTE = "note"


@dataclass(frozen=True)
class Hit:
    """What sits under a pointer position."""
    kind: HitKind
    id: str


def card_size(label: str, is_trunk: bool = False) -> Tuple[float, float]:
    """Card dimensions for a label."""
    text_width = len(label) * CHAR_WIDTH + NODE_PADDING * 2
    if is_trunk:
        return max(TRUNK_MIN_WIDTH, min(NODE_MAX_WIDTH, text_width)), TRUNK_HEIGHT
    return max(NODE_MIN_WIDTH, min(NODE_MAX_WIDTH, text_width)), NODE_HEIGHT


def card_rect(item: Item, label: Optional[str] = None) -> Rect:
    """World rectangle of an item card; ``label`` overrides during editing."""
    width, height = card_size(item.label if label is None else label, item.is_trunk)
    return Rect(item.x - width / 2, item.y - height / 2, width, height)


def note_rect(note: Note) -> Rect:
    return Rect(note.x - NOTE_WIDTH / 2, note.y - NOTE_HEIGHT / 2, NOTE_WIDTH, NOTE_HEIGHT)


def hit_test(tree, transform: Transform, sx: float, sy: float) -> Optional[Hit]:
    """Find the card at screen point (sx, sy), top-most first.

    Draw order is trunk, items, notes, so the search runs in reverse.
    """
    wx, wy = transform.to_world(sx, sy)
    for note in reversed(list(tree.notes.values())):
        if note_rect(note).contains(wx, wy):
            return Hit(HitKind.NOTE, note.id)
    for item in reversed(list(tree.items.values())):
        if card_rect(item).contains(wx, wy):
            return Hit(HitKind.ITEM, item.id)
    if tree.trunk.label and card_rect(tree.trunk).contains(wx, wy):
        return Hit(HitKind.ITEM, tree.trunk.id)
    return None


# ==================== Note text ====================

NOTE_CHARS_PER_LINE = 24


def wrap_text(text: str, width: int = NOTE_CHARS_PER_LINE) -> List[str]:
    """Hard-wrap ``text`` at ``width`` characters, keeping explicit newlines."""
    lines = []
    for paragraph in text.split("\n"):
        if not paragraph:
            lines.append("")
            continue
        for start in range(0, len(paragraph), width):
            lines.append(paragraph[start:start + width])
    return lines


def cursor_line(text: str, cursor: int, width: int = NOTE_CHARS_PER_LINE) -> Tuple[int, int]:
    """Map a character offset to (line, column) in :func:`wrap_text` output."""
    line_no = 0
    offset = 0
    for paragraph in text.split("\n"):
        if cursor <= offset + len(paragraph):
            column = cursor - offset
            if column and column == len(paragraph) and column % width == 0:
                # End of a paragraph that fills its last line exactly
                return line_no + column // width - 1, width
            return line_no + column // width, column % width
        line_no += max(1, math.ceil(len(paragraph) / width))
        offset += len(paragraph) + 1
    return max(0, line_no - 1), 0
