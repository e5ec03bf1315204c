"""Cairo drawing of the canvas.

The grid is rasterised into an offscreen surface at device resolution and
reused until the view changes. Everything in the world layer is drawn under
one composed ``translate``/``scale`` so it always moves together.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cairo

from ideacanvas import scene
from ideacanvas.models import TRUNK_ID, Item, ItemKind, Note
from ideacanvas.viewport import WORLD_BOUNDS, Bounds, Transform

GRID_SIZE = 50  # world units per cell
MAJOR_EVERY = 5
FONT_FACE = "JetBrains Mono"


@dataclass
class EditState:
    """Inline edit in progress on a card."""
    hit: scene.Hit
    text: str
    cursor: int
    original: str
    cursor_visible: bool = True


class GridLayer:
    """Cached HiDPI raster of the background grid."""

    COLOR = (0.12, 0.12, 0.12)
    MAJOR_COLOR = (0.17, 0.17, 0.17)
    BORDER_COLOR = (0.6, 0.1, 0.1)

    def __init__(self, grid_size: float = GRID_SIZE, bounds: Bounds = WORLD_BOUNDS):
        self.grid_size = grid_size
        self.bounds = bounds
        self.renders = 0
        self._surface: Optional[cairo.ImageSurface] = None
        self._key: Optional[Tuple] = None

    def invalidate(self):
        self._surface = None
        self._key = None

    def surface_for(self, transform: Transform, width: int, height: int,
                    dpr: float, item_count: int) -> cairo.ImageSurface:
        """Return the grid surface, re-rendering only when an input changed."""
        key = (transform, int(width), int(height), dpr, item_count)
        if self._surface is None or key != self._key:
            self._surface = self._render(transform, int(width), int(height), dpr)
            self._key = key
            self.renders += 1
        return self._surface

    def _render(self, transform: Transform, width: int, height: int,
                dpr: float) -> cairo.ImageSurface:
        surface = cairo.ImageSurface(
            cairo.FORMAT_ARGB32,
            max(1, int(math.ceil(width * dpr))),
            max(1, int(math.ceil(height * dpr))),
        )
        surface.set_device_scale(dpr, dpr)
        cr = cairo.Context(surface)

        left, top = transform.to_world(0, 0)
        right, bottom = transform.to_world(width, height)
        b = self.bounds
        left, right = max(left, b.min_x), min(right, b.max_x)
        top, bottom = max(top, b.min_y), min(bottom, b.max_y)
        if left < right and top < bottom:
            sx0, sy0 = transform.to_screen(left, top)
            sx1, sy1 = transform.to_screen(right, bottom)
            cr.set_line_width(1.0)

            gx = math.ceil(left / self.grid_size) * self.grid_size
            while gx <= right:
                major = round(gx / self.grid_size) % MAJOR_EVERY == 0
                cr.set_source_rgb(*(self.MAJOR_COLOR if major else self.COLOR))
                sx = round(transform.to_screen(gx, 0)[0]) + 0.5
                cr.move_to(sx, sy0)
                cr.line_to(sx, sy1)
                cr.stroke()
                gx += self.grid_size

            gy = math.ceil(top / self.grid_size) * self.grid_size
            while gy <= bottom:
                major = round(gy / self.grid_size) % MAJOR_EVERY == 0
                cr.set_source_rgb(*(self.MAJOR_COLOR if major else self.COLOR))
                sy = round(transform.to_screen(0, gy)[1]) + 0.5
                cr.move_to(sx0, sy)
                cr.line_to(sx1, sy)
                cr.stroke()
                gy += self.grid_size

            # World edge
            cr.set_source_rgb(*self.BORDER_COLOR)
            cr.set_line_width(2.0)
            wl, wt = transform.to_screen(b.min_x, b.min_y)
            wr, wb = transform.to_screen(b.max_x, b.max_y)
            cr.rectangle(wl, wt, wr - wl, wb - wt)
            cr.stroke()

        surface.flush()
        return surface


def draw_rounded_rect(cr, x: float, y: float, w: float, h: float, radius: float):
    """Draw a rounded rectangle path."""
    cr.new_path()
    cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
    cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
    cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
    cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
    cr.close_path()


class SceneRenderer:
    """Paints one frame of the canvas for a :class:`CanvasEngine`."""

    COLORS = {
        'bg_primary': (0.039, 0.039, 0.039),      # #0a0a0a
        'bg_secondary': (0.078, 0.078, 0.078),    # #141414
        'surface': (0.118, 0.118, 0.118),         # #1e1e1e
        'branch': (0.145, 0.145, 0.145),          # #252525
        'border_subtle': (0.165, 0.165, 0.165),   # #2a2a2a
        'border_active': (1.0, 0.176, 0.176),     # #ff2d2d
        'text_primary': (0.878, 0.878, 0.878),    # #e0e0e0
        'text_secondary': (0.533, 0.533, 0.533),  # #888888
        'text_muted': (0.333, 0.333, 0.333),      # #555555
        'accent_primary': (1.0, 0.176, 0.176),    # #ff2d2d
        'accent_secondary': (0.8, 0.0, 0.0),      # #cc0000
        'liked': (1.0, 0.667, 0.0),               # #ffaa00
        'note': (0.16, 0.14, 0.07),
        'note_border': (0.45, 0.38, 0.1),
        'trunk': (0.15, 0.05, 0.05),
        'trunk_border': (0.6, 0.1, 0.1),
    }

    def __init__(self):
        self.grid = GridLayer()

    def draw(self, cr, width: float, height: float, engine,
             editing: Optional[EditState] = None, dpr: float = 1.0):
        viewport = engine.viewport
        transform = viewport.transform

        cr.save()
        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.paint()

        if engine.show_grid.value:
            surface = self.grid.surface_for(transform, width, height, dpr, len(engine.tree))
            cr.set_source_surface(surface, 0, 0)
            cr.paint()

        # World layer
        cr.save()
        cr.translate(transform.tx, transform.ty)
        cr.scale(transform.scale, transform.scale)

        tree = engine.tree
        active_id = tree.active_id.value
        self._draw_connections(cr, tree)
        self._draw_card(cr, tree.trunk, active_id == TRUNK_ID, None)
        for item in tree.items.values():
            edit = editing if (editing and editing.hit.kind == scene.HitKind.ITEM
                               and editing.hit.id == item.id) else None
            self._draw_card(cr, item, active_id == item.id, edit)
        selected_note = engine.selected_note_id.value
        for note in tree.notes.values():
            edit = editing if (editing and editing.hit.kind == scene.HitKind.NOTE
                               and editing.hit.id == note.id) else None
            self._draw_note(cr, note, selected_note == note.id, edit)
        cr.restore()

        # Screen-space overlay
        self._draw_overlay(cr, width, height, engine)
        cr.restore()

    # ==================== World layer ====================

    def _draw_connections(self, cr, tree):
        for item in tree.items.values():
            if item.parent_id is None:
                continue
            if item.parent_id == TRUNK_ID:
                parent = tree.trunk
            else:
                parent = tree.items.get(item.parent_id)
                if parent is None:
                    continue

            cr.save()
            if parent.is_trunk:
                cr.set_source_rgba(*self.COLORS['accent_primary'], 0.7)
                cr.set_line_width(2.0)
            else:
                cr.set_source_rgba(*self.COLORS['accent_secondary'], 0.6)
                cr.set_line_width(1.5)
                cr.set_dash([6.0, 4.0])
            cr.set_line_cap(cairo.LINE_CAP_ROUND)
            cr.move_to(parent.x, parent.y)
            cr.line_to(item.x, item.y)
            cr.stroke()
            cr.restore()

    def _draw_card(self, cr, item: Item, is_active: bool, editing: Optional[EditState]):
        label = editing.text if editing else item.label
        rect = scene.card_rect(item, label)
        x, y, w, h = rect.x, rect.y, rect.width, rect.height
        radius = 8 if item.is_trunk else 6

        cr.save()
        draw_rounded_rect(cr, x, y, w, h, radius)
        if item.is_trunk:
            bg = self.COLORS['trunk']
        elif item.kind == ItemKind.BRANCH:
            bg = self.COLORS['branch']
        else:
            bg = self.COLORS['surface']
        cr.set_source_rgb(*bg)
        cr.fill_preserve()

        if is_active or editing:
            cr.set_line_width(2)
            cr.set_source_rgb(*self.COLORS['border_active'])
            cr.stroke()
            if not editing:
                # Glow
                for i in range(3):
                    cr.set_source_rgba(*self.COLORS['accent_primary'], 0.15 - i * 0.04)
                    draw_rounded_rect(cr, x - i * 2, y - i * 2, w + i * 4, h + i * 4, radius + i * 2)
                    cr.stroke()
        else:
            cr.set_line_width(2 if item.is_trunk else 1)
            cr.set_source_rgb(*(self.COLORS['trunk_border'] if item.is_trunk
                                else self.COLORS['border_subtle']))
            cr.stroke()

        if item.liked:
            cr.arc(x + w - 8, y + 8, 4, 0, 2 * math.pi)
            cr.set_source_rgb(*self.COLORS['liked'])
            cr.fill()

        cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL,
                            cairo.FONT_WEIGHT_BOLD if item.is_trunk or item.kind == ItemKind.BRANCH
                            else cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(15 if item.is_trunk else 13)
        text_x = x + scene.NODE_PADDING
        text_y = y + h / 2
        max_width = w - scene.NODE_PADDING * 2

        if editing:
            self._draw_edit_text(cr, text_x, text_y, editing)
        else:
            text = label or ("No topic" if item.is_trunk else "")
            extents = cr.text_extents(text)
            while extents.width > max_width and len(text) > 3:
                text = text[:-4] + "..."
                extents = cr.text_extents(text)
            cr.set_source_rgb(*(self.COLORS['text_primary'] if label
                                else self.COLORS['text_muted']))
            cr.move_to(text_x, text_y + extents.height / 2 - 2)
            cr.show_text(text)
        cr.restore()

    def _draw_note(self, cr, note: Note, is_selected: bool, editing: Optional[EditState]):
        rect = scene.note_rect(note)
        cr.save()
        draw_rounded_rect(cr, rect.x, rect.y, rect.width, rect.height, 4)
        cr.set_source_rgb(*self.COLORS['note'])
        cr.fill_preserve()
        cr.set_line_width(2 if is_selected or editing else 1)
        cr.set_source_rgb(*(self.COLORS['border_active'] if is_selected or editing
                            else self.COLORS['note_border']))
        cr.stroke()

        cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(12)
        text = editing.text if editing else note.text
        line_height = 16
        lines = scene.wrap_text(text, scene.NOTE_CHARS_PER_LINE) or [""]
        max_lines = int((rect.height - scene.NODE_PADDING) // line_height)
        cr.set_source_rgb(*(self.COLORS['text_primary'] if text else self.COLORS['text_muted']))
        if not text and not editing:
            lines = ["Empty note"]
        for index, line in enumerate(lines[:max_lines]):
            cr.move_to(rect.x + 10, rect.y + 20 + index * line_height)
            cr.show_text(line)

        if editing and editing.cursor_visible:
            line_no, column = scene.cursor_line(text, editing.cursor, scene.NOTE_CHARS_PER_LINE)
            if line_no < max_lines:
                prefix = lines[line_no][:column]
                cx = rect.x + 10 + (cr.text_extents(prefix).x_advance if prefix else 0)
                cy = rect.y + 20 + line_no * line_height
                cr.set_source_rgb(*self.COLORS['accent_primary'])
                cr.set_line_width(1.5)
                cr.move_to(cx, cy - 11)
                cr.line_to(cx, cy + 3)
                cr.stroke()
        cr.restore()

    def _draw_edit_text(self, cr, x: float, y: float, editing: EditState):
        extents = cr.text_extents(editing.text or "M")
        cr.set_source_rgb(*self.COLORS['text_primary'])
        cr.move_to(x, y + extents.height / 2 - 2)
        cr.show_text(editing.text)

        if editing.cursor_visible:
            prefix = editing.text[:editing.cursor]
            cursor_x = x + (cr.text_extents(prefix).x_advance if prefix else 0)
            cr.set_source_rgb(*self.COLORS['accent_primary'])
            cr.set_line_width(2)
            cr.move_to(cursor_x, y - extents.height / 2)
            cr.line_to(cursor_x, y + extents.height / 2 + 2)
            cr.stroke()

    # ==================== Overlay ====================

    def _draw_overlay(self, cr, width: float, height: float, engine):
        snapshot = engine.viewport.display.value
        cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(11)

        zoom_text = f"{round(snapshot.scale * 100)}%"
        extents = cr.text_extents(zoom_text)
        bx = width - extents.width - 28
        by = height - 34
        draw_rounded_rect(cr, bx, by, extents.width + 16, 22, 4)
        cr.set_source_rgba(*self.COLORS['bg_secondary'], 0.9)
        cr.fill_preserve()
        cr.set_source_rgb(*(self.COLORS['accent_primary'] if engine.viewport.at_edge
                            else self.COLORS['border_subtle']))
        cr.set_line_width(1)
        cr.stroke()
        cr.set_source_rgb(*self.COLORS['text_secondary'])
        cr.move_to(bx + 8, by + 15)
        cr.show_text(zoom_text)

        if engine.viewport.at_edge:
            cr.set_source_rgba(*self.COLORS['accent_primary'], 0.35)
            cr.set_line_width(4)
            cr.rectangle(2, 2, width - 4, height - 4)
            cr.stroke()

        if engine.generating.value:
            label = "Generating ideas..."
            extents = cr.text_extents(label)
            gx = (width - extents.width) / 2 - 10
            draw_rounded_rect(cr, gx, 12, extents.width + 20, 24, 4)
            cr.set_source_rgba(*self.COLORS['bg_secondary'], 0.9)
            cr.fill_preserve()
            cr.set_source_rgb(*self.COLORS['accent_primary'])
            cr.set_line_width(1)
            cr.stroke()
            cr.set_source_rgb(*self.COLORS['text_primary'])
            cr.move_to(gx + 10, 28)
            cr.show_text(label)
