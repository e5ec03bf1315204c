"""Canvas widget: pointer and keyboard input plus frame-driven redraw."""

import logging
from typing import Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GLib

from ideacanvas import scene
from ideacanvas.commands import CommandSurface
from ideacanvas.engine import CanvasEngine
from ideacanvas.render import EditState, SceneRenderer

logger = logging.getLogger(__name__)


class IdeaCanvas(Gtk.DrawingArea):
    """Infinite canvas showing one project."""

    ZOOM_STEP = 1.1
    CURSOR_BLINK_MS = 530

    def __init__(self, engine: CanvasEngine, commands: CommandSurface):
        super().__init__()

        self.engine = engine
        self.commands = commands
        self.renderer = SceneRenderer()

        # Pointer state
        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0
        self._pan_start_tx = 0.0
        self._pan_start_ty = 0.0
        self._sized = False

        # Inline editing
        self.editing: Optional[EditState] = None
        self.cursor_blink_id: Optional[int] = None

        self._tick_id: Optional[int] = None

        # Setup widget
        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_hexpand(True)
        self.set_vexpand(True)
        self.connect("resize", self._on_resize)

        self._setup_event_controllers()

        engine.on_changed = self._on_engine_changed
        self._subscriptions = [
            engine.show_grid.subscribe(lambda _value: self.queue_draw()),
            engine.generating.subscribe(lambda _value: self.queue_draw()),
            engine.selected_note_id.subscribe(lambda _value: self.queue_draw()),
            engine.viewport.display.subscribe(lambda _value: self.queue_draw()),
        ]

    def _setup_event_controllers(self):
        """Setup mouse and keyboard event controllers."""
        # Mouse click
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        click_ctrl.connect("released", self._on_click_released)
        self.add_controller(click_ctrl)

        # Mouse motion
        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        self.add_controller(motion_ctrl)

        # Scroll (zoom)
        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.VERTICAL)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        # Keyboard
        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        # Drag for panning (left mouse button)
        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(1)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        self.add_controller(drag_ctrl)

    def release(self):
        """Detach from the engine before the widget goes away."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        self.engine.on_changed = None
        self._stop_editing()
        if self._tick_id is not None:
            self.remove_tick_callback(self._tick_id)
            self._tick_id = None

    # ==================== Frame sync ====================

    def _on_engine_changed(self):
        self.queue_draw()
        self._ensure_ticking()

    def _ensure_ticking(self):
        if self._tick_id is None and self.engine.viewport.needs_frame:
            self._tick_id = self.add_tick_callback(self._on_tick)

    def _on_tick(self, widget, frame_clock) -> bool:
        frame_time = frame_clock.get_frame_time() / 1_000_000
        more = self.engine.viewport.tick(frame_time)
        self.queue_draw()
        if more:
            return GLib.SOURCE_CONTINUE
        self._tick_id = None
        return GLib.SOURCE_REMOVE

    def _on_resize(self, area, width, height):
        viewport = self.engine.viewport
        if not self._sized:
            # First allocation: put the world origin in the middle
            self._sized = True
            viewport.resize(width, height)
            viewport.jump_to(scale=viewport.scale)
        else:
            viewport.resize(width, height)

    def _on_draw(self, area, cr, width, height):
        """Main drawing function."""
        self.renderer.draw(cr, width, height, self.engine, self.editing,
                           dpr=float(self.get_scale_factor()))

    # ==================== Pointer ====================

    def _on_click(self, gesture, n_press, x, y):
        """Handle mouse press; double press starts inline editing."""
        self.grab_focus()
        hit = self.engine.hit_test(x, y)

        if self.editing and (hit is None or hit != self.editing.hit):
            self.commit_edit()

        if n_press == 2 and hit is not None:
            self.start_editing(hit)

    def _on_click_released(self, gesture, n_press, x, y):
        """A press and release without a drag selects what is under the pointer."""
        if n_press != 1:
            return
        hit = self.engine.hit_test(x, y)
        if hit is None:
            self.engine.clear_selection()
        elif hit.kind == scene.HitKind.NOTE:
            self.engine.select_note(hit.id)
        else:
            self.engine.click_item(hit.id)

    def _on_motion(self, controller, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y

    def _on_scroll(self, controller, dx, dy):
        """Zoom around the pointer."""
        if dy == 0:
            return False
        factor = self.ZOOM_STEP ** (-dy)
        self.engine.viewport.zoom_at(self.last_mouse_x, self.last_mouse_y, factor)
        return True

    def _on_drag_begin(self, gesture, start_x, start_y):
        viewport = self.engine.viewport
        self._pan_start_tx = viewport.tx
        self._pan_start_ty = viewport.ty

    def _on_drag_update(self, gesture, offset_x, offset_y):
        viewport = self.engine.viewport
        viewport.pan(self._pan_start_tx + offset_x - viewport.tx,
                     self._pan_start_ty + offset_y - viewport.ty)

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        """Handle keyboard input."""
        if self.editing:
            return self._handle_edit_key(keyval, state)

        if keyval in (Gdk.KEY_Delete, Gdk.KEY_BackSpace):
            self.commands.activate("delete-active")
            return True

        elif keyval == Gdk.KEY_Escape:
            self.engine.clear_selection()
            return True

        elif keyval in (Gdk.KEY_F2, Gdk.KEY_Return):
            active = self.engine.active_id.value
            note_id = self.engine.selected_note_id.value
            if active is not None:
                self.start_editing(scene.Hit(scene.HitKind.ITEM, active))
            elif note_id is not None:
                self.start_editing(scene.Hit(scene.HitKind.NOTE, note_id))
            return True

        return False

    def _handle_edit_key(self, keyval, state) -> bool:
        """Handle keyboard input during editing."""
        edit = self.editing
        shift = state & Gdk.ModifierType.SHIFT_MASK

        if keyval == Gdk.KEY_Return:
            if shift and edit.hit.kind == scene.HitKind.NOTE:
                self._insert("\n")
            else:
                self.commit_edit()
            return True

        elif keyval == Gdk.KEY_Escape:
            self.cancel_edit()
            return True

        elif keyval == Gdk.KEY_BackSpace:
            if edit.cursor > 0:
                self._set_edit_text(edit.text[:edit.cursor - 1] + edit.text[edit.cursor:],
                                    edit.cursor - 1)
            return True

        elif keyval == Gdk.KEY_Delete:
            if edit.cursor < len(edit.text):
                self._set_edit_text(edit.text[:edit.cursor] + edit.text[edit.cursor + 1:],
                                    edit.cursor)
            return True

        elif keyval == Gdk.KEY_Left:
            edit.cursor = max(0, edit.cursor - 1)
            self.queue_draw()
            return True

        elif keyval == Gdk.KEY_Right:
            edit.cursor = min(len(edit.text), edit.cursor + 1)
            self.queue_draw()
            return True

        elif keyval == Gdk.KEY_Home:
            edit.cursor = 0
            self.queue_draw()
            return True

        elif keyval == Gdk.KEY_End:
            edit.cursor = len(edit.text)
            self.queue_draw()
            return True

        else:
            # Insert printable character (supports Unicode)
            uc = Gdk.keyval_to_unicode(keyval)
            if uc and chr(uc).isprintable():
                self._insert(chr(uc))
                return True

        return False

    # ==================== Inline editing ====================

    def start_editing(self, hit: scene.Hit) -> bool:
        """Begin editing the card behind ``hit`` if it may be edited."""
        if hit.kind == scene.HitKind.ITEM:
            if not self.engine.can_edit(hit.id):
                return False
            text = self.engine.tree.get(hit.id).label
        else:
            text = self.engine.tree.notes[hit.id].text

        self._stop_editing()
        self.editing = EditState(hit=hit, text=text, cursor=len(text), original=text)
        self.cursor_blink_id = GLib.timeout_add(self.CURSOR_BLINK_MS, self._blink_cursor)
        self.queue_draw()
        return True

    def _insert(self, chars: str):
        edit = self.editing
        self._set_edit_text(edit.text[:edit.cursor] + chars + edit.text[edit.cursor:],
                            edit.cursor + len(chars))

    def _set_edit_text(self, text: str, cursor: int):
        """Apply the edited text to memory at once; the tree debounces the write."""
        edit = self.editing
        edit.text = text
        edit.cursor = cursor
        edit.cursor_visible = True
        self._apply(edit.hit, text)
        self.queue_draw()

    def _apply(self, hit: scene.Hit, text: str):
        if hit.kind == scene.HitKind.ITEM:
            if hit.id in self.engine.tree:
                self.engine.edit_label(hit.id, text)
        elif hit.id in self.engine.tree.notes:
            self.engine.edit_note(hit.id, text)

    def _blink_cursor(self) -> bool:
        """Toggle cursor visibility."""
        if self.editing:
            self.editing.cursor_visible = not self.editing.cursor_visible
            self.queue_draw()
            return True
        self.cursor_blink_id = None
        return False

    def commit_edit(self):
        """Finish editing. A label left blank goes back to what it was."""
        edit = self.editing
        if edit is None:
            return
        if edit.hit.kind == scene.HitKind.ITEM:
            text = edit.text.strip()
            self._apply(edit.hit, text or edit.original)
        self._stop_editing()
        self.queue_draw()

    def cancel_edit(self):
        """Finish editing and restore the text from before the edit."""
        edit = self.editing
        if edit is None:
            return
        self._apply(edit.hit, edit.original)
        self._stop_editing()
        self.queue_draw()

    def _stop_editing(self):
        self.editing = None
        if self.cursor_blink_id:
            GLib.source_remove(self.cursor_blink_id)
            self.cursor_blink_id = None
