"""Custom widgets for the IdeaCanvas window."""

from typing import Callable, Dict, List, Optional

import gi

gi.require_version("Gtk", "4.0")
from gi.repository import Gtk, Gdk, Pango

from ideacanvas.commands import Command, CommandSurface
from ideacanvas.engine import CanvasEngine
from ideacanvas.models import TRUNK_ID, Item, ItemKind, UsefulLink

# Commands shown as plain buttons, in toolbar order
TOOLBAR_BUTTONS = (
    "create-branch", "create-leaf", "create-note", None,
    "generate-more", "refresh-children", "elaborate", "toggle-like", "delete-active", None,
    "center-view",
)
TOOLBAR_TOGGLES = ("toggle-grid", "toggle-auto-generation")


def _accel_label(accel: Optional[str]) -> str:
    if not accel:
        return ""
    ok, key, mods = Gtk.accelerator_parse(accel)
    if not ok:
        return accel
    return Gtk.accelerator_get_label(key, mods)


class Toolbar(Gtk.Box):
    """Row of command buttons above the canvas."""

    def __init__(self, commands: CommandSurface):
        super().__init__(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        self.commands = commands
        self.engine = commands.engine

        self.add_css_class("toolbar")
        self.set_margin_start(8)
        self.set_margin_end(8)
        self.set_margin_top(4)
        self.set_margin_bottom(4)

        self._buttons: Dict[str, Gtk.Button] = {}
        self._toggles: Dict[str, Gtk.ToggleButton] = {}

        for name in TOOLBAR_BUTTONS:
            if name is None:
                self.append(Gtk.Separator(orientation=Gtk.Orientation.VERTICAL))
                continue
            command = commands.get(name)
            button = Gtk.Button()
            button.set_icon_name(command.icon)
            button.set_tooltip_text(self._tooltip(command))
            button.add_css_class("flat")
            button.connect("clicked", lambda b, n=name: self.commands.activate(n))
            self._buttons[name] = button
            self.append(button)

        spacer = Gtk.Box()
        spacer.set_hexpand(True)
        self.append(spacer)

        for name, state in zip(TOOLBAR_TOGGLES, (self.engine.show_grid, self.engine.auto_generate)):
            command = commands.get(name)
            toggle = Gtk.ToggleButton()
            toggle.set_icon_name(command.icon)
            toggle.set_tooltip_text(self._tooltip(command))
            toggle.set_active(state.value)
            toggle.connect("toggled", self._on_toggled, name, state)
            self._toggles[name] = toggle
            self.append(toggle)

        self._subscriptions = [
            self.engine.active_id.subscribe(lambda _value: self.refresh_sensitivity()),
            self.engine.selected_note_id.subscribe(lambda _value: self.refresh_sensitivity()),
            self.engine.content_version.subscribe(lambda _value: self.refresh_sensitivity()),
            self.engine.show_grid.subscribe(
                lambda value: self._sync_toggle("toggle-grid", value)),
            self.engine.auto_generate.subscribe(
                lambda value: self._sync_toggle("toggle-auto-generation", value)),
        ]
        self.refresh_sensitivity()

    @staticmethod
    def _tooltip(command: Command) -> str:
        accel = _accel_label(command.accel)
        return f"{command.label} ({accel})" if accel else command.label

    def refresh_sensitivity(self):
        """Grey out commands that would do nothing right now."""
        for name, button in self._buttons.items():
            button.set_sensitive(self.commands.get(name).is_enabled())

    def _on_toggled(self, toggle, name: str, state):
        if toggle.get_active() != state.value:
            self.commands.run(name)

    def _sync_toggle(self, name: str, value: bool):
        toggle = self._toggles[name]
        if toggle.get_active() != value:
            toggle.set_active(value)

    def release(self):
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []


class CreateIdeaDialog(Gtk.Window):
    """Form asking for a label and optional extra context."""

    def __init__(self, parent: Gtk.Window, command: Command):
        super().__init__()
        self.command = command

        # Callbacks
        self.on_submit: Optional[Callable[[str, str], None]] = None

        self.set_transient_for(parent)
        self.set_modal(True)
        self.set_default_size(420, -1)
        self.set_title(command.label)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        box.set_margin_start(20)
        box.set_margin_end(20)
        box.set_margin_top(20)
        box.set_margin_bottom(20)

        label_title = Gtk.Label(label="LABEL")
        label_title.set_halign(Gtk.Align.START)
        label_title.add_css_class("sidebar-title")
        box.append(label_title)

        self.label_entry = Gtk.Entry()
        self.label_entry.set_placeholder_text("What is the idea?")
        self.label_entry.connect("activate", lambda e: self._submit())
        box.append(self.label_entry)

        context_title = Gtk.Label(label="EXTRA CONTEXT (OPTIONAL)")
        context_title.set_halign(Gtk.Align.START)
        context_title.add_css_class("sidebar-title")
        box.append(context_title)

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_min_content_height(90)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        self.context_view = Gtk.TextView()
        self.context_view.set_wrap_mode(Gtk.WrapMode.WORD_CHAR)
        self.context_view.set_left_margin(8)
        self.context_view.set_right_margin(8)
        self.context_view.set_top_margin(8)
        self.context_view.set_bottom_margin(8)
        scrolled.set_child(self.context_view)
        box.append(scrolled)

        buttons = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        buttons.set_halign(Gtk.Align.END)
        cancel_btn = Gtk.Button(label="Cancel")
        cancel_btn.connect("clicked", lambda b: self.close())
        buttons.append(cancel_btn)
        create_btn = Gtk.Button(label="Create")
        create_btn.add_css_class("suggested-action")
        create_btn.connect("clicked", lambda b: self._submit())
        buttons.append(create_btn)
        box.append(buttons)

        self.set_child(box)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        self.label_entry.grab_focus()

    def _submit(self):
        buffer = self.context_view.get_buffer()
        extra = buffer.get_text(buffer.get_start_iter(), buffer.get_end_iter(), True)
        if self.on_submit:
            self.on_submit(self.label_entry.get_text(), extra.strip())
        self.close()

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape:
            self.close()
            return True
        return False


class SavedIdeaRow(Gtk.ListBoxRow):
    def __init__(self, item: Item):
        super().__init__()
        self.item_id = item.id
        label = Gtk.Label(label=item.label)
        label.set_halign(Gtk.Align.START)
        label.set_ellipsize(Pango.EllipsizeMode.END)
        label.set_margin_start(12)
        label.set_margin_end(12)
        label.set_margin_top(6)
        label.set_margin_bottom(6)
        self.set_child(label)


class LinkRow(Gtk.ListBoxRow):
    """One saved link: title opens the browser, snippet and host below."""

    def __init__(self, link: UsefulLink, on_delete: Callable[[str], None]):
        super().__init__()
        self.link_id = link.id
        self.set_activatable(False)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        box.set_margin_start(8)
        box.set_margin_end(8)
        box.set_margin_top(6)
        box.set_margin_bottom(6)

        header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        title = Gtk.LinkButton.new_with_label(link.url, link.title)
        title.set_halign(Gtk.Align.START)
        title.set_hexpand(True)
        title.set_tooltip_text(link.url)
        label = title.get_child()
        if isinstance(label, Gtk.Label):
            label.set_ellipsize(Pango.EllipsizeMode.END)
        header.append(title)

        delete_btn = Gtk.Button()
        delete_btn.set_icon_name("window-close-symbolic")
        delete_btn.set_tooltip_text("Delete this link")
        delete_btn.add_css_class("flat")
        delete_btn.connect("clicked", lambda b: on_delete(self.link_id))
        header.append(delete_btn)
        box.append(header)

        if link.snippet:
            snippet = Gtk.Label(label=link.snippet)
            snippet.set_halign(Gtk.Align.START)
            snippet.set_xalign(0)
            snippet.set_wrap(True)
            snippet.add_css_class("dim-label")
            box.append(snippet)

        host = Gtk.Label(label=link.hostname)
        host.set_halign(Gtk.Align.START)
        host.add_css_class("caption")
        host.add_css_class("dim-label")
        box.append(host)

        self.set_child(box)


class UsefulLinksSection(Gtk.Box):
    """Saved external resources for the project, with generate and refresh."""

    def __init__(self, engine: CanvasEngine, run_command: Callable[[str], None]):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        self.engine = engine
        self.run_command = run_command

        header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        header.set_margin_start(16)
        header.set_margin_end(12)
        header.set_margin_top(12)
        title = Gtk.Label(label="USEFUL LINKS")
        title.set_halign(Gtk.Align.START)
        title.set_hexpand(True)
        title.add_css_class("sidebar-title")
        header.append(title)

        self.spinner = Gtk.Spinner()
        header.append(self.spinner)

        self.refresh_btn = Gtk.Button()
        self.refresh_btn.set_icon_name("view-refresh-symbolic")
        self.refresh_btn.set_tooltip_text("Replace all links with new suggestions")
        self.refresh_btn.add_css_class("flat")
        self.refresh_btn.connect("clicked", lambda b: self.run_command("refresh-links"))
        header.append(self.refresh_btn)
        self.append(header)

        self.empty_label = Gtk.Label(label="No useful links yet.")
        self.empty_label.add_css_class("dim-label")
        self.empty_label.set_margin_top(8)
        self.append(self.empty_label)

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_vexpand(True)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        self.link_list = Gtk.ListBox()
        self.link_list.set_selection_mode(Gtk.SelectionMode.NONE)
        scrolled.set_child(self.link_list)
        self.append(scrolled)

        self.generate_btn = Gtk.Button(label="Find Links")
        self.generate_btn.set_margin_start(12)
        self.generate_btn.set_margin_end(12)
        self.generate_btn.set_margin_bottom(12)
        self.generate_btn.connect("clicked", lambda b: self.run_command("generate-links"))
        self.append(self.generate_btn)

        self._subscriptions = [
            engine.links.links.subscribe(lambda _value: self.refresh()),
            engine.links.busy.subscribe(lambda _value: self.refresh_sensitivity()),
        ]
        self.refresh()

    def refresh(self):
        child = self.link_list.get_first_child()
        while child is not None:
            next_child = child.get_next_sibling()
            self.link_list.remove(child)
            child = next_child
        links = self.engine.links.links.value
        for link in links:
            self.link_list.append(LinkRow(link, self._on_delete))
        self.empty_label.set_visible(not links)
        self.generate_btn.set_label("Add More Links" if links else "Find Links")
        self.refresh_sensitivity()

    def refresh_sensitivity(self):
        busy = self.engine.links.busy.value
        self.spinner.set_spinning(busy)
        self.spinner.set_visible(busy)
        has_links = len(self.engine.links) > 0
        self.refresh_btn.set_visible(has_links)
        self.refresh_btn.set_sensitive(not busy)
        self.generate_btn.set_sensitive(not busy and bool(self.engine.tree.topic_context))

    def _on_delete(self, link_id: str):
        if link_id in self.engine.links:
            self.engine.tasks.spawn(self.engine.delete_link(link_id), f"delete link {link_id}")

    def release(self):
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []


class ActiveItemPanel(Gtk.Box):
    """Right sidebar: the active item, the saved ideas and the useful links."""

    def __init__(self, engine: CanvasEngine, run_command: Callable[[str], None]):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.engine = engine
        self._shown_id: Optional[str] = None

        self.add_css_class("notes-panel")
        self.set_size_request(320, -1)

        # Header
        title = Gtk.Label(label="ACTIVE IDEA")
        title.set_halign(Gtk.Align.START)
        title.add_css_class("sidebar-title")
        title.set_margin_start(16)
        title.set_margin_top(12)
        title.set_margin_bottom(8)
        self.append(title)

        self.item_label = Gtk.Label(label="")
        self.item_label.set_halign(Gtk.Align.START)
        self.item_label.set_wrap(True)
        self.item_label.set_margin_start(16)
        self.item_label.set_margin_end(16)
        self.append(self.item_label)

        self.item_info = Gtk.Label(label="")
        self.item_info.set_halign(Gtk.Align.START)
        self.item_info.set_margin_start(16)
        self.item_info.set_margin_bottom(8)
        self.item_info.add_css_class("dim-label")
        self.append(self.item_info)

        context_title = Gtk.Label(label="Extra context for the next generation")
        context_title.set_halign(Gtk.Align.START)
        context_title.set_margin_start(16)
        context_title.add_css_class("dim-label")
        self.append(context_title)

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_min_content_height(80)
        scrolled.set_margin_start(12)
        scrolled.set_margin_end(12)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        self.context_view = Gtk.TextView()
        self.context_view.set_wrap_mode(Gtk.WrapMode.WORD_CHAR)
        self.context_view.set_left_margin(8)
        self.context_view.set_right_margin(8)
        self.context_buffer = self.context_view.get_buffer()
        self.context_buffer.connect("changed", self._on_context_changed)
        scrolled.set_child(self.context_view)
        self.append(scrolled)

        self.elaboration_label = Gtk.Label(label="")
        self.elaboration_label.set_halign(Gtk.Align.START)
        self.elaboration_label.set_wrap(True)
        self.elaboration_label.set_margin_start(16)
        self.elaboration_label.set_margin_end(16)
        self.elaboration_label.set_margin_top(8)
        self.append(self.elaboration_label)

        self.details = [self.item_info, context_title, scrolled, self.elaboration_label]

        self.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))

        saved_title = Gtk.Label(label="SAVED IDEAS")
        saved_title.set_halign(Gtk.Align.START)
        saved_title.add_css_class("sidebar-title")
        saved_title.set_margin_start(16)
        saved_title.set_margin_top(12)
        saved_title.set_margin_bottom(8)
        self.append(saved_title)

        saved_scrolled = Gtk.ScrolledWindow()
        saved_scrolled.set_vexpand(True)
        saved_scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        self.saved_list = Gtk.ListBox()
        self.saved_list.set_selection_mode(Gtk.SelectionMode.NONE)
        self.saved_list.connect("row-activated", self._on_saved_activated)
        saved_scrolled.set_child(self.saved_list)
        self.append(saved_scrolled)

        self.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))
        self.links_section = UsefulLinksSection(engine, run_command)
        self.append(self.links_section)

        self._subscriptions = [
            engine.active_id.subscribe(lambda _value: self.refresh()),
            engine.content_version.subscribe(lambda _value: self.refresh()),
            engine.elaboration.subscribe(lambda _value: self._show_elaboration()),
        ]
        self.refresh()

    def refresh(self):
        """Show the active item and rebuild the saved ideas list."""
        item = self.engine.tree.active_item
        if item is None:
            self._shown_id = None
            self.item_label.set_label("Nothing selected")
            for widget in self.details:
                widget.set_visible(False)
        else:
            self.item_label.set_label(item.label or "(untitled)")
            for widget in self.details:
                widget.set_visible(True)
            self.item_info.set_label(self._describe(item))
            stored = self.engine.tree.extra_context_for(item.id) or ""
            # Reload on a new item, or once a generation has consumed the text
            if self._shown_id != item.id or stored != self._buffer_text().strip():
                self._shown_id = item.id
                self.context_buffer.handler_block_by_func(self._on_context_changed)
                self.context_buffer.set_text(stored)
                self.context_buffer.handler_unblock_by_func(self._on_context_changed)
        self._show_elaboration()
        self._refresh_saved()

    def _describe(self, item: Item) -> str:
        if item.id == TRUNK_ID:
            return "Topic"
        kind = "Branch" if item.kind == ItemKind.BRANCH else "Leaf"
        children = len(self.engine.tree.children_of(item.id))
        parts = [kind, f"{children} children"]
        if item.liked:
            parts.append("saved")
        if item.manually_created:
            parts.append("manual")
        return " · ".join(parts)

    def _show_elaboration(self):
        current = self.engine.elaboration.value
        if current is not None and current[0] == self._shown_id:
            self.elaboration_label.set_label(current[1])
        else:
            self.elaboration_label.set_label("")

    def _refresh_saved(self):
        child = self.saved_list.get_first_child()
        while child is not None:
            next_child = child.get_next_sibling()
            self.saved_list.remove(child)
            child = next_child
        saved: List[Item] = self.engine.tree.saved_ideas()
        for item in saved:
            self.saved_list.append(SavedIdeaRow(item))

    def _buffer_text(self) -> str:
        buffer = self.context_buffer
        return buffer.get_text(buffer.get_start_iter(), buffer.get_end_iter(), True)

    def _on_context_changed(self, buffer):
        if self._shown_id is None:
            return
        self.engine.set_extra_context(self._shown_id, self._buffer_text())

    def _on_saved_activated(self, listbox, row):
        if row.item_id in self.engine.tree:
            self.engine.click_item(row.item_id)

    def release(self):
        self.links_section.release()
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []


class ShortcutsDialog(Gtk.Window):
    """Keyboard shortcuts help dialog."""

    CANVAS_SHORTCUTS = [
        ("Pan Canvas", "Drag"),
        ("Zoom", "Scroll"),
        ("Focus Idea", "Click"),
        ("Edit Label", "Double-click, F2 or Enter"),
        ("Finish Editing", "Enter / Escape"),
        ("Delete", "Delete / Backspace"),
    ]

    def __init__(self, parent: Gtk.Window, commands: CommandSurface):
        super().__init__()

        self.set_transient_for(parent)
        self.set_modal(True)
        self.set_default_size(460, 520)
        self.set_title("Keyboard Shortcuts")

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=24)
        box.set_margin_start(24)
        box.set_margin_end(24)
        box.set_margin_top(24)
        box.set_margin_bottom(24)

        command_rows = [(c.label, _accel_label(c.accel)) for c in commands if c.accel]
        for section, shortcuts in (("Commands", command_rows), ("Canvas", self.CANVAS_SHORTCUTS)):
            section_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)

            title = Gtk.Label(label=section.upper())
            title.set_halign(Gtk.Align.START)
            title.add_css_class("shortcuts-section-title")
            section_box.append(title)

            for action, keys in shortcuts:
                row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)

                action_label = Gtk.Label(label=action)
                action_label.set_halign(Gtk.Align.START)
                action_label.set_hexpand(True)
                row.append(action_label)

                keys_label = Gtk.Label(label=keys)
                keys_label.set_halign(Gtk.Align.END)
                keys_label.add_css_class("dim-label")
                row.append(keys_label)

                section_box.append(row)

            box.append(section_box)

        scrolled.set_child(box)
        self.set_child(scrolled)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape:
            self.close()
            return True
        return False
