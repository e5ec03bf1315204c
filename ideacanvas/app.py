"""Main IdeaCanvas application."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Sequence, Tuple

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, Adw
from gi.events import GLibEventLoopPolicy

from ideacanvas import __version__, __app_id__
from ideacanvas.canvas import IdeaCanvas
from ideacanvas.commands import Command, CommandSurface
from ideacanvas.config import Config, load_view_settings, save_view_settings
from ideacanvas.database import Database
from ideacanvas.engine import CanvasEngine
from ideacanvas.generation import HttpGenerator, OfflineGenerator
from ideacanvas.logging_config import setup_logging
from ideacanvas.models import Project, Scope
from ideacanvas.tasks import install_loop_policy
from ideacanvas.widgets import ActiveItemPanel, CreateIdeaDialog, ShortcutsDialog, Toolbar

logger = logging.getLogger(__name__)

# Commands whose empty result is worth telling the user about
GENERATING_COMMANDS = {"generate-more", "refresh-children", "elaborate",
                       "generate-links", "refresh-links"}


class IdeaCanvasWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, config: Config, db: Database,
                 project: Project, generator):
        super().__init__(application=app)
        self.config = config
        self.db = db
        self.project = project
        self.generator = generator
        self._closing = False
        self._closed = False

        self.engine = CanvasEngine(
            db, generator, Scope(config.user_id, project.id), project.main_context,
            view_settings=load_view_settings(db, project.id),
            branch_labels_editable=config.branch_labels_editable,
            generation_timeout=config.generation_timeout,
        )
        self.engine.on_settings_changed = self._on_settings_changed
        self.commands = CommandSurface(self.engine)
        self.commands.on_request_input = self._open_create_form

        # Window setup
        self.set_title(f"IdeaCanvas - {project.name}")
        self.set_default_size(1400, 900)

        self._build_ui()
        self._setup_shortcuts()
        self.connect("close-request", self._on_close_request)

        task = self.engine.tasks.spawn(self.engine.start(), "load canvas")
        task.add_done_callback(self._on_started)

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.toolbar = Toolbar(self.commands)
        main_box.append(self.toolbar)
        main_box.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))

        self.main_paned = Gtk.Paned(orientation=Gtk.Orientation.HORIZONTAL)
        self.main_paned.set_vexpand(True)

        # Canvas
        self.canvas = IdeaCanvas(self.engine, self.commands)
        canvas_frame = Gtk.Frame()
        canvas_frame.set_child(self.canvas)
        self.main_paned.set_start_child(canvas_frame)
        self.main_paned.set_shrink_start_child(False)

        # Active item panel
        self.panel = ActiveItemPanel(self.engine, self._run_command)
        self.panel_revealer = Gtk.Revealer()
        self.panel_revealer.set_transition_type(Gtk.RevealerTransitionType.SLIDE_LEFT)
        self.panel_revealer.set_reveal_child(True)
        self.panel_revealer.set_child(self.panel)
        self.main_paned.set_end_child(self.panel_revealer)
        self.main_paned.set_shrink_end_child(False)
        self.main_paned.set_resize_end_child(False)

        # Wrap in toast overlay for in-app notifications
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(self.main_paned)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()
        header.add_css_class("flat")

        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")

        menu = Gio.Menu()

        create_section = Gio.Menu()
        for name in ("create-branch", "create-leaf", "create-note"):
            create_section.append(self.commands.get(name).label, f"win.{name}")
        menu.append_section(None, create_section)

        view_section = Gio.Menu()
        view_section.append("Toggle Side Panel", "win.toggle-panel")
        for name in ("toggle-grid", "toggle-auto-generation", "center-view"):
            view_section.append(self.commands.get(name).label, f"win.{name}")
        menu.append_section(None, view_section)

        links_section = Gio.Menu()
        for name in ("generate-links", "refresh-links"):
            links_section.append(self.commands.get(name).label, f"win.{name}")
        menu.append_section(None, links_section)

        help_section = Gio.Menu()
        help_section.append("Keyboard Shortcuts", "win.show-shortcuts")
        help_section.append("About IdeaCanvas", "win.show-about")
        menu.append_section(None, help_section)

        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_start(menu_btn)

        title = Adw.WindowTitle(title=self.project.name,
                                subtitle=self.project.main_context or "No topic")
        header.set_title_widget(title)

        panel_btn = Gtk.ToggleButton()
        panel_btn.set_icon_name("sidebar-show-right-symbolic")
        panel_btn.set_tooltip_text("Toggle Side Panel (Ctrl+B)")
        panel_btn.set_active(True)
        panel_btn.connect("toggled", lambda b: self.panel_revealer.set_reveal_child(b.get_active()))
        self.panel_btn = panel_btn
        header.pack_end(panel_btn)

        return header

    def _setup_shortcuts(self):
        """Map commands and window actions to Gio actions."""
        app = self.get_application()
        for command in self.commands:
            action = Gio.SimpleAction.new(command.name, None)
            action.connect("activate", lambda a, p, name=command.name: self._run_command(name))
            self.add_action(action)
            if command.accel:
                app.set_accels_for_action(f"win.{command.name}", [command.accel])

        actions = [
            ("toggle-panel", lambda: self.panel_btn.set_active(not self.panel_btn.get_active()),
             "<Control>b"),
            ("show-shortcuts", self._show_shortcuts, "<Control>slash"),
            ("show-about", self._show_about, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]
        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)
            if accel:
                app.set_accels_for_action(f"win.{name}", [accel])

    # ==================== Commands ====================

    def _run_command(self, name: str):
        if self.canvas.editing:
            self.canvas.commit_edit()
        result = self.commands.activate(name)
        if isinstance(result, asyncio.Task) and name in GENERATING_COMMANDS:
            result.add_done_callback(self._on_generation_done)

    def _on_generation_done(self, task: asyncio.Task):
        if task.cancelled() or task.exception() is not None:
            return
        if not task.result():
            self._show_toast("Nothing new was generated")

    def _open_create_form(self, command: Command):
        dialog = CreateIdeaDialog(self, command)
        dialog.on_submit = lambda label, extra: self.commands.run(
            command.name, label=label, extra_context=extra)
        dialog.present()

    def _on_settings_changed(self, settings):
        save_view_settings(self.db, self.project.id, settings)

    def _on_started(self, task: asyncio.Task):
        if task.cancelled() or task.exception() is not None:
            self._show_toast("Could not load this canvas")
            return
        if not self.project.main_context:
            self._show_toast("Set a topic with --topic to generate ideas")

    def _show_shortcuts(self):
        ShortcutsDialog(self, self.commands).present()

    def _show_about(self):
        """Show about dialog."""
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="IdeaCanvas",
            application_icon="applications-graphics",
            developer_name="IdeaCanvas Project",
            version=__version__,
            license_type=Gtk.License.MIT_X11,
            comments="An infinite canvas for growing ideas around a topic",
        )
        about.present()

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)

    # ==================== Shutdown ====================

    def _on_close_request(self, window) -> bool:
        """Hold the window open until pending writes reach the database."""
        if self._closed:
            return False
        if not self._closing:
            self._closing = True
            if self.canvas.editing:
                self.canvas.commit_edit()
            self.engine.tasks.spawn(self._shutdown(), "shutdown")
        return True

    async def _shutdown(self):
        try:
            await self.engine.shutdown()
            if isinstance(self.generator, HttpGenerator):
                await self.generator.aclose()
        finally:
            self.canvas.release()
            self.toolbar.release()
            self.panel.release()
            self._closed = True
            self.close()


class IdeaCanvasApp(Adw.Application):
    """Main application class."""

    def __init__(self, config: Config, options: argparse.Namespace):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.NON_UNIQUE
        )
        self.config = config
        self.options = options
        self.db: Optional[Database] = None
        self.window: Optional[IdeaCanvasWindow] = None

    def do_startup(self):
        """Initialize application."""
        Adw.Application.do_startup(self)

        self.db = Database(self.config.db_path)

        style_manager = Adw.StyleManager.get_default()
        style_manager.set_color_scheme(Adw.ColorScheme.FORCE_DARK)

    def do_activate(self):
        """Activate application."""
        if not self.window:
            project = self.db.open_project(self.config.user_id, self.options.project,
                                           self.options.topic)
            logger.info("Opening project %s (%s) for %s",
                        project.name, project.id, self.config.user_id)
            self.window = IdeaCanvasWindow(self, self.config, self.db, project,
                                           make_generator(self.config))

        self.window.present()

    def do_shutdown(self):
        """Shutdown application."""
        if self.db:
            self.db.close()

        Adw.Application.do_shutdown(self)


def make_generator(config: Config):
    """HTTP client when a service URL is configured, placeholders otherwise."""
    if config.generation_url:
        return HttpGenerator(config.generation_url, timeout=config.generation_timeout)
    logger.warning("IDEACANVAS_GENERATION_URL is not set; using offline placeholder ideas")
    return OfflineGenerator()


def parse_args(argv: Sequence[str]) -> Tuple[argparse.Namespace, List[str]]:
    """Parse our options; anything unknown is left for GTK."""
    parser = argparse.ArgumentParser(prog="ideacanvas",
                                     description="Infinite canvas for growing ideas")
    parser.add_argument("--project", default="My Ideas", help="Project name to open or create")
    parser.add_argument("--topic", default=None, help="Topic context for the project")
    parser.add_argument("--user", default=None, help="User id that owns the project")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_known_args(list(argv))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point."""
    argv = list(sys.argv if argv is None else argv)
    options, remaining = parse_args(argv[1:])

    config = Config()
    if options.user:
        config.user_id = options.user
    setup_logging(config.log_level, config.log_dir)

    install_loop_policy(GLibEventLoopPolicy())
    app = IdeaCanvasApp(config, options)
    return app.run(argv[:1] + remaining)


if __name__ == "__main__":
    sys.exit(main())
