"""SQLite persistence for IdeaCanvas.

Implements the asynchronous persistence port on top of a single sqlite3
connection owned by the UI thread. Statements are short, so the coroutines
run them inline rather than on a worker thread.
"""

import sqlite3
import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Any

from ideacanvas.config import Config
from ideacanvas.models import Item, ItemKind, Note, Project, Scope, UsefulLink

logger = logging.getLogger(__name__)

# Columns update_node / update_note may touch
NODE_FIELDS = {"label", "liked", "x", "y", "parent_id", "kind", "manually_created"}
NOTE_FIELDS = {"text", "x", "y"}


def get_db_path() -> Path:
    """Get the default database file path."""
    return Config().db_path


class Database:
    """Database manager for IdeaCanvas."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()

        cursor.executescript("""
            -- Projects table
            CREATE TABLE IF NOT EXISTS projects (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                main_context TEXT NOT NULL DEFAULT '',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- Items table; parent_id may hold the 'trunk' sentinel
            CREATE TABLE IF NOT EXISTS nodes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                project_id TEXT NOT NULL,
                kind TEXT NOT NULL DEFAULT 'leaf',
                label TEXT NOT NULL DEFAULT '',
                liked BOOLEAN DEFAULT 0,
                parent_id TEXT,
                manually_created BOOLEAN DEFAULT 0,
                x REAL NOT NULL DEFAULT 0,
                y REAL NOT NULL DEFAULT 0,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- Notes table
            CREATE TABLE IF NOT EXISTS notes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                project_id TEXT NOT NULL,
                x REAL NOT NULL DEFAULT 0,
                y REAL NOT NULL DEFAULT 0,
                text TEXT NOT NULL DEFAULT '',
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- Useful links table
            CREATE TABLE IF NOT EXISTS links (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                project_id TEXT NOT NULL,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                snippet TEXT NOT NULL DEFAULT '',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- App settings table
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON
            );

            -- Create indexes
            CREATE INDEX IF NOT EXISTS idx_projects_user ON projects(user_id);
            CREATE INDEX IF NOT EXISTS idx_nodes_scope ON nodes(user_id, project_id);
            CREATE INDEX IF NOT EXISTS idx_notes_scope ON notes(user_id, project_id);
            CREATE INDEX IF NOT EXISTS idx_links_scope ON links(user_id, project_id);
        """)

        self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # ==================== Project Operations ====================

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=str(row["id"]),
            name=row["name"],
            main_context=row["main_context"],
            created_at=row["created_at"],
        )

    def create_project(self, user_id: str, name: str, main_context: str = "") -> Project:
        """Create a new project for a user."""
        cursor = self.conn.cursor()
        now = datetime.now().isoformat()
        cursor.execute(
            "INSERT INTO projects (user_id, name, main_context, created_at) VALUES (?, ?, ?, ?)",
            (user_id, name, main_context, now)
        )
        self.conn.commit()
        return Project(id=str(cursor.lastrowid), name=name,
                       main_context=main_context, created_at=now)

    def get_project(self, user_id: str, project_id: str) -> Optional[Project]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM projects WHERE id = ? AND user_id = ?",
                       (project_id, user_id))
        row = cursor.fetchone()
        return self._row_to_project(row) if row else None

    def list_projects(self, user_id: str) -> List[Project]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM projects WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                       (user_id,))
        return [self._row_to_project(row) for row in cursor.fetchall()]

    def open_project(self, user_id: str, name: str, topic: Optional[str] = None) -> Project:
        """Return the user's project called ``name``, creating it if needed.

        A non-empty ``topic`` replaces the stored topic context.
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM projects WHERE user_id = ? AND name = ? ORDER BY id LIMIT 1",
                       (user_id, name))
        row = cursor.fetchone()
        if row is None:
            return self.create_project(user_id, name, topic or "")
        project = self._row_to_project(row)
        if topic and topic != project.main_context:
            self.set_project_context(project.id, topic)
            project.main_context = topic
        return project

    def set_project_context(self, project_id: str, main_context: str):
        cursor = self.conn.cursor()
        cursor.execute("UPDATE projects SET main_context = ? WHERE id = ?",
                       (main_context, project_id))
        self.conn.commit()

    # ==================== Node Operations ====================

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        return Item(
            id=str(row["id"]),
            kind=ItemKind(row["kind"]),
            x=row["x"],
            y=row["y"],
            label=row["label"],
            liked=bool(row["liked"]),
            parent_id=row["parent_id"],
            manually_created=bool(row["manually_created"]),
        )

    async def create_node(self, scope: Scope, label: str, parent_id: Optional[str],
                          x: float, y: float, kind: ItemKind = ItemKind.LEAF,
                          manually_created: bool = False) -> str:
        """Insert an item and return its id."""
        cursor = self.conn.cursor()
        now = datetime.now().isoformat()
        cursor.execute(
            """INSERT INTO nodes (user_id, project_id, kind, label, parent_id,
               manually_created, x, y, created_at, modified_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (scope.user_id, scope.project_id, ItemKind(kind).value, label, parent_id,
             manually_created, x, y, now, now)
        )
        self.conn.commit()
        return str(cursor.lastrowid)

    async def list_nodes(self, scope: Scope) -> List[Item]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM nodes WHERE user_id = ? AND project_id = ? ORDER BY id",
            (scope.user_id, scope.project_id)
        )
        return [self._row_to_item(row) for row in cursor.fetchall()]

    async def update_node(self, scope: Scope, node_id: str, **fields: Any):
        """Update some columns of an item. Unknown field names raise ValueError."""
        if "kind" in fields:
            fields["kind"] = ItemKind(fields["kind"]).value
        self._update("nodes", NODE_FIELDS, scope, node_id, fields)

    async def delete_node(self, scope: Scope, node_id: str):
        """Delete one item. Descendants are the caller's business."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM nodes WHERE id = ? AND user_id = ? AND project_id = ?",
            (node_id, scope.user_id, scope.project_id)
        )
        self.conn.commit()

    # ==================== Note Operations ====================

    async def create_note(self, scope: Scope, x: float, y: float, text: str = "") -> str:
        cursor = self.conn.cursor()
        now = datetime.now().isoformat()
        cursor.execute(
            "INSERT INTO notes (user_id, project_id, x, y, text, modified_at) VALUES (?, ?, ?, ?, ?, ?)",
            (scope.user_id, scope.project_id, x, y, text, now)
        )
        self.conn.commit()
        return str(cursor.lastrowid)

    async def list_notes(self, scope: Scope) -> List[Note]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM notes WHERE user_id = ? AND project_id = ? ORDER BY id",
            (scope.user_id, scope.project_id)
        )
        return [Note(id=str(row["id"]), x=row["x"], y=row["y"], text=row["text"])
                for row in cursor.fetchall()]

    async def update_note(self, scope: Scope, note_id: str, **fields: Any):
        self._update("notes", NOTE_FIELDS, scope, note_id, fields)

    async def delete_note(self, scope: Scope, note_id: str):
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM notes WHERE id = ? AND user_id = ? AND project_id = ?",
            (note_id, scope.user_id, scope.project_id)
        )
        self.conn.commit()

    # ==================== Link Operations ====================

    async def create_link(self, scope: Scope, title: str, url: str, snippet: str = "") -> str:
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT INTO links (user_id, project_id, title, url, snippet, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (scope.user_id, scope.project_id, title, url, snippet, datetime.now().isoformat())
        )
        self.conn.commit()
        return str(cursor.lastrowid)

    async def list_links(self, scope: Scope) -> List[UsefulLink]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM links WHERE user_id = ? AND project_id = ? ORDER BY id",
            (scope.user_id, scope.project_id)
        )
        return [UsefulLink(id=str(row["id"]), title=row["title"], url=row["url"],
                           snippet=row["snippet"])
                for row in cursor.fetchall()]

    async def delete_link(self, scope: Scope, link_id: str):
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM links WHERE id = ? AND user_id = ? AND project_id = ?",
            (link_id, scope.user_id, scope.project_id)
        )
        self.conn.commit()

    async def delete_all_links(self, scope: Scope) -> int:
        """Delete every link of a project and return how many went."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM links WHERE user_id = ? AND project_id = ?",
                       (scope.user_id, scope.project_id))
        self.conn.commit()
        return cursor.rowcount

    def _update(self, table: str, allowed: set, scope: Scope, row_id: str, fields: dict):
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"cannot update {table} field(s): {', '.join(sorted(unknown))}")
        if not fields:
            return
        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        values = [fields[column] for column in columns]
        cursor = self.conn.cursor()
        cursor.execute(
            f"UPDATE {table} SET {assignments}, modified_at = ? "
            "WHERE id = ? AND user_id = ? AND project_id = ?",
            (*values, datetime.now().isoformat(), row_id, scope.user_id, scope.project_id)
        )
        if cursor.rowcount == 0:
            logger.debug("No %s row %s to update", table, row_id)
        self.conn.commit()

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()
