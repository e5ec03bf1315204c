"""Tests for the SQLite persistence layer."""

import pytest

from ideacanvas.models import ItemKind, Scope

SCOPE = Scope("alice", "1")
OTHER = Scope("bob", "1")


class TestProjects:
    """Tests for project lookup and creation."""

    def test_open_project_creates_once(self, db):
        first = db.open_project("alice", "Garden", "Urban gardening")
        again = db.open_project("alice", "Garden")

        assert first.id == again.id
        assert again.main_context == "Urban gardening"
        assert [p.name for p in db.list_projects("alice")] == ["Garden"]

    def test_topic_updates_context(self, db):
        project = db.open_project("alice", "Garden", "old")
        updated = db.open_project("alice", "Garden", "new")

        assert updated.main_context == "new"
        assert db.get_project("alice", project.id).main_context == "new"

    def test_projects_are_per_user(self, db):
        project = db.create_project("alice", "Garden")

        assert db.get_project("bob", project.id) is None
        assert db.list_projects("bob") == []


class TestNodes:
    """Tests for node CRUD through the async port methods."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, db):
        node_id = await db.create_node(SCOPE, "Soil", "trunk", 10.5, -3.0,
                                       kind=ItemKind.BRANCH, manually_created=True)

        items = await db.list_nodes(SCOPE)

        assert len(items) == 1
        item = items[0]
        assert item.id == node_id
        assert item.kind == ItemKind.BRANCH
        assert item.parent_id == "trunk"
        assert item.manually_created is True
        assert item.liked is False
        assert (item.x, item.y) == (10.5, -3.0)

    @pytest.mark.asyncio
    async def test_scoping(self, db):
        await db.create_node(SCOPE, "mine", None, 0, 0)

        assert await db.list_nodes(OTHER) == []
        assert await db.list_nodes(Scope("alice", "2")) == []

    @pytest.mark.asyncio
    async def test_update_whitelisted_fields(self, db):
        node_id = await db.create_node(SCOPE, "a", None, 0, 0)

        await db.update_node(SCOPE, node_id, label="b", liked=True)

        item = (await db.list_nodes(SCOPE))[0]
        assert item.label == "b"
        assert item.liked is True

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, db):
        node_id = await db.create_node(SCOPE, "a", None, 0, 0)

        with pytest.raises(ValueError):
            await db.update_node(SCOPE, node_id, user_id="mallory")

    @pytest.mark.asyncio
    async def test_delete_is_scoped(self, db):
        node_id = await db.create_node(SCOPE, "a", None, 0, 0)

        await db.delete_node(OTHER, node_id)
        assert len(await db.list_nodes(SCOPE)) == 1

        await db.delete_node(SCOPE, node_id)
        assert await db.list_nodes(SCOPE) == []


class TestNotes:
    """Tests for note CRUD."""

    @pytest.mark.asyncio
    async def test_note_lifecycle(self, db):
        note_id = await db.create_note(SCOPE, 5, 6, "draft")
        await db.update_note(SCOPE, note_id, text="final")

        notes = await db.list_notes(SCOPE)
        assert [(n.id, n.text, n.x, n.y) for n in notes] == [(note_id, "final", 5, 6)]

        await db.delete_note(SCOPE, note_id)
        assert await db.list_notes(SCOPE) == []

    @pytest.mark.asyncio
    async def test_note_update_rejects_parent(self, db):
        note_id = await db.create_note(SCOPE, 0, 0)

        with pytest.raises(ValueError):
            await db.update_note(SCOPE, note_id, parent_id="trunk")


class TestLinks:
    """Tests for saved useful links."""

    @pytest.mark.asyncio
    async def test_link_lifecycle(self, db):
        first = await db.create_link(SCOPE, "Soil", "https://soil.example/a", "Why soil")
        second = await db.create_link(SCOPE, "Worms", "https://worms.example")

        links = await db.list_links(SCOPE)
        assert [(link.id, link.title, link.snippet) for link in links] == [
            (first, "Soil", "Why soil"), (second, "Worms", "")]
        assert links[0].hostname == "soil.example"

        await db.delete_link(SCOPE, first)
        assert [link.id for link in await db.list_links(SCOPE)] == [second]

    @pytest.mark.asyncio
    async def test_delete_all_is_scoped(self, db):
        await db.create_link(SCOPE, "a", "https://a.example")
        await db.create_link(SCOPE, "b", "https://b.example")
        await db.create_link(OTHER, "c", "https://c.example")

        assert await db.delete_all_links(SCOPE) == 2
        assert await db.list_links(SCOPE) == []
        assert [link.title for link in await db.list_links(OTHER)] == ["c"]


class TestSettings:
    """Tests for the key/value settings table."""

    def test_roundtrip_and_default(self, db):
        assert db.get_setting("missing", "fallback") == "fallback"

        db.set_setting("answer", {"value": 42})

        assert db.get_setting("answer") == {"value": 42}

    def test_persists_across_connections(self, tmp_path):
        from ideacanvas.database import Database

        path = tmp_path / "reopen.db"
        first = Database(path)
        first.set_setting("k", [1, 2])
        first.close()

        second = Database(path)
        try:
            assert second.get_setting("k") == [1, 2]
        finally:
            second.close()
