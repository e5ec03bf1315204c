"""Tests for the in-memory item tree."""

import asyncio

import pytest

from ideacanvas.models import TRUNK_ID, ItemKind, Point

from conftest import SCOPE


async def build_chain(tree):
    """trunk -> a -> b -> c, plus a sibling d under a."""
    a = await tree.add(ItemKind.LEAF, "a", Point(400, 0), parent_id=TRUNK_ID)
    b = await tree.add(ItemKind.LEAF, "b", Point(700, 0), parent_id=a.id)
    c = await tree.add(ItemKind.LEAF, "c", Point(1000, 0), parent_id=b.id)
    d = await tree.add(ItemKind.LEAF, "d", Point(700, 300), parent_id=a.id)
    return a, b, c, d


class TestQueries:
    """Tests for lookups and relations."""

    def test_trunk_is_virtual(self, tree):
        assert tree.get(TRUNK_ID).label == "Urban gardening"
        assert TRUNK_ID in tree
        assert len(tree) == 0

    def test_unknown_id_raises(self, tree):
        with pytest.raises(KeyError):
            tree.get("nope")
        with pytest.raises(KeyError):
            tree.set_active("nope")

    @pytest.mark.asyncio
    async def test_relations(self, tree):
        a, b, c, d = await build_chain(tree)

        assert [i.id for i in tree.children_of(TRUNK_ID)] == [a.id]
        assert {i.id for i in tree.children_of(a.id)} == {b.id, d.id}
        assert {i.id for i in tree.descendants_of(a.id)} == {b.id, c.id, d.id}
        assert tree.has_children(b.id)
        assert not tree.has_children(c.id)

    @pytest.mark.asyncio
    async def test_positions_include_notes(self, tree):
        await tree.add(ItemKind.LEAF, "a", Point(400, 0))
        await tree.add_note(Point(-400, 0), "n")

        assert set(tree.positions()) == {Point(400, 0), Point(-400, 0)}


class TestAdd:
    """Tests for item creation."""

    @pytest.mark.asyncio
    async def test_add_stores_and_keeps_item(self, tree, store):
        changes = []
        tree.on_changed = lambda: changes.append(True)

        item = await tree.add(ItemKind.BRANCH, "Soil", Point(10, 20), manually_created=True)

        assert tree.get(item.id) is item
        assert store.nodes[item.id].kind == ItemKind.BRANCH
        assert store.nodes[item.id].manually_created
        assert changes == [True]

    @pytest.mark.asyncio
    async def test_unknown_parent_raises(self, tree, store):
        with pytest.raises(KeyError):
            await tree.add(ItemKind.LEAF, "x", Point(0, 0), parent_id="42")
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_notes_are_not_items(self, tree):
        with pytest.raises(ValueError):
            await tree.add(ItemKind.NOTE, "x", Point(0, 0))

    @pytest.mark.asyncio
    async def test_load_replaces_memory(self, tree, store):
        await store.create_node(SCOPE, "kept", "trunk", 1, 2)
        await store.create_note(SCOPE, 3, 4, "hello")

        await tree.load()

        assert [i.label for i in tree.items.values()] == ["kept"]
        assert [n.text for n in tree.notes.values()] == ["hello"]


class TestEditing:
    """Tests for label edits, likes and debounced writes."""

    @pytest.mark.asyncio
    async def test_label_is_immediate_and_write_is_debounced(self, tree, store):
        item = await tree.add(ItemKind.LEAF, "a", Point(400, 0))

        tree.update_label(item.id, "ab")
        tree.update_label(item.id, "abc")

        assert item.label == "abc"
        assert store.calls_named("update_node") == []
        assert tree.pending_writes == 1

        await asyncio.sleep(0.05)
        await tree.tasks.drain()

        assert store.calls_named("update_node") == [("update_node", item.id, {"label": "abc"})]
        assert tree.pending_writes == 0

    @pytest.mark.asyncio
    async def test_flush_writes_pending_labels(self, store):
        from ideacanvas.tree import ItemTree

        tree = ItemTree(store, SCOPE, "topic", label_debounce=10)
        item = await tree.add(ItemKind.LEAF, "a", Point(400, 0))
        tree.update_label(item.id, "changed")

        await tree.flush()

        assert store.nodes[item.id].label == "changed"
        assert tree.pending_writes == 0

    @pytest.mark.asyncio
    async def test_trunk_label_is_read_only(self, tree):
        with pytest.raises(ValueError):
            tree.update_label(TRUNK_ID, "new topic")
        with pytest.raises(ValueError):
            tree.toggle_liked(TRUNK_ID)

    @pytest.mark.asyncio
    async def test_toggle_liked(self, tree, store):
        item = await tree.add(ItemKind.LEAF, "a", Point(400, 0))

        assert tree.toggle_liked(item.id) is True
        await tree.tasks.drain()

        assert store.nodes[item.id].liked
        assert tree.saved_ideas() == [item]

    @pytest.mark.asyncio
    async def test_note_text_is_debounced(self, tree, store):
        note = await tree.add_note(Point(0, 400), "")

        tree.update_note_text(note.id, "remember")
        await asyncio.sleep(0.05)
        await tree.tasks.drain()

        assert store.notes[note.id].text == "remember"


class TestRemove:
    """Tests for cascading removal."""

    @pytest.mark.asyncio
    async def test_cascade_removes_descendants(self, tree, store):
        a, b, c, d = await build_chain(tree)
        tree.set_active(c.id)
        tree.set_extra_context(b.id, "more soil")

        assert await tree.remove(a.id)

        assert len(tree) == 0
        assert store.nodes == {}
        assert tree.active_id.value is None
        assert tree.extra_context_for(b.id) is None

    @pytest.mark.asyncio
    async def test_deepest_items_are_deleted_first(self, tree, store):
        a, b, c, d = await build_chain(tree)

        await tree.remove(a.id)

        deleted = [call[1] for call in store.calls_named("delete_node")]
        assert deleted.index(c.id) < deleted.index(b.id) < deleted.index(a.id)
        assert deleted[-1] == a.id

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_memory_in_step_with_store(self, tree, store):
        a, b, c, d = await build_chain(tree)
        tree.set_extra_context(c.id, "gone soon")
        tree.active_id.set(c.id)
        store.fail_delete_ids.add(b.id)

        assert not await tree.remove(a.id)

        assert set(tree.items) == set(store.nodes) == {a.id, b.id}
        assert tree.children_of(b.id) == []
        assert tree.extra_context_for(c.id) is None
        assert tree.active_id.value is None

    @pytest.mark.asyncio
    async def test_remove_cancels_pending_label_write(self, tree, store):
        item = await tree.add(ItemKind.LEAF, "a", Point(400, 0))
        tree.update_label(item.id, "edited")

        await tree.remove(item.id)
        await asyncio.sleep(0.05)
        await tree.tasks.drain()

        assert store.calls_named("update_node") == []

    @pytest.mark.asyncio
    async def test_trunk_and_unknown(self, tree):
        with pytest.raises(ValueError):
            await tree.remove(TRUNK_ID)
        with pytest.raises(KeyError):
            await tree.remove("404")

    @pytest.mark.asyncio
    async def test_remove_note(self, tree, store):
        note = await tree.add_note(Point(0, 400), "bye")

        assert await tree.remove_note(note.id)
        assert tree.notes == {}
        assert store.notes == {}


class TestExtraContext:
    """Tests for session-only extra context."""

    @pytest.mark.asyncio
    async def test_set_and_clear(self, tree):
        item = await tree.add(ItemKind.LEAF, "a", Point(400, 0))

        tree.set_extra_context(item.id, "  sunny balcony  ")
        assert tree.extra_context_for(item.id) == "sunny balcony"

        tree.set_extra_context(item.id, "   ")
        assert tree.extra_context_for(item.id) is None

    def test_unknown_item(self, tree):
        with pytest.raises(KeyError):
            tree.set_extra_context("missing", "text")
