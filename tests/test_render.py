"""Tests for cairo rendering. Skipped when pycairo is not installed."""

import pytest

cairo = pytest.importorskip("cairo")

from ideacanvas.engine import CanvasEngine  # noqa: E402
from ideacanvas.models import ItemKind, Point  # noqa: E402
from ideacanvas.render import EditState, GridLayer, SceneRenderer  # noqa: E402
from ideacanvas.scene import Hit, HitKind  # noqa: E402
from ideacanvas.viewport import Transform, Viewport  # noqa: E402

from conftest import SCOPE, TOPIC  # noqa: E402


def pixel(surface, x: int, y: int):
    """(b, g, r, a) bytes of one ARGB32 pixel."""
    surface.flush()
    data = surface.get_data()
    offset = y * surface.get_stride() + x * 4
    return tuple(data[offset:offset + 4])


class TestGridLayer:
    """Tests for the cached grid raster."""

    def test_surface_is_device_sized(self):
        grid = GridLayer()

        surface = grid.surface_for(Transform(1.0, 400, 300), 800, 600, 2.0, 0)

        assert surface.get_width() == 1600
        assert surface.get_height() == 1200
        assert surface.get_device_scale() == (2.0, 2.0)

    def test_cache_hits_until_inputs_change(self):
        grid = GridLayer()
        transform = Transform(1.0, 400, 300)

        first = grid.surface_for(transform, 800, 600, 1.0, 3)
        second = grid.surface_for(transform, 800, 600, 1.0, 3)
        assert first is second
        assert grid.renders == 1

        grid.surface_for(Transform(0.5, 400, 300), 800, 600, 1.0, 3)
        grid.surface_for(Transform(0.5, 400, 300), 800, 600, 1.0, 4)
        assert grid.renders == 3

        grid.invalidate()
        grid.surface_for(Transform(0.5, 400, 300), 800, 600, 1.0, 4)
        assert grid.renders == 4

    def test_lines_land_on_grid(self):
        grid = GridLayer()
        surface = grid.surface_for(Transform(1.0, 0, 0), 120, 120, 1.0, 0)

        assert pixel(surface, 50, 10)[3] > 0  # vertical line at world x=50
        assert pixel(surface, 25, 25)[3] == 0  # inside a cell


class TestSceneRenderer:
    """Smoke tests for a full frame."""

    @pytest.mark.asyncio
    async def test_draws_full_scene(self, store, generator):
        engine = CanvasEngine(store, generator, SCOPE, TOPIC, viewport=Viewport(800, 600))
        await engine.start()
        leaf = next(iter(engine.tree.items.values()))
        engine.tree.toggle_liked(leaf.id)
        note = await engine.create_note("a note that wraps over more than one line")
        engine.generating.set(True)

        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, 800, 600)
        cr = cairo.Context(surface)
        renderer = SceneRenderer()
        editing = EditState(Hit(HitKind.NOTE, note.id), note.text, 5, note.text)

        renderer.draw(cr, 800, 600, engine, editing=editing)

        assert renderer.grid.renders == 1
        # Background is painted everywhere
        assert pixel(surface, 1, 599)[3] == 255

    @pytest.mark.asyncio
    async def test_grid_toggle_skips_raster(self, store, generator):
        engine = CanvasEngine(store, generator, SCOPE, "", viewport=Viewport(400, 300))
        await engine.tree.add(ItemKind.LEAF, "", Point(100, 100))
        engine.toggle_grid()

        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, 400, 300)
        renderer = SceneRenderer()
        renderer.draw(cairo.Context(surface), 400, 300, engine)

        assert renderer.grid.renders == 0
