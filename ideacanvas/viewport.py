"""Viewport controller: scale/translate of the world layer.

Screen coordinates relate to world coordinates by::

    screen = world * scale + translate

The controller keeps the live transform in plain attributes that input
handlers update synchronously. Observers that only need to read the
transform (the zoom readout, for instance) get a snapshot published through
``display`` at most once per frame from :meth:`Viewport.tick`.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from ideacanvas.models import ORIGIN, Point
from ideacanvas.state import StateSlice


@dataclass(frozen=True)
class Bounds:
    """Axis aligned rectangle in world units."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float


WORLD_BOUNDS = Bounds(-5000.0, -5000.0, 5000.0, 5000.0)
SCREEN_PADDING = 100.0  # px past the world edge the user may scroll
MIN_SCALE = 0.2
MAX_SCALE = 1.0
EDGE_FEEDBACK_SECONDS = 0.45
TRANSITION_SECONDS = 0.5


@dataclass(frozen=True)
class Transform:
    """Immutable snapshot of the viewport transform."""
    scale: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    def to_screen(self, wx: float, wy: float) -> Tuple[float, float]:
        return wx * self.scale + self.tx, wy * self.scale + self.ty

    def to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return (sx - self.tx) / self.scale, (sy - self.ty) / self.scale


def ease_in_out(t: float) -> float:
    """Quadratic ease-in-out on [0, 1]."""
    if t < 0.5:
        return 2 * t * t
    return 1 - math.pow(-2 * t + 2, 2) / 2


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class _Transition:
    start: Transform
    end: Transform
    duration: float
    started_at: Optional[float] = None  # set by the first frame tick


class Viewport:
    """Pan/zoom state for a canvas of ``width`` x ``height`` pixels."""

    def __init__(self, width: float = 0.0, height: float = 0.0, *,
                 bounds: Bounds = WORLD_BOUNDS,
                 padding: float = SCREEN_PADDING,
                 min_scale: float = MIN_SCALE,
                 max_scale: float = MAX_SCALE,
                 transition_seconds: float = TRANSITION_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.width = float(width)
        self.height = float(height)
        self.bounds = bounds
        self.padding = padding
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.transition_seconds = transition_seconds
        self._clock = clock

        # Live mirror, written on every input event
        self.scale = 1.0
        self.tx = self.width / 2
        self.ty = self.height / 2

        self._edge_until = 0.0
        self._transition: Optional[_Transition] = None
        self._display_dirty = False

        # Throttled snapshot for read-mostly UI
        self.display: StateSlice[Transform] = StateSlice(self.transform)

        # Callbacks
        self.on_changed: Optional[Callable[[], None]] = None
        self.on_edge: Optional[Callable[[], None]] = None

    # ==================== Queries ====================

    @property
    def transform(self) -> Transform:
        return Transform(self.scale, self.tx, self.ty)

    @property
    def at_edge(self) -> bool:
        """True for a short while after a pan or zoom was clamped."""
        return self._clock() < self._edge_until

    @property
    def is_animating(self) -> bool:
        return self._transition is not None

    @property
    def needs_frame(self) -> bool:
        """Whether the frame clock should keep calling :meth:`tick`."""
        return self.is_animating or self._display_dirty or self.at_edge

    def to_world(self, sx: float, sy: float) -> Point:
        return Point(*self.transform.to_world(sx, sy))

    def to_screen(self, point: Point) -> Tuple[float, float]:
        return self.transform.to_screen(point.x, point.y)

    def view_center(self) -> Point:
        """World point currently at the middle of the widget."""
        return self.to_world(self.width / 2, self.height / 2)

    def visible_world_rect(self) -> Bounds:
        left, top = self.transform.to_world(0, 0)
        right, bottom = self.transform.to_world(self.width, self.height)
        return Bounds(left, top, right, bottom)

    def translate_range(self, scale: Optional[float] = None) -> Tuple[float, float, float, float]:
        """Legal (tx_min, tx_max, ty_min, ty_max) for ``scale``.

        When the padded world is smaller than the widget the range inverts;
        it then collapses to its midpoint so the world stays centered.
        """
        s = self.scale if scale is None else scale
        b = self.bounds
        tx_min = self.width - b.max_x * s - self.padding
        tx_max = -b.min_x * s + self.padding
        ty_min = self.height - b.max_y * s - self.padding
        ty_max = -b.min_y * s + self.padding
        if tx_min > tx_max:
            tx_min = tx_max = (tx_min + tx_max) / 2
        if ty_min > ty_max:
            ty_min = ty_max = (ty_min + ty_max) / 2
        return tx_min, tx_max, ty_min, ty_max

    def clamp_translation(self, tx: float, ty: float,
                          scale: Optional[float] = None) -> Tuple[float, float, bool]:
        """Clamp a translate pair. The flag tells whether clamping happened."""
        tx_min, tx_max, ty_min, ty_max = self.translate_range(scale)
        clamped_tx = clamp(tx, tx_min, tx_max)
        clamped_ty = clamp(ty, ty_min, ty_max)
        return clamped_tx, clamped_ty, (clamped_tx != tx or clamped_ty != ty)

    # ==================== Input ====================

    def resize(self, width: float, height: float):
        """Widget size changed; keep the translate legal for the new size."""
        self.width = float(width)
        self.height = float(height)
        self.tx, self.ty, _ = self.clamp_translation(self.tx, self.ty)
        self._changed()

    def set_transform(self, scale: float, tx: float, ty: float) -> bool:
        """Apply a transform through the clamp. Returns True if it hit an edge."""
        scale = clamp(scale, self.min_scale, self.max_scale)
        tx, ty, hit_edge = self.clamp_translation(tx, ty, scale)
        self.scale = scale
        self.tx = tx
        self.ty = ty
        if hit_edge:
            self._raise_edge()
        self._changed()
        return hit_edge

    def pan(self, dx: float, dy: float) -> bool:
        """Move the world layer by a screen-space delta."""
        self._transition = None
        return self.set_transform(self.scale, self.tx + dx, self.ty + dy)

    def zoom_at(self, sx: float, sy: float, factor: float) -> bool:
        """Zoom by ``factor`` keeping the world point under (sx, sy) fixed."""
        self._transition = None
        prev_scale = self.scale
        new_scale = clamp(prev_scale * factor, self.min_scale, self.max_scale)
        new_tx = sx - ((sx - self.tx) / prev_scale) * new_scale
        new_ty = sy - ((sy - self.ty) / prev_scale) * new_scale
        return self.set_transform(new_scale, new_tx, new_ty)

    def _raise_edge(self):
        self._edge_until = self._clock() + EDGE_FEEDBACK_SECONDS
        if self.on_edge:
            self.on_edge()

    # ==================== Transitions ====================

    def center_on(self, world_point: Optional[Point] = None,
                  scale: Optional[float] = None):
        """Ease so ``world_point`` lands in the middle of the widget.

        Without a point the world origin is used. A transition already in
        flight is replaced, starting from wherever it got to.
        """
        point = world_point if world_point is not None else ORIGIN
        target_scale = clamp(self.scale if scale is None else scale,
                             self.min_scale, self.max_scale)
        target_tx = self.width / 2 - point.x * target_scale
        target_ty = self.height / 2 - point.y * target_scale
        target_tx, target_ty, _ = self.clamp_translation(target_tx, target_ty, target_scale)
        self._transition = _Transition(
            start=self.transform,
            end=Transform(target_scale, target_tx, target_ty),
            duration=self.transition_seconds,
        )
        self._changed()

    def reset_view(self):
        """Ease back to the world origin at 100% zoom."""
        self.center_on(ORIGIN, scale=1.0)

    def focus_on(self, point: Point):
        """Ease to center ``point`` at the current zoom."""
        self.center_on(point)

    def jump_to(self, world_point: Optional[Point] = None, scale: float = 1.0):
        """Center immediately, without a transition."""
        point = world_point if world_point is not None else ORIGIN
        self._transition = None
        self.set_transform(scale, self.width / 2 - point.x * scale,
                           self.height / 2 - point.y * scale)

    def tick(self, frame_time: float) -> bool:
        """Advance one display frame.

        Steps the running transition, publishes the throttled snapshot and
        returns whether another frame is wanted.
        """
        transition = self._transition
        if transition is not None:
            if transition.started_at is None:
                transition.started_at = frame_time
            if transition.duration > 0:
                progress = min((frame_time - transition.started_at) / transition.duration, 1.0)
            else:
                progress = 1.0
            eased = ease_in_out(progress)
            start, end = transition.start, transition.end
            self.scale = start.scale + (end.scale - start.scale) * eased
            self.tx = start.tx + (end.tx - start.tx) * eased
            self.ty = start.ty + (end.ty - start.ty) * eased
            if progress >= 1.0:
                self._transition = None
            self._changed()

        if self._display_dirty:
            self._display_dirty = False
            self.display.set(self.transform)

        return self.needs_frame

    def _changed(self):
        self._display_dirty = True
        if self.on_changed:
            self.on_changed()
