"""IdeaCanvas - an infinite canvas for growing ideas around a topic."""

__version__ = "1.0.0"
__app_id__ = "io.github.ideacanvas.IdeaCanvas"
