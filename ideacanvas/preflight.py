"""Environment and dependency preflight checks.

Run before any GTK import so a missing binding produces a readable message
instead of a traceback. Set IDEACANVAS_SKIP_PREFLIGHT=1 to bypass.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

MIN_PYTHON = (3, 11)

SUGGESTED_SETUP = (
    "Suggested setup:\n"
    "  Fedora: sudo dnf install gtk4 libadwaita python3-gobject cairo-devel\n"
    "  Debian/Ubuntu: sudo apt install gir1.2-gtk-4.0 gir1.2-adw-1 python3-gi libcairo2-dev\n"
    "  pip install -e '.[gui]'\n"
)


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _check_python_version(version=None) -> Optional[str]:
    current = tuple(version or sys.version_info[:2])
    if current < MIN_PYTHON:
        return (
            f"IdeaCanvas needs Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]} or newer; "
            f"running {current[0]}.{current[1]}."
        )
    return None


def _check_python_deps() -> Optional[str]:
    """Return an error message if required deps are missing."""
    try:
        import httpx  # noqa: F401
        import pydantic  # noqa: F401
        import pydantic_settings  # noqa: F401
    except Exception as exc:  # pylint: disable=broad-except
        return f"Missing core Python dependency. Underlying error: {exc}"

    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except Exception as exc:  # pylint: disable=broad-except
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except Exception as exc:  # pylint: disable=broad-except
        return (
            "Missing GTK 4/libadwaita bindings. Install the GObject introspection "
            "packages for Gtk 4.0 and Adw 1. "
            f"Underlying error: {exc}"
        )

    try:
        from gi.events import GLibEventLoopPolicy  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "PyGObject 3.50 or newer is required for asyncio integration "
            f"(gi.events). Underlying error: {exc}"
        )

    return None


def run_preflight(*, check_deps: bool = True) -> PreflightResult:
    """Run checks and return a structured result.

    With ``check_deps=False`` only the interpreter version is checked, which
    is all that can be verified before pip has installed anything.
    """
    if os.environ.get("IDEACANVAS_SKIP_PREFLIGHT") == "1":
        return PreflightResult(True, "Preflight skipped via IDEACANVAS_SKIP_PREFLIGHT=1")

    version_error = _check_python_version()
    if version_error:
        return PreflightResult(False, version_error)

    if check_deps:
        dep_error = _check_python_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(*, check_deps: bool = True) -> None:
    result = run_preflight(check_deps=check_deps)
    if result.ok:
        return

    sys.stderr.write("\nIdeaCanvas preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    sys.stderr.write(SUGGESTED_SETUP + "\n")
    raise SystemExit(1)
