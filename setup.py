#!/usr/bin/env python3
"""Setup script for IdeaCanvas."""

import os
import sys
from setuptools import setup, find_packages


def _run_install_preflight() -> None:
    """Fail fast on unsupported interpreters.

    Note: installing from a wheel will not execute setup.py, so we also
    enforce this at runtime via `ideacanvas.launcher`.
    """
    if os.environ.get("IDEACANVAS_SKIP_PREFLIGHT") == "1":
        return
    try:
        from ideacanvas.preflight import run_preflight_or_die
        # Do NOT require Python deps before pip has had a chance to install them.
        run_preflight_or_die(check_deps=False)
    except SystemExit:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        sys.stderr.write("\nIdeaCanvas preflight error while installing:\n")
        sys.stderr.write(str(exc) + "\n")
        raise SystemExit(1)


_run_install_preflight()

setup(
    name="ideacanvas",
    version="1.0.0",
    description="An infinite canvas for growing ideas around a topic",
    author="IdeaCanvas Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.27.0",
        "pydantic>=2.6.0",
        "pydantic-settings>=2.2.0",
    ],
    extras_require={
        "gui": [
            "PyGObject>=3.50.0",
            "pycairo>=1.25.0",
        ],
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
            "pycairo>=1.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ideacanvas=ideacanvas.launcher:main",
        ],
        "gui_scripts": [
            "ideacanvas-gui=ideacanvas.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
    ],
)
