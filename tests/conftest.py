from __future__ import annotations

import pathlib
import sys


def pytest_sessionstart(session) -> None:  # noqa: ARG001
    """Make the package importable without installing it."""

    repo_root = pathlib.Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
