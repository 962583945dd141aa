from pathlib import Path

import pytest


@pytest.fixture
def make_tree():
    """Create files from a ``{relative_path: size}`` mapping under ``base``."""

    def _make(base: Path, files: dict) -> Path:
        base.mkdir(parents=True, exist_ok=True)
        for rel, size in files.items():
            path = base / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"x" * size)
        return base

    return _make
