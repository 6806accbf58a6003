from __future__ import annotations

import os
from pathlib import Path

import pytest

_ALLOWED_MARKERS = {"unit", "integration"}


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        names = {mark.name for mark in item.iter_markers()}
        if not names.intersection(_ALLOWED_MARKERS):
            item.add_marker("unit")


@pytest.fixture
def me() -> tuple[int, int]:
    return os.getuid(), os.getgid()


@pytest.fixture
def make_file(tmp_path: Path):
    def _make(name: str, mode: int, content: str = "x\n") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        # umask does not matter after an explicit chmod
        os.chmod(path, mode)
        return path

    return _make


@pytest.fixture
def conf_tree(tmp_path: Path) -> Path:
    """
    conf/            755
      good.conf      644
      loose.conf     666
    """
    root = tmp_path / "conf"
    root.mkdir()
    os.chmod(root, 0o755)
    (root / "good.conf").write_text("ok\n", encoding="utf-8")
    os.chmod(root / "good.conf", 0o644)
    (root / "loose.conf").write_text("ok\n", encoding="utf-8")
    os.chmod(root / "loose.conf", 0o666)
    return root
