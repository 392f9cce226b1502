"""Tests for atomic_write."""

import pytest

from agentgraph.utils import atomic_write


def test_writes_and_replaces(tmp_path):
    path = tmp_path / "index.json"
    path.write_text("old")

    with atomic_write(path) as f:
        f.write("new")

    assert path.read_text() == "new"
    assert [p.name for p in tmp_path.iterdir()] == ["index.json"]


def test_binary_mode(tmp_path):
    path = tmp_path / "step.ckpt"

    with atomic_write(path, mode="wb") as f:
        f.write(b"\x00\x01")

    assert path.read_bytes() == b"\x00\x01"


def test_error_leaves_original_untouched(tmp_path):
    path = tmp_path / "index.json"
    path.write_text("old")

    with pytest.raises(RuntimeError):
        with atomic_write(path) as f:
            f.write("partial")
            raise RuntimeError("boom")

    assert path.read_text() == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["index.json"]
