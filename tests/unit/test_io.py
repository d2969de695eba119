"""Tests for the resource reader/writer."""

from __future__ import annotations

from pathlib import Path

import pytest

from mosaic.errors import FileSystemError
from mosaic.io import ResourceIO, atomic_write, is_within, normalize


@pytest.fixture
def io(tmp_path: Path) -> ResourceIO:
    (tmp_path / "src").mkdir()
    return ResourceIO(tmp_path / "src", tmp_path / "dist")


def test_read_missing_raises_file_not_found(io: ResourceIO) -> None:
    with pytest.raises(FileNotFoundError):
        io.read(io.source_root / "missing.html")


def test_read_directory_raises_file_not_found(io: ResourceIO) -> None:
    (io.source_root / "dir").mkdir()
    with pytest.raises(FileNotFoundError):
        io.read(io.source_root / "dir")


def test_read_text_replaces_bad_bytes(io: ResourceIO) -> None:
    path = io.source_root / "bad.html"
    path.write_bytes(b"ok \xff end")
    assert io.read_text(path) == "ok � end"


def test_list_is_sorted_and_recursive(io: ResourceIO) -> None:
    for rel in ("b.html", "a/z.css", "a/c.html", "c.txt"):
        path = io.source_root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("x", encoding="utf-8")

    listed = [p.relative_to(io.source_root).as_posix() for p in io.list(io.source_root)]
    assert listed == ["a/c.html", "a/z.css", "b.html", "c.txt"]


def test_list_missing_directory_is_empty(io: ResourceIO) -> None:
    assert list(io.list(io.source_root / "nope")) == []


def test_write_creates_parents_atomically(io: ResourceIO, tmp_path: Path) -> None:
    target = tmp_path / "dist" / "deep" / "page.html"
    io.write(target, "<p>hi</p>")
    assert target.read_text(encoding="utf-8") == "<p>hi</p>"
    assert not list(target.parent.glob("*.tmp"))


def test_atomic_write_replaces_existing(tmp_path: Path) -> None:
    target = tmp_path / "f.txt"
    target.write_text("old", encoding="utf-8")
    atomic_write(target, b"new")
    assert target.read_bytes() == b"new"


def test_write_into_file_path_raises_file_system_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(FileSystemError) as info:
        atomic_write(blocker / "child.html", "x")
    assert info.value.kind == "FileSystemError"


def test_copy_and_remove(io: ResourceIO, tmp_path: Path) -> None:
    source = io.source_root / "logo.png"
    source.write_bytes(b"\x89PNG")
    target = tmp_path / "dist" / "logo.png"

    io.copy(source, target)
    assert target.read_bytes() == b"\x89PNG"
    assert io.remove(target) is True
    assert io.remove(target) is False


def test_remove_tree_missing_is_noop(io: ResourceIO, tmp_path: Path) -> None:
    io.remove_tree(tmp_path / "never-created")


def test_stat_signature(io: ResourceIO) -> None:
    path = io.source_root / "a.html"
    path.write_text("abc", encoding="utf-8")
    signature = io.stat_signature(path)
    assert signature is not None and signature[1] == 3
    assert io.stat_signature(io.source_root / "gone.html") is None


def test_confine(io: ResourceIO) -> None:
    assert io.confine(io.source_root / "a" / ".." / "b.html") == io.source_root / "b.html"
    assert io.confine(io.source_root / ".." / "secret.txt") is None


def test_is_within_and_normalize(tmp_path: Path) -> None:
    root = tmp_path / "root"
    assert is_within(root / "x" / "y", root)
    assert is_within(root, root)
    assert not is_within(root / ".." / "other", root)
    assert normalize(str(root / "a" / ".." / "b")) == root / "b"
