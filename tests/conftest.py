"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from mosaic.builder import Builder
from mosaic.config import BuildConfig


class Site:
    """A throwaway source tree under tmp_path with helpers to build it."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()
        self.source = self.root / "src"
        self.output = self.root / "dist"
        self.cache_dir = self.root / ".mosaic-cache"
        self.source.mkdir(parents=True, exist_ok=True)

    def path(self, rel: str) -> Path:
        return self.source / rel

    def write(self, rel: str, content: str | bytes) -> Path:
        path = self.path(rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    def out(self, rel: str) -> Path:
        return self.output / rel

    def read_output(self, rel: str) -> str:
        return self.out(rel).read_text(encoding="utf-8")

    def config(self, **overrides: Any) -> BuildConfig:
        values: dict[str, Any] = {
            "source": self.source,
            "output": self.output,
            "cache_dir": self.cache_dir,
        }
        values.update(overrides)
        return BuildConfig(**values)

    def builder(self, **overrides: Any) -> Builder:
        return Builder(self.config(**overrides))


@pytest.fixture
def site(tmp_path: Path) -> Site:
    """Empty source tree at tmp_path/src; output goes to tmp_path/dist."""
    return Site(tmp_path)
