"""Tests for the mosaic clean command."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from mosaic.cli.main import app

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "index.html").write_text("<p>x</p>", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_clean_removes_output_and_cache(project: Path) -> None:
    assert runner.invoke(app, ["build"]).exit_code == 0
    assert (project / "dist" / "index.html").exists()

    result = runner.invoke(app, ["clean"])

    assert result.exit_code == 0, result.output
    assert "Removed" in result.output
    assert not (project / "dist").exists()
    assert not (project / ".mosaic-cache" / "build-cache.json").exists()


def test_clean_without_output_is_harmless(project: Path) -> None:
    result = runner.invoke(app, ["clean"])
    assert result.exit_code == 0


def test_clean_honours_output_option(project: Path) -> None:
    runner.invoke(app, ["build", "--output", "public"])
    result = runner.invoke(app, ["clean", "-o", "public"])
    assert result.exit_code == 0
    assert not (project / "public").exists()
