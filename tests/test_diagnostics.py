from pathlib import Path

import pytest

from retrosynth import diagnostics


@pytest.fixture
def log_path(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "logs" / "render.log"
    monkeypatch.setattr(diagnostics, "_LOG_RENDER_EVENTS", False)
    monkeypatch.setattr(diagnostics, "_LOG_PATH", path)
    return path


def test_disabled_logging_writes_nothing(log_path: Path):
    assert not diagnostics.render_logging_enabled()
    diagnostics.log_render_event("ignored")
    assert not log_path.exists()


def test_enabled_logging_appends_lines(log_path: Path):
    diagnostics.enable_render_logging(True)
    assert diagnostics.render_logging_enabled()
    diagnostics.log_render_event("first")
    diagnostics.log_render_event("second")
    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[0].endswith(" first")
    assert lines[1].endswith(" second")


def test_log_path_can_be_redirected(log_path: Path, tmp_path: Path):
    other = tmp_path / "other.log"
    diagnostics.set_render_log_path(other)
    assert diagnostics.render_log_path() == other
    diagnostics.enable_render_logging(True)
    diagnostics.log_render_event("moved")
    assert other.read_text(encoding="utf-8").strip().endswith("moved")
    assert not log_path.exists()
