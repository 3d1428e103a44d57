from dataclasses import replace
from pathlib import Path

import pytest

import main
from src.core import flattener
from src.core.logging_utils import ENV_LOG_DIR

_STRIP_OBJ = """\
v 0 0 0
v 1 0 0.2
v 2 0 0
v 0 1 0
v 1 1 0.2
v 2 1 0
f 1 2 5
f 1 5 4
f 2 3 6
f 2 6 5
"""


@pytest.fixture
def strip_obj(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_LOG_DIR, str(tmp_path / "logs"))
    path = tmp_path / "strip.obj"
    path.write_text(_STRIP_OBJ, encoding="utf-8")
    return path


def test_help_and_unknown_command(strip_obj, capsys):
    assert main.run_cli(["--help"]) == 0
    assert "Usage" in capsys.readouterr().out

    assert main.run_cli([str(strip_obj.parent / "missing.obj")]) == 2


def test_info_prints_counts(strip_obj, capsys):
    assert main.run_cli(["--info", str(strip_obj)]) == 0

    out = capsys.readouterr().out
    assert "n_vertices: 6" in out
    assert "n_faces: 4" in out


def test_svg_and_preview_commands(strip_obj, tmp_path):
    svg = tmp_path / "out" / "layout.svg"
    png = tmp_path / "out" / "preview.png"

    assert main.run_cli(["--svg", str(strip_obj), str(svg)]) == 0
    assert main.run_cli(["--preview", str(strip_obj), str(png)]) == 0

    assert 'id="distortion"' in svg.read_text(encoding="utf-8")
    assert png.stat().st_size > 0


def test_process_writes_default_outputs(strip_obj):
    assert main.run_cli([str(strip_obj)]) == 0

    assert Path(str(strip_obj).replace(".obj", ".lscm.obj")).exists()
    assert (strip_obj.parent / "strip.uv.svg").exists()


def test_flatten_failure_returns_error_code(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_LOG_DIR, str(tmp_path / "logs"))
    path = tmp_path / "tetra.obj"
    path.write_text(
        "v 0 0 0\nv 1 0 0\nv 0 1 0\nv 0 0 1\nf 1 3 2\nf 1 2 4\nf 1 4 3\nf 2 3 4\n",
        encoding="utf-8",
    )
    # 닫힌 메쉬는 원형 경계를 만들 수 없음
    monkeypatch.setattr(flattener, "DEFAULTS", replace(flattener.DEFAULTS, border_strategy="circle"))

    assert main.run_cli(["--flatten", str(path), str(tmp_path / "tetra.lscm.obj")]) == 1
    assert not (tmp_path / "tetra.lscm.obj").exists()
