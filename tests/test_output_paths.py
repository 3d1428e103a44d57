from pathlib import Path

from src.core.output_paths import (
    uv_layout_output_path,
    uv_mesh_output_path,
    uv_preview_output_path,
)


def test_default_names_sit_next_to_input():
    src = Path("scans") / "bowl.ply"

    assert uv_mesh_output_path(src) == Path("scans") / "bowl.lscm.obj"
    assert uv_layout_output_path(src) == Path("scans") / "bowl.uv.svg"
    assert uv_preview_output_path(str(src)) == Path("scans") / "bowl.uv.png"


def test_explicit_output_wins():
    assert uv_mesh_output_path("a.obj", "out/b.obj") == Path("out/b.obj")
    assert uv_layout_output_path("a.obj", Path("c.svg")) == Path("c.svg")
    assert uv_preview_output_path("a.obj", "") == Path("a.uv.png")
