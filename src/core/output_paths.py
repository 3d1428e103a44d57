"""
Output path helpers for common exports.

Centralizes naming conventions so every CLI command writes the same names.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]

UV_MESH_SUFFIX = ".lscm.obj"
UV_LAYOUT_SUFFIX = ".uv.svg"
UV_PREVIEW_SUFFIX = ".uv.png"


def _resolve_output_path(input_path: PathLike, output_path: Optional[PathLike], suffix: str) -> Path:
    if output_path:
        return Path(output_path)
    src = Path(input_path)
    return src.with_name(src.stem + suffix)


def uv_mesh_output_path(input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
    return _resolve_output_path(input_path, output_path, UV_MESH_SUFFIX)


def uv_layout_output_path(input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
    return _resolve_output_path(input_path, output_path, UV_LAYOUT_SUFFIX)


def uv_preview_output_path(input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
    return _resolve_output_path(input_path, output_path, UV_PREVIEW_SUFFIX)
