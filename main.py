"""
MeshLSCM - Least-Squares Conformal Map mesh flattening
최소자승 등각 매핑(LSCM) 메쉬 평면화 도구

Main entry point
"""

import sys
import os
import logging
from pathlib import Path

# Ensure repository root is on sys.path so "src" is importable.
ROOT_DIR = Path(__file__).resolve().parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.core.runtime_defaults import DEFAULTS
from src.core.output_paths import (
    uv_mesh_output_path,
    uv_layout_output_path,
    uv_preview_output_path,
)

_LOGGER = logging.getLogger(__name__)
DEFAULT_MESH_UNIT = "mm"


def run_cli(argv: list[str] | None = None) -> int:
    """커맨드라인 인터페이스 실행 (종료 코드 반환)"""
    args = list(sys.argv[1:] if argv is None else argv)

    from src.core.logging_utils import setup_logging

    setup_logging(console=True)

    if not args:
        print_help()
        return 0

    cmd = args[0]

    if cmd in ('--help', '-h'):
        print_help()
        return 0

    if cmd == '--info' and len(args) > 1:
        return show_file_info(args[1])

    if cmd == '--flatten' and len(args) > 1:
        return flatten_mesh(args[1], args[2] if len(args) > 2 else None)

    if cmd == '--svg' and len(args) > 1:
        return export_layout(args[1], args[2] if len(args) > 2 else None)

    if cmd == '--preview' and len(args) > 1:
        return export_preview(args[1], args[2] if len(args) > 2 else None)

    # 기본: 파일 처리
    if os.path.exists(cmd):
        return process_mesh(cmd)

    print(f"Error: Unknown command or file not found: {cmd}")
    print("Use --help for usage information")
    return 2


def print_help():
    """도움말 출력"""
    from src.core.mesh_loader import MeshLoader

    print("=" * 60)
    print("MeshLSCM - Least-Squares Conformal Map flattening")
    print("=" * 60)
    print()
    print("Usage:")
    print("  python main.py <mesh_file>                     # Flatten, save OBJ with UVs + SVG layout")
    print("  python main.py --info <mesh_file>              # Show file info")
    print("  python main.py --flatten <mesh_file> [out.obj] # Save mesh with LSCM UVs")
    print("  python main.py --svg <mesh_file> [out.svg]     # Save UV layout as SVG")
    print("  python main.py --preview <mesh_file> [out.png] # Save distortion preview image")
    print()
    print(f"Supported formats: {list(MeshLoader.SUPPORTED_FORMATS.keys())}")
    print(f"Solver backend: {DEFAULTS.solver_backend} (MESHLSCM_SOLVER_BACKEND)")
    print(f"Border strategy: {DEFAULTS.border_strategy} (MESHLSCM_BORDER)")


def show_file_info(filepath: str) -> int:
    """파일 정보 표시"""
    from src.core.mesh_loader import MeshLoader

    print(f"\nFile Info: {filepath}")
    print("-" * 40)

    try:
        loader = MeshLoader(default_unit=DEFAULT_MESH_UNIT)
        info = loader.get_file_info(filepath)
    except Exception as e:
        _LOGGER.exception("Failed to read file info: %s", filepath)
        print(f"  Error: {e}")
        return 1

    for key, value in info.items():
        print(f"  {key}: {value}")
    return 0


def _load_and_flatten(filepath: str):
    from src.core.mesh_loader import MeshLoader
    from src.core.flattener import LSCMFlattener

    loader = MeshLoader(default_unit=DEFAULT_MESH_UNIT)
    mesh = loader.load(filepath)
    print(f"  Loaded: {mesh.n_vertices:,} vertices, {mesh.n_faces:,} faces")

    flattened = LSCMFlattener().flatten(mesh)
    print(f"  Components: {flattened.meta.get('components', 1)}")
    print(f"  Flattened: {flattened.width:.2f} x {flattened.height:.2f} {mesh.unit}")
    print(f"  Conformal distortion: {flattened.mean_distortion:.1%} (mean), {flattened.max_distortion:.1%} (max)")
    return flattened


def _run(label: str, filepath: str, action) -> int:
    from src.core.errors import ParameterizationError

    print(f"\n{label}: {filepath}")
    print("-" * 40)
    try:
        action()
    except ParameterizationError as e:
        _LOGGER.error("Parameterization failed for %s: %s (%s)", filepath, e, e.code.name)
        print(f"Error: {e}")
        return 1
    except Exception as e:
        _LOGGER.exception("%s failed: %s", label, filepath)
        print(f"Error: {e}")
        return 1
    return 0


def flatten_mesh(filepath: str, output_path: str | None = None) -> int:
    """LSCM UV를 포함한 메쉬 저장"""
    from src.core.mesh_loader import MeshProcessor

    def action():
        flattened = _load_and_flatten(filepath)
        save_path = uv_mesh_output_path(filepath, output_path)
        MeshProcessor().save_mesh(flattened.to_mesh_data(), save_path)
        print(f"  Saved: {save_path}")

    return _run("Flattening", filepath, action)


def export_layout(filepath: str, output_path: str | None = None) -> int:
    """UV 배치 SVG 저장"""
    from src.core.uv_layout_exporter import UVLayoutSVGExporter, UVLayoutSVGOptions

    def action():
        flattened = _load_and_flatten(filepath)
        save_path = uv_layout_output_path(filepath, output_path)
        options = UVLayoutSVGOptions(size=float(DEFAULTS.preview_size), shade_distortion=True)
        UVLayoutSVGExporter().export(flattened, save_path, options)
        print(f"  Saved: {save_path}")

    return _run("UV layout", filepath, action)


def export_preview(filepath: str, output_path: str | None = None) -> int:
    """왜곡도 미리보기 PNG 저장"""
    from src.core.uv_preview import render_uv_preview

    def action():
        flattened = _load_and_flatten(filepath)
        save_path = uv_preview_output_path(filepath, output_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        render_uv_preview(flattened, size=DEFAULTS.preview_size).save(str(save_path))
        print(f"  Saved: {save_path}")

    return _run("UV preview", filepath, action)


def process_mesh(filepath: str) -> int:
    """전체 처리 (로드 → 평면화 → OBJ + SVG 저장)"""
    from src.core.mesh_loader import MeshProcessor
    from src.core.uv_layout_exporter import UVLayoutSVGExporter

    def action():
        flattened = _load_and_flatten(filepath)
        mesh_path = uv_mesh_output_path(filepath)
        MeshProcessor().save_mesh(flattened.to_mesh_data(), mesh_path)
        print(f"  Saved: {mesh_path}")
        svg_path = uv_layout_output_path(filepath)
        UVLayoutSVGExporter().export(flattened, svg_path)
        print(f"  Saved: {svg_path}")

    return _run("Processing", filepath, action)


if __name__ == '__main__':
    sys.exit(run_cli())
