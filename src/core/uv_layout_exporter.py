"""
Flattened Mesh → UV layout SVG exporter

평면화 결과(UV 배치)를 SVG로 내보냅니다.

기본은 와이어프레임 + 경계(Outline)이며, 면별 등각 왜곡도 음영과
고정(pin) 정점 표시를 선택적으로 추가할 수 있습니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .flattener import FlattenedMesh


@dataclass(frozen=True)
class UVLayoutSVGOptions:
    size: float = 1024.0  # 긴 변 길이 (px)
    margin: float = 16.0
    include_wireframe: bool = True
    include_outline: bool = True
    shade_distortion: bool = False
    mark_pins: bool = True
    stroke_color: str = "#000000"
    stroke_width: float = 0.5
    outline_color: str = "#D03030"
    outline_width: float = 1.5
    pin_color: str = "#2060D0"
    pin_radius: float = 3.0


def _distortion_fill(value: float) -> str:
    """0 → 흰색, 1 → 진한 주황"""
    t = float(np.clip(value, 0.0, 1.0))
    r = 255
    g = int(round(255 - 135 * t))
    b = int(round(255 - 255 * t))
    return f"#{r:02X}{g:02X}{b:02X}"


class UVLayoutSVGExporter:
    """FlattenedMesh의 UV 배치를 SVG로 저장"""

    def export(self, flattened: FlattenedMesh, output_path: str | Path,
               options: UVLayoutSVGOptions | None = None) -> str:
        options = options or UVLayoutSVGOptions()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        uv = np.asarray(flattened.uv, dtype=np.float64)
        header = [
            '<?xml version="1.0" encoding="UTF-8" standalone="no"?>',
        ]
        if uv.ndim != 2 or uv.shape[0] == 0:
            header += [
                '<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1" viewBox="0 0 1 1">',
                '<!-- Produced by MeshLSCM (UV layout) -->',
                '<!-- Empty UV: nothing to export -->',
                '</svg>',
            ]
            output_path.write_text("\n".join(header), encoding="utf-8")
            return str(output_path)

        min_uv = flattened.bounds[0]
        extent = flattened.extents
        longest = float(max(extent.max(), 1e-12))
        px = float(options.size) / longest
        margin = float(options.margin)
        width = float(extent[0]) * px + 2.0 * margin
        height = float(extent[1]) * px + 2.0 * margin

        # SVG는 y-down
        def to_svg_xy(points: np.ndarray) -> np.ndarray:
            pts = (np.asarray(points, dtype=np.float64) - min_uv) * px + margin
            pts[:, 1] = height - pts[:, 1]
            return pts

        def points_attr(points: np.ndarray) -> str:
            return " ".join(f"{x:.3f},{y:.3f}" for x, y in to_svg_xy(points))

        svg_parts = header + [
            f'<svg xmlns="http://www.w3.org/2000/svg" '
            f'width="{width:.3f}" height="{height:.3f}" '
            f'viewBox="0 0 {width:.3f} {height:.3f}">',
            '<!-- Produced by MeshLSCM (UV layout) -->',
        ]

        faces = flattened.faces
        n = uv.shape[0]
        valid_faces = faces[np.all((faces >= 0) & (faces < n), axis=1)] if faces.size else faces

        if options.shade_distortion and flattened.distortion_per_face is not None:
            dist = np.asarray(flattened.distortion_per_face, dtype=np.float64)
            svg_parts.append('<g id="distortion" stroke="none">')
            for face, value in zip(faces, dist):
                if int(np.max(face)) >= n:
                    continue
                svg_parts.append(
                    f'<polygon points="{points_attr(uv[face])}" fill="{_distortion_fill(value)}" />'
                )
            svg_parts.append('</g>')

        if options.include_wireframe:
            svg_parts.append(
                f'<g id="wireframe" stroke="{options.stroke_color}" fill="none" '
                f'stroke-width="{options.stroke_width}">'
            )
            for face in valid_faces:
                svg_parts.append(f'<polygon points="{points_attr(uv[face])}" />')
            svg_parts.append('</g>')

        if options.include_outline:
            svg_parts.append(
                f'<g id="outline" stroke="{options.outline_color}" fill="none" '
                f'stroke-width="{options.outline_width}">'
            )
            for loop in flattened.original_mesh.get_boundary_loops():
                if int(np.max(loop)) >= n:
                    continue
                svg_parts.append(f'<polygon points="{points_attr(uv[loop])}" />')
            svg_parts.append('</g>')

        if options.mark_pins and flattened.pinned is not None and np.any(flattened.pinned):
            svg_parts.append(f'<g id="pins" fill="{options.pin_color}" stroke="none">')
            for x, y in to_svg_xy(uv[flattened.pinned]):
                svg_parts.append(f'<circle cx="{x:.3f}" cy="{y:.3f}" r="{options.pin_radius}" />')
            svg_parts.append('</g>')

        svg_parts.append('</svg>')

        output_path.write_text("\n".join(svg_parts), encoding="utf-8")
        return str(output_path)
