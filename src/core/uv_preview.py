"""
UV Preview Module
UV 배치 미리보기 이미지 생성 (Pillow)

면을 등각 왜곡도로 채색하고 와이어프레임을 겹쳐 그립니다.
"""

from __future__ import annotations

import numpy as np
from PIL import Image, ImageDraw

from .flattener import FlattenedMesh


def _distortion_rgb(value: float) -> tuple[int, int, int]:
    """0 → 연한 회색, 1 → 빨강"""
    t = float(np.clip(value, 0.0, 1.0))
    return (int(round(235 + 20 * t)), int(round(235 * (1.0 - t))), int(round(235 * (1.0 - t))))


def render_uv_preview(
    flattened: FlattenedMesh,
    size: int = 1024,
    *,
    margin: int = 8,
    wireframe: bool = True,
    background: tuple[int, int, int] = (255, 255, 255),
) -> Image.Image:
    """
    UV 배치를 RGB 이미지로 렌더링

    Args:
        flattened: 평면화 결과
        size: 긴 변 픽셀 수 (margin 포함)
        margin: 가장자리 여백 (px)
        wireframe: 면 경계선 표시 여부

    Returns:
        PIL.Image (mode 'RGB')
    """
    size = int(max(16, size))
    margin = int(max(0, min(margin, size // 4)))
    extent = flattened.extents
    longest = float(max(extent.max(), 1e-12)) if flattened.n_vertices else 1.0
    inner = size - 2 * margin
    width = int(max(1, round(float(extent[0]) / longest * inner))) + 2 * margin
    height = int(max(1, round(float(extent[1]) / longest * inner))) + 2 * margin

    img = Image.new("RGB", (width, height), background)
    if flattened.n_vertices == 0 or flattened.n_faces == 0:
        return img

    # 이미지 좌표계 (Y축 뒤집기)
    pix = (flattened.uv - flattened.bounds[0]) / longest * inner + margin
    pix[:, 1] = (height - 1) - pix[:, 1]

    dist = flattened.distortion_per_face
    if dist is None:
        dist = np.zeros(flattened.n_faces, dtype=np.float64)

    draw = ImageDraw.Draw(img)
    outline = (60, 60, 60) if wireframe else None
    for face, value in zip(flattened.faces, dist):
        tri = pix[face]
        if not np.all(np.isfinite(tri)):
            continue
        draw.polygon([(float(x), float(y)) for x, y in tri], fill=_distortion_rgb(value), outline=outline)

    return img
