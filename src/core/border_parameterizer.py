"""
Border Parameterizer Module
경계(pin) 정점 선택 및 UV 고정 전략

LSCM 시스템은 최소 두 정점의 UV가 고정되어야 해가 유일합니다.
각 전략은 uvmap/pinned 배열을 제자리에서 수정하고 ErrorCode를 반환합니다.
고정하지 않는 정점의 pinned 값은 건드리지 않습니다.
"""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional

import numpy as np

from .connected_components import component_vertices, enumerate_faces
from .errors import ErrorCode
from .halfedge_mesh import NULL_FACE, NULL_HALFEDGE, TriangleMeshGraph

_LOGGER = logging.getLogger(__name__)

_EPS = 1e-12


def _maps_match(mesh: TriangleMeshGraph, uvmap: np.ndarray, pinned: np.ndarray) -> bool:
    n = int(mesh.num_vertices())
    uv = np.asarray(uvmap)
    pin = np.asarray(pinned)
    return uv.ndim == 2 and uv.shape == (n, 2) and pin.shape == (n,)


class BorderParameterizer:
    """경계 파라미터화 전략의 공통 인터페이스"""

    def parameterize_border(
        self,
        mesh: TriangleMeshGraph,
        bhd: int,
        uvmap: np.ndarray,
        pinned: np.ndarray,
    ) -> ErrorCode:
        raise NotImplementedError


class TwoVerticesParameterizer(BorderParameterizer):
    """
    두 정점만 고정하는 기본 전략

    vertices가 주어지면 그 두 정점을 (0, 0), (|p1 - p0|, 0)에 고정합니다.
    주어지지 않으면 컴포넌트 정점을 bounding box의 가장 긴 두 축에 투영하고,
    가장 긴 축 방향의 양 끝 정점을 투영 좌표 그대로(메쉬 단위) 고정합니다.
    """

    def __init__(self, vertices: Optional[tuple[int, int]] = None):
        self.vertices = None if vertices is None else (int(vertices[0]), int(vertices[1]))

    def parameterize_border(self, mesh, bhd, uvmap, pinned):
        if not _maps_match(mesh, uvmap, pinned):
            return ErrorCode.ERROR_WRONG_PARAMETER
        if self.vertices is not None:
            return self._pin_explicit(mesh, uvmap, pinned)

        seed = mesh.face(mesh.opposite(bhd))
        if seed == NULL_FACE:
            return ErrorCode.ERROR_WRONG_PARAMETER
        verts = component_vertices(enumerate_faces(seed, mesh), mesh)
        if len(verts) < 2:
            return ErrorCode.ERROR_BORDER_PARAMETERIZATION

        pts = np.asarray([mesh.point(v) for v in verts], dtype=np.float64)
        lo = pts.min(axis=0)
        extents = pts.max(axis=0) - lo
        order = np.argsort(-extents, kind="stable")
        if not np.isfinite(extents).all() or float(extents[order[0]]) <= _EPS:
            _LOGGER.warning("Cannot pick anchor vertices: component has zero extent")
            return ErrorCode.ERROR_BORDER_PARAMETERIZATION

        axis_u = int(order[0])
        axis_v = int(order[1])
        proj = np.stack([pts[:, axis_u] - lo[axis_u], pts[:, axis_v] - lo[axis_v]], axis=1)
        i_min = int(np.argmin(proj[:, 0]))
        i_max = int(np.argmax(proj[:, 0]))

        for i in (i_min, i_max):
            v = verts[i]
            uvmap[v] = proj[i]
            pinned[v] = True
        _LOGGER.debug("Pinned vertices %d and %d (axis=%d)", verts[i_min], verts[i_max], axis_u)
        return ErrorCode.OK

    def _pin_explicit(self, mesh, uvmap, pinned):
        assert self.vertices is not None
        v0, v1 = self.vertices
        n = int(mesh.num_vertices())
        if v0 == v1 or not (0 <= v0 < n and 0 <= v1 < n):
            return ErrorCode.ERROR_BORDER_PARAMETERIZATION
        dist = float(np.linalg.norm(np.asarray(mesh.point(v1)) - np.asarray(mesh.point(v0))))
        if not np.isfinite(dist) or dist <= _EPS:
            return ErrorCode.ERROR_BORDER_PARAMETERIZATION
        uvmap[v0] = (0.0, 0.0)
        uvmap[v1] = (dist, 0.0)
        pinned[v0] = True
        pinned[v1] = True
        return ErrorCode.OK


class FixedVerticesParameterizer(BorderParameterizer):
    """호출자가 지정한 {정점: (u, v)} 를 그대로 고정"""

    def __init__(self, pins: Mapping[int, tuple[float, float]]):
        self.pins = {int(v): (float(uv[0]), float(uv[1])) for v, uv in dict(pins).items()}

    def parameterize_border(self, mesh, bhd, uvmap, pinned):
        if not _maps_match(mesh, uvmap, pinned):
            return ErrorCode.ERROR_WRONG_PARAMETER
        n = int(mesh.num_vertices())
        if len(self.pins) < 2:
            return ErrorCode.ERROR_BORDER_PARAMETERIZATION
        if any(v < 0 or v >= n for v in self.pins):
            return ErrorCode.ERROR_WRONG_PARAMETER
        values = np.asarray(list(self.pins.values()), dtype=np.float64)
        if not np.isfinite(values).all() or np.unique(values, axis=0).shape[0] < 2:
            return ErrorCode.ERROR_BORDER_PARAMETERIZATION

        for v, uv in self.pins.items():
            uvmap[v] = uv
            pinned[v] = True
        return ErrorCode.OK


class CircularBorderParameterizer(BorderParameterizer):
    """
    bhd가 속한 경계 루프 전체를 원 위에 호 길이 비율로 고정

    반지름은 둘레 / 2π 로 두어 메쉬 단위를 유지합니다.
    경계 half-edge는 내부 면과 반대 방향으로 돌기 때문에 각도는 음의 방향으로 증가시킵니다.
    """

    def parameterize_border(self, mesh, bhd, uvmap, pinned):
        if not _maps_match(mesh, uvmap, pinned):
            return ErrorCode.ERROR_WRONG_PARAMETER
        if mesh.face(bhd) != NULL_FACE:
            return ErrorCode.ERROR_BORDER_TOO_SHORT

        cycle: list[int] = []
        h = bhd
        limit = 3 * int(mesh.num_vertices()) + 3
        while True:
            cycle.append(h)
            h = mesh.next(h)
            if h == bhd:
                break
            if h == NULL_HALFEDGE or len(cycle) > limit:
                _LOGGER.warning("Border cycle starting at half-edge %d is not closed", bhd)
                return ErrorCode.ERROR_BORDER_TOO_SHORT
        if len(cycle) < 3:
            return ErrorCode.ERROR_BORDER_TOO_SHORT

        verts = [mesh.target(x) for x in cycle]
        pts = np.asarray([mesh.point(v) for v in verts], dtype=np.float64)
        seg = np.linalg.norm(pts - np.roll(pts, 1, axis=0), axis=1)
        perimeter = float(seg.sum())
        if not np.isfinite(perimeter) or perimeter <= _EPS:
            return ErrorCode.ERROR_BORDER_TOO_SHORT

        arc = np.concatenate([[0.0], np.cumsum(seg[1:])])
        angle = -2.0 * math.pi * arc / perimeter
        radius = perimeter / (2.0 * math.pi)
        for v, t in zip(verts, angle):
            uvmap[v] = (radius * math.cos(float(t)), radius * math.sin(float(t)))
            pinned[v] = True
        return ErrorCode.OK


def make_border_parameterizer(name: str) -> BorderParameterizer:
    """설정 이름으로 전략 생성 ('two_vertices' | 'circle')"""
    key = str(name or "two_vertices").strip().lower().replace("-", "_")
    if key in {"two_vertices", "two", "default"}:
        return TwoVerticesParameterizer()
    if key in {"circle", "circular"}:
        return CircularBorderParameterizer()
    raise ValueError(f"Unknown border parameterizer: {name!r}")
