"""
Half-edge Mesh Module
삼각형 메쉬의 half-edge 연결 구조

면(face) 배열로부터 half-edge 그래프를 만들고, 파라미터화 엔진이 사용하는
최소한의 탐색 인터페이스(`TriangleMeshGraph`)를 제공합니다.

Half-edge 번호 규칙:
    - 내부 half-edge `3*f + k` 는 faces[f, k] → faces[f, (k+1) % 3]
    - 경계(border) half-edge 는 `3 * n_faces` 이후 번호를 사용하며 face 는 NULL_FACE
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Protocol, TYPE_CHECKING

import numpy as np

from .logging_utils import log_once

if TYPE_CHECKING:
    from .mesh_loader import MeshData

_LOGGER = logging.getLogger(__name__)

NULL_FACE = -1
NULL_HALFEDGE = -1


class TriangleMeshGraph(Protocol):
    """파라미터화 엔진이 요구하는 메쉬 탐색 기능"""

    def vertices(self) -> Iterator[int]: ...

    def faces(self) -> Iterator[int]: ...

    def num_vertices(self) -> int: ...

    def halfedge(self, face: int) -> int: ...

    def next(self, h: int) -> int: ...

    def opposite(self, h: int) -> int: ...

    def target(self, h: int) -> int: ...

    def face(self, h: int) -> int: ...

    def point(self, v: int) -> np.ndarray: ...


class HalfedgeMesh:
    """
    배열 기반 half-edge 메쉬

    Args:
        vertices: (N, 3) 정점 좌표
        faces: (M, 3) 삼각형 정점 인덱스 (일관된 winding 필요)

    Raises:
        ValueError: 인덱스 범위 오류, 중복 인덱스 face, non-manifold edge
    """

    def __init__(self, vertices: np.ndarray, faces: np.ndarray):
        points = np.asarray(vertices, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError(f"vertices must have shape (N, 3), got {points.shape}")
        tris = np.asarray(faces, dtype=np.int64)
        if tris.size == 0:
            tris = tris.reshape(0, 3)
        if tris.ndim != 2 or tris.shape[1] != 3:
            raise ValueError(f"faces must have shape (M, 3), got {tris.shape}")

        n_vertices = int(points.shape[0])
        n_faces = int(tris.shape[0])
        if n_faces and (int(tris.min()) < 0 or int(tris.max()) >= n_vertices):
            raise ValueError("face index out of range")

        repeated = (tris[:, 0] == tris[:, 1]) | (tris[:, 1] == tris[:, 2]) | (tris[:, 0] == tris[:, 2])
        if np.any(repeated):
            bad = int(np.flatnonzero(repeated)[0])
            raise ValueError(f"face {bad} repeats a vertex index: {tris[bad].tolist()}")

        self._points = points[:, :3]
        self._n_vertices = n_vertices
        self._n_faces = n_faces

        n_inner = 3 * n_faces
        src = tris.reshape(-1).tolist()
        tgt = tris[:, [1, 2, 0]].reshape(-1).tolist()

        corner = np.arange(n_inner, dtype=np.int64)
        inner_next = (corner - corner % 3 + (corner % 3 + 1) % 3).tolist()

        directed: dict[tuple[int, int], int] = {}
        for h in range(n_inner):
            key = (src[h], tgt[h])
            if key in directed:
                raise ValueError(
                    f"non-manifold or inconsistently oriented edge {key} "
                    f"(faces {directed[key] // 3} and {h // 3})"
                )
            directed[key] = h

        target = list(tgt)
        nxt = list(inner_next)
        face = [h // 3 for h in range(n_inner)]
        opposite = [NULL_HALFEDGE] * n_inner

        # 짝이 없는 내부 half-edge마다 경계 half-edge 생성
        border_from: dict[int, int] = {}
        for h in range(n_inner):
            twin = directed.get((tgt[h], src[h]))
            if twin is not None:
                opposite[h] = twin
                continue
            b = len(target)
            target.append(src[h])
            nxt.append(NULL_HALFEDGE)
            face.append(NULL_FACE)
            opposite.append(h)
            opposite[h] = b
            start = tgt[h]
            if start in border_from:
                log_once(
                    _LOGGER,
                    "halfedge_mesh:non_manifold_border_vertex",
                    logging.WARNING,
                    "Border vertex %d has several outgoing border half-edges; border cycles may be split",
                    start,
                )
            else:
                border_from[start] = b

        for b in range(n_inner, len(target)):
            nxt[b] = border_from.get(target[b], NULL_HALFEDGE)

        self._target = target
        self._next = nxt
        self._face = face
        self._opposite = opposite

    @classmethod
    def from_mesh_data(cls, mesh: "MeshData") -> "HalfedgeMesh":
        """MeshData에서 생성"""
        return cls(mesh.vertices, mesh.faces)

    @property
    def n_vertices(self) -> int:
        return self._n_vertices

    @property
    def n_faces(self) -> int:
        return self._n_faces

    @property
    def n_halfedges(self) -> int:
        return len(self._target)

    @property
    def points(self) -> np.ndarray:
        return self._points

    def num_vertices(self) -> int:
        return self._n_vertices

    def vertices(self) -> Iterator[int]:
        return iter(range(self._n_vertices))

    def faces(self) -> Iterator[int]:
        return iter(range(self._n_faces))

    def halfedges(self) -> Iterator[int]:
        return iter(range(len(self._target)))

    def border_halfedges(self) -> Iterator[int]:
        return iter(range(3 * self._n_faces, len(self._target)))

    def halfedge(self, face: int) -> int:
        """face의 대표 half-edge (target이 faces[f, 0])"""
        f = int(face)
        if f < 0 or f >= self._n_faces:
            raise IndexError(f"face {f} out of range")
        return 3 * f + 2

    def next(self, h: int) -> int:
        return self._next[h]

    def opposite(self, h: int) -> int:
        return self._opposite[h]

    def target(self, h: int) -> int:
        return self._target[h]

    def source(self, h: int) -> int:
        return self._target[self._opposite[h]]

    def face(self, h: int) -> int:
        return self._face[h]

    def is_border(self, h: int) -> bool:
        return self._face[h] == NULL_FACE

    def point(self, v: int) -> np.ndarray:
        return self._points[v]

    def vertices_around_face(self, h: int) -> Iterator[int]:
        """h에서 시작해 next를 따라가며 target 정점을 순서대로 반환"""
        cur = int(h)
        for _ in range(len(self._target)):
            yield self._target[cur]
            cur = self._next[cur]
            if cur == h or cur == NULL_HALFEDGE:
                return

    def border_cycles(self) -> list[list[int]]:
        """경계 half-edge 루프 목록 (각 루프는 half-edge 번호 리스트)"""
        visited: set[int] = set()
        cycles: list[list[int]] = []
        for b in self.border_halfedges():
            if b in visited:
                continue
            cycle: list[int] = []
            cur = b
            while cur != NULL_HALFEDGE and cur not in visited:
                visited.add(cur)
                cycle.append(cur)
                cur = self._next[cur]
            if cycle:
                cycles.append(cycle)
        return cycles

    def halfedge_length(self, h: int) -> float:
        p = self._points[self.source(h)]
        q = self._points[self._target[h]]
        return float(np.linalg.norm(q - p))

    def longest_border_halfedge(self) -> Optional[int]:
        """3D 길이가 가장 긴 경계 루프의 첫 half-edge (닫힌 메쉬면 None)"""
        best: Optional[int] = None
        best_len = -1.0
        for cycle in self.border_cycles():
            length = sum(self.halfedge_length(h) for h in cycle)
            if length > best_len:
                best_len = length
                best = cycle[0]
        return best
