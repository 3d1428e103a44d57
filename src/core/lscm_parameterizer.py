"""
LSCM (Least Squares Conformal Maps) Parameterizer
최소자승 등각 매핑 파라미터화

Based on: "Least Squares Conformal Maps for Automatic Texture Atlas Generation"
(Lévy, Petitjean, Ray & Maillot, 2002)

삼각형마다 로컬 2D 기저를 만들고, 복소수 등각 조건
    (Z1 - Z0)(U2 - U0) = (Z2 - Z0)(U1 - U0)
을 실수부/허수부 두 행으로 전역 희소 시스템에 추가한 뒤 최소자승으로 풉니다.
고정(pinned) 정점은 잠긴 변수로 처리되어 우변으로 이동합니다.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import Optional

import numpy as np

from .border_parameterizer import BorderParameterizer, TwoVerticesParameterizer
from .connected_components import component_vertices, enumerate_faces
from .errors import ErrorCode
from .halfedge_mesh import NULL_FACE, TriangleMeshGraph
from .sparse_solver import LeastSquaresSolver, SolverBackend

_LOGGER = logging.getLogger(__name__)


class ParameterizationState(Enum):
    INIT = "init"
    BORDER_PINNED = "border_pinned"
    SYSTEM_BUILT = "system_built"
    SOLVED = "solved"
    DONE = "done"
    ERROR = "error"


def project_triangle(
    p0: np.ndarray, p1: np.ndarray, p2: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    3D 삼각형을 자기 평면의 직교 로컬 기저로 펼침

    z0 = (0, 0), z1 = (|p1 - p0|, 0) 이 항상 성립합니다.
    길이 0인 edge나 일직선 삼각형에서는 축 벡터가 0으로 남고 예외를 내지 않습니다.
    """
    p0 = np.asarray(p0, dtype=np.float64)
    p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64)

    X = p1 - p0
    x_norm = float(np.sqrt(X @ X))
    if x_norm != 0.0:
        X = X / x_norm

    e2 = p2 - p0
    Z = np.cross(X, e2)
    z_norm = float(np.sqrt(Z @ Z))
    if z_norm != 0.0:
        Z = Z / z_norm

    Y = np.cross(Z, X)

    z0 = np.zeros(2, dtype=np.float64)
    z1 = np.array([x_norm, 0.0], dtype=np.float64)
    z2 = np.array([float(e2 @ X), float(e2 @ Y)], dtype=np.float64)
    return z0, z1, z2


def setup_triangle_relations(
    solver: LeastSquaresSolver,
    mesh: TriangleMeshGraph,
    face: int,
    vimap: np.ndarray,
) -> ErrorCode:
    """
    삼각형 하나의 등각 조건을 두 행으로 시스템에 추가

    (a, b) = z1 - z0, (c, d) = z2 - z0 이며 로컬 기저에서 b = 0 입니다.
    나눗셈 없는 형태라 퇴화 삼각형도 (거의) 0 계수 행으로 들어갈 뿐 실패하지 않습니다.
    """
    h0 = mesh.halfedge(face)
    h1 = mesh.next(h0)
    h2 = mesh.next(h1)
    if mesh.next(h2) != h0:
        return ErrorCode.ERROR_NON_TRIANGULAR_MESH

    v0 = mesh.target(h0)
    v1 = mesh.target(h1)
    v2 = mesh.target(h2)

    id0 = int(vimap[v0])
    id1 = int(vimap[v1])
    id2 = int(vimap[v2])
    if id0 < 0 or id1 < 0 or id2 < 0:
        _LOGGER.warning("Face %d references a vertex without an index", face)
        return ErrorCode.ERROR_WRONG_PARAMETER

    z0, z1, z2 = project_triangle(mesh.point(v0), mesh.point(v1), mesh.point(v2))
    a, _ = z1 - z0
    c, d = z2 - z0

    u0_id, v0_id = 2 * id0, 2 * id0 + 1
    u1_id, v1_id = 2 * id1, 2 * id1 + 1
    u2_id, v2_id = 2 * id2, 2 * id2 + 1

    # 실수부
    solver.begin_row()
    solver.add_coefficient(u0_id, -a + c)
    solver.add_coefficient(v0_id, -d)
    solver.add_coefficient(u1_id, -c)
    solver.add_coefficient(v1_id, d)
    solver.add_coefficient(u2_id, a)
    solver.end_row()

    # 허수부
    solver.begin_row()
    solver.add_coefficient(u0_id, d)
    solver.add_coefficient(v0_id, -a + c)
    solver.add_coefficient(u1_id, -d)
    solver.add_coefficient(v1_id, -c)
    solver.add_coefficient(v2_id, a)
    solver.end_row()

    return ErrorCode.OK


def initialize_system_from_mesh_border(
    solver: LeastSquaresSolver,
    mesh: TriangleMeshGraph,
    uvmap: np.ndarray,
    vimap: np.ndarray,
    pinned: np.ndarray,
) -> None:
    """
    현재 UV로 변수 초기값을 채우고 pinned 정점의 변수를 잠급니다.

    컴포넌트뿐 아니라 메쉬의 모든 정점을 순회합니다. 인덱스가 없는(-1) 정점은
    시스템에 자리가 없으므로 건너뜁니다.
    """
    for v in mesh.vertices():
        index = int(vimap[v])
        if index < 0:
            continue
        u, w = uvmap[v]
        solver.variable(2 * index).set_value(u)
        solver.variable(2 * index + 1).set_value(w)
        if pinned[v]:
            solver.variable(2 * index).lock()
            solver.variable(2 * index + 1).lock()


def _count_distinct_pins(
    uvmap: np.ndarray, vimap: np.ndarray, pinned: np.ndarray, cc_vertices: list[int]
) -> int:
    """컴포넌트 안에서 인덱스가 있는 pin의 서로 다른 UV 개수"""
    in_component = np.zeros(len(pinned), dtype=bool)
    in_component[np.asarray(cc_vertices, dtype=np.int64)] = True
    mask = np.asarray(pinned, dtype=bool) & (np.asarray(vimap) >= 0) & in_component
    if not np.any(mask):
        return 0
    uv = np.asarray(uvmap, dtype=np.float64)[mask]
    uv = uv[np.all(np.isfinite(uv), axis=1)]
    if uv.shape[0] == 0:
        return 0
    return int(np.unique(uv, axis=0).shape[0])


class LSCMParameterizer:
    """
    LSCM 파라미터화 오케스트레이터

    경계 고정 → 시스템 초기화 → 삼각형별 조립 → 풀이 → 결과 기록 순서로 진행하며,
    어느 단계든 실패하면 즉시 해당 ErrorCode를 반환합니다.
    마지막 호출의 종료 상태는 `state`에 남습니다.

    Args:
        border_parameterizer: 경계(pin) 전략 (기본: TwoVerticesParameterizer)
        backend: 최소자승 풀이 backend (None이면 solver 기본값)
    """

    def __init__(
        self,
        border_parameterizer: Optional[BorderParameterizer] = None,
        backend: Optional[SolverBackend] = None,
    ):
        self.border_parameterizer = border_parameterizer or TwoVerticesParameterizer()
        self.backend = backend
        self.state = ParameterizationState.INIT

    def _transition(self, state: ParameterizationState) -> None:
        _LOGGER.debug("LSCM %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self, code: ErrorCode, stage: str) -> ErrorCode:
        _LOGGER.warning("LSCM parameterization failed at %s: %s", stage, code.message)
        self._transition(ParameterizationState.ERROR)
        return code

    def parameterize(
        self,
        mesh: TriangleMeshGraph,
        bhd: int,
        uvmap: np.ndarray,
        vimap: np.ndarray,
        pinned: np.ndarray,
    ) -> ErrorCode:
        """
        bhd 반대편 face가 속한 컴포넌트를 파라미터화

        Args:
            mesh: TriangleMeshGraph 구현체
            bhd: 경계 half-edge (opposite의 face가 시드)
            uvmap: (N, 2) UV 배열, 제자리 갱신
            vimap: (N,) 정점 → 시스템 인덱스 (-1 = 제외)
            pinned: (N,) 고정 여부, 경계 전략이 갱신

        Returns:
            ErrorCode.OK 또는 실패 코드
        """
        self.state = ParameterizationState.INIT
        n_mesh = int(mesh.num_vertices())
        vimap = np.asarray(vimap)
        if (
            np.shape(uvmap) != (n_mesh, 2)
            or vimap.shape != (n_mesh,)
            or np.shape(pinned) != (n_mesh,)
        ):
            return self._fail(ErrorCode.ERROR_WRONG_PARAMETER, "input validation")

        seed = mesh.face(mesh.opposite(bhd))
        if seed == NULL_FACE:
            return self._fail(ErrorCode.ERROR_WRONG_PARAMETER, "input validation")

        n = int(vimap.max()) + 1 if vimap.size else 0
        if n <= 0:
            return self._fail(ErrorCode.ERROR_EMPTY_MESH, "input validation")

        cc_faces = list(enumerate_faces(seed, mesh))
        cc_vertices = component_vertices(cc_faces, mesh)

        # 1) 경계 고정
        status = self.border_parameterizer.parameterize_border(mesh, bhd, uvmap, pinned)
        if not status.ok:
            return self._fail(status, "border parameterization")
        if _count_distinct_pins(uvmap, vimap, pinned, cc_vertices) < 2:
            return self._fail(ErrorCode.ERROR_BORDER_PARAMETERIZATION, "border parameterization")
        self._transition(ParameterizationState.BORDER_PINNED)

        # 2) 시스템 조립 (컴포넌트 밖 변수는 행이 없어 풀이에서 빠짐)
        solver = LeastSquaresSolver(2 * n, backend=self.backend)
        solver.set_least_squares(True)
        initialize_system_from_mesh_border(solver, mesh, uvmap, vimap, pinned)

        solver.begin_system()
        for fd in cc_faces:
            status = setup_triangle_relations(solver, mesh, fd, vimap)
            if not status.ok:
                return self._fail(status, f"triangle {fd}")
        solver.end_system()
        self._transition(ParameterizationState.SYSTEM_BUILT)

        # 3) 풀이
        if not solver.solve():
            return self._fail(ErrorCode.ERROR_CANNOT_SOLVE_LINEAR_SYSTEM, "solve")
        self._transition(ParameterizationState.SOLVED)

        # 4) 컴포넌트 정점에만 결과 기록
        for vd in cc_vertices:
            index = int(vimap[vd])
            uvmap[vd] = (solver.variable(2 * index).value, solver.variable(2 * index + 1).value)

        _LOGGER.debug(
            "LSCM solved %d faces / %d vertices (%d rows, %d free unknowns)",
            len(cc_faces),
            len(cc_vertices),
            solver.n_rows,
            solver.n_free,
        )
        self._transition(ParameterizationState.DONE)
        return ErrorCode.OK


def component_vertex_index(mesh: TriangleMeshGraph, seed_face: int) -> np.ndarray:
    """시드 face 컴포넌트 정점에 [0, n_component) 인덱스를 부여 (나머지는 -1)"""
    vimap = np.full(int(mesh.num_vertices()), -1, dtype=np.int64)
    verts = component_vertices(enumerate_faces(seed_face, mesh), mesh)
    vimap[verts] = np.arange(len(verts), dtype=np.int64)
    return vimap


def parameterize(
    mesh: TriangleMeshGraph,
    bhd: int,
    uvmap: np.ndarray,
    parameterizer: Optional[LSCMParameterizer] = None,
) -> ErrorCode:
    """
    컴포넌트 로컬 인덱스와 빈 pinned 배열을 만든 뒤 파라미터화를 실행하는 편의 함수

    시스템 크기는 메쉬 전체가 아니라 bhd 컴포넌트의 정점 수로 잡힙니다.
    """
    parameterizer = parameterizer or LSCMParameterizer()
    seed = mesh.face(mesh.opposite(bhd))
    if seed == NULL_FACE:
        return ErrorCode.ERROR_WRONG_PARAMETER
    vimap = component_vertex_index(mesh, seed)
    pinned = np.zeros(int(mesh.num_vertices()), dtype=bool)
    return parameterizer.parameterize(mesh, bhd, uvmap, vimap, pinned)
