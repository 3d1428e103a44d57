"""
LSCM Mesh Flattening Module
메쉬 평면화 - 각도를 보존하며 3D 표면을 2D로 펼침

연결 컴포넌트마다 LSCM 파라미터화를 한 번씩 호출하고(컴포넌트 로컬 인덱스),
결과를 가로로 나란히 배치합니다.
"""

from dataclasses import dataclass, field
from typing import Optional, Union
import logging
import numpy as np

from .border_parameterizer import BorderParameterizer, make_border_parameterizer
from .connected_components import component_vertices, connected_components
from .errors import ErrorCode, ParameterizationError
from .halfedge_mesh import HalfedgeMesh
from .logging_utils import log_once
from .lscm_parameterizer import LSCMParameterizer, component_vertex_index
from .mesh_loader import MeshData
from .runtime_defaults import DEFAULTS
from .sparse_solver import SolverBackend, make_backend

_LOGGER = logging.getLogger(__name__)


@dataclass
class FlattenedMesh:
    """
    평면화된 메쉬 결과

    Attributes:
        uv: (N, 2) 평면화된 2D 좌표
        faces: (M, 3) 면 인덱스 (원본과 동일)
        original_mesh: 원본 3D 메쉬 참조
        distortion_per_face: 각 면의 등각 왜곡도 (0=왜곡없음, 1=퇴화)
        pinned: (N,) 고정(pin)된 정점 여부
        scale: UV 좌표의 스케일 (원본 단위 기준)
        meta: 부가 정보 (컴포넌트 수, backend 등)
    """
    uv: np.ndarray
    faces: np.ndarray
    original_mesh: MeshData
    distortion_per_face: Optional[np.ndarray] = None
    pinned: Optional[np.ndarray] = None
    scale: float = 1.0
    meta: dict = field(default_factory=dict)

    _bounds: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        self.uv = np.asarray(self.uv, dtype=np.float64).reshape(-1, 2)
        faces = np.asarray(self.faces, dtype=np.int32)
        self.faces = faces.reshape(0, 3) if faces.size == 0 else faces
        if self.pinned is not None:
            self.pinned = np.asarray(self.pinned, dtype=bool).reshape(-1)

    @property
    def n_vertices(self) -> int:
        return len(self.uv)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    @property
    def bounds(self) -> np.ndarray:
        """2D 경계 [[min_u, min_v], [max_u, max_v]]"""
        if self._bounds is None:
            finite = np.all(np.isfinite(self.uv), axis=1)
            uv_f = self.uv[finite]
            if uv_f.size == 0:
                self._bounds = np.zeros((2, 2), dtype=np.float64)
            else:
                self._bounds = np.array([uv_f.min(axis=0), uv_f.max(axis=0)])
        return self._bounds

    @property
    def extents(self) -> np.ndarray:
        """2D 크기 [width, height]"""
        return self.bounds[1] - self.bounds[0]

    @property
    def width(self) -> float:
        """실제 너비 (원본 단위)"""
        return float(self.extents[0] * self.scale)

    @property
    def height(self) -> float:
        """실제 높이 (원본 단위)"""
        return float(self.extents[1] * self.scale)

    @property
    def mean_distortion(self) -> float:
        if self.distortion_per_face is None or len(self.distortion_per_face) == 0:
            return 0.0
        return float(np.mean(self.distortion_per_face))

    @property
    def max_distortion(self) -> float:
        if self.distortion_per_face is None or len(self.distortion_per_face) == 0:
            return 0.0
        return float(np.max(self.distortion_per_face))

    def normalize(self) -> 'FlattenedMesh':
        """UV 좌표를 [0, 1] 범위로 정규화 (가로세로 비율 유지)"""
        if self.uv.size == 0:
            return self
        min_uv = self.bounds[0]
        extent = float(max(self.extents.max(), 1e-12))
        return FlattenedMesh(
            uv=(self.uv - min_uv) / extent,
            faces=self.faces,
            original_mesh=self.original_mesh,
            distortion_per_face=self.distortion_per_face,
            pinned=self.pinned,
            scale=self.scale * extent,
            meta=dict(self.meta),
        )

    def to_mesh_data(self) -> MeshData:
        """UV를 포함한 MeshData (저장용)"""
        src = self.original_mesh
        return MeshData(
            vertices=src.vertices,
            faces=src.faces,
            uv_coords=self.normalize().uv,
            unit=src.unit,
            filepath=src.filepath,
        )


def compute_conformal_distortion(vertices: np.ndarray, faces: np.ndarray, uv: np.ndarray) -> np.ndarray:
    """
    면별 등각 왜곡도 1 - σmin/σmax (Jacobian 특이값 비)

    3D 또는 2D에서 면적이 거의 0인 면은 1.0 으로 둡니다.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64)
    uv = np.asarray(uv, dtype=np.float64)
    if faces.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)

    tri = vertices[faces]
    e1 = tri[:, 1] - tri[:, 0]
    e2 = tri[:, 2] - tri[:, 0]
    x1 = np.linalg.norm(e1, axis=1)
    safe_x1 = np.where(x1 > 1e-12, x1, 1.0)
    x_axis = e1 / safe_x1[:, None]
    x2 = np.einsum("ij,ij->i", e2, x_axis)
    y2 = np.linalg.norm(e2 - x2[:, None] * x_axis, axis=1)

    tri_uv = uv[faces]
    d1 = tri_uv[:, 1] - tri_uv[:, 0]
    d2 = tri_uv[:, 2] - tri_uv[:, 0]
    area_2d = 0.5 * np.abs(d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0])

    degenerate = (x1 * y2 <= 1e-12) | (area_2d <= 1e-14) | ~np.all(np.isfinite(tri_uv), axis=(1, 2))
    safe_y2 = np.where(degenerate, 1.0, y2)
    safe_x1 = np.where(degenerate, 1.0, x1)

    # J = [d1 d2] @ inv([[x1, x2], [0, y2]])
    col1 = d1 / safe_x1[:, None]
    col2 = (d2 - col1 * x2[:, None]) / safe_y2[:, None]
    J = np.stack([col1, col2], axis=2)
    J[degenerate] = np.eye(2)

    s = np.linalg.svd(J, compute_uv=False)
    ratio = s[:, 1] / np.maximum(s[:, 0], 1e-300)
    distortion = 1.0 - ratio
    distortion[degenerate] = 1.0
    return np.clip(distortion, 0.0, 1.0)


def _total_area_2d(faces: np.ndarray, uv: np.ndarray) -> float:
    if faces.shape[0] == 0:
        return 0.0
    tri = uv[faces]
    d1 = tri[:, 1] - tri[:, 0]
    d2 = tri[:, 2] - tri[:, 0]
    a = 0.5 * np.abs(d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0])
    a = a[np.isfinite(a)]
    return float(a.sum()) if a.size else 0.0


class LSCMFlattener:
    """
    LSCM 기반 메쉬 평면화

    Args:
        border: 경계 전략 이름('two_vertices' | 'circle') 또는 BorderParameterizer
        backend: solver backend 이름('lu' | 'lsqr' | 'svd') 또는 SolverBackend
        preserve_area: True면 전체 2D 면적이 3D 표면적과 같도록 UV를 스케일
    """

    def __init__(
        self,
        border: Union[str, BorderParameterizer, None] = None,
        backend: Union[str, SolverBackend, None] = None,
        preserve_area: bool = False,
    ):
        if border is None or isinstance(border, str):
            border = make_border_parameterizer(border or DEFAULTS.border_strategy)
        if backend is None or isinstance(backend, str):
            backend = _backend_from_defaults(backend or DEFAULTS.solver_backend)
        self.border = border
        self.backend = backend
        self.preserve_area = bool(preserve_area)

    def flatten(self, mesh: MeshData) -> FlattenedMesh:
        """
        3D 메쉬를 2D로 평면화

        Raises:
            ValueError: mesh가 None 이거나 half-edge 구성이 불가능한 경우
            ParameterizationError: 컴포넌트 파라미터화 실패
        """
        if mesh is None:
            raise ValueError("mesh is None")

        if mesh.n_faces == 0:
            raise ParameterizationError(ErrorCode.ERROR_EMPTY_MESH)

        hmesh = HalfedgeMesh.from_mesh_data(mesh)
        components = connected_components(hmesh)
        parameterizer = LSCMParameterizer(self.border, self.backend)

        face_component = np.full(hmesh.n_faces, -1, dtype=np.int64)
        for ci, comp in enumerate(components):
            face_component[comp] = ci
        border_for: dict[int, tuple[float, int]] = {}
        for cycle in hmesh.border_cycles():
            ci = int(face_component[hmesh.face(hmesh.opposite(cycle[0]))])
            length = sum(hmesh.halfedge_length(h) for h in cycle)
            if ci not in border_for or length > border_for[ci][0]:
                border_for[ci] = (length, cycle[0])

        uv_all = np.zeros((mesh.n_vertices, 2), dtype=np.float64)
        pinned_all = np.zeros(mesh.n_vertices, dtype=bool)
        cursor_x = 0.0
        gap = float(max(1e-6, 0.02 * float(np.max(mesh.extents))))

        for ci, comp in enumerate(components):
            if ci in border_for:
                bhd = border_for[ci][1]
            else:
                # 닫힌 컴포넌트: 시드 face가 opposite 쪽에 오도록 내부 half-edge 사용
                log_once(
                    _LOGGER,
                    "flattener:closed_component",
                    logging.WARNING,
                    "Component without border; LSCM of a closed surface is not injective",
                )
                bhd = hmesh.opposite(hmesh.halfedge(comp[0]))

            uvmap = np.zeros((mesh.n_vertices, 2), dtype=np.float64)
            pinned = np.zeros(mesh.n_vertices, dtype=bool)
            vimap = component_vertex_index(hmesh, comp[0])
            status = parameterizer.parameterize(hmesh, bhd, uvmap, vimap, pinned)
            if not status.ok:
                raise ParameterizationError(status, f"component {ci} ({len(comp)} faces)")

            verts = np.asarray(component_vertices(comp, hmesh), dtype=np.int64)
            comp_uv = uvmap[verts]
            if len(components) > 1:
                comp_uv = comp_uv - comp_uv.min(axis=0)
                comp_uv[:, 0] += cursor_x
                cursor_x = float(comp_uv[:, 0].max()) + gap
            uv_all[verts] = comp_uv
            pinned_all[verts] = pinned[verts]

        meta = {
            "components": len(components),
            "backend": getattr(self.backend, "name", type(self.backend).__name__),
            "border": type(self.border).__name__,
            "area_scale": 1.0,
        }
        if self.preserve_area:
            a3 = mesh.surface_area
            a2 = _total_area_2d(mesh.faces, uv_all)
            if a3 > 1e-12 and a2 > 1e-12:
                s = float(np.sqrt(a3 / a2))
                uv_all *= s
                meta["area_scale"] = s

        distortion = compute_conformal_distortion(mesh.vertices, mesh.faces, uv_all)
        _LOGGER.info(
            "Flattened %d faces in %d component(s); mean conformal distortion %.4f",
            mesh.n_faces,
            len(components),
            float(distortion.mean()) if distortion.size else 0.0,
        )

        return FlattenedMesh(
            uv=uv_all,
            faces=mesh.faces,
            original_mesh=mesh,
            distortion_per_face=distortion,
            pinned=pinned_all,
            scale=1.0,
            meta=meta,
        )


def _backend_from_defaults(name: str) -> SolverBackend:
    key = str(name).strip().lower()
    if key == "lsqr":
        return make_backend(key, max_iterations=DEFAULTS.lsqr_max_iterations)
    if key == "svd":
        return make_backend(key, max_unknowns=DEFAULTS.svd_max_unknowns)
    return make_backend(key)
