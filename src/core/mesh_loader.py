"""
Mesh Loader Module
메쉬 입출력과 LSCM 입력용 데이터 구조

trimesh로 읽고 쓰며, 정점 순서를 그대로 유지합니다
(파라미터화 결과 UV가 정점 인덱스와 1:1 로 대응해야 하기 때문).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Union
import numpy as np

try:
    import trimesh
except ImportError:
    raise ImportError("trimesh is required. Install with: pip install trimesh")


@dataclass
class MeshData:
    """
    삼각형 메쉬 + (선택) 정점별 UV

    Attributes:
        vertices: (N, 3) 정점 좌표
        faces: (M, 3) 삼각형 정점 인덱스
        uv_coords: (N, 2) UV, 정점 수와 맞지 않으면 버림
        unit: 좌표 단위 (표시용)
        filepath: 읽어온 파일 경로
    """
    vertices: np.ndarray
    faces: np.ndarray
    uv_coords: Optional[np.ndarray] = None
    unit: str = 'mm'
    filepath: Optional[Path] = None

    _bounds: Optional[np.ndarray] = field(default=None, repr=False)
    _face_areas: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        faces = np.asarray(self.faces, dtype=np.int32)
        if faces.size == 0:
            faces = faces.reshape(0, 3)
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError(f"faces must be triangles with shape (M, 3), got {faces.shape}")
        if faces.size and (int(faces.min()) < 0 or int(faces.max()) >= len(self.vertices)):
            raise ValueError("face index out of range")
        self.faces = faces

        if self.uv_coords is not None:
            uv = np.asarray(self.uv_coords, dtype=np.float64)
            ok = uv.ndim == 2 and uv.shape[0] == len(self.vertices) and uv.shape[1] >= 2
            self.uv_coords = uv[:, :2] if ok else None

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_faces(self) -> int:
        return int(self.faces.shape[0])

    @property
    def has_uv(self) -> bool:
        return self.uv_coords is not None

    @property
    def bounds(self) -> np.ndarray:
        """[[min_x, min_y, min_z], [max_x, max_y, max_z]]"""
        if self._bounds is None:
            if self.n_vertices:
                self._bounds = np.stack([self.vertices.min(axis=0), self.vertices.max(axis=0)])
            else:
                self._bounds = np.zeros((2, 3), dtype=np.float64)
        return self._bounds

    @property
    def extents(self) -> np.ndarray:
        return self.bounds[1] - self.bounds[0]

    @property
    def face_areas(self) -> np.ndarray:
        """면별 3D 면적 (M,)"""
        if self._face_areas is None:
            tri = self.vertices[self.faces]
            cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
            self._face_areas = 0.5 * np.linalg.norm(cross, axis=1)
        return self._face_areas

    @property
    def surface_area(self) -> float:
        return float(self.face_areas.sum())

    def get_boundary_edges(self) -> np.ndarray:
        """한 면에만 속하는 (정렬된) 엣지 (K, 2)"""
        if self.n_faces == 0:
            return np.zeros((0, 2), dtype=np.int32)
        edges = np.sort(self.faces[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2), axis=1)
        uniq, counts = np.unique(edges, axis=0, return_counts=True)
        return uniq[counts == 1].astype(np.int32)

    def get_boundary_loops(self) -> List[np.ndarray]:
        """
        경계 루프를 half-edge 순서대로 반환

        Returns:
            정점 인덱스 배열 리스트 (루프당 하나, 시작점 반복 없음, 3개 미만 제외)
        """
        from .halfedge_mesh import HalfedgeMesh

        hmesh = HalfedgeMesh.from_mesh_data(self)
        return [
            np.asarray([hmesh.target(h) for h in cycle], dtype=np.int32)
            for cycle in hmesh.border_cycles()
            if len(cycle) >= 3
        ]

    def to_trimesh(self) -> 'trimesh.Trimesh':
        """UV가 있으면 TextureVisuals를 붙인 trimesh (정점 병합 없음)"""
        visual = trimesh.visual.TextureVisuals(uv=self.uv_coords) if self.has_uv else None
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, visual=visual, process=False)

    @classmethod
    def from_trimesh(cls, mesh: 'trimesh.Trimesh', filepath: Optional[Path] = None,
                     unit: str = 'mm') -> 'MeshData':
        uv = getattr(getattr(mesh, "visual", None), "uv", None)
        return cls(vertices=mesh.vertices, faces=mesh.faces, uv_coords=uv, unit=unit, filepath=filepath)


class MeshLoader:
    """trimesh 기반 메쉬 파일 로더 (정점 순서 유지)"""

    SUPPORTED_FORMATS = {
        '.obj': 'Wavefront OBJ',
        '.ply': 'Stanford PLY',
        '.stl': 'STL',
        '.off': 'OFF',
        '.gltf': 'glTF',
        '.glb': 'glTF (binary)',
    }

    def __init__(self, default_unit: str = 'mm'):
        self.default_unit = default_unit

    def _check_path(self, filepath: Union[str, Path]) -> Path:
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix.lower()} "
                f"(supported: {', '.join(self.SUPPORTED_FORMATS)})"
            )
        return path

    def _read(self, path: Path) -> 'trimesh.Trimesh':
        loaded = trimesh.load(str(path), force='mesh', process=False, maintain_order=True)

        # Scene → 단일 메쉬
        if isinstance(loaded, trimesh.Scene):
            parts = [g for g in loaded.geometry.values() if isinstance(g, trimesh.Trimesh)]
            if not parts:
                raise ValueError(f"No triangle mesh in: {path}")
            loaded = trimesh.util.concatenate(parts)

        if not isinstance(loaded, trimesh.Trimesh):
            raise TypeError(f"Expected trimesh.Trimesh, got {type(loaded).__name__}")
        return loaded

    def load(self, filepath: Union[str, Path], unit: Optional[str] = None) -> MeshData:
        """
        메쉬 파일 로드

        Raises:
            FileNotFoundError: 파일 없음
            ValueError: 지원하지 않는 확장자 또는 메쉬 없음
        """
        path = self._check_path(filepath)
        return MeshData.from_trimesh(self._read(path), filepath=path, unit=unit or self.default_unit)

    def get_file_info(self, filepath: Union[str, Path]) -> dict:
        """
        파일 요약 (정점/면 수, UV 유무, 경계/컴포넌트 수)

        메쉬를 읽거나 분석하지 못하면 'error' 항목에 사유를 담습니다.
        """
        from .connected_components import connected_components
        from .halfedge_mesh import HalfedgeMesh

        path = self._check_path(filepath)
        info = {
            'filename': path.name,
            'format': self.SUPPORTED_FORMATS[path.suffix.lower()],
            'file_size_mb': round(path.stat().st_size / (1024 * 1024), 2),
        }

        try:
            mesh = MeshData.from_trimesh(self._read(path))
            info['n_vertices'] = mesh.n_vertices
            info['n_faces'] = mesh.n_faces
            info['has_uv'] = mesh.has_uv
            info['n_boundary_edges'] = int(mesh.get_boundary_edges().shape[0])
            hmesh = HalfedgeMesh.from_mesh_data(mesh)
            info['n_boundary_loops'] = len(hmesh.border_cycles())
            info['n_components'] = len(connected_components(hmesh))
        except (ValueError, TypeError, OSError) as e:
            info['error'] = str(e)

        return info


class MeshProcessor:
    """메쉬 저장 유틸리티"""

    def save_mesh(self, mesh_data: Union[MeshData, 'trimesh.Trimesh'], filepath: Union[str, Path]) -> str:
        """
        메쉬 저장 (확장자로 포맷 결정, OBJ는 UV 포함)

        Returns:
            저장된 파일 경로 문자열
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        mesh = mesh_data.to_trimesh() if isinstance(mesh_data, MeshData) else mesh_data
        mesh.export(str(path))
        return str(path)
