"""
Core processing modules for MeshLSCM
"""

from .errors import ErrorCode, ParameterizationError, SolverStateError
from .mesh_loader import MeshLoader, MeshData, MeshProcessor
from .halfedge_mesh import HalfedgeMesh, TriangleMeshGraph, NULL_FACE, NULL_HALFEDGE
from .connected_components import enumerate_faces, component_vertices, connected_components
from .sparse_solver import (
    LeastSquaresSolver,
    SolverBackend,
    NormalEquationsBackend,
    LSQRBackend,
    DenseSVDBackend,
    make_backend,
)
from .border_parameterizer import (
    BorderParameterizer,
    TwoVerticesParameterizer,
    FixedVerticesParameterizer,
    CircularBorderParameterizer,
    make_border_parameterizer,
)
from .lscm_parameterizer import (
    LSCMParameterizer,
    ParameterizationState,
    project_triangle,
    setup_triangle_relations,
    initialize_system_from_mesh_border,
    parameterize,
)
from .flattener import LSCMFlattener, FlattenedMesh
from .uv_layout_exporter import UVLayoutSVGExporter, UVLayoutSVGOptions

__all__ = [
    # Status codes
    'ErrorCode',
    'ParameterizationError',
    'SolverStateError',
    # Mesh loading
    'MeshLoader',
    'MeshData',
    'MeshProcessor',
    # Mesh traversal
    'HalfedgeMesh',
    'TriangleMeshGraph',
    'NULL_FACE',
    'NULL_HALFEDGE',
    'enumerate_faces',
    'component_vertices',
    'connected_components',
    # Linear solver
    'LeastSquaresSolver',
    'SolverBackend',
    'NormalEquationsBackend',
    'LSQRBackend',
    'DenseSVDBackend',
    'make_backend',
    # Border pinning
    'BorderParameterizer',
    'TwoVerticesParameterizer',
    'FixedVerticesParameterizer',
    'CircularBorderParameterizer',
    'make_border_parameterizer',
    # LSCM
    'LSCMParameterizer',
    'ParameterizationState',
    'project_triangle',
    'setup_triangle_relations',
    'initialize_system_from_mesh_border',
    'parameterize',
    # Flattening
    'LSCMFlattener',
    'FlattenedMesh',
    # UV layout export
    'UVLayoutSVGExporter',
    'UVLayoutSVGOptions',
]
