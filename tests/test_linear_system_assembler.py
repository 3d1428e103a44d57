import unittest

import numpy as np

from src.core.errors import ErrorCode
from src.core.halfedge_mesh import HalfedgeMesh
from src.core.lscm_parameterizer import setup_triangle_relations
from src.core.sparse_solver import LeastSquaresSolver


def _assemble(mesh: HalfedgeMesh, faces, n_vertices: int):
    solver = LeastSquaresSolver(2 * n_vertices)
    solver.set_least_squares(True)
    vimap = np.arange(n_vertices)
    solver.begin_system()
    codes = [setup_triangle_relations(solver, mesh, f, vimap) for f in faces]
    solver.end_system()
    A, b = solver.matrix()
    return codes, A.toarray(), b


class _QuadFaceMesh:
    """face 0 하나가 4개의 half-edge로 이루어진 최소 메쉬"""

    def vertices(self):
        return iter(range(4))

    def faces(self):
        return iter(range(1))

    def num_vertices(self):
        return 4

    def halfedge(self, face):
        return 0

    def next(self, h):
        return (h + 1) % 4

    def opposite(self, h):
        return h + 4

    def target(self, h):
        return h

    def face(self, h):
        return 0 if h < 4 else -1

    def point(self, v):
        return np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])[v]


class TestLinearSystemAssembler(unittest.TestCase):
    def test_row_coefficients_match_conformal_equation(self):
        vertices = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [1.0, 3.0, 0.0]])
        mesh = HalfedgeMesh(vertices, np.array([[0, 1, 2]]))

        codes, A, b = _assemble(mesh, [0], 3)

        self.assertEqual(codes, [ErrorCode.OK])
        # a = 2, c = 1, d = 3 (b = 0)
        #                     u0    v0    u1    v1    u2    v2
        expected = np.array([[-1.0, -3.0, -1.0, 3.0, 2.0, 0.0],
                             [3.0, -1.0, -3.0, -1.0, 0.0, 2.0]])
        np.testing.assert_allclose(A, expected, atol=1e-12)
        np.testing.assert_allclose(b, [0.0, 0.0])

    def test_identity_uv_satisfies_rows_for_planar_triangle(self):
        vertices = np.array([[0.2, 0.1, 0.0], [1.4, 0.3, 0.0], [0.6, 1.2, 0.0]])
        mesh = HalfedgeMesh(vertices, np.array([[0, 1, 2]]))

        _, A, _ = _assemble(mesh, [0], 3)

        # 원래 xy 좌표는 (회전된) 로컬 기저와 닮음이므로 잔차 0
        x = vertices[:, :2].reshape(-1)
        np.testing.assert_allclose(A @ x, [0.0, 0.0], atol=1e-12)

    def test_locked_vertices_move_to_right_hand_side(self):
        vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        mesh = HalfedgeMesh(vertices, np.array([[0, 1, 2]]))
        solver = LeastSquaresSolver(6)
        solver.set_least_squares(True)
        for i, value in enumerate([0.0, 0.0, 1.0, 0.0]):
            solver.variable(i).set_value(value)
            solver.variable(i).lock()

        solver.begin_system()
        self.assertEqual(setup_triangle_relations(solver, mesh, 0, np.arange(3)), ErrorCode.OK)
        solver.end_system()
        A, b = solver.matrix()

        self.assertEqual(A.shape, (2, 2))
        np.testing.assert_allclose(A.toarray(), [[1.0, 0.0], [0.0, 1.0]], atol=1e-12)
        # 실수부: u1 계수 -c = 0, 허수부: u1 계수 -d = -1 → 우변 +1
        np.testing.assert_allclose(b, [0.0, 1.0], atol=1e-12)

    def test_degenerate_triangles_do_not_disturb_other_rows(self):
        vertices = np.array(
            [
                [0.0, 0.0, 0.0],
                [1.0, 0.0, 0.0],
                [0.0, 1.0, 0.0],
                [2.0, 0.0, 0.0],  # 0, 1 과 일직선
                [1.0, 0.0, 0.0],  # 1 과 같은 위치
            ],
            dtype=np.float64,
        )
        good = np.array([[0, 1, 2]])
        with_degenerate = np.array([[0, 1, 2], [1, 0, 3], [2, 1, 4]])

        _, A_ref, _ = _assemble(HalfedgeMesh(vertices, good), [0], 5)
        codes, A, b = _assemble(HalfedgeMesh(vertices, with_degenerate), [0, 1, 2], 5)

        self.assertEqual(codes, [ErrorCode.OK] * 3)
        self.assertEqual(A.shape, (6, 10))
        self.assertTrue(np.isfinite(A).all())
        self.assertTrue(np.isfinite(b).all())
        np.testing.assert_array_equal(A[:2], A_ref)

    def test_non_triangular_face_is_rejected(self):
        solver = LeastSquaresSolver(8)
        solver.begin_system()

        code = setup_triangle_relations(solver, _QuadFaceMesh(), 0, np.arange(4))

        self.assertEqual(code, ErrorCode.ERROR_NON_TRIANGULAR_MESH)
        self.assertEqual(solver.n_rows, 0)

    def test_vertex_without_index_is_rejected(self):
        vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        mesh = HalfedgeMesh(vertices, np.array([[0, 1, 2]]))
        solver = LeastSquaresSolver(4)
        solver.begin_system()

        code = setup_triangle_relations(solver, mesh, 0, np.array([0, 1, -1]))

        self.assertEqual(code, ErrorCode.ERROR_WRONG_PARAMETER)
        self.assertEqual(solver.n_rows, 0)


if __name__ == "__main__":
    unittest.main()
