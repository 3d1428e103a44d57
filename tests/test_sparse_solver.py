import unittest

import numpy as np

from src.core.errors import SolverStateError
from src.core.halfedge_mesh import HalfedgeMesh
from src.core.lscm_parameterizer import setup_triangle_relations
from src.core.sparse_solver import (
    DenseSVDBackend,
    LeastSquaresSolver,
    LSQRBackend,
    NormalEquationsBackend,
    make_backend,
)


def _grid(nx: int = 3, ny: int = 3):
    xs, ys = np.meshgrid(np.arange(nx, dtype=np.float64), np.arange(ny, dtype=np.float64))
    vertices = np.stack([xs.ravel(), ys.ravel(), np.zeros(nx * ny)], axis=1)
    faces = []
    for j in range(ny - 1):
        for i in range(nx - 1):
            a = j * nx + i
            b, c, d = a + 1, a + nx + 1, a + nx
            faces += [[a, b, c], [a, c, d]]
    return vertices, np.asarray(faces, dtype=np.int64)


def _fill_random_system(solver: LeastSquaresSolver, rng: np.random.Generator, n_rows: int):
    n = solver.n_variables
    M = rng.normal(size=(n_rows, n))
    rhs = rng.normal(size=n_rows)
    solver.begin_system()
    for r in range(n_rows):
        solver.begin_row()
        for i in range(n):
            solver.add_coefficient(i, M[r, i])
        solver.set_right_hand_side(rhs[r])
        solver.end_row()
    solver.end_system()
    return M, rhs


class TestLeastSquaresSolver(unittest.TestCase):
    def test_locked_terms_are_folded_into_rhs(self):
        solver = LeastSquaresSolver(2)
        solver.set_least_squares(True)
        solver.variable(0).set_value(2.0)
        solver.variable(0).lock()

        solver.begin_system()
        solver.begin_row()
        solver.add_coefficient(0, 1.0)
        solver.add_coefficient(1, 1.0)
        solver.set_right_hand_side(5.0)
        solver.end_row()
        solver.end_system()

        A, b = solver.matrix()
        np.testing.assert_allclose(A.toarray(), [[1.0]])
        np.testing.assert_allclose(b, [3.0])

        self.assertTrue(solver.solve())
        self.assertAlmostEqual(solver.variable(1).value, 3.0, places=12)
        self.assertEqual(solver.variable(0).value, 2.0)

    def test_unknowns_without_rows_keep_their_values(self):
        for backend in (NormalEquationsBackend(), LSQRBackend(), DenseSVDBackend()):
            solver = LeastSquaresSolver(3, backend=backend)
            solver.set_least_squares(True)
            solver.variable(2).set_value(9.0)

            solver.begin_system()
            for coeffs, rhs in (((1.0, 0.0), 1.0), ((0.0, 1.0), 2.0), ((1.0, 1.0), 3.0)):
                solver.begin_row()
                solver.add_coefficient(0, coeffs[0])
                solver.add_coefficient(1, coeffs[1])
                solver.set_right_hand_side(rhs)
                solver.end_row()
            solver.end_system()

            self.assertEqual(solver.matrix()[0].shape, (3, 3))
            self.assertTrue(solver.solve(), backend.name)
            np.testing.assert_allclose(solver.values, [1.0, 2.0, 9.0], atol=1e-8, err_msg=backend.name)

    def test_backends_agree_with_dense_least_squares(self):
        reference = None
        for backend in (NormalEquationsBackend(), LSQRBackend(), DenseSVDBackend()):
            solver = LeastSquaresSolver(5, backend=backend)
            solver.set_least_squares(True)
            M, rhs = _fill_random_system(solver, np.random.default_rng(7), 20)
            if reference is None:
                reference = np.linalg.lstsq(M, rhs, rcond=None)[0]

            self.assertTrue(solver.solve(), backend.name)
            np.testing.assert_allclose(solver.values, reference, atol=1e-8, err_msg=backend.name)

    def test_svd_backend_records_condition_number(self):
        backend = DenseSVDBackend()
        solver = LeastSquaresSolver(3, backend=backend)
        solver.set_least_squares(True)
        _fill_random_system(solver, np.random.default_rng(3), 6)

        self.assertTrue(solver.solve())
        self.assertTrue(np.isfinite(backend.last_condition_number))
        self.assertGreaterEqual(backend.last_condition_number, 1.0)

    def test_lsqr_records_iterations(self):
        backend = LSQRBackend(max_iterations=500)
        solver = LeastSquaresSolver(4, backend=backend)
        solver.set_least_squares(True)
        _fill_random_system(solver, np.random.default_rng(11), 12)

        self.assertTrue(solver.solve())
        self.assertIn(backend.last_istop, (0, 1, 2, 4, 5))
        self.assertGreater(backend.last_iterations, 0)

    def test_square_system_without_least_squares(self):
        solver = LeastSquaresSolver(2)
        solver.begin_system()
        for coeffs, rhs in (((2.0, 1.0), 5.0), ((1.0, -1.0), 1.0)):
            solver.begin_row()
            solver.add_coefficient(0, coeffs[0])
            solver.add_coefficient(1, coeffs[1])
            solver.set_right_hand_side(rhs)
            solver.end_row()
        solver.end_system()

        self.assertFalse(solver.least_squares)
        self.assertTrue(solver.solve())
        np.testing.assert_allclose(solver.values, [2.0, 1.0], atol=1e-12)

    def test_all_locked_is_trivially_solved(self):
        solver = LeastSquaresSolver(2)
        for i in range(2):
            solver.variable(i).set_value(float(i))
            solver.variable(i).lock()
        solver.begin_system()
        solver.end_system()

        self.assertEqual(solver.n_free, 0)
        self.assertTrue(solver.solve())
        np.testing.assert_allclose(solver.values, [0.0, 1.0])

    def test_no_rows_cannot_be_solved(self):
        solver = LeastSquaresSolver(2)
        solver.set_least_squares(True)
        solver.begin_system()
        solver.end_system()

        self.assertFalse(solver.solve())

    def test_unpinned_conformal_system_is_rank_deficient(self):
        vertices, faces = _grid(3, 3)
        mesh = HalfedgeMesh(vertices, faces)
        n = mesh.n_vertices

        for backend in (DenseSVDBackend(), NormalEquationsBackend()):
            solver = LeastSquaresSolver(2 * n, backend=backend)
            solver.set_least_squares(True)
            solver.begin_system()
            for f in mesh.faces():
                setup_triangle_relations(solver, mesh, f, np.arange(n))
            solver.end_system()

            A, _ = solver.matrix()
            nullity = A.shape[1] - np.linalg.matrix_rank(A.toarray())
            # 평행이동 2 + 회전/스케일 2
            self.assertGreaterEqual(nullity, 4)
            self.assertFalse(solver.solve(), backend.name)

    def test_dense_svd_refuses_large_systems(self):
        backend = DenseSVDBackend(max_unknowns=2)
        solver = LeastSquaresSolver(3, backend=backend)
        solver.set_least_squares(True)
        _fill_random_system(solver, np.random.default_rng(5), 6)

        self.assertFalse(solver.solve())

    def test_protocol_misuse_raises(self):
        solver = LeastSquaresSolver(2)
        with self.assertRaises(SolverStateError):
            solver.begin_row()

        solver.begin_system()
        with self.assertRaises(SolverStateError):
            solver.variable(0).lock()
        with self.assertRaises(SolverStateError):
            solver.add_coefficient(0, 1.0)
        with self.assertRaises(SolverStateError):
            solver.solve()

    def test_variable_index_out_of_range(self):
        solver = LeastSquaresSolver(2)
        with self.assertRaises(IndexError):
            solver.variable(2)
        with self.assertRaises(IndexError):
            solver.variable(-1)

    def test_make_backend(self):
        self.assertIsInstance(make_backend("lu"), NormalEquationsBackend)
        self.assertIsInstance(make_backend(" LSQR "), LSQRBackend)
        self.assertEqual(make_backend("svd", max_unknowns=10).max_unknowns, 10)
        with self.assertRaises(ValueError):
            make_backend("cholmod")


if __name__ == "__main__":
    unittest.main()
