import unittest

import numpy as np

from src.core.lscm_parameterizer import project_triangle


class TestLocalBasis(unittest.TestCase):
    def test_first_two_points_lie_on_x_axis(self):
        p0 = np.array([1.0, 2.0, 3.0])
        p1 = np.array([2.0, 4.0, 5.0])
        p2 = np.array([0.5, 3.0, 7.0])

        z0, z1, z2 = project_triangle(p0, p1, p2)

        np.testing.assert_allclose(z0, [0.0, 0.0])
        self.assertEqual(float(z1[1]), 0.0)
        self.assertAlmostEqual(float(z1[0]), float(np.linalg.norm(p1 - p0)), places=12)

    def test_projection_preserves_edge_lengths_and_orientation(self):
        p0 = np.array([0.3, -1.0, 2.0])
        p1 = np.array([1.7, 0.2, 2.5])
        p2 = np.array([-0.4, 1.1, 3.3])

        z0, z1, z2 = project_triangle(p0, p1, p2)

        self.assertAlmostEqual(float(np.linalg.norm(z2 - z0)), float(np.linalg.norm(p2 - p0)), places=12)
        self.assertAlmostEqual(float(np.linalg.norm(z2 - z1)), float(np.linalg.norm(p2 - p1)), places=12)
        # 로컬 기저는 항상 반시계 방향 (z2.y >= 0)
        self.assertGreater(float(z2[1]), 0.0)

    def test_planar_triangle_is_rotation_of_xy(self):
        p0 = np.array([0.0, 0.0, 0.0])
        p1 = np.array([0.0, 2.0, 0.0])
        p2 = np.array([-1.0, 1.0, 0.0])

        z0, z1, z2 = project_triangle(p0, p1, p2)

        np.testing.assert_allclose(z1, [2.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(z2, [1.0, 1.0], atol=1e-12)

    def test_collinear_points_do_not_raise(self):
        z0, z1, z2 = project_triangle([0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [3.0, 0.0, 0.0])

        self.assertTrue(np.isfinite(np.concatenate([z0, z1, z2])).all())
        np.testing.assert_allclose(z1, [1.0, 0.0])
        np.testing.assert_allclose(z2, [3.0, 0.0])

    def test_coincident_points_do_not_raise(self):
        p = [1.0, 1.0, 1.0]
        z0, z1, z2 = project_triangle(p, p, p)

        np.testing.assert_allclose(z0, [0.0, 0.0])
        np.testing.assert_allclose(z1, [0.0, 0.0])
        np.testing.assert_allclose(z2, [0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
