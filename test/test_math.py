import unittest

import numpy as np
from parameterized import parameterized

from griddeform.math import (
    DegenerateCellError,
    barycentric_coordinates,
    equation_of_hyperplane,
    point_in_element,
    segments_intersect,
    signed_area,
    signed_areas,
)


class TestLine(unittest.TestCase):
    """
    Unit tests for :func:`~.equation_of_hyperplane` in 2D case.
    """

    def _loop_over_grid(self, f, condition):
        for i in range(10):
            for j in range(10):
                if condition(i, j):
                    self.assertAlmostEqual(f(i, j), 0)
                else:
                    self.assertNotEqual(f(i, j), 0)

    def test_duplicate_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            equation_of_hyperplane((0, 0), (0, 0))
        msg = "Could not determine a line for the provided points."
        self.assertEqual(str(cm.exception), msg)

    def test_x_equals_y(self):
        f = equation_of_hyperplane((0, 0), (1, 1))

        def condition(x, y):
            return x == y

        self._loop_over_grid(f, condition)

    def test_y_equals_zero_many_points(self):
        f = equation_of_hyperplane((0, 0), (1, 0), (2, 0), (3, 0))

        def condition(x, y):
            return y == 0

        self._loop_over_grid(f, condition)

    def test_4d_notimplementederror(self):
        with self.assertRaises(NotImplementedError) as cm:
            equation_of_hyperplane(*np.eye(4))
        msg = "equation_of_hyperplane not implemented in 4D."
        self.assertEqual(str(cm.exception), msg)


class TestSignedArea(unittest.TestCase):
    """
    Unit tests for :func:`~.signed_area` and :func:`~.signed_areas`.
    """

    def test_triangle_anticlockwise(self):
        self.assertAlmostEqual(signed_area([(0, 0), (1, 0), (0, 1)]), 0.5)

    def test_triangle_clockwise(self):
        self.assertAlmostEqual(signed_area([(0, 0), (0, 1), (1, 0)]), -0.5)

    def test_quadrilateral(self):
        self.assertAlmostEqual(signed_area([(0, 0), (2, 0), (2, 1), (0, 1)]), 2.0)

    def test_degenerate(self):
        self.assertEqual(signed_area([(0, 0), (1, 1), (2, 2)]), 0)

    @parameterized.expand([(3,), (4,)])
    def test_vectorised(self, nve):
        coordinates = np.random.rand(10, 2)
        cells = np.array([np.random.permutation(10)[:nve] for _ in range(5)])
        expected = [signed_area(coordinates[cell]) for cell in cells]
        self.assertTrue(np.allclose(signed_areas(coordinates, cells), expected))


class TestPointInElement(unittest.TestCase):
    """
    Unit tests for :func:`~.point_in_element`.
    """

    triangle = np.array([(0, 0), (1, 0), (0, 1)])
    square = np.array([(0, 0), (1, 0), (1, 1), (0, 1)])

    @parameterized.expand(
        [
            ((0.2, 0.2), True),
            ((0.5, 0.5), True),
            ((0.0, 0.0), True),
            ((0.0, 0.5), True),
            ((0.6, 0.6), False),
            ((-0.1, 0.2), False),
        ]
    )
    def test_triangle(self, point, expected):
        self.assertEqual(point_in_element(point, self.triangle), expected)

    def test_triangle_clockwise(self):
        self.assertTrue(point_in_element((0.2, 0.2), self.triangle[::-1]))

    @parameterized.expand(
        [((0.5, 0.5), True), ((1.0, 0.3), True), ((1.1, 0.3), False)]
    )
    def test_quadrilateral(self, point, expected):
        self.assertEqual(point_in_element(point, self.square), expected)

    def test_tolerance(self):
        point = (-1.0e-12, 0.5)
        self.assertTrue(point_in_element(point, self.triangle))
        self.assertFalse(point_in_element(point, self.triangle, tol=0))


class TestSegmentsIntersect(unittest.TestCase):
    """
    Unit tests for :func:`~.segments_intersect`.
    """

    def test_crossing(self):
        self.assertTrue(segments_intersect((0, 0), (1, 1), (0, 1), (1, 0)))

    def test_disjoint(self):
        self.assertFalse(segments_intersect((0, 0), (1, 0), (0, 1), (1, 1)))

    def test_touching_endpoint(self):
        self.assertTrue(segments_intersect((0, 0), (1, 0), (1, 0), (1, 1)))

    def test_short_of_line(self):
        self.assertFalse(segments_intersect((0, 0), (0.4, 0.4), (0, 1), (1, 0)))

    def test_collinear_overlap(self):
        self.assertTrue(segments_intersect((0, 0), (2, 0), (1, 0), (3, 0)))

    def test_collinear_disjoint(self):
        self.assertFalse(segments_intersect((0, 0), (1, 0), (2, 0), (3, 0)))

    def test_collinear_vertical(self):
        self.assertTrue(segments_intersect((0, 0), (0, 2), (0, 1), (0, 3)))


class TestBarycentricCoordinates(unittest.TestCase):
    """
    Unit tests for :func:`~.barycentric_coordinates`.
    """

    corners = np.array([(0.0, 0.0), (2.0, 0.0), (0.0, 2.0)])

    @parameterized.expand([(0,), (1,), (2,)])
    def test_vertices(self, i):
        weights = barycentric_coordinates(self.corners[i], self.corners)
        self.assertTrue(np.allclose(weights, np.eye(3)[i]))

    def test_centroid(self):
        weights = barycentric_coordinates(self.corners.mean(axis=0), self.corners)
        self.assertTrue(np.allclose(weights, 1 / 3))

    def test_reproduces_linear(self):
        point = np.array([0.3, 0.7])
        weights = barycentric_coordinates(point, self.corners)
        values = 1 + 2 * self.corners[:, 0] - self.corners[:, 1]
        self.assertAlmostEqual(weights @ values, 1 + 2 * 0.3 - 0.7)

    def test_extrapolation(self):
        weights = barycentric_coordinates((3.0, 0.0), self.corners)
        self.assertAlmostEqual(weights.sum(), 1)
        self.assertLess(weights.min(), 0)

    def test_degenerate_error(self):
        with self.assertRaises(DegenerateCellError) as cm:
            barycentric_coordinates((0, 0), [(0, 0), (1, 1), (2, 2)])
        msg = "Cannot compute barycentric coordinates of a degenerate cell."
        self.assertEqual(str(cm.exception), msg)
