"""
Unit tests for point location.
"""

import unittest

import numpy as np
from meshes import unit_square
from parameterized import parameterized

from griddeform.locate import (
    HierarchicalLocator,
    LocationResult,
    PointLocator,
    RaytraceSearch,
    SearchState,
)


class BaseClasses:
    """
    Base classes for point location unit tests.
    """

    class TestLocator(unittest.TestCase):
        """
        Base class for point location unit tests.
        """

        quadrilateral = False

        def setUp(self):
            self.tri = unit_square(2, quadrilateral=self.quadrilateral)
            self.locator = PointLocator(self.tri)


class TestBruteForce(BaseClasses.TestLocator):
    """
    Unit tests for :meth:`~.PointLocator.brute_force`.
    """

    @parameterized.expand(
        [((0.3, 0.1), 0), ((0.1, 0.3), 1), ((0.8, 0.9), 7), ((0.9, 0.6), 6)]
    )
    def test_interior_point(self, point, element):
        result = self.locator.brute_force(point)
        self.assertEqual(result.status, SearchState.FOUND)
        self.assertEqual(result.element, element)

    def test_outside(self):
        result = self.locator.brute_force((1.5, 0.5))
        self.assertEqual(result, LocationResult(SearchState.NOT_FOUND))

    def test_shared_edge(self):
        self.assertEqual(self.locator.brute_force((0.25, 0.25)).element, 0)

    def test_shared_vertex(self):
        self.assertEqual(self.locator.brute_force((0.5, 0.5)).element, 0)

    def test_domain_boundary(self):
        result = self.locator.brute_force((1.0, 0.2))
        self.assertEqual(result.element, 2)


class TestBruteForceQuadrilateral(BaseClasses.TestLocator):
    """
    Unit tests for :meth:`~.PointLocator.brute_force` on quadrilateral meshes.
    """

    quadrilateral = True

    @parameterized.expand([((0.25, 0.25), 0), ((0.75, 0.25), 1), ((0.2, 0.9), 2)])
    def test_interior_point(self, point, element):
        self.assertEqual(self.locator.brute_force(point).element, element)

    def test_raytrace(self):
        result = self.locator.raytrace((0.9, 0.9), 0)
        self.assertTrue(result.found)
        self.assertEqual(result.element, 3)


class TestRaytrace(BaseClasses.TestLocator):
    """
    Unit tests for :meth:`~.PointLocator.raytrace`.
    """

    def test_start_contains(self):
        result = self.locator.raytrace((0.3, 0.1), 0)
        self.assertEqual(result, LocationResult(SearchState.FOUND, element=0))

    def test_matches_brute_force(self):
        tri = unit_square(4)
        locator = PointLocator(tri)
        for point in np.random.rand(20, 2):
            expected = locator.brute_force(point).element
            for start in range(tri.num_cells):
                result = locator.raytrace(point, start)
                self.assertTrue(result.found)
                self.assertEqual(result.element, expected)
                self.assertLessEqual(result.hops, 2 * tri.num_cells)

    @parameterized.expand([((0.25, 0.25),), ((0.5, 0.5),), ((0.5, 0.25),)])
    def test_tie_break(self, point):
        expected = self.locator.brute_force(point).element
        for start in range(self.tri.num_cells):
            for _ in range(2):
                self.assertEqual(self.locator.raytrace(point, start).element, expected)

    def test_left_domain(self):
        result = self.locator.raytrace((1.5, 0.5), 0)
        self.assertEqual(result.status, SearchState.LEFT_DOMAIN)
        self.assertEqual(self.tri.edge_cells[result.edge, 1], -1)
        self.assertIn(result.edge, self.tri.edges[result.element])

    def test_exhausted(self):
        tri = unit_square(4)
        locator = PointLocator(tri, max_hops=1)
        result = locator.raytrace((0.9, 0.9), 0)
        self.assertEqual(result.status, SearchState.EXHAUSTED)
        self.assertEqual(result.hops, 2)

    def test_locate_falls_back(self):
        tri = unit_square(4)
        locator = PointLocator(tri, max_hops=1)
        result = locator.locate((0.9, 0.9), hint=0)
        self.assertTrue(result.found)
        self.assertEqual(result.element, locator.brute_force((0.9, 0.9)).element)

    def test_locate_without_hint(self):
        result = self.locator.locate((0.1, 0.3))
        self.assertEqual(result, LocationResult(SearchState.FOUND, element=1))

    def test_max_hops_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            PointLocator(self.tri, max_hops=0)
        self.assertEqual(str(cm.exception), "Maximum hops must be positive, not 0.")


class TestRaytraceSearch(BaseClasses.TestLocator):
    """
    Unit tests for the individual transitions of :class:`~.RaytraceSearch`.
    """

    def test_scan_then_hop(self):
        search = RaytraceSearch(self.locator, (0.9, 0.9), 0)
        self.assertEqual(search.step(), SearchState.HOPPING)
        self.assertEqual(search.hops, 0)
        self.assertEqual(search.step(), SearchState.SCANNING)
        self.assertEqual(search.hops, 1)
        self.assertEqual(search.previous, 0)
        self.assertIn(search.current, self.tri.neighbours[0])

    def test_scan_found(self):
        search = RaytraceSearch(self.locator, (0.3, 0.1), 0)
        self.assertEqual(search.step(), SearchState.FOUND)
        self.assertTrue(search.state.terminal)

    def test_invalid_transition(self):
        search = RaytraceSearch(self.locator, (0.3, 0.1), 0)
        search.run()
        with self.assertRaises(RuntimeError) as cm:
            search.transition(SearchState.SCANNING)
        msg = "Invalid search transition from 'found' to 'scanning'."
        self.assertEqual(str(cm.exception), msg)

    def test_step_terminated(self):
        search = RaytraceSearch(self.locator, (0.3, 0.1), 0)
        search.run()
        with self.assertRaises(RuntimeError) as cm:
            search.step()
        self.assertEqual(str(cm.exception), "Search already terminated as 'found'.")


class TestHierarchical(unittest.TestCase):
    """
    Unit tests for :class:`~.HierarchicalLocator`.
    """

    @parameterized.expand([(False,), (True,)])
    def test_matches_brute_force(self, quadrilateral):
        levels = [unit_square(2, quadrilateral=quadrilateral)]
        for _ in range(2):
            levels.append(levels[-1].refine())
        locator = HierarchicalLocator(levels)
        finest = PointLocator(levels[-1])
        for point in np.random.rand(20, 2):
            result = locator.locate(point)
            self.assertTrue(result.found)
            self.assertEqual(result.element, finest.brute_force(point).element)

    def test_outside(self):
        levels = [unit_square(2), unit_square(2).refine()]
        result = HierarchicalLocator(levels).locate((1.5, 0.5))
        self.assertEqual(result.status, SearchState.LEFT_DOMAIN)
        self.assertEqual(result.element, -1)

    def test_empty_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            HierarchicalLocator([])
        self.assertEqual(str(cm.exception), "At least one triangulation is required.")


class TestNearestElement(BaseClasses.TestLocator):
    """
    Unit tests for :meth:`~.PointLocator.nearest_element`.
    """

    def test_outside(self):
        self.assertEqual(self.locator.nearest_element((1.2, 0.6)), 6)

    def test_centroid(self):
        for cell, centroid in enumerate(self.tri.centroids):
            self.assertEqual(self.locator.nearest_element(centroid), cell)
