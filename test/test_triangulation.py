"""
Unit tests for the triangulation module.
"""

import unittest

import numpy as np
from firedrake.utility_meshes import UnitCubeMesh, UnitSquareMesh
from meshes import square_arrays, unit_square
from parameterized import parameterized

from griddeform.math import point_in_element
from griddeform.triangulation import Triangulation


class TestConstruction(unittest.TestCase):
    """
    Unit tests for building :class:`~.Triangulation`\\s from arrays.
    """

    def test_sizes(self):
        tri = unit_square(2)
        self.assertEqual(tri.num_vertices, 9)
        self.assertEqual(tri.num_cells, 8)
        self.assertEqual(tri.num_edges, 16)
        self.assertEqual(len(tri.boundary_edges), 8)

    def test_neighbours(self):
        tri = unit_square(2)
        self.assertEqual(list(tri.neighbours[0]), [-1, 3, 1])

    @parameterized.expand([(False,), (True,)])
    def test_neighbours_symmetric(self, quadrilateral):
        tri = unit_square(3, quadrilateral=quadrilateral)
        for cell, neighbours in enumerate(tri.neighbours):
            for neighbour in neighbours:
                if neighbour >= 0:
                    self.assertIn(cell, tri.neighbours[neighbour])

    def test_edges_consistent(self):
        tri = unit_square(3)
        for cell, edges in enumerate(tri.edges):
            for j, edge in enumerate(edges):
                ends = {tri.cells[cell, j], tri.cells[cell, (j + 1) % 3]}
                self.assertEqual(ends, set(tri.edge_vertices[edge]))
                self.assertIn(cell, tri.edge_cells[edge])

    def test_orientation(self):
        coordinates, cells = square_arrays(2)
        tri = Triangulation.from_arrays(coordinates, cells[:, ::-1])
        self.assertTrue(np.all(tri.areas > 0))
        self.assertAlmostEqual(tri.total_area, 1)

    @parameterized.expand([(False, 1 / 8), (True, 1 / 4)])
    def test_areas(self, quadrilateral, area):
        tri = unit_square(2, quadrilateral=quadrilateral)
        self.assertTrue(np.allclose(tri.areas, area))

    def test_centroids(self):
        tri = unit_square(1)
        self.assertTrue(np.allclose(tri.centroids, [[2 / 3, 1 / 3], [1 / 3, 2 / 3]]))

    def test_elements_at_vertex(self):
        tri = unit_square(2)
        self.assertEqual(tri.elements_at_vertex[4], 0)
        self.assertEqual(tri.elements_at_vertex[8], 6)
        for vertex, cell in enumerate(tri.elements_at_vertex):
            self.assertIn(vertex, tri.cells[cell])

    def test_boundary_ids(self):
        tri = unit_square(2)
        self.assertEqual(tri.boundary_ids[0], 1)
        self.assertEqual(tri.boundary_ids[1], 3)
        self.assertEqual(tri.boundary_ids[5], 2)
        self.assertEqual(tri.boundary_ids[4], 0)
        self.assertEqual(list(tri.interior_vertices), [4])

    def test_edge_markers(self):
        tri = unit_square(2)
        markers = tri.edge_markers[tri.boundary_edges]
        self.assertEqual(sorted(markers), [1, 1, 2, 2, 3, 3, 4, 4])
        self.assertEqual(np.count_nonzero(tri.edge_markers), 8)

    def test_default_markers(self):
        coordinates, cells = square_arrays(2)
        tri = Triangulation.from_arrays(coordinates, cells)
        self.assertTrue(np.all(tri.edge_markers[tri.boundary_edges] == 1))

    def test_boundary_parameters_unset(self):
        self.assertTrue(np.all(np.isnan(unit_square(2).boundary_parameters)))

    def test_directed_boundary_edge(self):
        tri = unit_square(2)
        edge = int(np.flatnonzero((tri.edge_vertices == [0, 1]).all(axis=1))[0])
        self.assertEqual(tri.directed_boundary_edge(edge), (0, 1))

    def test_copy(self):
        tri = unit_square(2)
        copy = tri.copy()
        copy.coordinates[4] += 0.1
        self.assertTrue(np.allclose(tri.coordinates[4], 0.5))

    def test_coordinates_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            Triangulation.from_arrays(np.zeros((3, 3)), [[0, 1, 2]])
        msg = "Vertex coordinates must have shape (num_vertices, 2)."
        self.assertEqual(str(cm.exception), msg)

    def test_cells_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            Triangulation.from_arrays(np.random.rand(5, 2), [[0, 1, 2, 3, 4]])
        msg = "Only triangular and quadrilateral cells are supported."
        self.assertEqual(str(cm.exception), msg)

    def test_nonmanifold_valueerror(self):
        coordinates = [(0, 0), (1, 0), (0, 1), (0, -1), (1, 1)]
        with self.assertRaises(ValueError) as cm:
            Triangulation.from_arrays(coordinates, [[0, 1, 2], [0, 1, 3], [0, 1, 4]])
        msg = "Edges shared by more than two cells are not supported."
        self.assertEqual(str(cm.exception), msg)

    def test_untagged_valueerror(self):
        coordinates, cells = square_arrays(2)
        with self.assertRaises(ValueError) as cm:
            Triangulation.from_arrays(coordinates, cells, boundary_markers={1: [0]})
        msg = "8 boundary edges have no boundary tag."
        self.assertEqual(str(cm.exception), msg)


class TestRefine(unittest.TestCase):
    """
    Unit tests for :meth:`~.Triangulation.refine`.
    """

    @parameterized.expand([(False, 25, 32), (True, 25, 16)])
    def test_sizes(self, quadrilateral, num_vertices, num_cells):
        fine = unit_square(2, quadrilateral=quadrilateral).refine()
        self.assertEqual(fine.num_vertices, num_vertices)
        self.assertEqual(fine.num_cells, num_cells)
        self.assertAlmostEqual(fine.total_area, 1)
        self.assertTrue(np.all(fine.areas > 0))

    @parameterized.expand([(False,), (True,)])
    def test_children_nested(self, quadrilateral):
        coarse = unit_square(2, quadrilateral=quadrilateral)
        fine = coarse.refine()
        nel = coarse.num_cells
        for cell in range(fine.num_cells):
            parent = cell if cell < nel else (cell - nel) // 3
            centroid = fine.centroids[cell]
            self.assertTrue(point_in_element(centroid, coarse.cell_coordinates(parent)))

    def test_boundary_tags(self):
        fine = unit_square(2).refine()
        self.assertEqual(len(fine.boundary_vertices), 16)
        tags = set(fine.edge_markers[fine.boundary_edges])
        self.assertEqual(sorted(tags), [1, 2, 3, 4])


class TestFromMesh(unittest.TestCase):
    """
    Unit tests for :meth:`~.Triangulation.from_mesh`.
    """

    def test_unit_square(self):
        mesh = UnitSquareMesh(3, 3)
        tri = Triangulation.from_mesh(mesh)
        self.assertEqual(tri.num_vertices, 16)
        self.assertEqual(tri.num_cells, 18)
        self.assertAlmostEqual(tri.total_area, 1)
        self.assertEqual(len(tri.boundary_vertices), 12)
        self.assertEqual(set(tri.boundary_ids) - {0}, {1, 2, 3, 4})
        self.assertIs(tri.mesh, mesh)

    def test_boundary_ids_match_sides(self):
        tri = Triangulation.from_mesh(UnitSquareMesh(3, 3))
        x, y = tri.coordinates.T
        sides = (
            np.isclose(x, 0) | np.isclose(x, 1) | np.isclose(y, 0) | np.isclose(y, 1)
        )
        self.assertTrue(np.array_equal(tri.boundary_ids > 0, sides))
        top = np.isclose(y, 1) & (x > 0) & (x < 1)
        self.assertTrue(np.all(tri.boundary_ids[top] == 4))

    def test_update_mesh(self):
        mesh = UnitSquareMesh(2, 2)
        tri = Triangulation.from_mesh(mesh)
        tri.coordinates[tri.interior_vertices] += 0.05
        tri.update_mesh()
        self.assertTrue(np.allclose(mesh.coordinates.dat.data, tri.coordinates))

    def test_quadrilateral_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            Triangulation.from_mesh(UnitSquareMesh(2, 2, quadrilateral=True))
        msg = "Cell type 'quadrilateral' not supported."
        self.assertEqual(str(cm.exception), msg)

    def test_3d_valueerror(self):
        with self.assertRaises(ValueError) as cm:
            Triangulation.from_mesh(UnitCubeMesh(1, 1, 1))
        msg = "Cell type 'tetrahedron' not supported."
        self.assertEqual(str(cm.exception), msg)
