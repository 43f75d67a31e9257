"""
Array-based meshes used throughout the test suite.
"""

import numpy as np

from griddeform.triangulation import Triangulation


def square_arrays(n, quadrilateral=False):
    """
    Vertex coordinates and cells of a uniform mesh of the unit square, with vertex
    :math:`(i, j)` numbered :math:`j(n+1)+i`.
    """
    x, y = np.meshgrid(np.linspace(0, 1, n + 1), np.linspace(0, 1, n + 1))
    coordinates = np.column_stack([x.ravel(), y.ravel()])
    cells = []
    for j in range(n):
        for i in range(n):
            a = j * (n + 1) + i
            b, c, d = a + 1, a + n + 2, a + n + 1
            if quadrilateral:
                cells.append([a, b, c, d])
            else:
                cells.extend([[a, b, c], [a, c, d]])
    return coordinates, np.array(cells)


def square_markers(coordinates):
    """
    Boundary markers of the unit square, numbered as in Firedrake's utility meshes:
    1 for :math:`x=0`, 2 for :math:`x=1`, 3 for :math:`y=0` and 4 for :math:`y=1`.
    """
    x, y = coordinates.T
    return {
        1: np.flatnonzero(np.isclose(x, 0)),
        2: np.flatnonzero(np.isclose(x, 1)),
        3: np.flatnonzero(np.isclose(y, 0)),
        4: np.flatnonzero(np.isclose(y, 1)),
    }


def unit_square(n, quadrilateral=False):
    """
    :return: a uniform triangulation of the unit square with tagged sides
    :rtype: :class:`~.Triangulation`
    """
    coordinates, cells = square_arrays(n, quadrilateral=quadrilateral)
    return Triangulation.from_arrays(
        coordinates, cells, boundary_markers=square_markers(coordinates)
    )
