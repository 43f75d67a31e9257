# Locating points in a mesh
# =========================
#
# Advecting mesh vertices through a velocity field requires the element containing
# each vertex to be known at every time step, because fields are evaluated with the
# basis functions of that element. This demo introduces the point location tools that
# the grid deformation driver uses for this purpose.
#
# We start from a coarse mesh of the unit square, built directly from arrays of
# vertex coordinates and cells. ::

import numpy as np

from griddeform import *

n = 4
x, y = np.meshgrid(np.linspace(0, 1, n + 1), np.linspace(0, 1, n + 1))
coordinates = np.column_stack([x.ravel(), y.ravel()])
cells = []
for j in range(n):
    for i in range(n):
        a = j * (n + 1) + i
        cells.extend([[a, a + 1, a + n + 2], [a, a + n + 2, a + n + 1]])
coarse = Triangulation.from_arrays(coordinates, cells)
print(f"{coarse.num_vertices} vertices, {coarse.num_cells} cells")

# A :class:`~griddeform.locate.PointLocator` offers two strategies. A brute force
# search tests every element in turn, which is robust but slow on large meshes. A
# raytracing search instead starts from a given element and walks towards the point,
# hopping across the edges cut by the ray joining the centroid of the current element
# to the point. When the starting element is close to the point, as is the case for a
# vertex moved by a small time step, only a few hops are needed. ::

locator = PointLocator(coarse)
point = (0.8, 0.3)
print(locator.brute_force(point))
print(locator.raytrace(point, 0))

# Both searches report the same element: points on edges or vertices shared by
# several elements are always attributed to the lowest numbered of them. If the ray
# leaves the domain, the search stops and reports the boundary edge it crossed. ::

print(locator.raytrace((1.2, 0.3), 0))

# On finer meshes, the starting element for raytracing can be obtained from a
# sequence of nested meshes. Each call to
# :meth:`~griddeform.triangulation.Triangulation.refine` splits every element into
# four, keeping the first child at the number of its parent, so the element found on
# one level is a good starting point on the next. ::

levels = [coarse]
for _ in range(3):
    levels.append(levels[-1].refine())
print(f"Finest level: {levels[-1].num_cells} cells")

hierarchical = HierarchicalLocator(levels)
for point in np.random.default_rng(1).random((5, 2)):
    result = hierarchical.locate(point)
    print(f"{point} in element {result.element:4d} after {result.hops} hops")

# This tutorial can be dowloaded as a `Python script <point_location.py>`__.
