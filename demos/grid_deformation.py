# Mesh r-adaptation by grid deformation
# =====================================
#
# In this demo, we move the vertices of a mesh of the unit square such that its
# element sizes follow a prescribed function, while the number of vertices and the
# connectivity of the mesh stay the same.
#
# The *grid deformation method* compares two functions defined on the mesh: the
# *monitor function* :math:`f`, which gives the target relative size of the elements
# at each point, and the *area distribution* :math:`g` of the current mesh. Both are
# normalised such that their reciprocals integrate to the area of the domain. A
# potential :math:`\phi` is then found by solving the Neumann problem
#
# .. math::
#     -\Delta\phi = \frac1f - \frac1g,
#
# and each vertex :math:`\mathbf{x}` is advected through the velocity field
# :math:`\mathbf{v}=\nabla\phi` over a pseudo-time interval :math:`t\in[0,1]`,
#
# .. math::
#     \frac{\mathrm{d}\mathbf{x}}{\mathrm{d}t}
#     = \frac{\mathbf{v}(\mathbf{x})}{(1-t)/g(\mathbf{x}) + t/f(\mathbf{x})}.
#
# Large deformations are reached gradually, by applying several adaptation steps in
# which the monitor function is blended with the current area distribution.
#
# We begin by importing from the namespaces of Firedrake and Griddeform. ::

import os

from firedrake import *

from griddeform import *

# Consider a uniform mesh of the unit square. Feel free to ignore the
# `"GRIDDEFORM_REGRESSION_TEST"`, as it is only used when this demo is run in the test
# suite (to reduce its runtime). ::

test = os.environ.get("GRIDDEFORM_REGRESSION_TEST")
n = 10 if test else 20
mesh = UnitSquareMesh(n, n)

import matplotlib.pyplot as plt
from firedrake.pyplot import triplot

fig, axes = plt.subplots()
triplot(mesh, axes=axes)
axes.set_aspect(1)
plt.savefig("grid_deformation-initial_mesh.jpg")

# .. figure:: grid_deformation-initial_mesh.jpg
#    :figwidth: 60%
#    :align: center
#
# Monitor functions are plain Python functions which take the array of vertex
# coordinates and return one strictly positive value per vertex. Small values request
# small elements. Here we ask for small elements in a circular band of radius 0.25,
# using one of the builders provided by the package: ::

monitor = DistanceBandMonitorBuilder(
    centre=(0.5, 0.5), radius=0.25, width=0.2, minimum=0.2
).get_monitor()

# Before deforming the mesh, we wrap it in a
# :class:`~griddeform.triangulation.Triangulation`, which gives array-based access to
# its vertices, cells and boundary tags. The four sides of the square carry different
# tags, so the boundary curve has four segments: vertices slide along the sides of the
# square, while the corners stay fixed. ::

triangulation = Triangulation.from_mesh(mesh)
boundary = BoundaryCurve.from_triangulation(triangulation)
print(f"Boundary segments: {len(boundary.segments)}")

# We also set up a tangling checker, which records the orientation of the elements
# before they are moved. ::

checker = MeshTanglingChecker(triangulation)

# The parameters of the run are gathered in a
# :class:`~griddeform.config.DeformationConfig`. We apply ten adaptation steps, each
# integrating the vertex trajectories with twenty explicit Euler steps. ::

num_adaptation_steps = 5 if test else 10
config = DeformationConfig(
    num_adaptation_steps=num_adaptation_steps, num_time_steps=20
)
result = deform(
    triangulation, boundary=boundary, config=config, monitor_callback=monitor
)
print(result)

# This should give command line output similar to the following:
#
# .. code-block:: none
#
#    Solver converged in 14 iterations.
#       1   Blending parameter 0.5623   Volume ratio  1.93   Variation (σ/μ) 1.93e-01
#    Solver converged in 13 iterations.
#       2   Blending parameter 0.6687   Volume ratio  2.40   Variation (σ/μ) 2.38e-01
#    ...
#    Grid deformation completed in 10 adaptation steps.
#    DeformationResult(success=True, reason=None, iterations=10)
#
# The deformation writes the new vertex coordinates back into the triangulation and
# its Firedrake mesh, so the mesh we started with is now adapted.

fig, axes = plt.subplots()
triplot(mesh, axes=axes)
axes.set_aspect(1)
plt.savefig("grid_deformation-adapted_mesh.jpg")

# .. figure:: grid_deformation-adapted_mesh.jpg
#    :figwidth: 60%
#    :align: center
#
# Vertices on the boundary have moved along the sides of the square, towards the
# points where the band meets them. Their positions are recorded as arc length
# parameters on the boundary curve, which can be converted to the normalised form in
# which each segment spans a unit interval. ::

vertex = triangulation.boundary_vertices[1]
param = triangulation.boundary_parameters[vertex]
component = boundary.segments[boundary.vertex_segment[vertex]].component
param_01 = boundary.convert_parameter(component, param, source="length", target="01")
print(f"Vertex {vertex}: {param:.4f} ({param_01:.4f})")

# The tangling checker created before the deformation compares the orientation of the
# elements against their original orientation. ::

assert checker.check() == 0

# .. rubric:: Exercise
#
# Replace the monitor function with a
# :class:`~griddeform.monitor.BallMonitorBuilder` with zero radius and observe how
# resolution concentrates around a single point. What happens if ``boundary_level=0``
# is passed to the configuration?
#
# This tutorial can be dowloaded as a `Python script <grid_deformation.py>`__.
