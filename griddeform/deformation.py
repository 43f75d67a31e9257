"""
Mesh r-adaptation by the grid deformation method.
"""

from contextlib import contextmanager
from dataclasses import dataclass

import firedrake.exceptions as fexc
import numpy as np
from firedrake.petsc import PETSc

import griddeform.solver_parameters as sp
from griddeform.boundary import BoundaryCurve
from griddeform.config import DeformationConfig
from griddeform.fields import MonitorFunctionBuilder
from griddeform.locate import PointLocator
from griddeform.mover import PrimeMover, plural
from griddeform.ode import IntegrationStatus, NodalFields, PointAdvector
from griddeform.pde import DeformationPDESolver
from griddeform.tracker import BoundaryTracker

__all__ = ["GridDeformer", "DeformationResult", "deform"]


class GridDeformer(PrimeMover):
    r"""
    Movement of a `mesh` is determined by comparing a monitor function :math:`f`, which
    gives the target relative element size, with the area distribution :math:`g` of the
    current mesh.

    Over a number of adaptation steps, the monitor function is blended with the area
    distribution, :math:`f_k = t_kf + (1-t_k)g`, with a blending parameter increasing
    as :math:`t_k=(k/N)^{1/4}` up to :math:`t_N=1`. In each step, a potential
    :math:`\phi` is obtained from the Neumann problem

    .. math::
        -\Delta\phi = \frac1{f_k} - \frac1g,

    and every vertex is advected through the velocity field
    :math:`\mathbf{v}=\nabla\phi` by integrating

    .. math::
        \frac{\mathrm{d}\mathbf{x}}{\mathrm{d}t}
        = \frac{\mathbf{v}(\mathbf{x})}{(1-t)/g(\mathbf{x}) + t/f_k(\mathbf{x})}

    over the pseudo-time interval :math:`t\in[0,1]`. Vertices concentrate where the
    monitor function is small. Boundary vertices slide along their boundary segments,
    while the corners between segments stay fixed.
    """

    @PETSc.Log.EventDecorator()
    def __init__(
        self, mesh, boundary=None, config=None, monitor_function=None, **kwargs
    ):
        """
        :arg mesh: the physical mesh, made of linear triangles
        :type mesh: :class:`firedrake.mesh.MeshGeometry`
        :kwarg boundary: the boundary curve of the mesh. If ``None``, it is built from
            the exterior facet markers.
        :type boundary: :class:`~.BoundaryCurve`
        :kwarg config: parameters of the run
        :type config: :class:`~.DeformationConfig`
        :kwarg monitor_function: a Python function which takes the array of vertex
            coordinates and returns the target relative element size at each vertex
        :type monitor_function: :class:`~.Callable`
        """
        super().__init__(mesh, monitor_function=monitor_function, **kwargs)
        self.config = config or DeformationConfig()
        self.boundary = boundary or BoundaryCurve.from_triangulation(self.triangulation)
        self.boundary.assign_parameters(self.triangulation)
        self.locator = PointLocator(
            self.triangulation,
            max_hops=self.config.max_hops,
            tolerance=self.config.tolerance,
        )
        self.solver_parameters = {
            **sp.cg,
            "ksp_rtol": self.config.solver_rtol,
            "ksp_atol": self.config.solver_atol,
            "ksp_max_it": self.config.solver_maxiter,
        }
        self.iterations = 0

    @contextmanager
    def workspace(self):
        """
        Provide the work fields of a single adaptation step, released on exit.

        :rtype: :class:`~.MonitorFunctionBuilder`
        """
        fields = MonitorFunctionBuilder(
            self.triangulation,
            monitor_callback=self.monitor_function,
            quadrature_degree=self.quadrature_degree,
        )
        try:
            yield fields
        finally:
            fields.release()

    def _prepare_fields(self, fields, t):
        fields.compute_area_field()
        fields.evaluate_monitor()
        fields.normalise_numeric()
        fields.blend(t)
        fields.normalise_inverse()

    def _solve_potential(self, fields):
        pde = DeformationPDESolver(
            fields.f,
            fields.g,
            solver_parameters=self.solver_parameters,
            quadrature_degree=self.quadrature_degree,
        )
        try:
            pde.solve()
            self._convergence_message(pde.iterations)
        except fexc.ConvergenceError as conv_err:
            self._convergence_error(pde.iterations, exception=conv_err)
        return pde.recover_gradient()

    @PETSc.Log.EventDecorator()
    def _advect(self, nodal):
        """
        Compute the new vertex coordinates (and boundary parameters) against the
        current geometry, without modifying it.
        """
        tri = self.triangulation
        coordinates = tri.coordinates.copy()
        parameters = tri.boundary_parameters.copy()
        n = self.config.num_time_steps

        interior = tri.interior_vertices
        advector = PointAdvector(tri, self.locator, nodal, num_time_steps=n)
        coordinates[interior], counts = advector.advect(interior)

        if self.config.boundary_level > 0:
            boundary = tri.boundary_vertices
            tracker = BoundaryTracker(
                tri, self.boundary, self.locator, nodal, num_time_steps=n
            )
            params, positions, boundary_counts = tracker.advect(boundary)
            parameters[boundary] = params
            coordinates[boundary] = positions
            for status, count in boundary_counts.items():
                counts[status] = counts.get(status, 0) + count
        return coordinates, parameters, counts

    def _report(self, counts):
        for status in (
            IntegrationStatus.LEFT_DOMAIN,
            IntegrationStatus.NOT_FOUND,
            IntegrationStatus.CLAMPED,
        ):
            count = counts.get(status, 0)
            if count > 0:
                PETSc.Sys.Print(
                    f"   {count} vertex trajector{'ies' if count > 1 else 'y'}"
                    f" stopped early: {status.value}"
                )

    @PETSc.Log.EventDecorator()
    def adapt(self, t):
        """
        Apply a single adaptation step.

        :arg t: the blending parameter
        :type t: :class:`float`
        :return: the number of vertex trajectories ending in each status
        :rtype: :class:`dict`
        """
        with self.workspace() as fields:
            self._prepare_fields(fields, t)
            velocity = self._solve_potential(fields)
            nodal = NodalFields.from_functions(
                self.triangulation, velocity, fields.f, fields.g
            )
        coordinates, parameters, counts = self._advect(nodal)
        self.triangulation.boundary_parameters[:] = parameters
        self._commit_coordinates(coordinates)
        return counts

    @PETSc.Log.EventDecorator()
    def move(self):
        """
        Run all adaptation steps and update the mesh.

        :return: the iteration count
        :rtype: :class:`int`
        """
        schedule = self.config.blending_schedule()
        for k, t in enumerate(schedule):
            counts = self.adapt(t)
            self.iterations = k + 1
            PETSc.Sys.Print(
                f"{k + 1:4d}"
                f"   Blending parameter {t:6.4f}"
                f"   Volume ratio {self.volume_ratio:5.2f}"
                f"   Variation (σ/μ) {self.coefficient_of_variation:8.2e}"
            )
            self._report(counts)
            if hasattr(self, "tangling_checker"):
                self.tangling_checker.check()
            if self.config.quality_hook is not None:
                self.config.quality_hook(self)
        PETSc.Sys.Print(
            f"Grid deformation completed in {self.iterations}"
            f" adaptation step{plural(self.iterations)}."
        )
        return self.iterations


@dataclass(frozen=True)
class DeformationResult:
    """
    Outcome of a call to :func:`deform`.
    """

    success: bool
    reason: str | None = None
    iterations: int = 0


def deform(triangulation, boundary=None, config=None, monitor_callback=None, **kwargs):
    """
    Deform a mesh such that its element sizes follow a monitor function.

    On success, the new vertex coordinates and boundary parameters are written into
    `triangulation` and its Firedrake mesh. If the potential equation cannot be
    solved, both are left unchanged and a failed result is returned. This also holds
    with ``raise_convergence_errors=False``.

    :arg triangulation: the mesh to deform, attached to a Firedrake mesh
    :type triangulation: :class:`~.Triangulation`
    :kwarg boundary: the boundary curve of the mesh
    :type boundary: :class:`~.BoundaryCurve`
    :kwarg config: parameters of the run
    :type config: :class:`~.DeformationConfig`
    :kwarg monitor_callback: a Python function which takes the array of vertex
        coordinates and returns the target relative element size at each vertex. If
        ``None``, a built-in test function is used.
    :type monitor_callback: :class:`~.Callable`
    :return: the outcome of the run
    :rtype: :class:`DeformationResult`
    """
    if triangulation.mesh is None:
        raise ValueError("Triangulation has no underlying Firedrake mesh.")
    mover = GridDeformer(
        triangulation.mesh,
        boundary=boundary,
        config=config,
        monitor_function=monitor_callback,
        **kwargs,
    )
    known = triangulation.boundary_vertices
    previous = triangulation.boundary_parameters[known]
    if boundary is not None and np.all(np.isfinite(previous)):
        mover.triangulation.boundary_parameters[known] = previous
    try:
        iterations = mover.move()
    except (fexc.ConvergenceError, Warning) as conv_err:
        return DeformationResult(
            False, reason=str(conv_err), iterations=mover.iterations
        )
    triangulation.coordinates[:] = mover.triangulation.coordinates
    triangulation.boundary_parameters[:] = mover.triangulation.boundary_parameters
    triangulation.update_mesh()
    return DeformationResult(True, iterations=iterations)
