"""
Nodal fields driving the grid deformation: the monitor function and the area
distribution of the current mesh.
"""

import firedrake
import numpy as np
from firedrake.petsc import PETSc

import griddeform.solver_parameters as sp
from griddeform.monitor import DistanceBandMonitorBuilder

__all__ = ["MonitorFunctionBuilder"]


class MonitorFunctionBuilder:
    r"""
    Builds the two :math:`\mathbb{P}1` fields compared by the grid deformation method:

    * the area distribution :math:`g`, obtained by :math:`L^2` projection of the
      element areas of the current mesh;
    * the monitor function :math:`f`, giving the target relative element size at each
      vertex.

    Both fields are normalised against the domain area :math:`|\Omega|` before they
    are used, first so that they have the same integral and then so that their
    reciprocals do.
    """

    def __init__(self, triangulation, monitor_callback=None, quadrature_degree=None):
        """
        :arg triangulation: the current mesh, attached to a Firedrake mesh
        :type triangulation: :class:`~.Triangulation`
        :kwarg monitor_callback: function taking the vertex coordinates and returning
            the monitor function values. If ``None``, a
            :class:`~.DistanceBandMonitorBuilder` test function is used.
        :type monitor_callback: :class:`~.Callable`
        :kwarg quadrature_degree: quadrature degree to be passed to Firedrake's measures
        :type quadrature_degree: :class:`int`
        """
        if triangulation.mesh is None:
            raise ValueError("Triangulation has no underlying Firedrake mesh.")
        self.triangulation = triangulation
        self.mesh = triangulation.mesh
        self.monitor_callback = monitor_callback or DistanceBandMonitorBuilder()()
        self.dx = firedrake.dx(domain=self.mesh, degree=quadrature_degree)

        self.P0 = firedrake.FunctionSpace(self.mesh, "DG", 0)
        self.P1 = firedrake.FunctionSpace(self.mesh, "CG", 1)
        self._cell_dofs = self.P0.cell_node_map().values[:, 0]
        self.area = firedrake.Function(self.P0, name="Element areas")
        self.f = firedrake.Function(self.P1, name="Monitor function")
        self.g = firedrake.Function(self.P1, name="Area distribution")

    @property
    def total_area(self):
        r"""
        :return: the domain area :math:`|\Omega|`, as the sum of the element areas
        :rtype: :class:`float`
        """
        return self.triangulation.total_area

    def _project_areas(self, target):
        self.area.dat.data_with_halos[self._cell_dofs] = self.triangulation.areas
        target.project(self.area, solver_parameters=sp.mass)
        return target

    @PETSc.Log.EventDecorator()
    def compute_area_field(self):
        """
        Compute the signed element areas of the current mesh and project them into
        :math:`\\mathbb{P}1` space.

        :return: the area distribution :math:`g`
        :rtype: :class:`firedrake.function.Function`
        """
        return self._project_areas(self.g)

    def area_distribution(self):
        """
        Compute the area distribution of the current mesh without changing :attr:`g`.

        :return: a new :math:`\\mathbb{P}1` area distribution
        :rtype: :class:`firedrake.function.Function`
        """
        return self._project_areas(
            firedrake.Function(self.P1, name="Deformed area distribution")
        )

    @PETSc.Log.EventDecorator()
    def evaluate_monitor(self, callback=None):
        """
        Evaluate the monitor function at the vertices of the current mesh.

        :kwarg callback: monitor function to use instead of the one passed on
            construction
        :type callback: :class:`~.Callable`
        :return: the monitor function :math:`f`
        :rtype: :class:`firedrake.function.Function`
        """
        callback = callback or self.monitor_callback
        coordinates = self.triangulation.coordinates.copy()
        values = np.asarray(callback(coordinates), dtype=float)
        if values.shape != (self.triangulation.num_vertices,):
            raise ValueError(
                f"Monitor function returned values of shape {values.shape}, expected"
                f" ({self.triangulation.num_vertices},)."
            )
        if not np.all(values > 0):
            raise ValueError("Monitor function values must be strictly positive.")
        self.f.dat.data_with_halos[:] = values
        return self.f

    def normalise_numeric(self):
        """
        Scale :math:`f` and :math:`g` such that both of their :math:`L^1` norms equal
        the domain area.

        :return: the scale factors applied to :math:`f` and :math:`g`
        :rtype: :class:`tuple` of :class:`float`\\s
        """
        total_area = self.total_area
        scale_f = total_area / firedrake.assemble(abs(self.f) * self.dx)
        scale_g = total_area / firedrake.assemble(abs(self.g) * self.dx)
        self.f.dat.data_with_halos[:] *= scale_f
        self.g.dat.data_with_halos[:] *= scale_g
        return scale_f, scale_g

    def blend(self, t):
        r"""
        Blend the monitor function with the area distribution:
        :math:`f \leftarrow tf + (1-t)g`.

        :arg t: the blending parameter, clipped to :math:`[0,1]`
        :type t: :class:`float`
        :return: the blended monitor function
        :rtype: :class:`firedrake.function.Function`
        """
        t = min(max(float(t), 0.0), 1.0)
        if t == 1.0:
            return self.f
        if t == 0.0:
            self.f.assign(self.g)
            return self.f
        f = self.f.dat.data_with_halos
        f[:] = t * f + (1 - t) * self.g.dat.data_ro_with_halos
        return self.f

    def normalise_inverse(self):
        r"""
        Scale :math:`f` and :math:`g` such that the integrals of their reciprocals both
        equal the domain area.

        :return: the scale factors applied to :math:`f` and :math:`g`
        :rtype: :class:`tuple` of :class:`float`\s
        """
        total_area = self.total_area
        scale_f = firedrake.assemble(1 / self.f * self.dx) / total_area
        scale_g = firedrake.assemble(1 / self.g * self.dx) / total_area
        self.f.dat.data_with_halos[:] *= scale_f
        self.g.dat.data_with_halos[:] *= scale_g
        return scale_f, scale_g

    def release(self):
        """
        Drop references to the work fields.
        """
        self.area = self.f = self.g = None

