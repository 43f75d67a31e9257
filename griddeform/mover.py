import abc
from warnings import warn

import firedrake
import firedrake.exceptions as fexc
import numpy as np
import ufl
from animate.utility import function_data_max, function_data_min, function_data_sum
from firedrake.petsc import PETSc

from griddeform.tangling import MeshTanglingChecker
from griddeform.triangulation import Triangulation

__all__ = ["PrimeMover"]


class PrimeMover(abc.ABC):
    """
    Base class for movers which relocate the vertices of a copy of a mesh.

    Holds the :class:`~.Triangulation` of the copy, the element volumes used for
    progress reports and the handling of solver failures.
    """

    def __init__(
        self,
        mesh,
        monitor_function=None,
        raise_convergence_errors=True,
        tangling_check=True,
        quadrature_degree=None,
    ):
        r"""
        :arg mesh: the mesh to adapt. It is copied, so that the original is untouched.
        :type mesh: :class:`firedrake.mesh.MeshGeometry`
        :kwarg monitor_function: a Python function which takes the array of vertex
            coordinates and returns one value per vertex
        :type monitor_function: :class:`~.Callable`
        :kwarg raise_convergence_errors: if `False`, solver failures are reported by
            raising a :class:`Warning` rather than a :class:`~.ConvergenceError`
        :type raise_convergence_errors: :class:`bool`
        :kwarg tangling_check: warn about inverted elements after each iteration
        :type tangling_check: :class:`bool`
        :kwarg quadrature_degree: quadrature degree for the integrals of subclasses
        :type quadrature_degree: :class:`int`
        """
        if not raise_convergence_errors:
            warn(
                f"{type(self).__name__} created with raise_convergence_errors=False."
                " Solver failures will be raised as warnings.",
                stacklevel=2,
            )
        self.raise_convergence_errors = raise_convergence_errors
        self.monitor_function = monitor_function
        self.quadrature_degree = quadrature_degree

        self.mesh = firedrake.Mesh(mesh.coordinates.copy(deepcopy=True))
        self.triangulation = Triangulation.from_mesh(self.mesh)
        self.P0 = firedrake.FunctionSpace(self.mesh, "DG", 0)
        self.volume = firedrake.Function(self.P0, name="Mesh volume")
        self.volume.interpolate(ufl.CellVolume(self.mesh))
        if tangling_check:
            self.tangling_checker = MeshTanglingChecker(
                self.triangulation, raise_error=False
            )

    def _convergence_message(self, iterations=None):
        """
        Print that the solver converged, with its iteration count if known.
        """
        msg = "Solver converged"
        if iterations:
            msg += f" in {iterations} iteration{plural(iterations)}"
        PETSc.Sys.Print(f"{msg}.")

    def _convergence_error(self, iterations=None, exception=None):
        """
        Report a solver failure.

        :kwarg iterations: number of iterations before failure
        :type iterations: :class:`int`
        :kwarg exception: the error raised by the solver, chained to the report
        :type exception: :class:`~.Exception`
        :raises: :class:`~.ConvergenceError`, or :class:`Warning` if
            :attr:`raise_convergence_errors` is `False`
        """
        msg = "Solver failed to converge"
        if iterations:
            msg += f" in {iterations} iteration{plural(iterations)}"
        error_type = fexc.ConvergenceError if self.raise_convergence_errors else Warning
        raise error_type(f"{msg}.") from exception

    def _commit_coordinates(self, coordinates):
        """
        Write new vertex coordinates into the triangulation and the mesh, and update
        the element volumes.

        :arg coordinates: the new vertex coordinates
        :type coordinates: :class:`numpy.ndarray`
        """
        self.triangulation.coordinates[:] = coordinates
        self.triangulation.update_mesh()
        self.volume.interpolate(ufl.CellVolume(self.mesh))

    @property
    def volume_ratio(self):
        """
        :return: the ratio of the largest and smallest element volumes
        :rtype: :class:`float`
        """
        return function_data_max(self.volume) / function_data_min(self.volume)

    @property
    def coefficient_of_variation(self):
        """
        :return: the coefficient of variation (σ/μ) of the element volumes
        :rtype: :class:`float`
        """
        num_cells = self.volume.dat.dataset.layout_vec.getSize()
        mean = function_data_sum(self.volume) / num_cells
        deviation = firedrake.Function(self.P0)
        deviation.interpolate((self.volume - mean) ** 2)
        return np.sqrt(function_data_sum(deviation) / num_cells) / mean

    @abc.abstractmethod
    def move(self):
        """
        Relocate the mesh vertices.

        :return: the number of iterations taken
        :rtype: :class:`int`
        """
        pass  # pragma: no cover


def plural(iterations):
    """
    :return: 's' if `iterations` should be referred to in the plural sense
    :rtype: :class:`str`
    """
    return "s" if iterations != 1 else ""
