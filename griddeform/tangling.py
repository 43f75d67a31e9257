import warnings

import numpy as np
from firedrake.petsc import PETSc

__all__ = ["MeshTanglingChecker"]


class MeshTanglingChecker:
    """
    A class for tracking whether a mesh has tangled, i.e. whether any of its elements
    have become inverted or degenerate.

    Elements of a :class:`~.Triangulation` are oriented counter-clockwise on
    construction, so an element is tangled as soon as its signed area is no longer
    positive.
    """

    def __init__(self, triangulation, raise_error=True):
        """
        :arg triangulation: the mesh to track if tangled
        :type triangulation: :class:`~.Triangulation`
        :kwarg raise_error: if ``True``, an error is raised if any element is tangled,
            otherwise a warning is raised
        :type raise_error: :class:`bool`
        """
        self.triangulation = triangulation
        self.raise_error = raise_error
        self._original_areas = triangulation.areas.copy()

    @property
    def area_ratio(self):
        """
        Compute the ratio of the signed area of each element of the current mesh to its
        area in the original mesh.
        """
        return self.triangulation.areas / self._original_areas

    @property
    def tangled_elements(self):
        """
        :return: the numbers of the tangled elements
        :rtype: :class:`numpy.ndarray`
        """
        return np.flatnonzero(self.area_ratio <= 0)

    @PETSc.Log.EventDecorator()
    def check(self):
        """
        Check whether any element orientations have changed since the tangling checker
        was created.
        """
        num_tangled = len(self.tangled_elements)
        if num_tangled > 0:
            plural = "s" if num_tangled > 1 else ""
            msg = f"Mesh has {num_tangled} tangled element{plural}."
            if self.raise_error:
                raise ValueError(msg)
            warnings.warn(msg, stacklevel=1)
        return num_tangled
