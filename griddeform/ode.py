r"""
Advection of mesh vertices through the deformation velocity field.

Each vertex :math:`\mathbf{x}` is moved by integrating the ODE

.. math::
    \frac{\mathrm{d}\mathbf{x}}{\mathrm{d}t}
    = \frac{\mathbf{v}(\mathbf{x})}{(1-t)/g(\mathbf{x}) + t/f(\mathbf{x})},
    \quad t\in[0,1],

with the explicit Euler method, where :math:`\mathbf{v}` is the recovered gradient of
the deformation potential, :math:`f` is the monitor function and :math:`g` is the
area distribution. Fields are evaluated at arbitrary points by locating the host
element and applying its :math:`\mathbb{P}1` basis functions.
"""

import enum
from dataclasses import dataclass

import numpy as np

from griddeform.locate import SearchState
from griddeform.math import DegenerateCellError, barycentric_coordinates

__all__ = [
    "IntegrationStatus",
    "NodalFields",
    "PointAdvector",
    "VertexIntegration",
]


class IntegrationStatus(enum.Enum):
    """
    States of the integration of a single vertex trajectory.
    """

    INTEGRATING = "integrating"
    COMPLETED = "completed"
    LEFT_DOMAIN = "left domain"
    NOT_FOUND = "not found"
    CLAMPED = "clamped"
    FIXED = "fixed"

    @property
    def terminal(self):
        return not INTEGRATION_TRANSITIONS[self]


INTEGRATION_TRANSITIONS = {
    IntegrationStatus.INTEGRATING: frozenset(
        {
            IntegrationStatus.INTEGRATING,
            IntegrationStatus.COMPLETED,
            IntegrationStatus.LEFT_DOMAIN,
            IntegrationStatus.NOT_FOUND,
            IntegrationStatus.CLAMPED,
        }
    ),
    IntegrationStatus.COMPLETED: frozenset(),
    IntegrationStatus.LEFT_DOMAIN: frozenset(),
    IntegrationStatus.NOT_FOUND: frozenset(),
    IntegrationStatus.CLAMPED: frozenset(),
    IntegrationStatus.FIXED: frozenset(),
}


class NodalFields:
    """
    Snapshot of the nodal values of the velocity field, the monitor function and the
    area distribution, with point evaluation on a :class:`~.Triangulation`.
    """

    def __init__(self, triangulation, velocity, f, g):
        r"""
        :arg triangulation: the mesh the fields are defined on
        :type triangulation: :class:`~.Triangulation`
        :arg velocity: nodal velocity values
        :type velocity: :class:`numpy.ndarray` of shape :math:`n_v\times2`
        :arg f: nodal monitor function values
        :type f: :class:`numpy.ndarray`
        :arg g: nodal area distribution values
        :type g: :class:`numpy.ndarray`
        """
        self.triangulation = triangulation
        self.velocity = np.array(velocity, dtype=float)
        self.f = np.array(f, dtype=float)
        self.g = np.array(g, dtype=float)

    @classmethod
    def from_functions(cls, triangulation, velocity, f, g):
        """
        Take a snapshot of Firedrake :math:`\\mathbb{P}1` functions.
        """
        return cls(
            triangulation,
            velocity.dat.data_ro_with_halos,
            f.dat.data_ro_with_halos,
            g.dat.data_ro_with_halos,
        )

    def evaluate(self, point, element):
        """
        Evaluate the fields at a point using the basis functions of an element.

        :arg point: the evaluation point
        :arg element: the element whose basis functions are used
        :return: the velocity, monitor function and area distribution at the point
        :rtype: :class:`tuple`
        """
        vertices = self.triangulation.cells[element, :3]
        corners = self.triangulation.coordinates[vertices]
        weights = barycentric_coordinates(point, corners)
        return (
            weights @ self.velocity[vertices],
            weights @ self.f[vertices],
            weights @ self.g[vertices],
        )

    def rate(self, point, element, t):
        """
        :return: the right hand side of the vertex ODE at pseudo-time `t`
        :rtype: :class:`numpy.ndarray`
        """
        v, f, g = self.evaluate(point, element)
        return v / ((1 - t) / g + t / f)


@dataclass
class VertexIntegration:
    """
    Trajectory state of a single vertex.
    """

    vertex: int
    position: np.ndarray
    element: int
    time: float = 0.0
    steps: int = 0
    status: IntegrationStatus = IntegrationStatus.INTEGRATING

    def transition(self, status):
        if status not in INTEGRATION_TRANSITIONS[self.status]:
            raise RuntimeError(
                f"Invalid integration transition from '{self.status.value}'"
                f" to '{status.value}'."
            )
        self.status = status


class PointAdvector:
    """
    Explicit Euler integration of interior vertex trajectories.

    All trajectories are computed against the geometry of the triangulation as it is
    when :meth:`advect` is called, which is left untouched. Trajectories that leave the
    domain, or whose position cannot be located, are frozen at their last located
    position.
    """

    def __init__(self, triangulation, locator, fields, num_time_steps=20):
        """
        :arg triangulation: the mesh whose vertices are advected
        :type triangulation: :class:`~.Triangulation`
        :arg locator: point locator on the same mesh
        :type locator: :class:`~.PointLocator`
        :arg fields: nodal field snapshot
        :type fields: :class:`NodalFields`
        :kwarg num_time_steps: number of explicit Euler steps
        :type num_time_steps: :class:`int`
        """
        assert num_time_steps > 0
        self.triangulation = triangulation
        self.locator = locator
        self.fields = fields
        self.num_time_steps = num_time_steps
        self.dt = 1.0 / num_time_steps

    def start(self, vertex):
        """
        :arg vertex: a vertex index
        :return: the initial trajectory state, hosted by an element adjacent to the
            vertex
        :rtype: :class:`VertexIntegration`
        """
        return VertexIntegration(
            vertex=int(vertex),
            position=self.triangulation.coordinates[vertex].copy(),
            element=int(self.triangulation.elements_at_vertex[vertex]),
        )

    def step(self, state):
        """
        Apply a single explicit Euler step to a trajectory.

        The new position is located before it is accepted. If it lies outside the
        domain, or cannot be located, the trajectory terminates at its current
        position. The same happens if the host element has collapsed.

        :arg state: the trajectory state, updated in place
        :type state: :class:`VertexIntegration`
        :return: the new status
        :rtype: :class:`IntegrationStatus`
        """
        if state.status.terminal:
            raise RuntimeError(
                f"Integration already terminated as '{state.status.value}'."
            )
        try:
            rate = self.fields.rate(state.position, state.element, state.time)
        except DegenerateCellError:
            state.transition(IntegrationStatus.NOT_FOUND)
            return state.status
        proposed = state.position + self.dt * rate
        result = self.locator.locate(proposed, hint=state.element)
        if result.status is SearchState.LEFT_DOMAIN:
            state.transition(IntegrationStatus.LEFT_DOMAIN)
        elif not result.found:
            state.transition(IntegrationStatus.NOT_FOUND)
        else:
            state.position = proposed
            state.element = result.element
            state.steps += 1
            state.time = state.steps * self.dt
            if state.steps == self.num_time_steps:
                state.transition(IntegrationStatus.COMPLETED)
            else:
                state.transition(IntegrationStatus.INTEGRATING)
        return state.status

    def integrate(self, vertex):
        """
        Integrate the trajectory of a single vertex.

        :arg vertex: a vertex index
        :return: the final trajectory state
        :rtype: :class:`VertexIntegration`
        """
        state = self.start(vertex)
        while not state.status.terminal:
            self.step(state)
        return state

    def advect(self, vertices=None):
        """
        Integrate the trajectories of several vertices.

        :kwarg vertices: the vertices to advect. By default, all interior vertices.
        :return: the new positions of the vertices, in order, and the number of
            trajectories ending in each status
        :rtype: :class:`tuple` of :class:`numpy.ndarray` and :class:`dict`
        """
        if vertices is None:
            vertices = self.triangulation.interior_vertices
        positions = np.empty((len(vertices), 2))
        counts = {}
        for i, vertex in enumerate(vertices):
            state = self.integrate(vertex)
            positions[i] = state.position
            counts[state.status] = counts.get(state.status, 0) + 1
        return positions, counts
