"""
Advection of boundary vertices along the boundary curve.
"""

from dataclasses import dataclass

import numpy as np

from griddeform.math import DegenerateCellError
from griddeform.ode import INTEGRATION_TRANSITIONS, IntegrationStatus

__all__ = ["BoundaryTracker", "BoundaryIntegration"]


@dataclass
class BoundaryIntegration:
    """
    Trajectory state of a single boundary vertex, described by its length parameter.
    """

    vertex: int
    segment: int
    parameter: float
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


class BoundaryTracker:
    r"""
    Explicit Euler integration of boundary vertex trajectories.

    Boundary vertices may only move along their boundary segment. The velocity at the
    current point of the curve is projected onto the curve tangent and the length
    parameter :math:`\alpha` of the vertex is integrated with the same scheme as
    interior vertices:

    .. math::
        \frac{\mathrm{d}\alpha}{\mathrm{d}t}
        = \frac{\mathbf{v}\cdot\boldsymbol{\tau}}{(1-t)/g + t/f}.

    Segment end points (corners) are fixed. A trajectory that would reach or leave the
    end of its segment stops at its last parameter inside the segment, so that it never
    lands on a corner.
    """

    def __init__(self, triangulation, curve, locator, fields, num_time_steps=20):
        """
        :arg triangulation: the mesh whose vertices are advected
        :type triangulation: :class:`~.Triangulation`
        :arg curve: the boundary curve of the mesh
        :type curve: :class:`~.BoundaryCurve`
        :arg locator: point locator on the same mesh
        :type locator: :class:`~.PointLocator`
        :arg fields: nodal field snapshot
        :type fields: :class:`~.NodalFields`
        :kwarg num_time_steps: number of explicit Euler steps
        :type num_time_steps: :class:`int`
        """
        assert num_time_steps > 0
        self.triangulation = triangulation
        self.curve = curve
        self.locator = locator
        self.fields = fields
        self.num_time_steps = num_time_steps
        self.dt = 1.0 / num_time_steps
        self._segment_parameters = {}

    def segment_parameters(self, segment):
        """
        :arg segment: a boundary segment number
        :return: the parameters of the segment's vertices at the start of advection
        :rtype: :class:`numpy.ndarray`
        """
        if segment not in self._segment_parameters:
            self._segment_parameters[segment] = self.curve.segment_parameters(
                segment, self.triangulation.boundary_parameters
            )
        return self._segment_parameters[segment]

    def host_element(self, segment, param, point):
        """
        Find the element to evaluate fields in at a point of the boundary curve: the
        element owning the boundary edge whose current parameter interval contains the
        point, or the nearest element if that one does not contain it.

        :arg segment: a boundary segment number
        :arg param: the length parameter of the point
        :arg point: the point
        :rtype: :class:`int`
        """
        params = self.segment_parameters(segment)
        edges = self.curve.segments[segment].edges
        k = np.searchsorted(params, param, side="right") - 1
        k = int(np.clip(k, 0, len(edges) - 1))
        element = int(self.triangulation.edge_cells[edges[k], 0])
        if self.locator.contains(element, point):
            return element
        return self.locator.nearest_element(point)

    def start(self, vertex):
        """
        :arg vertex: a boundary vertex index
        :return: the initial trajectory state
        :rtype: :class:`BoundaryIntegration`
        """
        segment = int(self.curve.vertex_segment[vertex])
        if segment < 0:
            raise ValueError(f"Vertex {vertex} does not lie on the boundary curve.")
        state = BoundaryIntegration(
            vertex=int(vertex),
            segment=segment,
            parameter=float(self.triangulation.boundary_parameters[vertex]),
        )
        if self.curve.is_endpoint[vertex]:
            state.status = IntegrationStatus.FIXED
        return state

    def step(self, state):
        """
        Apply a single explicit Euler step to a boundary trajectory.

        A step that would reach or cross an end of the segment is rejected, and the
        trajectory terminates at its last parameter. The same happens if the host
        element has collapsed.

        :arg state: the trajectory state, updated in place
        :type state: :class:`BoundaryIntegration`
        :return: the new status
        :rtype: :class:`IntegrationStatus`
        """
        if state.status.terminal:
            raise RuntimeError(
                f"Integration already terminated as '{state.status.value}'."
            )
        segment = self.curve.segments[state.segment]
        region = self.curve.regions[state.segment]
        point = segment.evaluate(state.parameter)
        element = self.host_element(state.segment, state.parameter, point)
        try:
            v, f, g = self.fields.evaluate(point, element)
        except DegenerateCellError:
            state.transition(IntegrationStatus.NOT_FOUND)
            return state.status
        tangent = segment.direction(state.parameter)
        rate = np.dot(v, tangent) / ((1 - state.time) / g + state.time / f)
        proposed = state.parameter + self.dt * rate
        if not region.interior_contains(proposed, tol=self.locator.tolerance):
            state.transition(IntegrationStatus.CLAMPED)
        else:
            state.parameter = proposed
            state.steps += 1
            state.time = state.steps * self.dt
            if state.steps == self.num_time_steps:
                state.transition(IntegrationStatus.COMPLETED)
            else:
                state.transition(IntegrationStatus.INTEGRATING)
        return state.status

    def integrate(self, vertex):
        """
        Integrate the trajectory of a single boundary vertex.

        :arg vertex: a boundary vertex index
        :return: the final trajectory state
        :rtype: :class:`BoundaryIntegration`
        """
        state = self.start(vertex)
        while not state.status.terminal:
            self.step(state)
        return state

    def advect(self, vertices=None):
        """
        Integrate the trajectories of several boundary vertices.

        :kwarg vertices: the vertices to advect. By default, all boundary vertices.
        :return: the new parameters and positions of the vertices, in order, and the
            number of trajectories ending in each status
        :rtype: :class:`tuple`
        """
        if vertices is None:
            vertices = self.triangulation.boundary_vertices
        params = np.empty(len(vertices))
        positions = np.empty((len(vertices), 2))
        counts = {}
        for i, vertex in enumerate(vertices):
            state = self.integrate(vertex)
            params[i] = state.parameter
            positions[i] = self.curve.segments[state.segment].evaluate(state.parameter)
            counts[state.status] = counts.get(state.status, 0) + 1
        return params, positions, counts
