"""
Parametrisation of the boundary of a 2D triangulation.

The boundary of the domain is split into *components* (closed loops of boundary
edges) and each component into *segments*, which run between *corners*: the vertices
where the boundary tag changes. A component without corners forms a single segment,
starting and ending at its lowest numbered vertex.

Points on a component are described by a parameter, in one of two forms:

* ``"length"``: arc length along the component, measured from the start of its first
  segment;
* ``"01"``: normalised form, where segment :math:`i` of the component spans the
  interval :math:`[i, i+1]`.

The boundary curve is the polyline through the boundary vertices at the time the
curve is created, so that later vertex movement along the curve does not change the
shape of the domain.
"""

from dataclasses import dataclass
from warnings import warn

import numpy as np

from griddeform.math import equation_of_hyperplane

__all__ = ["BoundaryCurve", "BoundarySegment", "BoundaryRegion"]

PARAMETER_FORMS = ("length", "01")


@dataclass(frozen=True)
class BoundaryRegion:
    """
    Parameter range covered by a boundary segment, in both parameter forms.
    """

    segment: int
    min_param: float
    max_param: float
    min_param_01: float
    max_param_01: float

    def __contains__(self, param):
        return self.min_param <= param <= self.max_param

    def interior_contains(self, param, tol=1.0e-10):
        """
        :arg param: a length parameter
        :kwarg tol: tolerance relative to the segment length
        :return: ``True`` if the parameter lies strictly between the segment ends
        :rtype: :class:`bool`
        """
        margin = tol * (self.max_param - self.min_param)
        return self.min_param + margin < param < self.max_param - margin


@dataclass(frozen=True)
class BoundarySegment:
    """
    Polyline between two consecutive corners of a boundary component.

    The domain lies to the left of the direction of travel.
    """

    index: int
    component: int
    position: int
    tag: int
    vertices: np.ndarray
    edges: np.ndarray
    points: np.ndarray
    cumulative: np.ndarray

    @property
    def length(self):
        return float(self.cumulative[-1] - self.cumulative[0])

    def _piece(self, param):
        i = np.searchsorted(self.cumulative, param, side="right") - 1
        return int(np.clip(i, 0, len(self.points) - 2))

    def evaluate(self, param):
        """
        :arg param: a length parameter within the segment
        :return: the point on the segment
        :rtype: :class:`numpy.ndarray`
        """
        i = self._piece(param)
        start, end = self.cumulative[i], self.cumulative[i + 1]
        s = 0.0 if end == start else (param - start) / (end - start)
        return (1 - s) * self.points[i] + s * self.points[i + 1]

    def direction(self, param):
        """
        :arg param: a length parameter within the segment
        :return: the unit direction of travel at the parameter
        :rtype: :class:`numpy.ndarray`
        """
        i = self._piece(param)
        d = self.points[i + 1] - self.points[i]
        return d / np.linalg.norm(d)

    def is_linear(self):
        """
        :return: ``True`` if all of the segment's vertices lie on one straight line
        :rtype: :class:`bool`
        """
        try:
            line = equation_of_hyperplane(*[tuple(p) for p in self.points])
        except ValueError:
            return False
        scale = max(self.length, 1.0)
        return all(np.isclose(float(line(*p)) / scale, 0) for p in self.points)


class BoundaryCurve:
    """
    Boundary parametrisation service for a :class:`~.Triangulation`.
    """

    def __init__(self, segments, components, num_vertices):
        """
        :arg segments: all boundary segments, numbered consecutively
        :type segments: :class:`list` of :class:`BoundarySegment`\\s
        :arg components: the segment numbers of each component, in order
        :type components: :class:`list` of :class:`list`\\s
        :arg num_vertices: number of vertices in the triangulation
        :type num_vertices: :class:`int`
        """
        self.segments = segments
        self.components = components
        self.regions = []
        for segment in segments:
            self.regions.append(
                BoundaryRegion(
                    segment=segment.index,
                    min_param=float(segment.cumulative[0]),
                    max_param=float(segment.cumulative[-1]),
                    min_param_01=float(segment.position),
                    max_param_01=float(segment.position + 1),
                )
            )

        # Vertex lookups: each vertex belongs to the segment it starts or lies inside
        self.vertex_segment = np.full(num_vertices, -1, dtype=np.int64)
        self.vertex_parameter = np.full(num_vertices, np.nan)
        self.is_endpoint = np.zeros(num_vertices, dtype=bool)
        for segment in reversed(segments):
            self.vertex_segment[segment.vertices[:-1]] = segment.index
            self.vertex_parameter[segment.vertices[:-1]] = segment.cumulative[:-1]
            self.is_endpoint[segment.vertices[[0, -1]]] = True

        for segment in segments:
            if not segment.is_linear():
                warn(
                    f"Boundary segment {segment.index} (tag {segment.tag}) is not"
                    " linear. Deformation may not preserve the domain area.",
                    stacklevel=2,
                )

    @classmethod
    def from_triangulation(cls, triangulation):
        """
        Build the boundary curve of a triangulation from its tagged boundary edges.

        :arg triangulation: the mesh whose boundary is to be parametrised
        :type triangulation: :class:`~.Triangulation`
        """
        tri = triangulation
        outgoing = {}
        incoming_tag = {}
        for edge in tri.boundary_edges:
            start, end = tri.directed_boundary_edge(edge)
            if start in outgoing:
                raise ValueError(f"Boundary vertex {start} is not manifold.")
            tag = int(tri.edge_markers[edge])
            outgoing[start] = (end, int(edge), tag)
            incoming_tag[end] = tag

        segments, components = [], []
        visited = set()
        for first in sorted(outgoing):
            if first in visited:
                continue

            # Walk the boundary loop
            loop, loop_edges = [first], []
            vertex = first
            while True:
                visited.add(vertex)
                vertex, edge, _ = outgoing[vertex]
                loop_edges.append(edge)
                if vertex == first:
                    break
                if vertex in visited:
                    raise ValueError(f"Boundary vertex {vertex} is not manifold.")
                loop.append(vertex)

            corners = [
                k for k, v in enumerate(loop) if incoming_tag[v] != outgoing[v][2]
            ]
            shift = corners[0] if corners else 0
            loop = loop[shift:] + loop[:shift]
            loop_edges = loop_edges[shift:] + loop_edges[:shift]
            corners = [(k - shift) % len(loop) for k in corners] or [0]
            breaks = sorted(corners) + [len(loop)]

            component = len(components)
            indices = []
            offset = 0.0
            for position, (i, j) in enumerate(zip(breaks[:-1], breaks[1:])):
                vertices = np.array(loop[i:j] + [loop[j % len(loop)]], dtype=np.int64)
                points = tri.coordinates[vertices].copy()
                steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
                cumulative = offset + np.concatenate([[0.0], np.cumsum(steps)])
                offset = float(cumulative[-1])
                edges = np.array(loop_edges[i:j], dtype=np.int64)
                segment = BoundarySegment(
                    index=len(segments),
                    component=component,
                    position=position,
                    tag=outgoing[loop[i]][2],
                    vertices=vertices,
                    edges=edges,
                    points=points,
                    cumulative=cumulative,
                )
                indices.append(segment.index)
                segments.append(segment)
            components.append(indices)
        return cls(segments, components, tri.num_vertices)

    def _check_form(self, form):
        if form not in PARAMETER_FORMS:
            raise ValueError(
                f"Parameter form '{form}' not recognised."
                f" Choose from {PARAMETER_FORMS}."
            )

    def component_length(self, component):
        """
        :arg component: a boundary component number
        :return: the length of the component
        :rtype: :class:`float`
        """
        return self.regions[self.components[component][-1]].max_param

    def region_of(self, component, param, form="length"):
        """
        :arg component: a boundary component number
        :arg param: a parameter value on the component
        :kwarg form: the form of the parameter, ``"length"`` or ``"01"``
        :return: the region containing the parameter. At the junction of two
            segments, the later one is returned, except at the end of the component.
        :rtype: :class:`BoundaryRegion`
        """
        self._check_form(form)
        regions = [self.regions[s] for s in self.components[component]]
        if form == "length":
            lo, hi = "min_param", "max_param"
        else:
            lo, hi = "min_param_01", "max_param_01"
        if not getattr(regions[0], lo) <= param <= getattr(regions[-1], hi):
            raise ValueError(
                f"Parameter {param} lies outside boundary component {component}."
            )
        for region in regions[:-1]:
            if param < getattr(region, hi):
                return region
        return regions[-1]

    def convert_parameter(self, component, param, source="length", target="01"):
        """
        Convert a parameter value between forms.

        :arg component: a boundary component number
        :arg param: the parameter value
        :kwarg source: the form of `param`
        :kwarg target: the form to convert to
        :rtype: :class:`float`
        """
        self._check_form(target)
        region = self.region_of(component, param, form=source)
        if source == target:
            return float(param)
        length = region.max_param - region.min_param
        if source == "length":
            s = 0.0 if length == 0 else (param - region.min_param) / length
            return region.min_param_01 + s
        return region.min_param + (param - region.min_param_01) * length

    def coordinates(self, component, param, form="length"):
        """
        :arg component: a boundary component number
        :arg param: a parameter value on the component
        :kwarg form: the form of the parameter
        :return: the point on the boundary curve
        :rtype: :class:`numpy.ndarray`
        """
        param = self.convert_parameter(component, param, source=form, target="length")
        region = self.region_of(component, param)
        return self.segments[region.segment].evaluate(param)

    def tangent(self, component, param, form="length"):
        """
        :arg component: a boundary component number
        :arg param: a parameter value on the component
        :kwarg form: the form of the parameter
        :return: the unit tangent in the direction of increasing parameter, i.e. the
            outward normal rotated anticlockwise by 90 degrees
        :rtype: :class:`numpy.ndarray`
        """
        nx, ny = self.normal(component, param, form=form)
        return np.array([-ny, nx])

    def normal(self, component, param, form="length"):
        """
        :arg component: a boundary component number
        :arg param: a parameter value on the component
        :kwarg form: the form of the parameter
        :return: the outward unit normal
        :rtype: :class:`numpy.ndarray`
        """
        param = self.convert_parameter(component, param, source=form, target="length")
        region = self.region_of(component, param)
        dx, dy = self.segments[region.segment].direction(param)
        return np.array([dy, -dx])

    def assign_parameters(self, triangulation):
        """
        Store the length parameters of the boundary vertices in
        :attr:`~.Triangulation.boundary_parameters`.

        :arg triangulation: the triangulation the curve was built from
        :type triangulation: :class:`~.Triangulation`
        """
        triangulation.boundary_parameters[:] = self.vertex_parameter

    def segment_parameters(self, segment, boundary_parameters):
        """
        :arg segment: a boundary segment number
        :arg boundary_parameters: current vertex parameters
        :type boundary_parameters: :class:`numpy.ndarray`
        :return: current parameters of the segment's vertices, in order
        :rtype: :class:`numpy.ndarray`
        """
        vertices = self.segments[segment].vertices
        region = self.regions[segment]
        params = boundary_parameters[vertices].copy()
        params[0], params[-1] = region.min_param, region.max_param
        return params
