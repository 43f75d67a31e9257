"""
Point location in triangulations of 2D domains.

Four search strategies are provided on top of a :class:`~.Triangulation`:

* brute force, which tests every element in turn;
* raytracing, which walks from a starting element towards the target point by
  crossing the element edges cut by the connecting ray;
* hierarchical search, which raytraces on a sequence of nested triangulations;
* nearest element, which picks the element with the closest centroid.

Points on edges or vertices shared by several elements are always attributed to the
lowest numbered element containing them.
"""

import enum
from dataclasses import dataclass

import numpy as np
from firedrake.petsc import PETSc

from griddeform.math import point_in_element, segments_intersect

__all__ = [
    "SearchState",
    "LocationResult",
    "PointLocator",
    "HierarchicalLocator",
]


class SearchState(enum.Enum):
    """
    States of a point location search.
    """

    SCANNING = "scanning"
    HOPPING = "hopping"
    FOUND = "found"
    LEFT_DOMAIN = "left domain"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not found"

    @property
    def terminal(self):
        return not TRANSITIONS[self]


TRANSITIONS = {
    SearchState.SCANNING: frozenset(
        {
            SearchState.FOUND,
            SearchState.HOPPING,
            SearchState.LEFT_DOMAIN,
            SearchState.EXHAUSTED,
        }
    ),
    SearchState.HOPPING: frozenset({SearchState.SCANNING, SearchState.EXHAUSTED}),
    SearchState.FOUND: frozenset(),
    SearchState.LEFT_DOMAIN: frozenset(),
    SearchState.EXHAUSTED: frozenset(),
    SearchState.NOT_FOUND: frozenset(),
}


@dataclass(frozen=True)
class LocationResult:
    """
    Outcome of a point location query.

    For :attr:`SearchState.FOUND`, :attr:`element` contains the point. For
    :attr:`SearchState.LEFT_DOMAIN`, :attr:`element` is the last element visited and
    :attr:`edge` the global number of the boundary edge the ray left through.
    Otherwise, both are ``-1``.
    """

    status: SearchState
    element: int = -1
    edge: int = -1
    hops: int = 0

    @property
    def found(self):
        return self.status is SearchState.FOUND


class RaytraceSearch:
    """
    State of a single raytracing query.

    Each call to :meth:`step` applies one transition, so that individual transitions
    can be driven and inspected one at a time.
    """

    def __init__(self, locator, point, start):
        """
        :arg locator: the locator providing geometry and adjacency
        :type locator: :class:`PointLocator`
        :arg point: the target point
        :type point: :class:`numpy.ndarray`
        :arg start: the element to start the walk from
        :type start: :class:`int`
        """
        self.locator = locator
        self.point = np.asarray(point, dtype=float)
        self.state = SearchState.SCANNING
        self.current = int(start)
        self.previous = -1
        self.hops = 0
        self.edge = -1
        self._next = -1

    def transition(self, state):
        """
        Move to a new state, checking that the transition is allowed.

        :arg state: the new state
        :type state: :class:`SearchState`
        """
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid search transition from '{self.state.value}'"
                f" to '{state.value}'."
            )
        self.state = state

    def step(self):
        """
        Apply a single transition of the search.

        :return: the new state
        :rtype: :class:`SearchState`
        """
        if self.state is SearchState.SCANNING:
            self.transition(self._scan())
        elif self.state is SearchState.HOPPING:
            self.transition(self._hop())
        else:
            raise RuntimeError(f"Search already terminated as '{self.state.value}'.")
        return self.state

    def run(self):
        """
        Apply transitions until a terminal state is reached.

        :rtype: :class:`LocationResult`
        """
        while not self.state.terminal:
            self.step()
        return self.result

    @property
    def result(self):
        if self.state is SearchState.FOUND:
            element = self.locator.lowest_containing(self.point, self.current)
            return LocationResult(self.state, element=element, hops=self.hops)
        if self.state is SearchState.LEFT_DOMAIN:
            return LocationResult(
                self.state, element=self.current, edge=self.edge, hops=self.hops
            )
        return LocationResult(self.state, hops=self.hops)

    def _scan(self):
        tri = self.locator.triangulation
        if self.locator.contains(self.current, self.point):
            return SearchState.FOUND
        corners = tri.cell_coordinates(self.current)
        reference = corners.mean(axis=0)
        nve = len(corners)
        for j in range(nve):
            neighbour = tri.neighbours[self.current, j]
            if self.previous >= 0 and neighbour == self.previous:
                continue
            a, b = corners[j], corners[(j + 1) % nve]
            if not segments_intersect(reference, self.point, a, b):
                continue
            if neighbour < 0:
                self.edge = int(tri.edges[self.current, j])
                return SearchState.LEFT_DOMAIN
            self._next = int(neighbour)
            return SearchState.HOPPING
        return SearchState.EXHAUSTED

    def _hop(self):
        self.previous, self.current = self.current, self._next
        self.hops += 1
        if self.hops > self.locator.max_hops:
            return SearchState.EXHAUSTED
        return SearchState.SCANNING


class PointLocator:
    """
    Locate points in the elements of a :class:`~.Triangulation`.

    The locator reads the current vertex coordinates of the triangulation on every
    query, so it remains valid as the mesh is deformed.
    """

    def __init__(self, triangulation, max_hops=100, tolerance=1.0e-10):
        """
        :arg triangulation: the mesh to search
        :type triangulation: :class:`~.Triangulation`
        :kwarg max_hops: maximum number of element hops in a raytracing search
        :type max_hops: :class:`int`
        :kwarg tolerance: relative tolerance for point-in-element tests
        :type tolerance: :class:`float`
        """
        if max_hops < 1:
            raise ValueError(f"Maximum hops must be positive, not {max_hops}.")
        self.triangulation = triangulation
        self.max_hops = max_hops
        self.tolerance = tolerance

    def contains(self, element, point):
        """
        :arg element: an element number
        :arg point: a point
        :return: ``True`` if the element contains the point (boundary included)
        :rtype: :class:`bool`
        """
        corners = self.triangulation.cell_coordinates(element)
        return point_in_element(point, corners, tol=self.tolerance)

    def lowest_containing(self, point, element):
        """
        Find the lowest numbered element containing a point, given one element that
        contains it, by walking across edges the point lies on.

        :arg point: the point
        :arg element: an element containing the point
        :rtype: :class:`int`
        """
        neighbours = self.triangulation.neighbours
        best = element
        seen = {element}
        stack = [element]
        while stack:
            for neighbour in neighbours[stack.pop()]:
                neighbour = int(neighbour)
                if neighbour < 0 or neighbour in seen:
                    continue
                seen.add(neighbour)
                if self.contains(neighbour, point):
                    best = min(best, neighbour)
                    stack.append(neighbour)
        return best

    @PETSc.Log.EventDecorator()
    def brute_force(self, point):
        """
        Test every element in order of increasing number.

        :arg point: the point to locate
        :return: the first element containing the point, or
            :attr:`SearchState.NOT_FOUND`
        :rtype: :class:`LocationResult`
        """
        tri = self.triangulation
        corners = tri.coordinates[tri.cells]
        edges = np.roll(corners, -1, axis=1) - corners
        offsets = np.asarray(point, dtype=float) - corners
        lengths = np.einsum("ijk,ijk->ij", edges, edges)
        sides = (edges[..., 0] * offsets[..., 1] - edges[..., 1] * offsets[..., 0]) / (
            lengths
        )
        inside = np.all(sides >= -self.tolerance, axis=1) | np.all(
            sides <= self.tolerance, axis=1
        )
        candidates = np.flatnonzero(inside)
        if len(candidates) == 0:
            return LocationResult(SearchState.NOT_FOUND)
        return LocationResult(SearchState.FOUND, element=int(candidates[0]))

    def raytrace(self, point, start):
        """
        Walk from `start` towards `point` across the element edges cut by the ray
        joining the centroid of the current element to the point.

        The walk stops with :attr:`SearchState.LEFT_DOMAIN` if the ray leaves through
        a boundary edge and with :attr:`SearchState.EXHAUSTED` if no edge is cut or
        if the maximum number of hops is exceeded.

        :arg point: the point to locate
        :arg start: the element to start from
        :rtype: :class:`LocationResult`
        """
        return RaytraceSearch(self, point, start).run()

    def locate(self, point, hint=None):
        """
        Locate a point, raytracing from `hint` if given and falling back to brute force
        if the walk is exhausted.

        :arg point: the point to locate
        :kwarg hint: an element number to start a raytracing search from
        :type hint: :class:`int`
        :rtype: :class:`LocationResult`
        """
        if hint is None or hint < 0:
            return self.brute_force(point)
        result = self.raytrace(point, hint)
        if result.status in (SearchState.FOUND, SearchState.LEFT_DOMAIN):
            return result
        fallback = self.brute_force(point)
        return LocationResult(
            fallback.status, element=fallback.element, hops=result.hops
        )

    def nearest_element(self, point):
        """
        :arg point: a point, possibly outside the domain
        :return: the element whose centroid is closest to the point
        :rtype: :class:`int`
        """
        offsets = self.triangulation.centroids - np.asarray(point, dtype=float)
        return int(np.argmin(np.einsum("ij,ij->i", offsets, offsets)))


class HierarchicalLocator:
    """
    Locate points on the finest of a sequence of triangulations related by standard
    two-level refinement (see :meth:`~.Triangulation.refine`).

    Element :math:`i` of each level must lie within element :math:`i` of the previous
    level, so that the element found on one level is a good starting point on the
    next.
    """

    def __init__(self, levels, max_hops=100, tolerance=1.0e-10):
        """
        :arg levels: triangulations ordered from coarsest to finest
        :type levels: :class:`list` of :class:`~.Triangulation`\\s
        :kwarg max_hops: maximum number of hops per level
        :type max_hops: :class:`int`
        :kwarg tolerance: relative tolerance for point-in-element tests
        :type tolerance: :class:`float`
        """
        if len(levels) == 0:
            raise ValueError("At least one triangulation is required.")
        self.locators = [
            PointLocator(tri, max_hops=max_hops, tolerance=tolerance) for tri in levels
        ]

    def locate(self, point):
        """
        :arg point: the point to locate
        :return: the result on the finest level, with hops accumulated over all levels.
            If the point is not found on a coarser level, the search stops there and no
            element is reported.
        :rtype: :class:`LocationResult`
        """
        result = self.locators[0].locate(point, hint=0)
        hops = result.hops
        for locator in self.locators[1:]:
            if not result.found:
                return LocationResult(result.status, hops=hops)
            result = locator.locate(point, hint=result.element)
            hops += result.hops
        return LocationResult(result.status, result.element, result.edge, hops)
