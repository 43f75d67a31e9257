import numpy as np
import sympy

__all__ = []


class DegenerateCellError(ValueError):
    """
    Raised when a computation requires an element of nonzero area.
    """


def equation_of_hyperplane(*points):
    r"""
    Deduce an expression for the equation of a hyperplane passing through a set of
    points.

    :arg points: points the hyperplane passes through
    :type points: :class:`tuple` of :class:`tuple`\s
    :returns: a function representing the hyperplane
    :rtype: :class:`~.Callable`
    """
    dim = len(points[0])
    assert len(points) >= dim
    for point in points:
        assert len(point) == dim
    indices = list(range(len(points)))
    try:
        Point, Hyperplane, name = {
            2: (sympy.Point2D, sympy.Line, "line"),
            3: (sympy.Point3D, sympy.Plane, "plane"),
        }[dim]
    except KeyError as exc:
        raise NotImplementedError(
            f"equation_of_hyperplane not implemented in {dim}D."
        ) from exc
    while len(indices) >= dim:
        np.random.shuffle(indices)
        try:
            hyperplane = Hyperplane(*(Point(points[i]) for i in indices[:dim]))

            def equation(*xyz):
                return hyperplane.distance(Point(xyz))

            return equation
        except ValueError:
            indices.pop(0)
    raise ValueError(f"Could not determine a {name} for the provided points.")


def cross(u, v):
    """
    :return: the scalar cross product of two 2D vectors
    :rtype: :class:`float`
    """
    return u[0] * v[1] - u[1] * v[0]


def signed_area(corners):
    r"""
    Compute the signed area of a triangle or a quadrilateral.

    Quadrilaterals are split along the diagonal joining their first and third
    vertices, so that their area is the sum of two triangle areas.

    :arg corners: vertex coordinates in cyclic order
    :type corners: :class:`numpy.ndarray` of shape :math:`n\times2`
    :return: the area, positive for counter-clockwise ordering
    :rtype: :class:`float`
    """
    corners = np.asarray(corners, dtype=float)
    area = 0.5 * cross(corners[1] - corners[0], corners[2] - corners[0])
    if len(corners) == 4:
        area += 0.5 * cross(corners[2] - corners[0], corners[3] - corners[0])
    return area


def signed_areas(coordinates, cells):
    r"""
    Vectorised version of :func:`signed_area` for a whole mesh.

    :arg coordinates: vertex coordinates
    :type coordinates: :class:`numpy.ndarray` of shape :math:`n_v\times2`
    :arg cells: element vertex indices in cyclic order
    :type cells: :class:`numpy.ndarray` of shape :math:`n_e\times n_{ve}`
    :return: signed element areas
    :rtype: :class:`numpy.ndarray`
    """
    p = coordinates[cells]
    d1 = p[:, 1] - p[:, 0]
    d2 = p[:, 2] - p[:, 0]
    areas = 0.5 * (d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0])
    if cells.shape[1] == 4:
        d3 = p[:, 3] - p[:, 0]
        areas += 0.5 * (d2[:, 0] * d3[:, 1] - d2[:, 1] * d3[:, 0])
    return areas


def edge_orientations(point, corners):
    """
    Compute the cross products of each element edge with the vector from the edge's
    start vertex to `point`, normalised by the squared edge length.

    :arg point: the point to test
    :arg corners: vertex coordinates in cyclic order
    :return: one value per edge; zero means the point lies on the edge's line
    :rtype: :class:`numpy.ndarray`
    """
    corners = np.asarray(corners, dtype=float)
    edge = np.roll(corners, -1, axis=0) - corners
    offset = np.asarray(point, dtype=float) - corners
    lengths = np.einsum("ij,ij->i", edge, edge)
    return (edge[:, 0] * offset[:, 1] - edge[:, 1] * offset[:, 0]) / lengths


def point_in_element(point, corners, tol=1.0e-10):
    """
    Test whether a point lies inside a convex element by checking that it lies on the
    same side of every edge.

    Points on the boundary of the element (within `tol`) count as inside. Both
    orientations of the element are accepted, so that inverted elements are handled
    consistently.

    :arg point: the point to test
    :arg corners: vertex coordinates in cyclic order
    :kwarg tol: relative tolerance for the side test
    :return: ``True`` if the point lies inside or on the boundary
    :rtype: :class:`bool`
    """
    sides = edge_orientations(point, corners)
    return bool(np.all(sides >= -tol) or np.all(sides <= tol))


def segments_intersect(p1, p2, q1, q2):
    """
    Test whether the closed line segments `p1 -> p2` and `q1 -> q2` intersect.

    :return: ``True`` if the segments share at least one point
    :rtype: :class:`bool`
    """
    p1, p2, q1, q2 = (np.asarray(x, dtype=float) for x in (p1, p2, q1, q2))
    d1 = cross(q2 - q1, p1 - q1)
    d2 = cross(q2 - q1, p2 - q1)
    d3 = cross(p2 - p1, q1 - p1)
    d4 = cross(p2 - p1, q2 - p1)
    if d1 * d2 > 0 or d3 * d4 > 0:
        return False
    if d1 == d2 == d3 == d4 == 0:
        # Collinear segments: check for overlapping projections
        axis = 0 if abs(p2[0] - p1[0]) + abs(q2[0] - q1[0]) > 0 else 1
        lo = max(min(p1[axis], p2[axis]), min(q1[axis], q2[axis]))
        hi = min(max(p1[axis], p2[axis]), max(q1[axis], q2[axis]))
        return lo <= hi
    return True


def barycentric_coordinates(point, corners):
    r"""
    Compute the barycentric coordinates of a point with respect to a triangle.

    These are the values of the :math:`\mathbb{P}1` basis functions of the triangle
    at the point. Points outside the triangle give negative coordinates, which
    corresponds to linear extrapolation.

    :arg point: the point
    :arg corners: the three vertices of the triangle
    :return: barycentric coordinates summing to one
    :rtype: :class:`numpy.ndarray`
    """
    a, b, c = np.asarray(corners, dtype=float)[:3]
    point = np.asarray(point, dtype=float)
    det = cross(b - a, c - a)
    if det == 0:
        raise DegenerateCellError(
            "Cannot compute barycentric coordinates of a degenerate cell."
        )
    l1 = cross(point - a, c - a) / det
    l2 = cross(b - a, point - a) / det
    return np.array([1.0 - l1 - l2, l1, l2])
