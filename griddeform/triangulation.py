"""
Array-based access to the topology and geometry of a 2D mesh.
"""

import firedrake
import numpy as np

from griddeform.math import signed_areas

__all__ = ["Triangulation"]


class Triangulation:
    r"""
    Array-based view of a 2D mesh of triangles or quadrilaterals.

    The view exposes everything point location and mesh deformation need to know
    about a mesh, regardless of whether it was built from a Firedrake mesh or from
    raw arrays:

    * :attr:`coordinates`: vertex coordinates, the only geometric data that changes
      during deformation;
    * :attr:`cells`: element vertices, ordered counter-clockwise;
    * :attr:`neighbours`: the element across local edge :math:`j`, which joins
      local vertices :math:`j` and :math:`j+1`, or ``-1`` on the domain boundary;
    * :attr:`edges`: global edge numbers of the local edges;
    * :attr:`edge_vertices`, :attr:`edge_cells` and :attr:`edge_markers`: edge
      based connectivity and boundary tags (``0`` for interior edges);
    * :attr:`boundary_ids` and :attr:`boundary_parameters`: the boundary tag of
      each vertex (``0`` for interior vertices) and its parameter value on the
      boundary curve (``NaN`` for interior vertices).
    """

    def __init__(self, coordinates, cells, boundary_markers=None, mesh=None):
        r"""
        :arg coordinates: vertex coordinates
        :type coordinates: :class:`numpy.ndarray` of shape :math:`n_v\times2`
        :arg cells: element vertex indices in cyclic order (either orientation)
        :type cells: :class:`numpy.ndarray` of shape :math:`n_e\times3` or
            :math:`n_e\times4`
        :kwarg boundary_markers: map from boundary tag to the vertices carrying that
            tag. A boundary edge is given the smallest tag carried by both of its
            vertices. If ``None``, all boundary edges are tagged ``1``.
        :type boundary_markers: :class:`dict`
        :kwarg mesh: the Firedrake mesh the arrays were extracted from, if any
        :type mesh: :class:`firedrake.mesh.MeshGeometry`
        """
        self.coordinates = np.array(coordinates, dtype=float)
        if self.coordinates.ndim != 2 or self.coordinates.shape[1] != 2:
            raise ValueError("Vertex coordinates must have shape (num_vertices, 2).")
        cells = np.array(cells, dtype=np.int64)
        if cells.ndim != 2 or cells.shape[1] not in (3, 4):
            raise ValueError("Only triangular and quadrilateral cells are supported.")
        flip = signed_areas(self.coordinates, cells) < 0
        cells[flip] = cells[flip, ::-1]
        self.cells = cells
        self.mesh = mesh
        self._build_adjacency()
        self._mark_boundary(boundary_markers)
        self.boundary_parameters = np.full(self.num_vertices, np.nan)

    @classmethod
    def from_arrays(cls, coordinates, cells, boundary_markers=None):
        """
        Build a :class:`Triangulation` directly from coordinate and cell arrays.
        """
        return cls(coordinates, cells, boundary_markers=boundary_markers)

    @classmethod
    def from_mesh(cls, mesh):
        """
        Build a :class:`Triangulation` from a Firedrake mesh.

        Vertex numbers coincide with the node numbers of :math:`\\mathbb{P}1` spaces
        on `mesh` and element numbers with its cell numbers. Boundary tags are taken
        from the exterior facet markers of the mesh.

        :arg mesh: a linear triangular mesh
        :type mesh: :class:`firedrake.mesh.MeshGeometry`
        """
        cellname = mesh.ufl_cell().cellname()
        if cellname != "triangle":
            raise ValueError(f"Cell type '{cellname}' not supported.")
        if mesh.coordinates.ufl_element().degree() != 1:
            raise NotImplementedError("Triangulations of curved meshes not supported.")
        coord_space = mesh.coordinates.function_space()
        P1 = firedrake.FunctionSpace(mesh, "CG", 1)
        boundary_markers = {
            int(tag): firedrake.DirichletBC(P1, 0, int(tag)).nodes
            for tag in mesh.exterior_facets.unique_markers
        }
        return cls(
            mesh.coordinates.dat.data_ro,
            coord_space.cell_node_map().values,
            boundary_markers=boundary_markers,
            mesh=mesh,
        )

    def _build_adjacency(self):
        nel, nve = self.cells.shape
        starts = self.cells.ravel()
        ends = np.roll(self.cells, -1, axis=1).ravel()
        pairs = np.sort(np.stack([starts, ends], axis=1), axis=1)
        self.edge_vertices, inverse = np.unique(pairs, axis=0, return_inverse=True)
        inverse = np.asarray(inverse).ravel()
        if np.bincount(inverse).max() > 2:
            raise ValueError("Edges shared by more than two cells are not supported.")
        self.edges = inverse.reshape(nel, nve)

        # Record the (up to two) cells on either side of each edge
        owners = np.repeat(np.arange(nel), nve)
        order = np.argsort(inverse, kind="stable")
        sorted_edges = inverse[order]
        first = np.ones(len(order), dtype=bool)
        first[1:] = sorted_edges[1:] != sorted_edges[:-1]
        self.edge_cells = np.full((len(self.edge_vertices), 2), -1, dtype=np.int64)
        self.edge_cells[sorted_edges[first], 0] = owners[order[first]]
        self.edge_cells[sorted_edges[~first], 1] = owners[order[~first]]

        candidates = self.edge_cells[self.edges]
        own = np.arange(nel)[:, None]
        self.neighbours = np.where(
            candidates[..., 0] == own, candidates[..., 1], candidates[..., 0]
        )

        # Lowest numbered cell touching each vertex
        self.elements_at_vertex = np.full(self.num_vertices, -1, dtype=np.int64)
        self.elements_at_vertex[self.cells[::-1].ravel()] = owners[::-1]

    def _mark_boundary(self, boundary_markers):
        boundary_edges = self.boundary_edges
        self.edge_markers = np.zeros(len(self.edge_vertices), dtype=np.int64)
        if boundary_markers is None:
            self.edge_markers[boundary_edges] = 1
        else:
            for tag in sorted(boundary_markers, reverse=True):
                if tag <= 0:
                    raise ValueError(f"Boundary tags must be positive, not {tag}.")
                vertices = np.asarray(boundary_markers[tag], dtype=np.int64)
                ends = self.edge_vertices[boundary_edges]
                tagged = np.isin(ends, vertices).all(axis=1)
                self.edge_markers[boundary_edges[tagged]] = tag
        untagged = boundary_edges[self.edge_markers[boundary_edges] == 0]
        if len(untagged) > 0:
            raise ValueError(f"{len(untagged)} boundary edges have no boundary tag.")
        self.boundary_ids = np.zeros(self.num_vertices, dtype=np.int64)
        for tag in sorted(set(self.edge_markers[boundary_edges]), reverse=True):
            edges = boundary_edges[self.edge_markers[boundary_edges] == tag]
            self.boundary_ids[self.edge_vertices[edges].ravel()] = tag

    @property
    def num_vertices(self):
        return len(self.coordinates)

    @property
    def num_cells(self):
        return len(self.cells)

    @property
    def num_edges(self):
        return len(self.edge_vertices)

    @property
    def boundary_edges(self):
        """
        :return: global numbers of the edges on the domain boundary
        :rtype: :class:`numpy.ndarray`
        """
        return np.flatnonzero(self.edge_cells[:, 1] < 0)

    @property
    def boundary_vertices(self):
        """
        :return: indices of the vertices on the domain boundary
        :rtype: :class:`numpy.ndarray`
        """
        return np.flatnonzero(self.boundary_ids > 0)

    @property
    def interior_vertices(self):
        """
        :return: indices of the vertices in the domain interior
        :rtype: :class:`numpy.ndarray`
        """
        return np.flatnonzero(self.boundary_ids == 0)

    @property
    def areas(self):
        """
        :return: signed element areas for the current coordinates
        :rtype: :class:`numpy.ndarray`
        """
        return signed_areas(self.coordinates, self.cells)

    @property
    def total_area(self):
        """
        :return: the area of the domain, as the sum of the element areas
        :rtype: :class:`float`
        """
        return float(np.sum(self.areas))

    @property
    def centroids(self):
        """
        :return: element centroids for the current coordinates
        :rtype: :class:`numpy.ndarray`
        """
        return self.coordinates[self.cells].mean(axis=1)

    def cell_coordinates(self, cell):
        """
        :arg cell: an element number
        :return: the coordinates of the element's vertices in counter-clockwise order
        :rtype: :class:`numpy.ndarray`
        """
        return self.coordinates[self.cells[cell]]

    def directed_boundary_edge(self, edge):
        """
        Orient a boundary edge such that the domain lies on its left.

        :arg edge: global number of a boundary edge
        :return: the start and end vertex of the edge
        :rtype: :class:`tuple` of :class:`int`\\s
        """
        cell = self.edge_cells[edge, 0]
        j = int(np.flatnonzero(self.edges[cell] == edge)[0])
        nve = self.cells.shape[1]
        return int(self.cells[cell, j]), int(self.cells[cell, (j + 1) % nve])

    def copy(self):
        """
        :return: a deep copy of the arrays, sharing the underlying mesh (if any)
        :rtype: :class:`Triangulation`
        """
        tri = Triangulation.__new__(Triangulation)
        for key, value in self.__dict__.items():
            tri.__dict__[key] = value.copy() if isinstance(value, np.ndarray) else value
        return tri

    def update_mesh(self):
        """
        Write the current vertex coordinates back into the underlying Firedrake mesh.
        """
        if self.mesh is not None:
            self.mesh.coordinates.dat.data_with_halos[:] = self.coordinates

    def refine(self):
        """
        Apply one step of standard two-level refinement.

        Each element is split into four children by connecting its edge midpoints
        (and, for quadrilaterals, its centroid). The child at the first vertex of
        element :math:`i` keeps number :math:`i`, so that element :math:`i` of the
        refined mesh lies within element :math:`i` of this mesh. The remaining
        children are appended.

        :return: the refined triangulation (not attached to a Firedrake mesh)
        :rtype: :class:`Triangulation`
        """
        nv, nel, nve = self.num_vertices, self.num_cells, self.cells.shape[1]
        midpoints = self.coordinates[self.edge_vertices].mean(axis=1)
        coordinates = [self.coordinates, midpoints]
        m = nv + self.edges
        v = self.cells
        if nve == 3:
            keep = np.stack([v[:, 0], m[:, 0], m[:, 2]], axis=1)
            children = np.stack(
                [
                    np.stack([m[:, 0], v[:, 1], m[:, 1]], axis=1),
                    np.stack([m[:, 1], v[:, 2], m[:, 2]], axis=1),
                    np.stack([m[:, 0], m[:, 1], m[:, 2]], axis=1),
                ],
                axis=1,
            )
        else:
            coordinates.append(self.centroids)
            z = nv + self.num_edges + np.arange(nel)
            keep = np.stack([v[:, 0], m[:, 0], z, m[:, 3]], axis=1)
            children = np.stack(
                [
                    np.stack([m[:, 0], v[:, 1], m[:, 1], z], axis=1),
                    np.stack([z, m[:, 1], v[:, 2], m[:, 2]], axis=1),
                    np.stack([m[:, 3], z, m[:, 2], v[:, 3]], axis=1),
                ],
                axis=1,
            )
        cells = np.concatenate([keep, children.reshape(3 * nel, nve)])

        # Midpoints of boundary edges inherit the tags of their parent edges
        markers = {}
        for edge in self.boundary_edges:
            tag = int(self.edge_markers[edge])
            members = markers.setdefault(tag, [])
            members.extend([*self.edge_vertices[edge], nv + edge])
        coordinates = np.concatenate(coordinates)
        return Triangulation(coordinates, cells, boundary_markers=markers)
