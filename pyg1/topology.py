import collections
import itertools as it

import numpy as np
import networkx as nx
import matplotlib.pyplot as plt

from . import vis

#: Two corner tangents are considered non-parallel if the square of their
#: determinant exceeds this value.
KINK_TOL = 1e-25


class ConfigurationError(ValueError):
    """Raised when a multipatch topology or its spline bases are unsuitable
    for setting up a G1 system, e.g., an empty topology or an entity which
    would receive a negative number of degrees of freedom."""


PatchSide = collections.namedtuple('PatchSide', 'patch side')
PatchCorner = collections.namedtuple('PatchCorner', 'patch corner')
Interface = collections.namedtuple('Interface', 'first second flip')
Interface.__doc__ = """Oriented pairing of two patch sides.

The attributes `first` and `second` are :class:`PatchSide` instances. If
`flip` is true, the side parameters of the two patches run in opposite
directions along the interface.
"""

def bdspec_to_int(bdspec):
    """Side index `2*axis + side` (0..3) of a side given as an integer, as an
    `(axis, side)` pair or as a one-element sequence of such pairs."""
    if isinstance(bdspec, (int, np.integer)):
        return int(bdspec)
    if len(bdspec) == 1:
        bdspec = bdspec[0]
    axis, side = bdspec
    return 2 * axis + side

def int_to_bdspec(bdspec):
    """Inverse of :func:`bdspec_to_int`, returning one `(axis, side)` pair."""
    if isinstance(bdspec, tuple):
        return bdspec
    return divmod(bdspec, 2)

def corners(geo, ravel=False):
    """Return an array containing the locations of the 2^d corners of the given
    geometry."""
    vtx = geo.grid_eval(geo.support)
    if ravel:
        return vtx.reshape((-1, geo.dim))
    return vtx

def side_corners(side):
    """Return the two corner indices of a side (an integer 0..3, see
    :func:`bdspec_to_int`) in order of increasing side parameter.

    Corners are numbered as in :func:`corners` with `ravel=True`, i.e.,
    0 = (y0,x0), 1 = (y0,x1), 2 = (y1,x0), 3 = (y1,x1).
    """
    axis, s = int_to_bdspec(side)
    if axis == 0:   # bottom/top
        return (2*s, 2*s + 1)
    else:           # left/right
        return (s, 2 + s)

def _corner_param(geo, corner):
    supp = geo.support
    return (np.array([supp[0][corner // 2]]), np.array([supp[1][corner % 2]]))

def transversal_tangent(geo, side, corner):
    """Derivative of `geo` at the given corner in the parameter direction
    which leaves the given side, i.e., across an interface lying on it."""
    axis, _ = int_to_bdspec(side)
    jac = geo.grid_jacobian(_corner_param(geo, corner))[0, 0]   # dim x sdim
    return jac[:, geo.sdim - 1 - axis]     # Jacobian columns are in XY order


class PatchMesh:
    """Topology of a planar multipatch domain.

    Args:
        patches: a sequence of pairs `(kvs, geo)` with the tensor product
            knot vectors and the :class:`.BSplineFunc` geometry map of each patch

    On construction, the corners of all patches are merged into topological
    vertices, and pairs of patch sides which run between the same two vertices
    are joined into interfaces (see :meth:`compute_topology`).

    Attributes:
        vertices (list): locations of the topological vertices
        patches (list): the `(kvs, geo)` pairs
        patch_vertices (list): for each patch, the vertex indices of its four corners
        vertex_corners (list): for each vertex, the list of :class:`PatchCorner`
            which are located there
        interfaces (list): the :class:`Interface` instances
        boundaries (list): the :class:`PatchSide` instances without a neighbor
    """
    def __init__(self, patches=None, tol=1e-14):
        self.tol = tol
        self.vertices = []
        self.patches = []
        self.patch_vertices = []
        self.vertex_corners = []
        self.interfaces = []
        self.boundaries = []
        self.connected = False
        if patches:
            for (kvs, geo) in patches:
                self.add_patch(kvs, geo)
            self.compute_topology()

    @property
    def numpatches(self):
        return len(self.patches)

    @property
    def numvertices(self):
        return len(self.vertices)

    @property
    def geos(self):
        return [geo for (_, geo) in self.patches]

    @property
    def kvs(self):
        return [kvs for (kvs, _) in self.patches]

    def add_vertex(self, pos):
        """Add a new vertex at `pos` or return its index if one already exists there."""
        if self.vertices:
            dist = np.linalg.norm(np.asarray(self.vertices) - pos, axis=1)
            nearest = int(np.argmin(dist))
            if dist[nearest] < self.tol:
                return nearest
        self.vertices.append(pos)
        self.vertex_corners.append([])
        return len(self.vertices) - 1

    def add_patch(self, kvs, geo):
        """Add a patch; its corners are merged with the existing vertices.

        :meth:`compute_topology` has to be called after all patches have been added.
        """
        assert len(kvs) == 2 and geo.sdim == 2, 'only planar patches are supported'
        p = len(self.patches)
        vtx = [self.add_vertex(c) for c in corners(geo, ravel=True)]
        for (k, v) in enumerate(vtx):
            self.vertex_corners[v].append(PatchCorner(p, k))
        self.patches.append((tuple(kvs), geo))
        self.patch_vertices.append(vtx)
        return p

    def side_vertices(self, side):
        """Vertex indices at the start and end of a :class:`PatchSide`."""
        c0, c1 = side_corners(side.side)
        pv = self.patch_vertices[side.patch]
        return (pv[c0], pv[c1])

    def compute_topology(self):
        """Determine the interfaces and the outer boundary sides.

        Two sides of different patches form an interface if they connect the
        same pair of vertices. The interface is flipped if they do so in
        opposite directions.
        """
        self.interfaces = []
        joined = set()
        for p1, p2 in it.combinations(range(self.numpatches), 2):
            for s1, s2 in it.product(range(4), repeat=2):
                side1, side2 = PatchSide(p1, s1), PatchSide(p2, s2)
                if side1 in joined or side2 in joined:
                    continue
                v1, v2 = self.side_vertices(side1), self.side_vertices(side2)
                if v1[0] == v1[1]:
                    continue        # degenerate side
                if v1 == v2:
                    flip = False
                elif v1 == v2[::-1]:
                    flip = True
                else:
                    continue
                self.interfaces.append(Interface(side1, side2, flip))
                joined.update((side1, side2))

        self.boundaries = [PatchSide(p, s)
                for p in range(self.numpatches) for s in range(4)
                if PatchSide(p, s) not in joined]

        G = nx.Graph()
        G.add_nodes_from(range(self.numpatches))
        G.add_edges_from((I.first.patch, I.second.patch) for I in self.interfaces)
        self.connected = self.numpatches > 0 and nx.is_connected(G)

    def valence(self, v):
        """Number of patch corners which meet at vertex `v`."""
        return len(self.vertex_corners[v])

    def vertex_patches(self, v):
        return [pc.patch for pc in self.vertex_corners[v]]

    def sub_topology(self, patch_ids):
        """Return the :class:`PatchMesh` formed by the given patches only."""
        return PatchMesh([self.patches[p] for p in patch_ids], tol=self.tol)

    def interface_vertex(self, interface, end):
        """Index of the vertex at the start (`end=0`) or the end (`end=1`) of
        an interface, measured in the side parameter of its first patch."""
        return self.side_vertices(interface.first)[end]

    def interface_corners(self, interface, end):
        """The two :class:`PatchCorner` instances which meet at one end of an interface."""
        first, second = interface.first, interface.second
        end2 = 1 - end if interface.flip else end
        return (PatchCorner(first.patch, side_corners(first.side)[end]),
                PatchCorner(second.patch, side_corners(second.side)[end2]))

    def interface_kinks(self, interface, tol=KINK_TOL):
        """Detect kinks at both ends of an interface.

        At each end, the outer boundary curves of the two patches continue
        across the common vertex. The tangents of these curves are the
        derivatives across the interface, and the two patches meet with a
        kink if these tangents are not parallel.

        Returns:
            a pair of bools, one per interface end
        """
        kinks = []
        for end in (0, 1):
            c1, c2 = self.interface_corners(interface, end)
            t1 = transversal_tangent(self.patches[c1.patch][1], interface.first.side, c1.corner)
            t2 = transversal_tangent(self.patches[c2.patch][1], interface.second.side, c2.corner)
            det = t1[0] * t2[1] - t1[1] * t2[0]
            kinks.append(bool(det * det > tol))
        return tuple(kinks)

    def sanity_check(self):
        for I in self.interfaces:
            assert 0 <= I.first.patch < self.numpatches and 0 <= I.second.patch < self.numpatches
            assert 0 <= I.first.side < 4 and 0 <= I.second.side < 4
            for end in (0, 1):
                c1, c2 = self.interface_corners(I, end)
                assert self.patch_vertices[c1.patch][c1.corner] == self.patch_vertices[c2.patch][c2.corner], \
                    'interface corners do not match on patches %d and %d' % (c1.patch, c2.patch)
        for (v, pcs) in enumerate(self.vertex_corners):
            for pc in pcs:
                assert np.allclose(corners(self.patches[pc.patch][1], ravel=True)[pc.corner],
                        self.vertices[v]), 'corners do not match vertex information'
        num_sides = 2 * len(self.interfaces) + len(self.boundaries)
        assert num_sides == 4 * self.numpatches, 'some side is neither an interface nor a boundary'

    def draw(self, vertex_idx=False, patch_idx=False, nodes=False, bwidth=1, color=None, bcolor='black', axis='scaled', knots=False):
        """Plot the patches, their outer boundary and, optionally, the knot
        lines (`knots`), the vertices (`nodes`) and patch or vertex numbers."""
        if nodes:
            plt.scatter(*np.transpose(self.vertices), zorder=100)
        for (kvs, geo) in self.patches:
            lines = dict(gridy=kvs[0].mesh, gridx=kvs[1].mesh, lcolor='lightgray') if knots else dict(grid=2)
            vis.plot_geo(geo, color=color, boundary=True, **lines)
        for (p, b) in self.boundaries:
            vis.plot_geo(self.geos[p].boundary([int_to_bdspec(b)]), linewidth=bwidth, lcolor=bcolor)
        if patch_idx:
            for (p, geo) in enumerate(self.geos):
                mid = [0.5 * (a + b) for (a, b) in reversed(geo.support)]
                plt.annotate(str(p), geo(*mid), fontsize=18, color='green')
        if vertex_idx:
            for (v, pos) in enumerate(self.vertices):
                plt.annotate(str(v), pos, fontsize=18, color='red')
        plt.axis(axis)
