r"""Classification of the topological entities of a multipatch domain and
allocation of the global index space of a G1 discretization.

Every interface, boundary side and vertex of a :class:`.PatchMesh` owns a
number of global basis functions. Their counts depend on the spline bases
along the entity, on the kind of the vertex and on the chosen mode. The
counts are collected into cumulative offset tables, one per
:class:`DofCategory`, which are chained into one flat row index space
:math:`0, \ldots, \dim G_1 + \dim G_1^{bdy} + \dim K - 1`.

.. autoclass:: G1Dofs
    :members:

.. autoclass:: DofCategory
.. autoclass:: VertexKind
"""
import enum

import numpy as np

from . import bspline
from .topology import ConfigurationError, int_to_bdspec


class DofCategory(enum.IntEnum):
    """The categories of the global index space.

    Categories 0-4 are row blocks owned by the interfaces, boundary sides and
    vertices. Categories 5 and 6 are column blocks, one per patch, in the
    primary and in the secondary (interface) basis, respectively.
    """
    INTERFACE = 0
    EDGE = 1
    VERTEX = 2
    BOUNDARY_EDGE = 3
    BOUNDARY_VERTEX = 4
    PATCH_INTERIOR = 5
    PATCH_INTERFACE = 6


class VertexKind(enum.IntEnum):
    BOUNDARY = -1
    INTERIOR = 0
    INTERFACE_BOUNDARY = 1


#: Coefficients `c` with ``c**2 <= PRUNE_TOL`` are not stored.
PRUNE_TOL = 1e-25

#: Number of layers of coefficients along every patch side which are not
#: represented by the interior identity block.
INTERIOR_MARGIN = 2

#: Interface functions at the two ends which are routed elsewhere.
INTERFACE_EXCLUDED = 4
INTERFACE_EXCLUDED_NEUMANN = 8
INTERFACE_EXCLUDED_MULTIPATCH = 10

#: Additional plus-space functions per end if an interior knot of higher
#: multiplicity is present.
INNER_KNOT_FUNCTIONS = 3

#: Pairs `(vertex functions, boundary vertex functions)` per vertex kind.
TWO_PATCH_VERTEX_DOFS = {
    VertexKind.BOUNDARY:            (1, 3),
    VertexKind.INTERIOR:            (0, 0),
    VertexKind.INTERFACE_BOUNDARY:  (0, 2),     # plus one per kink
}
TWO_PATCH_NEUMANN_VERTEX_DOFS = {
    VertexKind.BOUNDARY:            (0, 4),
    VertexKind.INTERIOR:            (0, 0),
    VertexKind.INTERFACE_BOUNDARY:  (0, 4),
}
MULTIPATCH_VERTEX_DOFS = {
    VertexKind.BOUNDARY:            (1, 6),
    VertexKind.INTERIOR:            (6, 0),
    VertexKind.INTERFACE_BOUNDARY:  (3, 6),
}

_ROW_CATEGORIES = (DofCategory.INTERFACE, DofCategory.EDGE, DofCategory.VERTEX,
                   DofCategory.BOUNDARY_EDGE, DofCategory.BOUNDARY_VERTEX)


def side_kv(kvs, side):
    """The knot vector of the tensor product basis `kvs` which runs along
    the given side (an integer 0..3 or an `(axis, side)` pair)."""
    axis, _ = int_to_bdspec(side)
    return kvs[1 - axis]

def regularity(kv, p=None):
    """Regularity of the spline space across the first interior knot of
    `kv`, bounded by ``p - 2``."""
    if p is None:
        p = kv.p
    return min(p - kv.multiplicity_index(kv.p + 1) - 1, p - 2)


class G1Dofs:
    """Counts and offsets of the global G1 basis functions of a multipatch domain.

    Args:
        mesh: the :class:`.PatchMesh` describing the topology
        bases: one tensor product basis (a pair of :class:`.KnotVector`) per
            patch; by default, the knot vectors stored in `mesh` are used.
            Any objects providing `p`, `numdofs`, `numspans` and
            `multiplicity_index()` can be used instead of knot vectors.
        secondary_bases: optional bases for the interface functions, one per patch
        two_patch (bool): use the special rules for a domain consisting of
            exactly two patches with one interface
        neumann (bool): treat all boundary functions as prescribed
        isogeometric (bool): if true, the interface functions are expressed
            in the primary bases even if secondary bases are given
        inner_knot_mult (int): multiplicity of an interior knot of the interface
            space in two-patch mode; enlarges the plus spaces
        verbose (int): if positive, print the resulting tables

    The row categories are chained in the order of :class:`DofCategory`, i.e.,
    ``offsets(k)[0] == offsets(k-1)[-1]`` for ``k = 1, ..., 4``.
    The free rows are the interface, edge and vertex rows
    ``0, ..., dim_G1_Dofs-1`` and the interior rows starting at
    ``dim_G1_Dofs + dim_G1_Bdy``; the boundary edge and boundary vertex rows
    in between are prescribed.
    """
    def __init__(self, mesh, bases=None, secondary_bases=None, two_patch=False,
                 neumann=False, isogeometric=False, inner_knot_mult=0, verbose=0):
        if mesh.numpatches == 0:
            raise ConfigurationError('empty topology: the mesh has no patches')
        if not mesh.connected:
            raise ConfigurationError('disconnected topology: the %d patches do not form a connected domain'
                    % mesh.numpatches)
        if bases is None:
            bases = mesh.kvs
        bases = [tuple(kvs) for kvs in bases]
        if len(bases) != mesh.numpatches:
            raise ConfigurationError('expected %d bases, got %d' % (mesh.numpatches, len(bases)))
        if secondary_bases is not None:
            secondary_bases = [tuple(kvs) for kvs in secondary_bases]
            if len(secondary_bases) != mesh.numpatches:
                raise ConfigurationError('expected %d secondary bases, got %d'
                        % (mesh.numpatches, len(secondary_bases)))
        if two_patch and (mesh.numpatches != 2 or len(mesh.interfaces) != 1):
            raise ConfigurationError('two-patch mode requires exactly two patches with one interface, '
                    'got %d patches and %d interfaces' % (mesh.numpatches, len(mesh.interfaces)))

        self.mesh = mesh
        self.bases = bases
        self.two_patch = bool(two_patch)
        self.neumann = bool(neumann)
        self.isogeometric = bool(isogeometric)
        self.inner_knot_mult = inner_knot_mult
        self.separate_secondary = (secondary_bases is not None) and not self.isogeometric
        # bases in which the interface functions are expressed
        self.interface_bases = secondary_bases if self.separate_secondary else bases

        self.kinks = [mesh.interface_kinks(I) for I in mesh.interfaces]
        self.kind_of_vertex = [self._classify_vertex(v) for v in range(mesh.numvertices)]

        counts = {cat: [] for cat in DofCategory}
        self.size_plus_interface = []
        self.size_plus_boundary = []

        for (i, I) in enumerate(mesh.interfaces):
            n, s = self._interface_count(I, self.kinks[i])
            if n < 0:
                raise ConfigurationError('interface %d: degenerate interface with %d functions' % (i, n))
            counts[DofCategory.INTERFACE].append(n)
            self.size_plus_interface.append(s)

        for (i, side) in enumerate(mesh.boundaries):
            (n_bdy, n_edge), s = self._boundary_count(side)
            if n_bdy < 0 or n_edge < 0:
                raise ConfigurationError('boundary side %d (patch %d, side %d): too few basis functions along the side'
                        % (i, side.patch, side.side))
            counts[DofCategory.BOUNDARY_EDGE].append(n_bdy)
            counts[DofCategory.EDGE].append(n_edge)
            self.size_plus_boundary.append(s)

        for v in range(mesh.numvertices):
            n_vtx, n_bdy = self._vertex_count(v)
            counts[DofCategory.VERTEX].append(n_vtx)
            counts[DofCategory.BOUNDARY_VERTEX].append(n_bdy)

        counts[DofCategory.PATCH_INTERIOR] = [bspline.numdofs(kvs) for kvs in bases]
        counts[DofCategory.PATCH_INTERFACE] = [bspline.numdofs(kvs) for kvs in self.interface_bases]

        self._tables = {}
        start = 0
        for cat in _ROW_CATEGORIES:
            self._tables[cat] = start + np.concatenate(([0], np.cumsum(counts[cat], dtype=int)))
            start = self._tables[cat][-1]
        self._tables[DofCategory.PATCH_INTERIOR] = np.concatenate(
                ([0], np.cumsum(counts[DofCategory.PATCH_INTERIOR], dtype=int)))
        if self.separate_secondary:
            ofs = self._tables[DofCategory.PATCH_INTERIOR][-1]
        else:
            ofs = 0
        self._tables[DofCategory.PATCH_INTERFACE] = ofs + np.concatenate(
                ([0], np.cumsum(counts[DofCategory.PATCH_INTERFACE], dtype=int)))
        for T in self._tables.values():
            T.flags.writeable = False

        self.dim_G1_Dofs = int(self._tables[DofCategory.VERTEX][-1])
        self.dim_G1_Bdy = int(self._tables[DofCategory.BOUNDARY_VERTEX][-1]
                            - self._tables[DofCategory.BOUNDARY_EDGE][0])
        self.dim_K = int(max(self._tables[DofCategory.PATCH_INTERIOR][-1],
                             self._tables[DofCategory.PATCH_INTERFACE][-1]))

        if verbose > 0:
            self.print_info()

    @property
    def num_rows(self):
        """Size of the global row index space."""
        return self.dim_G1_Dofs + self.dim_G1_Bdy + self.dim_K

    @property
    def vertex_dofs(self):
        """The table of `(vertex, boundary vertex)` counts for the current mode."""
        if not self.two_patch:
            return MULTIPATCH_VERTEX_DOFS
        elif self.neumann:
            return TWO_PATCH_NEUMANN_VERTEX_DOFS
        else:
            return TWO_PATCH_VERTEX_DOFS

    def offsets(self, category):
        """Return the (read-only) offset table of the given :class:`DofCategory`."""
        return self._tables[DofCategory(category)]

    def count(self, category, i):
        """Number of functions of category `category` owned by entity `i`."""
        T = self.offsets(category)
        return int(T[i+1] - T[i])

    def row_range(self, category, i):
        """The range of global rows (or, for categories 5 and 6, columns)
        owned by entity `i` in the given category."""
        T = self.offsets(category)
        return range(int(T[i]), int(T[i+1]))

    def vertex_kinks(self, v):
        """Number of interface ends at vertex `v` where the patches meet with a kink."""
        n = 0
        for (I, kinks) in zip(self.mesh.interfaces, self.kinks):
            for end in (0, 1):
                if kinks[end] and self.mesh.interface_vertex(I, end) == v:
                    n += 1
        return n

    def _classify_vertex(self, v):
        if self.mesh.valence(v) == 1:
            return VertexKind.BOUNDARY
        # rebuild the topology of the incident patches only
        local = self.mesh.sub_topology(self.mesh.vertex_patches(v))
        if self.mesh.valence(v) == len(local.interfaces):
            return VertexKind.INTERIOR
        else:
            return VertexKind.INTERFACE_BOUNDARY

    def _interface_count(self, I, kinks):
        kvA = side_kv(self.bases[I.first.patch], I.first.side)
        kvB = side_kv(self.bases[I.second.patch], I.second.side)
        m_p = min(kvA.p, kvB.p)
        m_r = regularity(kvA, m_p)
        m_n = min(kvA.numspans, kvB.numspans)
        plus = (m_p - m_r - 1) * (m_n - 1) + m_p + 1
        raw = 2 * (m_p - m_r - 1) * (m_n - 1) + 2 * m_p + 1     # plus and minus space

        if self.two_patch:
            extra = 0
            if self.inner_knot_mult > 0 and m_p - 1 - m_r == 1:
                extra = INNER_KNOT_FUNCTIONS
            excluded = INTERFACE_EXCLUDED_NEUMANN if self.neumann else INTERFACE_EXCLUDED
            excluded += sum(kinks)
            return raw - excluded + 2 * extra, plus + extra
        else:
            return raw - INTERFACE_EXCLUDED_MULTIPATCH, plus

    def _boundary_count(self, side):
        """Return `((boundary edge, edge), size_plus)` for a boundary side."""
        kv = side_kv(self.bases[side.patch], side.side)
        if self.two_patch:
            n = kv.numdofs
            if self.neumann:
                return (2*n - 8, 0), n - 4
            else:
                return (n - 4, n - 4), n - 4
        else:
            m_r = regularity(kv)
            plus = (kv.p - m_r - 1) * (kv.numspans - 1) + kv.p + 1
            if self.neumann:
                return (2*plus - 11, 0), plus
            else:
                return (plus - 6, plus - 5), plus

    def _vertex_count(self, v):
        kind = self.kind_of_vertex[v]
        n_vtx, n_bdy = self.vertex_dofs[kind]
        if self.two_patch and not self.neumann and kind == VertexKind.INTERFACE_BOUNDARY:
            n_bdy += self.vertex_kinks(v)
        return n_vtx, n_bdy

    def print_info(self):
        names = {
            DofCategory.INTERFACE:       'Interface functions',
            DofCategory.EDGE:            'Edge functions',
            DofCategory.VERTEX:          'Vertex functions',
            DofCategory.BOUNDARY_EDGE:   'Boundary edge functions',
            DofCategory.BOUNDARY_VERTEX: 'Boundary vertex functions',
            DofCategory.PATCH_INTERIOR:  'Patch basis functions',
            DofCategory.PATCH_INTERFACE: 'Patch interface basis functions',
        }
        for cat in DofCategory:
            print('%-32s %s' % (names[cat], self._tables[cat]))
        print('%-32s %s' % ('Kind of vertices', [int(k) for k in self.kind_of_vertex]))
        print('%-32s %s' % ('Size of plus space (interfaces)', self.size_plus_interface))
        print('%-32s %s' % ('Size of plus space (boundary)', self.size_plus_boundary))
        print('dim_G1_Dofs = %d, dim_G1_Bdy = %d, dim_K = %d' % (self.dim_G1_Dofs, self.dim_G1_Bdy, self.dim_K))
