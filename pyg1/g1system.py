r"""The G1 transformation matrix of a multipatch discretization and the
reduced linear system.

A :class:`G1System` collects the global G1 basis functions of a multipatch
domain in a sparse matrix :math:`D`. Row :math:`r` of :math:`D` contains the
coefficients of global basis function :math:`r` with respect to the
concatenated local tensor product bases of all patches. The rows are indexed
by the chained offset tables of a :class:`.G1Dofs` object.

The basis functions themselves are computed elsewhere, one small piece per
contributing patch, and handed to the system via :meth:`G1System.insert_interface`,
:meth:`G1System.insert_boundary_edge` and :meth:`G1System.insert_vertex`.
After :meth:`G1System.finalize`, the matrix is split into the free rows
:math:`D_0` and the prescribed boundary rows :math:`D_B`, and a linear system
:math:`Ku=f` in the local bases is reduced to

.. math:: D_0 K D_0^T x = D_0 f - D_0 K D_B^T g,

where :math:`g` holds the prescribed boundary coefficients.

A typical usage looks as follows::

    S = G1System(mesh)
    for ...:
        S.insert_interface((piece1, piece2), i, k)
    ...
    S.finalize(g)
    K = assemble.multipatch_matrix(mesh, assemble.stiffness)
    f = assemble.multipatch_rhs(mesh, f_func)
    x = S.solve(K, f)
    u = S.construct_solution_fields(x)

.. autoclass:: G1System
    :members:

.. autoclass:: StateError
"""
import numpy as np
import scipy.sparse

from . import operators, solvers
from .bspline import BSplineFunc
from .dofs import G1Dofs, DofCategory, VertexKind, PRUNE_TOL, INTERIOR_MARGIN
from .topology import ConfigurationError


class StateError(RuntimeError):
    """Raised when the operations of a :class:`G1System` are called in the
    wrong order, e.g., inserting basis functions after :meth:`G1System.finalize`
    or solving before it."""


def _piece_coeffs(piece):
    if isinstance(piece, BSplineFunc):
        assert piece.is_scalar(), 'basis pieces must be scalar functions'
        c = piece.coeffs
    else:
        c = piece
    return np.asarray(c, dtype=float).ravel()


class G1System:
    """Global G1 basis functions of a multipatch domain and the reduced system.

    The arguments are the same as for :class:`.G1Dofs`, which is used to
    set up the global index space and is available as the attribute `dofs`.

    Attributes:
        mesh: the underlying :class:`.PatchMesh`
        dofs: the :class:`.G1Dofs` describing the index space
        D: the full transformation matrix (after :meth:`finalize`)
        D_0: the rows of `D` belonging to free functions
        D_boundary: the rows of `D` belonging to prescribed functions
        g: the vector of prescribed coefficients, with full row length
    """
    def __init__(self, mesh, bases=None, secondary_bases=None, two_patch=False,
                 neumann=False, isogeometric=False, inner_knot_mult=0, verbose=0):
        self.mesh = mesh
        self.dofs = G1Dofs(mesh, bases=bases, secondary_bases=secondary_bases,
                two_patch=two_patch, neumann=neumann, isogeometric=isogeometric,
                inner_knot_mult=inner_knot_mult, verbose=verbose)
        self.verbose = verbose
        # triplets of the transformation matrix
        self._I, self._J, self._V = [], [], []
        self._written = set()
        self.finalized = False
        self.D = self.D_0 = self.D_boundary = None
        self.g = np.zeros(self.num_rows)

    @property
    def dim_K(self):
        return self.dofs.dim_K

    @property
    def dim_G1_Dofs(self):
        return self.dofs.dim_G1_Dofs

    @property
    def dim_G1_Bdy(self):
        return self.dofs.dim_G1_Bdy

    @property
    def num_rows(self):
        return self.dofs.num_rows

    def boundary_size(self):
        """Number of prescribed functions, i.e., the length of `g` in :meth:`finalize`."""
        T = self.dofs.offsets(DofCategory.BOUNDARY_VERTEX)
        return int(T[-1] - self.dofs.offsets(DofCategory.BOUNDARY_EDGE)[0])

    def offsets(self, category):
        return self.dofs.offsets(category)

    def count(self, category, i):
        return self.dofs.count(category, i)

    def row_range(self, category, i):
        return self.dofs.row_range(category, i)

    def size_plus_interface(self, i):
        return self.dofs.size_plus_interface[i]

    def size_plus_boundary(self, i):
        return self.dofs.size_plus_boundary[i]

    ############################################################################
    # Row routing
    ############################################################################

    def interface_row(self, i, ordinal):
        """Determine the global row of interface function number `ordinal` of
        interface `i`.

        Returns:
            a triple `(category, entity, row)` naming the block which the row
            belongs to and the row itself
        """
        d = self.dofs
        T = d.offsets(DofCategory.INTERFACE)
        if not (d.two_patch and not d.neumann):
            return DofCategory.INTERFACE, i, int(T[i]) + ordinal

        # in two-patch mode, the first and last functions of the plus and
        # minus spaces as well as one function per kink belong to the vertices
        I = self.mesh.interfaces[i]
        s = d.size_plus_interface[i]
        kink0, kink1 = d.kinks[i]
        v0, v1 = self.mesh.interface_vertex(I, 0), self.mesh.interface_vertex(I, 1)
        B = d.offsets(DofCategory.BOUNDARY_VERTEX)
        if ordinal == 0 or ordinal == s:
            return DofCategory.BOUNDARY_VERTEX, v0, int(B[v0]) + (0 if ordinal == 0 else 1)
        elif ordinal == s - 1 or ordinal == 2*s - 2:
            return DofCategory.BOUNDARY_VERTEX, v1, int(B[v1]) + (0 if ordinal == s - 1 else 1)
        elif ordinal == 1 and kink0:
            return DofCategory.BOUNDARY_VERTEX, v0, int(B[v0]) + 2
        elif ordinal == s - 2 and kink1:
            return DofCategory.BOUNDARY_VERTEX, v1, int(B[v1]) + 2
        else:
            if ordinal < s - (2 if kink1 else 1):
                shift = 1 + kink0
            else:
                shift = 3 + kink0 + kink1
            return DofCategory.INTERFACE, i, int(T[i]) + ordinal - shift

    def boundary_row(self, i, ordinal):
        """Determine the global row of function number `ordinal` of boundary side `i`.

        Returns:
            a triple `(category, entity, row)`
        """
        d = self.dofs
        s = d.size_plus_boundary[i]
        if d.neumann:
            split = None
        elif d.two_patch:
            split = s
        else:
            split = s - 6
        if split is None or ordinal < split:
            return DofCategory.BOUNDARY_EDGE, i, int(d.offsets(DofCategory.BOUNDARY_EDGE)[i]) + ordinal
        else:
            return DofCategory.EDGE, i, int(d.offsets(DofCategory.EDGE)[i]) + ordinal - split

    def vertex_row(self, v, n_dofs, ordinal):
        """Determine the global row of function number `ordinal` of vertex `v`,
        where the first `n_dofs` functions are free.

        Returns:
            a triple `(category, entity, row)`
        """
        d = self.dofs
        if d.kind_of_vertex[v] == VertexKind.INTERIOR or ordinal < n_dofs:
            return DofCategory.VERTEX, v, int(d.offsets(DofCategory.VERTEX)[v]) + ordinal
        else:
            return DofCategory.BOUNDARY_VERTEX, v, int(d.offsets(DofCategory.BOUNDARY_VERTEX)[v]) + ordinal - n_dofs

    ############################################################################
    # Insertion
    ############################################################################

    def _check_mutable(self):
        if self.finalized:
            raise StateError('cannot insert basis functions after finalize()')

    def _insert(self, route, patch, piece, columns):
        category, entity, row = route
        rng = self.dofs.row_range(category, entity)
        if row not in rng:
            raise ConfigurationError('%s %d: row %d is outside of its block [%d, %d)'
                    % (category.name, entity, row, rng.start, rng.stop))
        if (row, patch) in self._written:
            raise ConfigurationError('%s %d: row %d has already been written for patch %d'
                    % (category.name, entity, row, patch))
        T = self.dofs.offsets(columns)
        c = _piece_coeffs(piece)
        n = int(T[patch+1] - T[patch])
        if c.size != n:
            raise ConfigurationError('%s %d: piece for patch %d has %d coefficients, expected %d'
                    % (category.name, entity, patch, c.size, n))
        self._written.add((row, patch))
        nz = np.flatnonzero(np.abs(c) > np.sqrt(PRUNE_TOL))
        self._I.append(np.full(len(nz), row, dtype=int))
        self._J.append(T[patch] + nz)
        self._V.append(c[nz])

    def _check_piece_count(self, route, pieces, expected):
        category, entity, row = route
        if len(pieces) != expected:
            raise ConfigurationError('%s %d: row %d got %d pieces, expected %d'
                    % (category.name, entity, row, len(pieces), expected))

    def insert_interface(self, pieces, interface, ordinal):
        """Insert an interface basis function.

        Args:
            pieces: pair of :class:`.BSplineFunc` (or coefficient arrays), the
                restrictions of the basis function to the first and the second
                patch of the interface
            interface (int): index of the interface in `mesh.interfaces`
            ordinal (int): number of the function within the interface space
        """
        self._check_mutable()
        I = self.mesh.interfaces[interface]
        route = self.interface_row(interface, ordinal)
        self._check_piece_count(route, pieces, 2)
        for (patch, piece) in zip((I.first.patch, I.second.patch), pieces):
            self._insert(route, patch, piece, DofCategory.PATCH_INTERFACE)

    def insert_boundary_edge(self, piece, side, ordinal):
        """Insert a basis function belonging to boundary side number `side`
        (an index into `mesh.boundaries`)."""
        self._check_mutable()
        patch = self.mesh.boundaries[side].patch
        self._insert(self.boundary_row(side, ordinal), patch, piece, DofCategory.PATCH_INTERIOR)

    def insert_vertex(self, pieces, patches, vertex, n_dofs, ordinal):
        """Insert a vertex basis function.

        Args:
            pieces: one piece per patch in `patches`
            patches: indices of the patches which meet at the vertex
            vertex (int): the vertex index
            n_dofs (int): number of free functions of this vertex; the remaining
                ones are prescribed boundary functions (ignored for interior vertices)
            ordinal (int): number of the function at this vertex
        """
        self._check_mutable()
        route = self.vertex_row(vertex, n_dofs, ordinal)
        self._check_piece_count(route, pieces, len(patches))
        for (patch, piece) in zip(patches, pieces):
            self._insert(route, patch, piece, DofCategory.PATCH_INTERIOR)

    ############################################################################
    # Reduction and solution
    ############################################################################

    def _interior_columns(self, p):
        """Global columns of the coefficients of patch `p` which lie at least
        :data:`INTERIOR_MARGIN` layers away from every side."""
        kvs = self.dofs.bases[p]
        ny, nx = kvs[0].numdofs, kvs[1].numdofs
        m = INTERIOR_MARGIN
        iy, ix = np.mgrid[m:max(ny-m, m), m:max(nx-m, m)]
        return self.dofs.offsets(DofCategory.PATCH_INTERIOR)[p] + (iy * nx + ix).ravel()

    def finalize(self, g=None):
        """Add the interior basis functions and set up :math:`D_0` and
        :math:`D_B`.

        Args:
            g: the prescribed coefficients of the boundary edge and boundary
                vertex functions, a vector of length :meth:`boundary_size`;
                zero by default
        """
        if self.finalized:
            raise StateError('finalize() has already been called')
        n_free, n_fixed = self.dim_G1_Dofs, self.dim_G1_Bdy
        n0 = n_free + n_fixed

        if g is None:
            g = np.zeros(n_fixed)
        g = np.asarray(g, dtype=float).ravel()
        if g.shape != (n_fixed,):
            raise ConfigurationError('boundary vector has length %d, expected %d' % (g.size, n_fixed))

        # identity for the strictly interior coefficients of each patch
        interior = np.concatenate([self._interior_columns(p) for p in range(self.mesh.numpatches)])
        I = np.concatenate(self._I + [n0 + interior])
        J = np.concatenate(self._J + [interior])
        V = np.concatenate(self._V + [np.ones(len(interior))])
        self.D = scipy.sparse.coo_matrix((V, (I.astype(int), J.astype(int))),
                shape=(self.num_rows, self.dim_K)).tocsr()

        free = np.zeros(self.num_rows)
        free[:n_free] = 1
        free[n0 + interior] = 1
        fixed = np.zeros(self.num_rows)
        fixed[n_free:n0] = 1
        self.free_rows = np.flatnonzero(free)
        self.D_0 = (scipy.sparse.diags(free) @ self.D).tocsr()
        self.D_boundary = (scipy.sparse.diags(fixed) @ self.D).tocsr()
        self.D_0.eliminate_zeros()
        self.D_boundary.eliminate_zeros()

        self.g[n_free:n0] = g
        self._I = self._J = self._V = None
        self.finalized = True
        if self.verbose > 0:
            print('G1 system: %d free functions, %d prescribed, %d interior; D has %d nonzeros'
                    % (n_free, n_fixed, len(interior), self.D.nnz))

    def _require_finalized(self, op):
        if not self.finalized:
            raise StateError('%s() requires finalize() to be called first' % op)

    def _check_solution(self, x):
        x = np.asarray(x, dtype=float).ravel()
        if x.shape != (self.num_rows,):
            raise ValueError('solution vector has length %d, expected %d' % (x.size, self.num_rows))
        return x

    def reduced_system(self, K, f):
        """Return the matrix :math:`A = D_0 K D_0^T` and the right-hand side
        :math:`F = D_0 f - D_0 K D_B^T g` over the full row index space."""
        self._require_finalized('reduced_system')
        if K.shape != (self.dim_K, self.dim_K):
            raise ConfigurationError('stiffness matrix has shape %s, expected %s'
                    % (K.shape, (self.dim_K, self.dim_K)))
        if not scipy.sparse.issparse(K):
            K = scipy.sparse.csr_matrix(K)
        f = np.asarray(f, dtype=float).ravel()
        if f.shape != (self.dim_K,):
            raise ConfigurationError('load vector has length %d, expected %d' % (f.size, self.dim_K))
        A = (self.D_0 @ K @ self.D_0.T).tocsr()
        F = self.D_0 @ f - self.D_0 @ (K @ (self.D_boundary.T @ self.g))
        return A, F

    def solve(self, K, f, solver=None, rtol=1e-10, maxiter=None, output=False):
        """Solve the reduced system for the stiffness matrix `K` and the load
        vector `f`, both given in the concatenated local bases of the patches.

        The system is restricted to the free rows and solved by :func:`.pcg`
        with a Jacobi preconditioner, unless a function ``solver(A, F)``
        returning the solution is passed. `K` is assumed to be symmetric.

        Returns:
            ndarray: the coefficient vector of length :attr:`num_rows`; the
            entries belonging to prescribed or unused rows are zero

        Raises:
            NumericalError: if the solver does not converge or does not
                produce a finite solution
        """
        self._require_finalized('solve')
        A, F = self.reduced_system(K, f)
        free = self.free_rows
        A = A[free][:, free]
        F = F[free]
        if solver is None:
            if maxiter is None:
                maxiter = 2 * len(F)
            y = solvers.pcg(A, F, P=operators.jacobi_preconditioner(A),
                    rtol=rtol, maxiter=maxiter, output=output)[0]
        else:
            y = np.asarray(solver(A, F), dtype=float).ravel()
        if not np.all(np.isfinite(y)):
            raise solvers.NumericalError('solve', 0, y, 'solver produced non-finite values')
        x = np.zeros(self.num_rows)
        x[free] = y
        return x

    ############################################################################
    # Reconstruction
    ############################################################################

    def _basis_block(self, row, patch, interface_basis=False):
        cat = DofCategory.PATCH_INTERFACE if interface_basis else DofCategory.PATCH_INTERIOR
        T = self.dofs.offsets(cat)
        return self.D[row, T[patch]:T[patch+1]].toarray().ravel()

    def get_single_basis(self, row, patch):
        """Coefficients of global basis function `row` on patch `patch` in the primary basis."""
        self._require_finalized('get_single_basis')
        return self._basis_block(row, patch)

    def get_single_interface_basis(self, row, patch):
        """Coefficients of global basis function `row` on patch `patch` in the interface basis."""
        self._require_finalized('get_single_interface_basis')
        return self._basis_block(row, patch, interface_basis=True)

    def get_single_boundary_basis(self, boundary_row, patch):
        """Coefficients of prescribed function number `boundary_row` on patch `patch`."""
        self._require_finalized('get_single_boundary_basis')
        return self._basis_block(self.dim_G1_Dofs + boundary_row, patch)

    def _piece(self, row, patch, scale, interface_basis=False):
        kvs = (self.dofs.interface_bases if interface_basis else self.dofs.bases)[patch]
        return BSplineFunc(kvs, scale * self._basis_block(row, patch, interface_basis))

    def construct_g1_solution(self, x, include_interior=True):
        """Expand the coefficient vector `x` into the individual contributions
        of all global basis functions.

        The free functions are scaled by their coefficient in `x` and the
        prescribed ones by their coefficient in `g`. The pieces are visited in
        the order interfaces, boundary sides, vertices.

        Returns:
            list: for every patch, the list of :class:`.BSplineFunc` pieces which
            contribute to it; if `include_interior` is true, the last one
            holds the interior coefficients
        """
        self._require_finalized('construct_g1_solution')
        x = self._check_solution(x)
        d, mesh = self.dofs, self.mesh
        result = [[] for _ in range(mesh.numpatches)]

        for (i, I) in enumerate(mesh.interfaces):
            for patch in (I.first.patch, I.second.patch):
                for row in d.row_range(DofCategory.INTERFACE, i):
                    result[patch].append(self._piece(row, patch, x[row], interface_basis=True))

        for (i, side) in enumerate(mesh.boundaries):
            for row in d.row_range(DofCategory.BOUNDARY_EDGE, i):
                result[side.patch].append(self._piece(row, side.patch, self.g[row]))
            for row in d.row_range(DofCategory.EDGE, i):
                result[side.patch].append(self._piece(row, side.patch, x[row]))

        for v in range(mesh.numvertices):
            # in two-patch mode, these rows hold the rerouted interface functions
            rerouted = (d.two_patch and not d.neumann
                        and d.kind_of_vertex[v] == VertexKind.INTERFACE_BOUNDARY)
            for patch in mesh.vertex_patches(v):
                for row in d.row_range(DofCategory.BOUNDARY_VERTEX, v):
                    result[patch].append(self._piece(row, patch, self.g[row], interface_basis=rerouted))
                for row in d.row_range(DofCategory.VERTEX, v):
                    result[patch].append(self._piece(row, patch, x[row]))

        if include_interior:
            n0 = self.dim_G1_Dofs + self.dim_G1_Bdy
            u = self.D[n0:].T @ x[n0:]
            T = d.offsets(DofCategory.PATCH_INTERIOR)
            for p in range(mesh.numpatches):
                result[p].append(BSplineFunc(d.bases[p], u[T[p]:T[p+1]]))
        return result

    def construct_solution(self, x):
        """Return the coefficients :math:`D_0^T x + D_B^T g` of the solution
        in the concatenated local bases as a vector of length :attr:`dim_K`."""
        self._require_finalized('construct_solution')
        x = self._check_solution(x)
        return self.D_0.T @ x + self.D_boundary.T @ self.g

    def construct_solution_fields(self, x):
        """Return the solution as one :class:`.BSplineFunc` per patch.

        Only possible if the interface functions are expressed in the primary bases.
        """
        if self.dofs.separate_secondary:
            raise ValueError('solution fields require the interface functions to use the primary bases')
        u = self.construct_solution(x)
        T = self.dofs.offsets(DofCategory.PATCH_INTERIOR)
        return [BSplineFunc(kvs, u[T[p]:T[p+1]]) for (p, kvs) in enumerate(self.dofs.bases)]

    def construct_sparse_g1_solution(self, x=None):
        """Return the contributions of all G1 basis functions as a sparse matrix.

        The first ``dim_G1_Dofs + dim_G1_Bdy`` rows are the corresponding rows
        of `D`, the free ones scaled by `x` and the prescribed ones by `g`.
        One more row holds the interior coefficients. Thus the column sums
        are the coefficients of the solution in the local bases.

        If `x` is not given, the free rows are not scaled and the last row
        indicates the interior coefficients.
        """
        self._require_finalized('construct_sparse_g1_solution')
        n_free, n0 = self.dim_G1_Dofs, self.dim_G1_Dofs + self.dim_G1_Bdy
        scale = np.ones(n0)
        scale[n_free:] = self.g[n_free:n0]
        if x is None:
            interior = np.asarray(self.D[n0:].sum(axis=0)).ravel()
        else:
            x = self._check_solution(x)
            scale[:n_free] = x[:n_free]
            interior = x[n0:n0 + self.dim_K]
        top = scipy.sparse.diags(scale) @ self.D[:n0]
        return scipy.sparse.vstack([top, scipy.sparse.csr_matrix(interior)], format='csr')
