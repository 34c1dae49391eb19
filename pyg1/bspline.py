# -*- coding: utf-8 -*-
"""Univariate B-spline bases and tensor product spline functions.

A tensor product basis is simply a tuple of :class:`KnotVector` instances,
one per coordinate direction, in ``(y, x)`` order.
"""

import numpy as np
import scipy.sparse

from .tensor import apply_tprod


class KnotVector:
    """An open knot vector `knots` together with the spline degree `p`.

    The first and last knot are expected to be repeated `p+1` times;
    interior knots may have any multiplicity up to `p`.

    The G1 DOF classifier only needs a few facts about a univariate basis:
    the degree :attr:`p`, the dimension :attr:`numdofs`, the number of
    elements :attr:`numspans` and the multiplicity of the interior knots
    (:meth:`multiplicity_index`).

    Attributes:
        kv (ndarray): vector of knots
        p (int): spline degree
    """

    def __init__(self, knots, p):
        self.kv = np.asarray(knots, dtype=float)
        assert np.all(np.diff(self.kv) >= 0), 'knots must be nondecreasing'
        self.p = p
        self._breaks = None

    def __repr__(self):
        return 'KnotVector(%r, %r)' % (self.kv, self.p)

    def __eq__(self, other):
        return (isinstance(other, KnotVector) and self.p == other.p
                and self.kv.shape == other.kv.shape
                and np.allclose(self.kv, other.kv, rtol=1e-8, atol=1e-8))

    def __hash__(self):
        return hash((self.p, len(self.kv)))

    def _unique(self):
        if self._breaks is None:
            self._breaks = np.unique(self.kv, return_counts=True)
        return self._breaks

    @property
    def numdofs(self):
        """Dimension of the spline space"""
        return len(self.kv) - self.p - 1

    @property
    def mesh(self):
        """The breakpoints, i.e., the knots without repetitions"""
        return self._unique()[0]

    @property
    def numspans(self):
        """Number of nonempty knot spans"""
        return len(self.mesh) - 1

    def copy(self):
        return KnotVector(self.kv.copy(), self.p)

    def support(self, j=None):
        """Interval spanned by the knots, or by the support of basis function `j`."""
        if j is not None:
            return (self.kv[j], self.kv[j + self.p + 1])
        return (self.kv[0], self.kv[-1])

    def multiplicity(self, u):
        """Number of occurrences of the knot `u`; zero if `u` is not a knot."""
        breaks, counts = self._unique()
        k = np.searchsorted(breaks, u)
        tol = 1e-12 * max(1.0, abs(u))
        if k < len(breaks) and abs(breaks[k] - u) <= tol:
            return int(counts[k])
        return 0

    def multiplicity_index(self, i):
        """Multiplicity of the knot at position `i` of the knot vector.

        With ``i = p+1``, this is the multiplicity of the first interior knot
        and thus determines the smoothness of the spline space.
        """
        return self.multiplicity(self.kv[i])

    def findspans(self, u):
        """For every point in `u`, the index `i` of the knot span
        ``[kv[i], kv[i+1])`` containing it.

        The result lies in ``[p, numdofs-1]``; the right end point of the
        knot vector is assigned to the last nonempty span.
        """
        spans = np.searchsorted(self.kv, u, side='right') - 1
        return np.clip(spans, self.p, self.numdofs - 1)

    def findspan(self, u):
        """Scalar version of :meth:`findspans`."""
        return int(self.findspans(u))

    def greville(self):
        """The Gréville abscissae, i.e., the averages of `p` consecutive knots."""
        p, kv = self.p, self.kv
        if p == 0:
            return 0.5 * (kv[1:] + kv[:-1])
        g = np.array([kv[i+1 : i+p+1].mean() for i in range(self.numdofs)])
        return np.clip(g, kv[0], kv[-1])    # against roundoff

    def refine(self, new_knots=None, mult=1):
        """Insert `new_knots` into a copy of this knot vector. By default, the
        midpoint of every span is inserted `mult` times."""
        if new_knots is None:
            mesh = self.mesh
            new_knots = np.repeat(0.5 * (mesh[1:] + mesh[:-1]), mult)
        return KnotVector(np.sort(np.concatenate((self.kv, new_knots))), self.p)


def make_knots(p, a, b, n, mult=1):
    """Open knot vector of degree `p` which splits `(a,b)` into `n` spans
    of equal length.

    The interior knots are repeated `mult` times, the end points `p+1` times.

    Returns:
        :class:`KnotVector`: the new knot vector
    """
    inner = np.linspace(a, b, n+1)[1:-1]
    return KnotVector(np.concatenate((np.full(p+1, float(a)),
                                      np.repeat(inner, mult),
                                      np.full(p+1, float(b)))), p)

def numdofs(kvs):
    """Dimension of the spline space over a :class:`KnotVector` or over a
    tensor product basis given as a tuple of them."""
    if isinstance(kvs, KnotVector):
        return kvs.numdofs
    return int(np.prod([kv.numdofs for kv in kvs]))

################################################################################

def active_deriv(knotvec, u, numderiv):
    """Evaluate all active B-spline basis functions and their derivatives
    up to `numderiv` at the points `u`.

    Returns an array with shape (numderiv+1, p+1) if `u` is scalar or
    an array with shape (numderiv+1, p+1, u.size) otherwise.
    """
    scalar = np.isscalar(u)
    u = np.ravel(np.asarray(u, dtype=float))
    kv, p = knotvec.kv, knotvec.p
    span = knotvec.findspans(u)
    m = u.size

    # N[q] holds the q+1 active B-splines of degree q at every point
    N = [np.ones((m, 1))]
    for q in range(1, p+1):
        j = np.arange(1, q+1)
        left  = u[:, None] - kv[span[:, None] + 1 - j]
        right = kv[span[:, None] + j] - u[:, None]
        Nq = np.zeros((m, q+1))
        for r in range(q):
            temp = N[-1][:, r] / (right[:, r] + left[:, q-r-1])
            Nq[:, r]   += right[:, r] * temp
            Nq[:, r+1] += left[:, q-r-1] * temp
        N.append(Nq)

    result = np.zeros((numderiv+1, p+1, m))
    result[0] = N[p].T
    # C[:, r, :] expresses the current derivative of the r-th active function
    # of degree p in terms of the active B-splines of a lower degree
    C = np.broadcast_to(np.eye(p+1), (m, p+1, p+1))
    for k in range(1, min(numderiv, p)+1):
        q = p - k + 1
        i = span[:, None] - q + 1 + np.arange(q)
        h = kv[i + q] - kv[i]
        with np.errstate(divide='ignore'):
            scale = np.where(h > 0, q / h, 0.0)
        C = (C[:, :, 1:] - C[:, :, :-1]) * scale[:, None, :]
        result[k] = np.einsum('mrl,ml->rm', C, N[p-k])
    return result[..., 0] if scalar else result

def collocation_derivs(kv, nodes, derivs=1):
    """Collocation matrices of the B-spline basis and its derivatives.

    Returns:
        list: `derivs+1` sparse CSR matrices of shape
        `(len(nodes), kv.numdofs)`; the `d`-th one holds the `d`-th
        derivatives of the basis functions (columns) at the nodes (rows).
    """
    nodes = np.ravel(np.asarray(nodes, dtype=float))
    m, width = nodes.size, kv.p + 1
    values = active_deriv(kv, nodes, derivs)
    rows = np.repeat(np.arange(m), width)
    cols = ((kv.findspans(nodes) - kv.p)[:, None] + np.arange(width)).ravel()
    return [scipy.sparse.csr_matrix((values[d].T.ravel(), (rows, cols)),
                                    shape=(m, kv.numdofs))
            for d in range(derivs + 1)]

def collocation(kv, nodes):
    """Sparse matrix of the values of all B-splines over `kv` (columns) at
    the given `nodes` (rows)."""
    return collocation_derivs(kv, nodes, derivs=0)[0]

################################################################################

_SIDE_NAMES = {'bottom': (-2, 0), 'top': (-2, 1), 'left': (-1, 0), 'right': (-1, 1)}

class BSplineFunc:
    """A function expressed in a tensor product B-spline basis.

    Arguments:
        kvs (seq): tuple of `d` :class:`KnotVector`, in ``(y, x)`` order
        coeffs (ndarray): coefficient array whose first `d` axes match the
            dimensions of the univariate bases. A single trailing axis makes
            the function vector-valued. A flat vector is reshaped to the
            tensor product shape.

    Attributes:
        kvs (tuple): the knot vectors of the tensor product basis
        coeffs (ndarray): the coefficients
        sdim (int): dimension of the parameter domain
        dim (int): number of output components
    """
    def __init__(self, kvs, coeffs):
        if isinstance(kvs, KnotVector):
            kvs = (kvs,)
        self.kvs = tuple(kvs)
        self.sdim = len(self.kvs)
        shape = tuple(kv.numdofs for kv in self.kvs)
        coeffs = np.asanyarray(coeffs)
        if coeffs.ndim == 1 and self.sdim > 1:
            coeffs = coeffs.reshape(shape)
        assert coeffs.shape[:self.sdim] == shape, 'coefficients do not match the basis'
        self.coeffs = coeffs
        extra = coeffs.shape[self.sdim:]
        self.dim = extra[0] if extra else 1

    def __call__(self, *x):
        return self.eval(*x)

    def is_scalar(self):
        return self.coeffs.ndim == self.sdim

    def is_vector(self):
        return self.coeffs.ndim == self.sdim + 1

    def eval(self, *x):
        """Evaluate the function at a single point, given in ``(x, y)`` order."""
        grid = tuple(np.atleast_1d(np.asarray(t, dtype=float)) for t in reversed(x))
        vals = self.grid_eval(grid)
        scalar_axes = tuple(k for k, t in enumerate(reversed(x)) if np.isscalar(t))
        vals = vals.squeeze(axis=scalar_axes)
        return vals.item() if vals.ndim == 0 else vals

    def grid_eval(self, gridaxes):
        """Values over the tensor grid with the 1D point sets `gridaxes`, given
        in ``(y, x)`` order. The result has the shape of the grid, followed by
        the output axis of vector-valued functions."""
        assert len(gridaxes) == self.sdim, 'grid has wrong dimension'
        return apply_tprod([collocation(kv, g) for (kv, g) in zip(self.kvs, gridaxes)],
                           self.coeffs)

    def grid_jacobian(self, gridaxes):
        """Jacobians over the tensor grid `gridaxes` (in ``(y, x)`` order).

        The result has the grid shape followed by the shape
        :attr:`dim` × :attr:`sdim`, with the derivatives in ``(x, y)`` order.
        For scalar functions, the gradient takes the place of the Jacobian.
        """
        assert len(gridaxes) == self.sdim, 'grid has wrong dimension'
        C = [collocation_derivs(kv, g, derivs=1) for (kv, g) in zip(self.kvs, gridaxes)]
        partials = [apply_tprod([C[j][int(j == i)] for j in range(self.sdim)], self.coeffs)
                    for i in range(self.sdim)]
        return np.stack(partials[::-1], axis=-1)

    def boundary(self, bdspec):
        """Restriction of the function to a side of the parameter domain.

        Args:
            bdspec: one of ``'left', 'right', 'bottom', 'top'``, or a sequence
                of `(axis, side)` pairs

        Returns:
            :class:`BSplineFunc` with :attr:`sdim` reduced by the number of
            restricted axes
        """
        if isinstance(bdspec, str):
            axis, side = _SIDE_NAMES[bdspec]
            bdspec = [(axis % self.sdim, side)]
        index = [slice(None)] * self.sdim
        for (axis, side) in bdspec:
            if not (0 <= axis < self.sdim and side in (0, 1)):
                raise ValueError('invalid boundary specification %s' % (bdspec,))
            index[axis] = -1 if side else 0
        removed = {axis for (axis, _) in bdspec}
        kvs = [kv for (k, kv) in enumerate(self.kvs) if k not in removed]
        return BSplineFunc(kvs, self.coeffs[tuple(index)])

    @property
    def support(self):
        """Parameter domain as one `(lower, upper)` pair per axis."""
        return tuple(kv.support() for kv in self.kvs)

    def copy(self):
        return BSplineFunc([kv.copy() for kv in self.kvs], self.coeffs.copy())

    def translate(self, offset):
        """Shift the function by `offset`."""
        return BSplineFunc(self.kvs, self.coeffs + offset)

    def scale(self, factor):
        """Multiply the function by a scalar or, componentwise, by a vector."""
        return BSplineFunc(self.kvs, self.coeffs * factor)

    def apply_matrix(self, A):
        """Multiply every control point by the matrix `A`, or by a
        per-control-point stack of matrices broadcast against the coefficients."""
        assert self.is_vector(), 'need a vector-valued function'
        return BSplineFunc(self.kvs, np.matmul(A, self.coeffs[..., None])[..., 0])

    def rotate_2d(self, angle):
        """Rotate a planar geometry counterclockwise by `angle`."""
        assert self.dim == 2, 'need a 2D vector function'
        c, s = np.cos(angle), np.sin(angle)
        return self.apply_matrix(np.array([[c, -s], [s, c]]))
