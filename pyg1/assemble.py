# -*- coding: utf-8 -*-
"""Single-patch and multipatch assembly of isogeometric systems.

Matrices and load vectors are assembled per patch by tensor product Gauss
quadrature and collected into block diagonal systems in the concatenated
local bases of a :class:`.PatchMesh`. A :class:`.G1System` then reduces
these to the global G1 space.

Assemblers
----------

.. autofunction:: mass
.. autofunction:: stiffness
.. autofunction:: biharmonic
.. autofunction:: inner_products
.. autofunction:: multipatch_matrix
.. autofunction:: multipatch_rhs
"""
import math

import numpy as np
import scipy.sparse

from . import bspline, operators, tensor, utils

################################################################################
# Quadrature
################################################################################

def gauss_nodes(mesh, nqp):
    """Nodes and weights of the composite Gauss-Legendre rule with `nqp`
    points in each interval of `mesh`."""
    x, w = np.polynomial.legendre.leggauss(nqp)
    h = 0.5 * np.diff(mesh)[:, None]      # halved interval lengths
    return (mesh[:-1, None] + h * (x + 1)).ravel(), (h * w).ravel()

def tensor_gauss(kvs, nqp):
    """Tensor product Gauss rule over the meshes of the knot vectors `kvs`.

    Returns:
        a pair `(grid, weights)` of tuples with one 1D array per direction
    """
    rules = [gauss_nodes(kv.mesh, nqp) for kv in kvs]
    return tuple(x for (x, _) in rules), tuple(w for (_, w) in rules)

################################################################################
# 1D assembling routines
################################################################################

def bsp_mass_1d(knotvec):
    """Assemble the mass matrix for the B-spline basis over the given knot vector."""
    return bsp_mixed_deriv_biform_1d(knotvec, 0, 0)

def bsp_stiffness_1d(knotvec):
    """Assemble the Laplacian stiffness matrix for the B-spline basis over the given knot vector."""
    return bsp_mixed_deriv_biform_1d(knotvec, 1, 1)

def bsp_mixed_deriv_biform_1d(knotvec, du, dv, nqp=None):
    """Assemble the matrix for a(u,v)=(u^(du),v^(dv)) for the B-spline basis over the given knot vector.

    Rows correspond to the test functions `v`, columns to the trial
    functions `u`. By default, the Gauss rule is exact for the
    piecewise polynomial integrand.
    """
    if nqp is None:
        nqp = max(int(math.ceil((2 * knotvec.p - du - dv + 1) / 2.0)), 1)
    nodes, weights = gauss_nodes(knotvec.mesh, nqp)
    C = bspline.collocation_derivs(knotvec, nodes, derivs=max(du, dv))
    return (C[dv].T @ scipy.sparse.diags(weights) @ C[du]).tocsr()

################################################################################
# 2D assembling routines
################################################################################

def _geo_quadrature(kvs, geo):
    """Tensor Gauss grid over the parameter domain together with the weights,
    multiplied by the Jacobian determinant of `geo`, and the Jacobians."""
    nqp = max(kv.p for kv in kvs) + 1
    grid, weights = tensor_gauss(kvs, nqp)
    jac = geo.grid_jacobian(grid).reshape((-1, 2, 2))
    w = np.outer(weights[0], weights[1]).ravel() * np.abs(np.linalg.det(jac))
    return grid, w, jac

def _check_kvs(kvs):
    kvs = tuple(kvs)
    assert len(kvs) == 2, 'only 2D tensor product bases are supported'
    return kvs

def mass(kvs, geo=None, format='csr'):
    """Assemble a mass matrix for the given tensor product B-spline basis
    with an optional geometry transform.
    """
    kvs = _check_kvs(kvs)
    if geo is None:
        return scipy.sparse.kron(bsp_mass_1d(kvs[0]), bsp_mass_1d(kvs[1]), format=format)
    grid, w, _ = _geo_quadrature(kvs, geo)
    B = scipy.sparse.kron(bspline.collocation(kvs[0], grid[0]),
                          bspline.collocation(kvs[1], grid[1]), format='csr')
    return (B.T @ scipy.sparse.diags(w) @ B).asformat(format)

def stiffness(kvs, geo=None, format='csr'):
    """Assemble a Laplace stiffness matrix for the given tensor product
    B-spline basis with an optional geometry transform.
    """
    kvs = _check_kvs(kvs)
    if geo is None:
        M = [bsp_mass_1d(kv) for kv in kvs]
        K = [bsp_stiffness_1d(kv) for kv in kvs]
        return (scipy.sparse.kron(K[0], M[1], format=format)
              + scipy.sparse.kron(M[0], K[1], format=format))
    grid, w, jac = _geo_quadrature(kvs, geo)
    Cy = bspline.collocation_derivs(kvs[0], grid[0], derivs=1)
    Cx = bspline.collocation_derivs(kvs[1], grid[1], derivs=1)
    # parameter derivatives in XY order, matching the Jacobian columns
    B = [scipy.sparse.kron(Cy[0], Cx[1], format='csr'),
         scipy.sparse.kron(Cy[1], Cx[0], format='csr')]
    jinv = np.linalg.inv(jac)
    G = np.matmul(jinv, np.swapaxes(jinv, -1, -2)) * w[:, None, None]
    A = sum(B[a].T @ scipy.sparse.diags(G[:, a, b]) @ B[b]
            for a in range(2) for b in range(2))
    return A.asformat(format)

def biharmonic(kvs, geo=None, format='csr'):
    r"""Assemble the matrix of the bilinear form :math:`(\Delta u, \Delta v)`
    over the parameter domain of the given tensor product B-spline basis.

    The basis needs to be at least :math:`C^1`-smooth within the patch.
    Geometry transforms are not supported.
    """
    assert geo is None, 'biharmonic is only implemented over the parameter domain'
    (kvy, kvx) = _check_kvs(kvs)
    def D(kv, du, dv):
        return bsp_mixed_deriv_biform_1d(kv, du, dv)
    k = lambda A, B: scipy.sparse.kron(A, B, format=format)
    return (k(D(kvy, 0, 0), D(kvx, 2, 2))
          + k(D(kvy, 0, 2), D(kvx, 2, 0))
          + k(D(kvy, 2, 0), D(kvx, 0, 2))
          + k(D(kvy, 2, 2), D(kvx, 0, 0)))

################################################################################
# Load vectors
################################################################################

def inner_products(kvs, f, f_physical=False, geo=None):
    """Load vector of `f`, i.e., the :math:`L_2` inner products of `f` with
    every function of the tensor product basis `kvs`.

    Args:
        kvs (seq): the :class:`.KnotVector` of each direction
        f: a :class:`.BSplineFunc` or a function of the coordinates in
            ``(x, y)`` order
        f_physical (bool): if true, `f` is evaluated in physical
            coordinates; this requires `geo`
        geo: optional :class:`.BSplineFunc` geometry map; without it, the
            integrals are over the parameter domain

    Returns:
        ndarray: array of shape ``(kvs[0].numdofs, kvs[1].numdofs)``
    """
    kvs = tuple(kvs)
    grid, weights = tensor_gauss(kvs, max(kv.p for kv in kvs) + 1)
    if f_physical:
        assert geo is not None, 'physical coordinates need a geometry'
        vals = utils.grid_eval_transformed(f, grid, geo)
    else:
        vals = utils.grid_eval(f, grid)
    vals = tensor.apply_tprod([operators.DiagonalOperator(w) for w in weights], vals)
    if geo is not None:
        vals = vals * np.abs(np.linalg.det(geo.grid_jacobian(grid)))
    # summing over the quadrature nodes
    return tensor.apply_tprod([bspline.collocation(kv, g).T for (kv, g) in zip(kvs, grid)],
                              vals)

################################################################################
# Multipatch systems
################################################################################

def multipatch_matrix(mesh, asm=stiffness, physical=True, format='csr'):
    """Assemble a block diagonal matrix over the concatenated local bases of
    all patches of a :class:`.PatchMesh`.

    Args:
        mesh: the :class:`.PatchMesh`
        asm: function with signature ``asm(kvs, geo)`` returning the matrix
            for a single patch, e.g., :func:`mass` or :func:`stiffness`
        physical (bool): whether to pass the patch geometries to `asm`;
            otherwise the matrices are assembled over the parameter domains
    """
    blocks = [asm(kvs, geo if physical else None) for (kvs, geo) in mesh.patches]
    return scipy.sparse.block_diag(blocks, format=format)

def multipatch_rhs(mesh, f, f_physical=True):
    """Assemble the load vector for the function `f` over all patches of a
    :class:`.PatchMesh` as one flat vector in the concatenated local bases."""
    return np.concatenate([
        inner_products(kvs, f, f_physical=f_physical, geo=geo).ravel()
        for (kvs, geo) in mesh.patches])
