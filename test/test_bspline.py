# -*- coding: utf-8 -*-

from pyg1.bspline import *

def _interpolate(kv, f):
    # interpolate at the Gréville points
    g = kv.greville()
    return np.linalg.solve(collocation(kv, g).toarray(), f(g))

def test_eval():
    # create random spline
    kv = make_knots(4, 0.0, 1.0, 25)
    n = kv.numdofs
    coeffs = np.random.rand(n)
    x = np.linspace(0.0, 1.0, 100)
    # evaluate through collocation matrix and through BSplineFunc
    values = collocation(kv, x).dot(coeffs)
    values2 = BSplineFunc(kv, coeffs).grid_eval((x,))
    assert np.linalg.norm(values - values2) < 1e-10
    # B-splines form a partition of unity
    assert np.allclose(collocation(kv, x).sum(axis=1), 1.0)

def test_interpolation():
    kv = make_knots(3, 0.0, 1.0, 10)
    coeffs = np.random.rand(kv.numdofs)
    def f(x): return collocation(kv, x).dot(coeffs)
    result = _interpolate(kv, f)
    assert np.allclose(coeffs, result)

def test_deriv():
    # create linear spline
    kv = make_knots(4, 0.0, 1.0, 25)
    coeffs = _interpolate(kv, lambda x: 1.0 + 2.5*x)
    # check that derivative is 2.5
    x = np.linspace(0.0, 1.0, 100)
    allders = collocation_derivs(kv, x, derivs=2)
    assert np.linalg.norm(allders[1].dot(coeffs) - 2.5) < 1e-10
    assert np.linalg.norm(allders[2].dot(coeffs)) < 1e-8

def test_active_deriv():
    kv = make_knots(3, 0.0, 1.0, 4)
    vals = active_deriv(kv, 0.3, 1)
    assert vals.shape == (2, 4)
    assert np.isclose(vals[0].sum(), 1.0)
    assert abs(vals[1].sum()) < 1e-12

def test_refine():
    kv = make_knots(2, 0.0, 1.0, 4)
    kv2 = kv.refine([0.1])
    assert kv2.p == kv.p and np.array_equal(kv2.kv,
            [0.0, 0.0, 0.0, 0.1, 0.25, 0.5, 0.75, 1.0, 1.0, 1.0])
    kv2 = kv.refine()
    assert kv2.p == kv.p and np.array_equal(kv2.kv, make_knots(2, 0.0, 1.0, 8).kv)

def test_multiplicity():
    kv = make_knots(3, 0.0, 1.0, 4)
    assert kv.numdofs == 7 and kv.numspans == 4
    assert kv.multiplicity(0.0) == 4
    assert kv.multiplicity(0.5) == 1
    assert kv.multiplicity(0.6) == 0
    assert kv.multiplicity_index(kv.p + 1) == 1
    kv = make_knots(3, 0.0, 1.0, 4, mult=2)
    assert kv.numspans == 4
    assert kv.multiplicity_index(kv.p + 1) == 2
    # a single span: the first "interior" knot is the end point
    kv = make_knots(2, 0.0, 1.0, 1)
    assert kv.multiplicity_index(kv.p + 1) == 3

def test_findspan():
    kv = make_knots(2, 0.0, 1.0, 4)
    assert kv.findspan(0.0) == 2
    assert kv.findspan(0.3) == 3
    assert kv.findspan(1.0) == 5
    assert np.array_equal(kv.findspans([0.0, 0.3, 1.0]), [2, 3, 5])

def test_greville():
    kv = make_knots(2, 0.0, 1.0, 2)
    assert np.allclose(kv.greville(), [0.0, 0.25, 0.75, 1.0])

def test_bsplinefunc():
    kvs = (make_knots(2, 0.0, 1.0, 3), make_knots(3, 0.0, 1.0, 4))
    u = BSplineFunc(kvs, np.random.rand(numdofs(kvs)))
    assert u.is_scalar() and u.sdim == 2 and u.dim == 1
    grid = (np.linspace(0, 1, 5), np.linspace(0, 1, 7))
    vals = u.grid_eval(grid)
    assert vals.shape == (5, 7)
    assert np.isclose(u(grid[1][3], grid[0][2]), vals[2, 3])
    # boundary restriction
    bottom = u.boundary('bottom')
    assert np.allclose(bottom.grid_eval((grid[1],)), vals[0, :])
    right = u.boundary('right')
    assert np.allclose(right.grid_eval((grid[0],)), vals[:, -1])

def test_jacobian():
    kvs = 2 * (make_knots(2, 0.0, 1.0, 3),)
    # u(x,y) = x + 2y is reproduced by Gréville interpolation
    g = [kv.greville() for kv in kvs]
    coeffs = g[1][None, :] + 2 * g[0][:, None]
    u = BSplineFunc(kvs, coeffs)
    grid = 2 * (np.linspace(0, 1, 4),)
    jac = u.grid_jacobian(grid)
    assert jac.shape == (4, 4, 2)
    assert np.allclose(jac[..., 0], 1.0)     # d/dx
    assert np.allclose(jac[..., 1], 2.0)     # d/dy

