r"""Simple B-spline geometries used to describe the patches of a multipatch domain.

All geometries are :class:`.BSplineFunc` instances whose coefficient arrays
have the physical coordinates in XY order in their last axis, while the
parameter axes are in YX order.
"""
import functools

import numpy as np

from . import bspline
from .bspline import BSplineFunc


def tensor_product(G1, G2, *Gs):
    r"""Tensor product of two or more :class:`.BSplineFunc` functions.

    For :math:`G_1(y)` and :math:`G_2(x)`, the result is the function
    :math:`G(x,y) = (G_2(x), G_1(y))` whose output vector joins the outputs
    of the factors. Since coordinates are stored in XY order, the components
    of the last factor come first.
    """
    if Gs:
        return tensor_product(G1, tensor_product(G2, *Gs))
    C1, C2 = (G.coeffs if G.is_vector() else G.coeffs[..., None] for G in (G1, G2))
    s1, s2 = G1.sdim, G2.sdim
    shape = C1.shape[:s1] + C2.shape[:s2]
    # insert singleton axes for the parameters of the other factor
    C1 = C1.reshape(C1.shape[:s1] + s2 * (1,) + C1.shape[s1:])
    C2 = C2.reshape(s1 * (1,) + C2.shape)
    C = np.concatenate((np.broadcast_to(C2, shape + C2.shape[-1:]),
                        np.broadcast_to(C1, shape + C1.shape[-1:])), axis=-1)
    return BSplineFunc(G1.kvs + G2.kvs, C)

def line_segment(x0, x1, intervals=1, support=(0.0, 1.0)):
    """Straight line from the point `x0` to the point `x1`, parametrized
    linearly over the interval `support`.

    The underlying linear spline space has `intervals` knot spans.
    Scalar end points yield a curve with a single output component.
    """
    x0 = np.atleast_1d(np.asarray(x0, dtype=float)).ravel()
    x1 = np.atleast_1d(np.asarray(x1, dtype=float)).ravel()
    assert x0.shape == x1.shape, 'end points must have the same dimension'
    t = np.linspace(0.0, 1.0, intervals+1)[:, None]
    kv = bspline.make_knots(1, support[0], support[1], intervals)
    return BSplineFunc(kv, x0 + t * (x1 - x0))

def unit_square(num_intervals=1):
    """The unit square, with `num_intervals` knot spans per direction."""
    return tensor_product(*(2 * (line_segment(0.0, 1.0, intervals=num_intervals),)))

def identity(extents):
    """Identity map over the box given by `extents`, one `(min, max)` pair or
    :class:`.KnotVector` per direction in YX order."""
    extents = [ex.support() if isinstance(ex, bspline.KnotVector) else ex
               for ex in extents]
    return functools.reduce(tensor_product,
            [line_segment(a, b, support=(a, b)) for (a, b) in extents])

def bilinear_patch(P):
    """Bilinear quadrilateral patch with the given corner points.

    Args:
        P: array of shape `(2, 4)` whose columns are the corners in the order
            bottom left, bottom right, top left, top right

    Returns:
        :class:`.BSplineFunc` 2D geometry over the unit square
    """
    P = np.asarray(P, dtype=float)
    kv = bspline.make_knots(1, 0.0, 1.0, 1)
    return BSplineFunc((kv, kv), P.T.reshape((2, 2, 2)))
