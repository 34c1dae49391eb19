"""Evaluation of functions over tensor product grids."""
import numpy as np

def _to_grid_shape(values, grid):
    """Bring function values computed over the sparse mesh of `grid` to the
    full grid shape. Tuples are interpreted as the components of a
    vector-valued function."""
    shape = tuple(len(g) for g in grid)
    if isinstance(values, tuple):
        values = np.stack([_to_grid_shape(v, grid) for v in values], axis=-1)
    values = np.asanyarray(values)
    target = shape + values.shape[len(shape):]
    return values if values.shape == target else np.broadcast_to(values, target)

def grid_eval(f, grid):
    """Evaluate function `f` over the tensor grid `grid`.

    The grid axes are given in ``(y, x)`` order. `f` is either an object with
    a `grid_eval` method, such as a :class:`.BSplineFunc`, or a function
    which is called with the coordinates in ``(x, y)`` order.
    """
    if hasattr(f, 'grid_eval'):
        return f.grid_eval(grid)
    mesh = np.meshgrid(*grid, sparse=True, indexing='ij')
    return _to_grid_shape(f(*reversed(mesh)), grid)

def grid_eval_transformed(f, grid, geo):
    """Evaluate `f` in physical coordinates at the image of the tensor grid
    `grid` under the geometry map `geo`."""
    X = grid_eval(geo, grid)
    return _to_grid_shape(f(*np.moveaxis(X, -1, 0)), grid)
