"""Plotting of geometries, multipatch solutions and sparse matrices with matplotlib."""
import numpy as np
import matplotlib.pyplot as plt

from . import utils


def _sample(supp, res):
    """Uniform tensor grid over the parameter domain `supp`."""
    if np.isscalar(res):
        res = len(supp) * (res,)
    return tuple(np.linspace(a, b, r) for ((a, b), r) in zip(supp, res))

def plot_field(field, geo=None, res=80, physical=False, contour=False, **kwargs):
    """Plot a scalar field, optionally over a geometry.

    Without `geo`, `field` must be a :class:`.BSplineFunc` and is plotted over
    its parameter domain. If `physical` is true, `field` is a function of the
    physical coordinates; otherwise it is evaluated in the parameter domain
    of `geo`.
    """
    grd = _sample((geo if geo is not None else field).support, res)
    if geo is None:
        X, Y = np.meshgrid(grd[1], grd[0])
        C = utils.grid_eval(field, grd)
    else:
        XY = utils.grid_eval(geo, grd)
        X, Y = XY[..., 0], XY[..., 1]
        C = (utils.grid_eval_transformed(field, grd, geo) if physical
                else utils.grid_eval(field, grd))
    if contour:
        return plt.contourf(X, Y, C, **kwargs)
    kwargs.setdefault('shading', 'gouraud')
    return plt.pcolormesh(X, Y, C, **kwargs)

def plot_g1_solution(system, x, res=50, vrange=None, **kwargs):
    """Plot the multipatch field described by the reduced coefficient vector `x`
    of a finalized :class:`.G1System` over the patch geometries.

    All patches share one color scale; `vrange` may be given as `(vmin, vmax)`.
    """
    fields = system.construct_solution_fields(x)
    if vrange is None:
        vals = [utils.grid_eval(u, _sample(u.support, res)) for u in fields]
        vrange = (min(v.min() for v in vals), max(v.max() for v in vals))
    kwargs.setdefault('vmin', vrange[0])
    kwargs.setdefault('vmax', vrange[1])
    return [plot_field(u, geo, res=res, **kwargs)
            for (u, geo) in zip(fields, system.mesh.geos)]

def plot_geo(geo, grid=10, gridx=None, gridy=None, res=50,
             linewidth=None, lcolor='black', color=None, boundary=True, bcolor='black'):
    """Plot a planar curve or a wireframe of a planar surface.

    For surfaces, `gridx` and `gridy` give either the number of parameter
    lines or their parameter values in each direction (default: `grid`).
    `color` fills the surface; `boundary` draws its outline in `bcolor`.
    """
    assert geo.dim == 2, 'can only plot planar geometries'
    lcolor = lcolor or 'black'
    if geo.sdim == 1:
        pts = utils.grid_eval(geo, _sample(geo.support, res))
        plt.plot(pts[:, 0], pts[:, 1], color=lcolor, linewidth=linewidth)
        return
    assert geo.sdim == 2, 'can only plot curves and surfaces'
    (ya, yb), (xa, xb) = geo.support
    gridx = grid if gridx is None else gridx
    gridy = grid if gridy is None else gridy
    if np.isscalar(gridx):
        gridx = np.linspace(xa, xb, max(gridx, 2))
    if np.isscalar(gridy):
        gridy = np.linspace(ya, yb, max(gridy, 2))
    xs, ys = np.linspace(xa, xb, res), np.linspace(ya, yb, res)

    def line(pts, **kw):
        plt.plot(pts[:, 0], pts[:, 1], linewidth=linewidth,
                 solid_joinstyle='round', **kw)

    horiz = utils.grid_eval(geo, (gridy, xs))       # lines of constant y
    vert = utils.grid_eval(geo, (ys, gridx))        # lines of constant x
    for pts in list(horiz[1:-1]) + list(np.swapaxes(vert, 0, 1)[1:-1]):
        line(pts, color=lcolor, zorder=1)

    outline = np.concatenate([
        utils.grid_eval(geo, ((ya,), xs))[0],
        utils.grid_eval(geo, (ys, (xb,)))[:, 0],
        utils.grid_eval(geo, ((yb,), xs))[0, ::-1],
        utils.grid_eval(geo, (ys, (xa,)))[::-1, 0]])
    if boundary:
        line(outline, color=bcolor, solid_capstyle='round', zorder=1000)
    if color:
        plt.fill(outline[:, 0], outline[:, 1], color=color)

def spy(A, marker=None, markersize=10, cbar=False, cmap='jet', **kwargs):
    """Visualize the nonzero pattern of a sparse matrix such as the G1
    transformation matrix, with colors indicating the magnitude of the entries."""
    A = A.tocoo()
    plt.scatter(A.col, A.row, c=A.data, marker=marker, s=markersize, cmap=cmap, **kwargs)
    ax = plt.gca()
    ax.set_aspect('equal')
    ax.set_xlim(-0.5, A.shape[1] - 0.5)
    ax.set_ylim(A.shape[0] - 0.5, -0.5)
    if cbar:
        plt.colorbar()
