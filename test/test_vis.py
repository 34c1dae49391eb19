import matplotlib
matplotlib.use('Agg')

from pyg1.vis import *

from pyg1 import bspline, geometry
from pyg1.g1system import G1System
from pyg1.topology import PatchMesh
import numpy as np

# We don't really "test" the vis functions at the moment but just
# run them to make sure they aren't dead code.

def _two_squares():
    kvs = 2 * (bspline.make_knots(3, 0.0, 1.0, 5),)
    return PatchMesh([(kvs, geometry.unit_square()),
                      (kvs, geometry.unit_square().translate((1, 0)))])

def test_plot_field():
    def f(x, y): return np.sin(x) * np.exp(y)
    geo = geometry.bilinear_patch(np.array([[0.0, 2.0, 0.0, 3.0], [0.0, 0.0, 1.0, 2.0]]))
    plot_field(f, physical=True, geo=geo, res=10)
    plot_field(f, physical=True, geo=geo, res=10, contour=True)
    #
    kvs = 2 * (bspline.make_knots(2, 0.0, 1.0, 5),)
    u = bspline.BSplineFunc(kvs, np.random.rand(bspline.numdofs(kvs)))
    plot_field(u, res=10)
    plot_field(u, geo=geo, res=10)
    plt.close('all')

def test_plot_geo():
    plot_geo(geometry.line_segment([0,1], [1,2]))
    plot_geo(geometry.unit_square(), res=10, color='lightblue')
    plt.close('all')

def test_plot_g1_solution():
    S = G1System(_two_squares())
    S.finalize()
    x = np.random.rand(S.num_rows)
    plot_g1_solution(S, x, res=10)
    plot_g1_solution(S, x, res=10, vrange=(0.0, 1.0))
    spy(S.D, cbar=True)
    plt.close('all')

def test_draw_mesh():
    M = _two_squares()
    M.draw(vertex_idx=True, patch_idx=True, nodes=True)
    M.draw(knots=True)
    plt.close('all')
