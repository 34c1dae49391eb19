from pyg1.dofs import *
from pyg1 import bspline, geometry
from pyg1.topology import PatchMesh, ConfigurationError

import unittest

def _two_squares(p=3, n=4):
    kvs = 2 * (bspline.make_knots(p, 0.0, 1.0, n),)
    return PatchMesh([(kvs, geometry.unit_square()),
                      (kvs, geometry.unit_square().translate((1, 0)))])

def _kinked(p=3, n=4):
    kvs = 2 * (bspline.make_knots(p, 0.0, 1.0, n),)
    P0 = np.array([[-1.0, 0.0, 0.0, 1.0],
                   [ 0.5, 0.0, 1.5, 1.0]])
    P1 = np.array([[0.0, -0.5, 1.0, 2.0],
                   [0.0, -1.0, 1.0, 0.5]])
    return PatchMesh([(kvs, geometry.bilinear_patch(P0)),
                      (kvs, geometry.bilinear_patch(P1))])

def _four_squares(p=3, n=5):
    kvs = 2 * (bspline.make_knots(p, 0.0, 1.0, n),)
    return PatchMesh([(kvs, geometry.unit_square().translate((x, y)))
                      for y in (-1, 0) for x in (-1, 0)])

def _check_tables(d):
    row_cats = (DofCategory.INTERFACE, DofCategory.EDGE, DofCategory.VERTEX,
                DofCategory.BOUNDARY_EDGE, DofCategory.BOUNDARY_VERTEX)
    for cat in DofCategory:
        assert np.all(np.diff(d.offsets(cat)) >= 0)
    assert d.offsets(DofCategory.INTERFACE)[0] == 0
    for (prev, cat) in zip(row_cats[:-1], row_cats[1:]):
        assert d.offsets(cat)[0] == d.offsets(prev)[-1]
    for cat in DofCategory:
        T = d.offsets(cat)
        n = len(T) - 1
        assert sum(d.count(cat, i) for i in range(n)) == T[-1] - T[0]
    assert d.dim_G1_Dofs == d.offsets(DofCategory.VERTEX)[-1]
    assert d.dim_G1_Dofs + d.dim_G1_Bdy == d.offsets(DofCategory.BOUNDARY_VERTEX)[-1]
    assert d.num_rows == d.dim_G1_Dofs + d.dim_G1_Bdy + d.dim_K

def test_two_patch_counts():
    M = _two_squares(p=3, n=4)
    d = G1Dofs(M, two_patch=True)
    _check_tables(d)
    # m_p = 3, m_r = 1, m_n = 4: 13 functions, 4 of them at the ends
    assert d.size_plus_interface == [7]
    assert d.count(DofCategory.INTERFACE, 0) == 9
    assert d.size_plus_boundary == 6 * [3]
    assert all(d.count(DofCategory.BOUNDARY_EDGE, i) == 3 for i in range(6))
    assert all(d.count(DofCategory.EDGE, i) == 3 for i in range(6))
    kinds = d.kind_of_vertex
    assert sorted(kinds) == 4 * [VertexKind.BOUNDARY] + 2 * [VertexKind.INTERFACE_BOUNDARY]
    for v in range(M.numvertices):
        if kinds[v] == VertexKind.BOUNDARY:
            assert (d.count(DofCategory.VERTEX, v), d.count(DofCategory.BOUNDARY_VERTEX, v)) == (1, 3)
        else:
            assert (d.count(DofCategory.VERTEX, v), d.count(DofCategory.BOUNDARY_VERTEX, v)) == (0, 2)
    assert d.dim_G1_Dofs == 9 + 18 + 4
    assert d.dim_G1_Bdy == 18 + 16
    assert d.dim_K == 2 * 49
    assert d.num_rows == 31 + 34 + 98

def test_two_patch_neumann():
    M = _two_squares(p=3, n=4)
    d = G1Dofs(M, two_patch=True, neumann=True)
    _check_tables(d)
    assert d.count(DofCategory.INTERFACE, 0) == 13 - 8
    for i in range(len(M.boundaries)):
        assert d.count(DofCategory.BOUNDARY_EDGE, i) == 2*7 - 8
        assert d.count(DofCategory.EDGE, i) == 0
    for v in range(M.numvertices):
        assert d.count(DofCategory.VERTEX, v) == 0
        assert d.count(DofCategory.BOUNDARY_VERTEX, v) == 4

def test_inner_knot():
    M = _two_squares(p=3, n=4)
    d = G1Dofs(M, two_patch=True, inner_knot_mult=2)
    assert d.size_plus_interface == [7 + INNER_KNOT_FUNCTIONS]
    assert d.count(DofCategory.INTERFACE, 0) == 9 + 2 * INNER_KNOT_FUNCTIONS

def test_multipatch_counts():
    M = _four_squares(p=3, n=5)
    d = G1Dofs(M, verbose=0)
    _check_tables(d)
    # m_p = 3, m_r = 1, m_n = 5: 2*4 + 7 = 15 functions minus 10
    assert all(d.count(DofCategory.INTERFACE, i) == 5 for i in range(4))
    assert d.size_plus_interface == 4 * [8]
    assert d.size_plus_boundary == 8 * [8]
    assert all(d.count(DofCategory.BOUNDARY_EDGE, i) == 2 for i in range(8))
    assert all(d.count(DofCategory.EDGE, i) == 3 for i in range(8))
    kinds = list(d.kind_of_vertex)
    assert kinds.count(VertexKind.INTERIOR) == 1
    assert kinds.count(VertexKind.BOUNDARY) == 4
    assert kinds.count(VertexKind.INTERFACE_BOUNDARY) == 4
    for v in range(M.numvertices):
        expected = MULTIPATCH_VERTEX_DOFS[kinds[v]]
        assert (d.count(DofCategory.VERTEX, v), d.count(DofCategory.BOUNDARY_VERTEX, v)) == expected
    assert d.dim_G1_Dofs == 4*5 + 8*3 + (6 + 4*1 + 4*3)
    assert d.dim_G1_Bdy == 8*2 + 8*6
    assert d.dim_K == 4 * 64

def test_single_patch_counts():
    kvs = 2 * (bspline.make_knots(3, 0.0, 1.0, 5),)
    M = PatchMesh([(kvs, geometry.unit_square())])
    d = G1Dofs(M)
    _check_tables(d)
    N = 8
    # every coefficient within two layers of the boundary owns exactly one row
    assert d.dim_G1_Dofs + d.dim_G1_Bdy == N**2 - (N-4)**2

def test_kink_counts():
    straight = G1Dofs(_two_squares(p=2, n=4), two_patch=True)
    kinked = G1Dofs(_kinked(p=2, n=4), two_patch=True)
    assert straight.kinks == [(False, False)]
    assert kinked.kinks == [(True, False)]
    M = kinked.mesh
    I = M.interfaces[0]
    vA, vB = M.interface_vertex(I, 0), M.interface_vertex(I, 1)
    assert kinked.vertex_kinks(vA) == 1 and kinked.vertex_kinks(vB) == 0
    assert kinked.count(DofCategory.BOUNDARY_VERTEX, vA) == 3
    assert kinked.count(DofCategory.BOUNDARY_VERTEX, vB) == 2
    # the straight configuration has no kinked vertex
    M2 = straight.mesh
    for end in (0, 1):
        v = M2.interface_vertex(M2.interfaces[0], end)
        assert straight.count(DofCategory.BOUNDARY_VERTEX, v) == 2
    # one interface function less because of the kink
    assert (kinked.count(DofCategory.INTERFACE, 0)
            == straight.count(DofCategory.INTERFACE, 0) - 1)
    _check_tables(kinked)

def test_kinks_ignored_in_multipatch():
    d = G1Dofs(_kinked(p=3, n=5))
    assert d.kinks == [(True, False)]
    for v in range(d.mesh.numvertices):
        assert (d.count(DofCategory.VERTEX, v), d.count(DofCategory.BOUNDARY_VERTEX, v)) \
                == MULTIPATCH_VERTEX_DOFS[d.kind_of_vertex[v]]

def test_secondary_bases():
    M = _two_squares(p=3, n=4)
    kvs2 = 2 * (bspline.make_knots(4, 0.0, 1.0, 4),)
    d = G1Dofs(M, secondary_bases=[kvs2, kvs2])
    assert d.separate_secondary
    T5, T6 = d.offsets(DofCategory.PATCH_INTERIOR), d.offsets(DofCategory.PATCH_INTERFACE)
    assert np.array_equal(T5, [0, 49, 98])
    assert np.array_equal(T6, [98, 162, 226])
    assert d.dim_K == 226
    # isogeometric mode ignores the secondary bases
    d = G1Dofs(M, secondary_bases=[kvs2, kvs2], isogeometric=True)
    assert not d.separate_secondary
    assert np.array_equal(d.offsets(DofCategory.PATCH_INTERFACE), [0, 49, 98])
    assert d.dim_K == 98

def test_determinism():
    d1 = G1Dofs(_four_squares())
    d2 = G1Dofs(_four_squares())
    for cat in DofCategory:
        assert np.array_equal(d1.offsets(cat), d2.offsets(cat))
    assert d1.kind_of_vertex == d2.kind_of_vertex
    assert (d1.dim_K, d1.dim_G1_Dofs, d1.dim_G1_Bdy) == (d2.dim_K, d2.dim_G1_Dofs, d2.dim_G1_Bdy)

def test_tables_readonly():
    d = G1Dofs(_two_squares())
    T = d.offsets(DofCategory.EDGE)
    with unittest.TestCase().assertRaises(ValueError):
        T[0] = 5

def test_configuration_errors():
    t = unittest.TestCase()
    with t.assertRaises(ConfigurationError):
        G1Dofs(PatchMesh())
    M = _two_squares()
    with t.assertRaises(ConfigurationError):
        G1Dofs(M, bases=M.kvs[:1])
    with t.assertRaises(ConfigurationError):
        G1Dofs(M, secondary_bases=M.kvs + M.kvs)
    with t.assertRaises(ConfigurationError):
        G1Dofs(_four_squares(), two_patch=True)
    # two squares without a common side
    kvs = M.kvs[0]
    apart = PatchMesh([(kvs, geometry.unit_square()),
                       (kvs, geometry.unit_square().translate((3, 0)))])
    with t.assertRaises(ConfigurationError) as cm:
        G1Dofs(apart)
    assert 'disconnected' in str(cm.exception)
    # too few basis functions along the sides
    with t.assertRaises(ConfigurationError):
        G1Dofs(_two_squares(p=3, n=1))
    # ConfigurationError is a ValueError
    with t.assertRaises(ValueError):
        G1Dofs(PatchMesh())

def test_side_kv():
    kvy = bspline.make_knots(2, 0.0, 1.0, 3)
    kvx = bspline.make_knots(3, 0.0, 1.0, 4)
    assert side_kv((kvy, kvx), 0) is kvx      # bottom runs in x direction
    assert side_kv((kvy, kvx), 3) is kvy      # right runs in y direction
    assert regularity(kvx) == 1
    assert regularity(bspline.make_knots(3, 0.0, 1.0, 4, mult=2)) == 0
