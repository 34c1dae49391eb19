"""Linear operators used as preconditioners and solvers for the reduced systems."""
import numpy as np
import scipy.linalg
import scipy.sparse
import scipy.sparse.linalg


class DiagonalOperator(scipy.sparse.linalg.LinearOperator):
    """A :class:`LinearOperator` which acts like a diagonal matrix with the given diagonal."""
    def __init__(self, diag):
        self.diag = np.atleast_1d(np.squeeze(diag))
        assert self.diag.ndim == 1, 'Diagonal must be a vector'
        n = self.diag.shape[0]
        super().__init__(shape=(n, n), dtype=self.diag.dtype)

    def _matvec(self, x):
        return self.diag * np.ravel(x)

    def _matmat(self, X):
        return self.diag[:, None] * X

    def _transpose(self):
        return self

    _adjoint = _transpose


def jacobi_preconditioner(A):
    """Return the Jacobi (inverse diagonal) preconditioner for `A` as a
    :class:`DiagonalOperator`.

    Zero diagonal entries, which occur for unused rows of a reduced system,
    are treated as ones.
    """
    diag = np.asarray(A.diagonal(), dtype=float).copy()
    diag[diag == 0] = 1.0
    return DiagonalOperator(1.0 / diag)


def make_solver(B, symmetric=False, spd=False):
    """Return a :class:`LinearOperator` that acts as a linear solver for the
    (dense or sparse) square matrix `B`.

    Sparse matrices are factorized by SuperLU; if `B` is symmetric, passing
    ``symmetric=True`` selects a symmetric fill-reducing ordering. Dense
    matrices use a Cholesky factorization if ``spd=True`` and an LU
    factorization otherwise.
    """
    if scipy.sparse.issparse(B):
        order = 'MMD_AT_PLUS_A' if (symmetric or spd) else 'COLAMD'
        solve = scipy.sparse.linalg.splu(B.tocsc(), permc_spec=order).solve
    elif spd:
        factor = scipy.linalg.cho_factor(B, check_finite=False)
        solve = lambda x: scipy.linalg.cho_solve(factor, x, check_finite=False)
    else:
        factor = scipy.linalg.lu_factor(B, check_finite=False)
        solve = lambda x: scipy.linalg.lu_solve(factor, x, check_finite=False)
    return scipy.sparse.linalg.LinearOperator(B.shape, dtype=B.dtype,
            matvec=solve, matmat=solve)
