"""Linear solvers for the reduced G1 systems."""
import numpy as np
import scipy.linalg

from .operators import make_solver


class NumericalError(Exception):
    """Raised when a linear solver fails to produce a usable solution.

    Attributes:
        method (str): name of the solver
        num_iter (int): number of iterations performed
        last_iterate (ndarray): the last iterate, if any
    """
    def __init__(self, method, num_iter, last_iterate, message=None):
        self.method = method
        self.num_iter = num_iter
        self.last_iterate = last_iterate
        if message is None:
            message = '%s did not converge after %d iterations' % (method, num_iter)
        Exception.__init__(self, message)


def _as_function(A, n):
    """Turn a matrix or operator into a function `x -> A x`; `None` or a
    scalar stands for the identity."""
    if A is None or np.isscalar(A):
        return lambda x: x
    if callable(A):
        return A
    assert A.shape == (n, n), 'dimension mismatch'
    return lambda x: A @ x


def pcg(A, f, x0=None, P=1, rtol=1e-5, atol=0.0, maxiter=100, output=False):
    """Solve the symmetric positive (semi-)definite system `Ax = f` by the
    preconditioned conjugate gradient method.

    Args:
        A: the system matrix as an ndarray, sparse matrix or linear operator
        f (ndarray): the right-hand side
        x0 (ndarray): initial guess, by default zero
        P: the preconditioner, by default the identity
        rtol (float): stop once the preconditioned residual norm has been
            reduced by this factor relative to the one of `f`...
        atol (float): ...or has dropped below this absolute value
        maxiter (int): maximum number of iterations
        output (bool): print a summary when the iteration stops

    Returns:
        a tuple `(x, iterations, m, M, err)` with the solution, the number of
        iterations, estimates for the extremal eigenvalues of the
        preconditioned matrix obtained from the Lanczos process, and the
        final preconditioned residual norm

    Raises:
        NumericalError: if the stopping criterion is not met within `maxiter`
            iterations or a search direction has nonpositive energy
    """
    f = np.asarray(f, dtype=float).ravel()
    n, maxiter = len(f), int(maxiter)
    Afun, Pfun = _as_function(A, n), _as_function(P, n)
    x = np.zeros(n) if x0 is None else np.array(x0, dtype=float).ravel()

    r = f - Afun(x)
    z = Pfun(r)
    rho = z @ r
    err0 = np.sqrt(Pfun(f) @ f)
    tol = max(rtol * err0, atol)
    err = np.sqrt(rho)
    if err <= tol:
        if output:
            print('pcg: initial residual %g already below tolerance' % err)
        return x, 0, 1.0, 1.0, err

    # coefficients of the Lanczos tridiagonal matrix
    diag, offdiag = [], []
    d = z
    for it in range(1, maxiter + 1):
        Ad = Afun(d)
        energy = d @ Ad
        if not energy > 0:
            raise NumericalError('pcg', it - 1, x,
                    'pcg broke down in iteration %d (matrix not positive definite?)' % it)
        alpha = rho / energy
        x = x + alpha * d
        r = r - alpha * Ad
        z = Pfun(r)
        rho, rho_old = z @ r, rho
        beta = rho / rho_old
        diag.append(1.0 / alpha + (beta_prev / alpha_prev if it > 1 else 0.0))
        err = np.sqrt(abs(rho))
        if err <= tol:
            break
        offdiag.append(-np.sqrt(beta) / alpha)
        d = z + beta * d
        alpha_prev, beta_prev = alpha, beta
    else:
        raise NumericalError('pcg', maxiter, x)

    eigs = np.abs(scipy.linalg.eigvalsh_tridiagonal(np.array(diag), np.array(offdiag)))
    m, M = eigs.min(), eigs.max()
    if output:
        kappa = M / m if m > 0 else np.inf
        print('pcg: %d iterations, relative residual %g, condition number estimate %g'
                % (it, err / err0, kappa))
    return x, it, m, M, err


def direct_solve(A, f):
    """Solve the sparse symmetric system `Ax = f` by sparse LU factorization.

    Raises:
        NumericalError: if the matrix is singular or the solution is not finite
    """
    try:
        x = make_solver(A, symmetric=True).dot(np.asarray(f, dtype=float))
    except RuntimeError as e:       # SuperLU signals singular matrices this way
        raise NumericalError('direct', 0, None, 'direct solver failed: %s' % e) from e
    if not np.all(np.isfinite(x)):
        raise NumericalError('direct', 0, x, 'direct solver produced non-finite values')
    return x
