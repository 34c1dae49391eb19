"""Application of tensor product operators to coefficient tensors.

A coefficient tensor is a :class:`numpy.ndarray` whose leading axes
correspond to the coordinate directions in ``(y, x)`` order. Trailing axes,
if any, hold the components of vector-valued functions.
"""
import numpy as np


def _apply_along_axis(B, X, k):
    """Multiply axis `k` of the tensor `X` by the matrix `B`, which may be
    dense, sparse or a :class:`scipy.sparse.linalg.LinearOperator`."""
    assert X.shape[k] == B.shape[1], 'operator and tensor axis do not match'
    Xk = np.moveaxis(X, k, 0)
    Y = np.asarray(B @ Xk.reshape((Xk.shape[0], -1)))
    return np.moveaxis(Y.reshape((B.shape[0],) + Xk.shape[1:]), 0, k)


def apply_tprod(ops, A):
    """Apply multi-way tensor product of operators to tensor `A`.

    Args:
        ops (seq): a list of matrices, sparse matrices or linear operators;
            ``None`` is treated like the identity
        A (ndarray): the tensor to apply the multi-way tensor product to

    Returns:
        a new tensor with the same number of axes as `A` that is the result of
        applying the tensor product operator ``ops[0] x ... x ops[-1]`` to `A`.
        Trailing axes of `A` beyond ``len(ops)`` are left untouched.
    """
    for (k, B) in enumerate(ops):
        if B is not None:
            A = _apply_along_axis(B, A, k)
    return A
