"""
Naive matrix multiplication.

The reference kernel: every ``C[i, j]`` is accumulated in strictly
ascending ``l`` order. Other kernels are checked against it.
"""

from typing import Optional

import numpy as np

from ..buffer import MatrixBuffer, check_operands, prepare_output


def multiply_naive(a: MatrixBuffer, b: MatrixBuffer,
                   out: Optional[MatrixBuffer] = None) -> MatrixBuffer:
    """
    Triple-loop matrix multiplication.

    The ``j`` loop is carried out by numpy over a whole output row, which
    keeps the per-element summation order of the scalar triple loop
    (``0 + A[i,0]*B[0,j] + A[i,1]*B[1,j] + ...``).

    Args:
        a: Left matrix (M x K)
        b: Right matrix (K x N)
        out: Optional output matrix (M x N)

    Returns:
        Result matrix (M x N)
    """
    check_operands(a, b)
    out = prepare_output(a, b, out)

    A = a.as_2d()
    B = b.as_2d()
    C = out.as_2d()
    m, k = A.shape
    n = B.shape[1]

    C.fill(0.0)
    scratch = np.empty(n, dtype=np.float64)

    for i in range(m):
        row = C[i]
        for l in range(k):
            np.multiply(B[l], A[i, l], out=scratch)
            np.add(row, scratch, out=row)

    return out
