"""
Cache-blocked matrix multiplication.

Partitions the i, j and l ranges into square tiles so that the working set
of one tile update stays in cache. The block size only affects speed;
every positive block size produces the same product within rounding.
"""

from typing import Optional

import numpy as np

from ..buffer import MatrixBuffer, check_operands, prepare_output
from ..config import DEFAULT_BLOCK_SIZE, validate_block_size


def multiply_blocked(a: MatrixBuffer, b: MatrixBuffer,
                     block_size: int = DEFAULT_BLOCK_SIZE,
                     out: Optional[MatrixBuffer] = None) -> MatrixBuffer:
    """
    Tiled matrix multiplication.

    Tiles are visited i-tile, then j-tile, then l-tile. For each l-tile the
    partial sums already stored in the output tile are loaded, the tile's
    inner products are added one ``l`` at a time, and the result is
    written back. The last tile in each dimension is clamped to the matrix
    bound.

    Args:
        a: Left matrix (M x K)
        b: Right matrix (K x N)
        block_size: Tile edge length, must be positive
        out: Optional output matrix (M x N)

    Returns:
        Result matrix (M x N)
    """
    block_size = validate_block_size(block_size)

    check_operands(a, b)
    out = prepare_output(a, b, out)

    A = a.as_2d()
    B = b.as_2d()
    C = out.as_2d()
    m, k = A.shape
    n = B.shape[1]

    # Partial sums accumulate across l-tiles, so the output must start at zero
    C.fill(0.0)

    tile = min(block_size, max(m, 1)), min(block_size, max(n, 1))
    acc_buffer = np.empty(tile, dtype=np.float64)
    prod_buffer = np.empty(tile, dtype=np.float64)

    for i in range(0, m, block_size):
        i_end = min(i + block_size, m)

        for j in range(0, n, block_size):
            j_end = min(j + block_size, n)
            acc = acc_buffer[:i_end - i, :j_end - j]
            prod = prod_buffer[:i_end - i, :j_end - j]

            for l in range(0, k, block_size):
                l_end = min(l + block_size, k)

                acc[...] = C[i:i_end, j:j_end]
                for p in range(l, l_end):
                    np.multiply(A[i:i_end, p:p + 1], B[p:p + 1, j:j_end], out=prod)
                    acc += prod
                C[i:i_end, j:j_end] = acc

    return out
