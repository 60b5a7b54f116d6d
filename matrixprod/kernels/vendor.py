"""
Vendor BLAS delegate.

Hands the product to an external ``dgemm``. The BLAS call is always made in
column-major convention; operands stored row-major are copied into
temporary column-major buffers first and a row-major result is copied back
afterwards. The temporaries live only for the duration of one call.

When no vendor BLAS is available the delegate runs the blocked kernel
instead, or raises ``UnsupportedVariantError`` in strict mode.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .. import _blas
from ..buffer import Layout, MatrixBuffer, check_operands, prepare_output
from ..config import DEFAULT_BLOCK_SIZE
from ..errors import UnsupportedVariantError
from ..variants import KernelVariant
from .blocked import multiply_blocked


logger = logging.getLogger(__name__)


def _column_major(buffer: MatrixBuffer, temporaries: List[np.ndarray]) -> np.ndarray:
    view = buffer.as_2d()
    if buffer.layout is Layout.COLUMN_MAJOR:
        return view
    copy = np.asfortranarray(view)
    temporaries.append(copy)
    return copy


@contextmanager
def _column_major_workspace(a: MatrixBuffer, b: MatrixBuffer,
                            out: MatrixBuffer) -> Iterator[Tuple[np.ndarray, np.ndarray, np.ndarray]]:
    """
    Yield column-major ``(A, B, C)`` arrays for a BLAS call.

    ``C`` is the output buffer itself when it is column-major, otherwise a
    temporary that the caller copies back into ``out``.
    """
    temporaries: List[np.ndarray] = []
    try:
        a_col = _column_major(a, temporaries)
        b_col = _column_major(b, temporaries)
        if out.layout is Layout.COLUMN_MAJOR:
            c_col = out.as_2d()
        else:
            c_col = np.empty(out.shape, dtype=np.float64, order='F')
            temporaries.append(c_col)
        yield a_col, b_col, c_col
    finally:
        temporaries.clear()


def resolve_provider(strict: bool = False,
                     available: bool = True) -> Optional[_blas.BlasProvider]:
    """
    Return the vendor BLAS provider, applying the unavailable-variant policy.

    ``available`` is the caller's capability verdict; when it is false no
    provider is used even if one was loaded. Returns ``None`` when the
    caller should degrade to the blocked kernel; raises
    ``UnsupportedVariantError`` instead when ``strict`` is set.
    """
    provider = _blas.load_provider() if available else None
    if provider is None:
        if strict:
            raise UnsupportedVariantError(KernelVariant.vendor_blas(),
                                          "no vendor BLAS library was found")
        logger.warning("Vendor BLAS requested but unavailable; using the blocked kernel instead")
    return provider


def multiply_vendor(a: MatrixBuffer, b: MatrixBuffer,
                    out: Optional[MatrixBuffer] = None, *,
                    strict: bool = False,
                    available: bool = True,
                    fallback_block_size: int = DEFAULT_BLOCK_SIZE,
                    provider: Optional[_blas.BlasProvider] = None) -> MatrixBuffer:
    """
    Matrix multiplication delegated to a vendor BLAS ``dgemm``.

    Args:
        a: Left matrix (M x K)
        b: Right matrix (K x N)
        out: Optional output matrix (M x N)
        strict: Raise ``UnsupportedVariantError`` instead of degrading when
            no BLAS is available
        available: Whether the host capability record reports a vendor BLAS
        fallback_block_size: Tile size used when degrading to the blocked kernel
        provider: Explicit provider, bypassing discovery

    Returns:
        Result matrix (M x N)
    """
    check_operands(a, b)
    out = prepare_output(a, b, out)

    if provider is None:
        provider = resolve_provider(strict, available)
        if provider is None:
            return multiply_blocked(a, b, fallback_block_size, out=out)

    m, k = a.shape
    n = b.cols
    if m == 0 or n == 0 or k == 0:
        out.data.fill(0.0)
        return out

    with _column_major_workspace(a, b, out) as (a_col, b_col, c_col):
        provider.dgemm(m, n, k, a_col, b_col, c_col)
        if out.layout is not Layout.COLUMN_MAJOR:
            out.as_2d()[...] = c_col

    return out
