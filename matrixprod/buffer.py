"""
Matrix Buffers

Flat double-precision buffers with explicit dimensions and memory layout.
This is the only representation the kernels accept, so the layout of every
operand is always known at the engine boundary.

The numpy host adapter (``from_array`` / ``to_array``) lives here as well:
it converts two-dimensional arrays into buffers and wraps results back.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DimensionError


ArrayLike = Union[np.ndarray, Sequence[Sequence[float]]]


class Layout(Enum):
    """Matrix memory layout options"""
    ROW_MAJOR = "row_major"
    COLUMN_MAJOR = "column_major"

    @property
    def numpy_order(self) -> str:
        return 'C' if self is Layout.ROW_MAJOR else 'F'


@dataclass(eq=False)
class MatrixBuffer:
    """
    A ``rows x cols`` matrix stored as a flat sequence of doubles.

    ``data`` is always a contiguous one-dimensional ``float64`` array with
    exactly ``rows * cols`` elements; ``layout`` says how the logical
    matrix is laid out in it.

    Two buffers are equal when they hold the same logical matrix; the
    storage layout does not take part in the comparison.
    """
    data: np.ndarray
    rows: int
    cols: int
    layout: Layout = Layout.ROW_MAJOR

    def __post_init__(self):
        if not isinstance(self.layout, Layout):
            raise TypeError(f"layout must be a Layout, got {self.layout!r}")

        self.rows = int(self.rows)
        self.cols = int(self.cols)
        if self.rows < 0 or self.cols < 0:
            raise ValueError(f"Matrix dimensions must be non-negative: {self.rows}x{self.cols}")

        data = np.asarray(self.data, dtype=np.float64)
        if data.ndim != 1:
            raise ValueError(f"Matrix buffer must be one-dimensional, got {data.ndim} dimensions")
        if not data.flags['C_CONTIGUOUS']:
            data = np.ascontiguousarray(data)

        if data.shape[0] != self.rows * self.cols:
            raise ValueError(
                f"Buffer has {data.shape[0]} elements, expected "
                f"{self.rows * self.cols} for a {self.rows}x{self.cols} matrix"
            )
        self.data = data

    def __eq__(self, other):
        if not isinstance(other, MatrixBuffer):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self.as_2d(), other.as_2d()))

    __hash__ = None

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    def as_2d(self) -> np.ndarray:
        """Zero-copy two-dimensional view of the buffer in logical (row, col) order."""
        return self.data.reshape((self.rows, self.cols), order=self.layout.numpy_order)

    def to_rows(self) -> List[List[float]]:
        return self.as_2d().tolist()

    def to_layout(self, layout: Layout) -> 'MatrixBuffer':
        """Copy of this matrix stored in ``layout``."""
        flat = self.as_2d().ravel(order=layout.numpy_order).copy()
        return MatrixBuffer(flat, self.rows, self.cols, layout)

    @classmethod
    def zeros(cls, rows: int, cols: int, layout: Layout = Layout.ROW_MAJOR) -> 'MatrixBuffer':
        return cls(np.zeros(rows * cols, dtype=np.float64), rows, cols, layout)

    @classmethod
    def identity(cls, n: int, layout: Layout = Layout.ROW_MAJOR) -> 'MatrixBuffer':
        # the identity is symmetric, so both layouts share the same flat data
        return cls(np.eye(n, dtype=np.float64).ravel(), n, n, layout)

    @classmethod
    def from_rows(cls, rows: ArrayLike, layout: Layout = Layout.ROW_MAJOR) -> 'MatrixBuffer':
        return from_array(rows, layout)


def from_array(array: ArrayLike, layout: Optional[Layout] = None) -> MatrixBuffer:
    """
    Convert a two-dimensional array-like into a ``MatrixBuffer``.

    When ``layout`` is omitted a Fortran-ordered numpy array becomes a
    column-major buffer and anything else a row-major one, so no copy is
    made for arrays that are already contiguous in that order.
    """
    matrix = np.asarray(array, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError("Matrix multiplication requires 2D arrays")

    if layout is None:
        if matrix.flags['F_CONTIGUOUS'] and not matrix.flags['C_CONTIGUOUS']:
            layout = Layout.COLUMN_MAJOR
        else:
            layout = Layout.ROW_MAJOR

    flat = matrix.ravel(order=layout.numpy_order)
    return MatrixBuffer(flat, matrix.shape[0], matrix.shape[1], layout)


def to_array(buffer: MatrixBuffer) -> np.ndarray:
    """Wrap a buffer back into a two-dimensional numpy array (a view, not a copy)."""
    return buffer.as_2d()


def check_operands(a: MatrixBuffer, b: MatrixBuffer) -> None:
    """Raise ``DimensionError`` unless ``a.cols == b.rows``."""
    if not isinstance(a, MatrixBuffer) or not isinstance(b, MatrixBuffer):
        raise TypeError("Operands must be MatrixBuffer instances")
    if a.cols != b.rows:
        raise DimensionError(a.shape, b.shape)


def prepare_output(a: MatrixBuffer, b: MatrixBuffer,
                   out: Optional[MatrixBuffer] = None) -> MatrixBuffer:
    """
    Validate a caller-provided output buffer, or allocate one.

    A fresh output takes the layout of ``a``. The output is not cleared
    here; each kernel initialises it itself.
    """
    if out is None:
        return MatrixBuffer.zeros(a.rows, b.cols, a.layout)

    if not isinstance(out, MatrixBuffer):
        raise TypeError("out must be a MatrixBuffer")
    if out.shape != (a.rows, b.cols):
        raise DimensionError(
            a.shape, b.shape,
            f"Output buffer is {out.rows}x{out.cols}, expected {a.rows}x{b.cols}",
        )
    if not out.data.flags['WRITEABLE']:
        raise ValueError("Output buffer is read-only")
    if np.shares_memory(out.data, a.data) or np.shares_memory(out.data, b.data):
        raise ValueError("Output buffer must not overlap either operand")
    return out
