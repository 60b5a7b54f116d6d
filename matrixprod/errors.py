"""
Error types raised by the matrixprod engine.

Every kernel and the top-level entry point raise the same exceptions with
the same wording, before any computation starts.
"""

from typing import Optional, Tuple


Shape = Tuple[int, int]


class MatrixProdError(Exception):
    """Base class for all matrixprod errors."""


class DimensionError(MatrixProdError, ValueError):
    """
    Raised when two operands cannot be multiplied.

    Carries both operand shapes so callers can report them without
    re-inspecting the buffers.
    """

    def __init__(self, left_shape: Shape, right_shape: Shape, message: Optional[str] = None):
        self.left_shape = tuple(left_shape)
        self.right_shape = tuple(right_shape)
        if message is None:
            message = (
                f"Incompatible shapes: {self.left_shape[0]}x{self.left_shape[1]} @ "
                f"{self.right_shape[0]}x{self.right_shape[1]} "
                f"(A.cols={self.left_shape[1]} != B.rows={self.right_shape[0]})"
            )
        super().__init__(message)


class UnsupportedVariantError(MatrixProdError, RuntimeError):
    """Raised when an explicitly requested kernel cannot run on this host."""

    def __init__(self, variant, reason: str):
        self.variant = variant
        self.reason = reason
        super().__init__(f"Kernel variant {variant} is unavailable: {reason}")
