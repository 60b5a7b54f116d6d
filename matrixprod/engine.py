"""
Matrix Multiplication Engine

Entry points that validate operands, resolve ``AUTO`` through the backend
selector and dispatch to one of the kernels. The engine keeps no mutable
state of its own: the only shared state is the cached capability record.
"""

import logging
from typing import Optional, Union

import numpy as np

from .buffer import ArrayLike, MatrixBuffer, check_operands, from_array, to_array
from .capabilities import CapabilityRecord, probe_capabilities
from .config import EngineConfig
from .kernels import multiply_blocked, multiply_naive, multiply_vendor
from .selector import select
from .variants import KernelVariant, VariantKind


logger = logging.getLogger(__name__)

VariantSpec = Union[KernelVariant, str, None]


class MatrixEngine:
    """
    Multi-backend matrix multiplication.

    Chooses between the naive, cache-blocked and vendor BLAS kernels based
    on matrix size and detected hardware. A capability record can be
    injected to make selection independent of the host.
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 capabilities: Optional[CapabilityRecord] = None):
        self.config = config or EngineConfig()
        self._capabilities = capabilities

    @property
    def capabilities(self) -> CapabilityRecord:
        if self._capabilities is not None:
            return self._capabilities
        return probe_capabilities()

    def _coerce_variant(self, variant: VariantSpec) -> KernelVariant:
        if variant is None:
            return KernelVariant.auto()
        if isinstance(variant, str):
            return KernelVariant.parse(variant, default_block_size=self.config.block_size)
        if not isinstance(variant, KernelVariant):
            raise TypeError(f"variant must be a KernelVariant or method name, got {variant!r}")
        return variant

    def resolve_variant(self, m: int, k: int, n: int,
                        variant: VariantSpec = None) -> KernelVariant:
        """Resolve ``AUTO`` (or a method name) to the concrete kernel that will run."""
        variant = self._coerce_variant(variant)
        if variant.is_auto:
            return select(m, k, n, self.capabilities, self.config.block_size)
        return variant

    def multiply(self, a: MatrixBuffer, b: MatrixBuffer,
                 variant: VariantSpec = None,
                 out: Optional[MatrixBuffer] = None) -> MatrixBuffer:
        """
        Compute ``C = A @ B``.

        Args:
            a: Left matrix (M x K)
            b: Right matrix (K x N)
            variant: Kernel to use; ``None`` or ``AUTO`` lets the selector choose
            out: Optional caller-owned output matrix (M x N)

        Returns:
            Result matrix (M x N)

        Raises:
            DimensionError: if ``a.cols != b.rows``
            UnsupportedVariantError: if VendorBlas was requested in strict
                mode and no vendor BLAS is available
        """
        check_operands(a, b)
        m, k = a.shape
        n = b.cols

        chosen = self.resolve_variant(m, k, n, variant)
        level = logging.INFO if self.config.debug_mode else logging.DEBUG
        logger.log(level, "Matrix multiplication: [%d x %d] * [%d x %d] using %s",
                   m, k, k, n, chosen)

        if chosen.kind is VariantKind.NAIVE:
            return multiply_naive(a, b, out=out)
        if chosen.kind is VariantKind.BLOCKED:
            return multiply_blocked(a, b, chosen.block_size, out=out)
        return multiply_vendor(
            a, b, out=out,
            strict=self.config.strict_variants,
            available=self.capabilities.has_vendor_blas,
            fallback_block_size=self.config.block_size,
        )


def multiply(a: MatrixBuffer, b: MatrixBuffer,
             variant: VariantSpec = None,
             out: Optional[MatrixBuffer] = None,
             config: Optional[EngineConfig] = None) -> MatrixBuffer:
    """Multiply two buffers with the process-wide capabilities."""
    return MatrixEngine(config).multiply(a, b, variant, out=out)


def matmul(a: ArrayLike, b: ArrayLike, method: VariantSpec = "auto",
           config: Optional[EngineConfig] = None) -> np.ndarray:
    """
    Multiply two 2D array-likes and return a numpy array.

    Args:
        a: Left matrix (M x K)
        b: Right matrix (K x N)
        method: ``"auto"`` (default), ``"naive"``, ``"blocked"``,
            ``"blocked:<n>"``, ``"vendor"`` or a ``KernelVariant``
        config: Engine configuration

    Returns:
        Result matrix (M x N)
    """
    result = MatrixEngine(config).multiply(from_array(a), from_array(b), method)
    return to_array(result)
