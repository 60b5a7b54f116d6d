"""
matrixprod: multi-backend dense matrix multiplication

Computes ``C = A @ B`` in double precision, choosing between a naive
reference kernel, a cache-blocked kernel and a vendor BLAS delegate based
on matrix size and detected hardware.

Architecture:
    matrixprod/
    ├── buffer.py         # Flat matrix buffers with explicit layout, numpy adapter
    ├── capabilities.py   # Hardware capability probe
    ├── kernels/          # Naive, blocked and vendor BLAS kernels
    ├── selector.py       # Size/capability driven kernel selection
    └── engine.py         # Entry points

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .buffer import Layout, MatrixBuffer, from_array, to_array
from .capabilities import CapabilityRecord, SIMDTier, detect, format_capabilities, probe_capabilities
from .config import EngineConfig
from .engine import MatrixEngine, matmul, multiply
from .errors import DimensionError, MatrixProdError, UnsupportedVariantError
from .kernels import multiply_blocked, multiply_naive, multiply_vendor
from .selector import SMALL_SIZE_THRESHOLD, VENDOR_SIZE_THRESHOLD, select
from .variants import KernelVariant, VariantKind

__all__ = [
    # Buffers
    "Layout", "MatrixBuffer", "from_array", "to_array",

    # Capabilities
    "CapabilityRecord", "SIMDTier", "detect", "probe_capabilities", "format_capabilities",

    # Kernels and selection
    "KernelVariant", "VariantKind",
    "multiply_naive", "multiply_blocked", "multiply_vendor",
    "select", "SMALL_SIZE_THRESHOLD", "VENDOR_SIZE_THRESHOLD",

    # Engine
    "EngineConfig", "MatrixEngine", "multiply", "matmul",

    # Errors
    "MatrixProdError", "DimensionError", "UnsupportedVariantError",

    "__version__",
]
