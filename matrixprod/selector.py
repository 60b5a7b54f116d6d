"""
Backend selection.

Maps problem dimensions and host capabilities to a concrete kernel. The
mapping is pure: the same inputs always give the same variant.

| Condition (size = max(m, k, n))            | Kernel             |
|--------------------------------------------|--------------------|
| vendor BLAS and size >= VENDOR_SIZE_THRESHOLD | VendorBlas      |
| size < SMALL_SIZE_THRESHOLD                | Naive              |
| otherwise                                  | Blocked(block_size)|
"""

from .capabilities import CapabilityRecord
from .config import DEFAULT_BLOCK_SIZE
from .variants import KernelVariant


SMALL_SIZE_THRESHOLD = 200
VENDOR_SIZE_THRESHOLD = 500


def select(m: int, k: int, n: int, capability: CapabilityRecord,
           block_size: int = DEFAULT_BLOCK_SIZE) -> KernelVariant:
    """Choose the kernel for an ``(m x k) @ (k x n)`` product. Never returns ``AUTO``."""
    if min(m, k, n) < 0:
        raise ValueError(f"Matrix dimensions must be non-negative: {m}x{k} @ {k}x{n}")

    size = max(m, k, n)

    if capability.has_vendor_blas and size >= VENDOR_SIZE_THRESHOLD:
        return KernelVariant.vendor_blas()
    if size < SMALL_SIZE_THRESHOLD:
        return KernelVariant.naive()
    return KernelVariant.blocked(block_size)
