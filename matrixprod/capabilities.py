"""
Hardware Capability Probe

Detects coarse hardware facts (thread count, SIMD tier, vendor BLAS and GPU
paths) and returns them as an immutable, fixed-shape ``CapabilityRecord``.
Detection never fails: any fact that cannot be determined falls back to a
conservative default.

The record is computed once per process and cached; ``probe_capabilities``
guards the first computation with a lock so concurrent first callers all
receive the same object.
"""

import ctypes.util
import logging
import os
import platform
import subprocess
import threading
from dataclasses import asdict, astuple, dataclass
from enum import Enum, IntEnum
from typing import Dict, Optional, Set, Tuple

import psutil

from . import _blas


logger = logging.getLogger(__name__)

DEFAULT_THREAD_COUNT = 8


class SIMDTier(IntEnum):
    """Ordinal SIMD capability of the host CPU"""
    NONE = 0
    SSE2 = 1  # and 128-bit equivalents such as NEON
    AVX = 2
    AVX2 = 3
    AVX512 = 4


class PlatformClass(Enum):
    APPLE_SILICON = "apple_silicon"
    INTEL_MAC = "intel_mac"
    GENERIC = "generic"  # other hosts with a vendor BLAS
    GENERIC_NO_BLAS = "generic_no_blas"


# Advisory GFLOPS for (small, medium, large) problems. Static estimates,
# not measurements.
THROUGHPUT_ESTIMATES: Dict[PlatformClass, Tuple[float, float, float]] = {
    PlatformClass.APPLE_SILICON: (26.0, 143.0, 397.0),
    PlatformClass.INTEL_MAC: (18.0, 95.0, 320.0),
    PlatformClass.GENERIC: (15.0, 80.0, 90.0),
    PlatformClass.GENERIC_NO_BLAS: (10.0, 20.0, 20.0),
}


@dataclass(frozen=True)
class CapabilityRecord:
    """Hardware capabilities relevant to matrix multiplication"""
    has_vendor_blas: bool
    has_opencl: bool
    has_gpu: bool
    thread_count: int
    simd_tier: int
    est_gflops_small: float
    est_gflops_medium: float
    est_gflops_large: float

    def __post_init__(self):
        if self.thread_count < 1:
            raise ValueError(f"thread_count must be positive, got {self.thread_count}")
        if not SIMDTier.NONE <= self.simd_tier <= SIMDTier.AVX512:
            raise ValueError(f"simd_tier must be in [0, 4], got {self.simd_tier}")
        for name in ('est_gflops_small', 'est_gflops_medium', 'est_gflops_large'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    def as_tuple(self) -> Tuple[bool, bool, bool, int, int, float, float, float]:
        """The 8 fields in their fixed order."""
        return astuple(self)

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)

    @property
    def simd_tier_name(self) -> str:
        return SIMDTier(self.simd_tier).name


class HardwareDetector:
    """Hardware capability detection"""

    @staticmethod
    def detect_cpu_features() -> Set[str]:
        """Detect CPU feature flags using platform-specific methods"""
        features: Set[str] = set()
        system = platform.system()
        machine = platform.machine().lower()

        if system == 'Linux':
            try:
                with open('/proc/cpuinfo', 'r') as f:
                    for line in f:
                        key, _, value = line.partition(':')
                        # x86 reports "flags", ARM reports "Features"
                        if key.strip().lower() in ('flags', 'features'):
                            features.update(value.lower().split())
            except OSError as exc:
                logger.debug("Could not read /proc/cpuinfo: %s", exc)

        elif system == 'Darwin':
            if machine in ('arm64', 'aarch64'):
                features.add('neon')
            else:
                try:
                    result = subprocess.run(
                        ['sysctl', '-n', 'machdep.cpu.features', 'machdep.cpu.leaf7_features'],
                        capture_output=True, text=True, timeout=5,
                    )
                    features.update(result.stdout.lower().replace('.', '_').split())
                except (subprocess.SubprocessError, OSError) as exc:
                    logger.debug("sysctl feature query failed: %s", exc)

        # Fallback feature detection
        if not features:
            if machine in ('x86_64', 'amd64'):
                features.update(['sse', 'sse2'])
            elif machine in ('arm64', 'aarch64'):
                features.add('neon')

        return features

    @staticmethod
    def simd_tier(features: Set[str]) -> SIMDTier:
        if 'avx512f' in features:
            return SIMDTier.AVX512
        if 'avx2' in features:
            return SIMDTier.AVX2
        if 'avx' in features or 'avx1_0' in features:
            return SIMDTier.AVX
        if features & {'sse2', 'neon', 'asimd'}:
            return SIMDTier.SSE2
        return SIMDTier.NONE

    @staticmethod
    def detect_thread_count() -> int:
        count = psutil.cpu_count(logical=True) or os.cpu_count()
        return count if count and count > 0 else DEFAULT_THREAD_COUNT

    @staticmethod
    def detect_opencl() -> bool:
        return ctypes.util.find_library('OpenCL') is not None

    @staticmethod
    def detect_gpu() -> bool:
        # only the Metal path is recognised; no GPU kernel is implemented
        if platform.system() != 'Darwin':
            return False
        return ctypes.util.find_library('Metal') is not None

    @staticmethod
    def platform_class(has_vendor_blas: bool = False) -> PlatformClass:
        # macOS always ships Accelerate
        if platform.system() == 'Darwin':
            if platform.machine().lower() in ('arm64', 'aarch64'):
                return PlatformClass.APPLE_SILICON
            return PlatformClass.INTEL_MAC
        return PlatformClass.GENERIC if has_vendor_blas else PlatformClass.GENERIC_NO_BLAS


def _safe(fact: str, probe, default):
    try:
        return probe()
    except Exception as exc:  # detection must never fail
        logger.debug("Capability probe for %s failed (%s); using %r", fact, exc, default)
        return default


def _detect_vendor_blas(force: bool) -> bool:
    if force:
        return _blas.load_provider(force=True) is not None
    return _blas.blas_available()


def detect(force: bool = False) -> CapabilityRecord:
    """
    Run hardware detection. Prefer ``probe_capabilities`` for the cached record.

    With ``force`` the vendor BLAS search is repeated as well instead of
    reusing the process-wide provider.
    """
    features = _safe('cpu features', HardwareDetector.detect_cpu_features, set())
    has_vendor_blas = bool(_safe('vendor BLAS', lambda: _detect_vendor_blas(force), False))
    platform_class = _safe('platform class',
                           lambda: HardwareDetector.platform_class(has_vendor_blas),
                           PlatformClass.GENERIC if has_vendor_blas else PlatformClass.GENERIC_NO_BLAS)
    small, medium, large = THROUGHPUT_ESTIMATES[platform_class]

    record = CapabilityRecord(
        has_vendor_blas=has_vendor_blas,
        has_opencl=bool(_safe('OpenCL', HardwareDetector.detect_opencl, False)),
        has_gpu=bool(_safe('GPU', HardwareDetector.detect_gpu, False)),
        thread_count=int(_safe('thread count', HardwareDetector.detect_thread_count,
                               DEFAULT_THREAD_COUNT)),
        simd_tier=int(_safe('SIMD tier', lambda: HardwareDetector.simd_tier(features),
                            SIMDTier.NONE)),
        est_gflops_small=small,
        est_gflops_medium=medium,
        est_gflops_large=large,
    )
    logger.debug("Detected capabilities: %s", record)
    return record


_RECORD: Optional[CapabilityRecord] = None
_LOCK = threading.Lock()


def probe_capabilities(force: bool = False) -> CapabilityRecord:
    """
    Return the process-wide capability record.

    Detection runs on first use (or when ``force`` is set); afterwards the
    same immutable record is returned to every caller without locking.
    """
    global _RECORD

    record = _RECORD
    if record is not None and not force:
        return record

    with _LOCK:
        if _RECORD is None or force:
            _RECORD = detect(force)
        return _RECORD


def format_capabilities(record: CapabilityRecord) -> str:
    """Render a capability record as a readable report."""
    def yes_no(flag: bool) -> str:
        return 'Yes' if flag else 'No'

    lines = [
        "matrixprod Hardware Capabilities",
        "=" * 40,
        f"  • Vendor BLAS: {yes_no(record.has_vendor_blas)}",
        f"  • OpenCL: {yes_no(record.has_opencl)}",
        f"  • GPU: {yes_no(record.has_gpu)}",
        f"  • CPU Threads: {record.thread_count}",
        f"  • SIMD Tier: {record.simd_tier} ({record.simd_tier_name})",
        "",
        "Estimated Throughput (advisory):",
        f"  • Small matrices: {record.est_gflops_small:.1f} GFLOPS",
        f"  • Medium matrices: {record.est_gflops_medium:.1f} GFLOPS",
        f"  • Large matrices: {record.est_gflops_large:.1f} GFLOPS",
    ]
    return "\n".join(lines)
