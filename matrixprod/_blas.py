"""Vendor BLAS discovery used by the capability probe and the BLAS delegate.

Two providers are searched, in order: a CBLAS shared library loaded through
``ctypes`` (OpenBLAS, MKL, Accelerate, or the system ``libcblas``), then the
Fortran BLAS that SciPy links against. Both are driven in column-major
convention only; translating other layouts is the caller's job.

Discovery runs at most once per process. Re-run it with
``load_provider(force=True)``.
"""

import ctypes
import ctypes.util
import logging
import os
import threading
from typing import Iterable, Optional

import numpy as np

from .config import ENV_BLAS_LIB, ENV_NO_BLAS, env_flag


logger = logging.getLogger(__name__)

_CBLAS_COL_MAJOR = 102
_CBLAS_NO_TRANS = 111

_LIBRARY_NAMES = (
    "openblas",
    "cblas",
    "blas",
    "mkl_rt",
    "Accelerate",
    "vecLib",
)

_PROVIDER: Optional['BlasProvider'] = None
_LOADED = False
_LOCK = threading.Lock()


class BlasProvider:
    """A column-major ``C = A @ B`` routine backed by a vendor library."""

    name = "blas"

    def __init__(self, vendor: str):
        self.vendor = vendor

    def dgemm(self, m: int, n: int, k: int,
              a: np.ndarray, b: np.ndarray, c: np.ndarray) -> None:
        """
        Compute ``c = a @ b`` for Fortran-ordered ``float64`` arrays of shapes
        ``(m, k)``, ``(k, n)`` and ``(m, n)``. All dimensions are positive.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.vendor!r})"


class CBlasProvider(BlasProvider):
    name = "cblas"

    def __init__(self, lib: ctypes.CDLL, path: str):
        super().__init__(_identify_vendor(lib, path))
        self.path = path

        func = lib.cblas_dgemm
        func.argtypes = [
            ctypes.c_int,
            ctypes.c_int,
            ctypes.c_int,
            ctypes.c_int,
            ctypes.c_int,
            ctypes.c_int,
            ctypes.c_double,
            ctypes.POINTER(ctypes.c_double),
            ctypes.c_int,
            ctypes.POINTER(ctypes.c_double),
            ctypes.c_int,
            ctypes.c_double,
            ctypes.POINTER(ctypes.c_double),
            ctypes.c_int,
        ]
        func.restype = None
        self._dgemm = func

    def dgemm(self, m, n, k, a, b, c):
        double_p = ctypes.POINTER(ctypes.c_double)
        self._dgemm(
            _CBLAS_COL_MAJOR,
            _CBLAS_NO_TRANS,
            _CBLAS_NO_TRANS,
            int(m),
            int(n),
            int(k),
            1.0,
            a.ctypes.data_as(double_p),
            int(m),
            b.ctypes.data_as(double_p),
            int(k),
            0.0,
            c.ctypes.data_as(double_p),
            int(m),
        )


class ScipyBlasProvider(BlasProvider):
    name = "scipy"

    def __init__(self, dgemm):
        super().__init__("scipy.linalg.blas")
        self._dgemm = dgemm

    def dgemm(self, m, n, k, a, b, c):
        result = self._dgemm(1.0, a, b, beta=0.0, c=c, overwrite_c=True)
        if not np.shares_memory(result, c):
            c[...] = result


def _identify_vendor(lib: ctypes.CDLL, path: str) -> str:
    try:
        config = lib.openblas_get_config
    except AttributeError:
        config = None
    if config is not None:
        config.restype = ctypes.c_char_p
        raw = config()
        return f"OpenBLAS ({raw.decode('utf-8', 'replace').strip()})" if raw else "OpenBLAS"
    if hasattr(lib, "MKL_Get_Version_String"):
        return "Intel MKL"
    return os.path.basename(path) or "generic CBLAS"


def _candidate_paths() -> Iterable[str]:
    hint = os.environ.get(ENV_BLAS_LIB, "").strip()
    if hint:
        for entry in hint.split(os.pathsep):
            entry = entry.strip()
            if entry:
                yield entry
    for name in _LIBRARY_NAMES:
        resolved = ctypes.util.find_library(name)
        if resolved:
            yield resolved


def _load_cblas() -> Optional[CBlasProvider]:
    for candidate in _candidate_paths():
        try:
            lib = ctypes.CDLL(candidate)
        except OSError as exc:
            logger.debug("Could not load BLAS candidate %s: %s", candidate, exc)
            continue
        if not hasattr(lib, "cblas_dgemm"):
            logger.debug("BLAS candidate %s does not export cblas_dgemm", candidate)
            continue
        return CBlasProvider(lib, candidate)
    return None


def _load_scipy() -> Optional[ScipyBlasProvider]:
    try:
        from scipy.linalg import blas as scipy_blas
    except ImportError:
        return None
    return ScipyBlasProvider(scipy_blas.dgemm)


def load_provider(force: bool = False) -> Optional[BlasProvider]:
    """Return the process-wide BLAS provider, discovering it on first use."""
    global _PROVIDER, _LOADED

    if _LOADED and not force:
        return _PROVIDER

    with _LOCK:
        if _LOADED and not force:  # Double-checked locking
            return _PROVIDER

        if env_flag(ENV_NO_BLAS):
            logger.debug("Vendor BLAS disabled by %s", ENV_NO_BLAS)
            provider = None
        else:
            provider = _load_cblas() or _load_scipy()

        if provider is None:
            logger.debug("No vendor BLAS found")
        else:
            logger.debug("Using vendor BLAS %r", provider)

        _PROVIDER = provider
        _LOADED = True
        return provider


def blas_available() -> bool:
    """Return ``True`` when a vendor BLAS provider could be loaded."""
    return load_provider() is not None


def blas_vendor() -> Optional[str]:
    """Descriptive name of the loaded BLAS implementation, or ``None``."""
    provider = load_provider()
    return provider.vendor if provider is not None else None
