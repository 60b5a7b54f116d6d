"""
Engine configuration.

Defaults can be overridden in code or through ``MATRIXPROD_*``
environment variables via ``EngineConfig.from_env()``.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np


DEFAULT_BLOCK_SIZE = 64

ENV_BLOCK_SIZE = "MATRIXPROD_BLOCK_SIZE"
ENV_STRICT = "MATRIXPROD_STRICT"
ENV_DEBUG = "MATRIXPROD_DEBUG"
ENV_BLAS_LIB = "MATRIXPROD_BLAS_LIB"
ENV_NO_BLAS = "MATRIXPROD_NO_BLAS"

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


def validate_block_size(block_size) -> int:
    """Return ``block_size`` as a plain int, rejecting bools, non-integers and values below 1."""
    if isinstance(block_size, bool) or not isinstance(block_size, (int, np.integer)):
        raise TypeError(f"block_size must be an int, got {block_size!r}")
    if block_size <= 0:
        raise ValueError(f"block_size must be positive, got {block_size}")
    return int(block_size)


def env_flag(name: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    """Read a boolean environment variable; unset means ``False``."""
    environ = os.environ if environ is None else environ
    value = environ.get(name, '').strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {value!r}")


@dataclass
class EngineConfig:
    """Configuration for matrix multiplication"""
    block_size: int = DEFAULT_BLOCK_SIZE  # tile size for the blocked kernel
    strict_variants: bool = False  # raise instead of degrading an unavailable VendorBlas request
    debug_mode: bool = False

    def __post_init__(self):
        self.block_size = validate_block_size(self.block_size)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'EngineConfig':
        environ = os.environ if environ is None else environ

        block_size = DEFAULT_BLOCK_SIZE
        raw_block = environ.get(ENV_BLOCK_SIZE, '').strip()
        if raw_block:
            try:
                block_size = int(raw_block)
            except ValueError:
                raise ValueError(f"{ENV_BLOCK_SIZE} must be an integer, got {raw_block!r}") from None

        return cls(
            block_size=block_size,
            strict_variants=env_flag(ENV_STRICT, environ),
            debug_mode=env_flag(ENV_DEBUG, environ),
        )
