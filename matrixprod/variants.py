"""
Kernel variants.

A closed set of tags naming the multiplication strategies. ``AUTO`` is
resolved by the backend selector before any kernel runs; it is never a
kernel itself.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import validate_block_size


class VariantKind(Enum):
    NAIVE = "naive"
    BLOCKED = "blocked"
    VENDOR_BLAS = "vendor_blas"
    AUTO = "auto"


_ALIASES = {
    'naive': VariantKind.NAIVE,
    'blocked': VariantKind.BLOCKED,
    'vendor': VariantKind.VENDOR_BLAS,
    'vendor_blas': VariantKind.VENDOR_BLAS,
    'blas': VariantKind.VENDOR_BLAS,
    'auto': VariantKind.AUTO,
}


@dataclass(frozen=True)
class KernelVariant:
    """A kernel choice; ``block_size`` is only set for ``BLOCKED``."""
    kind: VariantKind
    block_size: Optional[int] = None

    def __post_init__(self):
        if self.kind is VariantKind.BLOCKED:
            if self.block_size is None:
                raise ValueError("Blocked variant requires a block size")
            # frozen, so normalise numpy integers through object.__setattr__
            object.__setattr__(self, "block_size", validate_block_size(self.block_size))
        elif self.block_size is not None:
            raise ValueError(f"{self.kind.value} variant does not take a block size")

    @classmethod
    def naive(cls) -> 'KernelVariant':
        return cls(VariantKind.NAIVE)

    @classmethod
    def blocked(cls, block_size: int = 64) -> 'KernelVariant':
        return cls(VariantKind.BLOCKED, block_size)

    @classmethod
    def vendor_blas(cls) -> 'KernelVariant':
        return cls(VariantKind.VENDOR_BLAS)

    @classmethod
    def auto(cls) -> 'KernelVariant':
        return cls(VariantKind.AUTO)

    @property
    def is_auto(self) -> bool:
        return self.kind is VariantKind.AUTO

    @classmethod
    def parse(cls, text: str, default_block_size: int = 64) -> 'KernelVariant':
        """
        Parse a method name such as ``"auto"``, ``"naive"``, ``"vendor"``,
        ``"blocked"`` or ``"blocked:32"``.
        """
        name, _, size = text.strip().lower().partition(':')
        kind = _ALIASES.get(name)
        if kind is None:
            raise ValueError(f"Unknown method: {text!r}")

        if kind is VariantKind.BLOCKED:
            if size:
                try:
                    block_size = int(size)
                except ValueError:
                    raise ValueError(f"Invalid block size in {text!r}") from None
            else:
                block_size = default_block_size
            return cls(kind, block_size)

        if size:
            raise ValueError(f"Method {name!r} does not take a block size")
        return cls(kind)

    def __str__(self) -> str:
        if self.kind is VariantKind.BLOCKED:
            return f"blocked({self.block_size})"
        return self.kind.value
