"""
Multiplication kernels.

Three stateless implementations of ``C = A @ B`` over ``MatrixBuffer``
operands. Each validates its operands before touching the output.
"""

from .naive import multiply_naive
from .blocked import multiply_blocked
from .vendor import multiply_vendor

__all__ = [
    'multiply_naive',
    'multiply_blocked',
    'multiply_vendor',
]
