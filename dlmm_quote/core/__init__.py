"""
Core DLMM algorithms.

Only the error types are re-exported here; the kernels layer raises them, so
this package must stay importable without pulling in modules built on the
kernels. Import algorithms from their modules (`dlmm_quote.core.swap_quote`,
`dlmm_quote.core.distribution`, ...).
"""

from .errors import (
    DivisionByZeroError,
    DlmmError,
    ErrorKind,
    InsufficientLiquidityError,
    InvalidParameterError,
    MathOverflowError,
)

__all__ = [
    "DivisionByZeroError",
    "DlmmError",
    "ErrorKind",
    "InsufficientLiquidityError",
    "InvalidParameterError",
    "MathOverflowError",
]
