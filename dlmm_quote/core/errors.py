"""Exception types for the quoting core.

Every failure carries a machine-readable ``kind`` plus a human-readable message.
Each subclass also derives from the closest builtin so callers that only know
``ValueError`` / ``OverflowError`` / ``ZeroDivisionError`` still catch it.
"""

from __future__ import annotations

from enum import Enum, unique


@unique
class ErrorKind(Enum):
    INVALID_PARAMETER = "InvalidParameter"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    MATH_OVERFLOW = "MathOverflow"
    DIVISION_BY_ZERO = "DivisionByZero"


class DlmmError(Exception):
    """Base class; never raised directly."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.kind.value}: {message}")


class InvalidParameterError(DlmmError, ValueError):
    """Raised when a caller-supplied argument is outside its domain."""

    kind = ErrorKind.INVALID_PARAMETER


class InsufficientLiquidityError(DlmmError):
    """Raised when the supplied pages cannot fill a swap and partial fill is off."""

    kind = ErrorKind.INSUFFICIENT_LIQUIDITY


class MathOverflowError(DlmmError, OverflowError):
    """Raised when fixed-point arithmetic leaves its representable range."""

    kind = ErrorKind.MATH_OVERFLOW


class DivisionByZeroError(DlmmError, ZeroDivisionError):
    """Raised on a degenerate curve or an empty normalization set."""

    kind = ErrorKind.DIVISION_BY_ZERO
