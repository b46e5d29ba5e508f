# MIT License
# Copyright (c) 2025 Hashborn

"""
Unsigned 256-bit arithmetic.

Python integers never overflow, so every ledger mutation goes through these
helpers to keep amounts inside the uint256 range the contracts are defined on.
"""

from .common import ArithmeticOverflow, ValidationError, ERR_OVERFLOW
from ..config.params import UINT256_MAX


def require_uint(value, name: str = "amount") -> int:
    """Validates an external input as a uint256 and returns it."""
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    if value > UINT256_MAX:
        raise ValidationError(f"{name} exceeds uint256 range")
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > UINT256_MAX:
        raise ArithmeticOverflow(ERR_OVERFLOW)
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise ArithmeticOverflow(ERR_OVERFLOW)
    return result


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > UINT256_MAX:
        raise ArithmeticOverflow(ERR_OVERFLOW)
    return result
