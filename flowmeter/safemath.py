"""Overflow-checked arithmetic on signed 32-bit integers."""

from __future__ import annotations

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class IntegerOverflowError(OverflowError):
    """Raised when a 32-bit integer operation leaves the int32 range."""

    def __init__(self, message: str = "integer overflow") -> None:
        super().__init__(message)


def _checked(result: int) -> int:
    if not INT32_MIN <= result <= INT32_MAX:
        raise IntegerOverflowError()
    return result


def safe_add32(a: int, b: int) -> int:
    """Return ``a + b``, raising IntegerOverflowError outside int32."""
    return _checked(a + b)


def safe_sub32(a: int, b: int) -> int:
    """Return ``a - b``, raising IntegerOverflowError outside int32."""
    return _checked(a - b)


def safe_mul32(a: int, b: int) -> int:
    """Return ``a * b``, raising IntegerOverflowError outside int32."""
    if a == 0 or b == 0:
        return 0
    return _checked(a * b)


def safe_div32(a: int, b: int) -> int:
    """Return ``a / b`` truncated toward zero.

    Raises ZeroDivisionError when ``b`` is zero and IntegerOverflowError
    for the one quotient that does not fit, ``INT32_MIN / -1``.
    """
    if b == 0:
        raise ZeroDivisionError("division by zero")
    if a == INT32_MIN and b == -1:
        raise IntegerOverflowError()
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient