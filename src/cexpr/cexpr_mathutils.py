"""
Floating point helpers shared by the evaluator and the script runner.

Comparisons use a distance in units in the last place (ULP): the bit
pattern of each double is reinterpreted as a sign-magnitude integer so
that adjacent doubles differ by one, and two values are considered equal
when their distance is at most ``ulp_error``. Infinity and NaN are not
special-cased.
"""

import numpy as np

from cexpr.cexpr_constants import DEFAULT_ULP_TOLERANCE

_SIGN_BIT = 0x8000000000000000


def ordered_bits(value: float) -> int:
    """Maps a double onto an integer line where neighbouring doubles are 1 apart."""
    bits = int(np.float64(value).view(np.int64))
    if bits < 0:
        # negated magnitude; -0.0 and 0.0 both land on 0
        bits = -(bits + _SIGN_BIT)
    return bits


def is_equal(a: float, b: float, ulp_error: int = DEFAULT_ULP_TOLERANCE) -> bool:
    """True when ``a`` and ``b`` are at most ``ulp_error`` ULPs apart."""
    return abs(ordered_bits(a) - ordered_bits(b)) <= ulp_error


def is_inf_or_equal(a: float, b: float, ulp_error: int = DEFAULT_ULP_TOLERANCE) -> bool:
    """True when ``a`` is smaller than ``b`` or within ``ulp_error`` ULPs above it."""
    a_bits, b_bits = ordered_bits(a), ordered_bits(b)
    if a_bits > b_bits:
        return b_bits + ulp_error >= a_bits
    return True


def is_sup_or_equal(a: float, b: float, ulp_error: int = DEFAULT_ULP_TOLERANCE) -> bool:
    """True when ``a`` is greater than ``b`` or within ``ulp_error`` ULPs below it."""
    return is_inf_or_equal(b, a, ulp_error)


def is_true(value: float, ulp_error: int = DEFAULT_ULP_TOLERANCE) -> bool:
    """Truth test used by ``&&``, ``||``, ``if(...)`` and script conditions."""
    return not is_equal(value, 0.0, ulp_error)


def c_round(value: float) -> float:
    """Rounds half away from zero then truncates, like ``(int)(v +/- 0.5)``."""
    return float(np.trunc(value - 0.5 if value < 0.0 else value + 0.5))
