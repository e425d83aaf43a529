# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import math
import typing as ty

import numpy as np
from numba import njit

# Offset guarding log2(0).
EPSILON = 1e-8


@njit
def _integer_lengths(max_abs: np.ndarray) -> np.ndarray:
    result = np.zeros(max_abs.shape, dtype=np.int64)
    for i in range(max_abs.size):
        v = max_abs.flat[i]
        # Also false for NaN.
        if v > EPSILON:
            # +1 for the sign bit
            result.flat[i] = int(math.ceil(math.log2(v + EPSILON + 1)))
    return result


def get_integer_lengths(max_abs: ty.Union[np.ndarray, ty.Sequence[float]]) \
        -> np.ndarray:
    """Calculates the integer length of dynamic fixed point numbers which
    represent values up to magnitude `max_abs` without saturation.

    This approximation assumes an infinitely long fractional part. Magnitudes
    not larger than EPSILON, including zero and negative values, have an
    integer length of 0.

    Parameters
    ----------
    max_abs : numpy.ndarray
        Maximal absolute values.

    Returns
    -------
    numpy.ndarray
        Integer lengths with the same shape as `max_abs`.
    """
    max_abs = np.asarray(max_abs, dtype=np.float64)
    if np.any(np.isinf(max_abs)):
        raise ValueError("Integer length of an infinite magnitude is "
                         "undefined.")
    return _integer_lengths(max_abs)


def get_integer_length(max_abs: float) -> int:
    """Returns the integer length for a single magnitude `max_abs`, see
    get_integer_lengths."""
    return int(get_integer_lengths(np.array([max_abs]))[0])


def get_fractional_length(bitwidth: int, integer_length: int) -> int:
    """Returns the fractional length of a dynamic fixed point number.
    Negative values are valid and signal saturation."""
    return bitwidth - integer_length


def get_integer_length_from(bitwidth: int, fractional_length: int) -> int:
    """Recovers the integer length from a bit-width and fractional length."""
    return bitwidth - fractional_length


def calc_signed_range(precision: int) -> ty.Tuple[int, int]:
    """Calculates min and max range for the specified precision.
    """
    two_raised_to_precision_m_1 = 1 << (precision - 1)
    min_of_range = -two_raised_to_precision_m_1
    max_of_range = two_raised_to_precision_m_1 - 1

    return min_of_range, max_of_range


def calc_dynamic_fixed_point_range(bitwidth: int,
                                   fractional_length: int) \
        -> ty.Tuple[float, float]:
    """Calculates the smallest and largest real value representable by a
    signed dynamic fixed point number of `bitwidth` bits of which
    `fractional_length` are fractional."""
    min_int, max_int = calc_signed_range(bitwidth)
    step = 2.0 ** -fractional_length
    return min_int * step, max_int * step
