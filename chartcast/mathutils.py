"""Small numeric helpers shared by the scoring modules."""

import math


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``round(2.5) == 3``).

    Python's built-in ``round`` uses banker's rounding, which would make
    rank percentiles depend on the parity of the forecast.
    """
    return int(math.floor(value + 0.5))


def round_to(value: float, digits: int = 1) -> float:
    """Half-up rounding to ``digits`` decimals."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
