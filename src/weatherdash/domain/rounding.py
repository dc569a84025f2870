from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like ``Math.round``: halves always go towards positive infinity."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def round_int(value: float) -> int:
    return int(round_half_up(value))
