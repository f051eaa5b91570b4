"""
Shared numeric helpers.

Sensor callbacks hand us whatever the platform produced, so every check here
accepts arbitrary objects and answers False rather than raising.
"""

import math


def is_finite(value):
    """True for real numbers that are neither NaN nor infinite."""
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def clamp(value, low, high):
    """Clamp value into [low, high]."""
    return min(max(value, low), high)
