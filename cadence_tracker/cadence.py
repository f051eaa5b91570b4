"""
Cadence estimation from fused speed and the selected gear.

cadence (RPM) = (speed / wheel_circumference) * gear_ratio * 60

Gear 0 means freewheeling: cadence is exactly 0 regardless of speed. Any
other unusable combination (gear out of range, unparseable ratio, bad wheel
circumference) yields None ("unavailable") instead of raising.
"""

import logging
import math
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


def parse_gear_ratio(value) -> Optional[float]:
    """
    Parse one gear ratio entry.

    Accepts numbers, decimal strings ("1.5") and chainring/cog fractions
    ("38/16"). Returns None for anything that is not a finite positive ratio.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ratio = float(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            if '/' in text:
                chainring, cog = text.split('/', 1)
                ratio = float(chainring) / float(cog)
            else:
                ratio = float(text)
        except (ValueError, ZeroDivisionError):
            return None
    else:
        return None

    if not math.isfinite(ratio) or ratio <= 0:
        return None
    return ratio


def parse_gear_ratios(entries: Optional[Iterable]) -> List[Optional[float]]:
    """Parse a gear list, keeping invalid entries as None so gear indices stay aligned."""
    ratios = []
    for index, entry in enumerate(entries or []):
        ratio = parse_gear_ratio(entry)
        if ratio is None:
            logger.debug("Gear %d ratio %r is not usable", index + 1, entry)
        ratios.append(ratio)
    return ratios


def wheel_circumference_from_diameter(diameter) -> Optional[float]:
    """Wheel circumference (m) from diameter (m), None if the diameter is unusable."""
    try:
        diameter = float(diameter)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(diameter) or diameter <= 0:
        return None
    return math.pi * diameter


def estimate_cadence(speed, gear, gear_ratios, wheel_circumference) -> Optional[float]:
    """
    Estimate pedaling cadence.

    Args:
        speed (float): Fused ground speed (m/s)
        gear (int): Selected gear, 1-based; 0 means freewheeling
        gear_ratios: Gear ratio entries (strings, numbers or pre-parsed floats)
        wheel_circumference (float): Wheel circumference (m)

    Returns:
        float: Cadence in RPM, 0.0 when freewheeling
        None: Gear configuration or wheel size unusable
    """
    try:
        gear = int(gear)
    except (TypeError, ValueError, OverflowError):
        return None
    if gear == 0:
        return 0.0

    ratios = list(gear_ratios or [])
    if gear < 1 or gear > len(ratios):
        return None

    ratio = parse_gear_ratio(ratios[gear - 1])
    if ratio is None:
        return None

    try:
        wheel_circumference = float(wheel_circumference)
        speed = float(speed)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(wheel_circumference) or wheel_circumference <= 0:
        return None
    if not math.isfinite(speed):
        return None

    return (max(0.0, speed) / wheel_circumference) * ratio * 60.0
