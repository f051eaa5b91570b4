"""
Tunable constants for the cycling speed/cadence tracker.

All the constants that differed between historical versions of the filter
(recalibration interval, process-noise growth, measurement-noise clamp) live
here instead of being hardcoded, so a single filter implementation can
reproduce any of them.
"""

import logging
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .cadence import wheel_circumference_from_diameter

logger = logging.getLogger(__name__)

# Smallest noise constant the filter will accept (keeps P and R positive)
NOISE_EPSILON = 1e-9


@dataclass
class TrackerConfig:
    """
    Configuration for CadenceSpeedTracker and its components.

    Times are in seconds, distances in meters, speeds in m/s. Motion samples
    are expected in g (gravity-compensated), rotation rates in rad/s.
    """

    # Bias calibration
    recalibration_interval: float = 10.0  # seconds between calibration windows
    calibration_window: float = 2.0       # seconds of samples averaged per window

    # Kalman filter
    initial_covariance: float = 1.0
    process_noise: float = 0.1             # baseline Q
    process_noise_increment: float = 0.01  # Q growth per predict without a recent fix
    staleness_threshold: float = 1.0       # seconds since last fix before Q grows
    adaptive_process_noise: bool = True
    gps_base_noise: float = 1.0
    reference_accuracy: float = 5.0        # meters; R == gps_base_noise at this accuracy
    min_measurement_noise: float = 1.0
    max_measurement_noise: float = 100.0
    reliable_accuracy: float = 10.0        # meters; better fixes reset Q

    # Position fix gate
    min_horizontal_accuracy: float = 0.0
    max_horizontal_accuracy: float = 100.0

    # Confidence decay
    confidence_reference_scale: float = 0.2  # g
    low_confidence_threshold: float = 0.05
    low_confidence_duration: float = 5.0
    damping_constant: float = 0.01

    # Acceleration conditioning
    gravity: float = 9.81  # m/s² per g
    axis_weights: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    acceleration_tuning: float = 1.0
    low_pass_alpha: Optional[float] = None

    # Source toggles
    use_accelerometer: bool = True
    use_gps: bool = True

    # Bike geometry
    gear_ratios: List[Any] = field(default_factory=list)
    wheel_circumference: float = 2.1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrackerConfig":
        """
        Build a config from a plain settings mapping.

        Unknown keys are ignored and missing keys keep their defaults. A
        ``wheel_diameter`` entry is converted to a circumference when no
        ``wheel_circumference`` is supplied.
        """
        return cls().merged(data)

    def merged(self, data: Mapping[str, Any]) -> "TrackerConfig":
        """
        Return a copy of this config with the known keys of ``data`` applied.

        Values are converted to the field's type ("30" -> 30.0, "false" ->
        False, "1.0,1.5" -> ["1.0", "1.5"]). A value that does not convert is
        dropped and the current one kept.
        """
        defaults = {f.name: f.default for f in fields(self)}
        updates: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in defaults:
                continue
            try:
                updates[key] = _coerce(key, value, defaults[key])
            except (TypeError, ValueError, OverflowError):
                logger.debug("Ignoring setting %s=%r", key, value)

        if 'wheel_circumference' not in updates and 'wheel_diameter' in data:
            circumference = wheel_circumference_from_diameter(data['wheel_diameter'])
            if circumference is not None:
                updates['wheel_circumference'] = circumference

        return replace(self, **updates)

    @classmethod
    def preset(cls, name: str, **overrides) -> "TrackerConfig":
        """
        Get one of the historical filter variants by name.

        Args:
            name (str): Preset name - options:
                - 'adaptive': Q grows while no fix arrives, accuracy-scaled R (default)
                - 'static': constant Q and a fixed R of 4.0
                - 'slow-recalibration': adaptive filter, bias recomputed every 30s
            **overrides: Field values applied on top of the preset

        Raises:
            ValueError: If the preset name is not recognized
        """
        if name == 'adaptive':
            config = cls()
        elif name == 'static':
            config = cls(adaptive_process_noise=False,
                         min_measurement_noise=4.0,
                         max_measurement_noise=4.0)
        elif name == 'slow-recalibration':
            config = cls(recalibration_interval=30.0)
        else:
            raise ValueError(f"Unknown preset: {name}. Use 'adaptive', 'static', or 'slow-recalibration'")
        return config.merged(overrides) if overrides else config


_TRUE_STRINGS = {'true', 'yes', 'on', '1'}
_FALSE_STRINGS = {'false', 'no', 'off', '0'}


def _to_float(value) -> float:
    if isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite value {value!r}")
    return number


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return _to_float(value) != 0.0


def _coerce(name, value, default):
    """Convert a raw setting to the type of its TrackerConfig field."""
    if name == 'gear_ratios':
        if value is None:
            return []
        if isinstance(value, str):
            return [entry.strip() for entry in value.split(',') if entry.strip()]
        return list(value)
    if name == 'axis_weights':
        if isinstance(value, str):
            value = value.split(',')
        weights = tuple(_to_float(w) for w in value)
        if len(weights) != 3:
            raise ValueError(f"expected 3 axis weights, got {len(weights)}")
        return weights
    if name == 'low_pass_alpha':
        return None if value is None else _to_float(value)
    if isinstance(default, bool):
        return _to_bool(value)
    return _to_float(value)


def positive_or_epsilon(value) -> float:
    """Coerce a noise constant to a float no smaller than NOISE_EPSILON."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return NOISE_EPSILON
    if not math.isfinite(value) or value < NOISE_EPSILON:
        return NOISE_EPSILON
    return value
