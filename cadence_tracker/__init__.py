"""
Cycling speed and cadence estimation from motion sensors and satellite fixes.

Example usage:
    tracker = CadenceSpeedTracker(TrackerConfig.preset('adaptive', gear_ratios=['38/16']))
    tracker.set_ride_context(gear=1)

    tracker.process_motion(MotionSample(ax, ay, az, rx, ry, rz, timestamp))
    tracker.process_fix(PositionFix(speed, horizontal_accuracy, timestamp))
    state = tracker.get_state()
"""

from .cadence import estimate_cadence, parse_gear_ratio, parse_gear_ratios, wheel_circumference_from_diameter
from .calibration import BiasCalibrator
from .config import TrackerConfig
from .decay import ConfidenceDecay
from .filters import SpeedKalmanFilter
from .models import (
    BiasEstimate,
    CyclingRecord,
    FilterState,
    MotionSample,
    PositionFix,
    SensorReading,
    TrackerOutput,
)
from .orientation import OrientationProjector
from .tracker import CadenceSpeedTracker

__version__ = '0.1.0'

__all__ = [
    'BiasCalibrator',
    'BiasEstimate',
    'CadenceSpeedTracker',
    'ConfidenceDecay',
    'CyclingRecord',
    'FilterState',
    'MotionSample',
    'OrientationProjector',
    'PositionFix',
    'SensorReading',
    'SpeedKalmanFilter',
    'TrackerConfig',
    'TrackerOutput',
    'estimate_cadence',
    'parse_gear_ratio',
    'parse_gear_ratios',
    'wheel_circumference_from_diameter',
]
