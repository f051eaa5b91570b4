"""Data models passed between the tracker components and its callers."""

from dataclasses import asdict, dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

IDENTITY_ATTITUDE = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))


@dataclass(frozen=True)
class MotionSample:
    """
    One device-motion reading.

    Acceleration is body-frame and gravity-compensated (g). Rotation rate is
    body-frame (rad/s). ``attitude`` is the 3x3 rotation matrix taking
    body-frame vectors into the horizontal reference frame.
    """
    accel_x: float
    accel_y: float
    accel_z: float
    rot_x: float
    rot_y: float
    rot_z: float
    timestamp: float
    attitude: Sequence[Sequence[float]] = IDENTITY_ATTITUDE

    @property
    def acceleration(self) -> np.ndarray:
        return np.array([self.accel_x, self.accel_y, self.accel_z], dtype=float)

    @property
    def rotation_rate(self) -> np.ndarray:
        return np.array([self.rot_x, self.rot_y, self.rot_z], dtype=float)

    @classmethod
    def from_dict(cls, data) -> "MotionSample":
        """Build from a recorded sample dict (keys as written by the recorder)."""
        return cls(
            accel_x=float(data['accel_x']),
            accel_y=float(data['accel_y']),
            accel_z=float(data['accel_z']),
            rot_x=float(data.get('rot_x', 0.0)),
            rot_y=float(data.get('rot_y', 0.0)),
            rot_z=float(data.get('rot_z', 0.0)),
            timestamp=float(data['timestamp']),
            attitude=data.get('attitude') or IDENTITY_ATTITUDE,
        )


@dataclass(frozen=True)
class PositionFix:
    """Satellite speed fix: ground speed (m/s), horizontal accuracy radius (m)."""
    speed: float
    horizontal_accuracy: float
    timestamp: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data) -> "PositionFix":
        return cls(
            speed=float(data['speed']),
            horizontal_accuracy=float(data['horizontal_accuracy']),
            timestamp=float(data['timestamp']),
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
        )


@dataclass(frozen=True)
class BiasEstimate:
    """
    Zero-motion sensor offsets averaged over one calibration window.

    Always replaced as a whole; the default instance (all zeros, invalid) is
    the estimate in force before the first window completes.
    """
    accel: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    computed_at: Optional[float] = None
    sample_count: int = 0
    valid: bool = False


@dataclass(frozen=True)
class FilterState:
    """Read-only snapshot of the speed filter."""
    x: float
    P: float
    Q: float
    last_update_time: Optional[float]


@dataclass(frozen=True)
class SensorReading:
    """Bias-corrected acceleration and rotation rate for one sample."""
    acceleration_x: float
    acceleration_y: float
    acceleration_z: float
    rotation_rate_x: float
    rotation_rate_y: float
    rotation_rate_z: float


@dataclass(frozen=True)
class CyclingRecord:
    """Per-sample record emitted while recording is active."""
    timestamp: float
    speed: float
    cadence: float
    gear: int
    terrain: str
    is_standing: bool
    sensor_data: SensorReading
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class TrackerOutput:
    """What the tracker publishes for each motion sample it does not withhold."""
    timestamp: float
    speed: float                # m/s, never negative
    cadence: Optional[float]    # RPM, None when gear config is unusable
    acceleration: float         # projected horizontal acceleration (g)
    confidence: float           # [0, 1]
    forced_stop: bool = False
    record: Optional[CyclingRecord] = field(default=None, compare=False)
