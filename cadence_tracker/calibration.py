"""
Periodic zero-motion bias calibration for accelerometer and gyroscope axes.

Sensor offsets drift with temperature and mounting shifts, so a single
warm-up calibration is not enough for a long ride. The calibrator opens a
sampling window on the first sample and again every ``recalibration_interval``
seconds, averages all six raw axes over ``sampling_duration`` seconds, and
swaps in the new BiasEstimate in one assignment when the window closes.

Samples consumed by an open window are withheld from the speed pipeline.
"""

import logging

import numpy as np

from .models import BiasEstimate, MotionSample, SensorReading
from .utils import is_finite

logger = logging.getLogger(__name__)


class BiasCalibrator:
    """Windowed mean-offset estimator; single writer, driven by ingest()."""

    def __init__(self, recalibration_interval=10.0, sampling_duration=2.0):
        """
        Initialize calibrator.

        Args:
            recalibration_interval (float): Seconds between the end of one
                window and the start of the next
            sampling_duration (float): Seconds of samples averaged per window
        """
        self.recalibration_interval = recalibration_interval
        self.sampling_duration = sampling_duration

        self.estimate = BiasEstimate()
        self.window_start = None
        self.buffer = []  # rows of [ax, ay, az, rx, ry, rz]

        self.windows_completed = 0

    @property
    def is_calibrating(self):
        return self.window_start is not None

    @property
    def has_estimate(self):
        return self.estimate.valid

    def _due(self, now):
        if not self.estimate.valid:
            return True
        return now - self.estimate.computed_at > self.recalibration_interval

    def ingest(self, sample: MotionSample) -> bool:
        """
        Feed one motion sample.

        Returns:
            bool: True if the sample should flow on to the speed pipeline,
                  False if it was consumed by a calibration window
        """
        now = sample.timestamp

        if not self.is_calibrating and is_finite(now) and self._due(now):
            self.window_start = now
            self.buffer = []

        if not self.is_calibrating:
            return True

        row = (sample.accel_x, sample.accel_y, sample.accel_z,
               sample.rot_x, sample.rot_y, sample.rot_z)
        if all(is_finite(v) for v in row):
            self.buffer.append(row)
        else:
            logger.debug("Skipping non-finite calibration sample at %s", now)

        if is_finite(now) and now - self.window_start >= self.sampling_duration:
            self._close_window(now)

        return False

    def _close_window(self, now):
        if not self.buffer:
            # Nothing usable collected; keep the previous estimate and retry
            self.window_start = now
            return

        means = np.mean(np.asarray(self.buffer, dtype=float), axis=0)
        self.estimate = BiasEstimate(
            accel=(float(means[0]), float(means[1]), float(means[2])),
            rotation=(float(means[3]), float(means[4]), float(means[5])),
            computed_at=now,
            sample_count=len(self.buffer),
            valid=True,
        )
        self.windows_completed += 1
        self.buffer = []
        self.window_start = None

        logger.info(
            "Bias recalculated from %d samples: accel=(%.4f, %.4f, %.4f) rotation=(%.4f, %.4f, %.4f)",
            self.estimate.sample_count, *self.estimate.accel, *self.estimate.rotation,
        )

    def correct(self, sample: MotionSample) -> SensorReading:
        """Subtract the active bias from all six axes of a sample."""
        ax, ay, az = self.estimate.accel
        rx, ry, rz = self.estimate.rotation
        return SensorReading(
            acceleration_x=sample.accel_x - ax,
            acceleration_y=sample.accel_y - ay,
            acceleration_z=sample.accel_z - az,
            rotation_rate_x=sample.rot_x - rx,
            rotation_rate_y=sample.rot_y - ry,
            rotation_rate_z=sample.rot_z - rz,
        )

    def reset(self):
        """Drop the active estimate and any open window (session start)."""
        self.estimate = BiasEstimate()
        self.window_start = None
        self.buffer = []
