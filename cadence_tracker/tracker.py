"""
Real-time cycling speed and cadence tracker.

Wires the pipeline together behind one lock:

    motion sample -> BiasCalibrator -> OrientationProjector -> SpeedKalmanFilter.predict
                                                            -> ConfidenceDecay
                                                            -> estimate_cadence
    position fix  -> SpeedKalmanFilter.update

The motion stream (~50 Hz) and the position stream (irregular) come from
independent sensors and may call in from separate threads. Every public
method takes the tracker lock for its full duration, so FilterState and the
active BiasEstimate only ever have one writer at a time and an applied fix
is visible to the very next predict.

Example usage:
    tracker = CadenceSpeedTracker(TrackerConfig(gear_ratios=["1.0", "1.5", "2.0"]))
    tracker.set_ride_context(gear=3)

    output = tracker.process_motion(sample)   # None while calibrating
    tracker.process_fix(fix)
    state = tracker.get_state()
"""

import logging
import queue
import threading
from typing import Mapping, Optional

import numpy as np

from .cadence import estimate_cadence, parse_gear_ratios
from .calibration import BiasCalibrator
from .config import TrackerConfig
from .decay import ConfidenceDecay
from .filters import SpeedKalmanFilter
from .models import CyclingRecord, MotionSample, PositionFix, TrackerOutput
from .orientation import OrientationProjector
from .utils import is_finite

logger = logging.getLogger(__name__)

# Warn about a full record queue on the first drop and then every Nth
DROP_WARNING_INTERVAL = 100


class CadenceSpeedTracker:
    """
    Fuses motion samples and position fixes into speed and cadence.

    Estimation runs continuously; ``recording`` only controls whether a
    CyclingRecord is attached to each output (and pushed to ``record_queue``).
    """

    def __init__(self, config: Optional[TrackerConfig] = None, record_queue=None):
        """
        Initialize tracker.

        Args:
            config (TrackerConfig, optional): Tunables, defaults if omitted
            record_queue (queue.Queue, optional): Receives a CyclingRecord per
                output sample while recording; full queues drop records
        """
        self.config = config or TrackerConfig()
        self.record_queue = record_queue

        self.calibrator = BiasCalibrator(
            recalibration_interval=self.config.recalibration_interval,
            sampling_duration=self.config.calibration_window,
        )
        self.projector = self._build_projector(self.config)
        self.filter = SpeedKalmanFilter.from_config(self.config)
        self.decay = ConfidenceDecay(
            threshold=self.config.low_confidence_threshold,
            duration=self.config.low_confidence_duration,
            damping_constant=self.config.damping_constant,
        )
        self.gear_ratios = parse_gear_ratios(self.config.gear_ratios)

        # Externally supplied ride context
        self.recording = False
        self.gear = 0
        self.terrain = "Road"
        self.is_standing = False

        # Published values
        self.speed = 0.0
        self.cadence = 0.0
        self.last_output = None
        self.last_fix = None
        self.last_motion_time = None

        # Statistics
        self.samples_received = 0
        self.samples_withheld = 0
        self.fixes_applied = 0
        self.fixes_discarded = 0
        self.records_dropped = 0

        # Thread safety
        self.lock = threading.Lock()

    @staticmethod
    def _build_projector(config):
        return OrientationProjector(
            axis_weights=config.axis_weights,
            tuning=config.acceleration_tuning,
            low_pass_alpha=config.low_pass_alpha,
            reference_scale=config.confidence_reference_scale,
        )

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def process_motion(self, sample: MotionSample) -> Optional[TrackerOutput]:
        """
        Run one motion sample through the pipeline.

        Samples must arrive in non-decreasing timestamp order; an earlier
        timestamp is treated as a zero-length step.

        Returns:
            TrackerOutput, or None if the sample was consumed by bias calibration
        """
        with self.lock:
            self.samples_received += 1
            timestamp = sample.timestamp

            delta_time = 0.0
            if is_finite(timestamp):
                if self.last_motion_time is not None:
                    delta_time = max(0.0, timestamp - self.last_motion_time)
                if self.last_motion_time is None or timestamp > self.last_motion_time:
                    self.last_motion_time = timestamp

            if not self.calibrator.ingest(sample):
                self.samples_withheld += 1
                return None

            acceleration = self.projector.project(sample, self.calibrator.estimate)
            confidence = self.projector.confidence(acceleration)

            if self.config.use_accelerometer:
                self.filter.predict(acceleration * self.config.gravity, delta_time, timestamp)
            else:
                self.filter.predict(0.0, delta_time, timestamp)

            factor, forced_stop = self.decay.evaluate(confidence, timestamp)
            speed = self.filter.scale_speed(factor)
            if forced_stop:
                self.filter.reset_speed()
                speed = 0.0

            self._publish(speed)

            record = None
            if self.recording:
                record = self._build_record(sample, timestamp)
                self._enqueue(record)

            self.last_output = TrackerOutput(
                timestamp=timestamp,
                speed=self.speed,
                cadence=self.cadence,
                acceleration=acceleration,
                confidence=confidence,
                forced_stop=forced_stop,
                record=record,
            )
            return self.last_output

    def process_fix(self, fix: PositionFix) -> bool:
        """
        Correct the speed estimate against a position fix.

        Returns:
            bool: True if the fix was applied, False if ignored or discarded
        """
        with self.lock:
            if not self.config.use_gps:
                return False

            applied = self.filter.update(fix.speed, fix.horizontal_accuracy, fix.timestamp)
            if not applied:
                self.fixes_discarded += 1
                return False

            self.fixes_applied += 1
            self.last_fix = fix
            self._publish(self.filter.estimated_speed)
            return True

    # ------------------------------------------------------------------
    # Context and settings
    # ------------------------------------------------------------------

    def set_ride_context(self, gear=None, terrain=None, is_standing=None):
        """Update the externally selected gear, terrain and stance."""
        with self.lock:
            if gear is not None:
                self.gear = gear
            if terrain is not None:
                self.terrain = terrain
            if is_standing is not None:
                self.is_standing = bool(is_standing)
            self._publish(self.speed)

    def apply_settings(self, settings: Mapping):
        """
        Merge new settings into the running tracker without resetting state.

        Accepts the same keys as TrackerConfig.from_dict (plus wheel_diameter).
        """
        with self.lock:
            config = self.config.merged(settings)
            self.config = config

            self.gear_ratios = parse_gear_ratios(config.gear_ratios)
            self.filter.retune(config)
            self.calibrator.recalibration_interval = config.recalibration_interval
            self.calibrator.sampling_duration = config.calibration_window

            self.projector.axis_weights = np.asarray(config.axis_weights, dtype=float)
            self.projector.tuning = config.acceleration_tuning
            self.projector.low_pass_alpha = config.low_pass_alpha
            self.projector.reference_scale = config.confidence_reference_scale

            self.decay.threshold = config.low_confidence_threshold
            self.decay.duration = config.low_confidence_duration
            self.decay.damping_constant = config.damping_constant

            self._publish(self.speed)

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def reset(self):
        """Start a new session: filter, bias, smoothing and decay state all reset."""
        with self.lock:
            self.filter.reset()
            self.calibrator.reset()
            self.projector.reset()
            self.decay.reset()

            self.speed = 0.0
            self.cadence = self._cadence_for(0.0)
            self.last_output = None
            self.last_fix = None
            self.last_motion_time = None
            logger.info("Tracker reset")

    def reset_speed(self):
        """Zero the speed estimate only."""
        with self.lock:
            self.filter.reset_speed()
            self._publish(0.0)

    def get_state(self):
        """Get current state - thread safe"""
        with self.lock:
            return {
                'speed': self.speed,
                'cadence': self.cadence,
                'gear': self.gear,
                'terrain': self.terrain,
                'is_standing': self.is_standing,
                'recording': self.recording,
                'filter': self.filter.get_state(),
                'bias': self.calibrator.estimate,
                'is_calibrating': self.calibrator.is_calibrating,
                'is_stationary': self.decay.low_confidence_start is not None,
                'last_gps_time': self.last_fix.timestamp if self.last_fix else None,
                'samples_received': self.samples_received,
                'samples_withheld': self.samples_withheld,
                'fixes_applied': self.fixes_applied,
                'fixes_discarded': self.fixes_discarded,
                'records_dropped': self.records_dropped,
            }

    # ------------------------------------------------------------------
    # Internals (lock held by caller)
    # ------------------------------------------------------------------

    def _cadence_for(self, speed):
        return estimate_cadence(speed, self.gear, self.gear_ratios, self.config.wheel_circumference)

    def _publish(self, speed):
        self.speed = max(0.0, speed) if is_finite(speed) else 0.0
        self.cadence = self._cadence_for(self.speed)

    def _build_record(self, sample, timestamp):
        fix = self.last_fix
        return CyclingRecord(
            timestamp=timestamp,
            speed=self.speed,
            cadence=self.cadence if self.cadence is not None else 0.0,
            gear=self.gear,
            terrain=self.terrain,
            is_standing=self.is_standing,
            sensor_data=self.calibrator.correct(sample),
            latitude=fix.latitude if fix else None,
            longitude=fix.longitude if fix else None,
        )

    def _enqueue(self, record):
        if self.record_queue is None:
            return
        try:
            self.record_queue.put_nowait(record)
        except queue.Full:
            self.records_dropped += 1
            if self.records_dropped % DROP_WARNING_INTERVAL == 1:
                logger.warning("Record queue full, %d records dropped so far", self.records_dropped)
