"""
Scalar Kalman filter for accelerometer + satellite speed fusion.

State: x = ground speed (m/s)

Predict is driven by the projected horizontal acceleration at the motion
sample rate:  x += a * dt,  P += Q
Update is driven by satellite speed fixes whenever they arrive:
    R = clamp(gps_base_noise * accuracy / reference_accuracy, [min_R, max_R])
    K = P / (P + R),  x += K * (z - x),  P *= (1 - K)

Process noise is adaptive: while no fix has arrived for longer than the
staleness threshold, every predict bumps Q so uncertainty grows faster the
longer the filter runs on integration alone. A reliable fix resets Q to its
baseline.
"""

import logging
import threading
import time

import numpy as np
from filterpy.kalman import KalmanFilter as FilterPyKalmanFilter

from ..config import NOISE_EPSILON, TrackerConfig, positive_or_epsilon
from ..models import FilterState
from ..utils import clamp, is_finite

logger = logging.getLogger(__name__)


class SpeedKalmanFilter:
    """
    One-dimensional speed filter fusing acceleration and satellite speed.

    Predict and update may interleave in any order and at any relative rate.
    Every public method is thread safe and none of them raise on bad input:
    degenerate accelerations count as zero motion and implausible fixes are
    discarded.
    """

    def __init__(self, initial_covariance=1.0, process_noise=0.1,
                 process_noise_increment=0.01, staleness_threshold=1.0,
                 adaptive_process_noise=True, gps_base_noise=1.0,
                 reference_accuracy=5.0, min_measurement_noise=1.0,
                 max_measurement_noise=100.0, reliable_accuracy=10.0,
                 min_horizontal_accuracy=0.0, max_horizontal_accuracy=100.0):
        """
        Initialize speed filter.

        Args:
            initial_covariance (float): P after reset
            process_noise (float): Baseline process noise Q
            process_noise_increment (float): Q growth per predict while no recent fix
            staleness_threshold (float): Seconds since last fix before Q starts growing
            adaptive_process_noise (bool): Enable the Q growth at all
            gps_base_noise (float): Measurement noise at the reference accuracy
            reference_accuracy (float): Accuracy (m) at which R == gps_base_noise
            min_measurement_noise (float): Lower clamp for R
            max_measurement_noise (float): Upper clamp for R
            reliable_accuracy (float): Fixes better than this (m) reset Q
            min_horizontal_accuracy (float): Fixes below this accuracy are discarded
            max_horizontal_accuracy (float): Fixes above this accuracy are discarded
        """
        self._set_parameters(
            initial_covariance=initial_covariance,
            process_noise=process_noise,
            process_noise_increment=process_noise_increment,
            staleness_threshold=staleness_threshold,
            adaptive_process_noise=adaptive_process_noise,
            gps_base_noise=gps_base_noise,
            reference_accuracy=reference_accuracy,
            min_measurement_noise=min_measurement_noise,
            max_measurement_noise=max_measurement_noise,
            reliable_accuracy=reliable_accuracy,
            min_horizontal_accuracy=min_horizontal_accuracy,
            max_horizontal_accuracy=max_horizontal_accuracy,
        )

        # State: [speed]; measurement: [speed]
        self.kf = FilterPyKalmanFilter(dim_x=1, dim_z=1)
        self.kf.F = np.array([[1.0]])
        self.kf.H = np.array([[1.0]])

        self.last_update_time = None
        self.last_measurement_noise = None

        # Statistics
        self.predict_count = 0
        self.update_count = 0
        self.discarded_fix_count = 0

        # Thread safety
        self.lock = threading.Lock()

        self._reset_state()

    @classmethod
    def from_config(cls, config: TrackerConfig) -> "SpeedKalmanFilter":
        return cls(**_parameters_from(config))

    def retune(self, config: TrackerConfig):
        """
        Swap in new noise constants without touching x, P, Q or the fix clock.

        The new baseline Q takes effect at the next reliable fix or reset.
        """
        with self.lock:
            self._set_parameters(**_parameters_from(config))

    def _set_parameters(self, initial_covariance, process_noise, process_noise_increment,
                        staleness_threshold, adaptive_process_noise, gps_base_noise,
                        reference_accuracy, min_measurement_noise, max_measurement_noise,
                        reliable_accuracy, min_horizontal_accuracy, max_horizontal_accuracy):
        self.initial_covariance = positive_or_epsilon(initial_covariance)
        self.process_noise = max(0.0, float(process_noise))
        self.process_noise_increment = max(0.0, float(process_noise_increment))
        self.staleness_threshold = staleness_threshold
        self.adaptive_process_noise = adaptive_process_noise

        self.gps_base_noise = positive_or_epsilon(gps_base_noise)
        self.reference_accuracy = positive_or_epsilon(reference_accuracy)
        self.min_measurement_noise = positive_or_epsilon(min_measurement_noise)
        self.max_measurement_noise = max(self.min_measurement_noise,
                                         positive_or_epsilon(max_measurement_noise))
        self.reliable_accuracy = reliable_accuracy
        self.min_horizontal_accuracy = min_horizontal_accuracy
        self.max_horizontal_accuracy = max_horizontal_accuracy

    def _reset_state(self):
        self.kf.x = np.zeros((1, 1))
        self.kf.P = np.array([[self.initial_covariance]])
        self.kf.Q = np.array([[self.process_noise]])
        self.last_update_time = None
        self.last_measurement_noise = None

    def predict(self, acceleration, delta_time, timestamp=None):
        """
        Integrate acceleration over delta_time.

        Args:
            acceleration (float): Horizontal acceleration (m/s²)
            delta_time (float): Seconds since the previous predict
            timestamp (float, optional): Time of this predict, defaults to wall clock

        Returns:
            float: Speed estimate after the predict (m/s)
        """
        with self.lock:
            now = time.time() if timestamp is None else timestamp

            if not is_finite(acceleration):
                acceleration = 0.0
            if not is_finite(delta_time) or delta_time < 0:
                delta_time = 0.0

            # x = F x + B u with B = [[dt]], u = [[a]];  P = F P F' + Q
            self.kf.predict(u=np.array([[float(acceleration)]]),
                            B=np.array([[float(delta_time)]]))
            self._clamp_state()

            if self.adaptive_process_noise and self._is_stale(now):
                self.kf.Q[0, 0] += self.process_noise_increment

            self.predict_count += 1
            return float(self.kf.x[0, 0])

    def measurement_noise(self, horizontal_accuracy):
        """R for a fix of the given accuracy, always inside [min_R, max_R]."""
        accuracy = float(horizontal_accuracy) if is_finite(horizontal_accuracy) else self.max_horizontal_accuracy
        r = self.gps_base_noise * (accuracy / self.reference_accuracy)
        return clamp(r, self.min_measurement_noise, self.max_measurement_noise)

    def update(self, speed_measurement, horizontal_accuracy, timestamp=None):
        """
        Correct the estimate against a satellite speed fix.

        Args:
            speed_measurement (float): Ground speed from the fix (m/s); negative is clamped to 0
            horizontal_accuracy (float): Fix accuracy radius (m)
            timestamp (float, optional): Time of the fix, defaults to wall clock

        Returns:
            bool: True if the fix was applied, False if it was discarded
        """
        with self.lock:
            if not self._is_plausible(speed_measurement, horizontal_accuracy):
                self.discarded_fix_count += 1
                logger.debug("Discarded fix: speed=%r accuracy=%r", speed_measurement, horizontal_accuracy)
                return False

            now = time.time() if timestamp is None else timestamp
            speed_measurement = max(0.0, float(speed_measurement))
            horizontal_accuracy = float(horizontal_accuracy)

            r = self.measurement_noise(horizontal_accuracy)
            self.kf.update(np.array([[speed_measurement]]), R=r)
            self._clamp_state()

            if horizontal_accuracy < self.reliable_accuracy:
                self.kf.Q[0, 0] = self.process_noise

            self.last_measurement_noise = r
            self.last_update_time = now
            self.update_count += 1
            return True

    def scale_speed(self, factor):
        """Multiply the speed estimate by factor (used for damping toward rest)."""
        with self.lock:
            if is_finite(factor):
                self.kf.x[0, 0] *= factor
                self._clamp_state()
            return float(self.kf.x[0, 0])

    def reset_speed(self):
        """Zero the speed estimate, leaving P, Q and the fix clock alone."""
        with self.lock:
            self.kf.x[0, 0] = 0.0

    def reset(self):
        """Return x, P, Q and the staleness clock to their initial values."""
        with self.lock:
            self._reset_state()

    @property
    def estimated_speed(self):
        with self.lock:
            return float(self.kf.x[0, 0])

    def get_state(self):
        """Get an immutable snapshot of the filter."""
        with self.lock:
            return FilterState(
                x=float(self.kf.x[0, 0]),
                P=float(self.kf.P[0, 0]),
                Q=float(self.kf.Q[0, 0]),
                last_update_time=self.last_update_time,
            )

    def _is_stale(self, now):
        if self.last_update_time is None:
            return True
        return (now - self.last_update_time) > self.staleness_threshold

    def _is_plausible(self, speed_measurement, horizontal_accuracy):
        if not (is_finite(speed_measurement) and is_finite(horizontal_accuracy)):
            return False
        return self.min_horizontal_accuracy <= horizontal_accuracy <= self.max_horizontal_accuracy

    def _clamp_state(self):
        # Negative speed is meaningless; P must stay strictly positive
        if not self.kf.x[0, 0] > 0.0:
            self.kf.x[0, 0] = 0.0
        if not self.kf.P[0, 0] > NOISE_EPSILON:
            self.kf.P[0, 0] = NOISE_EPSILON


def _parameters_from(config):
    return {
        'initial_covariance': config.initial_covariance,
        'process_noise': config.process_noise,
        'process_noise_increment': config.process_noise_increment,
        'staleness_threshold': config.staleness_threshold,
        'adaptive_process_noise': config.adaptive_process_noise,
        'gps_base_noise': config.gps_base_noise,
        'reference_accuracy': config.reference_accuracy,
        'min_measurement_noise': config.min_measurement_noise,
        'max_measurement_noise': config.max_measurement_noise,
        'reliable_accuracy': config.reliable_accuracy,
        'min_horizontal_accuracy': config.min_horizontal_accuracy,
        'max_horizontal_accuracy': config.max_horizontal_accuracy,
    }
