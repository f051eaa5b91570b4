"""
Anti-drift safeguard for the integrated speed.

Integrating accelerometer noise while the rider stands still accumulates a
small non-zero speed that the Kalman covariance alone does not pull back.
Two mechanisms bound it:

1. Damping on every sample: speed *= 1 - (1 - confidence) * damping_constant
2. Forced stop: confidence below the threshold for low_confidence_duration
   seconds without a break zeroes the speed state.
"""

import logging

from .utils import clamp, is_finite

logger = logging.getLogger(__name__)


class ConfidenceDecay:
    """Tracks sustained low movement confidence and produces damping factors."""

    def __init__(self, threshold=0.05, duration=5.0, damping_constant=0.01):
        self.threshold = threshold
        self.duration = duration
        self.damping_constant = damping_constant

        self.low_confidence_start = None
        self.forced_stop_count = 0

    def damping_factor(self, confidence):
        if not is_finite(confidence):
            confidence = 0.0
        confidence = clamp(confidence, 0.0, 1.0)
        return 1.0 - (1.0 - confidence) * self.damping_constant

    def evaluate(self, confidence, timestamp):
        """
        Process one sample's confidence.

        Args:
            confidence (float): Movement confidence in [0, 1]
            timestamp (float): Sample time (seconds)

        Returns:
            tuple: (damping factor to apply to speed, True if speed must be forced to 0)
        """
        factor = self.damping_factor(confidence)

        # An unusable timestamp must not start or move the stillness timer
        if not is_finite(timestamp):
            return factor, False

        if not is_finite(confidence) or confidence < self.threshold:
            if self.low_confidence_start is None:
                self.low_confidence_start = timestamp
            elif timestamp - self.low_confidence_start >= self.duration:
                # Restart the window so a stop is forced at most once per duration
                self.low_confidence_start = timestamp
                self.forced_stop_count += 1
                logger.info("Low movement confidence for %.1fs, assuming rider stopped", self.duration)
                return factor, True
        else:
            self.low_confidence_start = None

        return factor, False

    def reset(self):
        self.low_confidence_start = None
