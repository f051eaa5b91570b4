"""
Horizontal-plane acceleration from a biased body-frame motion sample.

Body-frame acceleration mixes tilt and gravity leakage with the rider's real
fore/aft motion. A naive 3-axis magnitude integrates all of it; instead the
bias-corrected vector is rotated into the reference frame with the device
attitude and only its horizontal (x, y) magnitude is kept.
"""

import logging

import numpy as np

from .models import IDENTITY_ATTITUDE, BiasEstimate, MotionSample
from .utils import clamp, is_finite

logger = logging.getLogger(__name__)


class OrientationProjector:
    """Bias removal, attitude rotation and movement confidence."""

    def __init__(self, axis_weights=(1.0, 1.0, 1.0), tuning=1.0,
                 low_pass_alpha=None, reference_scale=0.2):
        """
        Initialize projector.

        Args:
            axis_weights (tuple): Per-axis weighting applied after bias removal
            tuning (float): Multiplier on the projected magnitude
            low_pass_alpha (float, optional): EMA weight of the newest magnitude,
                None disables smoothing
            reference_scale (float): Magnitude (g) mapped to full confidence
        """
        self.axis_weights = np.asarray(axis_weights, dtype=float)
        self.tuning = tuning
        self.low_pass_alpha = low_pass_alpha
        self.reference_scale = reference_scale

        self.filtered_magnitude = None

    def project(self, sample: MotionSample, bias: BiasEstimate) -> float:
        """
        Rotate the bias-corrected acceleration into the reference frame.

        Returns:
            float: Non-negative horizontal acceleration magnitude (g)
        """
        corrected = (sample.acceleration - np.asarray(bias.accel, dtype=float)) * self.axis_weights
        rotated = self._attitude(sample) @ corrected

        magnitude = float(np.hypot(rotated[0], rotated[1])) * self.tuning
        if not is_finite(magnitude) or magnitude < 0:
            magnitude = 0.0

        if self.low_pass_alpha is not None:
            if self.filtered_magnitude is None:
                self.filtered_magnitude = magnitude
            else:
                alpha = self.low_pass_alpha
                self.filtered_magnitude = alpha * magnitude + (1 - alpha) * self.filtered_magnitude
            magnitude = self.filtered_magnitude

        return magnitude

    def confidence(self, acceleration_magnitude) -> float:
        """Movement confidence in [0, 1]: magnitude / reference scale, clamped."""
        if not is_finite(acceleration_magnitude) or self.reference_scale <= 0:
            return 0.0
        return clamp(acceleration_magnitude / self.reference_scale, 0.0, 1.0)

    def reset(self):
        self.filtered_magnitude = None

    @staticmethod
    def _attitude(sample):
        try:
            matrix = np.asarray(sample.attitude, dtype=float)
        except (TypeError, ValueError):
            matrix = None
        if matrix is None or matrix.shape != (3, 3) or not np.all(np.isfinite(matrix)):
            logger.debug("Unusable attitude at %s, assuming device is level", sample.timestamp)
            return np.asarray(IDENTITY_ATTITUDE, dtype=float)
        return matrix
