"""
Speed fusion filters.

SpeedKalmanFilter is the one canonical filter; the historical variants
(adaptive vs. static process noise, accuracy-scaled vs. fixed measurement
noise) are reproduced through its constructor arguments or
TrackerConfig.preset().

Example usage:
    speed_filter = SpeedKalmanFilter(process_noise=0.1, gps_base_noise=1.0)

    speed_filter.predict(acceleration, delta_time, timestamp)
    speed_filter.update(gps_speed, horizontal_accuracy, timestamp)
    state = speed_filter.get_state()
"""

from .kalman import SpeedKalmanFilter

__all__ = ['SpeedKalmanFilter']
