"""Sensor fusion module for IMU orientation estimation."""

from .kalman import KalmanCore, KalmanError
from .process import ProcessModel
from .observation import ObservationModel
from .output import OutputExtractor
from .health import HealthMonitor, HealthReport
from .estimator import OrientationEstimator

__all__ = [
    "KalmanCore",
    "KalmanError",
    "ProcessModel",
    "ObservationModel",
    "OutputExtractor",
    "HealthMonitor",
    "HealthReport",
    "OrientationEstimator",
]
