"""Quaternion EKF orientation estimation from gyroscope, accelerometer and magnetometer."""

from .core import (
    Config,
    GyroSample,
    AccSample,
    MagSample,
    Rotation,
    SensorKind,
    load_config,
)
from .fusion import OrientationEstimator

__version__ = "0.1.0"

__all__ = [
    "Config",
    "GyroSample",
    "AccSample",
    "MagSample",
    "Rotation",
    "SensorKind",
    "load_config",
    "OrientationEstimator",
]
