"""Core module for IMU orientation estimation."""

from .types import (
    SensorKind,
    SensorSample,
    GyroSample,
    AccSample,
    MagSample,
    Quaternion,
    EulerAngles,
    Rotation,
    ValidationResult,
)
from .validation import SampleValidator, QuaternionValidator
from .quaternion import QuaternionOps, EPSILON
from .config import Config, ConfigError, load_config, validate_config

__all__ = [
    "SensorKind",
    "SensorSample",
    "GyroSample",
    "AccSample",
    "MagSample",
    "Quaternion",
    "EulerAngles",
    "Rotation",
    "ValidationResult",
    "SampleValidator",
    "QuaternionValidator",
    "QuaternionOps",
    "EPSILON",
    "Config",
    "ConfigError",
    "load_config",
    "validate_config",
]
