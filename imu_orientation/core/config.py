"""Configuration management for IMU orientation estimation."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Optional
import logging
import os

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "IMU_ORIENTATION_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"


class ConfigError(ValueError):
    """Raised when a configuration value is out of its valid range."""
    pass


@dataclass
class StartupConfig:
    """Startup convergence window.

    While the window is open, fixed observation variances replace the
    adaptive ones and no orientation is exported.
    """
    duration_s: float = 1.0
    acc_variance: float = 0.1
    mag_variance: float = 0.001


@dataclass
class AccNoiseConfig:
    """Adaptive accelerometer variance: k_0 + k_w*|w| + k_g*|g - |a||."""
    k_0: float = 1.0   # Depends on the two coefficients below
    k_w: float = 7.5   # Gyroscope limits, typically 250 deg/s = 7.6 rad/s
    k_g: float = 10.0  # Accelerometer limits, typically 2g


@dataclass
class MagNoiseConfig:
    """Adaptive magnetometer variance.

    k_0 + k_w*|w| + k_g*|g - |a|| + k_n*|dm| + k_d*|ddip|, where dm and
    ddip are the deviations of field magnitude and dip angle from their
    running means.
    """
    k_0: float = 10.0
    k_w: float = 7.5
    k_g: float = 10.0
    k_n: float = 20.0  # Field magnitude deviation, uT
    k_d: float = 15.0  # Dip angle deviation, rad
    inert_variance: float = 1.0  # Used when no fresh sample is pending


@dataclass
class NoiseConfig:
    """Measurement noise configuration."""
    accelerometer: AccNoiseConfig = field(default_factory=AccNoiseConfig)
    magnetometer: MagNoiseConfig = field(default_factory=MagNoiseConfig)


@dataclass
class EkfConfig:
    """EKF algorithm configuration."""
    gravity: float = 9.81
    process_variance: float = 1e-4
    mean_decay: float = 0.99
    startup: StartupConfig = field(default_factory=StartupConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)


@dataclass
class HealthConfig:
    """Sensor health diagnostics configuration."""
    silent_cycle_threshold: int = 1000


@dataclass
class SensorConfig:
    """Plausibility limits for incoming samples."""
    gyro_range_dps: float = 2000.0
    acc_range_g: float = 16.0
    mag_range_ut: float = 4900.0


@dataclass
class MonitoringConfig:
    """Performance monitoring configuration."""
    window_size: int = 1000
    log_interval_s: float = 10.0


@dataclass
class MockConfig:
    """Synthetic sensor source configuration."""
    gyro_rate_hz: float = 200.0
    acc_rate_hz: float = 100.0
    mag_rate_hz: float = 25.0
    gyro_noise: float = 0.001
    acc_noise: float = 0.01
    mag_noise: float = 0.1
    angular_velocity: tuple = (0.0, 0.0, 0.0)
    earth_field_ut: tuple = (0.0, 20.0, -45.0)  # X east, Y magnetic north, Z up
    seed: int = 42


@dataclass
class Config:
    """Complete configuration for IMU orientation estimation."""
    ekf: EkfConfig = field(default_factory=EkfConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    sensor: SensorConfig = field(default_factory=SensorConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    mock: MockConfig = field(default_factory=MockConfig)


def _dict_to_dataclass(data: dict, cls: type) -> object:
    """Recursively convert dictionary to dataclass."""
    if not is_dataclass(cls):
        return data

    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}

    for key, value in data.items():
        if key not in field_types:
            logger.warning("Ignoring unknown configuration key '%s' in %s", key, cls.__name__)
            continue
        field_type = field_types[key]
        if is_dataclass(field_type):
            # An empty section keeps its defaults
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigError(f"Section '{key}' in {cls.__name__} must be a mapping")
            kwargs[key] = _dict_to_dataclass(value, field_type)
        elif field_type is tuple and isinstance(value, list):
            kwargs[key] = tuple(value)
        else:
            kwargs[key] = value

    return cls(**kwargs)


def validate_config(config: Config) -> Config:
    """Check configuration values are usable by the estimator.

    Args:
        config: Configuration to check.

    Returns:
        The same configuration, for chaining.

    Raises:
        ConfigError: If a value is out of range.
    """
    ekf = config.ekf
    if ekf.gravity <= 0:
        raise ConfigError(f"gravity must be positive, got {ekf.gravity}")
    if ekf.process_variance < 0:
        raise ConfigError(f"process_variance must be non-negative, got {ekf.process_variance}")
    if not 0.0 <= ekf.mean_decay < 1.0:
        raise ConfigError(f"mean_decay must be in [0, 1), got {ekf.mean_decay}")
    if ekf.startup.duration_s < 0:
        raise ConfigError(f"startup duration must be non-negative, got {ekf.startup.duration_s}")

    # Innovation covariance stays invertible only with positive floors
    floors = {
        "startup.acc_variance": ekf.startup.acc_variance,
        "startup.mag_variance": ekf.startup.mag_variance,
        "noise.accelerometer.k_0": ekf.noise.accelerometer.k_0,
        "noise.magnetometer.k_0": ekf.noise.magnetometer.k_0,
        "noise.magnetometer.inert_variance": ekf.noise.magnetometer.inert_variance,
    }
    for name, value in floors.items():
        if value <= 0:
            raise ConfigError(f"{name} must be positive, got {value}")

    gains = {
        "noise.accelerometer.k_w": ekf.noise.accelerometer.k_w,
        "noise.accelerometer.k_g": ekf.noise.accelerometer.k_g,
        "noise.magnetometer.k_w": ekf.noise.magnetometer.k_w,
        "noise.magnetometer.k_g": ekf.noise.magnetometer.k_g,
        "noise.magnetometer.k_n": ekf.noise.magnetometer.k_n,
        "noise.magnetometer.k_d": ekf.noise.magnetometer.k_d,
    }
    for name, value in gains.items():
        if value < 0:
            raise ConfigError(f"{name} must be non-negative, got {value}")

    if config.health.silent_cycle_threshold <= 0:
        raise ConfigError(
            f"silent_cycle_threshold must be positive, got {config.health.silent_cycle_threshold}"
        )
    if config.monitoring.window_size <= 0:
        raise ConfigError(f"window_size must be positive, got {config.monitoring.window_size}")

    mock = config.mock
    for name in ("gyro_rate_hz", "acc_rate_hz", "mag_rate_hz"):
        if getattr(mock, name) <= 0:
            raise ConfigError(f"mock.{name} must be positive, got {getattr(mock, name)}")
    for name in ("gyro_noise", "acc_noise", "mag_noise"):
        if getattr(mock, name) < 0:
            raise ConfigError(f"mock.{name} must be non-negative, got {getattr(mock, name)}")

    return config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file. If None, uses the
            IMU_ORIENTATION_CONFIG environment variable, then the packaged
            default file.

    Returns:
        Configuration object with all settings.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ConfigError: If the file is not valid YAML or a value is out of range.
    """
    if config_path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            config_path = env_path
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = str(DEFAULT_CONFIG_PATH)
        else:
            return Config()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {config_path}")

    logger.debug("Loaded configuration from %s", path)
    return validate_config(_dict_to_dataclass(data, Config))
