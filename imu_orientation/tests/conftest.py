"""Pytest fixtures for IMU orientation estimation tests."""

from typing import Callable, List, Optional, Tuple

import pytest
import numpy as np

from imu_orientation.core.config import Config
from imu_orientation.core.types import GyroSample, AccSample, MagSample, Quaternion, Rotation
from imu_orientation.fusion.estimator import OrientationEstimator

Vector = Tuple[float, float, float]


@pytest.fixture
def config() -> Config:
    """Create default configuration for tests."""
    return Config()


@pytest.fixture
def no_startup_config() -> Config:
    """Configuration with the startup window disabled."""
    config = Config()
    config.ekf.startup.duration_s = 0.0
    return config


@pytest.fixture
def estimator(config: Config) -> OrientationEstimator:
    """Estimator with all three sensors bound."""
    return OrientationEstimator(config, gyro_id="gyro0", acc_id="acc0", mag_id="mag0")


@pytest.fixture
def started_estimator(no_startup_config: Config) -> OrientationEstimator:
    """Estimator with all three sensors bound and no startup window."""
    return OrientationEstimator(
        no_startup_config, gyro_id="gyro0", acc_id="acc0", mag_id="mag0"
    )


@pytest.fixture
def feed() -> Callable[..., List[Rotation]]:
    """Deliver interleaved samples to an estimator at a fixed rate.

    At each step the gyroscope sample comes first, then the magnetometer
    and accelerometer samples if given. Returns every emitted rotation.
    """
    def _feed(
        estimator: OrientationEstimator,
        steps: int,
        dt_us: int = 10_000,
        start_us: int = 0,
        w: Vector = (0.0, 0.0, 0.0),
        a: Optional[Vector] = None,
        m: Optional[Vector] = None,
    ) -> List[Rotation]:
        rotations = []
        for i in range(steps):
            t = start_us + i * dt_us
            rotation = estimator.on_gyro(GyroSample(t, *w))
            if rotation is not None:
                rotations.append(rotation)
            if m is not None:
                estimator.on_mag(MagSample(t, *m))
            if a is not None:
                rotation = estimator.on_acc(AccSample(t, *a))
                if rotation is not None:
                    rotations.append(rotation)
        return rotations

    return _feed


@pytest.fixture
def identity_quaternion() -> Quaternion:
    """Create identity quaternion (no rotation)."""
    return Quaternion.identity()


@pytest.fixture
def yaw_quaternion() -> np.ndarray:
    """Quaternion for a 30 degree rotation about Z."""
    angle = np.deg2rad(30)
    return np.array([np.cos(angle / 2), 0.0, 0.0, np.sin(angle / 2)])
