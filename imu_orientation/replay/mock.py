"""Synthetic sensor source for tests and development without hardware."""

import logging
import time
from typing import Iterator, Optional

import numpy as np
from numpy.typing import NDArray

from ..core.config import Config
from ..core.quaternion import QuaternionOps
from ..core.types import SensorKind, SensorSample, GyroSample, AccSample, MagSample

logger = logging.getLogger(__name__)

START_TIMESTAMP_US = 1_000_000


class MockSourceError(Exception):
    """Raised when the mock source is used while closed."""
    pass


class MockSensorSource:
    """Generates interleaved gyroscope, accelerometer and magnetometer samples.

    The simulated body spins at a constant angular velocity (body frame)
    from the identity orientation. Accelerometer and magnetometer read the
    world gravity reaction and earth field rotated into the body frame,
    with gaussian noise drawn from a seeded generator so runs repeat.
    """

    def __init__(self, config: Config):
        """Initialize mock source.

        Args:
            config: System configuration with mock and gravity settings.
        """
        self._config = config
        self._mock_cfg = config.mock
        self._gravity = np.array([0.0, 0.0, config.ekf.gravity])
        self._earth_field = np.asarray(self._mock_cfg.earth_field_ut, dtype=np.float64)
        self._w = np.asarray(self._mock_cfg.angular_velocity, dtype=np.float64)
        self._periods_us = {
            SensorKind.GYRO: int(round(1e6 / self._mock_cfg.gyro_rate_hz)),
            SensorKind.ACC: int(round(1e6 / self._mock_cfg.acc_rate_hz)),
            SensorKind.MAG: int(round(1e6 / self._mock_cfg.mag_rate_hz)),
        }
        self._noise = {
            SensorKind.GYRO: self._mock_cfg.gyro_noise,
            SensorKind.ACC: self._mock_cfg.acc_noise,
            SensorKind.MAG: self._mock_cfg.mag_noise,
        }
        self._is_open = False
        self._rng: Optional[np.random.Generator] = None
        self.sample_count = 0

    def open(self) -> None:
        """Start a new run from the identity orientation."""
        self._rng = np.random.default_rng(self._mock_cfg.seed)
        self.sample_count = 0
        self._is_open = True
        logger.info("Mock sensor source opened")

    def close(self) -> None:
        """Stop generating samples."""
        self._is_open = False
        logger.info("Mock sensor source closed")

    @property
    def is_open(self) -> bool:
        """Check if the source is open."""
        return self._is_open

    def true_orientation(self, elapsed_s: float) -> NDArray[np.float64]:
        """Ground-truth quaternion [w, x, y, z] after elapsed_s seconds."""
        w_norm = np.linalg.norm(self._w)
        return QuaternionOps.from_axis_angle(self._w, w_norm * elapsed_s)

    def samples(self, duration_s: float, realtime: bool = False) -> Iterator[SensorSample]:
        """Yield samples of all three sensors in timestamp order.

        Samples sharing a timestamp come out gyroscope first, then
        accelerometer, then magnetometer.

        Args:
            duration_s: Length of the simulated run in seconds.
            realtime: Sleep between samples to mimic the sensor rates.

        Raises:
            MockSourceError: If the source is not open.
        """
        if not self._is_open:
            raise MockSourceError("Mock sensor source not open")

        end_us = START_TIMESTAMP_US + int(round(duration_s * 1e6))
        next_us = {kind: START_TIMESTAMP_US for kind in SensorKind}
        last_us = START_TIMESTAMP_US

        while self._is_open:
            # dict order breaks ties: gyro, acc, mag
            kind = min(next_us, key=next_us.get)
            timestamp_us = next_us[kind]
            if timestamp_us > end_us:
                break
            next_us[kind] += self._periods_us[kind]

            if realtime and timestamp_us > last_us:
                time.sleep((timestamp_us - last_us) / 1e6)
            last_us = timestamp_us

            self.sample_count += 1
            yield self._make_sample(kind, timestamp_us)

    def _make_sample(self, kind: SensorKind, timestamp_us: int) -> SensorSample:
        elapsed_s = (timestamp_us - START_TIMESTAMP_US) / 1e6
        noise = self._rng.normal(0.0, self._noise[kind], 3)

        if kind is SensorKind.GYRO:
            value = self._w + noise
            return GyroSample(timestamp_us, *map(float, value))

        # Rows of the body-to-world matrix are world axes seen from the body
        dcm = QuaternionOps.rotation_matrix(self.true_orientation(elapsed_s))
        if kind is SensorKind.ACC:
            value = dcm.T @ self._gravity + noise
            return AccSample(timestamp_us, *map(float, value))

        value = dcm.T @ self._earth_field + noise
        return MagSample(timestamp_us, *map(float, value))

    def __enter__(self) -> "MockSensorSource":
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
