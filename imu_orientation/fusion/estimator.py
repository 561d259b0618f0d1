"""Quaternion EKF orientation estimator fed by three asynchronous sensors.

State vector: [q0, q1, q2, q3] (body-to-world rotation, scalar first)

- Gyroscope samples drive the prediction step and re-export the output.
- Accelerometer samples drive the correction step, consuming the pending
  magnetometer sample if there is one, and re-export the output.
- Magnetometer samples are only cached for the next correction.

Each stream only acts on a sample whose timestamp is strictly later than
its previous one; the first sample of a stream only records its timestamp.
Callbacks must be serialized by the caller: the estimator holds no locks.
"""

import logging
from typing import Callable, List, Optional

import numpy as np
from numpy.typing import NDArray

from ..core.config import Config, EkfConfig
from ..core.quaternion import QuaternionOps
from ..core.validation import QuaternionValidator
from ..core.types import (
    SensorKind,
    SensorSample,
    GyroSample,
    AccSample,
    MagSample,
    Quaternion,
    Rotation,
)
from .health import HealthMonitor
from .kalman import KalmanCore
from .observation import ObservationModel
from .output import OutputExtractor
from .process import ProcessModel

logger = logging.getLogger(__name__)

RotationListener = Callable[[Rotation], None]


class OrientationEstimator:
    """Fuses gyroscope, accelerometer and magnetometer into one rotation.

    Sensors must be bound (by identifier) for health reporting; output is
    only produced while a gyroscope is bound.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        gyro_id: Optional[str] = None,
        acc_id: Optional[str] = None,
        mag_id: Optional[str] = None
    ):
        """Initialize estimator.

        Args:
            config: System configuration. Defaults are used if None.
            gyro_id: Identifier of the bound gyroscope, None if absent.
            acc_id: Identifier of the bound accelerometer, None if absent.
            mag_id: Identifier of the bound magnetometer, None if absent.
        """
        self._config = config if config is not None else Config()
        ekf_cfg: EkfConfig = self._config.ekf

        self._filter = KalmanCore(state_dim=4, measure_dim=6)
        self._process_model = ProcessModel(ekf_cfg.process_variance)
        self._observation_model = ObservationModel(ekf_cfg)
        self._output = OutputExtractor()
        self._quat_validator = QuaternionValidator()
        self._health = HealthMonitor(self._config.health.silent_cycle_threshold)

        # Initial orientation is assumed; startup convergence corrects it
        identity = np.array([1.0, 0.0, 0.0, 0.0])
        self._process = identity.copy()
        self._filter.state_pre[:] = identity
        self._filter.state_post[:] = identity
        self._state_pre_history = identity.copy()
        self._state_post_history = identity.copy()

        # Only the first correction before any prediction uses this
        self._filter.error_cov_pre[:] = self._process_model.base_noise

        self._observation = np.array([0.0, 0.0, ekf_cfg.gravity, 0.0, 1.0, 0.0])
        self._predicted_observation = self._observation.copy()

        self._last_timestamp = {kind: None for kind in SensorKind}
        self._startup_remaining = ekf_cfg.startup.duration_s
        self._rotation: Optional[Rotation] = None
        self._listeners: List[RotationListener] = []

        self.predict_count = 0
        self.correct_count = 0
        self.mag_consumed_count = 0
        self.degenerate_count = 0

        self._health.bind(SensorKind.GYRO, gyro_id)
        self._health.bind(SensorKind.ACC, acc_id)
        self._health.bind(SensorKind.MAG, mag_id)

    # Sensor entry points

    def on_gyro(self, sample: GyroSample) -> Optional[Rotation]:
        """Process a gyroscope sample: predict, then export.

        Args:
            sample: Angular velocity in rad/s.

        Returns:
            Exported rotation, or None if nothing was emitted.
        """
        dt = self._elapsed(SensorKind.GYRO, sample.timestamp_us)
        if dt is None:
            return None

        self._health.feed(SensorKind.GYRO)

        if self._startup_remaining > 0:
            self._startup_remaining -= dt
            if self._startup_remaining <= 0:
                logger.info("Startup is over")

        self._process_model.set_angular_velocity(sample)
        self._process_model.compute(
            self._filter.state_post, dt, self._process,
            self._filter.transition_matrix, self._filter.process_noise_cov,
        )

        state_pre = self._filter.predict(self._process)
        self._normalize(state_pre)
        QuaternionOps.enforce_continuity(self._state_pre_history, state_pre)

        # Keep the output fresh if no measurement follows
        self._filter.state_post[:] = state_pre
        self.predict_count += 1

        return self._export(sample.timestamp_us)

    def on_acc(self, sample: AccSample) -> Optional[Rotation]:
        """Process an accelerometer sample: correct, then export.

        Args:
            sample: Linear acceleration in m/s^2.

        Returns:
            Exported rotation, or None if nothing was emitted.

        Raises:
            KalmanError: If the innovation covariance is singular, which
                the configured noise floors prevent.
        """
        dt = self._elapsed(SensorKind.ACC, sample.timestamp_us)
        if dt is None:
            return None

        self._health.feed(SensorKind.ACC)
        self._observation_model.set_acceleration(sample)

        used_mag = self._observation_model.compute(
            self._filter.state_pre,
            self._process_model.w_norm,
            self._startup_remaining > 0,
            self._observation,
            self._predicted_observation,
            self._filter.observation_matrix,
            self._filter.observation_noise_cov,
        )
        if used_mag:
            self.mag_consumed_count += 1

        state_post = self._filter.correct(self._observation, self._predicted_observation)
        self._normalize(state_post)
        QuaternionOps.enforce_continuity(self._state_post_history, state_post)
        self.correct_count += 1

        return self._export(sample.timestamp_us)

    def on_mag(self, sample: MagSample) -> None:
        """Cache a magnetometer sample for the next correction.

        Args:
            sample: Magnetic field in uT.
        """
        dt = self._elapsed(SensorKind.MAG, sample.timestamp_us)
        if dt is None:
            return

        self._health.feed(SensorKind.MAG)
        self._observation_model.set_magnetic_field(sample)

    def on_sample(self, sample: SensorSample) -> Optional[Rotation]:
        """Dispatch any sensor sample to its entry point."""
        if sample.kind is SensorKind.GYRO:
            return self.on_gyro(sample)
        if sample.kind is SensorKind.ACC:
            return self.on_acc(sample)
        self.on_mag(sample)
        return None

    # Internals

    def _elapsed(self, kind: SensorKind, timestamp_us: int) -> Optional[float]:
        """Seconds since the previous sample of the stream, None to skip."""
        last = self._last_timestamp[kind]
        self._last_timestamp[kind] = timestamp_us

        if last is None:
            return None

        dt = (timestamp_us - last) / 1e6
        if dt <= 0:
            logger.debug("Skipping %s sample: dt=%.6f s", kind.value, dt)
            return None
        return dt

    def _normalize(self, q: NDArray[np.float64]) -> None:
        if not QuaternionOps.normalize(q):
            self.degenerate_count += 1
            logger.debug("Degenerate quaternion norm, fallback applied")

    def _export(self, timestamp_us: int) -> Optional[Rotation]:
        """Health check, then publish the a-posteriori rotation."""
        report = self._health.tick()
        if not report.can_output:
            return None

        validation = self._quat_validator.validate(Quaternion.from_array(self._filter.state_post))
        if not validation.is_valid:
            logger.error("Quaternion validation failed: %s", validation.errors)
            return None
        for warning in validation.warnings:
            logger.debug(warning)

        rotation = self._output.extract(
            self._filter.state_post, timestamp_us, self._startup_remaining
        )
        if rotation is None:
            return None

        self._rotation = rotation
        for listener in list(self._listeners):
            listener(rotation)
        return rotation

    # Listeners

    def add_listener(self, listener: RotationListener) -> None:
        """Register a callable invoked with every exported rotation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: RotationListener) -> None:
        """Unregister a previously added listener."""
        self._listeners.remove(listener)

    # Sensor binding

    def bind_sensor(self, kind: SensorKind, identifier: Optional[str]) -> None:
        """Bind a sensor by identifier; None or empty unbinds it."""
        self._health.bind(kind, identifier)

    @property
    def gyro_id(self) -> str:
        """Identifier of the bound gyroscope."""
        return self._health.sensor_id(SensorKind.GYRO)

    @gyro_id.setter
    def gyro_id(self, identifier: Optional[str]) -> None:
        self._health.bind(SensorKind.GYRO, identifier)

    @property
    def acc_id(self) -> str:
        """Identifier of the bound accelerometer."""
        return self._health.sensor_id(SensorKind.ACC)

    @acc_id.setter
    def acc_id(self, identifier: Optional[str]) -> None:
        self._health.bind(SensorKind.ACC, identifier)

    @property
    def mag_id(self) -> str:
        """Identifier of the bound magnetometer."""
        return self._health.sensor_id(SensorKind.MAG)

    @mag_id.setter
    def mag_id(self, identifier: Optional[str]) -> None:
        self._health.bind(SensorKind.MAG, identifier)

    # State access

    @property
    def rotation(self) -> Optional[Rotation]:
        """Last exported rotation, None before the first export."""
        return self._rotation

    @property
    def rotation_axis(self) -> tuple:
        """Axis of the last exported rotation."""
        if self._rotation is None:
            return (0.0, 0.0, 0.0)
        return self._rotation.axis

    @property
    def rotation_angle(self) -> float:
        """Angle of the last exported rotation in degrees."""
        if self._rotation is None:
            return 0.0
        return self._rotation.angle_deg

    @property
    def quaternion(self) -> Quaternion:
        """Current a-posteriori quaternion."""
        return Quaternion.from_array(self._filter.state_post)

    @property
    def quaternion_pre(self) -> Quaternion:
        """Current a-priori quaternion."""
        return Quaternion.from_array(self._filter.state_pre)

    @property
    def covariance(self) -> NDArray[np.float64]:
        """Current a-posteriori error covariance."""
        return self._filter.error_cov_post.copy()

    @property
    def startup_remaining(self) -> float:
        """Seconds left in the startup window."""
        return self._startup_remaining

    @property
    def is_started(self) -> bool:
        """Whether the startup window has elapsed."""
        return self._startup_remaining <= 0

    @property
    def health(self) -> HealthMonitor:
        """Sensor health monitor."""
        return self._health

    @property
    def observation_model(self) -> ObservationModel:
        """Access to the observation model (noise and running means)."""
        return self._observation_model

    @property
    def filter(self) -> KalmanCore:
        """Access to the underlying Kalman recursion."""
        return self._filter

    def get_stats(self) -> dict:
        """Get estimator statistics."""
        obs = self._observation_model
        return {
            'predict_count': self.predict_count,
            'correct_count': self.correct_count,
            'mag_consumed_count': self.mag_consumed_count,
            'degenerate_count': self.degenerate_count,
            'startup_remaining_s': max(0.0, self._startup_remaining),
            'acc_variance': obs.acc_variance,
            'mag_variance': obs.mag_variance,
            'm_norm_mean': obs.m_norm_mean,
            'dip_angle_mean': obs.dip_angle_mean,
            'health': self._health.get_stats(),
        }
