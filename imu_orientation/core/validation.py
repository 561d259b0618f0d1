"""Input validation for sensor samples and filter state."""

import numpy as np

from .types import SensorKind, SensorSample, ValidationResult, Quaternion
from .config import Config


class SampleValidator:
    """Validates sensor samples for plausibility before they reach the estimator."""

    def __init__(self, config: Config):
        """Initialize validator with configuration.

        Args:
            config: System configuration with sensor range limits.
        """
        self._config = config
        cfg = config.sensor
        gravity = config.ekf.gravity
        self._limits = {
            SensorKind.GYRO: (float(np.deg2rad(cfg.gyro_range_dps)), "rad/s"),
            SensorKind.ACC: (cfg.acc_range_g * gravity, "m/s^2"),
            SensorKind.MAG: (cfg.mag_range_ut, "uT"),
        }

    def validate(self, sample: SensorSample) -> ValidationResult:
        """Validate a single sensor sample.

        Args:
            sample: Gyroscope, accelerometer or magnetometer sample.

        Returns:
            ValidationResult with validation status and any errors/warnings.
        """
        result = ValidationResult(is_valid=True)

        if sample.timestamp_us < 0:
            result.add_error(f"Negative timestamp: {sample.timestamp_us} us")

        values = (sample.x, sample.y, sample.z)
        for axis, val in zip("xyz", values):
            if not np.isfinite(val):
                result.add_error(f"{sample.kind.value} {axis} is not finite: {val}")

        if not result.is_valid:
            return result

        limit, unit = self._limits[sample.kind]
        for axis, val in zip("xyz", values):
            if abs(val) > limit:
                result.add_error(f"{sample.kind.value} {axis} out of range: {val:.2f} {unit}")

        if sample.kind is SensorKind.ACC:
            self._check_gravity(sample, result)

        return result

    def _check_gravity(self, sample: SensorSample, result: ValidationResult) -> None:
        """Warn when the acceleration magnitude is far from 1g."""
        expected_g = self._config.ekf.gravity
        acc_mag = sample.norm
        if abs(acc_mag - expected_g) > 0.5 * expected_g:
            result.add_warning(
                f"Acceleration magnitude {acc_mag:.2f} deviates from "
                f"expected {expected_g:.2f} m/s^2"
            )


class QuaternionValidator:
    """Checks the filter's quaternion output for numerical health."""

    def __init__(self, norm_tolerance: float = 1e-6):
        self._norm_tolerance = norm_tolerance

    def validate(self, q: Quaternion) -> ValidationResult:
        """Validate quaternion state.

        Args:
            q: Quaternion to validate.

        Returns:
            ValidationResult with status and any issues.
        """
        result = ValidationResult(is_valid=True)

        if not q.is_finite():
            result.add_error("Quaternion contains non-finite values")
            return result

        if abs(q.norm - 1.0) > self._norm_tolerance:
            result.add_warning(f"Quaternion norm drift: {q.norm:.6f}")

        return result
