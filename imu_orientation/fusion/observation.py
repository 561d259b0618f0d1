"""Observation model: gravity and horizontal magnetic field.

The 6-component observation stacks the raw accelerometer vector and the
tilt-compensated, unit-length magnetic field. Both are compared with rows
of the direction cosine matrix of the a-priori quaternion:
- row 2 (world Z in body frame) scaled by g predicts the accelerometer
- row 1 (world Y, magnetic north, in body frame) predicts the magnetometer

Measurement variances adapt to how much each sensor can be trusted at the
moment: fast rotation, non-gravitational acceleration, and changes in
field magnitude or dip angle all inflate them.
"""

import logging
import math
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..core.config import EkfConfig
from ..core.quaternion import EPSILON
from ..core.types import AccSample, MagSample

logger = logging.getLogger(__name__)


class ObservationModel:
    """Builds z, h(x), H and R for one correction.

    Owns the latest accelerometer sample, the pending magnetometer sample
    and the running means of field magnitude and dip angle. A pending
    magnetometer sample is consumed by exactly one correction; a newer
    sample arriving first replaces it.
    """

    def __init__(self, config: EkfConfig):
        """Initialize observation model.

        Args:
            config: EKF configuration with gravity, noise coefficients,
                startup variances and mean decay factor.
        """
        self._config = config
        self.gravity = config.gravity

        self.a = np.array([0.0, 0.0, config.gravity])
        self.a_norm = config.gravity

        self.m = np.zeros(3)
        self.m_norm = 0.0
        self.mag_ready = False

        self.m_norm_mean: Optional[float] = None
        self.dip_angle_mean: Optional[float] = None
        self.dip_angle = 0.0

        self.acc_variance = 0.0
        self.mag_variance = 0.0

    def set_acceleration(self, sample: AccSample) -> None:
        """Store the latest linear acceleration in m/s^2."""
        self.a[0] = sample.x
        self.a[1] = sample.y
        self.a[2] = sample.z
        self.a_norm = float(np.linalg.norm(self.a))

    def set_magnetic_field(self, sample: MagSample) -> None:
        """Store the latest magnetic field in uT and mark it pending."""
        if self.mag_ready:
            logger.debug("Unconsumed magnetometer sample replaced")
        self.m[0] = sample.x
        self.m[1] = sample.y
        self.m[2] = sample.z
        self.m_norm = float(np.linalg.norm(self.m))
        self.mag_ready = True

    def compute(
        self,
        q: NDArray[np.float64],
        w_norm: float,
        startup: bool,
        z: NDArray[np.float64],
        h: NDArray[np.float64],
        H: NDArray[np.float64],
        R: NDArray[np.float64]
    ) -> bool:
        """Fill observation, predicted observation, Jacobian and noise.

        Args:
            q: A-priori quaternion [q0, q1, q2, q3].
            w_norm: Norm of the latest angular velocity in rad/s.
            startup: Whether the startup window is still open.
            z: Output buffer (6,) for the observation.
            h: Output buffer (6,) for the predicted observation.
            H: Output buffer (6, 4) for the observation Jacobian.
            R: Output buffer (6, 6) for the observation noise covariance.

        Returns:
            True if a pending magnetometer sample was consumed.
        """
        q0, q1, q2, q3 = q
        g = self.gravity
        acc_noise = self._config.noise.accelerometer
        mag_noise = self._config.noise.magnetometer

        # Third DCM row: world Z axis seen from the body
        dcm_z0 = 2*(q1*q3 - q0*q2)
        dcm_z1 = 2*(q2*q3 + q0*q1)
        dcm_z2 = q0*q0 - q1*q1 - q2*q2 + q3*q3

        # Accelerometer is used unnormalized; |a| != g is handled by R_g
        z[0:3] = self.a
        h[0] = dcm_z0*g
        h[1] = dcm_z1*g
        h[2] = dcm_z2*g
        g_deviation = abs(g - self.a_norm)
        r_g = acc_noise.k_0 + acc_noise.k_w*w_norm + acc_noise.k_g*g_deviation

        used_mag = self.mag_ready
        if used_mag:
            mx, my, mz = self.m
            dot_m_z = mx*dcm_z0 + my*dcm_z1 + mz*dcm_z2

            self.dip_angle = self._dip_angle(dot_m_z)
            self._update_means()

            # Reject the vertical component, keep the horizontal direction
            mx -= dot_m_z*dcm_z0
            my -= dot_m_z*dcm_z1
            mz -= dot_m_z*dcm_z2
            uy_norm = math.sqrt(mx*mx + my*my + mz*mz)
            if uy_norm > EPSILON:
                mx /= uy_norm
                my /= uy_norm
                mz /= uy_norm

            z[3] = mx
            z[4] = my
            z[5] = mz
            h[3] = 2*(q1*q2 + q0*q3)
            h[4] = q0*q0 - q1*q1 + q2*q2 - q3*q3
            h[5] = 2*(q2*q3 - q0*q1)

            r_y = (mag_noise.k_0 + mag_noise.k_w*w_norm + mag_noise.k_g*g_deviation
                   + mag_noise.k_n*abs(self.m_norm - self.m_norm_mean)
                   + mag_noise.k_d*abs(self.dip_angle - self.dip_angle_mean))
        else:
            z[3:6] = 0.0
            h[3:6] = 0.0
            # Any finite positive value works: the block carries no information
            r_y = mag_noise.inert_variance

        H[0] = (-2*g*q2, +2*g*q3, -2*g*q0, +2*g*q1)
        H[1] = (+2*g*q1, +2*g*q0, +2*g*q3, +2*g*q2)
        H[2] = (+2*g*q0, -2*g*q1, -2*g*q2, +2*g*q3)
        if used_mag:
            H[3] = (+2*q3, +2*q2, +2*q1, +2*q0)
            H[4] = (+2*q0, -2*q1, +2*q2, -2*q3)
            H[5] = (-2*q1, -2*q0, +2*q3, +2*q2)
        else:
            H[3:6] = 0.0

        if startup:
            r_g = self._config.startup.acc_variance
            r_y = self._config.startup.mag_variance

        R[:] = 0.0
        R[0, 0] = R[1, 1] = R[2, 2] = r_g
        R[3, 3] = R[4, 4] = R[5, 5] = r_y
        self.acc_variance = r_g
        self.mag_variance = r_y

        self.mag_ready = False
        return used_mag

    def _dip_angle(self, dot_m_z: float) -> float:
        """Angle between the field and the vertical, 0 when undefined."""
        if self.m_norm <= 0.0:
            return 0.0
        cos_dip = dot_m_z / self.m_norm
        if not -1.0 <= cos_dip <= 1.0:
            return 0.0
        return math.acos(cos_dip)

    def _update_means(self) -> None:
        """Exponential means, seeded with the first sample."""
        decay = self._config.mean_decay

        if self.m_norm_mean is None:
            self.m_norm_mean = self.m_norm
        else:
            self.m_norm_mean = decay*self.m_norm_mean + (1.0 - decay)*self.m_norm

        if self.dip_angle_mean is None:
            self.dip_angle_mean = self.dip_angle
        else:
            self.dip_angle_mean = decay*self.dip_angle_mean + (1.0 - decay)*self.dip_angle
