"""Process model: quaternion kinematics driven by the gyroscope."""

import numpy as np
from numpy.typing import NDArray

from ..core.quaternion import QuaternionOps
from ..core.types import GyroSample


class ProcessModel:
    """First-order integration of q_dot = 0.5 * q (x) [0, w].

    Owns the latest angular velocity. Each call to compute() writes the
    predicted quaternion, the transition Jacobian and the process noise
    for one step into the supplied buffers.
    """

    def __init__(self, process_variance: float = 1e-4):
        """Initialize process model.

        Args:
            process_variance: Base variance per quaternion component,
                scaled by dt at each step.
        """
        self.base_noise = np.eye(4) * process_variance
        self.w = np.zeros(3)
        self.w_norm = 0.0

    def set_angular_velocity(self, sample: GyroSample) -> None:
        """Store the latest angular velocity in rad/s."""
        self.w[0] = sample.x
        self.w[1] = sample.y
        self.w[2] = sample.z
        self.w_norm = float(np.linalg.norm(self.w))

    def compute(
        self,
        q: NDArray[np.float64],
        dt: float,
        process: NDArray[np.float64],
        F: NDArray[np.float64],
        Q: NDArray[np.float64]
    ) -> None:
        """Compute predicted state, transition matrix and process noise.

        Args:
            q: Previous a-posteriori quaternion [q0, q1, q2, q3].
            dt: Integration step in seconds, strictly positive.
            process: Output buffer for the normalized predicted quaternion.
            F: Output buffer for the 4x4 transition Jacobian.
            Q: Output buffer for the 4x4 process noise covariance.
        """
        q0, q1, q2, q3 = q
        wx, wy, wz = self.w
        a = 0.5 * dt

        process[0] = q0 + a*(-q1*wx - q2*wy - q3*wz)
        process[1] = q1 + a*(+q0*wx - q3*wy + q2*wz)
        process[2] = q2 + a*(+q3*wx + q0*wy - q1*wz)
        process[3] = q3 + a*(-q2*wx + q1*wy + q0*wz)

        QuaternionOps.normalize(process)

        F[0] = (1.0,   -a*wx, -a*wy, -a*wz)
        F[1] = (+a*wx, 1.0,   +a*wz, -a*wy)
        F[2] = (+a*wy, -a*wz, 1.0,   +a*wx)
        F[3] = (+a*wz, +a*wy, -a*wx, 1.0)

        np.multiply(self.base_noise, dt, out=Q)
