"""Quaternion operations and utilities.

Filter-side operations work in place on numpy arrays [w, x, y, z] so the
estimator can reuse its buffers from one cycle to the next.
"""

import numpy as np
from numpy.typing import NDArray

from .types import Quaternion, EulerAngles

EPSILON = float(np.finfo(np.float64).eps)


class QuaternionOps:
    """Static methods for quaternion operations."""

    @staticmethod
    def normalize(q: NDArray[np.float64]) -> bool:
        """Scale a quaternion to unit norm in place.

        A norm at or below machine epsilon cannot be normalized; the
        quaternion is then reset to [1, 1, 1, 1]. That fallback is not a
        unit quaternion and is only brought back to unit norm by the next
        normalization.

        Args:
            q: Quaternion [w, x, y, z], modified in place.

        Returns:
            False if the degenerate fallback was applied.
        """
        norm = np.sqrt(q[0]*q[0] + q[1]*q[1] + q[2]*q[2] + q[3]*q[3])
        if norm > EPSILON:
            q /= norm
            return True

        q[:] = 1.0
        return False

    @staticmethod
    def enforce_continuity(prev: NDArray[np.float64], q: NDArray[np.float64]) -> bool:
        """Keep q on the same hemisphere as the previous quaternion.

        q and -q encode the same rotation. If -q is closer to prev, q is
        negated in place. prev is then overwritten with the result.

        Args:
            prev: Previous quaternion, updated in place.
            q: Current quaternion, possibly negated in place.

        Returns:
            True if q was negated.
        """
        flipped = bool(q[0]*prev[0] + q[1]*prev[1] + q[2]*prev[2] + q[3]*prev[3] < 0)
        if flipped:
            np.negative(q, out=q)
        prev[:] = q
        return flipped

    @staticmethod
    def from_axis_angle(axis: NDArray[np.float64], angle: float) -> NDArray[np.float64]:
        """Build a unit quaternion from a rotation axis and angle in radians."""
        axis = np.asarray(axis, dtype=np.float64)
        axis_norm = np.linalg.norm(axis)
        if axis_norm < EPSILON:
            return np.array([1.0, 0.0, 0.0, 0.0])
        s = np.sin(angle / 2.0) / axis_norm
        return np.array([np.cos(angle / 2.0), axis[0]*s, axis[1]*s, axis[2]*s])

    @staticmethod
    def rotation_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
        """Direction cosine matrix of q (body to world).

        Rows are the world axes expressed in body coordinates: row 2 is
        the gravity direction and row 1 the horizontal field direction
        predicted by the observation model.
        """
        q0, q1, q2, q3 = q
        return np.array([
            [q0*q0 + q1*q1 - q2*q2 - q3*q3, 2*(q1*q2 - q0*q3), 2*(q1*q3 + q0*q2)],
            [2*(q1*q2 + q0*q3), q0*q0 - q1*q1 + q2*q2 - q3*q3, 2*(q2*q3 - q0*q1)],
            [2*(q1*q3 - q0*q2), 2*(q2*q3 + q0*q1), q0*q0 - q1*q1 - q2*q2 + q3*q3],
        ])

    @staticmethod
    def to_euler(q: Quaternion) -> EulerAngles:
        """Tait-Bryan angles of a body-to-world quaternion, yaw then pitch then roll.

        Pitch saturates at +/-90 degrees when rounding pushes the sine
        past unit magnitude, so the result is always finite for a finite
        quaternion.

        Args:
            q: Unit quaternion.

        Returns:
            Euler angles in radians.
        """
        q0, q1, q2, q3 = q.w, q.x, q.y, q.z

        roll = np.arctan2(2.0 * (q0*q1 + q2*q3), 1.0 - 2.0 * (q1*q1 + q2*q2))

        sin_pitch = 2.0 * (q0*q2 - q1*q3)
        if abs(sin_pitch) >= 1.0:
            pitch = np.copysign(np.pi / 2.0, sin_pitch)
        else:
            pitch = np.arcsin(sin_pitch)

        yaw = np.arctan2(2.0 * (q0*q3 + q1*q2), 1.0 - 2.0 * (q2*q2 + q3*q3))

        return EulerAngles(roll=float(roll), pitch=float(pitch), yaw=float(yaw))
