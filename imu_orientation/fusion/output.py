"""Axis-angle extraction from the a-posteriori quaternion."""

import math
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..core.quaternion import QuaternionOps, EPSILON
from ..core.types import Quaternion, Rotation

FULL_TURN = 2.0 * math.pi


class OutputExtractor:
    """Converts the filter quaternion into the exported rotation."""

    @staticmethod
    def axis_angle(q: NDArray[np.float64]) -> tuple:
        """Rotation axis and angle of a quaternion.

        angle = 2*atan2(|(q1, q2, q3)|, q0), axis = (q1, q2, q3)/sin(angle/2).
        Angles within EPSILON of zero or of a full turn are reported as
        no rotation with a zero axis.

        Args:
            q: Quaternion [q0, q1, q2, q3].

        Returns:
            Tuple of (axis as 3-tuple, angle in degrees in [0, 360)).
        """
        vec_norm = math.sqrt(q[1]*q[1] + q[2]*q[2] + q[3]*q[3])
        angle = 2.0 * math.atan2(vec_norm, q[0])

        if angle < EPSILON or FULL_TURN - angle < EPSILON:
            return (0.0, 0.0, 0.0), 0.0

        s_half = math.sin(angle / 2.0)
        axis = (float(q[1] / s_half), float(q[2] / s_half), float(q[3] / s_half))
        return axis, math.degrees(angle)

    def extract(
        self,
        q: NDArray[np.float64],
        timestamp_us: int,
        startup_remaining: float
    ) -> Optional[Rotation]:
        """Build the exported rotation, or None while starting up.

        Args:
            q: A-posteriori quaternion.
            timestamp_us: Timestamp of the sample that produced q.
            startup_remaining: Seconds left in the startup window.

        Returns:
            Rotation snapshot, or None if output is suppressed.
        """
        if startup_remaining > 0:
            return None

        axis, angle_deg = self.axis_angle(q)
        quaternion = Quaternion.from_array(q)

        return Rotation(
            axis=axis,
            angle_deg=angle_deg,
            quaternion=quaternion,
            euler=QuaternionOps.to_euler(quaternion),
            timestamp_us=timestamp_us,
        )
