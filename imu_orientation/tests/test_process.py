"""Tests for the gyroscope-driven process model."""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from imu_orientation.core.types import GyroSample
from imu_orientation.fusion.process import ProcessModel


@pytest.fixture
def buffers():
    """Output buffers for one process step."""
    return np.zeros(4), np.zeros((4, 4)), np.zeros((4, 4))


class TestProcessModel:
    """Tests for ProcessModel."""

    def test_angular_velocity_norm(self):
        """Storing an angular velocity should update its norm."""
        model = ProcessModel()
        model.set_angular_velocity(GyroSample(0, 3.0, 0.0, 4.0))

        assert_allclose(model.w, [3.0, 0.0, 4.0])
        assert model.w_norm == pytest.approx(5.0)

    def test_at_rest(self, buffers):
        """Zero angular velocity should keep the state and give F = I."""
        process, F, Q = buffers
        model = ProcessModel(process_variance=1e-4)
        q = np.array([0.5, 0.5, 0.5, 0.5])

        model.compute(q, 0.01, process, F, Q)

        assert_allclose(process, q)
        assert_allclose(F, np.eye(4))
        assert_allclose(Q, np.eye(4) * 1e-6)

    def test_yaw_step(self, buffers):
        """One step about Z from identity should integrate and normalize."""
        process, F, Q = buffers
        model = ProcessModel()
        model.set_angular_velocity(GyroSample(0, 0.0, 0.0, 1.0))

        model.compute(np.array([1.0, 0.0, 0.0, 0.0]), 0.1, process, F, Q)

        expected = np.array([1.0, 0.0, 0.0, 0.05])
        assert_allclose(process, expected / np.linalg.norm(expected))
        assert abs(np.linalg.norm(process) - 1.0) < 1e-12

    def test_transition_jacobian(self, buffers):
        """F should follow the kinematic matrix with a = dt/2."""
        process, F, Q = buffers
        model = ProcessModel()
        model.set_angular_velocity(GyroSample(0, 1.0, 2.0, 3.0))

        model.compute(np.array([1.0, 0.0, 0.0, 0.0]), 0.2, process, F, Q)

        a = 0.1
        expected = np.array([
            [1.0, -a*1.0, -a*2.0, -a*3.0],
            [a*1.0, 1.0, a*3.0, -a*2.0],
            [a*2.0, -a*3.0, 1.0, a*1.0],
            [a*3.0, a*2.0, -a*1.0, 1.0],
        ])
        assert_allclose(F, expected)

    def test_jacobian_matches_unnormalized_step(self, buffers):
        """F applied to q should give the step before normalization."""
        process, F, Q = buffers
        model = ProcessModel()
        model.set_angular_velocity(GyroSample(0, 0.3, -0.2, 0.5))
        q = np.array([0.9, 0.1, -0.3, 0.2])
        q /= np.linalg.norm(q)

        model.compute(q, 0.05, process, F, Q)

        step = F @ q
        assert_allclose(process, step / np.linalg.norm(step))

    def test_noise_scales_with_dt(self, buffers):
        """Process noise should be the base variance times dt."""
        process, F, Q = buffers
        model = ProcessModel(process_variance=2e-3)

        model.compute(np.array([1.0, 0.0, 0.0, 0.0]), 0.5, process, F, Q)

        assert_allclose(Q, np.eye(4) * 1e-3)
