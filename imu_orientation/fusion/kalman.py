"""Fixed-size extended Kalman filter recursion.

The filter knows nothing about orientation: the caller computes the
predicted state and the Jacobians and writes them into the filter's
matrices before each step, in the manner of OpenCV's KalmanFilter.

State naming:
- state_pre / error_cov_pre: a-priori estimate (after predict)
- state_post / error_cov_post: a-posteriori estimate (after correct)
"""

import numpy as np
from numpy.typing import NDArray


class KalmanError(Exception):
    """Raised when the innovation covariance cannot be inverted."""
    pass


class KalmanCore:
    """EKF predict/correct over preallocated numpy buffers.

    Predict:
        x- = f(x, u)               (supplied by the caller)
        P- = F P F^T + Q
    Correct:
        S = H P- H^T + R
        K = P- H^T S^-1
        x = x- + K (z - h(x-))
        P = P- - K H P-

    A correction always starts from the latest a-priori estimate, so two
    corrections without a prediction in between do not compound.
    """

    def __init__(self, state_dim: int = 4, measure_dim: int = 6):
        """Initialize filter buffers.

        Args:
            state_dim: Dimension n of the state vector.
            measure_dim: Dimension m of the observation vector.
        """
        self.state_dim = state_dim
        self.measure_dim = measure_dim

        self.state_pre = np.zeros(state_dim)
        self.state_post = np.zeros(state_dim)

        self.transition_matrix = np.eye(state_dim)
        self.process_noise_cov = np.eye(state_dim)
        self.observation_matrix = np.zeros((measure_dim, state_dim))
        self.observation_noise_cov = np.eye(measure_dim)

        self.error_cov_pre = np.zeros((state_dim, state_dim))
        self.error_cov_post = np.zeros((state_dim, state_dim))
        self.gain = np.zeros((state_dim, measure_dim))

        self._innovation = np.zeros(measure_dim)
        self._hp = np.zeros((measure_dim, state_dim))
        self._s = np.zeros((measure_dim, measure_dim))

    def predict(self, process: NDArray[np.float64]) -> NDArray[np.float64]:
        """Prediction step.

        The a-priori values are copied into the a-posteriori slots so that
        a cycle without a measurement still exposes the prediction.

        Args:
            process: Predicted state f(x, u), shape (n,).

        Returns:
            The a-priori state buffer.
        """
        F = self.transition_matrix

        self.state_pre[:] = process
        self.error_cov_pre[:] = F @ self.error_cov_post @ F.T + self.process_noise_cov

        self.state_post[:] = self.state_pre
        self.error_cov_post[:] = self.error_cov_pre

        return self.state_pre

    def correct(
        self,
        observation: NDArray[np.float64],
        predicted_observation: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """Correction step.

        Args:
            observation: Measurement vector z, shape (m,).
            predicted_observation: Predicted measurement h(x-), shape (m,).

        Returns:
            The a-posteriori state buffer.

        Raises:
            KalmanError: If the innovation covariance is singular.
        """
        H = self.observation_matrix

        np.matmul(H, self.error_cov_pre, out=self._hp)
        np.matmul(self._hp, H.T, out=self._s)
        self._s += self.observation_noise_cov

        # S is symmetric, so K^T = S^-1 (H P-)
        try:
            self.gain[:] = np.linalg.solve(self._s, self._hp).T
        except np.linalg.LinAlgError as e:
            raise KalmanError(f"Innovation covariance is singular: {e}") from e

        np.subtract(observation, predicted_observation, out=self._innovation)
        self.state_post[:] = self.state_pre + self.gain @ self._innovation
        self.error_cov_post[:] = self.error_cov_pre - self.gain @ self._hp

        return self.state_post

    @property
    def innovation(self) -> NDArray[np.float64]:
        """Innovation z - h(x-) of the last correction."""
        return self._innovation.copy()

    @property
    def innovation_cov(self) -> NDArray[np.float64]:
        """Innovation covariance S of the last correction."""
        return self._s.copy()
