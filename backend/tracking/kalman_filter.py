"""
Constant-velocity Kalman filter for image-space bounding boxes.
"""
from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
import scipy.linalg

from tracking import config

logger = logging.getLogger(__name__)

STATE_DIM = 8
MEASUREMENT_DIM = 4


def _as_vector(value, size: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def _as_matrix(value, size: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (size, size):
        raise ValueError(f"{name} must have shape ({size}, {size}), got {arr.shape}")
    return arr


class KalmanFilter:
    """
    Track boxes in image space.

    The 8-dimensional state is (cx, cy, a, h, vcx, vcy, va, vh): box center,
    aspect ratio (width / height), height and their velocities. Boxes move with
    constant velocity over one frame step and are observed as (cx, cy, a, h).

    Position and velocity noise scale with the current box height, so taller
    subjects get proportionally looser priors. All methods are pure: inputs are
    never modified.
    """

    def __init__(
        self,
        dt: float = 1.0,
        std_weight_position: float = config.STD_WEIGHT_POSITION,
        std_weight_velocity: float = config.STD_WEIGHT_VELOCITY,
    ):
        self._motion_mat = np.eye(STATE_DIM)
        for i in range(MEASUREMENT_DIM):
            self._motion_mat[i, MEASUREMENT_DIM + i] = dt
        self._update_mat = np.eye(MEASUREMENT_DIM, STATE_DIM)
        self._std_weight_position = std_weight_position
        self._std_weight_velocity = std_weight_velocity

    @staticmethod
    def _height(value: float) -> float:
        return max(float(value), config.MIN_HEIGHT)

    def initiate(self, measurement) -> Tuple[np.ndarray, np.ndarray]:
        """Create a track state from one (cx, cy, a, h) measurement with zero velocity."""
        measurement = _as_vector(measurement, MEASUREMENT_DIM, "measurement")
        mean = np.r_[measurement, np.zeros(MEASUREMENT_DIM)]

        h = self._height(measurement[3])
        std = [
            2 * self._std_weight_position * h,
            2 * self._std_weight_position * h,
            config.ASPECT_STD,
            2 * self._std_weight_position * h,
            10 * self._std_weight_velocity * h,
            10 * self._std_weight_velocity * h,
            config.ASPECT_VELOCITY_STD,
            10 * self._std_weight_velocity * h,
        ]
        covariance = np.diag(np.square(std))
        return mean, covariance

    def predict(self, mean, covariance) -> Tuple[np.ndarray, np.ndarray]:
        """Advance the state one frame."""
        mean = _as_vector(mean, STATE_DIM, "mean")
        covariance = _as_matrix(covariance, STATE_DIM, "covariance")

        h = self._height(mean[3])
        std_pos = [
            self._std_weight_position * h,
            self._std_weight_position * h,
            config.ASPECT_STD,
            self._std_weight_position * h,
        ]
        std_vel = [
            self._std_weight_velocity * h,
            self._std_weight_velocity * h,
            config.ASPECT_VELOCITY_STD,
            self._std_weight_velocity * h,
        ]
        motion_cov = np.diag(np.square(np.r_[std_pos, std_vel]))

        mean = self._motion_mat @ mean
        covariance = self._motion_mat @ covariance @ self._motion_mat.T + motion_cov
        return mean, covariance

    def project(self, mean, covariance) -> Tuple[np.ndarray, np.ndarray]:
        """Map the state distribution to measurement space, adding measurement noise."""
        mean = _as_vector(mean, STATE_DIM, "mean")
        covariance = _as_matrix(covariance, STATE_DIM, "covariance")

        h = self._height(mean[3])
        std = [
            self._std_weight_position * h,
            self._std_weight_position * h,
            config.MEASUREMENT_ASPECT_STD,
            self._std_weight_position * h,
        ]
        innovation_cov = np.diag(np.square(std))

        projected_mean = self._update_mat @ mean
        projected_cov = self._update_mat @ covariance @ self._update_mat.T + innovation_cov
        return projected_mean, projected_cov

    def update(self, mean, covariance, measurement) -> Tuple[np.ndarray, np.ndarray]:
        """Correct the state with a (cx, cy, a, h) measurement."""
        mean = _as_vector(mean, STATE_DIM, "mean")
        covariance = _as_matrix(covariance, STATE_DIM, "covariance")
        measurement = _as_vector(measurement, MEASUREMENT_DIM, "measurement")

        projected_mean, projected_cov = self.project(mean, covariance)
        gain = self._gain(covariance, projected_cov)
        innovation = measurement - projected_mean

        new_mean = mean + gain @ innovation
        new_covariance = covariance - gain @ projected_cov @ gain.T
        return new_mean, new_covariance

    def _gain(self, covariance: np.ndarray, projected_cov: np.ndarray) -> np.ndarray:
        cross_cov = covariance @ self._update_mat.T
        try:
            chol = scipy.linalg.cho_factor(projected_cov, lower=True, check_finite=False)
            return scipy.linalg.cho_solve(chol, cross_cov.T, check_finite=False).T
        except np.linalg.LinAlgError:
            # Innovation covariance lost positive definiteness.
            logger.debug("Cholesky factorization failed, using pseudo-inverse gain")
            return cross_cov @ np.linalg.pinv(projected_cov)
