"""Constant-velocity Kalman filter."""
from __future__ import annotations

import numpy as np
import pytest

from tracking.kalman_filter import KalmanFilter


@pytest.fixture()
def kf() -> KalmanFilter:
    return KalmanFilter()


class TestInitiate:
    def test_shapes_and_zero_velocity(self, kf):
        mean, cov = kf.initiate([100, 200, 0.5, 80])
        assert mean.shape == (8,)
        assert cov.shape == (8, 8)
        np.testing.assert_array_equal(mean[4:], 0)
        np.testing.assert_array_equal(mean[:4], [100, 200, 0.5, 80])

    def test_covariance_scales_with_height(self, kf):
        _, small = kf.initiate([0, 0, 0.5, 10])
        _, large = kf.initiate([0, 0, 0.5, 100])
        assert large[0, 0] > small[0, 0]
        # Aspect ratio noise is height independent
        assert large[2, 2] == small[2, 2]

    def test_wrong_measurement_shape(self, kf):
        with pytest.raises(ValueError):
            kf.initiate([1, 2, 3])


class TestPredict:
    def test_constant_velocity(self, kf):
        mean, cov = kf.initiate([100, 100, 1.0, 50])
        mean[4] = 3.0
        mean[5] = -2.0
        new_mean, new_cov = kf.predict(mean, cov)
        assert new_mean[0] == pytest.approx(103.0)
        assert new_mean[1] == pytest.approx(98.0)
        assert np.all(np.diag(new_cov) > np.diag(cov) - 1e-12)

    def test_inputs_not_mutated(self, kf):
        mean, cov = kf.initiate([100, 100, 1.0, 50])
        mean[4] = 1.0
        mean_before, cov_before = mean.copy(), cov.copy()
        kf.predict(mean, cov)
        np.testing.assert_array_equal(mean, mean_before)
        np.testing.assert_array_equal(cov, cov_before)

    def test_wrong_covariance_shape(self, kf):
        mean, _ = kf.initiate([0, 0, 1, 1])
        with pytest.raises(ValueError):
            kf.predict(mean, np.eye(4))


class TestUpdate:
    def test_moves_toward_measurement(self, kf):
        mean, cov = kf.initiate([100, 100, 1.0, 50])
        new_mean, new_cov = kf.update(mean, cov, [110, 100, 1.0, 50])
        assert 100 < new_mean[0] < 110
        assert new_cov[0, 0] < cov[0, 0]

    def test_exact_measurement_keeps_position(self, kf):
        mean, cov = kf.initiate([100, 100, 1.0, 50])
        new_mean, _ = kf.update(mean, cov, [100, 100, 1.0, 50])
        np.testing.assert_allclose(new_mean[:4], [100, 100, 1.0, 50])

    def test_covariance_stays_symmetric(self, kf):
        mean, cov = kf.initiate([100, 100, 0.4, 200])
        for step in range(20):
            mean, cov = kf.predict(mean, cov)
            mean, cov = kf.update(mean, cov, [100 + step, 100, 0.4, 200])
        np.testing.assert_allclose(cov, cov.T, atol=1e-8)

    def test_zero_height_is_stable(self, kf):
        mean, cov = kf.initiate([10, 10, 0.0, 0.0])
        for _ in range(5):
            mean, cov = kf.predict(mean, cov)
            mean, cov = kf.update(mean, cov, [10, 10, 0.0, 0.0])
        assert np.all(np.isfinite(mean))
        assert np.all(np.isfinite(cov))

    def test_inputs_not_mutated(self, kf):
        mean, cov = kf.initiate([100, 100, 1.0, 50])
        measurement = np.array([120.0, 90.0, 1.0, 55.0])
        snapshot = (mean.copy(), cov.copy(), measurement.copy())
        kf.update(mean, cov, measurement)
        for before, after in zip(snapshot, (mean, cov, measurement)):
            np.testing.assert_array_equal(before, after)


class TestProject:
    def test_adds_measurement_noise(self, kf):
        mean, cov = kf.initiate([0, 0, 1.0, 100])
        projected_mean, projected_cov = kf.project(mean, cov)
        assert projected_mean.shape == (4,)
        assert projected_cov.shape == (4, 4)
        assert projected_cov[0, 0] > cov[0, 0]
