"""Tests for event logs, the mock source and the replay driver."""

import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose

from imu_orientation.core.types import SensorKind, GyroSample, AccSample, MagSample
from imu_orientation.core.validation import SampleValidator
from imu_orientation.fusion.estimator import OrientationEstimator
from imu_orientation.monitoring.metrics import PerformanceMonitor
from imu_orientation.replay import (
    LogFormatError,
    MockSensorSource,
    MockSourceError,
    read_event_log,
    replay,
    write_event_log,
)


class TestEventLog:
    """Tests for CSV event logs."""

    def test_write_then_read(self, tmp_path):
        """Samples written to a log should be read back in order."""
        samples = [
            GyroSample(1000, 0.01, -0.02, 0.5),
            AccSample(1500, 0.1, 0.0, 9.81),
            MagSample(2000, 0.0, 20.0, -45.0),
        ]
        path = tmp_path / "events.csv"

        assert write_event_log(path, samples) == 3
        assert list(read_event_log(path)) == samples

    def test_header_and_comments_optional(self, tmp_path):
        """Comment lines, blank lines and a missing header should be accepted."""
        path = tmp_path / "events.csv"
        path.write_text("# recorded on the bench\n\n10,gyro,0,0,1\n20, acc ,0,0,9.81\n")

        samples = list(read_event_log(path))

        assert samples == [GyroSample(10, 0.0, 0.0, 1.0), AccSample(20, 0.0, 0.0, 9.81)]

    def test_unknown_sensor(self, tmp_path):
        """An unknown sensor name should report its line."""
        path = tmp_path / "events.csv"
        path.write_text("timestamp_us,sensor,x,y,z\n10,gyro,0,0,1\n20,baro,0,0,1\n")

        with pytest.raises(LogFormatError) as excinfo:
            list(read_event_log(path))

        assert excinfo.value.line == 3
        assert "baro" in str(excinfo.value)

    def test_wrong_field_count(self, tmp_path):
        """A row with missing fields should be rejected."""
        path = tmp_path / "events.csv"
        path.write_text("10,gyro,0,0\n")

        with pytest.raises(LogFormatError) as excinfo:
            list(read_event_log(path))
        assert excinfo.value.line == 1

    def test_bad_number(self, tmp_path):
        """A non-numeric value should be rejected."""
        path = tmp_path / "events.csv"
        path.write_text("10,acc,0,zero,9.81\n")

        with pytest.raises(LogFormatError):
            list(read_event_log(path))

    def test_missing_file(self, tmp_path):
        """A missing log should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            list(read_event_log(tmp_path / "missing.csv"))


class TestMockSensorSource:
    """Tests for the synthetic sensor source."""

    def test_requires_open(self, config):
        """Generating samples while closed should fail."""
        source = MockSensorSource(config)
        with pytest.raises(MockSourceError):
            next(source.samples(1.0))

    def test_rates(self, config):
        """Each sensor should be sampled at its configured rate."""
        with MockSensorSource(config) as source:
            samples = list(source.samples(1.0))

        counts = {kind: sum(1 for s in samples if s.kind is kind) for kind in SensorKind}
        assert counts[SensorKind.GYRO] == 201
        assert counts[SensorKind.ACC] == 101
        assert counts[SensorKind.MAG] == 26
        assert source.sample_count == len(samples)
        assert not source.is_open

    def test_timestamp_order(self, config):
        """Samples should come out in non-decreasing timestamp order."""
        with MockSensorSource(config) as source:
            timestamps = [s.timestamp_us for s in source.samples(0.5)]

        assert timestamps == sorted(timestamps)

    def test_deterministic(self, config):
        """Two runs with the same seed should be identical."""
        with MockSensorSource(config) as source:
            first = list(source.samples(0.2))
        with MockSensorSource(config) as source:
            second = list(source.samples(0.2))

        assert first == second

    def test_at_rest_readings(self, config):
        """A source at rest should read gravity and the earth field."""
        with MockSensorSource(config) as source:
            samples = list(source.samples(1.0))

        acc = np.array([s.vec for s in samples if s.kind is SensorKind.ACC])
        mag = np.array([s.vec for s in samples if s.kind is SensorKind.MAG])
        assert_allclose(acc.mean(axis=0), [0.0, 0.0, 9.81], atol=0.01)
        assert_allclose(mag.mean(axis=0), [0.0, 20.0, -45.0], atol=0.1)

    def test_rotating_readings(self, config):
        """A yawing source should see the field turn the other way."""
        config.mock.angular_velocity = (0.0, 0.0, np.pi / 2)
        config.mock.mag_noise = 0.0
        source = MockSensorSource(config)

        assert_allclose(source.true_orientation(1.0), [np.sqrt(0.5), 0.0, 0.0, np.sqrt(0.5)])

        with source:
            last_mag = [s for s in source.samples(1.0) if s.kind is SensorKind.MAG][-1]

        # After a quarter turn to the left, body X faces north
        assert last_mag.timestamp_us == 2_000_000
        assert_allclose(last_mag.vec, [20.0, 0.0, -45.0], atol=1e-9)


class TestReplay:
    """Tests for the replay driver."""

    def test_emits_rotations(self, config):
        """Replaying a mock run should emit rotations after startup."""
        estimator = OrientationEstimator(config, gyro_id="g", acc_id="a", mag_id="m")
        with MockSensorSource(config) as source:
            rotations = replay(estimator, source.samples(2.0))

        assert rotations
        assert all(r.timestamp_us >= 2_000_000 for r in rotations)
        assert rotations[-1].angle_deg < 2.0

    def test_invalid_samples_dropped(self, config, caplog):
        """Samples failing validation should not reach the estimator."""
        estimator = OrientationEstimator(config, gyro_id="g")
        samples = [
            GyroSample(0, 0.0, 0.0, 0.0),
            GyroSample(10_000, float("nan"), 0.0, 0.0),
            GyroSample(20_000, 0.0, 0.0, 0.0),
        ]

        with caplog.at_level(logging.WARNING):
            replay(estimator, samples, validator=SampleValidator(config))

        assert estimator.predict_count == 1
        assert "Dropping gyro sample at 10000 us" in caplog.text

    def test_monitor_and_callback(self, config):
        """The monitor and callback should see every sample and rotation."""
        config.ekf.startup.duration_s = 0.0
        estimator = OrientationEstimator(config, gyro_id="g")
        monitor = PerformanceMonitor(config)
        seen = []
        samples = [GyroSample(i * 10_000, 0.0, 0.0, 0.0) for i in range(5)]

        rotations = replay(estimator, samples, monitor=monitor, on_rotation=seen.append)

        assert len(rotations) == 4
        assert seen == rotations
        assert monitor.get_stats()[SensorKind.GYRO].samples == 5
