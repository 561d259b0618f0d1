"""Tests for sensor presence and silence diagnostics."""

import logging

import pytest

from imu_orientation.core.types import SensorKind
from imu_orientation.fusion.health import HealthMonitor

HEALTH_LOGGER = "imu_orientation.fusion.health"


@pytest.fixture
def monitor() -> HealthMonitor:
    """Health monitor with all sensors bound and a small threshold."""
    monitor = HealthMonitor(silent_cycle_threshold=3)
    monitor.bind(SensorKind.GYRO, "gyro0")
    monitor.bind(SensorKind.ACC, "acc0")
    monitor.bind(SensorKind.MAG, "mag0")
    return monitor


class TestBinding:
    """Tests for sensor binding."""

    def test_bind_and_unbind(self):
        """Sensors should be bound by identifier and unbound by None."""
        monitor = HealthMonitor()
        assert not monitor.is_bound(SensorKind.MAG)

        monitor.bind(SensorKind.MAG, "mag0")
        assert monitor.is_bound(SensorKind.MAG)
        assert monitor.sensor_id(SensorKind.MAG) == "mag0"

        monitor.unbind(SensorKind.MAG)
        assert not monitor.is_bound(SensorKind.MAG)
        assert monitor.sensor_id(SensorKind.MAG) == ""

    def test_empty_identifier_is_absent(self):
        """An empty identifier should mean the sensor is absent."""
        monitor = HealthMonitor()
        monitor.bind(SensorKind.ACC, "")
        assert not monitor.is_bound(SensorKind.ACC)

    def test_bind_logs(self, caplog):
        """Binding a sensor should be logged."""
        monitor = HealthMonitor()
        with caplog.at_level(logging.INFO, logger=HEALTH_LOGGER):
            monitor.bind(SensorKind.GYRO, "gyro0")

        assert "Gyroscope bound: gyro0" in caplog.text


class TestTick:
    """Tests for the per-cycle health check."""

    def test_healthy(self, monitor):
        """All bound sensors delivering data should be healthy."""
        for kind in SensorKind:
            monitor.feed(kind)
        report = monitor.tick()

        assert report.can_output
        assert report.is_healthy
        assert report.silent_cycles[SensorKind.GYRO] == 1

    def test_no_gyroscope_blocks_output(self, caplog):
        """Without a gyroscope there should be no output and no counting."""
        monitor = HealthMonitor()
        monitor.bind(SensorKind.ACC, "acc0")

        with caplog.at_level(logging.ERROR, logger=HEALTH_LOGGER):
            report = monitor.tick()

        assert not report.can_output
        assert monitor.silent_cycles(SensorKind.ACC) == 0
        assert monitor.blocked_cycles == 1
        assert "Cannot operate without a gyroscope" in caplog.text

    def test_missing_sensor_warns(self):
        """A missing magnetometer should be reported without blocking output."""
        monitor = HealthMonitor()
        monitor.bind(SensorKind.GYRO, "gyro0")
        monitor.bind(SensorKind.ACC, "acc0")
        report = monitor.tick()

        assert report.can_output
        assert not report.is_healthy
        assert "Operating without magnetometer, results will drift" in report.warnings

    def test_silent_sensor(self, monitor):
        """A bound sensor silent beyond the threshold should be reported."""
        for _ in range(3):
            monitor.feed(SensorKind.GYRO)
            monitor.feed(SensorKind.ACC)
            assert monitor.tick().is_healthy

        monitor.feed(SensorKind.GYRO)
        monitor.feed(SensorKind.ACC)
        report = monitor.tick()

        assert report.can_output
        assert report.warnings == ["Magnetometer is bound but didn't receive data for 4 cycles"]

    def test_feed_resets_counter(self, monitor):
        """Delivering data should reset the silence counter."""
        for _ in range(5):
            monitor.tick()
        monitor.feed(SensorKind.ACC)

        assert monitor.silent_cycles(SensorKind.ACC) == 0
        assert monitor.silent_cycles(SensorKind.GYRO) == 5


class TestReporting:
    """Tests for log deduplication."""

    def test_missing_gyro_logged_once(self, caplog):
        """A persisting condition should only be logged at its onset."""
        monitor = HealthMonitor()
        with caplog.at_level(logging.ERROR, logger=HEALTH_LOGGER):
            for _ in range(10):
                monitor.tick()

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1

    def test_silence_logged_again_after_recovery(self, monitor, caplog):
        """A sensor going silent twice should be logged twice."""
        with caplog.at_level(logging.WARNING, logger=HEALTH_LOGGER):
            for _ in range(5):
                monitor.feed(SensorKind.GYRO)
                monitor.feed(SensorKind.ACC)
                monitor.tick()
            monitor.feed(SensorKind.MAG)
            for _ in range(5):
                monitor.feed(SensorKind.GYRO)
                monitor.feed(SensorKind.ACC)
                monitor.tick()

        silent = [r for r in caplog.records if "Magnetometer is bound" in r.getMessage()]
        assert len(silent) == 2

    def test_stats_and_reset(self, monitor):
        """Statistics should count cycles and reset should clear them."""
        monitor.tick()
        monitor.tick()
        stats = monitor.get_stats()

        assert stats["total_cycles"] == 2
        assert stats["sensors"]["gyro"]["id"] == "gyro0"
        assert stats["sensors"]["mag"]["silent_cycles"] == 2

        monitor.reset()
        assert monitor.total_cycles == 0
        assert monitor.silent_cycles(SensorKind.MAG) == 0
        assert monitor.is_bound(SensorKind.MAG)
