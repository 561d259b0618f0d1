"""Sensor presence and silence diagnostics.

Tracks which sensors are bound and how many output cycles each one has
gone without delivering data. None of this feeds back into the estimate:
- no gyroscope bound: output cannot be produced
- no accelerometer or magnetometer bound: output drifts
- a bound sensor silent for too many cycles: estimate uses stale data
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.types import SensorKind

logger = logging.getLogger(__name__)

SENSOR_NAMES = {
    SensorKind.GYRO: "Gyroscope",
    SensorKind.ACC: "Accelerometer",
    SensorKind.MAG: "Magnetometer",
}


@dataclass
class HealthReport:
    """Result of one output-cycle health check."""
    can_output: bool
    silent_cycles: Dict[SensorKind, int]
    warnings: List[str] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        """True when output is possible and nothing is flagged."""
        return self.can_output and not self.warnings


class HealthMonitor:
    """Per-sensor silent-cycle counters and presence state."""

    def __init__(self, silent_cycle_threshold: int = 1000):
        """Initialize health monitor.

        Args:
            silent_cycle_threshold: Silent output cycles after which a
                bound sensor is reported.
        """
        self.silent_cycle_threshold = silent_cycle_threshold
        self._ids: Dict[SensorKind, str] = {kind: "" for kind in SensorKind}
        self._silent: Dict[SensorKind, int] = {kind: 0 for kind in SensorKind}

        # Conditions already logged, so each is reported once per onset
        self._reported: set = set()

        self.total_cycles = 0
        self.blocked_cycles = 0

    def bind(self, kind: SensorKind, identifier: Optional[str]) -> None:
        """Record that a sensor is available under the given identifier.

        An empty or None identifier unbinds the sensor.
        """
        identifier = identifier or ""
        if identifier == self._ids[kind]:
            return
        self._ids[kind] = identifier
        self._silent[kind] = 0
        self._reported.discard(("missing", kind))
        self._reported.discard(("silent", kind))
        if identifier:
            logger.info("%s bound: %s", SENSOR_NAMES[kind], identifier)
        else:
            logger.info("%s unbound", SENSOR_NAMES[kind])

    def unbind(self, kind: SensorKind) -> None:
        """Mark a sensor as unavailable."""
        self.bind(kind, None)

    def sensor_id(self, kind: SensorKind) -> str:
        """Identifier of the bound sensor, empty if none."""
        return self._ids[kind]

    def is_bound(self, kind: SensorKind) -> bool:
        """Whether a sensor of this kind is bound."""
        return bool(self._ids[kind])

    def silent_cycles(self, kind: SensorKind) -> int:
        """Output cycles since this sensor last delivered data."""
        return self._silent[kind]

    def feed(self, kind: SensorKind) -> None:
        """Reset the silence counter of a sensor that delivered data."""
        self._silent[kind] = 0
        if ("silent", kind) in self._reported:
            self._reported.discard(("silent", kind))
            logger.info("%s delivering data again", SENSOR_NAMES[kind])

    def tick(self) -> HealthReport:
        """Run the health check for one output cycle.

        Returns:
            HealthReport; can_output is False when no gyroscope is bound,
            in which case no counter is advanced.
        """
        self.total_cycles += 1

        if not self.is_bound(SensorKind.GYRO):
            self.blocked_cycles += 1
            self._report_once(
                ("missing", SensorKind.GYRO), logging.ERROR,
                "Cannot operate without a gyroscope"
            )
            return HealthReport(can_output=False, silent_cycles=dict(self._silent),
                                warnings=["Cannot operate without a gyroscope"])

        warnings = []
        for kind in SensorKind:
            name = SENSOR_NAMES[kind]
            if not self.is_bound(kind):
                message = f"Operating without {name.lower()}, results will drift"
                warnings.append(message)
                self._report_once(("missing", kind), logging.WARNING, message)
                continue

            self._silent[kind] += 1
            cycles = self._silent[kind]
            if cycles > self.silent_cycle_threshold:
                message = f"{name} is bound but didn't receive data for {cycles} cycles"
                warnings.append(message)
                self._report_once(("silent", kind), logging.WARNING, message)

        return HealthReport(can_output=True, silent_cycles=dict(self._silent),
                            warnings=warnings)

    def _report_once(self, key: tuple, level: int, message: str) -> None:
        """Log a condition the first time it is observed."""
        if key in self._reported:
            return
        self._reported.add(key)
        logger.log(level, message)

    def get_stats(self) -> dict:
        """Get health statistics."""
        return {
            'total_cycles': self.total_cycles,
            'blocked_cycles': self.blocked_cycles,
            'sensors': {
                kind.value: {
                    'id': self._ids[kind],
                    'silent_cycles': self._silent[kind],
                }
                for kind in SensorKind
            },
        }

    def reset(self) -> None:
        """Reset counters, keeping bindings."""
        for kind in SensorKind:
            self._silent[kind] = 0
        self._reported.clear()
        self.total_cycles = 0
        self.blocked_cycles = 0
