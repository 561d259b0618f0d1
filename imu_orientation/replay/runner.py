"""Feed a sample sequence through an estimator."""

import logging
from typing import Callable, Iterable, List, Optional

from ..core.types import Rotation, SensorSample
from ..core.validation import SampleValidator
from ..fusion.estimator import OrientationEstimator
from ..monitoring.metrics import PerformanceMonitor

logger = logging.getLogger(__name__)


def replay(
    estimator: OrientationEstimator,
    samples: Iterable[SensorSample],
    validator: Optional[SampleValidator] = None,
    monitor: Optional[PerformanceMonitor] = None,
    on_rotation: Optional[Callable[[Rotation], None]] = None,
) -> List[Rotation]:
    """Deliver samples to the estimator one at a time, in order.

    Args:
        estimator: Estimator receiving the samples.
        samples: Samples in delivery order.
        validator: If given, samples failing validation are dropped.
        monitor: If given, records per-stream timing.
        on_rotation: Called with each rotation as it is emitted.

    Returns:
        Every rotation emitted during the replay.
    """
    rotations: List[Rotation] = []
    dropped = 0

    for sample in samples:
        if validator is not None:
            result = validator.validate(sample)
            if not result.is_valid:
                dropped += 1
                logger.warning(
                    "Dropping %s sample at %d us: %s",
                    sample.kind.value, sample.timestamp_us, "; ".join(result.errors),
                )
                continue
            for warning in result.warnings:
                logger.debug("%s sample at %d us: %s", sample.kind.value, sample.timestamp_us, warning)

        if monitor is not None:
            monitor.start_sample()
        rotation = estimator.on_sample(sample)
        if monitor is not None:
            monitor.end_sample(sample)

        if rotation is not None:
            rotations.append(rotation)
            if on_rotation is not None:
                on_rotation(rotation)

    if dropped:
        logger.info("Dropped %d invalid samples", dropped)
    return rotations
