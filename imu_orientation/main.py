#!/usr/bin/env python3
"""Main entry point for IMU orientation estimation.

Runs the estimator over a recorded event log or a synthetic sensor source
and writes JSON-formatted rotations to stdout, one object per line.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from .core import Config, ConfigError, Rotation, SampleValidator, SensorSample, load_config
from .fusion import KalmanError, OrientationEstimator
from .monitoring import PerformanceMonitor
from .replay import LogFormatError, MockSensorSource, read_event_log, replay, write_event_log

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def run_estimation(
    config: Config,
    samples: Iterable[SensorSample],
    source_name: str,
    every: int = 1,
) -> int:
    """Run the estimator over a sample sequence.

    Args:
        config: System configuration.
        samples: Samples in delivery order.
        source_name: Prefix of the sensor identifiers bound to the estimator.
        every: Print every Nth emitted rotation.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    estimator = OrientationEstimator(
        config,
        gyro_id=f"{source_name}-gyro",
        acc_id=f"{source_name}-acc",
        mag_id=f"{source_name}-mag",
    )
    validator = SampleValidator(config)
    monitor = PerformanceMonitor(config)
    emitted = 0

    def emit(rotation: Rotation) -> None:
        nonlocal emitted
        if emitted % every == 0:
            print(json.dumps(rotation.to_dict()), flush=True)
        emitted += 1

    try:
        replay(estimator, samples, validator=validator, monitor=monitor, on_rotation=emit)
    except LogFormatError as e:
        logger.error("Event log error: %s", e)
        return 1
    except KalmanError as e:
        logger.error("Filter error: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        stats = estimator.get_stats()
        logger.info("Final statistics:")
        logger.info("  Rotations emitted: %d", emitted)
        logger.info("  Predictions: %d, corrections: %d (%d with magnetometer)",
                    stats["predict_count"], stats["correct_count"],
                    stats["mag_consumed_count"])
        logger.info("  Degenerate normalizations: %d", stats["degenerate_count"])
        monitor.log_stats()

    return 0


def _mock_samples(config: Config, duration_s: float, record: Optional[str]) -> List[SensorSample]:
    with MockSensorSource(config) as source:
        samples = list(source.samples(duration_s))
    if record:
        write_event_log(record, samples)
    return samples


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point.

    Args:
        argv: Command line arguments, sys.argv[1:] if None.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        description="IMU orientation estimation with a quaternion EKF"
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--log",
        type=str,
        metavar="PATH",
        help="Replay a recorded sensor event log (CSV)",
    )
    source.add_argument(
        "--mock",
        type=float,
        metavar="SECONDS",
        help="Run on synthetic sensor data for the given duration",
    )
    parser.add_argument(
        "--record",
        type=str,
        metavar="PATH",
        help="Write the generated mock samples to an event log",
    )
    parser.add_argument(
        "--every",
        type=int,
        default=1,
        metavar="N",
        help="Print every Nth rotation (default: 1)",
    )
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)

    if args.every < 1:
        logger.error("--every must be at least 1, got %d", args.every)
        return 1

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except (ConfigError, TypeError) as e:
        logger.error("Failed to load configuration: %s", e)
        return 1

    if args.mock is not None:
        if args.mock <= 0:
            logger.error("--mock duration must be positive, got %s", args.mock)
            return 1
        samples = _mock_samples(config, args.mock, args.record)
        source_name = "mock"
    else:
        if args.record:
            logger.error("--record is only supported with --mock")
            return 1
        if not Path(args.log).is_file():
            logger.error("Event log not found: %s", args.log)
            return 1
        samples = read_event_log(args.log)
        source_name = "log"

    logger.info("Starting orientation estimation from %s source", source_name)
    return run_estimation(config, samples, source_name, every=args.every)


if __name__ == "__main__":
    sys.exit(main())
