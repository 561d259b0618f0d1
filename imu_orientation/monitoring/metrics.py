"""Performance metrics for the estimator's sensor callbacks."""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional
import numpy as np

from ..core.config import Config
from ..core.types import SensorKind, SensorSample

logger = logging.getLogger(__name__)


@dataclass
class SampleMetrics:
    """Metrics for a single processed sample."""
    kind: SensorKind
    timestamp_us: int
    interval_ms: float
    process_time_ms: float


@dataclass
class StreamStats:
    """Aggregated statistics for one sensor stream."""
    samples: int
    mean_interval_ms: float
    std_interval_ms: float
    min_interval_ms: float
    max_interval_ms: float
    mean_process_time_ms: float
    max_process_time_ms: float
    rate_hz: float
    non_monotonic: int


class _Stream:
    """Rolling history of one sensor stream."""

    def __init__(self, window: int):
        self.intervals: Deque[float] = deque(maxlen=window)
        self.process_times: Deque[float] = deque(maxlen=window)
        self.samples = 0
        self.non_monotonic = 0
        self.last_timestamp_us: Optional[int] = None


class PerformanceMonitor:
    """Monitors sample intervals and callback cost per sensor stream.

    Intervals come from the sample timestamps, so replayed logs report
    the rates they were recorded at; processing time is wall-clock.
    """

    def __init__(self, config: Config):
        """Initialize performance monitor.

        Args:
            config: System configuration with monitoring settings.
        """
        self._mon_cfg = config.monitoring
        window = self._mon_cfg.window_size
        self._streams: Dict[SensorKind, _Stream] = {
            kind: _Stream(window) for kind in SensorKind
        }
        self._start_time: Optional[float] = None
        self._last_log_time = time.monotonic()

    def start_sample(self) -> None:
        """Mark the start of a sample's processing."""
        self._start_time = time.perf_counter()

    def end_sample(self, sample: SensorSample) -> SampleMetrics:
        """Mark the end of a sample's processing and record metrics.

        Args:
            sample: The sample that was just processed.

        Returns:
            Metrics for this sample.
        """
        now = time.perf_counter()
        process_time_ms = 0.0
        if self._start_time is not None:
            process_time_ms = (now - self._start_time) * 1000
            self._start_time = None

        stream = self._streams[sample.kind]
        stream.samples += 1
        stream.process_times.append(process_time_ms)

        interval_ms = 0.0
        if stream.last_timestamp_us is not None:
            interval_ms = (sample.timestamp_us - stream.last_timestamp_us) / 1000.0
            if interval_ms <= 0:
                stream.non_monotonic += 1
            else:
                stream.intervals.append(interval_ms)
        stream.last_timestamp_us = sample.timestamp_us

        self._maybe_log_stats()

        return SampleMetrics(
            kind=sample.kind,
            timestamp_us=sample.timestamp_us,
            interval_ms=interval_ms,
            process_time_ms=process_time_ms,
        )

    def _maybe_log_stats(self) -> None:
        """Log statistics periodically."""
        now = time.monotonic()
        if now - self._last_log_time < self._mon_cfg.log_interval_s:
            return
        self._last_log_time = now
        self.log_stats()

    def log_stats(self) -> None:
        """Log one summary line per sensor stream."""
        for kind, stats in self.get_stats().items():
            if stats.samples == 0:
                continue
            logger.info(
                "%s: %d samples, rate=%.1f Hz, dt=%.2f+/-%.2f ms, "
                "process=%.3f ms (max %.3f), non-monotonic=%d",
                kind.value,
                stats.samples,
                stats.rate_hz,
                stats.mean_interval_ms,
                stats.std_interval_ms,
                stats.mean_process_time_ms,
                stats.max_process_time_ms,
                stats.non_monotonic,
            )

    def get_stats(self) -> Dict[SensorKind, StreamStats]:
        """Get aggregated statistics for every sensor stream."""
        return {kind: self._stream_stats(stream) for kind, stream in self._streams.items()}

    @staticmethod
    def _stream_stats(stream: _Stream) -> StreamStats:
        if not stream.intervals:
            mean_process = float(np.mean(stream.process_times)) if stream.process_times else 0.0
            max_process = float(np.max(stream.process_times)) if stream.process_times else 0.0
            return StreamStats(
                samples=stream.samples,
                mean_interval_ms=0.0,
                std_interval_ms=0.0,
                min_interval_ms=0.0,
                max_interval_ms=0.0,
                mean_process_time_ms=mean_process,
                max_process_time_ms=max_process,
                rate_hz=0.0,
                non_monotonic=stream.non_monotonic,
            )

        intervals = np.array(stream.intervals)
        process_times = np.array(stream.process_times)
        mean_interval = float(np.mean(intervals))

        return StreamStats(
            samples=stream.samples,
            mean_interval_ms=mean_interval,
            std_interval_ms=float(np.std(intervals)),
            min_interval_ms=float(np.min(intervals)),
            max_interval_ms=float(np.max(intervals)),
            mean_process_time_ms=float(np.mean(process_times)),
            max_process_time_ms=float(np.max(process_times)),
            rate_hz=1000.0 / mean_interval if mean_interval > 0 else 0.0,
            non_monotonic=stream.non_monotonic,
        )

    def reset(self) -> None:
        """Reset all metrics."""
        window = self._mon_cfg.window_size
        self._streams = {kind: _Stream(window) for kind in SensorKind}
        self._start_time = None
