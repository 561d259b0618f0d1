"""Performance monitoring module for IMU orientation estimation."""

from .metrics import PerformanceMonitor, SampleMetrics, StreamStats

__all__ = ["PerformanceMonitor", "SampleMetrics", "StreamStats"]
