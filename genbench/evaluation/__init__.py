"""
Benchmark orchestration and reporting for GenBench
"""

from .benchmark_runner import BenchmarkRunner
from .reporter import MetricsRecorder, validate_requirements

__all__ = [
    "BenchmarkRunner",
    "MetricsRecorder",
    "validate_requirements",
]
