"""
Static code analysis utilities for GenBench
"""

from .quality_analyzer import QualityAnalyzer, QualityMetrics, SecurityValidation

__all__ = [
    "QualityAnalyzer",
    "QualityMetrics",
    "SecurityValidation",
]
