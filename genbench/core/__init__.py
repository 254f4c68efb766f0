"""
Core data model and configuration for GenBench
"""

from .config import Config
from .task import ComplexityTier, CodeGenerationRequest, Scenario, load_scenarios
from .artifacts import ArtifactSet, ProjectSpecification
from .metrics import DetailedMetrics, BenchmarkSummary, ProviderResponse
from .errors import GenBenchError, ConfigurationError, IncompleteMetricsError, UnsafePathError

__all__ = [
    "Config",
    "ComplexityTier",
    "CodeGenerationRequest",
    "Scenario",
    "load_scenarios",
    "ArtifactSet",
    "ProjectSpecification",
    "DetailedMetrics",
    "BenchmarkSummary",
    "ProviderResponse",
    "GenBenchError",
    "ConfigurationError",
    "IncompleteMetricsError",
    "UnsafePathError",
]
