"""
Provider access and project generation for GenBench
"""

from .provider_client import ProviderClient
from .code_generator import CodeGenerationEngine, GenerationResult

__all__ = [
    "ProviderClient",
    "CodeGenerationEngine",
    "GenerationResult",
]
