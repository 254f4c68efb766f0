"""
GenBench: A Validation and Benchmarking Harness for Provider-Generated Code

This package drives code-generation providers to produce multi-file projects,
proves them with the real compiler, installer and test runner, and aggregates
auditable pass/fail verdicts across scenarios and providers.
"""

__version__ = "0.1.0"
__author__ = "GenBench Team"

from .core import *
from .analysis import *
from .generation import *
from .validation import *
from .evaluation import *

__all__ = [
    "__version__",
    "__author__",
]
