"""
Toolchain-backed validation of generated projects
"""

from .code_validator import CodeValidator, CompilationResult, TestExecutionResult, ValidationReport

__all__ = [
    "CodeValidator",
    "CompilationResult",
    "TestExecutionResult",
    "ValidationReport",
]
