"""
Exception hierarchy for GenBench
"""

from typing import List, Optional


class GenBenchError(Exception):
    """Base class for all GenBench errors"""


class ConfigurationError(GenBenchError):
    """Invalid configuration detected before any work starts (e.g. malformed API key)"""
    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        self.message = message
        prefix = f"{provider}: " if provider else ""
        super().__init__(f"{prefix}{message}")


class ProviderCallError(GenBenchError):
    """Provider call failure with specific provider info.

    Raised only inside provider transports; the provider client always turns it
    into a failed ``ProviderResponse``.
    """
    def __init__(self, provider: str, error_type: str, message: str,
                 original_error: Exception = None, should_retry: bool = False):
        self.provider = provider
        self.error_type = error_type
        self.message = message
        self.original_error = original_error
        self.should_retry = should_retry
        super().__init__(f"{provider} {error_type}: {message}")


class UnsafePathError(GenBenchError):
    """Generated file path would escape the validation workspace"""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Refusing to write '{path}': {reason}")


class IncompleteMetricsError(GenBenchError):
    """Metrics record rejected because required fields are missing"""
    def __init__(self, missing_fields: List[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(f"Incomplete metrics data. Missing fields: {', '.join(self.missing_fields)}")
