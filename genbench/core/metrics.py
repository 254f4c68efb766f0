"""
Metric records for GenBench

``ProviderResponse`` and ``UsageSnapshot`` describe individual provider calls,
``DetailedMetrics`` is the immutable per-scenario record and
``BenchmarkSummary`` is the session-level aggregate derived from those records.
"""

from dataclasses import MISSING, dataclass, field, fields, asdict
from typing import Any, Dict, Optional, Tuple, Type, TypeVar


T = TypeVar("T")


def _from_fields(cls: Type[T], data: Optional[Dict[str, Any]], tuple_fields: Tuple[str, ...] = ()) -> T:
    """Build a dataclass from a dict; absent keys become None so completeness checks can see them"""
    data = data or {}
    kwargs = {}
    for f in fields(cls):
        if f.name in data:
            value = data[f.name]
            if f.name in tuple_fields and value is not None:
                value = tuple(value)
            kwargs[f.name] = value
        elif f.name in tuple_fields:
            kwargs[f.name] = ()
        elif f.default is not MISSING or f.default_factory is not MISSING:
            continue
        else:
            kwargs[f.name] = None
    return cls(**kwargs)


def _as_json(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_as_json(v) for v in value]
    if isinstance(value, list):
        return [_as_json(v) for v in value]
    if isinstance(value, dict):
        return {k: _as_json(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class ProviderResponse:
    """Result of one provider call. A failed response never carries data."""
    success: bool
    duration_ms: float
    data: Optional[str] = None
    error: Optional[str] = None
    tokens_used: int = 0
    provider: Optional[str] = None
    model: Optional[str] = None

    def __post_init__(self):
        if not self.success and self.data is not None:
            raise ValueError("A failed ProviderResponse must not carry data")
        if self.success and self.data is None:
            raise ValueError("A successful ProviderResponse must carry data")

    @classmethod
    def ok(cls, data: str, duration_ms: float, tokens_used: int = 0,
           provider: str = None, model: str = None) -> 'ProviderResponse':
        return cls(success=True, data=data, duration_ms=duration_ms, tokens_used=tokens_used,
                   provider=provider, model=model)

    @classmethod
    def fail(cls, error: str, duration_ms: float, provider: str = None, model: str = None) -> 'ProviderResponse':
        return cls(success=False, error=error, duration_ms=duration_ms, provider=provider, model=model)


@dataclass(frozen=True)
class UsageSnapshot:
    """Point-in-time copy of the provider usage counters"""
    total_requests: int = 0
    total_tokens: int = 0
    total_duration_ms: float = 0.0
    errors: int = 0

    @property
    def average_response_time(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_duration_ms / self.total_requests

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.errors / self.total_requests

    def delta(self, earlier: 'UsageSnapshot') -> 'UsageSnapshot':
        """Usage accumulated since ``earlier``"""
        return UsageSnapshot(
            total_requests=self.total_requests - earlier.total_requests,
            total_tokens=self.total_tokens - earlier.total_tokens,
            total_duration_ms=self.total_duration_ms - earlier.total_duration_ms,
            errors=self.errors - earlier.errors,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_tokens": self.total_tokens,
            "total_duration_ms": self.total_duration_ms,
            "errors": self.errors,
            "average_response_time": self.average_response_time,
            "error_rate": self.error_rate,
        }


@dataclass(frozen=True)
class EnvironmentUsage:
    used_real_provider: bool
    used_real_credentials: bool
    no_simulated_content: bool
    provider: Optional[str] = None
    model: Optional[str] = None
    fallback_stages: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PerformanceTimings:
    total_duration_ms: float
    provider_response_ms: float = 0.0
    code_generation_ms: float = 0.0
    build_ms: float = 0.0
    install_ms: float = 0.0
    test_execution_ms: float = 0.0


@dataclass(frozen=True)
class QualityScores:
    overall_score: float
    code_quality_score: float = 0.0
    test_coverage_score: float = 0.0
    security_score: float = 0.0
    documentation_score: float = 0.0
    self_reported_score: float = 0.0


@dataclass(frozen=True)
class CodeGenerationCounts:
    lines_of_code: int
    tests_generated: int
    files_generated: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    compilation_successful: bool = False


@dataclass(frozen=True)
class APIUsage:
    total_api_calls: int = 0
    tokens_used: int = 0
    estimated_cost: float = 0.0
    error_rate: float = 0.0
    average_response_time: float = 0.0


@dataclass(frozen=True)
class ValidationOutcome:
    success: bool
    meets_quality_requirements: bool = False
    meets_performance_requirements: bool = False
    all_tests_pass: bool = False
    tests_executed: bool = False
    dependencies_installed: bool = False
    error_details: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ScenarioResults:
    generated_files: Tuple[str, ...] = ()
    compilation_errors: Tuple[str, ...] = ()
    test_output: str = ""
    quality_analysis: Dict[str, Any] = field(default_factory=dict)
    security_analysis: Dict[str, Any] = field(default_factory=dict)


REQUIRED_METRIC_FIELDS = (
    "test_id",
    "scenario_id",
    "timestamp",
    "session",
    "environment.used_real_provider",
    "environment.used_real_credentials",
    "environment.no_simulated_content",
    "performance.total_duration_ms",
    "quality.overall_score",
    "code_generation.lines_of_code",
    "code_generation.tests_generated",
    "validation.success",
)


@dataclass(frozen=True)
class DetailedMetrics:
    """Immutable record of one fully resolved scenario"""
    test_id: str
    scenario_id: str
    timestamp: str
    session: str
    environment: EnvironmentUsage
    performance: PerformanceTimings
    quality: QualityScores
    code_generation: CodeGenerationCounts
    api_usage: APIUsage
    validation: ValidationOutcome
    results: ScenarioResults = field(default_factory=ScenarioResults)

    def missing_fields(self) -> Tuple[str, ...]:
        """Dotted paths of required fields that are absent or empty"""
        missing = []
        for path in REQUIRED_METRIC_FIELDS:
            value: Any = self
            for part in path.split("."):
                value = getattr(value, part, None) if value is not None else None
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(path)
        return tuple(missing)

    def to_dict(self) -> Dict[str, Any]:
        return _as_json(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetailedMetrics':
        return cls(
            test_id=data.get("test_id"),
            scenario_id=data.get("scenario_id"),
            timestamp=data.get("timestamp"),
            session=data.get("session"),
            environment=_from_fields(EnvironmentUsage, data.get("environment"), ("fallback_stages",)),
            performance=_from_fields(PerformanceTimings, data.get("performance")),
            quality=_from_fields(QualityScores, data.get("quality")),
            code_generation=_from_fields(CodeGenerationCounts, data.get("code_generation")),
            api_usage=_from_fields(APIUsage, data.get("api_usage")),
            validation=_from_fields(ValidationOutcome, data.get("validation"), ("error_details",)),
            results=_from_fields(ScenarioResults, data.get("results"), ("generated_files", "compilation_errors")),
        )


@dataclass(frozen=True)
class BenchmarkSummary:
    """Session aggregate, always recomputed from the DetailedMetrics records"""
    session: str
    timestamp: Optional[str]
    total_scenarios: int
    successful_scenarios: int
    failed_scenarios: int
    success_rate: float

    average_quality_score: float
    average_duration_ms: float
    average_test_coverage: float
    total_lines_generated: int
    total_files_generated: int
    total_tests_generated: int
    total_tests_passed: int
    total_tests_failed: int
    total_api_calls: int
    total_tokens_used: int
    total_cost: float

    environment_valid: bool
    used_real_provider: bool
    used_real_credentials: bool
    no_simulated_content: bool
    scenarios_with_fallback: Tuple[str, ...]

    meets_100_success_requirement: bool
    meets_quality_requirements: bool
    meets_performance_requirements: bool

    scenarios: Tuple[str, ...]
    failure_reasons: Tuple[str, ...]
    recommendations: Tuple[str, ...]
    provider_breakdown: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _as_json(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BenchmarkSummary':
        return _from_fields(cls, data, ("scenarios_with_fallback", "scenarios", "failure_reasons", "recommendations"))


@dataclass(frozen=True)
class RequirementsCheck:
    """Verdict of the acceptance gate"""
    is_valid: bool
    violations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "violations": list(self.violations)}
