"""
Metrics recording and benchmark reporting for GenBench

Every scenario produces one ``DetailedMetrics`` record that is written to
disk as soon as it is accepted. The session summary is a pure function of
those records, so it can always be regenerated from the metrics directory.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from ..core.config import BenchmarkConfig
from ..core.errors import IncompleteMetricsError
from ..core.metrics import BenchmarkSummary, DetailedMetrics, RequirementsCheck

logger = logging.getLogger(__name__)

SUMMARY_SUFFIX = "-summary.json"


def new_session_id() -> str:
    return f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"


def _record_order(metrics: DetailedMetrics):
    return metrics.timestamp or "", metrics.scenario_id or ""


def _average(values: Iterable[float]) -> float:
    values = [v for v in values if v is not None]
    return sum(values) / len(values) if values else 0.0


class MetricsRecorder:
    """Append-only per-session metrics log with derived summaries"""

    def __init__(self, metrics_dir: Union[str, Path], session: Optional[str] = None,
                 policy: Optional[BenchmarkConfig] = None):
        self.metrics_dir = Path(metrics_dir)
        self.session = session or new_session_id()
        self.policy = policy or BenchmarkConfig()
        self.session_metrics: List[DetailedMetrics] = []

    def scenario_file(self, scenario_id: str) -> Path:
        return self.metrics_dir / f"{self.session}-{scenario_id}.json"

    @property
    def summary_file(self) -> Path:
        return self.metrics_dir / f"{self.session}{SUMMARY_SUFFIX}"

    def record(self, metrics: DetailedMetrics):
        """Validate completeness, then append and persist immediately"""
        missing = metrics.missing_fields()
        if missing:
            raise IncompleteMetricsError(list(missing))
        if metrics.session != self.session:
            raise ValueError(f"Metrics for session '{metrics.session}' recorded into session '{self.session}'")

        self.session_metrics.append(metrics)
        self.metrics_dir.mkdir(parents=True, exist_ok=True)
        with open(self.scenario_file(metrics.scenario_id), 'w', encoding='utf-8') as f:
            json.dump(metrics.to_dict(), f, indent=2)
        logger.info(f"📊 Recorded metrics for scenario: {metrics.scenario_id}")

    def summarize(self) -> BenchmarkSummary:
        """Aggregate the session's records; no side effects"""
        records = sorted(self.session_metrics, key=_record_order)
        total = len(records)
        successful = [m for m in records if m.validation.success]

        def every(predicate: Callable[[DetailedMetrics], bool]) -> bool:
            return total > 0 and all(predicate(m) for m in records)

        used_real_provider = every(lambda m: m.environment.used_real_provider)
        used_real_credentials = every(lambda m: m.environment.used_real_credentials)

        return BenchmarkSummary(
            session=self.session,
            timestamp=max((m.timestamp for m in records), default=None),
            total_scenarios=total,
            successful_scenarios=len(successful),
            failed_scenarios=total - len(successful),
            success_rate=len(successful) / total * 100 if total else 0.0,

            average_quality_score=round(_average(m.quality.overall_score for m in records), 2),
            average_duration_ms=round(_average(m.performance.total_duration_ms for m in records), 2),
            average_test_coverage=round(_average(m.quality.test_coverage_score for m in records), 2),
            total_lines_generated=sum(m.code_generation.lines_of_code for m in records),
            total_files_generated=sum(m.code_generation.files_generated for m in records),
            total_tests_generated=sum(m.code_generation.tests_generated for m in records),
            total_tests_passed=sum(m.code_generation.tests_passed for m in records),
            total_tests_failed=sum(m.code_generation.tests_failed for m in records),
            total_api_calls=sum(m.api_usage.total_api_calls for m in records),
            total_tokens_used=sum(m.api_usage.tokens_used for m in records),
            total_cost=round(sum(m.api_usage.estimated_cost for m in records), 6),

            environment_valid=used_real_provider and used_real_credentials,
            used_real_provider=used_real_provider,
            used_real_credentials=used_real_credentials,
            no_simulated_content=every(lambda m: m.environment.no_simulated_content),
            scenarios_with_fallback=tuple(m.scenario_id for m in records if m.environment.fallback_stages),

            meets_100_success_requirement=total > 0 and len(successful) == total,
            meets_quality_requirements=every(lambda m: m.validation.meets_quality_requirements),
            meets_performance_requirements=every(lambda m: m.validation.meets_performance_requirements),

            scenarios=tuple(m.scenario_id for m in records),
            failure_reasons=tuple(self._failure_reasons(records)),
            recommendations=tuple(self._recommendations(records)),
            provider_breakdown=self._provider_breakdown(records),
        )

    def save_summary(self, summary: BenchmarkSummary) -> Path:
        self.metrics_dir.mkdir(parents=True, exist_ok=True)
        with open(self.summary_file, 'w', encoding='utf-8') as f:
            json.dump(summary.to_dict(), f, indent=2)
        logger.info(f"📋 Saved benchmark summary: {self.summary_file}")
        return self.summary_file

    @classmethod
    def load_session(cls, metrics_dir: Union[str, Path], session: str,
                     policy: Optional[BenchmarkConfig] = None) -> 'MetricsRecorder':
        """Rebuild a recorder from the per-scenario records on disk"""
        recorder = cls(metrics_dir, session=session, policy=policy)
        records = []
        for path in sorted(recorder.metrics_dir.glob(f"{session}-*.json")):
            if path.name.endswith(SUMMARY_SUFFIX):
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"⚠️ Skipping unreadable metrics file {path}: {e}")
                continue
            if not isinstance(data, dict) or data.get("session") != session:
                continue
            records.append(DetailedMetrics.from_dict(data))

        records.sort(key=_record_order)
        recorder.session_metrics = records
        logger.info(f"📂 Loaded {len(records)} scenario records for session {session}")
        return recorder

    @staticmethod
    def load_summary(metrics_dir: Union[str, Path], session: str) -> Optional[BenchmarkSummary]:
        summary_file = Path(metrics_dir) / f"{session}{SUMMARY_SUFFIX}"
        if not summary_file.exists():
            return None
        with open(summary_file, 'r', encoding='utf-8') as f:
            return BenchmarkSummary.from_dict(json.load(f))

    def validate_requirements(self, summary: BenchmarkSummary) -> RequirementsCheck:
        return validate_requirements(summary, self.policy)

    # Derived fields

    @staticmethod
    def _failure_reasons(records: List[DetailedMetrics]) -> List[str]:
        reasons: List[str] = []
        for metrics in records:
            if metrics.validation.success:
                continue
            reasons.extend(f"{metrics.scenario_id}: {detail}" for detail in metrics.validation.error_details)
            if not metrics.code_generation.compilation_successful:
                reasons.append(f"{metrics.scenario_id}: Compilation failed")
            if not metrics.validation.all_tests_pass:
                reasons.append(f"{metrics.scenario_id}: Generated tests failed")
            if not metrics.validation.meets_quality_requirements:
                reasons.append(f"{metrics.scenario_id}: Quality requirements not met")
            if not metrics.validation.meets_performance_requirements:
                reasons.append(f"{metrics.scenario_id}: Performance requirements not met")
        return list(dict.fromkeys(reasons))

    def _recommendations(self, records: List[DetailedMetrics]) -> List[str]:
        if not records:
            return []
        policy = self.policy
        recommendations = []

        if _average(m.performance.total_duration_ms for m in records) > policy.max_scenario_duration_ms:
            recommendations.append("Consider optimizing provider response time or increasing timeout limits")
        if _average(m.quality.overall_score for m in records) < policy.min_quality_score:
            recommendations.append("Improve generation prompts or validation criteria to achieve higher quality scores")
        if any(m.code_generation.tests_failed > 0 for m in records):
            recommendations.append("Review test generation logic to ensure all generated tests pass")
        if _average(m.api_usage.total_api_calls for m in records) > policy.max_api_calls_per_scenario:
            recommendations.append("Optimize API usage to reduce costs and improve performance")
        if any(not m.environment.no_simulated_content for m in records):
            recommendations.append("Provider output fell back to template content; check the provider's response format")
        return recommendations

    @staticmethod
    def _provider_breakdown(records: List[DetailedMetrics]) -> Dict[str, Dict[str, float]]:
        grouped: Dict[str, List[DetailedMetrics]] = {}
        for metrics in records:
            grouped.setdefault(metrics.environment.provider or "unknown", []).append(metrics)

        breakdown = {}
        for provider, items in sorted(grouped.items()):
            passed = sum(1 for m in items if m.validation.success)
            breakdown[provider] = {
                "scenarios": len(items),
                "successful": passed,
                "success_rate": passed / len(items) * 100,
                "average_quality_score": round(_average(m.quality.overall_score for m in items), 2),
                "tokens_used": sum(m.api_usage.tokens_used for m in items),
                "estimated_cost": round(sum(m.api_usage.estimated_cost for m in items), 6),
            }
        return breakdown


def validate_requirements(summary: BenchmarkSummary,
                          policy: Optional[BenchmarkConfig] = None) -> RequirementsCheck:
    """Release gate: list every violated acceptance requirement"""
    policy = policy or BenchmarkConfig()
    violations = []

    if summary.total_scenarios == 0:
        violations.append("No scenarios were recorded")
    if summary.success_rate != 100:
        violations.append(f"Success rate {summary.success_rate:.1f}% must be 100%")
    if not summary.used_real_provider:
        violations.append("Must use real provider, not simulated responses")
    if not summary.used_real_credentials:
        violations.append("Must use real API keys, not mocks")
    if not summary.no_simulated_content and not policy.allow_fallback_content:
        violations.append("Generated content must come from the provider, not fallback templates")
    if not summary.meets_quality_requirements:
        violations.append("Quality requirements not met across all scenarios")
    if not summary.meets_performance_requirements:
        violations.append("Performance requirements not met across all scenarios")

    return RequirementsCheck(is_valid=not violations, violations=tuple(violations))
