"""Tests for metrics recording, session summaries and the requirements gate"""

import dataclasses
import json

import pytest

from genbench.core.config import BenchmarkConfig
from genbench.core.errors import IncompleteMetricsError
from genbench.core.metrics import (
    APIUsage, CodeGenerationCounts, DetailedMetrics, EnvironmentUsage, PerformanceTimings,
    QualityScores, ValidationOutcome,
)
from genbench.evaluation.reporter import MetricsRecorder, new_session_id, validate_requirements

SESSION = "session_20240101_120000"


def make_metrics(scenario_id, success=True, session=SESSION, timestamp=None, provider="openai",
                 fallback_stages=(), real=True, quality=90.0, tokens=1000):
    return DetailedMetrics(
        test_id=f"test-{scenario_id}",
        scenario_id=scenario_id,
        timestamp=timestamp or f"2024-01-01T12:00:0{len(scenario_id) % 10}+00:00",
        session=session,
        environment=EnvironmentUsage(
            used_real_provider=real,
            used_real_credentials=real,
            no_simulated_content="generate" not in fallback_stages,
            provider=provider,
            model="gpt-4o",
            fallback_stages=tuple(fallback_stages),
        ),
        performance=PerformanceTimings(total_duration_ms=30000.0, provider_response_ms=20000.0),
        quality=QualityScores(overall_score=quality, test_coverage_score=80.0, security_score=95.0),
        code_generation=CodeGenerationCounts(
            lines_of_code=350, tests_generated=6, files_generated=4,
            tests_passed=6 if success else 4, tests_failed=0 if success else 2,
            compilation_successful=True,
        ),
        api_usage=APIUsage(total_api_calls=3, tokens_used=tokens, estimated_cost=0.01),
        validation=ValidationOutcome(
            success=success,
            meets_quality_requirements=quality >= 85,
            meets_performance_requirements=True,
            all_tests_pass=success,
            tests_executed=True,
            dependencies_installed=True,
            error_details=() if success else ("Tests: 2 of 6 failed",),
        ),
    )


@pytest.fixture
def recorder(tmp_path):
    return MetricsRecorder(tmp_path / "metrics", session=SESSION)


class TestRecording:

    def test_record_persists_immediately(self, recorder):
        metrics = make_metrics("todo-cli")
        recorder.record(metrics)

        path = recorder.scenario_file("todo-cli")
        assert path.name == f"{SESSION}-todo-cli.json"
        with open(path) as f:
            data = json.load(f)
        assert data["scenario_id"] == "todo-cli"
        assert data["environment"]["fallback_stages"] == []
        assert DetailedMetrics.from_dict(data) == metrics

    def test_incomplete_record_rejected(self, recorder):
        metrics = dataclasses.replace(
            make_metrics("todo-cli"),
            test_id="",
            quality=QualityScores(overall_score=None),
        )
        with pytest.raises(IncompleteMetricsError) as exc_info:
            recorder.record(metrics)
        assert exc_info.value.missing_fields == ["test_id", "quality.overall_score"]
        assert recorder.session_metrics == []
        assert not recorder.scenario_file("todo-cli").exists()

    def test_missing_fields_after_load(self):
        data = make_metrics("todo-cli").to_dict()
        del data["validation"]["success"]
        del data["timestamp"]
        assert DetailedMetrics.from_dict(data).missing_fields() == ("timestamp", "validation.success")

    def test_session_mismatch_rejected(self, recorder):
        with pytest.raises(ValueError):
            recorder.record(make_metrics("todo-cli", session="session_other"))

    def test_new_session_id_format(self):
        assert new_session_id().startswith("session_")
        assert len(new_session_id()) == len("session_20240101_120000")


class TestSummary:

    def test_three_of_four(self, recorder):
        for scenario_id, success in (("a", True), ("b", True), ("c", False), ("d", True)):
            recorder.record(make_metrics(scenario_id, success=success))

        summary = recorder.summarize()

        assert summary.total_scenarios == 4
        assert summary.successful_scenarios == 3
        assert summary.failed_scenarios == 1
        assert summary.success_rate == 75.0
        assert not summary.meets_100_success_requirement
        assert summary.total_tests_failed == 2
        assert summary.total_tokens_used == 4000
        assert summary.total_api_calls == 12
        assert "c: Tests: 2 of 6 failed" in summary.failure_reasons
        assert "c: Generated tests failed" in summary.failure_reasons
        assert "Review test generation logic to ensure all generated tests pass" in summary.recommendations

    def test_success_rate_is_exact(self, recorder):
        for scenario_id, success in (("a", True), ("b", False), ("c", True)):
            recorder.record(make_metrics(scenario_id, success=success))

        summary = recorder.summarize()

        assert summary.success_rate == 2 / 3 * 100
        assert summary.provider_breakdown["openai"]["success_rate"] == 2 / 3 * 100
        assert f"{summary.success_rate:.1f}" == "66.7"

    def test_summarize_is_idempotent(self, recorder):
        recorder.record(make_metrics("a"))
        recorder.record(make_metrics("bb", success=False))
        assert recorder.summarize() == recorder.summarize()

    def test_order_does_not_matter(self, tmp_path):
        records = [make_metrics("a"), make_metrics("bb", success=False), make_metrics("ccc")]
        forward = MetricsRecorder(tmp_path / "one", session=SESSION)
        backward = MetricsRecorder(tmp_path / "two", session=SESSION)
        for metrics in records:
            forward.record(metrics)
        for metrics in reversed(records):
            backward.record(metrics)
        assert forward.summarize() == backward.summarize()

    def test_empty_session(self, recorder):
        summary = recorder.summarize()
        assert summary.total_scenarios == 0
        assert summary.success_rate == 0.0
        assert not summary.meets_100_success_requirement
        assert not summary.environment_valid
        assert summary.recommendations == ()

    def test_fallback_content_is_flagged_not_hidden(self, recorder):
        recorder.record(make_metrics("a"))
        recorder.record(make_metrics("b", fallback_stages=("analyze", "generate")))
        recorder.record(make_metrics("c", fallback_stages=("score",)))

        summary = recorder.summarize()

        assert summary.success_rate == 100.0
        assert not summary.no_simulated_content
        assert summary.scenarios_with_fallback == ("b", "c")
        assert any("fell back to template content" in r for r in summary.recommendations)

    def test_provider_breakdown(self, recorder):
        recorder.record(make_metrics("a", provider="openai"))
        recorder.record(make_metrics("bb", provider="anthropic", success=False, tokens=500))

        breakdown = recorder.summarize().provider_breakdown

        assert list(breakdown) == ["anthropic", "openai"]
        assert breakdown["anthropic"]["success_rate"] == 0.0
        assert breakdown["anthropic"]["tokens_used"] == 500
        assert breakdown["openai"]["successful"] == 1

    def test_round_trip_through_disk(self, recorder, tmp_path):
        for scenario_id in ("a", "bb", "ccc"):
            recorder.record(make_metrics(scenario_id, success=scenario_id != "bb"))
        summary = recorder.summarize()
        recorder.save_summary(summary)

        # A foreign session in the same directory must not leak in
        other = MetricsRecorder(tmp_path / "metrics", session=f"{SESSION}-rerun")
        other.record(make_metrics("zzz", session=f"{SESSION}-rerun"))

        reloaded = MetricsRecorder.load_session(tmp_path / "metrics", SESSION)
        assert [m.scenario_id for m in reloaded.session_metrics] == ["a", "bb", "ccc"]
        assert reloaded.summarize() == summary
        assert MetricsRecorder.load_summary(tmp_path / "metrics", SESSION) == summary

    def test_unreadable_record_skipped(self, recorder, tmp_path):
        recorder.record(make_metrics("a"))
        (tmp_path / "metrics" / f"{SESSION}-broken.json").write_text("{not json")
        reloaded = MetricsRecorder.load_session(tmp_path / "metrics", SESSION)
        assert [m.scenario_id for m in reloaded.session_metrics] == ["a"]

    def test_missing_summary(self, tmp_path):
        assert MetricsRecorder.load_summary(tmp_path, "session_missing") is None


class TestRequirementsGate:

    def test_all_requirements_met(self, recorder):
        recorder.record(make_metrics("a"))
        recorder.record(make_metrics("b"))
        check = recorder.validate_requirements(recorder.summarize())
        assert check.is_valid
        assert check.violations == ()

    def test_failure_and_simulation_violations(self, recorder):
        recorder.record(make_metrics("a", success=False))
        recorder.record(make_metrics("b", real=False, fallback_stages=("generate",), quality=50.0))

        check = validate_requirements(recorder.summarize())

        assert not check.is_valid
        assert "Success rate 50.0% must be 100%" in check.violations
        assert "Must use real provider, not simulated responses" in check.violations
        assert "Must use real API keys, not mocks" in check.violations
        assert "Generated content must come from the provider, not fallback templates" in check.violations
        assert "Quality requirements not met across all scenarios" in check.violations

    def test_fallback_content_can_be_allowed(self, tmp_path):
        recorder = MetricsRecorder(tmp_path, session=SESSION, policy=BenchmarkConfig(allow_fallback_content=True))
        recorder.record(make_metrics("a", fallback_stages=("generate",)))
        assert recorder.validate_requirements(recorder.summarize()).is_valid

    def test_empty_session_is_invalid(self, recorder):
        check = recorder.validate_requirements(recorder.summarize())
        assert "No scenarios were recorded" in check.violations
