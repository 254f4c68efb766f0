"""
Benchmark orchestration for GenBench

Runs every scenario through generation and validation, turns the outcome
into a ``DetailedMetrics`` record and hands it to the ``MetricsRecorder``.
Scenarios run concurrently up to ``benchmark.max_concurrent_scenarios``;
each scenario is sequential internally.
"""

import asyncio
import logging
import re
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ..core.artifacts import ArtifactSet
from ..core.config import Config
from ..core.errors import ConfigurationError
from ..core.metrics import (
    APIUsage, BenchmarkSummary, CodeGenerationCounts, DetailedMetrics, EnvironmentUsage,
    PerformanceTimings, QualityScores, ScenarioResults, ValidationOutcome,
)
from ..core.task import Scenario
from ..generation.code_generator import CodeGenerationEngine, GenerationResult
from ..generation.provider_client import ProviderClient
from ..validation.code_validator import CodeValidator, ValidationReport
from ..validation.toolchain import PROFILE_CLASSES
from .reporter import MetricsRecorder

logger = logging.getLogger(__name__)
console = Console()

TEST_CASE_PATTERNS = {
    "python": r'^\s*(?:async\s+)?def\s+test_\w*\s*\(',
    "typescript": r'^\s*(?:it|test)\s*\(',
}

TEST_OUTPUT_EXCERPT_CHARS = 4000


def setup_benchmark_logging(log_file: str = None) -> logging.Logger:
    """Setup structured logging for benchmark runs"""
    if log_file is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = f"logs/benchmark_{timestamp}.log"

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)

    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    bench_logger = logging.getLogger('genbench')
    bench_logger.setLevel(logging.INFO)
    bench_logger.addHandler(file_handler)
    bench_logger.addHandler(console_handler)

    return bench_logger


def count_test_cases(artifact_set: ArtifactSet) -> int:
    """Static count of test cases in the generated test files"""
    pattern = re.compile(TEST_CASE_PATTERNS.get(artifact_set.language, r'$^'), re.MULTILINE)
    return sum(len(pattern.findall(artifact_set.files[path])) for path in artifact_set.test_files)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BenchmarkRunner:
    """Drives scenarios through generation, validation and recording"""

    def __init__(self, config: Config, client: Optional[ProviderClient] = None,
                 session: Optional[str] = None, show_progress: bool = False):
        self.config = config
        self.client = client or ProviderClient(config)
        self.engine = CodeGenerationEngine(self.client, config)
        self.validator = CodeValidator(config)
        self.recorder = MetricsRecorder(config.data.metrics_dir, session=session, policy=config.benchmark)
        self.show_progress = show_progress

    @property
    def session(self) -> str:
        return self.recorder.session

    def plan(self, scenarios: Sequence[Scenario], providers: Optional[Sequence[str]] = None) -> List[Scenario]:
        """Assign providers; a scenario without one fans out over every requested provider"""
        available = self.client.available_providers()
        selected = list(providers or available)
        unavailable = [p for p in selected if p not in available]
        for provider in unavailable:
            logger.warning(f"⚠️ Requested provider '{provider}' is not available and will be skipped")
        selected = [p for p in selected if p in available]
        if not selected and any(s.provider is None for s in scenarios):
            raise ConfigurationError("No providers available. Set OPENAI_API_KEY, ANTHROPIC_API_KEY or GEMINI_API_KEY.")

        planned = []
        for scenario in scenarios:
            if scenario.provider:
                planned.append(scenario)
                continue
            for provider in selected:
                planned.append(scenario.for_provider(provider, suffix=len(selected) > 1))
        return planned

    async def run(self, scenarios: Sequence[Scenario], providers: Optional[Sequence[str]] = None,
                  max_concurrent: Optional[int] = None) -> BenchmarkSummary:
        """Run all scenarios, record their metrics and save the session summary"""
        planned = self.plan(scenarios, providers)
        max_concurrent = max(1, max_concurrent or self.config.benchmark.max_concurrent_scenarios)
        usage_before = self.client.get_metrics()

        logger.info(f"🚀 Starting session {self.session}: {len(planned)} scenario(s), "
                    f"up to {max_concurrent} concurrently")
        semaphore = asyncio.Semaphore(max_concurrent)

        async def run_with_semaphore(scenario: Scenario) -> DetailedMetrics:
            async with semaphore:
                metrics = await self.run_scenario(scenario)
                self.recorder.record(metrics)
                return metrics

        if self.show_progress:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TimeElapsedColumn(),
                console=console
            ) as progress:
                task = progress.add_task(f"Session {self.session}", total=len(planned))
                for coro in asyncio.as_completed([run_with_semaphore(s) for s in planned]):
                    metrics = await coro
                    status = "✅" if metrics.validation.success else "❌"
                    progress.console.print(f"{status} {metrics.scenario_id}")
                    progress.advance(task)
        else:
            await asyncio.gather(*(run_with_semaphore(s) for s in planned))

        usage = self.client.get_metrics().delta(usage_before)
        logger.info(f"📡 Session provider usage: {usage.total_requests} requests, {usage.total_tokens} tokens, "
                    f"error rate {usage.error_rate:.1%}")

        summary = self.recorder.summarize()
        self.recorder.save_summary(summary)
        logger.info(f"🏁 Session {self.session} finished: {summary.successful_scenarios}/"
                    f"{summary.total_scenarios} successful ({summary.success_rate:.1f}%)")
        return summary

    async def run_scenario(self, scenario: Scenario) -> DetailedMetrics:
        """Generate and validate one scenario; never raises"""
        start = time.perf_counter()
        provider = scenario.provider
        logger.info(f"🎯 Scenario {scenario.scenario_id} ({scenario.request.complexity_tier.value}, "
                    f"{scenario.request.language}) with {provider}")

        if not provider or not self.client.is_available(provider):
            return self._failed_metrics(scenario, f"Provider '{provider}' is not available", start)

        try:
            generation = await self.engine.generate(scenario.request, provider)
            report = await self.validator.validate(generation.artifact_set)
        except Exception as e:
            logger.error(f"❌ Scenario {scenario.scenario_id} failed unexpectedly: {e}", exc_info=True)
            return self._failed_metrics(scenario, f"Unexpected error: {type(e).__name__}: {e}", start)

        return self.build_metrics(scenario, generation, report, (time.perf_counter() - start) * 1000)

    def build_metrics(self, scenario: Scenario, generation: GenerationResult, report: ValidationReport,
                      total_duration_ms: float) -> DetailedMetrics:
        policy = self.config.benchmark
        provider = scenario.provider
        artifact_set = generation.artifact_set
        tests = report.tests

        security_score = report.security.score
        code_quality = report.quality.overall
        overall = round((code_quality + security_score + generation.quality_score_self_reported) / 3, 1)

        meets_quality = (overall >= policy.min_quality_score
                         and tests.coverage_percent >= policy.min_test_coverage
                         and security_score >= policy.min_security_score)
        meets_performance = (total_duration_ms <= policy.max_scenario_duration_ms
                             and generation.api_calls <= policy.max_api_calls_per_scenario)

        successful_calls = generation.api_calls - len(generation.provider_errors)
        tests_generated = tests.total_tests if tests.executed else count_test_cases(artifact_set)

        error_details = list(report.error_details)
        error_details.extend(f"Provider: {e}" for e in generation.provider_errors)

        return DetailedMetrics(
            test_id=str(uuid.uuid4()),
            scenario_id=scenario.scenario_id,
            timestamp=_now(),
            session=self.session,
            environment=EnvironmentUsage(
                used_real_provider=not self.client.is_simulated(provider) and successful_calls > 0,
                used_real_credentials=self.client.has_real_credentials(provider),
                no_simulated_content=not generation.used_fallback_content,
                provider=provider,
                model=self.client.default_model(provider),
                fallback_stages=generation.fallback_stages,
            ),
            performance=PerformanceTimings(
                total_duration_ms=round(total_duration_ms, 2),
                provider_response_ms=round(generation.provider_response_ms, 2),
                code_generation_ms=round(generation.duration_ms, 2),
                build_ms=round(report.compilation.compilation_duration_ms, 2),
                install_ms=round(report.install.duration_ms, 2),
                test_execution_ms=round(tests.duration_ms, 2),
            ),
            quality=QualityScores(
                overall_score=overall,
                code_quality_score=code_quality,
                test_coverage_score=tests.coverage_percent,
                security_score=security_score,
                documentation_score=report.quality.documentation,
                self_reported_score=generation.quality_score_self_reported,
            ),
            code_generation=CodeGenerationCounts(
                lines_of_code=artifact_set.total_lines,
                tests_generated=tests_generated,
                files_generated=artifact_set.file_count,
                tests_passed=tests.passed_tests,
                tests_failed=tests.failed_tests,
                compilation_successful=report.compilation.succeeded,
            ),
            api_usage=APIUsage(
                total_api_calls=generation.api_calls,
                tokens_used=generation.tokens_used,
                estimated_cost=self.estimate_cost(provider, generation.tokens_used),
                error_rate=len(generation.provider_errors) / generation.api_calls if generation.api_calls else 0.0,
                average_response_time=(generation.provider_response_ms / generation.api_calls
                                       if generation.api_calls else 0.0),
            ),
            validation=ValidationOutcome(
                success=report.success,
                meets_quality_requirements=meets_quality,
                meets_performance_requirements=meets_performance,
                all_tests_pass=tests.all_passed,
                tests_executed=tests.executed,
                dependencies_installed=report.install.succeeded,
                error_details=tuple(error_details),
            ),
            results=ScenarioResults(
                generated_files=tuple(artifact_set.paths()),
                compilation_errors=report.compilation.errors,
                test_output=tests.raw_output[-TEST_OUTPUT_EXCERPT_CHARS:],
                quality_analysis=report.quality.to_dict(),
                security_analysis=report.security.to_dict(),
            ),
        )

    def _failed_metrics(self, scenario: Scenario, error: str, start: float) -> DetailedMetrics:
        provider = scenario.provider
        return DetailedMetrics(
            test_id=str(uuid.uuid4()),
            scenario_id=scenario.scenario_id,
            timestamp=_now(),
            session=self.session,
            environment=EnvironmentUsage(
                used_real_provider=False,
                used_real_credentials=self.client.has_real_credentials(provider) if provider else False,
                no_simulated_content=True,
                provider=provider,
                model=self.client.default_model(provider) if provider else None,
            ),
            performance=PerformanceTimings(total_duration_ms=round((time.perf_counter() - start) * 1000, 2)),
            quality=QualityScores(overall_score=0.0),
            code_generation=CodeGenerationCounts(lines_of_code=0, tests_generated=0),
            api_usage=APIUsage(),
            validation=ValidationOutcome(success=False, error_details=(error,)),
        )

    def estimate_cost(self, provider: str, tokens: int) -> float:
        price = self.config.benchmark.token_prices.get(provider, 0.0)
        return round(tokens / 1000 * price, 6)

    def check_environment(self) -> Dict[str, Any]:
        """Credential and toolchain availability"""
        providers = {}
        for provider, has_key in self.client.credentialed.items():
            providers[provider] = {
                "credentials": has_key,
                "available": self.client.is_available(provider),
                "model": self.client.default_model(provider),
            }

        toolchains = {}
        for language, profile_cls in PROFILE_CLASSES.items():
            toolchains[language] = profile_cls.locate_toolchain()

        return {"providers": providers, "toolchains": toolchains}

    async def aclose(self):
        await self.client.aclose()
