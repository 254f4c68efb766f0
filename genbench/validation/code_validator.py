"""
Real Code Validation for GenBench

Materializes a generated project in a throwaway workspace, then compiles it,
installs its dependencies and runs its test suite with the language's real
toolchain, alongside static quality and security analysis.
"""

import logging
import shutil
import tempfile
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

from ..analysis.quality_analyzer import QualityAnalyzer, QualityMetrics, SecurityValidation
from ..core.artifacts import ArtifactSet
from ..core.config import Config
from ..core.errors import UnsafePathError
from .toolchain import CommandResult, LanguageProfile, get_profile, run_command

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "genbench-"


@dataclass(frozen=True)
class CompilationResult:
    """Result of a compile / type-check attempt"""
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    compilation_duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return len(self.errors) == 0


@dataclass(frozen=True)
class InstallResult:
    """Result of dependency installation"""
    succeeded: bool
    skipped: bool = False
    output: str = ""
    duration_ms: float = 0.0
    error: Optional[str] = None


@dataclass(frozen=True)
class TestExecutionResult:
    """Result of running the generated test suite"""
    __test__ = False

    executed: bool
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    coverage_percent: float = 0.0
    duration_ms: float = 0.0
    raw_output: str = ""
    timed_out: bool = False

    @property
    def all_passed(self) -> bool:
        return self.executed and self.total_tests > 0 and self.failed_tests == 0


@dataclass(frozen=True)
class ValidationReport:
    """Everything learned about one artifact set"""
    workspace: str
    compilation: CompilationResult
    install: InstallResult
    tests: TestExecutionResult
    quality: QualityMetrics
    security: SecurityValidation
    error_details: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.compilation.succeeded and self.install.succeeded and self.tests.all_passed


class CodeValidator:
    """Compiles, installs and tests generated projects in isolated workspaces"""

    def __init__(self, config: Config):
        self.config = config
        self.validation_config = config.validation
        self.analyzer = QualityAnalyzer(config.validation.insecure_dependencies)

    def profile_for(self, language: str) -> LanguageProfile:
        return get_profile(language, self.validation_config.command_overrides)

    @asynccontextmanager
    async def workspace(self, root: Optional[str] = None) -> AsyncIterator[Path]:
        """Uniquely named directory, removed on exit whether or not validation succeeded"""
        root = root or self.config.data.workspace_root
        if root:
            Path(root).mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=root))
        logger.debug(f"📁 Created workspace {path}")
        try:
            yield path
        finally:
            shutil.rmtree(path, ignore_errors=True)
            logger.debug(f"🧹 Removed workspace {path}")

    def materialize(self, artifact_set: ArtifactSet, workspace: Path):
        """Write every file under ``workspace``, refusing paths that would escape it"""
        root = Path(workspace).resolve()
        for relative, content in artifact_set.files.items():
            target = self._resolve_inside(root, relative)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        logger.debug(f"📝 Materialized {artifact_set.file_count} files in {root}")

    @staticmethod
    def _resolve_inside(root: Path, relative: str) -> Path:
        normalized = relative.replace("\\", "/")
        if not normalized or normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
            raise UnsafePathError(relative, "absolute path")
        if ".." in normalized.split("/"):
            raise UnsafePathError(relative, "parent directory reference")
        target = (root / normalized).resolve()
        if target != root and root not in target.parents:
            raise UnsafePathError(relative, "resolves outside the workspace")
        return target

    async def compile(self, workspace: Path, artifact_set: ArtifactSet) -> CompilationResult:
        profile = self.profile_for(artifact_set.language)
        profile.prepare_compile(workspace, artifact_set)
        timeout = self.validation_config.compile_timeout
        result = await run_command(profile.command("compile", workspace, artifact_set), str(workspace),
                                   timeout, env=profile.environment(workspace))

        if result.timed_out:
            errors, warnings = [self._timeout_message(timeout)], []
        elif result.spawn_error:
            errors, warnings = [result.spawn_error], []
        else:
            errors, warnings = profile.compiler_parser.parse(result.output, result.returncode)

        compilation = CompilationResult(
            errors=tuple(errors),
            warnings=tuple(warnings),
            compilation_duration_ms=result.duration_ms,
        )
        if compilation.succeeded:
            logger.info(f"✅ Compilation succeeded ({len(warnings)} warnings, {result.duration_ms:.0f}ms)")
        else:
            logger.error(f"❌ Compilation failed with {len(errors)} error(s): {errors[0]}")
        return compilation

    @staticmethod
    def _timeout_message(timeout: float) -> str:
        seconds = int(timeout) if float(timeout).is_integer() else timeout
        return f"Compilation timed out after {seconds}s"

    async def install_dependencies(self, workspace: Path, artifact_set: ArtifactSet) -> InstallResult:
        profile = self.profile_for(artifact_set.language)
        if not profile.needs_install(artifact_set):
            logger.info("📦 No dependencies declared, skipping install")
            return InstallResult(succeeded=True, skipped=True)

        profile.prepare_install(workspace, artifact_set)
        timeout = self.validation_config.install_timeout
        result = await run_command(profile.command("install", workspace, artifact_set), str(workspace),
                                   timeout, env=profile.environment(workspace))
        output = self._truncate(result.output)
        if result.succeeded:
            logger.info(f"📦 Installed {len(artifact_set.dependencies)} dependencies ({result.duration_ms:.0f}ms)")
            return InstallResult(succeeded=True, output=output, duration_ms=result.duration_ms)

        error = self._command_error("Dependency installation", result, timeout)
        logger.error(f"❌ {error}")
        return InstallResult(succeeded=False, output=output, duration_ms=result.duration_ms, error=error)

    async def run_tests(self, workspace: Path, artifact_set: ArtifactSet) -> TestExecutionResult:
        profile = self.profile_for(artifact_set.language)
        profile.prepare_tests(workspace, artifact_set)
        timeout = self.validation_config.test_timeout
        result = await run_command(profile.command("test", workspace, artifact_set), str(workspace),
                                   timeout, env=profile.environment(workspace))

        if result.spawn_error:
            logger.error(f"❌ Test runner could not be started: {result.spawn_error}")
            return TestExecutionResult(executed=False, duration_ms=result.duration_ms,
                                       raw_output=result.spawn_error)

        raw_output = result.output
        if result.timed_out:
            raw_output = self._command_error("Test execution", result, timeout)

        counts = profile.test_parser.parse(raw_output)
        tests = TestExecutionResult(
            executed=True,
            total_tests=counts.total,
            passed_tests=counts.passed,
            failed_tests=counts.failed,
            coverage_percent=counts.coverage_percent,
            duration_ms=result.duration_ms,
            raw_output=self._truncate(raw_output),
            timed_out=result.timed_out,
        )
        if tests.all_passed:
            logger.info(f"🧪 {tests.passed_tests}/{tests.total_tests} tests passed, "
                        f"coverage {tests.coverage_percent:.1f}%")
        else:
            logger.warning(f"⚠️ Tests: {tests.passed_tests}/{tests.total_tests} passed, "
                           f"{tests.failed_tests} failed (exit status {result.returncode})")
        return tests

    def analyze_quality(self, workspace: Optional[Path], artifact_set: ArtifactSet) -> QualityMetrics:
        profile = self.profile_for(artifact_set.language)
        return self.analyzer.analyze_quality(artifact_set, profile.source_extensions)

    def analyze_security(self, artifact_set: ArtifactSet) -> SecurityValidation:
        return self.analyzer.analyze_security(artifact_set)

    async def validate(self, artifact_set: ArtifactSet) -> ValidationReport:
        """Full validation inside one scoped workspace; toolchain failures never raise"""
        start = time.perf_counter()
        profile = self.profile_for(artifact_set.language)
        error_details = []
        not_run = TestExecutionResult(executed=False)

        async with self.workspace() as workspace:
            self.materialize(artifact_set, workspace)

            install: Optional[InstallResult] = None
            if profile.install_before_compile:
                install = await self.install_dependencies(workspace, artifact_set)
                if not install.succeeded:
                    error_details.append(install.error or "Dependency installation failed")

            if install is not None and not install.succeeded:
                compilation = CompilationResult(errors=("Compilation skipped: dependencies not installed",))
            else:
                compilation = await self.compile(workspace, artifact_set)
                if not compilation.succeeded:
                    error_details.extend(f"Compilation: {e}" for e in compilation.errors[:10])

            if install is None:
                if compilation.succeeded:
                    install = await self.install_dependencies(workspace, artifact_set)
                    if not install.succeeded:
                        error_details.append(install.error or "Dependency installation failed")
                else:
                    install = InstallResult(succeeded=False, skipped=True, error="Skipped after compilation failure")

            if compilation.succeeded and install.succeeded:
                tests = await self.run_tests(workspace, artifact_set)
                if tests.timed_out:
                    error_details.append(tests.raw_output)
                elif not tests.executed:
                    error_details.append(f"Tests could not be executed: {tests.raw_output}")
                elif not tests.all_passed:
                    error_details.append(f"Tests: {tests.failed_tests} of {tests.total_tests} failed")
            else:
                tests = not_run

            quality = self.analyze_quality(workspace, artifact_set)
            security = self.analyze_security(artifact_set)
            workspace_path = str(workspace)

        report = ValidationReport(
            workspace=workspace_path,
            compilation=compilation,
            install=install,
            tests=tests,
            quality=quality,
            security=security,
            error_details=tuple(error_details),
        )
        status = "✅ passed" if report.success else "❌ failed"
        logger.info(f"🔍 Validation {status} in {(time.perf_counter() - start) * 1000:.0f}ms")
        return report

    def _command_error(self, stage: str, result: CommandResult, timeout: float) -> str:
        if result.timed_out:
            return f"{stage} timed out after {timeout}s"
        if result.spawn_error:
            return f"{stage} could not start: {result.spawn_error}"
        tail = result.output.strip().splitlines()[-1:] or [""]
        return f"{stage} failed with exit status {result.returncode}: {tail[0]}".rstrip(": ")

    def _truncate(self, text: str) -> str:
        limit = self.validation_config.max_output_chars
        if len(text) <= limit:
            return text
        return text[-limit:]
