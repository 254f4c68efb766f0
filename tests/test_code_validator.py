"""Tests for workspace handling and real toolchain execution (Python profile)"""

import asyncio
import sys
from pathlib import Path

import pytest

from genbench.core.artifacts import ArtifactSet
from genbench.core.errors import UnsafePathError
from genbench.core.task import CodeGenerationRequest, ComplexityTier
from genbench.generation.templates import fallback_artifact_set
from genbench.validation.code_validator import CodeValidator
from genbench.validation.toolchain import PythonProfile, TypeScriptProfile, get_profile, run_command


@pytest.fixture
def validator(config):
    return CodeValidator(config)


@pytest.fixture
def calc_set(calc_files):
    return ArtifactSet.build(calc_files, "python")


class TestWorkspace:

    async def test_workspace_created_and_removed(self, validator, config):
        async with validator.workspace() as workspace:
            assert workspace.is_dir()
            assert workspace.name.startswith("genbench-")
            assert Path(config.data.workspace_root) in workspace.parents
            (workspace / "scratch.txt").write_text("x")
        assert not workspace.exists()

    async def test_workspace_removed_on_error(self, validator):
        with pytest.raises(RuntimeError):
            async with validator.workspace() as workspace:
                raise RuntimeError("boom")
        assert not workspace.exists()

    async def test_workspaces_are_unique(self, validator):
        async with validator.workspace() as first, validator.workspace() as second:
            assert first != second

    async def test_materialize(self, validator, calc_set):
        async with validator.workspace() as workspace:
            validator.materialize(calc_set, workspace)
            assert (workspace / "src" / "calc" / "main.py").read_text() == calc_set.files["src/calc/main.py"]
            assert (workspace / "requirements.txt").exists()

    @pytest.mark.parametrize("path", ["../evil.py", "src/../../evil.py", "/tmp/evil.py", "C:/evil.py"])
    async def test_path_traversal_rejected(self, validator, calc_files, tmp_path, path):
        files = dict(calc_files)
        files[path] = "print('escaped')"
        artifact_set = ArtifactSet.build(files, "python")
        async with validator.workspace() as workspace:
            with pytest.raises(UnsafePathError) as exc_info:
                validator.materialize(artifact_set, workspace)
        assert exc_info.value.path == path
        assert not (tmp_path / "evil.py").exists()


class TestCompilation:

    async def test_compile_success(self, validator, calc_set):
        async with validator.workspace() as workspace:
            validator.materialize(calc_set, workspace)
            result = await validator.compile(workspace, calc_set)
        assert result.succeeded
        assert result.errors == ()
        assert result.compilation_duration_ms > 0

    async def test_compile_failure_reports_errors(self, validator, calc_files):
        files = dict(calc_files)
        files["src/calc/broken.py"] = "def broken(:\n    return 1\n"
        artifact_set = ArtifactSet.build(files, "python")
        async with validator.workspace() as workspace:
            validator.materialize(artifact_set, workspace)
            result = await validator.compile(workspace, artifact_set)
        assert not result.succeeded
        assert any("broken.py" in error or "SyntaxError" in error for error in result.errors)

    async def test_compile_timeout(self, config, calc_set):
        config.validation.compile_timeout = 0.5
        config.validation.command_overrides = {
            "python": {"compile": ["{python}", "-c", "import time; time.sleep(5)"]},
        }
        validator = CodeValidator(config)

        report = await validator.validate(calc_set)

        assert report.compilation.errors == ("Compilation timed out after 0.5s",)
        assert not report.compilation.succeeded
        assert not report.tests.executed
        assert not report.success
        assert not Path(report.workspace).exists()
        assert list(Path(config.data.workspace_root).iterdir()) == []

    async def test_whole_second_timeout_message(self, config, calc_set):
        config.validation.compile_timeout = 1
        config.validation.command_overrides = {
            "python": {"compile": ["{python}", "-c", "import time; time.sleep(5)"]},
        }
        validator = CodeValidator(config)
        async with validator.workspace() as workspace:
            result = await validator.compile(workspace, calc_set)
        assert result.errors == ("Compilation timed out after 1s",)

    async def test_missing_compiler_reported(self, config, calc_set):
        config.validation.command_overrides = {"python": {"compile": ["genbench-no-such-compiler"]}}
        validator = CodeValidator(config)
        async with validator.workspace() as workspace:
            result = await validator.compile(workspace, calc_set)
        assert not result.succeeded
        assert len(result.errors) == 1


class TestInstallAndTests:

    async def test_install_skipped_without_dependencies(self, validator, calc_set):
        async with validator.workspace() as workspace:
            result = await validator.install_dependencies(workspace, calc_set)
        assert result.succeeded
        assert result.skipped

    async def test_install_failure(self, config, calc_files):
        files = dict(calc_files)
        files["requirements.txt"] = "left-pad==1.0\n"
        artifact_set = ArtifactSet.build(files, "python")
        config.validation.command_overrides = {
            "python": {"install": ["{python}", "-c", "import sys; print('no index'); sys.exit(3)"]},
        }
        validator = CodeValidator(config)
        async with validator.workspace() as workspace:
            result = await validator.install_dependencies(workspace, artifact_set)
        assert not result.succeeded
        assert not result.skipped
        assert result.error == "Dependency installation failed with exit status 3: no index"

    async def test_install_timeout(self, config, calc_files):
        files = dict(calc_files)
        files["requirements.txt"] = "left-pad==1.0\n"
        artifact_set = ArtifactSet.build(files, "python")
        config.validation.install_timeout = 0.5
        config.validation.command_overrides = {
            "python": {"install": ["{python}", "-c", "import time; time.sleep(5)"]},
        }
        validator = CodeValidator(config)
        async with validator.workspace() as workspace:
            result = await validator.install_dependencies(workspace, artifact_set)
        assert not result.succeeded
        assert not result.skipped
        assert result.error == "Dependency installation timed out after 0.5s"

    async def test_test_timeout(self, config, calc_set):
        config.validation.test_timeout = 0.5
        config.validation.command_overrides = {
            "python": {"test": ["{python}", "-c", "import time; time.sleep(5)"]},
        }
        validator = CodeValidator(config)
        async with validator.workspace() as workspace:
            validator.materialize(calc_set, workspace)
            result = await validator.run_tests(workspace, calc_set)
        assert result.executed
        assert result.timed_out
        assert not result.all_passed
        assert result.raw_output == "Test execution timed out after 0.5s"

    async def test_test_timeout_reported_by_validate(self, config, calc_set):
        config.validation.test_timeout = 0.5
        config.validation.command_overrides = {
            "python": {"test": ["{python}", "-c", "import time; time.sleep(5)"]},
        }
        report = await CodeValidator(config).validate(calc_set)

        assert report.compilation.succeeded
        assert report.tests.executed
        assert not report.success
        assert report.error_details == ("Test execution timed out after 0.5s",)
        assert list(Path(config.data.workspace_root).iterdir()) == []

    async def test_run_generated_tests(self, validator, calc_set):
        async with validator.workspace() as workspace:
            validator.materialize(calc_set, workspace)
            result = await validator.run_tests(workspace, calc_set)
        assert result.executed
        assert result.total_tests == 4
        assert result.passed_tests == 4
        assert result.failed_tests == 0
        assert result.all_passed
        assert result.coverage_percent > 0

    async def test_failing_generated_test(self, validator, calc_files):
        files = dict(calc_files)
        files["tests/test_extra.py"] = "def test_wrong():\n    assert 1 + 1 == 3\n"
        artifact_set = ArtifactSet.build(files, "python")
        async with validator.workspace() as workspace:
            validator.materialize(artifact_set, workspace)
            result = await validator.run_tests(workspace, artifact_set)
        assert result.executed
        assert result.failed_tests == 1
        assert result.passed_tests == 4
        assert not result.all_passed

    async def test_missing_test_runner(self, config, calc_set):
        config.validation.command_overrides = {"python": {"test": ["genbench-no-such-runner"]}}
        validator = CodeValidator(config)
        async with validator.workspace() as workspace:
            result = await validator.run_tests(workspace, calc_set)
        assert not result.executed
        assert not result.all_passed


class TestFullValidation:

    async def test_valid_project(self, validator, calc_set, config):
        report = await validator.validate(calc_set)

        assert report.success
        assert report.compilation.succeeded
        assert report.install.skipped
        assert report.tests.passed_tests == 4
        assert report.error_details == ()
        assert report.quality.testability == 85
        assert report.security.score > 0
        assert not Path(report.workspace).exists()

    async def test_fallback_project_compiles_and_passes(self, validator):
        request = CodeGenerationRequest(description="Track chores", project_type="cli",
                                        complexity_tier=ComplexityTier.ADVANCED)
        artifact_set = fallback_artifact_set(request, "Chore Tracker", "service")

        report = await validator.validate(artifact_set)

        assert report.compilation.succeeded
        assert report.tests.executed
        assert report.tests.failed_tests == 0
        assert report.success

    async def test_compile_failure_skips_tests(self, validator, calc_files):
        files = dict(calc_files)
        files["src/calc/main.py"] = "def main(:\n"
        report = await validator.validate(ArtifactSet.build(files, "python"))

        assert not report.success
        assert not report.compilation.succeeded
        assert not report.tests.executed
        assert report.install.skipped
        assert report.error_details[0].startswith("Compilation: ")


class TestToolchain:

    async def test_run_command_captures_output(self, tmp_path):
        result = await run_command([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"],
                                   str(tmp_path), timeout=30)
        assert result.succeeded
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert result.output == "out\n\nerr\n"

    async def test_run_command_spawn_error(self, tmp_path):
        result = await run_command(["genbench-definitely-missing"], str(tmp_path), timeout=5)
        assert not result.succeeded
        assert result.spawn_error

    async def test_timeout_kills_forked_workers(self, tmp_path):
        worker = "import time; time.sleep(2); open('late.txt', 'w').write('still running')"
        parent = (f"import subprocess, sys, time; subprocess.Popen([sys.executable, '-c', {worker!r}]); "
                  f"time.sleep(30)")

        result = await run_command([sys.executable, "-c", parent], str(tmp_path), timeout=1)

        assert result.timed_out
        await asyncio.sleep(3)
        assert not (tmp_path / "late.txt").exists()

    def test_profiles(self):
        assert isinstance(get_profile("python"), PythonProfile)
        assert isinstance(get_profile("typescript"), TypeScriptProfile)
        assert get_profile("typescript").install_before_compile
        with pytest.raises(ValueError):
            get_profile("cobol")

    def test_override_placeholders(self, calc_set, tmp_path):
        profile = get_profile("python", {"python": {"install": ["{python}", "-m", "pip", "-r", "{manifest}"]}})
        assert profile.command("install", tmp_path, calc_set) == [sys.executable, "-m", "pip", "-r",
                                                                  "requirements.txt"]
        # Stages without an override keep the default command
        assert profile.command("compile", tmp_path, calc_set)[1:3] == ["-m", "compileall"]

    def test_typescript_install_adds_dev_dependencies(self, tmp_path):
        request = CodeGenerationRequest(description="x", project_type="api",
                                        complexity_tier=ComplexityTier.SIMPLE, language="typescript")
        artifact_set = fallback_artifact_set(request, "Demo")
        (tmp_path / "package.json").write_text('{"name": "demo", "dependencies": {"zod": "^3.0.0"}}')

        get_profile("typescript").prepare_install(tmp_path, artifact_set)

        manifest = (tmp_path / "package.json").read_text()
        assert '"zod"' in manifest
        assert '"ts-jest"' in manifest
