"""
Language profiles and subprocess execution for GenBench validation

A profile bundles everything the validator needs to know about one target
language: which commands compile, install and test a project, which config
files those commands expect, how diagnostics are marked and which parser
reads the test runner's report.
"""

import asyncio
import importlib.util
import json
import logging
import os
import shutil
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..core.artifacts import ArtifactSet
from ..generation.templates import TS_DEV_DEPENDENCIES
from .output_parsers import CompilerOutputParser, JestReportParser, PytestReportParser, TestReportParser

logger = logging.getLogger(__name__)

STAGES = ("compile", "install", "test")


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one subprocess run"""
    returncode: Optional[int]
    stdout: str
    stderr: str
    duration_ms: float
    timed_out: bool = False
    spawn_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.spawn_error is None

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


async def run_command(cmd: List[str], cwd: str, timeout: float,
                      env: Optional[Dict[str, str]] = None) -> CommandResult:
    """Run ``cmd`` in ``cwd`` in its own session; on timeout the whole process group is killed"""
    start = time.perf_counter()
    logger.debug(f"🔧 Running {' '.join(cmd)} in {cwd} (timeout {timeout}s)")
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            start_new_session=True,
        )
    except OSError as e:
        return CommandResult(
            returncode=None, stdout="", stderr="",
            duration_ms=(time.perf_counter() - start) * 1000,
            spawn_error=str(e),
        )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        # Test runners fork workers; kill the whole group, not just the direct child
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"Process group {process.pid} already exited")
        await process.wait()
        logger.warning(f"⏰ Command timed out after {timeout}s: {' '.join(cmd)}")
        return CommandResult(
            returncode=process.returncode, stdout="", stderr="",
            duration_ms=(time.perf_counter() - start) * 1000,
            timed_out=True,
        )

    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        duration_ms=(time.perf_counter() - start) * 1000,
    )


class LanguageProfile:
    """Toolchain description for one target language"""

    name = ""
    source_extensions: Tuple[str, ...] = ()
    executables: Tuple[str, ...] = ()
    compiler_parser: CompilerOutputParser = CompilerOutputParser()
    test_parser: TestReportParser = TestReportParser()
    # TypeScript needs its compiler installed before it can type-check
    install_before_compile = False

    def __init__(self, overrides: Optional[Dict[str, List[str]]] = None):
        self.overrides = dict(overrides or {})

    def command(self, stage: str, workspace: Path, artifact_set: ArtifactSet) -> List[str]:
        """Command for ``stage``, honoring configured overrides"""
        if stage not in STAGES:
            raise ValueError(f"Unknown toolchain stage: {stage}")
        override = self.overrides.get(stage)
        if override:
            values = {"python": sys.executable, "manifest": artifact_set.manifest_file}
            return [str(part).format(**values) for part in override]
        return getattr(self, f"_{stage}_command")(workspace, artifact_set)

    @classmethod
    def locate_toolchain(cls) -> Dict[str, Optional[str]]:
        """Path of every tool the default commands need, ``None`` when missing"""
        return {exe: shutil.which(exe) for exe in cls.executables}

    def needs_install(self, artifact_set: ArtifactSet) -> bool:
        return bool(artifact_set.dependencies)

    def prepare_compile(self, workspace: Path, artifact_set: ArtifactSet):
        """Write compiler configuration the project does not ship"""

    def prepare_install(self, workspace: Path, artifact_set: ArtifactSet):
        """Adjust the manifest before installing"""

    def prepare_tests(self, workspace: Path, artifact_set: ArtifactSet):
        """Write test runner configuration the project does not ship"""

    def environment(self, workspace: Path) -> Dict[str, str]:
        return dict(os.environ)

    def _compile_command(self, workspace: Path, artifact_set: ArtifactSet) -> List[str]:
        raise NotImplementedError

    def _install_command(self, workspace: Path, artifact_set: ArtifactSet) -> List[str]:
        raise NotImplementedError

    def _test_command(self, workspace: Path, artifact_set: ArtifactSet) -> List[str]:
        raise NotImplementedError


class PythonProfile(LanguageProfile):
    name = "python"
    source_extensions = (".py",)
    compiler_parser = CompilerOutputParser(
        error_pattern=r'(\*\*\* Error compiling|^\s*\w*Error:)',
        warning_pattern=r'[Ww]arning',
    )
    test_parser = PytestReportParser()

    PACKAGES_DIR = ".packages"

    # Run as ``python -m <module>`` with the interpreter running GenBench
    modules = ("pip", "pytest", "pytest_cov")

    @classmethod
    def locate_toolchain(cls):
        tools = {"python": sys.executable or None}
        for module in cls.modules:
            spec = importlib.util.find_spec(module)
            tools[module] = spec.origin if spec else None
        return tools

    def _compile_command(self, workspace, artifact_set):
        return [sys.executable, "-m", "compileall", "-q", "."]

    def _install_command(self, workspace, artifact_set):
        return [sys.executable, "-m", "pip", "install", "--quiet", "--disable-pip-version-check",
                "--no-input", "--target", self.PACKAGES_DIR, "-r", artifact_set.manifest_file]

    def _test_command(self, workspace, artifact_set):
        cov_target = "src" if (workspace / "src").is_dir() else "."
        return [sys.executable, "-m", "pytest", "-q", f"--cov={cov_target}", "--cov-report=term"]

    def prepare_tests(self, workspace, artifact_set):
        if any((workspace / name).exists() for name in ("pytest.ini", "pyproject.toml", "setup.cfg", "tox.ini")):
            return
        lines = [
            "[pytest]",
            f"pythonpath = src . {self.PACKAGES_DIR}",
            "addopts = -p no:cacheprovider",
        ]
        if (workspace / "tests").is_dir():
            lines.append("testpaths = tests")
        (workspace / "pytest.ini").write_text("\n".join(lines) + "\n", encoding="utf-8")

    def environment(self, workspace):
        env = dict(os.environ)
        env["PYTHONDONTWRITEBYTECODE"] = "1"
        env["PIP_DISABLE_PIP_VERSION_CHECK"] = "1"
        return env


TSCONFIG = {
    "compilerOptions": {
        "target": "ES2020",
        "module": "commonjs",
        "lib": ["ES2020"],
        "strict": True,
        "esModuleInterop": True,
        "skipLibCheck": True,
        "forceConsistentCasingInFileNames": True,
        "rootDir": "./src",
        "outDir": "./dist",
    },
    "include": ["src/**/*"],
    "exclude": ["node_modules", "dist", "tests"],
}

JEST_CONFIG = """module.exports = {
  testEnvironment: 'node',
  testMatch: ['**/?(*.)+(spec|test).[jt]s'],
  testPathIgnorePatterns: ['/node_modules/', '/dist/'],
  transform: {
    '^.+\\\\.tsx?$': ['ts-jest', { tsconfig: { esModuleInterop: true, strict: true } }],
  },
  collectCoverageFrom: ['src/**/*.ts'],
};
"""


class TypeScriptProfile(LanguageProfile):
    name = "typescript"
    source_extensions = (".ts", ".js")
    executables = ("node", "npm", "npx")
    compiler_parser = CompilerOutputParser(error_pattern=r'error TS\d+', warning_pattern=r'[Ww]arning')
    test_parser = JestReportParser()
    install_before_compile = True

    def _compile_command(self, workspace, artifact_set):
        return ["npx", "--no", "tsc", "--noEmit", "-p", "tsconfig.json"]

    def _install_command(self, workspace, artifact_set):
        return ["npm", "install", "--silent", "--no-audit", "--no-fund"]

    def _test_command(self, workspace, artifact_set):
        return ["npx", "--no", "jest", "--coverage", "--ci"]

    def needs_install(self, artifact_set):
        return True

    def prepare_compile(self, workspace, artifact_set):
        tsconfig = workspace / "tsconfig.json"
        if not tsconfig.exists():
            tsconfig.write_text(json.dumps(TSCONFIG, indent=2) + "\n", encoding="utf-8")

    def prepare_install(self, workspace, artifact_set):
        """Ensure the compiler and test runner are declared dev dependencies"""
        manifest = workspace / "package.json"
        try:
            data = json.loads(manifest.read_text(encoding="utf-8")) if manifest.exists() else {}
        except ValueError:
            logger.warning("⚠️ package.json is not valid JSON; rewriting with test tooling only")
            data = {}
        if not isinstance(data, dict):
            data = {}
        data.setdefault("name", "generated-project")
        data.setdefault("version", "1.0.0")
        dev = data.get("devDependencies") if isinstance(data.get("devDependencies"), dict) else {}
        for package, version in TS_DEV_DEPENDENCIES.items():
            dev.setdefault(package, version)
        data["devDependencies"] = dev
        manifest.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    def prepare_tests(self, workspace, artifact_set):
        if any((workspace / name).exists() for name in ("jest.config.js", "jest.config.ts", "jest.config.json")):
            return
        (workspace / "jest.config.js").write_text(JEST_CONFIG, encoding="utf-8")

    def environment(self, workspace):
        env = dict(os.environ)
        env["CI"] = "true"
        env["npm_config_yes"] = "false"
        return env


PROFILE_CLASSES = {
    "python": PythonProfile,
    "typescript": TypeScriptProfile,
}

LANGUAGE_PROFILES: Dict[str, LanguageProfile] = {name: cls() for name, cls in PROFILE_CLASSES.items()}


def get_profile(language: str, overrides: Optional[Dict[str, Dict[str, List[str]]]] = None) -> LanguageProfile:
    """Profile for ``language`` with per-stage command overrides applied"""
    try:
        profile_cls = PROFILE_CLASSES[language]
    except KeyError:
        raise ValueError(f"Unsupported language: {language}") from None
    language_overrides = (overrides or {}).get(language)
    if not language_overrides:
        return LANGUAGE_PROFILES[language]
    return profile_cls(language_overrides)
