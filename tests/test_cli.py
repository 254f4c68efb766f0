"""Tests for the genbench command line interface"""

import pytest
import yaml
from click.testing import CliRunner

from genbench.cli import main
from genbench.evaluation.reporter import MetricsRecorder

from test_config import ENV_VARS
from test_reporter import SESSION, make_metrics


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "data": {"metrics_dir": str(tmp_path / "metrics"), "log_dir": str(tmp_path / "logs")},
    }))
    return str(path)


@pytest.fixture
def metrics_dir(tmp_path):
    return tmp_path / "metrics"


def invoke(*args):
    return CliRunner().invoke(main, list(args))


class TestCli:

    def test_version_option(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_version_command(self):
        result = invoke("version")
        assert result.exit_code == 0
        assert "GenBench v0.1.0" in result.output

    def test_status_without_credentials(self, config_path):
        result = invoke("status", "-c", config_path)
        assert result.exit_code == 0
        assert "Provider: openai" in result.output
        assert "Toolchain: python" in result.output

    def test_status_with_malformed_key(self, config_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "definitely-not-an-anthropic-key")
        result = invoke("status", "-c", config_path)
        assert result.exit_code == 1
        assert "Status check failed" in result.output

    def test_run_requires_a_key(self, config_path):
        result = invoke("run", "-c", config_path)
        assert result.exit_code == 1
        assert "Configuration errors found" in result.output

    def test_summarize(self, config_path, metrics_dir):
        recorder = MetricsRecorder(metrics_dir, session=SESSION)
        recorder.record(make_metrics("a"))
        recorder.record(make_metrics("b", success=False))

        result = invoke("summarize", "-c", config_path, "--session", SESSION)

        assert result.exit_code == 0
        assert "1/2 successful" in result.output
        assert recorder.summary_file.exists()

    def test_summarize_unknown_session(self, config_path):
        result = invoke("summarize", "-c", config_path, "--session", "session_missing")
        assert result.exit_code == 1
        assert "No metrics found" in result.output

    def test_validate_passing_session(self, config_path, metrics_dir):
        recorder = MetricsRecorder(metrics_dir, session=SESSION)
        recorder.record(make_metrics("a"))

        result = invoke("validate", "-c", config_path, "--session", SESSION)

        assert result.exit_code == 0
        assert "All benchmark requirements met" in result.output

    def test_validate_failing_session(self, config_path, metrics_dir):
        recorder = MetricsRecorder(metrics_dir, session=SESSION)
        recorder.record(make_metrics("a", real=False))

        result = invoke("validate", "-c", config_path, "--session", SESSION)

        assert result.exit_code == 1
        assert "Must use real provider" in result.output

    def test_validate_from_saved_summary(self, config_path, metrics_dir):
        recorder = MetricsRecorder(metrics_dir, session=SESSION)
        recorder.record(make_metrics("a"))
        recorder.save_summary(recorder.summarize())
        recorder.scenario_file("a").unlink()

        result = invoke("validate", "-c", config_path, "--session", SESSION)

        assert result.exit_code == 0

    def test_missing_config_file(self, tmp_path):
        result = invoke("validate", "-c", str(tmp_path / "missing.yaml"), "--session", SESSION)
        assert result.exit_code == 1
        assert "Configuration file not found" in result.output
