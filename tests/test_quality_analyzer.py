"""Tests for the static quality and security heuristics"""

import pytest

from genbench.analysis.quality_analyzer import QualityAnalyzer, QualityMetrics, SecurityValidation
from genbench.core.artifacts import ArtifactSet
from genbench.validation.toolchain import PythonProfile, TypeScriptProfile

DOCUMENTED = '''import sys


def parse(value):
    """Parse an integer."""
    if not isinstance(value, str):
        raise ValueError("expected text")
    return int(value)


def main():
    """Entry point."""
    print(parse(sys.argv[1]))
'''

UNDOCUMENTED = '''def pairs(items):
    result = []
    for a in items:
        for b in items:
            if a != b:
                result.append((a, b))
    return result


def main():
    return pairs([1, 2])
'''


def python_set(files, **kwargs):
    files = dict(files)
    files.setdefault("requirements.txt", "")
    return ArtifactSet.build(files, "python", **kwargs)


def analyze_python(analyzer, artifact_set):
    return analyzer.analyze_quality(artifact_set, PythonProfile.source_extensions)


class TestQualityMetrics:

    def test_documented_project_with_tests(self):
        artifact_set = python_set({
            "main.py": DOCUMENTED,
            "tests/test_main.py": "from main import parse\n\n\ndef test_parse():\n    assert parse('2') == 2\n",
        })
        metrics = analyze_python(QualityAnalyzer(), artifact_set)

        assert metrics.testability == 85
        assert metrics.performance == 80
        # parse and main documented, test_parse not
        assert metrics.documentation == 67
        assert 0 <= metrics.maintainability <= 100

    def test_nested_loops_and_missing_tests(self):
        metrics = analyze_python(QualityAnalyzer(), python_set({"main.py": UNDOCUMENTED}))

        assert metrics.testability == 40
        assert metrics.performance == 70
        assert metrics.documentation == 0
        assert metrics.complexity >= 1

    def test_nested_loops_in_tests_are_ignored(self):
        test_source = "def test_grid():\n    for a in range(2):\n        for b in range(2):\n            assert a + b >= 0\n"
        artifact_set = python_set({"main.py": DOCUMENTED, "tests/test_grid.py": test_source})
        assert analyze_python(QualityAnalyzer(), artifact_set).performance == 80

    def test_no_functions(self):
        metrics = analyze_python(QualityAnalyzer(), python_set({"main.py": "VALUE = 1\n"}))
        assert metrics.complexity == 1
        assert metrics.documentation == 0

    def test_typescript_jsdoc_counts_as_documentation(self):
        source = ("/**\n * Adds numbers.\n */\nexport function add(a: number, b: number): number {\n"
                  "  return a + b;\n}\n\nexport function sub(a: number, b: number): number {\n  return a - b;\n}\n")
        artifact_set = ArtifactSet.build({"src/index.ts": source, "package.json": "{}"}, "typescript")
        metrics = QualityAnalyzer().analyze_quality(artifact_set, TypeScriptProfile.source_extensions)
        assert metrics.documentation == 50
        assert metrics.complexity == 1

    def test_complexity_is_average_cyclomatic_complexity(self):
        # pairs: for, for, if -> 4; main -> 1
        metrics = analyze_python(QualityAnalyzer(), python_set({"main.py": UNDOCUMENTED}))
        assert metrics.complexity == round((4 + 1) / 2)

    def test_complexity_is_capped(self):
        branches = "".join(f"    if value == {i}:\n        return {i}\n" for i in range(150))
        source = f"def lookup(value):\n{branches}    return -1\n"
        metrics = analyze_python(QualityAnalyzer(), python_set({"main.py": source}))
        assert metrics.complexity == 100
        assert metrics.maintainability == 0
        for score in metrics.to_dict().values():
            assert 0 <= score <= 100

    def test_overall_is_mean_of_scored_dimensions(self):
        metrics = QualityMetrics(complexity=3, maintainability=90, testability=85, documentation=60, performance=80)
        assert metrics.overall == 78.8
        assert metrics.to_dict()["overall"] == 78.8


class TestSecurityScan:

    def test_clean_project(self):
        security = QualityAnalyzer().analyze_security(python_set({"main.py": DOCUMENTED}))
        assert security.no_hardcoded_secrets
        assert security.input_validation_present
        assert security.secure_error_handling
        assert security.dependencies_secure
        assert security.score == 100

    def test_hardcoded_secret(self):
        source = DOCUMENTED + '\nAPI_KEY = "sk-' + "a" * 32 + '"\n'
        security = QualityAnalyzer().analyze_security(python_set({"main.py": source}))
        assert not security.no_hardcoded_secrets
        assert security.score == 75
        finding = security.vulnerabilities[0]
        assert finding["type"] == "hardcoded_secret"
        assert finding["file"] == "main.py"
        assert finding["line"] == 15

    def test_dangerous_calls_and_error_handling(self):
        source = ("import subprocess\n\n\ndef run(cmd):\n    try:\n        return eval(cmd)\n"
                  "    except:\n        pass\n")
        security = QualityAnalyzer().analyze_security(python_set({"main.py": source}))
        kinds = sorted(v["type"] for v in security.vulnerabilities)
        assert "security_pattern" in kinds
        assert "error_handling" in kinds
        assert not security.secure_error_handling
        assert not security.input_validation_present
        # -10 validation, -15 error handling, -15 eval
        assert security.score == 60

    def test_test_files_not_scanned_for_vulnerabilities(self):
        artifact_set = python_set({
            "main.py": DOCUMENTED,
            "tests/test_main.py": "def test_eval():\n    assert eval('1 + 1') == 2\n",
        })
        assert QualityAnalyzer().analyze_security(artifact_set).score == 100

    def test_insecure_dependencies(self):
        analyzer = QualityAnalyzer(["request", "pyyaml<5.4"])
        artifact_set = python_set({
            "main.py": DOCUMENTED,
            "requirements.txt": "pyyaml==5.1\nrequests==2.31.0\n",
        })
        security = analyzer.analyze_security(artifact_set)
        assert not security.dependencies_secure
        assert [v["description"] for v in security.vulnerabilities] == ["Insecure dependency: pyyaml"]
        assert security.score == 80

    @pytest.mark.parametrize("spec, insecure", [("==5.4.1", False), (">=6.0", False), ("", False), ("<5", True)])
    def test_version_bounds(self, spec, insecure):
        analyzer = QualityAnalyzer(["pyyaml<5.4"])
        artifact_set = python_set({"main.py": DOCUMENTED, "requirements.txt": f"PyYAML{spec}\n"})
        assert analyzer.analyze_security(artifact_set).dependencies_secure is not insecure

    def test_score_floor(self):
        findings = tuple({"type": "security_pattern", "severity": "high"} for _ in range(10))
        security = SecurityValidation(False, False, False, False, findings)
        assert security.score == 0
