"""
Parsers for free-form toolchain output

Parsing is tolerant: anything that cannot be read defaults to zero rather
than raising, since the raw output is kept alongside the parsed numbers.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class TestCounts:
    """Counts and coverage read from a test runner report"""
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    coverage_percent: float = 0.0

    def normalized(self) -> 'TestCounts':
        """Clamp so that ``passed + failed <= total`` always holds"""
        passed = max(0, self.passed)
        failed = max(0, self.failed)
        total = max(self.total, passed + failed)
        coverage = min(100.0, max(0.0, self.coverage_percent))
        return TestCounts(total=total, passed=passed, failed=failed, coverage_percent=coverage)


class CompilerOutputParser:
    """Classifies compiler output lines into errors and warnings"""

    def __init__(self, error_pattern: str = r'\b[Ee]rror\b', warning_pattern: str = r'\b[Ww]arning\b'):
        self.error_re = re.compile(error_pattern)
        self.warning_re = re.compile(warning_pattern)

    def parse(self, output: str, returncode: Optional[int]) -> Tuple[List[str], List[str]]:
        errors: List[str] = []
        warnings: List[str] = []
        for line in output.splitlines():
            stripped = line.rstrip()
            if not stripped.strip():
                continue
            if self.error_re.search(stripped):
                errors.append(stripped.strip())
            elif self.warning_re.search(stripped):
                warnings.append(stripped.strip())

        if returncode not in (0, None) and not errors:
            tail = next((line.strip() for line in reversed(output.splitlines()) if line.strip()), "")
            detail = f": {tail}" if tail else ""
            errors.append(f"Compiler exited with status {returncode}{detail}")
        return errors, warnings


class TestReportParser:
    """Base parser; reads nothing"""
    __test__ = False

    def parse(self, output: str) -> TestCounts:
        return TestCounts()

    @staticmethod
    def _count(pattern: str, text: str) -> int:
        matches = re.findall(pattern, text)
        if not matches:
            return 0
        try:
            return int(matches[-1])
        except ValueError:
            return 0


class PytestReportParser(TestReportParser):
    """Reads pytest's final summary line and pytest-cov's TOTAL row"""

    _summary_re = re.compile(r'^=*\s*(?:\d+ \w+(?:, )?)+.*\bin [\d.]+s', re.MULTILINE)
    _coverage_re = re.compile(r'^TOTAL\s+.*?(\d+(?:\.\d+)?)%\s*$', re.MULTILINE)

    def parse(self, output: str) -> TestCounts:
        summary_lines = self._summary_re.findall(output)
        summary = summary_lines[-1] if summary_lines else output

        passed = self._count(r'(\d+) passed', summary)
        failed = self._count(r'(\d+) failed', summary) + self._count(r'(\d+) errors?\b', summary)
        skipped = self._count(r'(\d+) skipped', summary)

        coverage = 0.0
        coverage_match = self._coverage_re.findall(output)
        if coverage_match:
            coverage = float(coverage_match[-1])

        return TestCounts(
            total=passed + failed + skipped,
            passed=passed,
            failed=failed,
            coverage_percent=coverage,
        ).normalized()


class JestReportParser(TestReportParser):
    """Reads Jest's ``Tests:`` summary and the ``All files`` coverage row"""

    _tests_re = re.compile(r'^Tests:\s+(.*)$', re.MULTILINE)
    _coverage_re = re.compile(r'All files\s*\|\s*([\d.]+)')

    def parse(self, output: str) -> TestCounts:
        lines = self._tests_re.findall(output)
        summary = lines[-1] if lines else ""

        coverage = 0.0
        coverage_match = self._coverage_re.findall(output)
        if coverage_match:
            try:
                coverage = float(coverage_match[-1])
            except ValueError:
                coverage = 0.0

        return TestCounts(
            total=self._count(r'(\d+) total', summary),
            passed=self._count(r'(\d+) passed', summary),
            failed=self._count(r'(\d+) failed', summary),
            coverage_percent=coverage,
        ).normalized()
