"""
Static quality and security heuristics for generated projects

Nothing here executes generated code. Functions and their cyclomatic
complexity come from lizard, which parses both Python and TypeScript;
documentation, loop nesting and the security scan are pattern based.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import lizard

from ..core.artifacts import ArtifactSet, is_test_file

logger = logging.getLogger(__name__)

MAX_COMPLEXITY = 100
TESTABILITY_WITH_TESTS = 85
TESTABILITY_WITHOUT_TESTS = 40
PERFORMANCE_BASELINE = 80
NESTED_LOOP_PENALTY = 10

LOOP_RE = re.compile(r'^\s*(?:for|while)\b|^\s*\w[\w.]*\.forEach\(')

SECRET_PATTERNS = (
    (r'[\'"]sk-[a-zA-Z0-9-]{20,}[\'"]', "API key literal"),
    (r'[\'"]AIza[0-9A-Za-z_\-]{30,}[\'"]', "Google API key literal"),
    (r'(?i)\b(?:password|passwd|secret|api_key|apikey|access_token)\s*[:=]\s*[\'"][^\'"\s]{6,}[\'"]',
     "Hardcoded credential"),
)

VULNERABILITY_PATTERNS = (
    {'pattern': r'(?<![\w.])eval\(', 'severity': 'high', 'description': 'Code injection vulnerability'},
    {'pattern': r'(?<![\w.])exec\(', 'severity': 'high', 'description': 'Code execution vulnerability'},
    {'pattern': r'pickle\.loads?\(', 'severity': 'high', 'description': 'Unsafe deserialization'},
    {'pattern': r'shell\s*=\s*True', 'severity': 'high', 'description': 'Shell command injection'},
    {'pattern': r'child_process[\'"]?\)?\.exec\(|\bexecSync\(', 'severity': 'high',
     'description': 'Command execution vulnerability'},
    {'pattern': r'yaml\.load\((?![^)]*Loader)', 'severity': 'medium', 'description': 'Unsafe YAML loading'},
    {'pattern': r'\bnew Function\(', 'severity': 'medium', 'description': 'Dynamic code construction'},
)

INPUT_VALIDATION_PATTERNS = (
    r'raise\s+\w*(?:Validation|Value|Type)Error',
    r'throw new \w*Error',
    r'\bisinstance\(',
    r'\btypeof\s+\w+',
    r'\bvalidate\w*\(',
    r're\.(?:match|fullmatch)\(',
    r'\.test\(\w',
)

INSECURE_ERROR_PATTERNS = (
    (r'^\s*except\s*:', "Bare except clause"),
    (r'^\s*except\b[^:\n]*:\s*\n\s*pass\b', "Exception silently swallowed"),
    (r'catch\s*(?:\([^)]*\))?\s*\{\s*\}', "Empty catch block"),
    (r'\b(?:err|error|e|exc)\.stack\b', "Stack trace exposed"),
    (r'traceback\.format_exc\(\)', "Stack trace exposed"),
)

SEVERITY_PENALTIES = {'high': 15, 'medium': 10, 'low': 5}


@dataclass(frozen=True)
class QualityMetrics:
    """Heuristic quality dimensions, each 0-100"""
    complexity: int
    maintainability: float
    testability: float
    documentation: float
    performance: float

    @property
    def overall(self) -> float:
        dimensions = (self.maintainability, self.testability, self.documentation, self.performance)
        return round(sum(dimensions) / len(dimensions), 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complexity": self.complexity,
            "maintainability": self.maintainability,
            "testability": self.testability,
            "documentation": self.documentation,
            "performance": self.performance,
            "overall": self.overall,
        }


@dataclass(frozen=True)
class SecurityValidation:
    """Outcome of the static security scan"""
    no_hardcoded_secrets: bool
    input_validation_present: bool
    secure_error_handling: bool
    dependencies_secure: bool
    vulnerabilities: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def score(self) -> float:
        score = 100.0
        if not self.no_hardcoded_secrets:
            score -= 25
        if not self.input_validation_present:
            score -= 10
        if not self.secure_error_handling:
            score -= 15
        if not self.dependencies_secure:
            score -= 20
        for vuln in self.vulnerabilities:
            if vuln.get('type') == 'security_pattern':
                score -= SEVERITY_PENALTIES.get(vuln.get('severity'), 5)
        return max(0.0, score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "no_hardcoded_secrets": self.no_hardcoded_secrets,
            "input_validation_present": self.input_validation_present,
            "secure_error_handling": self.secure_error_handling,
            "dependencies_secure": self.dependencies_secure,
            "vulnerabilities": [dict(v) for v in self.vulnerabilities],
            "score": self.score,
        }


def _line_number(code: str, position: int) -> int:
    return code[:position].count('\n') + 1


def _previous_code_line(lines: List[str], index: int) -> Optional[str]:
    for j in range(index - 1, -1, -1):
        stripped = lines[j].strip()
        if stripped:
            return stripped
    return None


class QualityAnalyzer:
    """Static quality and security analysis over an ``ArtifactSet``"""

    def __init__(self, insecure_dependencies: Optional[Iterable[str]] = None):
        self.insecure_dependencies = list(insecure_dependencies or [])

    # Quality

    def analyze_quality(self, artifact_set: ArtifactSet, source_extensions: Tuple[str, ...]) -> QualityMetrics:
        complexities: List[int] = []
        documented = 0
        total_nloc = 0
        nested_loops = 0

        for path, content in artifact_set.files.items():
            if not path.endswith(source_extensions):
                continue
            lines = content.splitlines()
            if not is_test_file(path, artifact_set.language):
                nested_loops += self._count_nested_loops(lines)

            try:
                file_info = lizard.analyze_file.analyze_source_code(path, content)
            except Exception as e:
                logger.debug(f"Lizard analysis failed for {path}: {e}")
                continue

            total_nloc += file_info.nloc
            for function in file_info.function_list:
                complexities.append(function.cyclomatic_complexity)
                if self._is_documented(lines, function.start_line - 1):
                    documented += 1

        total_functions = len(complexities)
        if total_functions:
            complexity = min(MAX_COMPLEXITY, max(1, round(sum(complexities) / total_functions)))
            documentation = round(100 * documented / total_functions)
        else:
            complexity, documentation = 1, 0
        maintainability = max(0.0, 100 - 5 * complexity - max(0.0, (total_nloc - 500) / 10))
        testability = TESTABILITY_WITH_TESTS if artifact_set.test_files else TESTABILITY_WITHOUT_TESTS
        performance = min(100, max(0, PERFORMANCE_BASELINE - NESTED_LOOP_PENALTY * nested_loops))

        metrics = QualityMetrics(
            complexity=complexity,
            maintainability=round(maintainability, 1),
            testability=float(testability),
            documentation=float(min(100, documentation)),
            performance=float(performance),
        )
        logger.debug(f"📊 Quality metrics: {metrics.to_dict()} "
                     f"({total_functions} functions, {total_nloc} nloc)")
        return metrics

    @staticmethod
    def _is_documented(lines: List[str], index: int) -> bool:
        """Docstring as first statement, or a ``/** */`` block right above"""
        previous = _previous_code_line(lines, index)
        if previous is not None and previous.endswith("*/"):
            for j in range(index - 1, -1, -1):
                stripped = lines[j].strip()
                if stripped.startswith("/**"):
                    return True
                if not (stripped.startswith("*") or stripped.endswith("*/")):
                    break

        # Python: find the end of the signature, then look at the next statement
        for j in range(index, min(index + 10, len(lines))):
            if lines[j].rstrip().endswith(":"):
                for k in range(j + 1, len(lines)):
                    stripped = lines[k].strip()
                    if stripped:
                        return bool(re.match(r'^[rRbBuU]?("""|\'\'\')', stripped))
                return False
        return False

    @staticmethod
    def _count_nested_loops(lines: List[str]) -> int:
        nested = 0
        loop_indents: List[int] = []
        for line in lines:
            if not line.strip():
                continue
            indent = len(line) - len(line.lstrip())
            while loop_indents and indent <= loop_indents[-1]:
                loop_indents.pop()
            if LOOP_RE.match(line):
                if loop_indents:
                    nested += 1
                loop_indents.append(indent)
        return nested

    # Security

    def analyze_security(self, artifact_set: ArtifactSet) -> SecurityValidation:
        vulnerabilities: List[Dict[str, Any]] = []
        secrets_found = False
        error_handling_issues = False
        validation_present = False

        for path, code in artifact_set.files.items():
            if path == artifact_set.manifest_file:
                continue
            for pattern, description in SECRET_PATTERNS:
                for match in re.finditer(pattern, code):
                    secrets_found = True
                    vulnerabilities.append(self._finding('hardcoded_secret', 'high', description,
                                                         path, _line_number(code, match.start())))

            if is_test_file(path, artifact_set.language):
                continue

            for info in VULNERABILITY_PATTERNS:
                for match in re.finditer(info['pattern'], code, re.MULTILINE):
                    vulnerabilities.append(self._finding('security_pattern', info['severity'],
                                                         info['description'], path,
                                                         _line_number(code, match.start())))

            for pattern, description in INSECURE_ERROR_PATTERNS:
                for match in re.finditer(pattern, code, re.MULTILINE):
                    error_handling_issues = True
                    vulnerabilities.append(self._finding('error_handling', 'medium', description,
                                                         path, _line_number(code, match.start())))

            if not validation_present:
                validation_present = any(re.search(p, code) for p in INPUT_VALIDATION_PATTERNS)

        insecure = self._insecure_dependencies(artifact_set.dependencies)
        for name in insecure:
            vulnerabilities.append(self._finding('insecure_dependency', 'high',
                                                 f"Insecure dependency: {name}",
                                                 artifact_set.manifest_file, None))

        result = SecurityValidation(
            no_hardcoded_secrets=not secrets_found,
            input_validation_present=validation_present,
            secure_error_handling=not error_handling_issues,
            dependencies_secure=not insecure,
            vulnerabilities=tuple(vulnerabilities),
        )
        if vulnerabilities:
            logger.info(f"🔒 Security scan found {len(vulnerabilities)} issue(s), score {result.score:.0f}")
        return result

    def _insecure_dependencies(self, dependencies) -> List[str]:
        """Deny-list entries are ``name`` or ``name<version`` (affected below that version)"""
        found = []
        for entry in self.insecure_dependencies:
            name, _, fixed_in = entry.partition("<")
            name = name.strip().lower()
            for dep_name, spec in dependencies.items():
                if dep_name.lower().split("[")[0] != name:
                    continue
                if not fixed_in or self._version_below(spec, fixed_in.strip()):
                    found.append(dep_name)
        return sorted(set(found))

    @staticmethod
    def _version_below(spec: str, fixed_in: str) -> bool:
        """True when the pinned/minimum version in ``spec`` is older than ``fixed_in``"""
        match = re.search(r'(\d+(?:\.\d+)*)', spec or "")
        if not match:
            # Unpinned: the resolver may pick anything, treat as acceptable
            return False
        pinned = tuple(int(p) for p in match.group(1).split("."))
        fixed = tuple(int(p) for p in re.findall(r'\d+', fixed_in))
        return pinned < fixed

    @staticmethod
    def _finding(kind: str, severity: str, description: str, path: str, line: Optional[int]) -> Dict[str, Any]:
        return {
            'type': kind,
            'severity': severity,
            'description': description,
            'file': path,
            'line': line,
        }
