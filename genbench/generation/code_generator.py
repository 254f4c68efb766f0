"""
Code Generation Engine for GenBench

Turns a ``CodeGenerationRequest`` into an ``ArtifactSet`` with three provider
calls (analyze -> generate -> score). Each stage degrades to a deterministic
fallback instead of failing, and records which stages did so.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..core.artifacts import (
    ArtifactSet, ProjectSpecification, find_entry_file, find_manifest, safe_relative_path,
)
from ..core.config import Config
from ..core.metrics import ProviderResponse
from ..core.task import CodeGenerationRequest, TierPolicy
from ..utils.llm_parsing import parse_files_response, parse_json_object
from .provider_client import ProviderClient
from .templates import fallback_artifact_set, fallback_specification

logger = logging.getLogger(__name__)

STAGE_ANALYZE = "analyze"
STAGE_GENERATE = "generate"
STAGE_COMPLETION = "generate:completion"
STAGE_SCORE = "score"

QUALITY_DIMENSIONS = ("codeQuality", "testCoverage", "security", "performance", "documentation")

# Upper bound on source text sent back to the provider for self-assessment
SCORE_EXCERPT_CHARS = 12000

LANGUAGE_CONVENTIONS = {
    "python": (
        "Use Python 3 with a src/ layout: package code under src/<package>/, a requirements.txt "
        "manifest listing only third-party runtime dependencies (it may be empty apart from comments), "
        "a README.md, and pytest tests under tests/ named test_*.py that import the package by name "
        "(src/ is on the import path). Use only the standard library unless a dependency is essential."
    ),
    "typescript": (
        "Use TypeScript in strict mode: sources under src/ with src/index.ts as the entry point, a "
        "package.json manifest whose devDependencies include typescript, jest, ts-jest and @types/jest, "
        "a README.md, and Jest tests under tests/ named *.test.ts that import from '../src/...'. "
        "Do not rely on packages that are not declared in package.json."
    ),
}


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one analyze -> generate -> score run"""
    artifact_set: ArtifactSet
    specification: ProjectSpecification
    quality_score_self_reported: float
    tokens_used: int
    duration_ms: float
    api_calls: int
    provider_response_ms: float
    fallback_stages: Tuple[str, ...] = ()
    provider_errors: Tuple[str, ...] = ()

    @property
    def used_fallback_content(self) -> bool:
        """True when any generated file came from a template instead of the provider"""
        return STAGE_GENERATE in self.fallback_stages or STAGE_COMPLETION in self.fallback_stages


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v) for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    if isinstance(value, dict):
        # {"express": "^4.18.0"} style dependency maps
        return [str(k) for k in value.keys()]
    return []


def parse_specification(data: Optional[Dict[str, Any]]) -> Optional[ProjectSpecification]:
    """Build a ProjectSpecification from analyze-stage JSON, or None if unusable"""
    if not data:
        return None
    name = data.get("projectName") or data.get("project_name") or data.get("name")
    raw_files = data.get("fileStructure") or data.get("file_structure") or data.get("files")
    if not isinstance(name, str) or not name.strip():
        return None

    file_structure = []
    for path in _as_str_list(raw_files):
        safe = safe_relative_path(path)
        if safe and safe not in file_structure:
            file_structure.append(safe)
    if not file_structure:
        return None

    architecture = data.get("architecture", "modular")
    if not isinstance(architecture, str):
        architecture = json.dumps(architecture)
    test_strategy = data.get("testStrategy") or data.get("test_strategy") or "unit tests"
    if not isinstance(test_strategy, str):
        test_strategy = json.dumps(test_strategy)

    return ProjectSpecification(
        project_name=name.strip(),
        features=tuple(_as_str_list(data.get("features"))),
        dependencies=tuple(_as_str_list(data.get("dependencies"))),
        architecture=architecture,
        file_structure=tuple(file_structure),
        test_strategy=test_strategy,
    )


def parse_quality_score(data: Optional[Dict[str, Any]]) -> Optional[float]:
    """Overall 0-100 score from score-stage JSON, or None if absent"""
    if not data:
        return None
    for key in ("overall", "overallScore", "overall_score"):
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(max(0.0, min(100.0, value)))

    scores = data.get("scores") if isinstance(data.get("scores"), dict) else data
    numeric = [
        float(v) for k, v in scores.items()
        if k in QUALITY_DIMENSIONS and isinstance(v, (int, float)) and not isinstance(v, bool)
    ]
    if not numeric:
        return None
    return float(max(0.0, min(100.0, sum(numeric) / len(numeric))))


class CodeGenerationEngine:
    """Provider-mediated multi-stage project generator"""

    def __init__(self, client: ProviderClient, config: Config):
        self.client = client
        self.config = config

    async def generate(self, request: CodeGenerationRequest, provider: str) -> GenerationResult:
        """Run analyze -> generate -> score. Never returns an empty artifact set."""
        start = time.perf_counter()
        policy = self.config.generation.tier_policy(request.complexity_tier)
        responses: List[ProviderResponse] = []
        fallback_stages: List[str] = []

        logger.info(f"🏗️ Generating {request.complexity_tier.value} {request.language} project with {provider}")

        # 1. Analyze
        response = await self.client.call(
            provider, self._analyze_messages(request, policy),
            max_tokens=self.config.generation.analyze_max_tokens,
        )
        responses.append(response)
        specification = parse_specification(parse_json_object(response.data)) if response.success else None
        if specification is None:
            logger.warning(f"⚠️ Analyze stage fell back to default specification "
                           f"({response.error or 'unparseable response'})")
            specification = fallback_specification(request, policy.template)
            fallback_stages.append(STAGE_ANALYZE)

        # 2. Generate
        response = await self.client.call(
            provider, self._generate_messages(request, specification, policy),
            max_tokens=policy.max_tokens,
        )
        responses.append(response)
        files = self._safe_files(parse_files_response(response.data)) if response.success else None
        if not files:
            logger.warning(f"⚠️ Generate stage fell back to template project "
                           f"({response.error or 'unparseable response'})")
            artifact_set = fallback_artifact_set(request, specification.project_name, policy.template)
            fallback_stages.append(STAGE_GENERATE)
        else:
            artifact_set, completed = self._complete(files, request, specification, policy)
            if completed:
                fallback_stages.append(STAGE_COMPLETION)

        if artifact_set.total_lines < policy.min_total_lines:
            logger.warning(f"⚠️ Generated {artifact_set.total_lines} lines, below the "
                           f"{policy.min_total_lines}-line target for {request.complexity_tier.value}")

        # 3. Score
        response = await self.client.call(
            provider, self._score_messages(request, artifact_set),
            max_tokens=self.config.generation.score_max_tokens,
        )
        responses.append(response)
        score = parse_quality_score(parse_json_object(response.data)) if response.success else None
        if score is None:
            score = float(self.config.generation.default_quality_score)
            fallback_stages.append(STAGE_SCORE)

        duration_ms = (time.perf_counter() - start) * 1000
        result = GenerationResult(
            artifact_set=artifact_set,
            specification=specification,
            quality_score_self_reported=score,
            tokens_used=sum(r.tokens_used for r in responses),
            duration_ms=duration_ms,
            api_calls=len(responses),
            provider_response_ms=sum(r.duration_ms for r in responses),
            fallback_stages=tuple(fallback_stages),
            provider_errors=tuple(r.error for r in responses if not r.success and r.error),
        )
        logger.info(f"✅ Generated {artifact_set.file_count} files / {artifact_set.total_lines} lines "
                    f"in {duration_ms:.0f}ms (fallback stages: {', '.join(fallback_stages) or 'none'})")
        return result

    def _safe_files(self, files: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not files:
            return None
        safe: Dict[str, str] = {}
        for path, content in files.items():
            normalized = safe_relative_path(path)
            if normalized is None:
                logger.warning(f"⚠️ Dropping generated file with unsafe path: {path!r}")
                continue
            safe[normalized] = content
        return safe or None

    def _complete(self, files: Dict[str, str], request: CodeGenerationRequest,
                  specification: ProjectSpecification, policy: TierPolicy) -> Tuple[ArtifactSet, bool]:
        """Fill in a missing entry file or manifest from the fallback template"""
        paths = sorted(files)
        entry = find_entry_file(paths, request.language)
        manifest = find_manifest(paths, request.language)
        if entry and manifest:
            return ArtifactSet.build(files, request.language, entry_file=entry, manifest_file=manifest), False

        template = fallback_artifact_set(request, specification.project_name, policy.template)
        merged = dict(files)
        if manifest is None:
            manifest = template.manifest_file
            merged[manifest] = template.files[manifest]
            logger.warning(f"⚠️ Provider output had no manifest; added template {manifest}")
        if entry is None:
            entry = template.entry_file
            merged[entry] = template.files[entry]
            logger.warning(f"⚠️ Provider output had no entry file; added template {entry}")
        return ArtifactSet.build(merged, request.language, entry_file=entry, manifest_file=manifest), True

    # Prompts

    def _analyze_messages(self, request: CodeGenerationRequest, policy: TierPolicy) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": "You are a senior software architect. Respond with JSON only."},
            {"role": "user", "content": (
                f"Analyze this project request and design a {request.language} project.\n\n"
                f"Description: {request.description}\n"
                f"Project type: {request.project_type}\n"
                f"Complexity: {request.complexity_tier.value}\n"
                f"Target size: about {policy.expected_files} files and at least "
                f"{policy.min_total_lines} lines in total.\n\n"
                f"{LANGUAGE_CONVENTIONS[request.language]}\n\n"
                "Respond with a single JSON object with these keys:\n"
                '{"projectName": string, "features": [string], "dependencies": [string], '
                '"architecture": string, "fileStructure": [relative file paths], "testStrategy": string}'
            )},
        ]

    def _generate_messages(self, request: CodeGenerationRequest, specification: ProjectSpecification,
                           policy: TierPolicy) -> List[Dict[str, str]]:
        file_list = "\n".join(f"- {path}" for path in specification.file_structure)
        return [
            {"role": "system", "content": (
                "You are an expert software engineer. Produce complete, working, tested code. "
                "Respond with JSON only."
            )},
            {"role": "user", "content": (
                f"Implement the project '{specification.project_name}'.\n\n"
                f"Description: {request.description}\n"
                f"Features: {', '.join(specification.features) or 'core functionality'}\n"
                f"Architecture: {specification.architecture}\n"
                f"Test strategy: {specification.test_strategy}\n\n"
                f"Write every one of these files:\n{file_list}\n\n"
                f"The files together must contain at least {policy.min_total_lines} lines of real code, "
                "the tests must pass, and the project must compile without errors.\n"
                f"{LANGUAGE_CONVENTIONS[request.language]}\n\n"
                'Respond with a single JSON object: {"files": {"<relative path>": "<file content>"}}'
            )},
        ]

    def _score_messages(self, request: CodeGenerationRequest, artifact_set: ArtifactSet) -> List[Dict[str, str]]:
        excerpt_parts = []
        remaining = SCORE_EXCERPT_CHARS
        for path in artifact_set.paths():
            if remaining <= 0:
                excerpt_parts.append(f"--- {path} (omitted)")
                continue
            content = artifact_set.files[path][:remaining]
            remaining -= len(content)
            excerpt_parts.append(f"--- {path}\n{content}")
        dimensions = ", ".join(f'"{d}"' for d in QUALITY_DIMENSIONS)
        return [
            {"role": "system", "content": "You are a strict code reviewer. Respond with JSON only."},
            {"role": "user", "content": (
                f"Review this generated project for the request: {request.description}\n\n"
                + "\n\n".join(excerpt_parts)
                + f"\n\nScore each of {dimensions} from 0 to 100 and give an overall score. "
                'Respond with a single JSON object: {"scores": {...}, "overall": number}'
            )},
        ]
