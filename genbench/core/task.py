"""
Scenario and request definitions for GenBench
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from enum import Enum
from dataclasses import dataclass

import yaml


class ComplexityTier(Enum):
    """Complexity tiers for generated projects"""
    SIMPLE = "simple"
    MODERATE = "moderate"
    ADVANCED = "advanced"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: Any) -> 'ComplexityTier':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown complexity tier '{value}' (expected one of: {valid})")


@dataclass(frozen=True)
class TierPolicy:
    """Expected size of a generated project for one complexity tier"""
    expected_files: int
    min_total_lines: int
    max_tokens: int
    template: str = "compact"


@dataclass(frozen=True)
class CodeGenerationRequest:
    """Natural-language project request handed to the generation engine"""
    description: str
    project_type: str
    complexity_tier: ComplexityTier
    language: str = "python"

    def __post_init__(self):
        if not self.description or not self.description.strip():
            raise ValueError("CodeGenerationRequest.description must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "project_type": self.project_type,
            "complexity_tier": self.complexity_tier.value,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_language: str = "python") -> 'CodeGenerationRequest':
        return cls(
            description=data["description"],
            project_type=data.get("project_type", data.get("type", "library")),
            complexity_tier=ComplexityTier.parse(data.get("complexity_tier", data.get("complexity", "simple"))),
            language=data.get("language", default_language),
        )


@dataclass(frozen=True)
class Scenario:
    """One end-to-end benchmark unit: a request, optionally pinned to a provider"""
    scenario_id: str
    request: CodeGenerationRequest
    provider: Optional[str] = None

    def __repr__(self):
        return (f"Scenario(id='{self.scenario_id}', tier={self.request.complexity_tier.value}, "
                f"provider={self.provider or 'any'})")

    def for_provider(self, provider: str, suffix: bool = False) -> 'Scenario':
        """Pin the scenario to a provider, optionally suffixing its id"""
        scenario_id = f"{self.scenario_id}-{provider}" if suffix else self.scenario_id
        return Scenario(scenario_id=scenario_id, request=self.request, provider=provider)


_SCENARIO_ID = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')

DEFAULT_SCENARIOS: List[Dict[str, Any]] = [
    {
        "id": "todo-cli",
        "description": "A command-line todo list manager that stores tasks in memory, "
                       "supports add, complete, remove and list operations with priority ordering.",
        "project_type": "cli",
        "complexity_tier": "simple",
    },
    {
        "id": "inventory-service",
        "description": "An inventory tracking service with products, stock levels, reservations "
                       "and low-stock alerts, exposing a clean service layer with input validation.",
        "project_type": "service",
        "complexity_tier": "advanced",
    },
]


def _build_scenarios(entries: List[Dict[str, Any]], default_language: str) -> List[Scenario]:
    scenarios = []
    seen = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Scenario #{index + 1} must be a mapping")
        scenario_id = str(entry.get("id") or entry.get("scenario_id") or f"scenario-{index + 1}")
        if not _SCENARIO_ID.match(scenario_id):
            raise ValueError(f"Scenario id '{scenario_id}' may only contain letters, digits, '.', '_' and '-'")
        if scenario_id in seen:
            raise ValueError(f"Duplicate scenario id '{scenario_id}'")
        seen.add(scenario_id)
        scenarios.append(Scenario(
            scenario_id=scenario_id,
            request=CodeGenerationRequest.from_dict(entry, default_language=default_language),
            provider=entry.get("provider"),
        ))
    return scenarios


def load_scenarios(path: Optional[str] = None, default_language: str = "python") -> List[Scenario]:
    """Load scenarios from a YAML file with a top-level ``scenarios`` list.

    Without a path the built-in scenarios are returned.
    """
    if path is None:
        return _build_scenarios(DEFAULT_SCENARIOS, default_language)

    scenario_path = Path(path)
    if not scenario_path.exists():
        raise FileNotFoundError(f"Scenario file not found: {scenario_path}")

    with open(scenario_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("scenarios") if isinstance(data, dict) else data
    if not entries:
        raise ValueError(f"No scenarios defined in {scenario_path}")
    return _build_scenarios(entries, default_language)
