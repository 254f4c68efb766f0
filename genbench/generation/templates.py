"""
Deterministic fallback projects

Used when provider output for the generate stage cannot be parsed. Each
template is a self-consistent project: the manifest names the files that
exist, tests import the generated modules, and everything compiles with the
language's toolchain. Layouts are ``compact`` (entry, manifest, docs, tests)
and ``service`` (adds config, models, validation and service modules).
"""

import json
import re
from string import Template
from typing import Dict

from ..core.artifacts import ArtifactSet, ProjectSpecification
from ..core.task import CodeGenerationRequest


FALLBACK_FEATURES = ("core functionality", "input validation", "error handling")


def package_name(project_name: str) -> str:
    """Python identifier derived from a project name"""
    slug = re.sub(r'[^a-z0-9]+', '_', (project_name or "").lower()).strip('_')
    if not slug:
        return "app"
    if slug[0].isdigit():
        slug = f"app_{slug}"
    return slug[:40].rstrip('_')


def npm_name(project_name: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', (project_name or "").lower()).strip('-')
    return slug[:50].rstrip('-') or "generated-project"


def _docstring_safe(text: str) -> str:
    return text.replace("\\", "/").replace('"""', "'''").strip()


def _comment_safe(text: str) -> str:
    return text.replace("*/", "* /").strip()


def display_name(project_name: str) -> str:
    """Project name reduced to characters safe in code strings and comments"""
    cleaned = re.sub(r'[^A-Za-z0-9 _.,()-]', '', project_name or "").strip()
    return cleaned[:80] or "Generated Project"


def _fallback_file_structure(language: str, pkg: str, template: str):
    if language == "typescript":
        files = ["src/index.ts", "package.json", "README.md", "tests/index.test.ts"]
        if template == "service":
            files += ["src/config.ts", "src/validation.ts", "src/service.ts", "tests/service.test.ts"]
        return files
    files = [f"src/{pkg}/__init__.py", f"src/{pkg}/main.py", "requirements.txt", "README.md",
             f"tests/test_{pkg}.py"]
    if template == "service":
        files += [f"src/{pkg}/config.py", f"src/{pkg}/models.py", f"src/{pkg}/validation.py",
                  f"src/{pkg}/service.py", "tests/test_service.py"]
    return files


def fallback_specification(request: CodeGenerationRequest, template: str = "compact") -> ProjectSpecification:
    """Minimal specification used when the analyze stage cannot be parsed"""
    project_name = "Generated Project"
    pkg = package_name(project_name)
    dependencies = ("typescript", "jest", "ts-jest") if request.language == "typescript" else ("pytest",)
    return ProjectSpecification(
        project_name=project_name,
        features=FALLBACK_FEATURES,
        dependencies=dependencies,
        architecture="layered" if template == "service" else "modular",
        file_structure=tuple(_fallback_file_structure(request.language, pkg, template)),
        test_strategy="unit tests",
        is_fallback=True,
    )


# ---------------------------------------------------------------------------
# Python templates
# ---------------------------------------------------------------------------

PY_INIT = Template('''"""$project_name."""

from .main import Item, Registry, ValidationError

__all__ = ["Item", "Registry", "ValidationError"]
''')

PY_MAIN = Template('''"""$project_name

$description
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional


class ValidationError(ValueError):
    """Raised when an item fails validation."""


@dataclass
class Item:
    """A single tracked item."""

    name: str
    priority: int = 0
    done: bool = False
    tags: List[str] = field(default_factory=list)


class Registry:
    """In-memory store of items keyed by name."""

    def __init__(self) -> None:
        self._items: Dict[str, Item] = {}

    def add(self, name: str, priority: int = 0, tags: Optional[List[str]] = None) -> Item:
        """Add a new item, rejecting blank names, duplicates and negative priorities."""
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("name must not be empty")
        if priority < 0:
            raise ValidationError("priority must not be negative")
        if cleaned in self._items:
            raise ValidationError(f"item '{cleaned}' already exists")
        item = Item(name=cleaned, priority=priority, tags=sorted(set(tags or [])))
        self._items[cleaned] = item
        return item

    def get(self, name: str) -> Item:
        """Return the item called ``name``."""
        try:
            return self._items[name]
        except KeyError:
            raise KeyError(f"unknown item '{name}'") from None

    def complete(self, name: str) -> Item:
        item = self.get(name)
        item.done = True
        return item

    def remove(self, name: str) -> None:
        self.get(name)
        del self._items[name]

    def items(self, include_done: bool = True) -> List[Item]:
        """Items ordered by descending priority, then name."""
        selected = [i for i in self._items.values() if include_done or not i.done]
        return sorted(selected, key=lambda i: (-i.priority, i.name))

    def __len__(self) -> int:
        return len(self._items)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="$project_name")
    parser.add_argument("names", nargs="*", help="items to add")
    parser.add_argument("--priority", type=int, default=0)
    args = parser.parse_args(argv)

    registry = Registry()
    for name in args.names:
        try:
            registry.add(name, priority=args.priority)
        except ValidationError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
    print(json.dumps([asdict(item) for item in registry.items()], indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
''')

PY_TEST_MAIN = Template('''import pytest

from $package.main import Registry, ValidationError, main


def test_add_and_get():
    registry = Registry()
    item = registry.add("alpha", priority=2, tags=["b", "a", "b"])
    assert registry.get("alpha") is item
    assert item.tags == ["a", "b"]
    assert len(registry) == 1


def test_rejects_blank_and_duplicate_names():
    registry = Registry()
    registry.add("alpha")
    with pytest.raises(ValidationError):
        registry.add("   ")
    with pytest.raises(ValidationError):
        registry.add("alpha")


def test_rejects_negative_priority():
    with pytest.raises(ValidationError):
        Registry().add("alpha", priority=-1)


def test_items_sorted_by_priority_then_name():
    registry = Registry()
    registry.add("b", priority=1)
    registry.add("a", priority=1)
    registry.add("c", priority=5)
    assert [i.name for i in registry.items()] == ["c", "a", "b"]


def test_complete_and_filter():
    registry = Registry()
    registry.add("alpha")
    registry.add("beta")
    registry.complete("alpha")
    assert [i.name for i in registry.items(include_done=False)] == ["beta"]


def test_remove_unknown_raises_key_error():
    registry = Registry()
    with pytest.raises(KeyError):
        registry.remove("missing")


def test_main_prints_items(capsys):
    assert main(["b", "a", "--priority", "1"]) == 0
    out = capsys.readouterr().out
    assert '"a"' in out and '"b"' in out


def test_main_reports_validation_error(capsys):
    assert main(["  "]) == 1
    assert "error" in capsys.readouterr().err
''')

PY_REQUIREMENTS = Template('''# $project_name runtime dependencies
# (standard library only)
''')

PY_README = Template('''# $project_name

$description

## Layout

$layout

## Running

```bash
PYTHONPATH=src python -m $package.main first second --priority 2
```

## Testing

```bash
PYTHONPATH=src python -m pytest
```
''')

PY_CONFIG = Template('''"""Runtime settings for $project_name."""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional


@dataclass(frozen=True)
class Settings:
    """Service settings, read from the environment."""

    max_items: int = 1000
    low_priority_threshold: int = 1
    service_name: str = "$package"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            max_items=int(env.get("MAX_ITEMS", cls.max_items)),
            low_priority_threshold=int(env.get("LOW_PRIORITY_THRESHOLD", cls.low_priority_threshold)),
            service_name=env.get("SERVICE_NAME", cls.service_name),
        )

    def validate(self) -> List[str]:
        errors = []
        if self.max_items <= 0:
            errors.append("max_items must be positive")
        if self.low_priority_threshold < 0:
            errors.append("low_priority_threshold must not be negative")
        if not self.service_name.strip():
            errors.append("service_name must not be empty")
        return errors
''')

PY_MODELS = Template('''"""Domain events for $project_name."""

from dataclasses import dataclass
from enum import Enum


class EventKind(Enum):
    CREATED = "created"
    COMPLETED = "completed"
    REMOVED = "removed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    name: str
    detail: str = ""

    def describe(self) -> str:
        suffix = f" ({self.detail})" if self.detail else ""
        return f"{self.kind.value}: {self.name}{suffix}"
''')

PY_VALIDATION = Template('''"""Input validation helpers."""

import re
from typing import Iterable, List

from .main import ValidationError

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 _.-]{0,63}$$")


def validate_name(name: str) -> str:
    """Return the normalized name or raise ``ValidationError``."""
    cleaned = (name or "").strip()
    if not _NAME_PATTERN.match(cleaned):
        raise ValidationError(f"invalid name: {name!r}")
    return cleaned


def validate_priority(priority: int, maximum: int = 10) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError("priority must be an integer")
    if not 0 <= priority <= maximum:
        raise ValidationError(f"priority must be between 0 and {maximum}")
    return priority


def validate_tags(tags: Iterable[str]) -> List[str]:
    cleaned = []
    for tag in tags:
        tag = (tag or "").strip().lower()
        if not tag:
            raise ValidationError("tags must not be blank")
        cleaned.append(tag)
    return sorted(set(cleaned))
''')

PY_SERVICE = Template('''"""Service layer for $project_name."""

import logging
from typing import List, Optional

from .config import Settings
from .main import Item, Registry, ValidationError
from .models import Event, EventKind
from .validation import validate_name, validate_priority, validate_tags

logger = logging.getLogger(__name__)


class CapacityError(RuntimeError):
    """Raised when the service is full."""


class ItemService:
    """Validated operations over a registry, with an event log."""

    def __init__(self, settings: Optional[Settings] = None, registry: Optional[Registry] = None) -> None:
        self.settings = settings or Settings()
        errors = self.settings.validate()
        if errors:
            raise ValueError("; ".join(errors))
        self.registry = registry or Registry()
        self.events: List[Event] = []

    def create(self, name: str, priority: int = 0, tags: Optional[List[str]] = None) -> Item:
        try:
            cleaned = validate_name(name)
            validate_priority(priority)
            clean_tags = validate_tags(tags or [])
        except ValidationError as exc:
            self.events.append(Event(EventKind.REJECTED, str(name), str(exc)))
            raise
        if len(self.registry) >= self.settings.max_items:
            raise CapacityError(f"{self.settings.service_name} is full")
        item = self.registry.add(cleaned, priority=priority, tags=clean_tags)
        self.events.append(Event(EventKind.CREATED, item.name))
        logger.info("created %s", item.name)
        return item

    def complete(self, name: str) -> Item:
        item = self.registry.complete(name)
        self.events.append(Event(EventKind.COMPLETED, name))
        return item

    def remove(self, name: str) -> None:
        self.registry.remove(name)
        self.events.append(Event(EventKind.REMOVED, name))

    def low_priority(self) -> List[Item]:
        """Open items at or below the configured priority threshold."""
        return [
            item for item in self.registry.items(include_done=False)
            if item.priority <= self.settings.low_priority_threshold
        ]

    def history(self) -> List[str]:
        return [event.describe() for event in self.events]
''')

PY_TEST_SERVICE = Template('''import pytest

from $package.config import Settings
from $package.main import ValidationError
from $package.service import CapacityError, ItemService
from $package.validation import validate_name, validate_priority, validate_tags


def test_settings_from_env():
    settings = Settings.from_env({"MAX_ITEMS": "5", "SERVICE_NAME": "demo"})
    assert settings.max_items == 5
    assert settings.service_name == "demo"
    assert settings.validate() == []


def test_invalid_settings_rejected():
    with pytest.raises(ValueError):
        ItemService(Settings(max_items=0))


def test_validators():
    assert validate_name("  alpha ") == "alpha"
    assert validate_priority(3) == 3
    assert validate_tags(["B", "a", "b"]) == ["a", "b"]
    with pytest.raises(ValidationError):
        validate_name("../etc")
    with pytest.raises(ValidationError):
        validate_priority(11)
    with pytest.raises(ValidationError):
        validate_tags([" "])


def test_create_complete_remove_records_events():
    service = ItemService()
    service.create("alpha", priority=2, tags=["x"])
    service.complete("alpha")
    service.remove("alpha")
    assert service.history() == ["created: alpha", "completed: alpha", "removed: alpha"]


def test_rejected_input_is_logged():
    service = ItemService()
    with pytest.raises(ValidationError):
        service.create("")
    assert service.history()[0].startswith("rejected")


def test_capacity_limit():
    service = ItemService(Settings(max_items=1))
    service.create("alpha")
    with pytest.raises(CapacityError):
        service.create("beta")


def test_low_priority_items():
    service = ItemService(Settings(low_priority_threshold=1))
    service.create("urgent", priority=5)
    service.create("later", priority=1)
    assert [item.name for item in service.low_priority()] == ["later"]
''')


# ---------------------------------------------------------------------------
# TypeScript templates
# ---------------------------------------------------------------------------

TS_INDEX = Template('''/**
 * $project_name
 *
 * $description
 */

export interface Item {
  name: string;
  priority: number;
  done: boolean;
}

export class ValidationError extends Error {
  constructor(message: string) {
    super(message);
    this.name = 'ValidationError';
  }
}

export class Registry {
  private readonly items = new Map<string, Item>();

  /** Add a new item, rejecting blank names, duplicates and negative priorities. */
  add(name: string, priority = 0): Item {
    const cleaned = (name || '').trim();
    if (!cleaned) {
      throw new ValidationError('name must not be empty');
    }
    if (priority < 0) {
      throw new ValidationError('priority must not be negative');
    }
    if (this.items.has(cleaned)) {
      throw new ValidationError('item already exists: ' + cleaned);
    }
    const item: Item = { name: cleaned, priority, done: false };
    this.items.set(cleaned, item);
    return item;
  }

  /** Return the item called name. */
  get(name: string): Item {
    const item = this.items.get(name);
    if (!item) {
      throw new Error('unknown item: ' + name);
    }
    return item;
  }

  complete(name: string): Item {
    const item = this.get(name);
    item.done = true;
    return item;
  }

  remove(name: string): void {
    this.get(name);
    this.items.delete(name);
  }

  /** Items ordered by descending priority, then name. */
  list(includeDone = true): Item[] {
    return Array.from(this.items.values())
      .filter((item) => includeDone || !item.done)
      .sort((a, b) => b.priority - a.priority || a.name.localeCompare(b.name));
  }

  get size(): number {
    return this.items.size;
  }
}

export function main(args: string[]): number {
  const registry = new Registry();
  for (const name of args) {
    try {
      registry.add(name);
    } catch (err) {
      if (err instanceof ValidationError) {
        console.error('error: ' + err.message);
        return 1;
      }
      throw err;
    }
  }
  console.log(JSON.stringify(registry.list(), null, 2));
  return 0;
}
''')

TS_TEST_INDEX = Template('''import { Registry, ValidationError, main } from '../src/index';

describe('Registry', () => {
  it('adds and returns items', () => {
    const registry = new Registry();
    const item = registry.add('alpha', 2);
    expect(registry.get('alpha')).toBe(item);
    expect(registry.size).toBe(1);
  });

  it('rejects blank and duplicate names', () => {
    const registry = new Registry();
    registry.add('alpha');
    expect(() => registry.add('   ')).toThrow(ValidationError);
    expect(() => registry.add('alpha')).toThrow(ValidationError);
  });

  it('rejects negative priorities', () => {
    expect(() => new Registry().add('alpha', -1)).toThrow(ValidationError);
  });

  it('sorts by priority then name', () => {
    const registry = new Registry();
    registry.add('b', 1);
    registry.add('a', 1);
    registry.add('c', 5);
    expect(registry.list().map((i) => i.name)).toEqual(['c', 'a', 'b']);
  });

  it('filters completed items', () => {
    const registry = new Registry();
    registry.add('alpha');
    registry.add('beta');
    registry.complete('alpha');
    expect(registry.list(false).map((i) => i.name)).toEqual(['beta']);
  });

  it('throws when removing unknown items', () => {
    expect(() => new Registry().remove('missing')).toThrow('unknown item');
  });
});

describe('main', () => {
  it('returns 0 for valid input', () => {
    const log = jest.spyOn(console, 'log').mockImplementation(() => undefined);
    expect(main(['a', 'b'])).toBe(0);
    log.mockRestore();
  });

  it('returns 1 for invalid input', () => {
    const error = jest.spyOn(console, 'error').mockImplementation(() => undefined);
    expect(main(['  '])).toBe(1);
    error.mockRestore();
  });
});
''')

TS_README = Template('''# $project_name

$description

## Layout

$layout

## Scripts

```bash
npm install
npm run build
npm test
```
''')

TS_CONFIG = Template('''/** Runtime settings for $project_name. */

export interface Settings {
  maxItems: number;
  lowPriorityThreshold: number;
  serviceName: string;
}

export const defaultSettings: Settings = {
  maxItems: 1000,
  lowPriorityThreshold: 1,
  serviceName: '$npm_name',
};

export function loadSettings(env: Record<string, string | undefined>): Settings {
  const maxItems = Number(env.MAX_ITEMS ?? defaultSettings.maxItems);
  const threshold = Number(env.LOW_PRIORITY_THRESHOLD ?? defaultSettings.lowPriorityThreshold);
  return {
    maxItems: Number.isFinite(maxItems) ? maxItems : defaultSettings.maxItems,
    lowPriorityThreshold: Number.isFinite(threshold) ? threshold : defaultSettings.lowPriorityThreshold,
    serviceName: env.SERVICE_NAME ?? defaultSettings.serviceName,
  };
}

export function validateSettings(settings: Settings): string[] {
  const errors: string[] = [];
  if (settings.maxItems <= 0) {
    errors.push('maxItems must be positive');
  }
  if (settings.lowPriorityThreshold < 0) {
    errors.push('lowPriorityThreshold must not be negative');
  }
  if (!settings.serviceName.trim()) {
    errors.push('serviceName must not be empty');
  }
  return errors;
}
''')

TS_VALIDATION = Template('''import { ValidationError } from './index';

const NAME_PATTERN = /^[A-Za-z0-9][A-Za-z0-9 _.-]{0,63}$$/;

/** Return the normalized name or throw ValidationError. */
export function validateName(name: string): string {
  const cleaned = (name || '').trim();
  if (!NAME_PATTERN.test(cleaned)) {
    throw new ValidationError('invalid name: ' + JSON.stringify(name));
  }
  return cleaned;
}

export function validatePriority(priority: number, maximum = 10): number {
  if (!Number.isInteger(priority) || priority < 0 || priority > maximum) {
    throw new ValidationError('priority must be an integer between 0 and ' + maximum);
  }
  return priority;
}
''')

TS_SERVICE = Template('''import { defaultSettings, Settings, validateSettings } from './config';
import { Item, Registry, ValidationError } from './index';
import { validateName, validatePriority } from './validation';

export class CapacityError extends Error {
  constructor(message: string) {
    super(message);
    this.name = 'CapacityError';
  }
}

/** Validated operations over a registry, with an event log. */
export class ItemService {
  readonly events: string[] = [];
  private readonly registry = new Registry();

  constructor(private readonly settings: Settings = defaultSettings) {
    const errors = validateSettings(settings);
    if (errors.length > 0) {
      throw new Error(errors.join('; '));
    }
  }

  create(name: string, priority = 0): Item {
    const cleaned = this.validated(name, priority);
    if (this.registry.size >= this.settings.maxItems) {
      throw new CapacityError(this.settings.serviceName + ' is full');
    }
    const item = this.registry.add(cleaned, priority);
    this.events.push('created: ' + item.name);
    return item;
  }

  private validated(name: string, priority: number): string {
    try {
      validatePriority(priority);
      return validateName(name);
    } catch (err) {
      if (err instanceof ValidationError) {
        this.events.push('rejected: ' + name);
      }
      throw err;
    }
  }

  complete(name: string): Item {
    const item = this.registry.complete(name);
    this.events.push('completed: ' + name);
    return item;
  }

  lowPriority(): Item[] {
    return this.registry.list(false).filter((item) => item.priority <= this.settings.lowPriorityThreshold);
  }
}
''')

TS_TEST_SERVICE = Template('''import { loadSettings, validateSettings } from '../src/config';
import { ValidationError } from '../src/index';
import { CapacityError, ItemService } from '../src/service';

describe('ItemService', () => {
  it('loads settings from the environment', () => {
    const settings = loadSettings({ MAX_ITEMS: '5', SERVICE_NAME: 'demo' });
    expect(settings.maxItems).toBe(5);
    expect(validateSettings(settings)).toEqual([]);
  });

  it('records events', () => {
    const service = new ItemService();
    service.create('alpha', 2);
    service.complete('alpha');
    expect(service.events).toEqual(['created: alpha', 'completed: alpha']);
  });

  it('rejects invalid names', () => {
    const service = new ItemService();
    expect(() => service.create('../etc')).toThrow(ValidationError);
    expect(service.events[0]).toContain('rejected');
  });

  it('enforces capacity', () => {
    const service = new ItemService({ maxItems: 1, lowPriorityThreshold: 1, serviceName: 'demo' });
    service.create('alpha');
    expect(() => service.create('beta')).toThrow(CapacityError);
  });

  it('lists low priority items', () => {
    const service = new ItemService();
    service.create('urgent', 5);
    service.create('later', 1);
    expect(service.lowPriority().map((i) => i.name)).toEqual(['later']);
  });
});
''')

TS_DEV_DEPENDENCIES = {
    "@types/jest": "^29.5.0",
    "jest": "^29.7.0",
    "ts-jest": "^29.1.0",
    "typescript": "^5.3.0",
}


def _ts_package_json(project_name: str, description: str) -> str:
    manifest = {
        "name": npm_name(project_name),
        "version": "1.0.0",
        "description": description,
        "main": "dist/index.js",
        "scripts": {
            "build": "tsc",
            "test": "jest --coverage",
        },
        "dependencies": {},
        "devDependencies": dict(TS_DEV_DEPENDENCIES),
    }
    return json.dumps(manifest, indent=2) + "\n"


def _layout_listing(paths) -> str:
    return "\n".join(f"- `{path}`" for path in sorted(paths))


def fallback_files(request: CodeGenerationRequest, project_name: str, template: str = "compact") -> Dict[str, str]:
    """Render the fallback project for a request as ``{path: content}``"""
    description = " ".join((request.description or "").split())
    pkg = package_name(project_name)
    paths = _fallback_file_structure(request.language, pkg, template)
    values = {
        "project_name": display_name(project_name),
        "description": _docstring_safe(description),
        "package": pkg,
        "npm_name": npm_name(project_name),
        "layout": _layout_listing(paths),
    }

    if request.language == "typescript":
        values["description"] = _comment_safe(description)
        files = {
            "src/index.ts": TS_INDEX.substitute(values),
            "package.json": _ts_package_json(project_name, description),
            "README.md": TS_README.substitute(values),
            "tests/index.test.ts": TS_TEST_INDEX.substitute(values),
        }
        if template == "service":
            files.update({
                "src/config.ts": TS_CONFIG.substitute(values),
                "src/validation.ts": TS_VALIDATION.substitute(values),
                "src/service.ts": TS_SERVICE.substitute(values),
                "tests/service.test.ts": TS_TEST_SERVICE.substitute(values),
            })
        return files

    files = {
        f"src/{pkg}/__init__.py": PY_INIT.substitute(values),
        f"src/{pkg}/main.py": PY_MAIN.substitute(values),
        "requirements.txt": PY_REQUIREMENTS.substitute(values),
        "README.md": PY_README.substitute(values),
        f"tests/test_{pkg}.py": PY_TEST_MAIN.substitute(values),
    }
    if template == "service":
        files.update({
            f"src/{pkg}/config.py": PY_CONFIG.substitute(values),
            f"src/{pkg}/models.py": PY_MODELS.substitute(values),
            f"src/{pkg}/validation.py": PY_VALIDATION.substitute(values),
            f"src/{pkg}/service.py": PY_SERVICE.substitute(values),
            "tests/test_service.py": PY_TEST_SERVICE.substitute(values),
        })
    return files


def fallback_artifact_set(request: CodeGenerationRequest, project_name: str = "Generated Project",
                          template: str = "compact") -> ArtifactSet:
    files = fallback_files(request, project_name, template)
    if request.language == "typescript":
        entry, manifest = "src/index.ts", "package.json"
    else:
        entry, manifest = f"src/{package_name(project_name)}/main.py", "requirements.txt"
    return ArtifactSet.build(files, request.language, entry_file=entry, manifest_file=manifest, is_fallback=True)
