"""
Generated project artifacts for GenBench
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class LanguageLayout:
    """File naming conventions of one target language"""
    name: str
    source_extensions: Tuple[str, ...]
    manifest_names: Tuple[str, ...]
    entry_candidates: Tuple[str, ...]
    test_patterns: Tuple[str, ...]


LANGUAGE_LAYOUTS: Dict[str, LanguageLayout] = {
    "python": LanguageLayout(
        name="python",
        source_extensions=(".py",),
        manifest_names=("requirements.txt",),
        entry_candidates=("main.py", "app.py", "__main__.py", "cli.py", "server.py", "__init__.py"),
        test_patterns=(r'(^|/)test_[^/]*\.py$', r'_test\.py$'),
    ),
    "typescript": LanguageLayout(
        name="typescript",
        source_extensions=(".ts", ".js"),
        manifest_names=("package.json",),
        entry_candidates=("index.ts", "main.ts", "server.ts", "app.ts", "index.js"),
        test_patterns=(r'\.(test|spec)\.[jt]s$', r'(^|/)__tests__/'),
    ),
}


def get_layout(language: str) -> LanguageLayout:
    try:
        return LANGUAGE_LAYOUTS[language]
    except KeyError:
        raise ValueError(f"Unsupported language: {language}") from None


def is_test_file(path: str, language: str) -> bool:
    return any(re.search(pattern, path) for pattern in get_layout(language).test_patterns)


def find_manifest(paths, language: str) -> Optional[str]:
    """Shallowest file named like the language's manifest"""
    names = get_layout(language).manifest_names
    matches = [p for p in paths if PurePosixPath(p).name in names]
    return min(matches, key=lambda p: (p.count("/"), p)) if matches else None


def find_entry_file(paths, language: str) -> Optional[str]:
    """Best entry-point candidate: preferred basename first, then shallowest path"""
    layout = get_layout(language)
    candidates = []
    for path in paths:
        if is_test_file(path, language):
            continue
        name = PurePosixPath(path).name
        if name in layout.entry_candidates:
            candidates.append((layout.entry_candidates.index(name), path.count("/"), path))
    return min(candidates)[2] if candidates else None


def parse_dependencies(manifest_file: str, text: str) -> Dict[str, str]:
    """Parse a manifest into ``{name: version_spec}``; unparseable manifests yield ``{}``"""
    name = PurePosixPath(manifest_file).name
    if name == "package.json":
        try:
            data = json.loads(text)
        except ValueError:
            return {}
        if not isinstance(data, dict):
            return {}
        deps: Dict[str, str] = {}
        for section in ("dependencies", "devDependencies"):
            block = data.get(section)
            if isinstance(block, dict):
                deps.update({str(k): str(v) for k, v in block.items()})
        return deps

    if name == "requirements.txt":
        deps = {}
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line or line.startswith("-"):
                continue
            match = re.match(r'^([A-Za-z0-9][A-Za-z0-9._\-\[\]]*)\s*(.*)$', line)
            if match:
                deps[match.group(1)] = match.group(2).strip()
        return deps

    return {}


@dataclass(frozen=True)
class ProjectSpecification:
    """Structured outcome of the analyze stage"""
    project_name: str
    features: Tuple[str, ...]
    dependencies: Tuple[str, ...]
    architecture: str
    file_structure: Tuple[str, ...]
    test_strategy: str
    is_fallback: bool = False


@dataclass(frozen=True)
class ArtifactSet:
    """Read-only multi-file project produced by one generation attempt"""
    files: Mapping[str, str]
    entry_file: str
    manifest_file: str
    language: str
    test_files: Tuple[str, ...] = ()
    dependencies: Mapping[str, str] = field(default_factory=dict)
    is_fallback: bool = False

    def __post_init__(self):
        if not self.files:
            raise ValueError("ArtifactSet must contain at least one file")
        for role, path in (("entry", self.entry_file), ("manifest", self.manifest_file)):
            if path not in self.files:
                raise ValueError(f"ArtifactSet {role} file '{path}' is not among its files")
        missing_tests = [t for t in self.test_files if t not in self.files]
        if missing_tests:
            raise ValueError(f"ArtifactSet test files not among its files: {missing_tests}")
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))
        object.__setattr__(self, "dependencies", MappingProxyType(dict(self.dependencies)))
        object.__setattr__(self, "test_files", tuple(self.test_files))

    @classmethod
    def build(cls, files: Mapping[str, str], language: str, entry_file: str = None,
              manifest_file: str = None, is_fallback: bool = False) -> 'ArtifactSet':
        """Derive entry, manifest, tests and dependencies from the file layout"""
        paths = sorted(files.keys())
        entry_file = entry_file or find_entry_file(paths, language)
        manifest_file = manifest_file or find_manifest(paths, language)
        if entry_file is None or manifest_file is None:
            raise ValueError(f"Cannot build ArtifactSet without entry and manifest "
                             f"(entry={entry_file}, manifest={manifest_file})")
        return cls(
            files=files,
            entry_file=entry_file,
            manifest_file=manifest_file,
            language=language,
            test_files=tuple(p for p in paths if is_test_file(p, language)),
            dependencies=parse_dependencies(manifest_file, files[manifest_file]),
            is_fallback=is_fallback,
        )

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def total_lines(self) -> int:
        return sum(len(content.splitlines()) for content in self.files.values())

    def paths(self) -> List[str]:
        return sorted(self.files.keys())


_DRIVE_PATTERN = re.compile(r'^[A-Za-z]:')


def safe_relative_path(path: str) -> Optional[str]:
    """Normalized relative POSIX path, or None when the path could escape its root"""
    if not isinstance(path, str):
        return None
    candidate = path.strip().replace("\\", "/")
    if not candidate or "\x00" in candidate:
        return None
    if candidate.startswith("/") or _DRIVE_PATTERN.match(candidate):
        return None
    parts = [part for part in candidate.split("/") if part not in ("", ".")]
    if not parts or any(part == ".." for part in parts):
        return None
    return "/".join(parts)
