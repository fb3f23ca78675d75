"""Preprocessing: deterministic project facts for the research agents.

Walks the project with the configured exclusion rules and stores four
entries under the ``preprocess`` memory scope:

- ``project_structure``: files, directories and size/type statistics
- ``original_document``: the README text, if any
- ``code_insights``: one heuristic ``CodeInsight`` per source file
- ``relationships``: internal import edges between source files

No model calls happen here.
"""

from __future__ import annotations

import logging
import math
import os
import re
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from rich.console import Console

from .agents.context import GeneratorContext, MemoryScope, ScopedKeys
from .config import Config
from .llm.tools import is_ignored
from .models import (
    ArchitectureLayer,
    CodeComplexity,
    CodeDossier,
    CodeInsight,
    CodePurpose,
    CoreDependency,
    Dependency,
    DependencyType,
    DirectoryInfo,
    FileInfo,
    InterfaceInfo,
    ParameterInfo,
    ProjectStructure,
    RelationshipAnalysis,
)

logger = logging.getLogger("docsmith.preprocess")
console = Console()

MAX_CODE_INSIGHTS = 300
SUMMARY_MAX_LINES = 60
README_NAMES = ("README.md", "readme.md", "Readme.md", "README.rst", "README.txt", "README")

SOURCE_EXTENSIONS = {
    "py", "js", "jsx", "ts", "tsx", "mjs", "vue", "svelte", "go", "rs", "java",
    "kt", "scala", "rb", "php", "cs", "c", "h", "cpp", "hpp", "swift",
}

# ---------------------------------------------------------------------------
# Purpose classification
# ---------------------------------------------------------------------------

# Checked in order; the first match wins.
_PURPOSE_RULES: list[tuple[CodePurpose, tuple[str, ...]]] = [
    (CodePurpose.TEST, ("/tests/", "/test/", "test_", "_test.", ".test.", ".spec.")),
    (CodePurpose.ENTRY, ("main.", "__main__.", "app.", "index.", "server.", "cli.", "lib.rs", "manage.py")),
    (CodePurpose.ROUTER, ("router", "routes", "urls.")),
    (CodePurpose.CONTROLLER, ("controller", "handler", "views.")),
    (CodePurpose.API, ("/api/", "api.", "endpoint")),
    (CodePurpose.MIDDLEWARE, ("middleware",)),
    (CodePurpose.CONFIG, ("config", "settings", ".env", "constants")),
    (CodePurpose.DATABASE, ("/db/", "database", "repository", "migration", "schema")),
    (CodePurpose.MODEL, ("/models/", "model.", "models.", "entity", "entities")),
    (CodePurpose.TYPES, ("types.", "/types/", "interfaces", ".d.ts")),
    (CodePurpose.SERVICE, ("service",)),
    (CodePurpose.AGENT, ("agent",)),
    (CodePurpose.PLUGIN, ("plugin", "extension")),
    (CodePurpose.PAGE, ("/pages/", "/page/", "/views/", "/screens/")),
    (CodePurpose.WIDGET, ("/components/", "/widgets/", "/ui/")),
    (CodePurpose.TOOL, ("/tools/", "tool.")),
    (CodePurpose.UTIL, ("util", "helper", "common")),
    (CodePurpose.LIB, ("/lib/", "/pkg/")),
]

_PURPOSE_WEIGHT: dict[CodePurpose, float] = {
    CodePurpose.ENTRY: 3.0,
    CodePurpose.API: 2.5,
    CodePurpose.ROUTER: 2.5,
    CodePurpose.CONTROLLER: 2.5,
    CodePurpose.SERVICE: 2.0,
    CodePurpose.AGENT: 2.0,
    CodePurpose.MODEL: 2.0,
    CodePurpose.DATABASE: 2.0,
    CodePurpose.CONFIG: 1.5,
    CodePurpose.MIDDLEWARE: 1.5,
    CodePurpose.MODULE: 1.5,
    CodePurpose.TYPES: 1.0,
    CodePurpose.TEST: -1.0,
    CodePurpose.DOC: -1.0,
}


def classify_purpose(rel_path: str) -> CodePurpose:
    """Guess the role of a file from its path and name."""
    probe = "/" + rel_path.lower()
    name = PurePosixPath(probe).name
    for purpose, markers in _PURPOSE_RULES:
        for marker in markers:
            if marker.startswith("/"):
                hit = marker in probe
            elif marker[0].isalpha() and marker[-1] in "._":
                # "main." must not match "domain.py"
                hit = name.startswith(marker)
            else:
                hit = marker in name
            if hit:
                return purpose
    if name in ("__init__.py", "mod.rs"):
        return CodePurpose.MODULE
    return CodePurpose.OTHER


def importance_score(info: FileInfo, purpose: CodePurpose) -> float:
    """Score in [0, 10]: purpose weight, size and how close to the root."""
    depth = len(PurePosixPath(info.path).parts) - 1
    score = 4.0 + _PURPOSE_WEIGHT.get(purpose, 0.0)
    score += min(math.log10(info.line_count + 1), 3.0)
    score -= min(depth * 0.3, 2.0)
    return round(max(0.0, min(score, 10.0)), 2)


# ---------------------------------------------------------------------------
# Source scanning
# ---------------------------------------------------------------------------

_INTERFACE_PATTERNS: dict[str, list[tuple[str, re.Pattern[str]]]] = {
    "py": [
        ("class", re.compile(r"^\s*class\s+(\w+)")),
        ("function", re.compile(r"^\s*(?:async\s+)?def\s+(\w+)\s*\(([^)]*)")),
    ],
    "js": [
        ("class", re.compile(r"^\s*(?:export\s+)?(?:default\s+)?class\s+(\w+)")),
        ("function", re.compile(r"^\s*(?:export\s+)?(?:async\s+)?function\s*\*?\s*(\w+)\s*\(([^)]*)")),
        ("function", re.compile(r"^\s*(?:export\s+)?const\s+(\w+)\s*=\s*(?:async\s*)?\(([^)]*)\)\s*=>")),
        ("interface", re.compile(r"^\s*(?:export\s+)?(?:interface|type)\s+(\w+)")),
    ],
    "rs": [
        ("struct", re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:struct|enum|trait)\s+(\w+)")),
        ("function", re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+(\w+)\s*(?:<[^>]*>)?\(([^)]*)")),
    ],
    "go": [
        ("struct", re.compile(r"^\s*type\s+(\w+)\s+(?:struct|interface)")),
        ("function", re.compile(r"^\s*func\s+(?:\([^)]*\)\s*)?(\w+)\s*\(([^)]*)")),
    ],
    "java": [
        ("class", re.compile(r"^\s*(?:public\s+|private\s+|protected\s+)?(?:abstract\s+|final\s+)?(?:class|interface|enum)\s+(\w+)")),
        ("method", re.compile(r"^\s*(?:public|private|protected)\s+(?:static\s+)?[\w<>\[\], ]+\s+(\w+)\s*\(([^)]*)")),
    ],
}
for _alias, _lang in (("jsx", "js"), ("ts", "js"), ("tsx", "js"), ("mjs", "js"), ("vue", "js"),
                      ("svelte", "js"), ("kt", "java"), ("scala", "java"), ("cs", "java")):
    _INTERFACE_PATTERNS[_alias] = _INTERFACE_PATTERNS[_lang]

_IMPORT_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "py": [
        re.compile(r"^\s*from\s+([.\w]+)\s+import"),
        re.compile(r"^\s*import\s+([\w.]+)"),
    ],
    "js": [
        re.compile(r"""^\s*import\s+(?:[^'"]*?\s+from\s+)?['"]([^'"]+)['"]"""),
        re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)"""),
    ],
    "rs": [re.compile(r"^\s*(?:pub\s+)?(?:use|mod)\s+([\w:]+)")],
    "go": [re.compile(r"""^\s*(?:import\s+)?(?:\w+\s+)?"([\w./-]+)"\s*$""")],
    "java": [re.compile(r"^\s*import\s+(?:static\s+)?([\w.]+)")],
}
for _alias, _lang in (("jsx", "js"), ("ts", "js"), ("tsx", "js"), ("mjs", "js"), ("vue", "js"),
                      ("svelte", "js"), ("kt", "java"), ("scala", "java")):
    _IMPORT_PATTERNS[_alias] = _IMPORT_PATTERNS[_lang]

_SCRIPT_SUFFIX_RE = re.compile(r"\.(?:js|jsx|ts|tsx|mjs)$")
_BRANCH_RE = re.compile(r"\b(if|elif|else if|for|while|case|catch|except|match)\b|&&|\|\|")


def extract_interfaces(text: str, ext: str) -> list[InterfaceInfo]:
    interfaces: list[InterfaceInfo] = []
    for lineno, line in enumerate(text.splitlines(), 1):
        for kind, pattern in _INTERFACE_PATTERNS.get(ext, []):
            m = pattern.match(line)
            if not m:
                continue
            name = m.group(1)
            params = m.group(2) if m.lastindex and m.lastindex >= 2 else ""
            interfaces.append(InterfaceInfo(
                name=name,
                interface_type=kind,
                visibility="private" if name.startswith("_") else "public",
                parameters=[
                    ParameterInfo(name=p.split(":")[0].split("=")[0].strip())
                    for p in params.split(",") if p.strip()
                ],
                line_number=lineno,
            ))
            break
    return interfaces


def extract_imports(text: str, ext: str) -> list[Dependency]:
    deps: list[Dependency] = []
    seen: set[str] = set()
    for lineno, line in enumerate(text.splitlines(), 1):
        for pattern in _IMPORT_PATTERNS.get(ext, []):
            m = pattern.search(line)
            if m and m.group(1) not in seen:
                seen.add(m.group(1))
                target = m.group(1)
                deps.append(Dependency(
                    name=target,
                    is_external=not target.startswith((".", "crate", "super", "self", "/", "@/")),
                    line_number=lineno,
                ))
                break
    return deps


def summarize_source(text: str, interfaces: list[InterfaceInfo], max_lines: int = SUMMARY_MAX_LINES) -> str:
    """Head of the file plus the declarations found further down."""
    lines = text.splitlines()
    head = "\n".join(lines[:max_lines])
    if len(lines) <= max_lines:
        return head
    later = [lines[i.line_number - 1].strip() for i in interfaces
             if i.line_number and i.line_number > max_lines]
    parts = [head, f"... ({len(lines) - max_lines} more lines)"]
    if later:
        parts.append("\n".join(later[:30]))
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

class ProjectScanner:
    """Walk a project directory and derive the preprocess facts."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._root = Path(config.project_path).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _walk(self):
        for dirpath, dirnames, filenames in os.walk(self._root):
            current = Path(dirpath)
            dirnames[:] = sorted(d for d in dirnames if not is_ignored(self._config, self._root, current / d))
            yield current, [current / f for f in sorted(filenames)
                            if not is_ignored(self._config, self._root, current / f)]

    # ------------------------------------------------------------------
    # project_structure
    # ------------------------------------------------------------------
    def scan_structure(self) -> ProjectStructure:
        files: list[FileInfo] = []
        directories: list[DirectoryInfo] = []
        for current, paths in self._walk():
            infos = [self._file_info(p) for p in paths]
            files.extend(infos)
            if current != self._root:
                directories.append(DirectoryInfo(
                    path=current.relative_to(self._root).as_posix(),
                    name=current.name,
                    file_count=len(infos),
                    subdirectory_count=sum(1 for c in current.iterdir() if c.is_dir()),
                    total_size=sum(i.size for i in infos),
                ))

        file_types = Counter(f.extension or "none" for f in files)
        size_distribution = Counter(_size_bucket(f.size) for f in files)
        logger.info("Scanned %d files in %d directories", len(files), len(directories))
        return ProjectStructure(
            project_name=self._config.get_project_name(),
            root_path=str(self._root),
            files=files,
            directories=directories,
            total_files=len(files),
            total_directories=len(directories),
            file_types=dict(file_types),
            size_distribution=dict(size_distribution),
        )

    def _file_info(self, path: Path) -> FileInfo:
        stat = path.stat()
        rel = path.relative_to(self._root).as_posix()
        ext = path.suffix.lower().lstrip(".") or None
        line_count = 0
        if ext in SOURCE_EXTENSIONS or ext in ("md", "toml", "json", "yaml", "yml"):
            line_count = len(self._read(path).splitlines())
        info = FileInfo(
            path=rel,
            name=path.name,
            size=stat.st_size,
            extension=ext,
            line_count=line_count,
            last_modified=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
        )
        purpose = classify_purpose(rel)
        info.importance_score = importance_score(info, purpose)
        info.is_core = ext in SOURCE_EXTENSIONS and info.importance_score >= 6.0
        return info

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return ""

    # ------------------------------------------------------------------
    # original_document
    # ------------------------------------------------------------------
    def read_readme(self) -> str | None:
        for name in README_NAMES:
            candidate = self._root / name
            if candidate.is_file():
                return self._read(candidate)
        return None

    # ------------------------------------------------------------------
    # code_insights
    # ------------------------------------------------------------------
    def build_code_insights(self, structure: ProjectStructure) -> list[CodeInsight]:
        sources = [f for f in structure.files if f.extension in SOURCE_EXTENSIONS]
        sources.sort(key=lambda f: f.importance_score, reverse=True)
        insights = [self._insight(f) for f in sources[:MAX_CODE_INSIGHTS]]
        if len(sources) > MAX_CODE_INSIGHTS:
            logger.info("Kept %d of %d source files as code insights", MAX_CODE_INSIGHTS, len(sources))
        return insights

    def _insight(self, info: FileInfo) -> CodeInsight:
        text = self._read(self._root / info.path)
        ext = info.extension or ""
        interfaces = extract_interfaces(text, ext)
        imports = extract_imports(text, ext)
        purpose = classify_purpose(info.path)
        functions = [i.name for i in interfaces if i.interface_type in ("function", "method")]
        types = [i.name for i in interfaces if i.interface_type not in ("function", "method")]
        description = f"{purpose.display_name} ({info.line_count} lines)"
        if types:
            description += f", defines {', '.join(types[:5])}"
        return CodeInsight(
            code_dossier=CodeDossier(
                name=info.name,
                file_path=info.path,
                source_summary=summarize_source(text, interfaces),
                code_purpose=purpose,
                importance_score=info.importance_score,
                functions=functions,
                interfaces=types,
            ),
            detailed_description=description,
            interfaces=interfaces,
            dependencies=imports,
            complexity_metrics=CodeComplexity(
                cyclomatic_complexity=1.0 + len(_BRANCH_RE.findall(text)),
                lines_of_code=info.line_count,
                number_of_functions=len(functions),
                number_of_classes=len(types),
            ),
        )

    # ------------------------------------------------------------------
    # relationships
    # ------------------------------------------------------------------
    def build_relationships(self, insights: list[CodeInsight]) -> RelationshipAnalysis:
        """Resolve imports to project files and group files into layers."""
        by_module = {_module_key(i.code_dossier.file_path): i.code_dossier.file_path for i in insights}
        incoming: Counter[str] = Counter()
        edges: list[CoreDependency] = []

        for insight in insights:
            source = insight.code_dossier.file_path
            for dep in insight.dependencies:
                target = _resolve(dep.name, source, by_module)
                if target is None or target == source:
                    continue
                dep.path = target
                dep.is_external = False
                incoming[target] += 1
                edges.append(CoreDependency(from_=source, to=target, dependency_type=DependencyType.IMPORT))

        for edge in edges:
            edge.importance = min(1 + incoming[edge.to], 10)

        layers: dict[str, list[str]] = {}
        for insight in insights:
            top = PurePosixPath(insight.code_dossier.file_path).parts
            layers.setdefault(top[0] if len(top) > 1 else "(root)", []).append(insight.code_dossier.file_path)

        key_insights = [f"{len(edges)} internal import edges between {len(insights)} source files"]
        if incoming:
            hub, count = incoming.most_common(1)[0]
            key_insights.append(f"Most imported file: {hub} ({count} importers)")
        return RelationshipAnalysis(
            core_dependencies=edges,
            architecture_layers=[
                ArchitectureLayer(name=name, components=components, level=level)
                for level, (name, components) in enumerate(sorted(layers.items()))
            ],
            key_insights=key_insights,
        )


def _size_bucket(size: int) -> str:
    if size < 1024:
        return "small (<1KB)"
    if size < 10 * 1024:
        return "medium (1-10KB)"
    if size < 100 * 1024:
        return "large (10-100KB)"
    return "very_large (>100KB)"


def _module_key(path: str) -> str:
    """``src/pkg/mod.py`` -> ``src/pkg/mod``; index/__init__ map to the package."""
    p = PurePosixPath(path)
    stem = p.with_suffix("")
    if p.stem in ("__init__", "index", "mod"):
        stem = p.parent
    return stem.as_posix()


def _resolve(name: str, source: str, by_module: dict[str, str]) -> str | None:
    """Map an import string to a project file, if it names one."""
    base = PurePosixPath(source).parent
    if name.startswith("."):
        # relative import: "./x", "../x" or python ".x", "..x"
        if "/" in name:
            candidate = os.path.normpath((base / name).as_posix()).replace("\\", "/")
            candidate = _SCRIPT_SUFFIX_RE.sub("", candidate)
        else:
            dots = len(name) - len(name.lstrip("."))
            parent = base
            for _ in range(dots - 1):
                parent = parent.parent
            rest = name.lstrip(".").replace(".", "/")
            candidate = (parent / rest).as_posix() if rest else parent.as_posix()
        return by_module.get(candidate)

    dotted = name.replace("::", "/").replace(".", "/")
    for key, path in by_module.items():
        if key == dotted or key.endswith("/" + dotted):
            return path
    return None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run_preprocess(ctx: GeneratorContext) -> None:
    """Scan the project and store the results in the ``preprocess`` scope."""
    scanner = ProjectScanner(ctx.config)
    console.print(f"[bold]Preprocessing[/bold] {scanner.root}")

    structure = scanner.scan_structure()
    ctx.store_to_memory(MemoryScope.PREPROCESS, ScopedKeys.PROJECT_STRUCTURE, structure)
    console.print(
        f"   [green]✓[/] {structure.total_files} files, {structure.total_directories} directories"
    )

    readme = scanner.read_readme()
    if readme:
        ctx.store_to_memory(MemoryScope.PREPROCESS, ScopedKeys.ORIGINAL_DOCUMENT, readme)
    else:
        console.print("   [dim]No README found[/dim]")

    insights = scanner.build_code_insights(structure)
    ctx.store_to_memory(MemoryScope.PREPROCESS, ScopedKeys.CODE_INSIGHTS, insights)

    relationships = scanner.build_relationships(insights)
    ctx.store_to_memory(MemoryScope.PREPROCESS, ScopedKeys.RELATIONSHIPS, relationships)
    console.print(
        f"   [green]✓[/] {len(insights)} code insights, "
        f"{len(relationships.core_dependencies)} internal dependencies"
    )
