"""Built-in tools offered to the model in PromptWithTools mode.

Each tool is described by a ``ToolContract`` (name, description,
parameters) which providers translate into their own function-calling
schema, and implemented by an ``AgentTool`` whose ``execute`` receives the
decoded arguments and returns a JSON-serialisable result.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ..config import Config

logger = logging.getLogger("docsmith.llm.tools")

_TEST_MARKERS = ("test_", "_test.", ".test.", ".spec.", "/tests/", "/test/", "/__tests__/")


def is_ignored(config: Config, root: Path, path: Path) -> bool:
    """Whether *path* is skipped by the project's exclusion settings."""
    name = path.name.lower()
    try:
        rel_parts = path.relative_to(root).parts
    except ValueError:
        rel_parts = path.parts
    rel = "/" + "/".join(rel_parts).lower()
    excluded = {d.lower() for d in config.excluded_dirs}
    if any(part.lower() in excluded for part in rel_parts):
        return True
    if not config.include_hidden and name.startswith("."):
        return True
    if path.is_file():
        ext = path.suffix.lower().lstrip(".")
        if ext in config.excluded_extensions:
            return True
        if config.included_extensions and ext not in config.included_extensions:
            return True
        if not config.include_tests and any(m in rel or name.startswith(m) for m in _TEST_MARKERS):
            return True
        try:
            if path.stat().st_size > config.max_file_size:
                return True
        except OSError:
            return True
    return False


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class ToolParameter(BaseModel):
    """Schema for a single parameter of a tool."""
    name: str
    type: str                       # "string", "integer", "boolean"
    description: str = ""
    required: bool = True
    enum: list[str] | None = None


class ToolContract(BaseModel):
    """JSON-schema-style description of a tool."""
    name: str
    description: str = ""
    parameters: list[ToolParameter] = Field(default_factory=list)

    def json_schema(self) -> dict[str, Any]:
        """Parameters as a JSON-schema object."""
        props: dict[str, Any] = {}
        for p in self.parameters:
            prop: dict[str, Any] = {"type": p.type}
            if p.description:
                prop["description"] = p.description
            if p.enum:
                prop["enum"] = p.enum
            props[p.name] = prop
        return {
            "type": "object",
            "properties": props,
            "required": [p.name for p in self.parameters if p.required],
        }

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Return a list of validation errors (empty = valid)."""
        errors: list[str] = []
        for p in self.parameters:
            if p.required and p.name not in params:
                errors.append(f"Missing required parameter: {p.name}")
            if p.enum and p.name in params and params[p.name] not in p.enum:
                errors.append(
                    f"Parameter '{p.name}' must be one of {p.enum}, got '{params[p.name]}'"
                )
        return errors


class AgentTool(ABC):
    """A callable tool bound to its contract."""

    contract: ToolContract

    @property
    def name(self) -> str:
        return self.contract.name

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> Any:
        ...

    async def call(self, params: dict[str, Any]) -> Any:
        """Validate *params* then execute; errors are returned to the model."""
        errors = self.contract.validate_params(params)
        if errors:
            return {"error": "; ".join(errors)}
        try:
            return await self.execute(params)
        except (OSError, ValueError) as exc:
            logger.warning("Tool %s failed: %s", self.name, exc)
            return {"error": str(exc)}


# ---------------------------------------------------------------------------
# File explorer
# ---------------------------------------------------------------------------

class FileExplorerTool(AgentTool):
    """List directories, find files by pattern, and inspect single files."""

    contract = ToolContract(
        name="file_explorer",
        description=(
            "Explore the project file system. Actions: list_directory "
            "(optionally recursive), find_files (by name pattern such as "
            "'*.py' or 'config'), get_file_info (size and modification time)."
        ),
        parameters=[
            ToolParameter(
                name="action", type="string",
                enum=["list_directory", "find_files", "get_file_info"],
            ),
            ToolParameter(name="path", type="string", required=False,
                          description="Path relative to the project root"),
            ToolParameter(name="pattern", type="string", required=False,
                          description="File name pattern for find_files"),
            ToolParameter(name="recursive", type="boolean", required=False),
            ToolParameter(name="max_files", type="integer", required=False),
        ],
    )

    def __init__(self, config: Config) -> None:
        self._config = config
        self._root = Path(config.project_path)

    async def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        action = params["action"]
        if action == "list_directory":
            return self._list_directory(params)
        if action == "find_files":
            return self._find_files(params)
        return self._get_file_info(params)

    def _list_directory(self, params: dict[str, Any]) -> dict[str, Any]:
        target = self._root / params.get("path", "")
        if not target.exists():
            return {"insights": [f"Path does not exist: {params.get('path', '')}"]}
        recursive = bool(params.get("recursive", False))
        max_files = int(params.get("max_files", 100))

        files: list[dict[str, Any]] = []
        directories: list[str] = []
        for path in self._walk(target, max_depth=3 if recursive else 1):
            if path.is_dir():
                directories.append(self._relative(path))
            elif len(files) < max_files:
                files.append(self._file_info(path))
        return {
            "files": files,
            "directories": directories,
            "total_count": len(files),
            "file_types": _count_extensions(files),
        }

    def _find_files(self, params: dict[str, Any]) -> dict[str, Any]:
        pattern = params.get("pattern")
        if not pattern:
            raise ValueError("find_files requires a pattern")
        target = self._root / params.get("path", "")
        max_files = int(params.get("max_files", 100))

        files: list[dict[str, Any]] = []
        for path in self._walk(target, max_depth=5):
            if len(files) >= max_files:
                break
            if path.is_file() and _matches(path.name, pattern):
                files.append(self._file_info(path))
        return {
            "files": files,
            "total_count": len(files),
            "insights": [f"Pattern: {pattern}", f"Found {len(files)} matching files"],
        }

    def _get_file_info(self, params: dict[str, Any]) -> dict[str, Any]:
        rel = params.get("path")
        if not rel:
            raise ValueError("get_file_info requires a path")
        target = self._root / rel
        if not target.is_file():
            return {"insights": [f"Not a file: {rel}"]}
        if self._is_ignored(target):
            return {"insights": [f"File is ignored: {rel}"]}
        return {"files": [self._file_info(target)], "total_count": 1}

    # -- helpers ----------------------------------------------------------

    def _walk(self, base: Path, *, max_depth: int):
        base_depth = len(base.parts)
        for dirpath, dirnames, filenames in os.walk(base):
            current = Path(dirpath)
            depth = len(current.parts) - base_depth
            dirnames[:] = sorted(
                d for d in dirnames if not self._is_ignored(current / d)
            )
            if depth >= max_depth:
                dirnames[:] = []
            if current != base:
                yield current
            for name in sorted(filenames):
                path = current / name
                if not self._is_ignored(path):
                    yield path

    def _is_ignored(self, path: Path) -> bool:
        return is_ignored(self._config, self._root, path)

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self._root).as_posix()
        except ValueError:
            return path.as_posix()

    def _file_info(self, path: Path) -> dict[str, Any]:
        stat = path.stat()
        return {
            "path": self._relative(path),
            "size": stat.st_size,
            "extension": path.suffix.lstrip(".") or None,
            "last_modified": datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
        }


class FileReaderTool(AgentTool):
    """Read a text file (or a line range) from the project."""

    contract = ToolContract(
        name="file_reader",
        description="Read the content of a project file, optionally a line range.",
        parameters=[
            ToolParameter(name="file_path", type="string",
                          description="Path relative to the project root"),
            ToolParameter(name="start_line", type="integer", required=False),
            ToolParameter(name="end_line", type="integer", required=False),
            ToolParameter(name="max_lines", type="integer", required=False),
        ],
    )

    def __init__(self, config: Config) -> None:
        self._root = Path(config.project_path).resolve()

    async def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        target = (self._root / params["file_path"]).resolve()
        if self._root not in target.parents:
            raise ValueError("file_path must stay inside the project")
        if not target.is_file():
            return {"error": f"File not found: {params['file_path']}"}

        lines = target.read_text(encoding="utf-8", errors="replace").splitlines()
        start = max(int(params.get("start_line", 1)), 1)
        end = int(params.get("end_line", len(lines)))
        max_lines = int(params.get("max_lines", 200))
        selected = lines[start - 1:min(end, start - 1 + max_lines)]
        return {
            "file_path": params["file_path"],
            "total_lines": len(lines),
            "start_line": start,
            "content": "\n".join(selected),
        }


class TimeTool(AgentTool):
    """Return the current UTC time."""

    contract = ToolContract(
        name="time",
        description="Get the current date and time (UTC).",
        parameters=[
            ToolParameter(name="format", type="string", required=False,
                          description="strftime format, default %Y-%m-%d %H:%M:%S"),
        ],
    )

    async def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        fmt = params.get("format") or "%Y-%m-%d %H:%M:%S"
        return {
            "current_time": now.strftime(fmt),
            "timestamp": int(now.timestamp()),
            "utc_time": now.isoformat(),
        }


def preset_tools(config: Config) -> list[AgentTool]:
    """The tools handed to PromptWithTools calls."""
    if config.llm.disable_preset_tools:
        return []
    return [FileExplorerTool(config), FileReaderTool(config), TimeTool()]


def _matches(name: str, pattern: str) -> bool:
    if any(ch in pattern for ch in "*?["):
        return fnmatch.fnmatch(name.lower(), pattern.lower())
    return pattern.lower() in name.lower()


def _count_extensions(files: list[dict[str, Any]]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for f in files:
        ext = f.get("extension")
        if ext:
            counts[ext] = counts.get(ext, 0) + 1
    return counts
