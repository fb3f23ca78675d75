"""Documents produced by the compose tier and where they are written."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DocType(str, Enum):
    OVERVIEW = "Overview"
    ARCHITECTURE = "Architecture"
    WORKFLOW = "Workflow"
    BOUNDARY = "Boundary"
    CODE_INDEX = "CodeIndex"

    def __str__(self) -> str:
        return self.value

    @property
    def filename(self) -> str:
        return _FILENAMES[self]


_FILENAMES = {
    DocType.OVERVIEW: "1.Overview.md",
    DocType.ARCHITECTURE: "2.Architecture.md",
    DocType.WORKFLOW: "3.Workflow.md",
    DocType.BOUNDARY: "5.Boundary-Interfaces.md",
    DocType.CODE_INDEX: "6.Code-Index.md",
}

DEEP_EXPLORATION_DIR = "4.Deep-Exploration"


@dataclass
class DocTree:
    """Documentation memory key → output path relative to the output dir."""
    structure: dict[str, str] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "DocTree":
        return cls({doc.value: doc.filename for doc in DocType})

    def insert(self, key: str, relative_path: str) -> None:
        self.structure[key] = relative_path

    def items(self):
        return self.structure.items()
