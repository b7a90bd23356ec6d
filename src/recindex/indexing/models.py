"""Canonical data structures shared by the indexing pipeline and write strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator


class SchemaKind(str, Enum):
    """Metadata schema family a record was parsed as."""

    METS = "METS"
    METS_MARC = "METS_MARC"
    EAD = "EAD"
    EAD3 = "EAD3"
    LIDO = "LIDO"
    DUBLINCORE = "DUBLINCORE"


class DocumentKind(str, Enum):
    """Role of one node in the output hierarchy."""

    WORK = "work"
    ANCHOR = "anchor"
    VOLUME = "volume"
    STRUCTURE = "structure"
    PAGE = "page"


@dataclass(slots=True)
class StructuralDocument:
    """One node of the document tree handed to a write strategy."""

    pi: str
    kind: DocumentKind
    fields: dict[str, list[str]] = field(default_factory=dict)
    children: list["StructuralDocument"] = field(default_factory=list)
    anchor_pi: str | None = None
    parent_pi: str | None = None
    root_pi: str | None = None
    position: int = 0

    def add_field(self, name: str, value: str | None) -> None:
        if value is None:
            return
        value = str(value)
        if not value:
            return
        self.fields.setdefault(name, []).append(value)

    def set_field(self, name: str, value: str | None) -> None:
        self.fields.pop(name, None)
        self.add_field(name, value)

    def first(self, name: str) -> str | None:
        values = self.fields.get(name)
        return values[0] if values else None

    def add_child(self, child: "StructuralDocument") -> None:
        child.parent_pi = self.pi
        child.root_pi = self.root_pi or self.pi
        child.position = len(self.children)
        self.children.append(child)

    def iter_tree(self) -> Iterator["StructuralDocument"]:
        """Yield this node and all descendants in preorder (parents first)."""

        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_record(self) -> dict[str, object]:
        """Flat representation without children, used for spooling and storage."""

        return {
            "pi": self.pi,
            "kind": self.kind.value,
            "fields": {name: list(values) for name, values in self.fields.items()},
            "anchor_pi": self.anchor_pi,
            "parent_pi": self.parent_pi,
            "root_pi": self.root_pi,
            "position": self.position,
        }

    @classmethod
    def from_record(cls, data: dict[str, object]) -> "StructuralDocument":
        raw_fields = data.get("fields") or {}
        if not isinstance(raw_fields, dict):
            raise ValueError("Document fields must be a mapping")
        return cls(
            pi=str(data["pi"]),
            kind=DocumentKind(data["kind"]),
            fields={str(name): [str(value) for value in values] for name, values in raw_fields.items()},
            anchor_pi=data.get("anchor_pi"),  # type: ignore[arg-type]
            parent_pi=data.get("parent_pi"),  # type: ignore[arg-type]
            root_pi=data.get("root_pi"),  # type: ignore[arg-type]
            position=int(data.get("position") or 0),  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class AnchorLink:
    """Resolved volume to anchor relationship."""

    child_pi: str | None
    anchor_pi: str
    source_query: str
    source_index: int
    conflicts: list[str] = field(default_factory=list)


@dataclass(slots=True)
class StructureWarning:
    """Non-fatal problem recorded while decomposing a record."""

    locator: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.locator})"


@dataclass(slots=True)
class IndexingJob:
    """Input supplied by the hotfolder or CLI for one source file."""

    file_path: Path
    from_reindex_queue: bool = False
    data_folders: dict[str, Path] = field(default_factory=dict)
    page_count_start: int = 1
    download_external_images: bool = False


@dataclass(slots=True)
class IndexingResult:
    """Outcome of one pipeline run."""

    source_path: str
    pi: str | None = None
    schema_kind: SchemaKind | None = None
    identifiers: list[str] = field(default_factory=list)
    warnings: list[StructureWarning] = field(default_factory=list)
    error: str | None = None
    stage: str = "validate"
    from_reindex_queue: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, object]:
        return {
            "source_path": self.source_path,
            "pi": self.pi,
            "schema_kind": self.schema_kind.value if self.schema_kind is not None else None,
            "written": len(self.identifiers),
            "identifiers": list(self.identifiers),
            "warnings": [str(warning) for warning in self.warnings],
            "error": self.error,
            "stage": self.stage,
        }
