from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

from plan_kernel.core.model import PlanNode


class ContentStore(Protocol):
    """Answers whether a narrative document exists for a node."""

    def exists(self, kind: str, node_id: str) -> bool: ...

    def relative_path(self, kind: str, node_id: str) -> str: ...


@dataclass(frozen=True)
class FileContentStore:
    """Narrative documents on disk at <root>/<kind>/<id><extension>."""

    root: Path
    extension: str = ".mdx"
    display_root: str = "content"

    def path_for(self, kind: str, node_id: str) -> Path:
        return self.root / kind / f"{node_id}{self.extension}"

    def relative_path(self, kind: str, node_id: str) -> str:
        return f"{self.display_root}/{kind}/{node_id}{self.extension}"

    def exists(self, kind: str, node_id: str) -> bool:
        return self.path_for(kind, node_id).is_file()

    def read(self, node: PlanNode) -> str:
        return self.path_for(node.kind, node.id).read_text(encoding="utf-8")


@dataclass(frozen=True)
class InMemoryContentStore:
    keys: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    extension: str = ".mdx"

    @classmethod
    def for_nodes(cls, nodes: Iterable[PlanNode]) -> "InMemoryContentStore":
        return cls(keys=frozenset((n.kind, n.id) for n in nodes))

    def without(self, kind: str, node_id: str) -> "InMemoryContentStore":
        return InMemoryContentStore(keys=self.keys - {(kind, node_id)}, extension=self.extension)

    def relative_path(self, kind: str, node_id: str) -> str:
        return f"content/{kind}/{node_id}{self.extension}"

    def exists(self, kind: str, node_id: str) -> bool:
        return (kind, node_id) in self.keys
