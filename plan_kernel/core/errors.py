from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlanError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    node_id: Optional[str] = None
    file: Optional[str] = None

    def __str__(self) -> str:
        if self.node_id:
            return f"[{self.node_id}] {self.message}"
        if self.file:
            return f"{self.file}: {self.code}: {self.message}"
        return f"<plan>: {self.code}: {self.message}"

    def to_item(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "node_id": self.node_id,
            "file": self.file,
            "severity": "error",
            "source": self.source,
        }

    @property
    def source(self) -> str:
        return "plan"


class PlanLoadError(PlanError):
    @property
    def source(self) -> str:
        return "load"


@dataclass(frozen=True)
class PlanBuildError(PlanError):
    """Raised by the graph builder on the first malformed or dangling definition."""

    kind: Optional[str] = None
    field: Optional[str] = None
    reference: Optional[str] = None
    expected_kind: Optional[str] = None

    @property
    def source(self) -> str:
        return "build"


class PlanValidationError(PlanError):
    @property
    def source(self) -> str:
        return "validate"


class PlanLintError(PlanError):
    @property
    def source(self) -> str:
        return "lint"
