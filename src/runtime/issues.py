"""Shared issue representation for runtime operations."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Literal, Optional

IssueSeverity = Literal["error", "warning", "info"]


class IssueCategory(Enum):
    """Which stage of the pipeline an issue belongs to."""

    CONFIGURATION = "configuration"
    BUILD = "build"
    REGISTRY = "registry"
    TEMPLATE = "template"
    CLUSTER = "cluster"


@dataclass(slots=True)
class RuntimeIssue:
    """Lightweight issue representation for runtime operations."""

    code: str
    message: str
    category: IssueCategory
    severity: IssueSeverity = "error"
    subject: Optional[str] = None
    details: Optional[str] = None

    def is_error(self) -> bool:
        """Return True when the issue is considered an error."""
        return self.severity == "error"


def has_errors(issues: Iterable[RuntimeIssue]) -> bool:
    return any(issue.is_error() for issue in issues)
