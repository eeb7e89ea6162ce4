"""Exceptions raised by the pure helpers of the deployer."""
from __future__ import annotations

from typing import Sequence

from src.runtime.issues import IssueCategory


class DeployError(Exception):
    """Base class for deployer failures that map onto one issue category."""

    category = IssueCategory.CONFIGURATION
    code = "DEPLOY_ERROR"


class ConfigurationError(DeployError):
    """Required settings are missing or invalid."""

    code = "CONFIG_INVALID"

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = list(problems)
        super().__init__("Invalid deploy configuration: " + "; ".join(self.problems))


class TemplateRenderError(DeployError):
    """A manifest template cannot be rendered into a concrete document."""

    category = IssueCategory.TEMPLATE
    code = "TEMPLATE_RENDER_FAILED"

    def __init__(self, message: str, *, source: str = "<template>") -> None:
        self.source = source
        super().__init__(f"{source}: {message}")


class UndefinedVariableError(TemplateRenderError):
    """The template references variables with no value and no fallback."""

    code = "TEMPLATE_UNDEFINED_VARIABLE"

    def __init__(self, names: Sequence[str], *, source: str = "<template>") -> None:
        self.names = sorted(set(names))
        super().__init__("undefined variables: " + ", ".join(self.names), source=source)
