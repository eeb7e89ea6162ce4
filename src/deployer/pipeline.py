from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from src.common.command_runner import CommandRunner
from src.common.models import BuildMetrics, ImageReference
from src.runtime import AppliedResource, RuntimeIssue, has_errors

from .config import DeployerConfig
from .report import ServiceEndpoint
from .tagging import generate_image_tag


@dataclass(slots=True)
class DeployContext:
    """Static context shared across deploy steps."""

    config: DeployerConfig
    command_runner: CommandRunner
    logger: logging.Logger
    environ: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class DeployState:
    """Mutable state that flows through the deploy pipeline.

    ``image`` carries the run's tag. It is set once by ``create_state`` and
    every step that needs the tag reads it from here.
    """

    image: ImageReference
    build_metrics: Optional[BuildMetrics] = None
    rendered_manifest: Optional[str] = None
    applied_resources: List[AppliedResource] = field(default_factory=list)
    endpoints: List[ServiceEndpoint] = field(default_factory=list)
    issues: List[RuntimeIssue] = field(default_factory=list)
    completed_steps: List[str] = field(default_factory=list)
    step_metadata: Dict[str, Dict[str, object]] = field(default_factory=dict)

    @property
    def tag(self) -> str:
        return self.image.tag


@dataclass(slots=True)
class StepResult:
    """Outcome of executing a single deploy step."""

    issues: List[RuntimeIssue] = field(default_factory=list)
    continue_pipeline: bool = True
    exit_code: int = 0
    metadata: Optional[Dict[str, object]] = None

    @property
    def failed(self) -> bool:
        return has_errors(self.issues) or not self.continue_pipeline


class DeployStep(Protocol):
    """Protocol implemented by all deploy steps."""

    name: str

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        ...


@dataclass(slots=True)
class DeployPipelineResult:
    """Aggregate result returned by the deploy pipeline."""

    state: DeployState
    issues: List[RuntimeIssue]
    step_issues: Dict[str, List[RuntimeIssue]]
    failed_step: Optional[str] = None
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.failed_step is None


def create_state(config: DeployerConfig, now: Optional[datetime] = None) -> DeployState:
    """Start a run: generate its tag exactly once."""
    return DeployState(image=config.image_reference(generate_image_tag(now)))


class DeployPipeline:
    """Run deploy steps in order and stop at the first failure.

    Nothing is retried or rolled back; whatever earlier steps produced stays
    in place.
    """

    def __init__(self, steps: Sequence[DeployStep]) -> None:
        self.steps = list(steps)

    def run(self, state: DeployState, context: DeployContext) -> DeployPipelineResult:
        step_issues: Dict[str, List[RuntimeIssue]] = {}

        for step in self.steps:
            context.logger.debug("Running deploy step: %s", step.name)
            result = step.run(state, context)
            state.issues.extend(result.issues)
            step_issues[step.name] = list(result.issues)
            if result.metadata is not None:
                state.step_metadata[step.name] = result.metadata

            if result.failed:
                exit_code = result.exit_code or 1
                context.logger.error("Step %s failed; stopping pipeline (exit code %d)", step.name, exit_code)
                return DeployPipelineResult(
                    state=state,
                    issues=list(state.issues),
                    step_issues=step_issues,
                    failed_step=step.name,
                    exit_code=exit_code,
                )

            state.completed_steps.append(step.name)

        return DeployPipelineResult(
            state=state,
            issues=list(state.issues),
            step_issues=step_issues,
        )
