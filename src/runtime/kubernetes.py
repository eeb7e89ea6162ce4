"""Kubernetes apply helper for rendered manifests."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from src.common.command_runner import CommandResult, CommandRunner

from .issues import IssueCategory, RuntimeIssue, has_errors

# kubectl prints one line per object, e.g. "deployment.apps/app configured"
_APPLY_LINE = re.compile(r"^(?P<kind>[\w.-]+)/(?P<name>[\w.-]+)\s+(?P<action>\w[\w ]*?)(?:\s+\(.*\))?$")


@dataclass(slots=True)
class AppliedResource:
    """Represents a Kubernetes resource accepted by the cluster."""

    kind: str
    name: str
    action: str  # "created" | "configured" | "unchanged" | ...

    @property
    def created(self) -> bool:
        return self.action == "created"


@dataclass(slots=True)
class ManifestApplyResult:
    """Outcome of applying a manifest."""

    issues: List[RuntimeIssue]
    resources: List[AppliedResource] = field(default_factory=list)
    command_result: Optional[CommandResult] = None

    @property
    def success(self) -> bool:
        return not has_errors(self.issues)

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return self.command_result.exit_code if self.command_result else 1


class KubernetesDeployer:
    """Submit rendered manifests to the cluster with create-or-update semantics."""

    def __init__(
        self,
        *,
        command_runner: CommandRunner,
        context: Optional[str] = None,
        namespace: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.command_runner = command_runner
        self.context = context
        self.namespace = namespace
        self.logger = logger or logging.getLogger(__name__)

    def apply(self, manifest: str, *, source: str = "-") -> ManifestApplyResult:
        """
        Pipe ``manifest`` to ``kubectl apply -f -``.

        Success means the control plane accepted the desired state; no
        readiness wait follows.
        """
        issues: List[RuntimeIssue] = []

        if not manifest.strip():
            issues.append(
                RuntimeIssue(
                    code="K8S_MANIFEST_EMPTY",
                    message="Rendered manifest is empty; nothing to apply",
                    category=IssueCategory.CLUSTER,
                    subject=source,
                )
            )
            return ManifestApplyResult(issues=issues)

        self.logger.info("Applying manifest %s%s", source, f" to namespace {self.namespace}" if self.namespace else "")
        result = self.command_runner.run(self._apply_command(), input=manifest)

        if not result.tool_available:
            issues.append(
                RuntimeIssue(
                    code="K8S_APPLY_ERROR",
                    message="kubectl not available - cannot apply manifest",
                    category=IssueCategory.CLUSTER,
                    subject=source,
                )
            )
        elif result.timed_out:
            issues.append(
                RuntimeIssue(
                    code="K8S_APPLY_TIMEOUT",
                    message="kubectl apply timed out",
                    category=IssueCategory.CLUSTER,
                    subject=source,
                )
            )
        elif not result.succeeded():
            issues.append(
                RuntimeIssue(
                    code="K8S_APPLY_FAILED",
                    message=f"kubectl apply failed: {result.error_output()}",
                    category=IssueCategory.CLUSTER,
                    subject=source,
                )
            )
            self.logger.error("kubectl apply failed for %s: %s", source, result.error_output())
        else:
            resources = parse_apply_output(result.stdout)
            for resource in resources:
                self.logger.info("%s/%s %s", resource.kind, resource.name, resource.action)
            self.logger.info("Successfully applied %s", source)
            return ManifestApplyResult(issues=issues, resources=resources, command_result=result)

        return ManifestApplyResult(issues=issues, command_result=result)

    def _apply_command(self) -> List[str]:
        command = ["kubectl"]
        if self.context:
            command.extend(["--context", self.context])
        command.extend(["apply", "-f", "-"])
        if self.namespace:
            command.extend(["-n", self.namespace])
        return command


def parse_apply_output(stdout: str) -> List[AppliedResource]:
    """Parse ``kubectl apply`` output lines into applied resources."""
    resources: List[AppliedResource] = []
    for line in stdout.splitlines():
        match = _APPLY_LINE.match(line.strip())
        if match:
            resources.append(
                AppliedResource(
                    kind=match.group("kind"),
                    name=match.group("name"),
                    action=match.group("action").strip(),
                )
            )
    return resources
