"""Runtime helpers for building images and deploying them to Kubernetes."""

from .docker import DockerBuildResult, DockerImageBuilder, DockerPushResult
from .dockerfile import render_dockerfile
from .kubernetes import AppliedResource, KubernetesDeployer, ManifestApplyResult, parse_apply_output
from .issues import IssueCategory, IssueSeverity, RuntimeIssue, has_errors

__all__ = [
    "DockerImageBuilder",
    "DockerBuildResult",
    "DockerPushResult",
    "render_dockerfile",
    "KubernetesDeployer",
    "ManifestApplyResult",
    "AppliedResource",
    "parse_apply_output",
    "RuntimeIssue",
    "IssueCategory",
    "IssueSeverity",
    "has_errors",
]
