"""Docker build, tag and push helpers for the runtime image."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import requests
from requests import RequestException

from src.common.command_runner import CommandResult, CommandRunner
from src.common.models import BuildMetrics, ImageReference, RuntimeImageSpec

from .dockerfile import render_dockerfile
from .issues import IssueCategory, RuntimeIssue, has_errors


@dataclass(slots=True)
class DockerBuildResult:
    """Outcome of building the runtime image locally."""

    image: ImageReference
    issues: List[RuntimeIssue]
    command_result: Optional[CommandResult] = None

    @property
    def success(self) -> bool:
        return not has_errors(self.issues)

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return self.command_result.exit_code if self.command_result else 1


@dataclass(slots=True)
class DockerPushResult:
    """Outcome of tagging or pushing the runtime image."""

    image: ImageReference
    issues: List[RuntimeIssue]
    command_result: Optional[CommandResult] = None

    @property
    def success(self) -> bool:
        return not has_errors(self.issues)

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return self.command_result.exit_code if self.command_result else 1


class DockerImageBuilder:
    """Build the runtime image and publish it to a registry."""

    def __init__(self, command_runner: CommandRunner, logger: Optional[logging.Logger] = None) -> None:
        self.command_runner = command_runner
        self.logger = logger or logging.getLogger(__name__)

    def build(
        self,
        *,
        context_dir: Path,
        spec: RuntimeImageSpec,
        image: ImageReference,
        dockerfile: Optional[Path] = None,
    ) -> DockerBuildResult:
        """
        Build the image and tag it with its local name only.

        Args:
            context_dir: Source tree sent as the build context.
            spec: Runtime image description used to render the build definition.
            image: Reference whose ``local_name`` the build is tagged with.
            dockerfile: Existing build definition to use instead of the rendered one.
        """
        issues: List[RuntimeIssue] = []

        if not context_dir.is_dir():
            issues.append(
                RuntimeIssue(
                    code="DOCKER_BUILD_CONTEXT_NOT_FOUND",
                    message=f"Build context directory not found at {context_dir}",
                    category=IssueCategory.BUILD,
                    subject=str(context_dir),
                )
            )
            return DockerBuildResult(image=image, issues=issues)

        build_input: Optional[str] = None
        if dockerfile is not None:
            if not dockerfile.is_file():
                issues.append(
                    RuntimeIssue(
                        code="DOCKER_BUILD_FILE_NOT_FOUND",
                        message=f"Dockerfile not found at {dockerfile}",
                        category=IssueCategory.BUILD,
                        subject=str(dockerfile),
                    )
                )
                return DockerBuildResult(image=image, issues=issues)
            dockerfile_arg = str(dockerfile)
        else:
            dockerfile_arg = "-"
            build_input = render_dockerfile(spec)

        build_cmd = [
            "docker",
            "build",
            "-t",
            image.local_name,
            "-f",
            dockerfile_arg,
            str(context_dir),
        ]

        self.logger.info("Building Docker image %s from %s", image.local_name, context_dir)
        result = self.command_runner.run(
            build_cmd,
            env={"DOCKER_BUILDKIT": "1"},
            input=build_input,
        )

        if not result.tool_available:
            issues.append(
                RuntimeIssue(
                    code="DOCKER_CLI_NOT_FOUND",
                    message="Docker CLI not available - cannot build image",
                    category=IssueCategory.BUILD,
                    subject=image.local_name,
                )
            )
        elif result.timed_out:
            issues.append(
                RuntimeIssue(
                    code="DOCKER_BUILD_TIMEOUT",
                    message="Docker build timed out",
                    category=IssueCategory.BUILD,
                    subject=image.local_name,
                )
            )
        elif not result.succeeded():
            error_msg = result.error_output("Unknown docker build error")
            issues.append(
                RuntimeIssue(
                    code="DOCKER_BUILD_FAILED",
                    message=f"Docker build failed: {error_msg}",
                    category=IssueCategory.BUILD,
                    subject=image.local_name,
                    details=result.stdout.strip() or None,
                )
            )
            self.logger.error("Docker build failed for %s: %s", image.local_name, error_msg)
        else:
            self.logger.info("Build completed successfully for %s in %.1fs", image.local_name, result.duration)

        return DockerBuildResult(image=image, issues=issues, command_result=result)

    def tag(self, image: ImageReference) -> DockerPushResult:
        """Tag the locally built image with its registry-qualified name."""
        if image.full_name == image.local_name:
            self.logger.debug("No registry configured; %s needs no extra tag", image.local_name)
            return DockerPushResult(image=image, issues=[])

        self.logger.info("Tagging %s as %s", image.local_name, image.full_name)
        result = self.command_runner.run(["docker", "tag", image.local_name, image.full_name])
        issues: List[RuntimeIssue] = []
        if not result.succeeded():
            issues.append(
                RuntimeIssue(
                    code="DOCKER_TAG_FAILED",
                    message=f"Docker tag failed: {result.error_output()}",
                    category=IssueCategory.REGISTRY,
                    subject=image.full_name,
                )
            )
        return DockerPushResult(image=image, issues=issues, command_result=result)

    def push(self, image: ImageReference) -> DockerPushResult:
        """Push the registry-qualified image once; failures are not retried."""
        self.logger.info("Pushing image %s", image.full_name)
        result = self.command_runner.run(["docker", "push", image.full_name])
        issues: List[RuntimeIssue] = []

        if not result.tool_available:
            issues.append(
                RuntimeIssue(
                    code="DOCKER_CLI_NOT_FOUND",
                    message="Docker CLI not available for push operation",
                    category=IssueCategory.REGISTRY,
                    subject=image.full_name,
                )
            )
        elif result.timed_out:
            issues.append(
                RuntimeIssue(
                    code="DOCKER_PUSH_TIMEOUT",
                    message="Docker push timed out",
                    category=IssueCategory.REGISTRY,
                    subject=image.full_name,
                )
            )
        elif not result.succeeded():
            error_msg = result.error_output("Unknown docker push error")
            self.logger.error("Docker push failed for %s: %s", image.full_name, error_msg[:200])
            issues.append(
                RuntimeIssue(
                    code="DOCKER_PUSH_FAILED",
                    message=f"Docker push failed: {error_msg}",
                    category=IssueCategory.REGISTRY,
                    subject=image.full_name,
                )
            )
        else:
            self.logger.info("Successfully pushed image to registry: %s", image.full_name)

        return DockerPushResult(image=image, issues=issues, command_result=result)

    def verify_in_registry(self, image: ImageReference, *, scheme: str = "http") -> List[RuntimeIssue]:
        """Confirm through the registry v2 API that the pushed tag is listed."""
        issues: List[RuntimeIssue] = []
        if not image.registry:
            return issues

        verify_url = f"{scheme}://{image.registry}/v2/{image.name}/tags/list"
        self.logger.info("Verifying image in registry: %s", image.full_name)

        try:
            response = requests.get(verify_url, timeout=10)
        except RequestException as exc:
            last_error = str(exc)
        else:
            if response.status_code != 200:
                last_error = f"registry returned status {response.status_code}"
            else:
                try:
                    payload = response.json()
                except ValueError as exc:
                    last_error = f"registry returned a non-JSON body: {exc}"
                else:
                    tags = (payload.get("tags") if isinstance(payload, dict) else None) or []
                    if image.tag in tags:
                        self.logger.info("Successfully verified image in registry: %s", image.full_name)
                        return issues
                    last_error = f"tag '{image.tag}' not found in tags list: {tags}"

        issues.append(
            RuntimeIssue(
                code="DOCKER_PUSH_VERIFICATION_FAILED",
                message=f"Image pushed but verification failed (URL: {verify_url}): {last_error}",
                category=IssueCategory.REGISTRY,
                subject=image.full_name,
            )
        )
        return issues

    def collect_metrics(self, image: ImageReference, build_time: float) -> BuildMetrics:
        """Inspect the local image for size and layer count; missing data is logged, not fatal."""
        metrics = BuildMetrics(image_name=image.local_name, build_time=round(build_time, 2))

        size_result = self.command_runner.run(
            ["docker", "image", "inspect", image.local_name, "--format", "{{.Size}}"],
            timeout=10,
        )
        layers_result = self.command_runner.run(
            ["docker", "image", "inspect", image.local_name, "--format", "{{len .RootFS.Layers}}"],
            timeout=10,
        )

        if not (size_result.succeeded() and layers_result.succeeded()):
            self.logger.warning("Could not inspect image metrics for %s", image.local_name)
            return metrics

        try:
            metrics.image_size_mb = round(int(size_result.stdout.strip()) / (1024 * 1024), 2)
            metrics.layers_count = int(layers_result.stdout.strip())
        except ValueError:
            self.logger.warning("Could not parse docker inspect output for %s", image.local_name)
            return metrics

        self.logger.info(
            "Image metrics: %.2f MB, %s layers, built in %.1fs",
            metrics.image_size_mb,
            metrics.layers_count,
            metrics.build_time,
        )
        return metrics
