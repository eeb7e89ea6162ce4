from __future__ import annotations

from src.runtime import DockerImageBuilder

from ..pipeline import DeployContext, DeployState, StepResult


class TagImageStep:
    """Give the built image its registry-qualified name."""

    name = "tag"

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        builder = DockerImageBuilder(command_runner=context.command_runner, logger=context.logger)
        result = builder.tag(state.image)
        return StepResult(
            issues=result.issues,
            continue_pipeline=result.success,
            exit_code=result.exit_code,
            metadata={"image": state.image.full_name},
        )


class PushImageStep:
    """Push the tagged image; no manifest is rendered for an image that failed to push."""

    name = "push"

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        builder = DockerImageBuilder(command_runner=context.command_runner, logger=context.logger)
        result = builder.push(state.image)
        if not result.success:
            return StepResult(issues=result.issues, continue_pipeline=False, exit_code=result.exit_code)

        issues = list(result.issues)
        if context.config.verify_registry:
            issues.extend(builder.verify_in_registry(state.image, scheme=context.config.registry_scheme))

        return StepResult(
            issues=issues,
            continue_pipeline=not any(issue.is_error() for issue in issues),
            metadata={"image": state.image.full_name},
        )
