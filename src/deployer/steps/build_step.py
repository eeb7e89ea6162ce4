from __future__ import annotations

from src.runtime import DockerImageBuilder

from ..pipeline import DeployContext, DeployState, StepResult


class BuildImageStep:
    """Compile the artifact and package it into the runtime image."""

    name = "build"

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        config = context.config
        builder = DockerImageBuilder(command_runner=context.command_runner, logger=context.logger)

        result = builder.build(
            context_dir=config.build_context,
            spec=config.image_spec(),
            image=state.image,
            dockerfile=config.dockerfile,
        )
        if not result.success:
            return StepResult(issues=result.issues, continue_pipeline=False, exit_code=result.exit_code)

        build_time = result.command_result.duration if result.command_result else 0.0
        state.build_metrics = builder.collect_metrics(state.image, build_time)

        return StepResult(
            issues=result.issues,
            metadata={
                "image": state.image.local_name,
                "build_time": state.build_metrics.build_time,
                "image_size_mb": state.build_metrics.image_size_mb,
                "layers_count": state.build_metrics.layers_count,
            },
        )
