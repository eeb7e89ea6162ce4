from __future__ import annotations

from src.runtime import KubernetesDeployer

from ..pipeline import DeployContext, DeployState, StepResult


class ApplyManifestStep:
    """Submit the rendered manifest to the cluster (create-or-update)."""

    name = "apply"

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        if state.rendered_manifest is None:
            raise RuntimeError("ApplyManifestStep requires a rendered manifest")

        deployer = KubernetesDeployer(
            command_runner=context.command_runner,
            context=context.config.kube_context,
            namespace=context.config.namespace,
            logger=context.logger,
        )
        result = deployer.apply(state.rendered_manifest, source=str(context.config.manifest_path))
        if not result.success:
            return StepResult(issues=result.issues, continue_pipeline=False, exit_code=result.exit_code)

        state.applied_resources = result.resources
        return StepResult(
            issues=result.issues,
            metadata={
                "resources": [
                    f"{resource.kind}/{resource.name} {resource.action}" for resource in result.resources
                ],
            },
        )
