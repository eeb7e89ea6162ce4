from __future__ import annotations

from typing import Dict

from src.runtime import RuntimeIssue

from ..errors import TemplateRenderError, UndefinedVariableError
from ..pipeline import DeployContext, DeployState, StepResult
from ..template import load_manifest_documents, write_rendered_manifests


class RenderManifestStep:
    """Substitute environment placeholders in the manifest template."""

    name = "render"

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        manifest_path = context.config.manifest_path
        variables = self.variables(state, context)

        output_dir = context.config.render_output_dir
        written = 0
        try:
            state.rendered_manifest = load_manifest_documents(manifest_path, variables)
            if output_dir is not None:
                written = write_rendered_manifests(manifest_path, output_dir, variables)
        except TemplateRenderError as exc:
            context.logger.error("Failed to render %s: %s", manifest_path, exc)
            details = ", ".join(exc.names) if isinstance(exc, UndefinedVariableError) else None
            return StepResult(
                issues=[
                    RuntimeIssue(
                        code=exc.code,
                        message=str(exc),
                        category=exc.category,
                        subject=exc.source,
                        details=details,
                    )
                ],
                continue_pipeline=False,
            )

        context.logger.info("Rendered manifest %s for image %s", manifest_path, state.image.full_name)
        metadata: Dict[str, object] = {"manifest": str(manifest_path), "tag": state.tag}
        if output_dir is not None:
            context.logger.info("Wrote %d rendered file(s) to %s", written, output_dir)
            metadata["rendered_files"] = written
            metadata["output_dir"] = str(output_dir)
        return StepResult(metadata=metadata)

    @staticmethod
    def variables(state: DeployState, context: DeployContext) -> Dict[str, str]:
        """Ambient environment overlaid with the values of this run."""
        variables = dict(context.environ)
        variables.update(
            {
                "TAG": state.tag,
                "IMAGE": state.image.full_name,
                "REGISTRY_URL": state.image.registry,
                "IMAGE_NAME": state.image.name,
            }
        )
        return variables
