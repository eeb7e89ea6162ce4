from __future__ import annotations

from ..pipeline import DeployContext, DeployState, StepResult
from ..report import build_endpoints


class ReportEndpointsStep:
    """Derive the service URLs from the workspace name; no reachability check."""

    name = "report"

    def run(self, state: DeployState, context: DeployContext) -> StepResult:
        config = context.config
        state.endpoints = build_endpoints(config.workspace_name, config.app_port, config.preview_domain)
        for endpoint in state.endpoints:
            context.logger.info("%s", endpoint)
        return StepResult(metadata={"endpoints": [endpoint.url for endpoint in state.endpoints]})
