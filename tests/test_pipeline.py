"""End-to-end tests of the deploy pipeline against a scripted command runner."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import requests

from src.deployer.pipeline import DeployPipeline, create_state
from src.deployer.steps import default_steps

RUN_TIME = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def run_pipeline(config, context, now=RUN_TIME):
    state = create_state(config, now=now)
    return DeployPipeline(default_steps()).run(state, context)


def test_pushed_tag_matches_applied_manifest(config, context, runner) -> None:
    result = run_pipeline(config, context)

    assert result.success
    assert result.exit_code == 0
    pushes = runner.commands_starting_with("docker", "push")
    assert [call.command[-1] for call in pushes] == ["localhost:12345/app:20240101T000000Z"]

    applies = runner.commands_starting_with("kubectl")
    assert len(applies) == 1
    assert "image: localhost:12345/app:20240101T000000Z" in applies[0].input
    assert "${" not in applies[0].input


def test_steps_run_in_order(config, context, runner) -> None:
    result = run_pipeline(config, context)

    assert result.state.completed_steps == ["build", "tag", "push", "render", "apply", "report"]
    build, tag, push = runner.calls[0], runner.calls[3], runner.calls[4]
    assert build.command[:2] == ["docker", "build"]
    assert tag.command == ["docker", "tag", "app:20240101T000000Z", "localhost:12345/app:20240101T000000Z"]
    assert push.command[:2] == ["docker", "push"]
    assert runner.calls[-1].command[0] == "kubectl"


def test_build_uses_buildkit_and_rendered_dockerfile(config, context, runner) -> None:
    run_pipeline(config, context)

    build = runner.commands_starting_with("docker", "build")[0]
    assert build.env == {"DOCKER_BUILDKIT": "1"}
    assert build.command[-3:] == ["-f", "-", str(config.build_context)]
    assert 'CMD ["/application-api"]' in build.input


def test_build_failure_stops_before_push_and_apply(config, context, runner) -> None:
    runner.script(["docker", "build"], return_code=101, stderr="error[E0425]: cannot find value")

    result = run_pipeline(config, context)

    assert not result.success
    assert result.failed_step == "build"
    assert result.exit_code == 101
    assert result.issues[0].code == "DOCKER_BUILD_FAILED"
    assert "E0425" in result.issues[0].message
    assert runner.commands_starting_with("docker", "tag") == []
    assert runner.commands_starting_with("docker", "push") == []
    assert runner.commands_starting_with("kubectl") == []


def test_missing_docker_cli_exits_127(config, context, runner) -> None:
    runner.script(["docker"], return_code=None, tool_available=False)

    result = run_pipeline(config, context)

    assert result.failed_step == "build"
    assert result.exit_code == 127
    assert result.issues[0].code == "DOCKER_CLI_NOT_FOUND"


def test_push_failure_prevents_apply(config, context, runner) -> None:
    runner.script(["docker", "push"], return_code=1, stderr="unauthorized: authentication required")

    result = run_pipeline(config, context)

    assert result.failed_step == "push"
    assert result.exit_code == 1
    assert result.state.rendered_manifest is None
    assert runner.commands_starting_with("kubectl") == []
    assert len(runner.commands_starting_with("docker", "push")) == 1


def test_undefined_template_variable_prevents_apply(config, context, runner, manifest_file: Path) -> None:
    manifest_file.write_text("image: ${REGISTRY_URL}/app:${TAG}\nhost: ${INGRESS_HOST}\n")

    result = run_pipeline(config, context)

    assert result.failed_step == "render"
    assert result.exit_code == 1
    issue = result.issues[0]
    assert issue.code == "TEMPLATE_UNDEFINED_VARIABLE"
    assert issue.details == "INGRESS_HOST"
    assert runner.commands_starting_with("kubectl") == []
    # the image was already pushed; that partial state is left as is
    assert len(runner.commands_starting_with("docker", "push")) == 1


def test_template_reads_ambient_environment(config, context, runner, manifest_file: Path) -> None:
    manifest_file.write_text("image: ${IMAGE}\nworkspace: $CODESPACE_NAME\n")

    result = run_pipeline(config, context)

    assert result.success
    applied = runner.commands_starting_with("kubectl")[0].input
    assert "image: localhost:12345/app:20240101T000000Z" in applied
    assert "workspace: octo-space" in applied


def test_apply_rejection_is_surfaced_verbatim(config, context, runner) -> None:
    message = 'The Deployment "app" is invalid: spec.template.spec.containers[0].image: Required value'
    runner.script(["kubectl"], return_code=1, stderr=message)

    result = run_pipeline(config, context)

    assert result.failed_step == "apply"
    assert result.exit_code == 1
    assert result.issues[0].code == "K8S_APPLY_FAILED"
    assert message in result.issues[0].message
    assert result.state.endpoints == []


def test_rerun_updates_resource_in_place_with_new_tag(config, context, runner) -> None:
    runner.script(["kubectl"], stdout="deployment.apps/app configured\n")

    first = run_pipeline(config, context, now=RUN_TIME)
    second = run_pipeline(config, context, now=datetime(2024, 1, 1, 0, 0, 5, tzinfo=timezone.utc))

    assert first.state.tag == "20240101T000000Z"
    assert second.state.tag == "20240101T000005Z"
    pushed = [call.command[-1] for call in runner.commands_starting_with("docker", "push")]
    assert pushed == ["localhost:12345/app:20240101T000000Z", "localhost:12345/app:20240101T000005Z"]

    resources = second.state.applied_resources
    assert [(r.kind, r.name, r.action) for r in resources] == [("deployment.apps", "app", "configured")]
    assert not resources[0].created


def test_success_reports_endpoints(config, context) -> None:
    result = run_pipeline(config, context)

    assert [str(endpoint) for endpoint in result.state.endpoints] == [
        "Application: https://octo-space-8081.githubpreview.dev/",
        "Dev Portal: https://octo-space-8081.githubpreview.dev/.platform",
    ]
    assert result.state.step_metadata["report"]["endpoints"][0] == "https://octo-space-8081.githubpreview.dev/"


def test_rendered_copy_is_written_when_output_dir_set(config, context, runner, tmp_path: Path) -> None:
    output_dir = tmp_path / "rendered"
    context.config = config.model_copy(update={"render_output_dir": output_dir})

    result = run_pipeline(config, context)

    assert result.success
    written = (output_dir / "codespace.yaml").read_text()
    assert "image: localhost:12345/app:20240101T000000Z" in written
    assert written.strip() == runner.commands_starting_with("kubectl")[0].input.strip()
    assert result.state.step_metadata["render"]["rendered_files"] == 1


def test_registry_verification_uses_configured_scheme(config, context, monkeypatch) -> None:
    requested = []

    class TagsResponse:
        status_code = 200

        def json(self) -> dict:
            return {"tags": ["20240101T000000Z"]}

    def fake_get(url, timeout):
        requested.append(url)
        return TagsResponse()

    monkeypatch.setattr(requests, "get", fake_get)
    context.config = config.model_copy(update={"verify_registry": True, "registry_scheme": "https"})

    result = run_pipeline(config, context)

    assert result.success
    assert requested == ["https://localhost:12345/v2/app/tags/list"]
