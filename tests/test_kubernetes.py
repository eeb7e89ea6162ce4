"""Tests for applying rendered manifests with kubectl."""

from __future__ import annotations

from src.runtime.kubernetes import KubernetesDeployer, parse_apply_output

MANIFEST = "kind: Deployment\nmetadata:\n  name: app\n"


def test_apply_pipes_manifest_on_stdin(runner) -> None:
    runner.script(["kubectl"], stdout="deployment.apps/app created\nservice/app created\n")
    deployer = KubernetesDeployer(command_runner=runner)

    result = deployer.apply(MANIFEST, source="codespace.yaml")

    assert result.success
    assert runner.calls[0].command == ["kubectl", "apply", "-f", "-"]
    assert runner.calls[0].input == MANIFEST
    assert [(r.kind, r.name, r.created) for r in result.resources] == [
        ("deployment.apps", "app", True),
        ("service", "app", True),
    ]


def test_context_and_namespace_flags(runner) -> None:
    deployer = KubernetesDeployer(command_runner=runner, context="kind-dev", namespace="apps")

    deployer.apply(MANIFEST)

    assert runner.calls[0].command == ["kubectl", "--context", "kind-dev", "apply", "-f", "-", "-n", "apps"]


def test_rejected_manifest_keeps_exit_code(runner) -> None:
    runner.script(["kubectl"], return_code=1, stderr='Error from server (Forbidden): deployments.apps "app" is forbidden')
    deployer = KubernetesDeployer(command_runner=runner)

    result = deployer.apply(MANIFEST)

    assert not result.success
    assert result.exit_code == 1
    assert result.issues[0].code == "K8S_APPLY_FAILED"
    assert "is forbidden" in result.issues[0].message
    assert result.resources == []


def test_missing_kubectl(runner) -> None:
    runner.script(["kubectl"], return_code=None, tool_available=False)

    result = KubernetesDeployer(command_runner=runner).apply(MANIFEST)

    assert result.issues[0].code == "K8S_APPLY_ERROR"
    assert result.exit_code == 127


def test_empty_manifest_is_not_applied(runner) -> None:
    result = KubernetesDeployer(command_runner=runner).apply("\n  \n")

    assert result.issues[0].code == "K8S_MANIFEST_EMPTY"
    assert runner.calls == []


def test_parse_apply_output_actions() -> None:
    output = "\n".join(
        [
            "Warning: resource deployments/app is missing the last-applied-configuration annotation",
            "deployment.apps/app configured",
            "service/app unchanged",
            "configmap/app-config created (dry run)",
        ]
    )

    resources = parse_apply_output(output)

    assert [(r.kind, r.name, r.action) for r in resources] == [
        ("deployment.apps", "app", "configured"),
        ("service", "app", "unchanged"),
        ("configmap", "app-config", "created"),
    ]
