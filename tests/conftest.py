"""Shared fixtures: a command runner that records calls instead of executing them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pytest

from src.common.command_runner import CommandResult
from src.deployer.config import DeployerConfig
from src.deployer.pipeline import DeployContext


@dataclass
class RecordedCall:
    command: List[str]
    env: Optional[Dict[str, str]]
    input: Optional[str]


@dataclass
class FakeCommandRunner:
    """Return scripted results keyed by command prefix; succeed with empty output otherwise."""

    responses: List[Tuple[Sequence[str], CommandResult]] = field(default_factory=list)
    calls: List[RecordedCall] = field(default_factory=list)

    def script(
        self,
        prefix: Sequence[str],
        *,
        return_code: Optional[int] = 0,
        stdout: str = "",
        stderr: str = "",
        tool_available: bool = True,
        timed_out: bool = False,
    ) -> None:
        self.responses.append(
            (
                list(prefix),
                CommandResult(
                    command=list(prefix),
                    return_code=return_code,
                    stdout=stdout,
                    stderr=stderr,
                    duration=0.5,
                    timed_out=timed_out,
                    tool_available=tool_available,
                ),
            )
        )

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
        input: Optional[str] = None,
    ) -> CommandResult:
        self.calls.append(RecordedCall(list(command), dict(env) if env else None, input))
        for prefix, result in self.responses:
            if list(command[: len(prefix)]) == list(prefix):
                return result
        return CommandResult(
            command=command,
            return_code=0,
            stdout="",
            stderr="",
            duration=0.5,
            timed_out=False,
            tool_available=True,
        )

    def commands_starting_with(self, *prefix: str) -> List[RecordedCall]:
        return [call for call in self.calls if call.command[: len(prefix)] == list(prefix)]


@pytest.fixture
def runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def manifest_file(tmp_path: Path) -> Path:
    path = tmp_path / "deploy" / "codespace.yaml"
    path.parent.mkdir()
    path.write_text(
        "apiVersion: apps/v1\n"
        "kind: Deployment\n"
        "metadata:\n"
        "  name: app\n"
        "spec:\n"
        "  template:\n"
        "    spec:\n"
        "      containers:\n"
        "        - name: app\n"
        "          image: ${REGISTRY_URL}/app:${TAG}\n"
    )
    return path


@pytest.fixture
def config(tmp_path: Path, manifest_file: Path) -> DeployerConfig:
    return DeployerConfig.from_env(
        {
            "CODESPACE_NAME": "octo-space",
            "MANIFEST_PATH": str(manifest_file),
            "BUILD_CONTEXT": str(tmp_path),
        }
    )


@pytest.fixture
def context(config: DeployerConfig, runner: FakeCommandRunner) -> DeployContext:
    return DeployContext(
        config=config,
        command_runner=runner,
        logger=logging.getLogger("tests"),
        environ={"CODESPACE_NAME": "octo-space"},
    )
