import os
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from src.common.models import ImageReference, RuntimeImageSpec, is_pinned_image

from .errors import ConfigurationError

# Field name -> environment variable it is read from.
ENV_KEYS: Dict[str, str] = {
    "registry": "REGISTRY_URL",
    "image_name": "IMAGE_NAME",
    "workspace_name": "CODESPACE_NAME",
    "kube_context": "KUBE_CONTEXT",
    "namespace": "K8S_NAMESPACE",
    "manifest_path": "MANIFEST_PATH",
    "build_context": "BUILD_CONTEXT",
    "dockerfile": "DOCKERFILE",
    "app_port": "APP_PORT",
    "preview_domain": "PREVIEW_DOMAIN",
    "artifact_name": "ARTIFACT_NAME",
    "builder_image": "BUILDER_IMAGE",
    "runtime_image": "RUNTIME_IMAGE",
    "build_command": "BUILD_COMMAND",
    "verify_registry": "VERIFY_REGISTRY",
    "registry_scheme": "REGISTRY_SCHEME",
    "render_output_dir": "RENDER_OUTPUT_DIR",
}

_REPOSITORY_NAME = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*$")


class DeployerConfig(BaseModel):
    """Settings for one build-and-deploy run."""

    # Registry settings
    registry: str = Field(default="localhost:12345", description="Registry host[:port] images are pushed to")
    image_name: str = Field(default="app", description="Repository name of the runtime image")
    verify_registry: bool = Field(default=False, description="Query the registry API after push")
    registry_scheme: str = Field(default="http", description="Scheme of the registry API used for verification")

    # Workspace settings
    workspace_name: str = Field(description="Workspace/session identifier used in reported URLs")
    app_port: int = 8081
    preview_domain: str = "githubpreview.dev"

    # Kubernetes settings
    kube_context: Optional[str] = None
    namespace: Optional[str] = None
    manifest_path: Path = Path("deploy/codespace.yaml")
    render_output_dir: Optional[Path] = Field(default=None, description="Directory that receives a copy of the rendered manifests")

    # Build settings
    build_context: Path = Path(".")
    dockerfile: Optional[Path] = None
    artifact_name: str = "application-api"
    builder_image: str = "rust:1.55"
    runtime_image: str = "ubuntu:18.04"
    build_command: str = "cargo build --release"

    @field_validator("registry")
    @classmethod
    def _registry_without_scheme(cls, value: str) -> str:
        if "://" in value:
            raise ValueError("registry must be host[:port] without a scheme")
        return value.rstrip("/")

    @field_validator("registry_scheme")
    @classmethod
    def _known_scheme(cls, value: str) -> str:
        if value not in ("http", "https"):
            raise ValueError("scheme must be 'http' or 'https'")
        return value

    @field_validator("image_name")
    @classmethod
    def _valid_repository(cls, value: str) -> str:
        if not _REPOSITORY_NAME.match(value):
            raise ValueError(f"'{value}' is not a valid image repository name")
        return value

    @field_validator("app_port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError("port must be between 1 and 65535")
        return value

    @field_validator("builder_image", "runtime_image")
    @classmethod
    def _pinned(cls, value: str) -> str:
        if not is_pinned_image(value):
            raise ValueError(f"image '{value}' must be pinned to an explicit version, not 'latest'")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeployerConfig":
        """
        Build the configuration from environment variables.

        Empty values count as unset. Every missing or invalid key is reported
        in a single ``ConfigurationError``.
        """
        environ = os.environ if environ is None else environ
        values = {
            field_name: environ[env_key]
            for field_name, env_key in ENV_KEYS.items()
            if environ.get(env_key)
        }
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(_describe_errors(exc)) from exc

    def image_spec(self) -> RuntimeImageSpec:
        return RuntimeImageSpec(
            builder_image=self.builder_image,
            runtime_image=self.runtime_image,
            build_command=self.build_command,
            artifact_name=self.artifact_name,
        )

    def image_reference(self, tag: str) -> ImageReference:
        return ImageReference(registry=self.registry, name=self.image_name, tag=tag)

    def to_dict(self) -> Dict[str, object]:
        """Convert config to dictionary."""
        return self.model_dump()


def _describe_errors(exc: ValidationError) -> List[str]:
    problems: List[str] = []
    for error in exc.errors():
        field_name = str(error["loc"][0]) if error["loc"] else ""
        env_key = ENV_KEYS.get(field_name, field_name)
        if error["type"] == "missing":
            problems.append(f"{env_key} is required")
        else:
            problems.append(f"{env_key}: {error['msg']}")
    return problems
