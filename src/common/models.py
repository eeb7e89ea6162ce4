"""Shared data models used by the image builder and the deployer."""
from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_RUNTIME_PACKAGES = ["openssl", "ca-certificates"]


class ImageReference(BaseModel):
    """Registry address, repository name and tag of one runtime image."""

    registry: str = Field(default="", description="Registry host[:port]; empty for local-only images")
    name: str = Field(description="Repository name inside the registry (e.g. 'app')")
    tag: str = Field(description="Tag identifying this build")

    @property
    def repository(self) -> str:
        return f"{self.registry}/{self.name}" if self.registry else self.name

    @property
    def full_name(self) -> str:
        """Registry-qualified reference used for push and for the manifest."""
        return f"{self.repository}:{self.tag}"

    @property
    def local_name(self) -> str:
        """Reference the build step tags before the image is promoted to the registry."""
        return f"{self.name}:{self.tag}"


class RuntimeImageSpec(BaseModel):
    """Description of the two-stage image that packages the compiled artifact."""

    builder_image: str = Field(default="rust:1.55", description="Pinned toolchain image for the build stage")
    runtime_image: str = Field(default="ubuntu:18.04", description="Pinned OS image for the runtime stage")
    build_command: str = Field(default="cargo build --release", description="Release build command")
    artifact_name: str = Field(default="application-api", description="Name of the compiled executable")
    artifact_path: Optional[str] = Field(
        default=None,
        description="Path of the executable inside the build stage; defaults to target/release/<artifact_name>",
    )
    runtime_packages: List[str] = Field(default_factory=lambda: list(DEFAULT_RUNTIME_PACKAGES))

    @field_validator("builder_image", "runtime_image")
    @classmethod
    def _require_pinned(cls, value: str) -> str:
        if not is_pinned_image(value):
            raise ValueError(f"image '{value}' must be pinned to an explicit version, not 'latest'")
        return value

    @field_validator("artifact_name")
    @classmethod
    def _plain_file_name(cls, value: str) -> str:
        if not value or "/" in value:
            raise ValueError("artifact_name must be a bare file name")
        return value

    @property
    def resolved_artifact_path(self) -> str:
        return self.artifact_path or f"target/release/{self.artifact_name}"


def is_pinned_image(image: str) -> bool:
    """Return True when the image reference names a digest or a non-'latest' tag."""
    if "@" in image:
        return True
    last_segment = image.rsplit("/", 1)[-1]
    if ":" not in last_segment:
        return False
    tag = last_segment.rsplit(":", 1)[1]
    return bool(tag) and tag != "latest"


@dataclass
class BuildMetrics:
    """Metrics collected after a runtime image build."""

    image_name: str
    build_time: float  # seconds
    image_size_mb: Optional[float] = None
    layers_count: Optional[int] = None
