"""Two-stage build definition for the runtime image."""

from __future__ import annotations

from typing import List

from src.common.models import RuntimeImageSpec

BUILD_STAGE = "build"
BUILD_OUTPUT_DIR = "/build"


def render_dockerfile(spec: RuntimeImageSpec) -> str:
    """
    Render the build definition for ``spec``.

    The build stage compiles the artifact in release mode and copies it to
    ``/build``. The runtime stage starts from a fresh OS image, installs only
    the TLS runtime closure and receives nothing but the artifact, which runs
    as the container's foreground process.
    """
    artifact = spec.artifact_name
    packages = " ".join(spec.runtime_packages)

    lines: List[str] = [
        f"FROM {spec.builder_image} AS {BUILD_STAGE}",
        "",
        "WORKDIR /src",
        "COPY ./ ./",
        "",
        f"RUN {spec.build_command}",
        "",
        f"RUN mkdir -p {BUILD_OUTPUT_DIR} && cp {spec.resolved_artifact_path} {BUILD_OUTPUT_DIR}/",
        "",
        f"FROM {spec.runtime_image}",
        "",
    ]
    if packages:
        lines.extend(
            [
                "RUN apt-get update \\",
                f"    && apt-get -y install --no-install-recommends {packages} \\",
                "    && rm -rf /var/lib/apt/lists/*",
                "",
            ]
        )
    lines.extend(
        [
            f"COPY --from={BUILD_STAGE} {BUILD_OUTPUT_DIR}/{artifact} /{artifact}",
            "",
            f'CMD ["/{artifact}"]',
        ]
    )
    return "\n".join(lines) + "\n"
