"""Externally reachable URLs of a deployed workspace."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

DEV_PORTAL_PATH = ".platform"


@dataclass(frozen=True)
class ServiceEndpoint:
    label: str
    url: str

    def __str__(self) -> str:
        return f"{self.label}: {self.url}"


def workspace_base_url(workspace: str, port: int, domain: str) -> str:
    """Forwarded-port URL of a workspace, e.g. ``https://my-ws-8081.githubpreview.dev/``."""
    return f"https://{workspace}-{port}.{domain}/"


def build_endpoints(workspace: str, port: int, domain: str) -> List[ServiceEndpoint]:
    """Return the Application and Dev Portal URLs; nothing is contacted."""
    base_url = workspace_base_url(workspace, port, domain)
    return [
        ServiceEndpoint(label="Application", url=base_url),
        ServiceEndpoint(label="Dev Portal", url=f"{base_url}{DEV_PORTAL_PATH}"),
    ]
