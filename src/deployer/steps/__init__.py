from .build_step import BuildImageStep
from .push_step import PushImageStep, TagImageStep
from .render_step import RenderManifestStep
from .apply_step import ApplyManifestStep
from .report_step import ReportEndpointsStep

__all__ = [
    "BuildImageStep",
    "TagImageStep",
    "PushImageStep",
    "RenderManifestStep",
    "ApplyManifestStep",
    "ReportEndpointsStep",
    "default_steps",
]


def default_steps():
    """Build, tag, push, render, apply, report: the order of one deploy run."""
    return [
        BuildImageStep(),
        TagImageStep(),
        PushImageStep(),
        RenderManifestStep(),
        ApplyManifestStep(),
        ReportEndpointsStep(),
    ]
