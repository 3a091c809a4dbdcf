"""
Template rendering and dependency tracking.
"""

from .dependencies import DependencyRecorder
from .template import ASSET_FUNCTION, RenderResult, TemplateRenderError, TemplateSource, render, render_file

__all__ = [
    "ASSET_FUNCTION",
    "DependencyRecorder",
    "RenderResult",
    "TemplateRenderError",
    "TemplateSource",
    "render",
    "render_file",
]
