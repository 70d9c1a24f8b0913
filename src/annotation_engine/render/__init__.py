"""Template rendering of annotation blocks."""

from annotation_engine.render.generator import (
    JinjaRenderer,
    RenderContext,
    RenderMode,
    TemplateRenderer,
    default_renderer,
    render_block,
)

__all__ = [
    "JinjaRenderer",
    "RenderContext",
    "RenderMode",
    "TemplateRenderer",
    "default_renderer",
    "render_block",
]
