"""Engine configuration.

Settings come from a YAML file, with environment variables taking
precedence when set:

    ANNOTATION_ENGINE_CONFIG    config file (default: ./annotation-engine.yaml, if present)
    ANNOTATION_ENGINE_TEMPLATE  block template: a built-in name or a Jinja2 file path

Example ``annotation-engine.yaml``::

    template: templates/block.md.j2
    insert_strategy: after-front-matter
    link_scheme: obsidian://zotero-reader
    callout: note
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from annotation_engine.editor.strategies import InsertStrategy
from annotation_engine.render.generator import (
    DEFAULT_LINK_SCHEME,
    JinjaRenderer,
    RenderContext,
    TemplateRenderer,
    default_renderer,
)
from annotation_engine.render.templates import TEMPLATES

DEFAULT_CONFIG_NAME = "annotation-engine.yaml"
_KNOWN_KEYS = {"template", "insert_strategy", "link_scheme", "callout"}


@dataclass
class EngineConfig:
    """Resolved engine settings."""

    template: str | None = None
    insert_strategy: InsertStrategy = InsertStrategy.DOCUMENT_END
    link_scheme: str = DEFAULT_LINK_SCHEME
    callout: str = "quote"

    def renderer(self) -> TemplateRenderer:
        """Build the renderer for ``template`` (built-in name or file path)."""
        if not self.template or self.template == "default":
            return default_renderer()
        if self.template in TEMPLATES:
            return JinjaRenderer(TEMPLATES[self.template])
        return JinjaRenderer.from_file(self.template)

    def render_context(self, document: str | None = None) -> RenderContext:
        return RenderContext(
            document=document,
            callout=self.callout,
            link_scheme=self.link_scheme,
        )


def config_path() -> Path | None:
    """Return the config file to load, or None when there is none."""
    env = os.environ.get("ANNOTATION_ENGINE_CONFIG")
    if env:
        return Path(env).expanduser()
    local = Path.cwd() / DEFAULT_CONFIG_NAME
    return local if local.is_file() else None


def load_config(path: Path | str | None = None) -> EngineConfig:
    """Load engine settings.

    Args:
        path: YAML config file. Defaults to ``config_path()``.

    Returns:
        EngineConfig with defaults for anything not set.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        yaml.YAMLError: If the YAML is malformed.
        ValueError: On unknown keys or an unknown insert strategy.
    """
    cfg_path = Path(path) if path else config_path()
    data: dict = {}
    if cfg_path is not None:
        with open(cfg_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{cfg_path} is not a YAML mapping")

    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    template = os.environ.get("ANNOTATION_ENGINE_TEMPLATE")
    if template:
        if template not in TEMPLATES:
            template = str(Path(template).expanduser())
    else:
        template = data.get("template")
        # File templates are relative to the config file
        if template and template not in TEMPLATES:
            candidate = Path(template).expanduser()
            if not candidate.is_absolute():
                candidate = cfg_path.parent / candidate
            template = str(candidate)

    return EngineConfig(
        template=template,
        insert_strategy=InsertStrategy(data.get("insert_strategy", InsertStrategy.DOCUMENT_END.value)),
        link_scheme=data.get("link_scheme", DEFAULT_LINK_SCHEME),
        callout=data.get("callout", "quote"),
    )
