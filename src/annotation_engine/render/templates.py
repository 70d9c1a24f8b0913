"""Jinja2 templates for annotation blocks.

Templates receive the context built by ``render.generator.build_context``.
Besides the record fields they can use:

    begin         fully formed BEGIN line carrying the inline payload
    markers       end / quote_begin / quote_end / comment_begin / comment_end
    label         display label, e.g. "Highlight · p. 12"
    link          navigation link back to the annotation in the reader
    block_id      the id sanitized for use as an Obsidian block anchor
    front_matter  parsed YAML front matter of the target document

Filters: ``blockquote`` prefixes every line with "> "; ``nested_blockquote``
uses "> > " for the first line so the quote nests under the header.
"""

from __future__ import annotations

# ── Default block template ────────────────────────────────────────

DEFAULT_TEMPLATE = """\
{{ begin }}
{% if header %}
> {{ header }}
{% else %}
> [!{{ callout }}] {{ label }}
{% endif %}
> {{ markers.quote_begin }}
{{ quote | nested_blockquote }}
> {{ markers.quote_end }}
>
> {{ markers.comment_begin }}
{{ comment | blockquote }}
> {{ markers.comment_end }} ^{{ block_id }}
{{ markers.end }}
"""

# ── Minimal template (no callout header) ──────────────────────────

PLAIN_TEMPLATE = """\
{{ begin }}
{% if header %}
{{ header }}
{% endif %}
{{ markers.quote_begin }}
{{ quote }}
{{ markers.quote_end }}
{{ markers.comment_begin }}
{{ comment }}
{{ markers.comment_end }}
{{ markers.end }}
"""

TEMPLATES = {
    "default": DEFAULT_TEMPLATE,
    "plain": PLAIN_TEMPLATE,
}
