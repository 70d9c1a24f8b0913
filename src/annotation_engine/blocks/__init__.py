"""Annotation blocks — marker grammar, scanning, and identity.

Annotation records live inside ordinary markdown, demarcated by
Obsidian comment markers so they stay hidden in reading view:

    %% ANNOT-BEGIN {"id": "ABCD1234", "type": "highlight", ...} %%
    > [!quote] Highlight · p. 12
    > %% ANNOT-QUOTE-BEGIN %%
    > > quoted text
    > %% ANNOT-QUOTE-END %%
    >
    > %% ANNOT-COMMENT-BEGIN %%
    > comment text
    > %% ANNOT-COMMENT-END %% ^ABCD1234
    %% ANNOT-END %%

Anything outside these markers is preserved untouched.
"""

# Marker tokens shared by scanner, renderer and editor
BEGIN_TOKEN = "ANNOT-BEGIN"
END_TOKEN = "ANNOT-END"
QUOTE_BEGIN_TOKEN = "ANNOT-QUOTE-BEGIN"
QUOTE_END_TOKEN = "ANNOT-QUOTE-END"
COMMENT_BEGIN_TOKEN = "ANNOT-COMMENT-BEGIN"
COMMENT_END_TOKEN = "ANNOT-COMMENT-END"
BLOCKS_BEGIN_TOKEN = "ANNOT-BLOCKS-BEGIN"
BLOCKS_END_TOKEN = "ANNOT-BLOCKS-END"

END = f"%% {END_TOKEN} %%"
QUOTE_BEGIN = f"%% {QUOTE_BEGIN_TOKEN} %%"
QUOTE_END = f"%% {QUOTE_END_TOKEN} %%"
COMMENT_BEGIN = f"%% {COMMENT_BEGIN_TOKEN} %%"
COMMENT_END = f"%% {COMMENT_END_TOKEN} %%"
BLOCKS_BEGIN = f"%% {BLOCKS_BEGIN_TOKEN} %%"
BLOCKS_END = f"%% {BLOCKS_END_TOKEN} %%"


def begin_line(payload_json: str) -> str:
    """Format the BEGIN marker line around an inline JSON payload."""
    return f"%% {BEGIN_TOKEN} {payload_json} %%"
