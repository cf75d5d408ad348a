"""Display-safe rendering of transcripts.

Turns are converted to pre-escaped HTML fragments for the transport layer:
entities are substituted, triple backticks toggle ``<pre>`` blocks, and a
bare number sent after a menu is replaced by the caption it selected.
"""

from __future__ import annotations

import logging

from src.chat.models import Turn

logger = logging.getLogger(__name__)

_ENTITIES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    '"': "&quot;",
    "'": "&#39;",
}
_CODE_OPEN = "</p><pre>\n"
_CODE_CLOSE = "</pre><p>\n"


def _escape(text: str) -> str:
    return "".join(_ENTITIES.get(ch, ch) for ch in text)


def filter_code_tags(line: str, inside_code: bool) -> tuple[str, bool]:
    """Escape one line; returns the output and the updated code-block state.

    Backticks are never emitted. Every third consecutive backtick flips
    the code-block state.
    """
    out: list[str] = []
    prev1 = prev2 = ""
    for ch in line:
        if ch == "`":
            if prev1 == "`" and prev2 == "`":
                inside_code = not inside_code
                out.append(_CODE_OPEN if inside_code else _CODE_CLOSE)
        else:
            out.append(_ENTITIES.get(ch, ch))
        prev1, prev2 = prev2, ch
    return "".join(out), inside_code


def _render_text(text: str) -> str:
    out: list[str] = []
    inside_code = False
    for line in text.split("\n"):
        escaped, inside_code = filter_code_tags(line, inside_code)
        out.append(escaped)
        out.append("\n" if inside_code else "<br>")
    return "".join(out).strip()


def _selected_caption(turn: Turn, previous: Turn) -> str | None:
    try:
        choice = int(turn.text)
    except ValueError:
        return None
    options = previous.options or ()
    if not 1 <= choice <= len(options):
        logger.debug("Option selection %d out of range (%d options)", choice, len(options))
        return None
    return _escape(options[choice - 1].caption)


def beautify(turns: list[Turn]) -> list[Turn]:
    """Return display copies of ``turns``; options pass through unchanged."""
    result: list[Turn] = []
    for idx, turn in enumerate(turns):
        output = _selected_caption(turn, turns[idx - 1]) if idx > 0 else None
        if output is None:
            output = _render_text(turn.text)
        result.append(Turn(is_assistant=turn.is_assistant, text=output, options=turn.options))
    return result
