"""Multiple-choice menu extraction from assistant text.

Assistants present menus as numbered lines::

    Pick one:
    1) Continue
    2) Stop

The menu is split off the text and returned as structured options. Menus are
re-derived from raw text whenever a transcript is loaded, so any line that
looks like ``<n>)`` after the first ``1)`` is treated as an option.
"""

from __future__ import annotations

from typing import Protocol

from src.chat.models import ChatOption

_MENU_MARKER = "1)"


class OptionParser(Protocol):
    """Splits assistant text into clean text and options."""

    def parse(self, text: str) -> tuple[str, tuple[ChatOption, ...]]: ...


def parse_options(text: str) -> tuple[str, tuple[ChatOption, ...]]:
    """Return ``(clean_text, options)`` for a block of assistant text."""
    idx = text.find(_MENU_MARKER)
    if idx < 0:
        return text, ()

    # Step back over the newline that precedes the menu.
    cut = max(idx - 1, 0)
    clean = text[:cut]
    block = text[cut:].lstrip()

    options: list[ChatOption] = []
    for line in block.split("\n"):
        parts = line.split(")", 1)
        if len(parts) == 2:
            options.append(ChatOption(id=parts[0].strip(), caption=parts[1].strip()))
    return clean, tuple(options)


class MenuOptionParser:
    """Default heuristic parser keyed on the first ``1)`` marker."""

    def parse(self, text: str) -> tuple[str, tuple[ChatOption, ...]]:
        return parse_options(text)


DEFAULT_PARSER: OptionParser = MenuOptionParser()
