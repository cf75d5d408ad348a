"""Context-size budget enforcement for completion requests."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_CHARS_PER_TOKEN = 3  # approximation
SYSTEM_ROLE = "system"


def approximate_tokens(messages: list[dict[str, str]]) -> int:
    return sum(len(m["content"]) for m in messages) // _CHARS_PER_TOKEN


def limit_tokens(
    messages: list[dict[str, str]], token_limit: int,
) -> tuple[list[dict[str, str]], int]:
    """Drop the oldest non-system messages until the list fits ``token_limit``.

    Returns the trimmed list (a new list) and the number of characters
    discarded. A system message alone may still exceed the limit.
    """
    trimmed = list(messages)
    discarded = 0

    while approximate_tokens(trimmed) > token_limit:
        idx = next(
            (i for i, m in enumerate(trimmed) if m["role"] != SYSTEM_ROLE),
            None,
        )
        if idx is None:
            break
        discarded += len(trimmed.pop(idx)["content"])

    if discarded:
        logger.info("Context pruned, %d characters discarded", discarded)
    return trimmed, discarded
