"""Data models for the conversation session engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.chat.options import OptionParser


class SubmitStatus(str, Enum):
    """Outcome of handing a user turn to the coordinator."""

    ACCEPTED = "accepted"
    ANSWERED = "answered"  # instant answer, no completion call
    BUSY = "busy"


@dataclass(frozen=True)
class ChatOption:
    """A selectable choice offered by the assistant."""

    id: str
    caption: str


@dataclass(frozen=True)
class Turn:
    """One message in a conversation.

    Options are derived from the text of assistant turns; use the
    ``user`` / ``assistant`` constructors rather than setting them directly.
    """

    is_assistant: bool
    text: str
    options: tuple[ChatOption, ...] | None = None

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(is_assistant=False, text=text)

    @classmethod
    def assistant(cls, raw_text: str, parser: OptionParser | None = None) -> Turn:
        if parser is None:
            from src.chat.options import DEFAULT_PARSER

            parser = DEFAULT_PARSER
        clean, options = parser.parse(raw_text)
        return cls(is_assistant=True, text=clean, options=options or None)

    @property
    def role(self) -> str:
        return "assistant" if self.is_assistant else "user"


@dataclass
class CompletionResult:
    """Response from the completion service: candidate texts or an error."""

    ok: bool
    choices: list[str] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class RenderedChat:
    """Display snapshot of one chat, served back by the transport layer."""

    chat_id: int
    turns: list[Turn]
    pending: bool
    options: tuple[ChatOption, ...] | None = None
    has_controls: bool = False
