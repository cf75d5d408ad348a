"""Chat sessions and the rule capabilities that configure them."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Protocol

from src.chat.models import Turn
from src.chat.options import DEFAULT_PARSER, OptionParser
from src.chat.transcript import Transcript

logger = logging.getLogger(__name__)


class RuleProvider(Protocol):
    """Deployment-specific behaviour of a session.

    ``rules`` returns the fixed preamble sent as the system message.
    ``pre_answer`` may return an instant answer for a question, skipping
    the completion service entirely.
    """

    def rules(self) -> str: ...

    def pre_answer(self, question: str) -> str | None: ...


class StaticRules:
    """Rule provider backed by a fixed string."""

    def __init__(self, text: str = "", shortcuts: dict[str, str] | None = None) -> None:
        self._text = text
        self._shortcuts = {k.strip().lower(): v for k, v in (shortcuts or {}).items()}

    def rules(self) -> str:
        return self._text

    def pre_answer(self, question: str) -> str | None:
        return self._shortcuts.get(question.strip().lower())


class FileRules(StaticRules):
    """Rule provider that reads its preamble from a text file."""

    def __init__(self, path: Path, shortcuts: dict[str, str] | None = None) -> None:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"Could not load assistant rules from {path}: {exc}") from exc
        if not text.strip():
            raise ValueError(f"Assistant rules file is empty: {path}")
        super().__init__(text, shortcuts)


class Session:
    """One chat identity: a transcript plus its rule provider."""

    def __init__(
        self,
        chat_id: int,
        transcript: Transcript,
        provider: RuleProvider,
        format_answer: Callable[[str], str] | None = None,
        rewrite_question: Callable[[str], str] | None = None,
    ) -> None:
        self.chat_id = chat_id
        self.transcript = transcript
        self._provider = provider
        self._format_answer = format_answer
        self._rewrite_question = rewrite_question

    @property
    def rules(self) -> str:
        return self._provider.rules()

    @property
    def memory(self) -> str:
        return self.transcript.memory

    @property
    def turns(self) -> list[Turn]:
        return self.transcript.turns

    def prepare_question(self, text: str) -> str:
        """Apply the deployment's question rewrite, if any."""
        if self._rewrite_question is None:
            return text
        return self._rewrite_question(text)

    def pre_answer(self, question: str) -> str | None:
        return self._provider.pre_answer(question)

    def preamble(self) -> str:
        """Rules followed by the scratchpad memory on a new line."""
        rules = self.rules
        memory = self.memory
        if not memory:
            return rules
        if not rules:
            return memory
        return f"{rules}\n{memory}"

    def add_answer_to_convo(self, question: str | None, *answers: str) -> None:
        """Append an optional question and zero or more assistant answers."""
        if question:
            self.transcript.add_question(question)
        for answer in answers:
            if self._format_answer is not None:
                answer = self._format_answer(answer)
            self.transcript.add_answer(answer)

    def save(self) -> bool:
        return self.transcript.save()


SessionFactory = Callable[[int], Session]


def make_session_factory(
    data_dir: Path,
    provider: RuleProvider,
    parser: OptionParser = DEFAULT_PARSER,
    format_answer: Callable[[str], str] | None = None,
    rewrite_question: Callable[[str], str] | None = None,
) -> SessionFactory:
    """Build a factory that creates sessions loaded from ``data_dir``."""

    def factory(chat_id: int) -> Session:
        transcript = Transcript(chat_id, data_dir, parser)
        transcript.load()
        logger.info("Created session for chat %d (%d turns)", chat_id, len(transcript.turns))
        return Session(chat_id, transcript, provider, format_answer, rewrite_question)

    return factory
