"""Per-chat conversation transcript with flat-file persistence.

Each chat keeps an append-only list of turns and a free-form memory string
that is appended to the rule preamble on every request. The transcript is
stored as plain text, one record per turn::

    ai:                 role line ("ai:" or "user:")
    Hi!                 raw text, one or more lines
    1) Continue         zero or more option lines
    ####                delimiter

Option lines are not read back as structured data; menus are re-derived
from the text by the option parser on load.
"""

from __future__ import annotations

import logging
from pathlib import Path

from src.chat.models import Turn
from src.chat.options import DEFAULT_PARSER, OptionParser

logger = logging.getLogger(__name__)

CHAT_BREAK = "####"
_ASSISTANT_MARKER = "ai:"
_USER_MARKER = "user:"
_LOG_DIR_NAME = "chatlogs"


def transcript_path(data_dir: Path, chat_id: int) -> Path:
    return Path(data_dir) / _LOG_DIR_NAME / f"{chat_id}.txt"


class Transcript:
    """Ordered log of turns for one chat identity."""

    def __init__(
        self,
        chat_id: int,
        data_dir: Path,
        parser: OptionParser = DEFAULT_PARSER,
    ) -> None:
        self.chat_id = chat_id
        self.path = transcript_path(data_dir, chat_id)
        self.turns: list[Turn] = []
        self.memory = ""
        self._parser = parser

    def add_to_memory(self, text: str) -> None:
        """Append a line to the scratchpad memory."""
        if self.memory:
            text = "\n" + text
        self.memory += text

    def add_question(self, question: str) -> None:
        if question:
            self.turns.append(Turn.user(question))

    def add_answer(self, answer: str) -> Turn:
        turn = Turn.assistant(answer, self._parser)
        self.turns.append(turn)
        return turn

    def load(self) -> None:
        """Rebuild turns from the transcript file, if one exists."""
        if not self.path.exists():
            return

        try:
            raw = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Failed to read transcript for chat %d: %s", self.chat_id, exc)
            return
        if "\ufffd" in raw:
            logger.warning("Transcript for chat %d has undecodable bytes", self.chat_id)

        lines = raw.splitlines()
        body: list[str] = []
        waiting_for_role = True
        is_assistant = False

        for line in lines:
            if line.startswith(CHAT_BREAK):
                if body:
                    self._append_loaded(is_assistant, body)
                    body = []
                waiting_for_role = True
            elif waiting_for_role:
                is_assistant = line.startswith(_ASSISTANT_MARKER)
                waiting_for_role = False
            else:
                body.append(line)

        if body:
            self._append_loaded(is_assistant, body)

        logger.debug("Loaded %d turns for chat %d", len(self.turns), self.chat_id)

    def _append_loaded(self, is_assistant: bool, body: list[str]) -> None:
        text = "\n".join(body)
        if is_assistant:
            self.turns.append(Turn.assistant(text, self._parser))
        else:
            self.turns.append(Turn.user(text))

    def dump(self) -> str:
        lines: list[str] = []
        for turn in self.turns:
            lines.append(_ASSISTANT_MARKER if turn.is_assistant else _USER_MARKER)
            lines.append(turn.text)
            for option in turn.options or ():
                lines.append(f"{option.id}) {option.caption}")
            lines.append(CHAT_BREAK)
        return "".join(f"{line}\n" for line in lines)

    def save(self) -> bool:
        """Overwrite the transcript file. Returns False if the write failed."""
        try:
            data = self.dump().encode("utf-8")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_bytes(data)
        except (OSError, UnicodeError) as exc:
            logger.warning("Failed to save transcript for chat %d: %s", self.chat_id, exc)
            return False
        return True
