"""Request coordinator: runs one user turn through the session engine.

Pipeline stages:
1. Resolve (or create) the session
2. Instant answer shortcut
3. Pending guard (one in-flight completion per chat)
4. Append the open question
5. Assemble rules + memory + history + question
6. Trim to the token budget
7. Completion call (background task)
8. Ingest answers and persist
9. Clear pending
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.chat.budget import SYSTEM_ROLE, limit_tokens
from src.chat.models import RenderedChat, SubmitStatus
from src.chat.render import beautify

if TYPE_CHECKING:
    from src.chat.completion import CompletionService
    from src.chat.config import EngineSettings
    from src.chat.registry import SessionRegistry
    from src.chat.session import RuleProvider, Session

logger = logging.getLogger(__name__)


def build_messages(session: Session, question: str) -> list[dict[str, str]]:
    """Assemble the request for ``question`` from the session's prior turns."""
    messages: list[dict[str, str]] = []
    preamble = session.preamble()
    if preamble:
        messages.append({"role": SYSTEM_ROLE, "content": preamble})
    for turn in session.turns:
        messages.append({"role": turn.role, "content": turn.text})
    messages.append({"role": "user", "content": question})
    return messages


class RequestCoordinator:
    """Dispatches user turns to the completion service, one per chat at a time."""

    def __init__(
        self,
        registry: SessionRegistry,
        completion: CompletionService,
        settings: EngineSettings,
    ) -> None:
        self._registry = registry
        self._completion = completion
        self._settings = settings
        self._tasks: set[asyncio.Task[bool]] = set()

    async def submit(self, chat_id: int, text: str) -> SubmitStatus:
        """Hand a user turn to the engine.

        Returns immediately once the completion call is scheduled; callers
        poll ``render`` until ``pending`` clears.
        """
        # Stage 1: session
        session = self._registry.session(chat_id)
        text = session.prepare_question(text)

        # Stage 2: instant answer
        quick = session.pre_answer(text)
        if quick:
            session.add_answer_to_convo(text, quick)
            session.save()
            return SubmitStatus.ANSWERED

        # Stage 3: pending guard
        if not self._registry.try_begin(chat_id):
            logger.info("Chat %d is busy, rejecting turn", chat_id)
            return SubmitStatus.BUSY

        logger.info("Begin request for chat %d", chat_id)
        try:
            # Stages 4-6: open question, message assembly, budget
            messages = build_messages(session, text)
            session.add_answer_to_convo(text)
            messages, _ = limit_tokens(messages, self._settings.token_limit)
        except BaseException:
            self._registry.end(chat_id)
            raise

        task = asyncio.create_task(self._complete(session, messages))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return SubmitStatus.ACCEPTED

    async def ask(self, chat_id: int, text: str) -> SubmitStatus:
        """Submit a turn and wait for its completion call to finish."""
        status = await self.submit(chat_id, text)
        await self.drain()
        return status

    async def _complete(self, session: Session, messages: list[dict[str, str]]) -> bool:
        chat_id = session.chat_id
        try:
            # Stage 7: completion call
            result = await self._completion.complete(
                messages,
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
                n=self._settings.candidates,
            )

            # Stage 8: ingest and persist
            if result.ok:
                session.add_answer_to_convo(None, *result.choices)
                session.save()
            elif result.error_code or result.error_message:
                logger.warning(
                    "Completion failed for chat %d: %s:%s",
                    chat_id,
                    result.error_code,
                    result.error_message,
                )
            else:
                logger.warning("Completion failed for chat %d: unknown error", chat_id)
            return result.ok
        finally:
            # Stage 9: clear pending
            self._registry.end(chat_id)
            logger.info("End request for chat %d", chat_id)

    def _on_task_done(self, task: asyncio.Task[bool]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Completion task crashed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every in-flight completion task."""
        while True:
            running = [t for t in self._tasks if not t.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    def render(self, chat_id: int) -> RenderedChat:
        """Display snapshot of a chat; tolerates an open, unanswered turn."""
        session = self._registry.session(chat_id)
        turns = beautify(list(session.turns))
        options = None
        if turns and turns[-1].is_assistant:
            options = turns[-1].options
        return RenderedChat(
            chat_id=chat_id,
            turns=turns,
            pending=self._registry.is_pending(chat_id),
            options=options,
            has_controls=len(turns) >= 2,
        )

    def allocate_identity(self) -> int:
        return self._registry.generate_identity()


def create_coordinator(
    settings: EngineSettings,
    provider: RuleProvider | None = None,
    completion: CompletionService | None = None,
) -> RequestCoordinator:
    """Wire a registry, completion client and coordinator from settings."""
    from src.chat.completion import CompletionClient
    from src.chat.registry import SessionRegistry
    from src.chat.session import FileRules, StaticRules, make_session_factory

    if provider is None:
        provider = FileRules(settings.rules_path) if settings.rules_path else StaticRules()
    if completion is None:
        completion = CompletionClient(
            settings.api_url,
            settings.api_key,
            settings.model,
            timeout=settings.request_timeout,
        )
    registry = SessionRegistry(
        make_session_factory(settings.data_dir, provider),
        data_dir=settings.data_dir,
        id_floor=settings.id_floor,
        id_span=settings.id_span,
    )
    return RequestCoordinator(registry, completion, settings)
