"""Tests for Session and the rule providers."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.chat.models import Turn
from src.chat.session import FileRules, Session, StaticRules, make_session_factory
from src.chat.transcript import Transcript


def _session(tmp_path: Path, rules: str = "", **kwargs) -> Session:
    return Session(1, Transcript(1, tmp_path), StaticRules(rules), **kwargs)


class TestRuleProviders:
    def test_static_rules_text(self) -> None:
        assert StaticRules("be brief").rules() == "be brief"

    def test_shortcut_lookup_is_case_insensitive(self) -> None:
        rules = StaticRules(shortcuts={"Ping": "pong"})
        assert rules.pre_answer("  PING ") == "pong"
        assert rules.pre_answer("pang") is None

    def test_file_rules_reads_text(self, tmp_path: Path) -> None:
        path = tmp_path / "assistant.txt"
        path.write_text("You are a helpful guide.", encoding="utf-8")
        assert FileRules(path).rules() == "You are a helpful guide."

    def test_file_rules_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Could not load"):
            FileRules(tmp_path / "missing.txt")

    def test_file_rules_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "assistant.txt"
        path.write_text("  \n", encoding="utf-8")
        with pytest.raises(ValueError, match="empty"):
            FileRules(path)


class TestSession:
    def test_preamble_rules_only(self, tmp_path: Path) -> None:
        assert _session(tmp_path, "rules").preamble() == "rules"

    def test_preamble_appends_memory_on_new_line(self, tmp_path: Path) -> None:
        session = _session(tmp_path, "rules")
        session.transcript.add_to_memory("likes cats")
        assert session.preamble() == "rules\nlikes cats"

    def test_preamble_memory_without_rules(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.transcript.add_to_memory("likes cats")
        assert session.preamble() == "likes cats"

    def test_preamble_empty(self, tmp_path: Path) -> None:
        assert _session(tmp_path).preamble() == ""

    def test_add_answer_to_convo(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.add_answer_to_convo("q", "a1", "a2")
        assert session.turns == [Turn.user("q"), Turn.assistant("a1"), Turn.assistant("a2")]

    def test_format_hook_runs_before_option_parsing(self, tmp_path: Path) -> None:
        session = _session(tmp_path, format_answer=lambda a: a + "\n1) More")
        session.add_answer_to_convo(None, "Done.")
        assert session.turns[-1].text == "Done."
        assert session.turns[-1].options is not None
        assert session.turns[-1].options[0].caption == "More"

    def test_question_rewrite_hook(self, tmp_path: Path) -> None:
        session = _session(tmp_path, rewrite_question=lambda q: q.removeprefix("/ask ").strip())
        assert session.prepare_question("/ask  what time is it") == "what time is it"

    def test_question_unchanged_without_hook(self, tmp_path: Path) -> None:
        assert _session(tmp_path).prepare_question(" as typed ") == " as typed "


class TestSessionFactory:
    def test_factory_loads_existing_transcript(self, tmp_path: Path) -> None:
        existing = Transcript(77, tmp_path)
        existing.add_question("hello")
        existing.add_answer("hi")
        existing.save()

        factory = make_session_factory(tmp_path, StaticRules("rules"))
        session = factory(77)
        assert session.chat_id == 77
        assert session.rules == "rules"
        assert session.turns == [Turn.user("hello"), Turn.assistant("hi")]

    def test_factory_passes_rewrite_hook(self, tmp_path: Path) -> None:
        factory = make_session_factory(tmp_path, StaticRules(), rewrite_question=str.upper)
        assert factory(1).prepare_question("hi") == "HI"
