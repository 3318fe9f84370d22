import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from libs.core import ChatMessage, GeneratorUnavailableError, Resource
from libs.llm.replicate_client import EMPTY_REPLY, LLMClientError, ReplicateLLMClient
from libs.rag import NO_MATCHES, parse_numbered_notes, resource_brief, resource_context


# Stub settings with fake token
class DummySettings(SimpleNamespace):
    replicate_api_token: str = "token"


class UnconfiguredSettings(SimpleNamespace):
    replicate_api_token: str = ""


def make_client() -> ReplicateLLMClient:
    return ReplicateLLMClient(settings=DummySettings())


def _resources(count: int):
    return [
        Resource(title=f"Resource {i}", description=f"desc {i}", tags=["s"], type="drill")
        for i in range(1, count + 1)
    ]


# ---------------------------------------------------------------------------
# prompt packaging and note parsing


def test_resource_context_lines():
    context = resource_context(_resources(2))
    assert context.splitlines() == [
        "1. Resource 1 - desc 1 (type: drill, tags: s)",
        "2. Resource 2 - desc 2 (type: drill, tags: s)",
    ]
    assert resource_context([]) == NO_MATCHES


def test_resource_brief_defaults():
    brief = resource_brief([Resource(title="T", description="D")])
    assert brief == "1. Title: T\nDescription: D\nType: resource\nTags: none"


def test_parse_numbered_notes_strips_numbering_and_blank_lines():
    text = "1) Use it first.\n\n  2)   Then this one.\n3)Last."
    assert parse_numbered_notes(text, 3) == ["Use it first.", "Then this one.", "Last."]


def test_parse_numbered_notes_pads_missing_lines():
    assert parse_numbered_notes("1) Only one.\n2) And two.", 3) == [
        "Only one.",
        "And two.",
        "",
    ]
    assert parse_numbered_notes("", 2) == ["", ""]


def test_parse_numbered_notes_ignores_extra_lines():
    assert parse_numbered_notes("1) a\n2) b\n3) c", 2) == ["a", "b"]


def test_parse_numbered_notes_keeps_unnumbered_lines():
    assert parse_numbered_notes("Use the cards\n2) b", 2) == ["Use the cards", "b"]


# ---------------------------------------------------------------------------
# transport


def test_call_joins_streamed_chunks():
    client = make_client()
    client._client = MagicMock()
    client._client.run.return_value = iter(["Hel", "lo"])
    assert client._call("model", [], temperature=0.1) == "Hello"
    _, kwargs = client._client.run.call_args
    assert kwargs["input"]["temperature"] == 0.1


def test_call_failure_is_wrapped():
    client = make_client()
    client._client = MagicMock()
    client._client.run.side_effect = RuntimeError("boom")
    with pytest.raises(LLMClientError):
        client._call("model", [], temperature=0.1)


def test_call_without_token_is_unavailable():
    client = ReplicateLLMClient(settings=UnconfiguredSettings())
    assert not client.is_configured()
    with pytest.raises(GeneratorUnavailableError):
        client._call("model", [], temperature=0.1)


# ---------------------------------------------------------------------------
# operations


def test_answer_includes_history_and_context(monkeypatch):
    client = make_client()
    captured = {}

    def fake_call(model, messages, temperature):
        captured["messages"] = messages
        return "  Use the drill cards.  "

    monkeypatch.setattr(client, "_call", fake_call)
    history = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]
    reply = client.answer_with_resources("s sound", history, _resources(1))

    assert reply == "Use the drill cards."
    messages = captured["messages"]
    assert messages[0]["role"] == "system"
    assert messages[1:3] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]
    assert "s sound" in messages[-1]["content"]
    assert "1. Resource 1 - desc 1" in messages[-1]["content"]


def test_answer_blank_completion(monkeypatch):
    client = make_client()
    monkeypatch.setattr(client, "_call", lambda m, msgs, temperature: "   ")
    assert client.answer_with_resources("q", [], []) == EMPTY_REPLY


def test_answer_with_no_shortlist_mentions_empty_library(monkeypatch):
    client = make_client()
    captured = {}

    def fake_call(model, messages, temperature):
        captured["user"] = messages[-1]["content"]
        return "Nothing matched."

    monkeypatch.setattr(client, "_call", fake_call)
    client.answer_with_resources("q", [], [])
    assert NO_MATCHES in captured["user"]


def test_write_resource_notes_aligns_by_position(monkeypatch):
    client = make_client()
    monkeypatch.setattr(
        client, "_call", lambda m, msgs, temperature: "1) First note.\n2) Second note."
    )
    assert client.write_resource_notes("q", _resources(3)) == [
        "First note.",
        "Second note.",
        "",
    ]


def test_write_resource_notes_empty_shortlist_skips_call(monkeypatch):
    client = make_client()
    fake = MagicMock()
    monkeypatch.setattr(client, "_call", fake)
    assert client.write_resource_notes("q", []) == []
    fake.assert_not_called()


def test_unconfigured_client_degrades():
    client = ReplicateLLMClient(settings=UnconfiguredSettings())
    assert client.write_resource_notes("q", _resources(2)) == ["", ""]
    assert client.suggest_metadata("t", "some text").tags == []
    with pytest.raises(GeneratorUnavailableError):
        client.answer_with_resources("q", [], [])


def test_suggest_metadata_parses_fenced_json(monkeypatch):
    client = make_client()
    payload = {
        "tags": ["s", "articulation", "", "a", "b", "c", "d", "e", "f", "g"],
        "ageRange": "4-6",
        "type": "worksheet",
        "summary": "Practice sheet.",
    }
    fenced = "Here you go:\n```json\n" + json.dumps(payload) + "\n```"
    monkeypatch.setattr(client, "_call", lambda m, msgs, temperature: fenced)

    suggestion = client.suggest_metadata("Sheet", "text")
    assert suggestion.tags == ["s", "articulation", "a", "b", "c", "d", "e", "f"]
    assert suggestion.age_range == "4-6"
    assert suggestion.type == "worksheet"
    assert suggestion.summary == "Practice sheet."


def test_suggest_metadata_clips_text(monkeypatch):
    client = make_client()
    captured = {}

    def fake_call(model, messages, temperature):
        captured["user"] = messages[-1]["content"]
        return "{}"

    monkeypatch.setattr(client, "_call", fake_call)
    client.suggest_metadata("t", "x" * 5000)
    assert "x" * 4000 in captured["user"]
    assert "x" * 4001 not in captured["user"]


def test_suggest_metadata_invalid_json_is_ignored(monkeypatch):
    client = make_client()
    monkeypatch.setattr(client, "_call", lambda m, msgs, temperature: "not json")
    suggestion = client.suggest_metadata("t", "text")
    assert suggestion.tags == []
    assert suggestion.summary is None


def test_suggest_metadata_blank_text_skips_call(monkeypatch):
    client = make_client()
    fake = MagicMock()
    monkeypatch.setattr(client, "_call", fake)
    assert client.suggest_metadata("t", "  ").tags == []
    fake.assert_not_called()


def test_missing_prompts_file(tmp_path: Path) -> None:
    missing = tmp_path / "nope.yaml"
    with pytest.raises(LLMClientError):
        ReplicateLLMClient(settings=DummySettings(), prompts_path=missing)


def test_missing_prompt_key(monkeypatch, tmp_path: Path) -> None:
    prompts_file = tmp_path / "p.yaml"
    prompts_file.write_text("answer:\n  system: s\n  user: u\n", encoding="utf-8")
    client = ReplicateLLMClient(settings=DummySettings(), prompts_path=prompts_file)
    monkeypatch.setattr(client, "_call", lambda m, msgs, temperature: "1) a")
    with pytest.raises(LLMClientError):
        client.write_resource_notes("q", _resources(1))
