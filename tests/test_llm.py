"""
Tests for llm.py with the OpenAI client mocked.
"""
import json
from datetime import date
from unittest import mock

import pytest

import config
import llm
from models import ChatRole, ChatTurn


def _turns(n):
    turns = []
    for i in range(n):
        role = ChatRole.user if i % 2 == 0 else ChatRole.model
        turns.append(ChatTurn(role=role, text=f"msg-{i:02d}"))
    return turns


def _completion(content):
    response = mock.Mock()
    response.choices = [mock.Mock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def client():
    fake = mock.Mock()
    with mock.patch('llm.get_client', return_value=fake):
        yield fake


class TestGetClient:

    def test_timeout_and_single_retry(self, monkeypatch):
        monkeypatch.setattr(llm, '_client', None)
        with mock.patch('llm.OpenAI') as openai_cls:
            llm.get_client()

        openai_cls.assert_called_once_with(
            api_key=config.OPENAI_API_KEY,
            timeout=config.LLM_TIMEOUT_SECONDS,
            max_retries=1,
        )

    def test_client_is_cached(self, monkeypatch):
        monkeypatch.setattr(llm, '_client', None)
        with mock.patch('llm.OpenAI') as openai_cls:
            first = llm.get_client()
            second = llm.get_client()

        assert first is second is openai_cls.return_value
        openai_cls.assert_called_once()


class TestBuildMessages:

    def test_roles_mapped_for_openai(self):
        messages = llm.build_messages("e agora?", "sys", _turns(2))
        assert messages == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "msg-00"},
            {"role": "assistant", "content": "msg-01"},
            {"role": "user", "content": "e agora?"},
        ]

    def test_history_capped(self):
        messages = llm.build_messages("oi", "sys", _turns(30))
        assert len(messages) == 1 + llm.MAX_CONTEXT_MESSAGES + 1
        assert messages[1]["content"] == "msg-10"

    def test_blank_message_replaced(self):
        assert llm.build_messages("   ", "sys", [])[-1]["content"] == "."


class TestGenerateContent:

    def test_returns_stripped_text(self, client):
        client.chat.completions.create.return_value = _completion("  Olá!  ")
        assert llm.generate_content("oi") == "Olá!"

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": llm.DEFAULT_SYSTEM_PROMPT}
        assert "response_format" not in kwargs

    def test_empty_answer_gets_placeholder(self, client):
        client.chat.completions.create.return_value = _completion(None)
        assert llm.generate_content("oi") == llm.EMPTY_GENERATION_REPLY

    def test_json_mode(self, client):
        client.chat.completions.create.return_value = _completion("{}")
        llm.generate_content("oi", json_mode=True)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_errors_propagate(self, client):
        client.chat.completions.create.side_effect = RuntimeError("503")
        with pytest.raises(RuntimeError):
            llm.generate_content("oi")


class TestParseInferredDate:

    @pytest.mark.parametrize("raw,expected", [
        ("2026-02-27", "2026-02-27"),
        ('"2026-02-27"', "2026-02-27"),
        ("A data é 2026-02-28.", "2026-02-28"),
        ("null", None),
        ("NULL", None),
        ("", None),
        ("sem data", None),
    ])
    def test_parse(self, raw, expected):
        assert llm.parse_inferred_date(raw) == expected


class TestInferMeetingDate:

    def test_ok(self):
        with mock.patch('llm.generate_content', return_value="2026-02-26") as generate:
            result = llm.infer_meeting_date("reunião de ontem", [], today=date(2026, 2, 27))

        assert result.value == "2026-02-26"
        assert not result.degraded
        prompt = generate.call_args.args[0]
        assert "2026-02-27" in prompt
        assert "Usuário: reunião de ontem" in prompt
        assert generate.call_args.kwargs["system_prompt"] == llm.DATE_INFER_SYSTEM

    def test_only_last_six_turns_used(self):
        with mock.patch('llm.generate_content', return_value="null") as generate:
            result = llm.infer_meeting_date("e aí", _turns(10), today=date(2026, 2, 27))

        assert result.value is None
        prompt = generate.call_args.args[0]
        assert "msg-03" not in prompt
        assert "msg-04" in prompt and "msg-09" in prompt

    def test_failure_degrades_to_none(self):
        with mock.patch('llm.generate_content', side_effect=RuntimeError("timeout")):
            result = llm.infer_meeting_date("hoje", [])
        assert result.value is None
        assert result.degraded
        assert "timeout" in result.error


class TestParseJsonObject:

    def test_plain(self):
        assert llm.parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert llm.parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_text_around(self):
        assert llm.parse_json_object('Aqui está: {"a": {"b": 2}} ok') == {"a": {"b": 2}}

    def test_no_object(self):
        with pytest.raises(ValueError):
            llm.parse_json_object("nada aqui")

    def test_array_rejected(self):
        with pytest.raises(ValueError):
            llm.parse_json_object("[1, 2]")


class TestExtractMeetingFromHistory:

    def test_empty_history_skips_call(self):
        with mock.patch('llm.generate_content') as generate:
            result = llm.extract_meeting_from_history([])
        generate.assert_not_called()
        assert not result.degraded
        assert not result.value.is_complete

    def test_complete_meeting(self):
        raw = json.dumps({
            "has_complete_meeting": True,
            "subject": "Sprint Planning",
            "date": "2026-02-27",
            "full_text": "Definimos metas.\nRevisamos o backlog.",
            "items": ["Definimos metas", "Revisamos o backlog"],
        })
        with mock.patch('llm.generate_content', return_value=raw) as generate:
            result = llm.extract_meeting_from_history(_turns(4), today=date(2026, 2, 27))

        assert not result.degraded
        assert result.value.is_complete
        assert result.value.subject == "Sprint Planning"
        assert result.value.items == ["Definimos metas", "Revisamos o backlog"]
        assert generate.call_args.kwargs["json_mode"] is True
        assert generate.call_args.kwargs["system_prompt"] == llm.EXTRACTOR_SYSTEM_PROMPT

    def test_prompt_uses_last_twenty_turns(self):
        with mock.patch('llm.generate_content', return_value='{"has_complete_meeting": false}') as generate:
            llm.extract_meeting_from_history(_turns(24))
        prompt = generate.call_args.args[0]
        assert "msg-03" not in prompt
        assert "msg-04" in prompt and "msg-23" in prompt

    def test_missing_items_is_incomplete(self):
        raw = '{"has_complete_meeting": true, "subject": "Retro", "date": "2026-02-27", "items": null}'
        with mock.patch('llm.generate_content', return_value=raw):
            result = llm.extract_meeting_from_history(_turns(2))
        assert result.value.items == []
        assert not result.value.is_complete

    def test_non_string_items_dropped(self):
        raw = '{"has_complete_meeting": true, "subject": "Retro", "date": "2026-02-27", "items": ["ok", 3, null]}'
        with mock.patch('llm.generate_content', return_value=raw):
            result = llm.extract_meeting_from_history(_turns(2))
        assert result.value.items == ["ok"]

    def test_malformed_output_degrades(self):
        with mock.patch('llm.generate_content', return_value="Não consegui gerar uma resposta."):
            result = llm.extract_meeting_from_history(_turns(2))
        assert result.degraded
        assert not result.value.has_complete_meeting

    def test_provider_error_degrades(self):
        with mock.patch('llm.generate_content', side_effect=RuntimeError("boom")):
            result = llm.extract_meeting_from_history(_turns(2))
        assert result.degraded
        assert not result.value.is_complete
