"""Tests for the Codex CLI parser."""

import pytest
from builders import (
    codex_call,
    codex_event,
    codex_item,
    codex_message,
    codex_meta,
    codex_output,
    codex_token_count,
    jsonl,
)

from chat_to_html.config import ParseOptions
from chat_to_html.errors import MalformedRecordError
from chat_to_html.models import Role, Source, TextContent, ThinkingContent, ToolCall, ToolResult, Usage
from chat_to_html.parsers.codex import CodexParser, parse_tool_arguments, parse_tool_output


def parse(content: str, **options):
    return CodexParser().parse(content, ParseOptions(**options))


def test_can_parse():
    parser = CodexParser()
    assert parser.can_parse('{"type": "session_meta", "payload": {"id": "x"}}')
    assert parser.can_parse('{"type": "response_item", "payload": {"type": "message"}}')
    assert parser.can_parse('{"type": "other", "payload": {"originator": "codex_cli_rs"}}')
    assert not parser.can_parse('{"type": "response_item"}')
    assert not parser.can_parse('{"type": "user", "message": {}}')
    assert not parser.can_parse("[1, 2]")


def test_session_metadata(codex_log):
    session = parse(codex_log)

    assert session.source is Source.CODEX
    assert session.session_id == "cx-1"
    assert session.cwd == "/repo"
    assert session.version == "0.40.0"
    assert session.git_branch == "dev"
    assert session.model == "gpt-5-codex"


def test_turns(codex_log):
    session = parse(codex_log)

    assert [t.id for t in session.turns] == [
        "line-2",
        "line-3",
        "line-4",
        "line-6",
        "line-7",
        "line-8",
        "line-9",
        "line-10",
        "line-12",
    ]
    assert [t.role for t in session.turns] == [
        Role.SYSTEM,
        Role.USER,
        Role.USER,
        Role.USER,
        Role.SYSTEM,
        Role.ASSISTANT,
        Role.USER,
        Role.ASSISTANT,
        Role.ASSISTANT,
    ]
    assert session.turns[4].content == (ThinkingContent("Looking at the code"),)
    assert session.turns[5].content == (
        ToolCall(id="call_1", name="shell", input={"command": ["ls", "-la"]}),
    )
    assert session.turns[6].content == (ToolResult(tool_use_id="call_1", content="a.txt\n"),)
    assert session.turns[7].content == (TextContent("Done."),)


def test_model_applies_from_turn_context(codex_log):
    session = parse(codex_log)

    by_id = {t.id: t for t in session.turns}
    assert by_id["line-8"].model == "gpt-5-codex"
    assert by_id["line-10"].model == "gpt-5-codex"
    assert by_id["line-6"].model is None


def test_harness_identification(codex_log):
    session = parse(codex_log)

    flags = {t.id: t.is_harness for t in session.turns}
    # Instructions, the first two user messages and reasoning are harness
    assert flags == {
        "line-2": True,
        "line-3": True,
        "line-4": True,
        "line-6": False,
        "line-7": True,
        "line-8": False,
        "line-9": False,
        "line-10": False,
        "line-12": False,
    }


def test_harness_identification_disabled(codex_log):
    session = parse(codex_log, identify_harness=False)

    assert not any(t.is_harness for t in session.turns)
    assert session.turns[4].role is Role.ASSISTANT


def test_harness_user_turns_option(codex_log):
    session = parse(codex_log, harness_user_turns=0)

    users = [t for t in session.turns if t.role is Role.USER and t.id != "line-9"]
    assert not any(t.is_harness for t in users)


def test_cumulative_token_counts_become_deltas(codex_log):
    session = parse(codex_log)

    by_id = {t.id: t for t in session.turns}
    assert by_id["line-10"].usage == Usage(100, 20, cache_creation_tokens=None, cache_read_tokens=40)
    assert by_id["line-12"].usage == Usage(50, 10, cache_creation_tokens=None, cache_read_tokens=20)
    assert session.total_usage == Usage(150, 30, cache_creation_tokens=None, cache_read_tokens=60)
    # Cached input is already part of input for Codex
    assert session.total_tokens == 180


def test_token_count_before_any_assistant_turn():
    content = jsonl(
        codex_meta(),
        codex_message("user", "a"),
        codex_token_count({"input_tokens": 5, "output_tokens": 0}),
    )
    session = parse(content)

    usage_turn = session.turns[-1]
    assert usage_turn.id == "line-3:usage"
    assert usage_turn.content == ()
    assert usage_turn.is_harness
    assert session.total_usage.input_tokens == 5


def test_token_count_falls_back_to_last_usage_when_total_goes_backwards():
    content = jsonl(
        codex_meta(),
        codex_message("assistant", "one"),
        codex_token_count({"input_tokens": 100, "output_tokens": 10}),
        codex_message("assistant", "two"),
        codex_token_count(
            {"input_tokens": 40, "output_tokens": 4},
            last={"input_tokens": 40, "output_tokens": 4},
        ),
    )
    session = parse(content)

    assert session.turns[-1].usage == Usage(40, 4, cache_creation_tokens=None, cache_read_tokens=0)
    assert session.total_usage.input_tokens == 140


def test_repeated_token_count_is_not_double_counted():
    content = jsonl(
        codex_meta(),
        codex_message("assistant", "one"),
        codex_token_count({"input_tokens": 100, "output_tokens": 10}),
        codex_token_count({"input_tokens": 100, "output_tokens": 10}),
    )
    session = parse(content)

    assert session.total_usage.input_tokens == 100
    assert session.total_usage.output_tokens == 10


def test_failed_command_output_is_error():
    content = jsonl(
        codex_meta(),
        codex_call("c1", "shell", {"command": ["false"]}),
        codex_output("c1", '{"output": "boom", "metadata": {"exit_code": 1}}'),
    )
    session = parse(content)

    assert session.turns[-1].content == (ToolResult(tool_use_id="c1", content="boom", is_error=True),)


def test_items_missing_required_fields_are_skipped():
    content = jsonl(
        codex_meta(),
        codex_item(type="function_call", name="shell", arguments="{}"),
        codex_item(type="function_call_output", output="x"),
        codex_item(type="reasoning", summary=[]),
        codex_event(type="user_message", message="dup"),
        codex_message("user", "kept"),
    )
    session = parse(content)

    assert [t.id for t in session.turns] == ["line-6"]


def test_custom_tool_call():
    content = jsonl(
        codex_meta(),
        codex_item(type="custom_tool_call", call_id="c1", name="apply_patch", input="*** Begin Patch"),
        codex_item(type="custom_tool_call_output", call_id="c1", output="Success"),
    )
    session = parse(content)

    assert session.turns[0].content == (
        ToolCall(id="c1", name="apply_patch", input={"raw": "*** Begin Patch"}),
    )
    assert session.turns[1].content == (ToolResult(tool_use_id="c1", content="Success"),)


def test_parse_tool_arguments():
    assert parse_tool_arguments('{"a": 1}') == {"a": 1}
    assert parse_tool_arguments("not json") == {"raw": "not json"}
    assert parse_tool_arguments("[1, 2]") == {"value": [1, 2]}
    assert parse_tool_arguments("") == {}
    assert parse_tool_arguments(None) == {}
    assert parse_tool_arguments({"b": 2}) == {"b": 2}


def test_parse_tool_output():
    assert parse_tool_output(None) == ("", False)
    assert parse_tool_output("plain text") == ("plain text", False)
    assert parse_tool_output('{"output": "ok", "metadata": {"exit_code": 0}}') == ("ok", False)
    assert parse_tool_output('{"output": "bad", "metadata": {"exit_code": 2}}') == ("bad", True)
    assert parse_tool_output('{"content": "c", "success": false}') == ("c", True)
    assert parse_tool_output("42") == ("42", False)
    assert parse_tool_output('"quoted"') == ("quoted", False)
    assert parse_tool_output('{"x": 1}') == ('{\n  "x": 1\n}', False)


def test_malformed_line_is_fatal():
    content = jsonl(codex_meta()) + "[1, 2]\n"

    with pytest.raises(MalformedRecordError) as exc_info:
        parse(content)

    assert exc_info.value.line_number == 2
    assert exc_info.value.source == "codex"
