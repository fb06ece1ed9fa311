"""Tests for the Claude Code parser."""

import pytest
from builders import (
    claude_assistant,
    claude_usage,
    claude_user,
    jsonl,
    tool_result,
    tool_use,
)

from chat_to_html.config import ParseOptions
from chat_to_html.errors import MalformedRecordError
from chat_to_html.models import (
    Role,
    Source,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResult,
    Usage,
)
from chat_to_html.parsers.claude import ClaudeParser, format_todo_update, format_tool_result_content


def parse(content: str, **options):
    return ClaudeParser().parse(content, ParseOptions(**options))


def test_can_parse_known_record_types():
    parser = ClaudeParser()
    assert parser.can_parse('{"type": "user", "message": {}}')
    assert parser.can_parse('{"type": "summary", "summary": "x"}')
    assert parser.can_parse('{"type": "file-history-snapshot"}')
    assert not parser.can_parse('{"type": "session_meta", "payload": {}}')
    assert not parser.can_parse('{"type": "user", "payload": {"type": "message"}}')
    assert not parser.can_parse("not json")
    assert not parser.can_parse("")


def test_session_metadata(claude_log):
    session = parse(claude_log)

    assert session.source is Source.CLAUDE
    assert session.session_id == "sess-1"
    assert session.version == "2.0.1"
    assert session.cwd == "/work"
    assert session.git_branch == "main"
    assert session.model == "claude-sonnet-4-5"
    assert session.agent_id is None


def test_turn_order_and_roles(claude_log):
    session = parse(claude_log)

    assert [t.id for t in session.turns] == ["u1", "a1:thinking", "a1", "a2", "u2"]
    assert [t.role for t in session.turns] == [
        Role.USER,
        Role.SYSTEM,
        Role.ASSISTANT,
        Role.ASSISTANT,
        Role.USER,
    ]
    assert session.turns[0].content == (TextContent("Hello"),)
    assert session.turns[3].content == (
        TextContent("Hi there"),
        ToolCall(id="toolu_1", name="Bash", input={"command": "ls"}),
    )
    assert session.turns[4].content == (ToolResult(tool_use_id="toolu_1", content="file.txt"),)


def test_thinking_becomes_harness_turn(claude_log):
    session = parse(claude_log)

    thinking = session.turns[1]
    assert thinking.is_harness
    assert thinking.content == (ThinkingContent("Let me think"),)
    assert thinking.model == "claude-sonnet-4-5"


def test_thinking_without_harness_detection(claude_log):
    session = parse(claude_log, identify_harness=False)

    thinking = session.turns[1]
    assert thinking.role is Role.ASSISTANT
    assert not thinking.is_harness


def test_usage_counted_once_per_api_message(claude_log):
    """Records of one API response repeat its usage; only the first counts."""
    session = parse(claude_log)

    with_usage = [t for t in session.turns if t.usage is not None]
    assert [t.id for t in with_usage] == ["a1"]
    assert session.total_usage == Usage(10, 5, cache_creation_tokens=0, cache_read_tokens=3)
    assert session.total_tokens == 18


def test_total_usage_equals_sum_of_turns():
    content = jsonl(
        claude_user("Hi"),
        claude_assistant(
            [{"type": "text", "text": "a"}], uuid="a1", message_id="m1", usage=claude_usage(10, 5, 2, 3)
        ),
        claude_assistant(
            [{"type": "text", "text": "b"}], uuid="a2", message_id="m2", usage=claude_usage(7, 1, 0, 4)
        ),
    )
    session = parse(content)

    summed = Usage()
    for turn in session.turns:
        if turn.usage is not None:
            summed = summed + turn.usage
    assert summed == session.total_usage
    assert session.total_usage == Usage(17, 6, cache_creation_tokens=2, cache_read_tokens=7)


def test_missing_cache_counters_stay_unreported():
    """Cache counters absent from the usage block are None, not zero."""
    content = jsonl(
        claude_user("Hi"),
        claude_assistant(
            [{"type": "text", "text": "a"}], usage={"input_tokens": 4, "output_tokens": 2}
        ),
    )
    session = parse(content)

    usage = session.turns[1].usage
    assert usage == Usage(4, 2)
    assert usage.cache_creation_tokens is None
    assert usage.cache_read_tokens is None
    assert session.total_usage.cache_read_tokens is None
    assert session.total_tokens == 6


def test_todo_write_adds_checklist_turn():
    todos = [
        {"content": "Write tests", "status": "in_progress"},
        {"content": "Ship", "status": "pending"},
        {"content": "Plan", "status": "completed"},
    ]
    content = jsonl(
        claude_user("Go"),
        claude_assistant([tool_use("t1", "TodoWrite", {"todos": todos})], uuid="a1", message_id="m1"),
        claude_assistant([tool_use("t2", "TodoWrite", {"todos": todos})], uuid="a2", message_id="m2"),
    )
    session = parse(content)

    todo_turns = [t for t in session.turns if t.id.endswith(":todos")]
    assert [t.id for t in todo_turns] == ["a1:todos"]
    assert todo_turns[0].is_harness
    assert todo_turns[0].content == (
        TextContent("**Todo list updated** (3 items)\n\n- ▶ Write tests\n- □ Ship\n- ✓ Plan"),
    )


def test_format_todo_update_truncates_and_flattens():
    text = format_todo_update([{"content": "line one\nline two " + "word " * 30, "status": "pending"}])
    item = text.splitlines()[-1]
    assert item.startswith("- □ line one line two")
    assert item.endswith("...")
    assert "\n" not in item


def test_meta_user_record_is_harness():
    content = jsonl(
        claude_user("<command-name>/clear</command-name>", uuid="u1", isMeta=True),
        claude_user("Real prompt", uuid="u2"),
    )
    session = parse(content)

    assert [t.is_harness for t in session.turns] == [True, False]


def test_synthetic_model_is_ignored():
    content = jsonl(
        claude_user("Hi"),
        claude_assistant([{"type": "text", "text": "No response requested."}], model="<synthetic>"),
    )
    session = parse(content)

    assert session.model is None
    assert session.turns[1].model is None


def test_content_blocks():
    content = jsonl(
        claude_user(
            [
                {"type": "text", "text": "See image"},
                {"type": "image", "source": {"type": "base64", "data": "..."}},
                {"type": "document", "source": {}},
            ]
        ),
        claude_assistant([tool_use("t1", "Custom", "raw-input")]),
    )
    session = parse(content)

    assert session.turns[0].content == (TextContent("See image"), TextContent("[image]"))
    assert session.turns[1].content == (ToolCall(id="t1", name="Custom", input={"value": "raw-input"}),)


def test_tool_result_list_content_and_error_flag():
    content = jsonl(
        claude_user(
            [
                tool_result(
                    "t1",
                    [
                        {"type": "text", "text": "<tool_use_error>File not found</tool_use_error>"},
                        {"type": "image"},
                    ],
                    is_error=True,
                )
            ]
        )
    )
    session = parse(content)

    result = session.turns[0].content[0]
    assert result == ToolResult(tool_use_id="t1", content="File not found\n[image]", is_error=True)


def test_format_tool_result_content_variants():
    assert format_tool_result_content(None) == ""
    assert format_tool_result_content("plain") == "plain"
    assert format_tool_result_content({"a": 1}) == '{"a": 1}'
    assert format_tool_result_content(["x", {"type": "other", "v": 2}]) == 'x\n{"type": "other", "v": 2}'


def test_records_without_message_are_skipped():
    content = jsonl(
        {"type": "summary", "summary": "Earlier work", "leafUuid": "x"},
        {"type": "user", "uuid": "u0"},
        claude_user("Hi", uuid="u1"),
    )
    session = parse(content)

    assert [t.id for t in session.turns] == ["u1"]


def test_missing_uuid_falls_back_to_line_number():
    record = claude_user("Hi")
    del record["uuid"]
    session = parse(jsonl(record))

    assert session.turns[0].id == "line-1"


def test_duplicate_uuids_get_unique_turn_ids():
    content = jsonl(claude_user("one", uuid="dup"), claude_user("two", uuid="dup"))
    session = parse(content)

    assert [t.id for t in session.turns] == ["dup", "dup~2"]


def test_malformed_line_is_fatal(claude_log):
    content = claude_log + "{not json\n"

    with pytest.raises(MalformedRecordError) as exc_info:
        parse(content)

    assert exc_info.value.line_number == 6
    assert exc_info.value.source == "claude"
    assert exc_info.value.snippet == "{not json"


def test_blank_lines_are_ignored(claude_log):
    session = parse("\n\n" + claude_log.replace("\n", "\n\n"))

    assert len(session.turns) == 5
