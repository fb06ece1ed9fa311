"""Tests for turn segmentation into render units."""

from chat_to_html.models import (
    Role,
    Session,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResult,
    Turn,
    Usage,
)
from chat_to_html.segmenter import UnitKind, segment_session, segment_turn

USAGE = Usage(10, 5, cache_read_tokens=3)


def test_text_tool_call_and_result_become_three_units():
    turn = Turn(
        id="t1",
        role=Role.ASSISTANT,
        content=(
            TextContent("Let me check"),
            ToolCall(id="call_a", name="Read", input={"file_path": "/x"}),
            ToolResult(tool_use_id="call_a", content="data"),
        ),
        model="m",
        usage=USAGE,
    )
    units = segment_turn(turn)

    assert [u.kind for u in units] == [UnitKind.MESSAGE, UnitKind.TOOL_CALL, UnitKind.TOOL_RESULT]
    assert [u.id for u in units] == ["t1", "t1:tool_call:call_a", "t1:tool_result:call_a"]
    assert [u.usage for u in units] == [USAGE, None, None]
    assert [u.parent_id for u in units] == [None, "t1", "t1"]
    assert all(u.model == "m" and u.role is Role.ASSISTANT for u in units)


def test_usage_goes_to_first_unit_even_when_it_is_a_tool():
    turn = Turn(
        id="t1",
        role=Role.ASSISTANT,
        content=(ToolCall(id="c", name="Bash"), TextContent("after")),
        usage=USAGE,
    )
    units = segment_turn(turn)

    assert [u.usage for u in units] == [USAGE, None]


def test_consecutive_narrative_units_are_merged():
    turn = Turn(
        id="t1",
        role=Role.ASSISTANT,
        content=(ThinkingContent("hmm"), TextContent("a"), TextContent("b")),
    )
    units = segment_turn(turn)

    assert len(units) == 1
    assert units[0].content == turn.content
    assert units[0].has_thinking


def test_text_after_tool_gets_its_own_id():
    turn = Turn(
        id="t1",
        role=Role.ASSISTANT,
        content=(TextContent("before"), ToolCall(id="c", name="Bash"), TextContent("after")),
    )
    units = segment_turn(turn)

    assert [u.id for u in units] == ["t1", "t1:tool_call:c", "t1:message:1"]


def test_tool_without_id_uses_index():
    turn = Turn(
        id="t1",
        role=Role.USER,
        content=(ToolResult(tool_use_id=""), ToolResult(tool_use_id="")),
    )
    units = segment_turn(turn)

    assert [u.id for u in units] == ["t1:tool_result:0", "t1:tool_result:1"]


def test_duplicate_tool_ids_are_disambiguated():
    turn = Turn(
        id="t1",
        role=Role.ASSISTANT,
        content=(ToolCall(id="dup", name="A"), ToolCall(id="dup", name="B")),
    )
    units = segment_turn(turn)

    assert [u.id for u in units] == ["t1:tool_call:dup", "t1:tool_call:dup:1"]


def test_empty_turn_yields_one_empty_message_unit():
    turn = Turn(id="t1", role=Role.SYSTEM, usage=USAGE, is_harness=True)
    units = segment_turn(turn)

    assert len(units) == 1
    assert units[0].kind is UnitKind.MESSAGE
    assert units[0].content == ()
    assert units[0].usage == USAGE
    assert units[0].is_harness


def test_segment_session_keeps_order_and_unique_ids():
    session = Session(
        session_id="s",
        turns=(
            Turn(id="a", role=Role.USER, content=(TextContent("q"),)),
            Turn(
                id="b",
                role=Role.ASSISTANT,
                content=(TextContent("x"), ToolCall(id="c1", name="T"), ToolCall(id="c2", name="T")),
                usage=USAGE,
            ),
        ),
    )
    units = segment_session(session)

    ids = [u.id for u in units]
    assert ids == ["a", "b", "b:tool_call:c1", "b:tool_call:c2"]
    assert len(set(ids)) == len(ids)
    assert sum(1 for u in units if u.usage is not None) == 1
