"""
Turn segmentation.

A turn may interleave narrative text, tool calls and tool results. The
report shows each tool call and each tool result as its own card, so a
turn is flattened into RenderUnits:

- consecutive text/thinking units are merged into one `message` unit
- every tool call or tool result becomes its own unit
- the turn's usage goes to the first unit emitted for it, and only there
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from chat_to_html.models import (
    NARRATIVE_KINDS,
    ContentKind,
    ContentUnit,
    Role,
    Session,
    ToolCall,
    ToolResult,
    Turn,
    Usage,
)


class UnitKind(StrEnum):
    MESSAGE = "message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


_TOOL_UNIT_KINDS = {
    ContentKind.TOOL_USE: UnitKind.TOOL_CALL,
    ContentKind.TOOL_RESULT: UnitKind.TOOL_RESULT,
}


@dataclass(frozen=True)
class RenderUnit:
    """Smallest independently displayable piece of a turn."""

    id: str
    kind: UnitKind
    role: Role
    content: tuple[ContentUnit, ...]
    timestamp: str = ""
    model: str | None = None
    usage: Usage | None = None
    is_harness: bool = False
    parent_id: str | None = None  # Source turn id, set on tool sub-parts

    @property
    def has_thinking(self) -> bool:
        return any(item.kind is ContentKind.THINKING for item in self.content)


def _tool_id(item: ToolCall | ToolResult) -> str:
    if isinstance(item, ToolCall):
        return item.id
    return item.tool_use_id


def segment_turn(turn: Turn) -> list[RenderUnit]:
    """Split one turn into render units, preserving content order."""
    units: list[RenderUnit] = []
    usage_pending = turn.usage is not None

    def emit(
        unit_id: str,
        kind: UnitKind,
        content: tuple[ContentUnit, ...],
        parent_id: str | None = None,
    ) -> None:
        nonlocal usage_pending
        units.append(
            RenderUnit(
                id=unit_id,
                kind=kind,
                role=turn.role,
                content=content,
                timestamp=turn.timestamp,
                model=turn.model,
                usage=turn.usage if usage_pending else None,
                is_harness=turn.is_harness,
                parent_id=parent_id,
            )
        )
        usage_pending = False

    if not turn.content:
        emit(turn.id, UnitKind.MESSAGE, ())
        return units

    buffer: list[ContentUnit] = []
    seen_ids: set[str] = set()
    tool_index = 0
    message_index = 0

    def flush() -> None:
        nonlocal message_index
        if buffer:
            # Text after a tool part needs its own id; the first block keeps the turn id
            unit_id = turn.id if message_index == 0 else f"{turn.id}:message:{message_index}"
            emit(unit_id, UnitKind.MESSAGE, tuple(buffer))
            buffer.clear()
            message_index += 1

    for item in turn.content:
        if item.kind in NARRATIVE_KINDS:
            buffer.append(item)
            continue

        flush()
        kind = _TOOL_UNIT_KINDS[item.kind]
        tool_id = _tool_id(item)
        unit_id = f"{turn.id}:{kind}:{tool_id or tool_index}"
        if unit_id in seen_ids:
            unit_id = f"{turn.id}:{kind}:{tool_id}:{tool_index}"
        seen_ids.add(unit_id)
        emit(unit_id, kind, (item,), parent_id=turn.id)
        tool_index += 1

    flush()
    return units


def segment_session(session: Session) -> list[RenderUnit]:
    """Flatten every turn of a session into render units, in order."""
    units: list[RenderUnit] = []
    for turn in session.turns:
        units.extend(segment_turn(turn))
    return units
