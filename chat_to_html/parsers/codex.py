"""
OpenAI Codex CLI JSONL parser.

Every line is `{"type": ..., "timestamp": ..., "payload": {...}}`:
- session_meta: session id, cwd, CLI version, git info
- turn_context: model in use for the following turns
- response_item: messages, function calls and their outputs
- event_msg: UI events; only reasoning summaries and token counts are used
  (user/agent messages duplicate response_item content)

Token counts are cumulative in the log. Each token_count event is turned
into a per-turn delta and attached to the latest assistant turn, so the
session total ends up equal to the last cumulative figure.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from chat_to_html.config import ParseOptions
from chat_to_html.models import (
    ContentUnit,
    Role,
    Session,
    Source,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResult,
    Turn,
    Usage,
)
from chat_to_html.parsers.base import (
    SessionBuilder,
    SessionParser,
    as_dict,
    as_int,
    as_str,
    iter_records,
    load_first_record,
)

logger = logging.getLogger(__name__)

CODEX_ORIGINATOR = "codex_cli_rs"
WRAPPED_RECORD_TYPES = frozenset({"response_item", "event_msg", "turn_context"})
TEXT_PART_TYPES = frozenset({"input_text", "output_text"})
INSTRUCTION_ROLES = frozenset({"developer", "system"})


@dataclass
class CodexRecord:
    """Envelope of a Codex CLI log line."""

    type: str
    line_number: int
    timestamp: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any], line_number: int) -> CodexRecord:
        rtype = data.get("type")
        return cls(
            type=rtype if isinstance(rtype, str) else "unknown",
            line_number=line_number,
            timestamp=as_str(data.get("timestamp")) or "",
            payload=as_dict(data.get("payload")),
        )

    @property
    def turn_id(self) -> str:
        return f"line-{self.line_number}"


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """Decode function call arguments into a mapping.

    Unparsable text is kept under `raw`; valid JSON that is not an object
    is kept under `value`.
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {"raw": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def _exit_status_failed(result: dict[str, Any]) -> bool:
    if result.get("success") is False:
        return True
    exit_code = as_dict(result.get("metadata")).get("exit_code")
    if isinstance(exit_code, bool) or not isinstance(exit_code, int):
        return False
    return exit_code != 0


def parse_tool_output(raw: Any) -> tuple[str, bool]:
    """Extract display text and error state from a tool call output.

    Outputs are often a JSON string wrapping `{"output": ..., "metadata":
    {"exit_code": ...}}`. Anything that is not JSON is returned verbatim.

    Returns:
        (text, is_error)
    """
    if raw is None:
        return "", False
    if isinstance(raw, str):
        if not raw.strip():
            return raw, False
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return raw, False
    else:
        parsed = raw

    if isinstance(parsed, str):
        return parsed, False
    if isinstance(parsed, dict):
        is_error = _exit_status_failed(parsed)
        for key in ("output", "content"):
            if isinstance(parsed.get(key), str):
                return parsed[key], is_error
        return json.dumps(parsed, indent=2, ensure_ascii=False), is_error
    if isinstance(raw, str) and not isinstance(parsed, list):
        # Bare numbers, booleans, null: keep the original spelling
        return raw, False
    return json.dumps(parsed, indent=2, ensure_ascii=False), False


def _parse_usage(raw: dict[str, Any]) -> Usage:
    # Codex has no cache-creation counter; cached input is a subset of input
    return Usage(
        input_tokens=as_int(raw.get("input_tokens")),
        output_tokens=as_int(raw.get("output_tokens")),
        cache_creation_tokens=None,
        cache_read_tokens=as_int(raw.get("cached_input_tokens")),
    )


def _usage_delta(current: Usage, previous: Usage | None) -> Usage | None:
    """Difference of two cumulative readings, or None if any counter went backwards."""
    if previous is None:
        return current
    delta = Usage(
        input_tokens=current.input_tokens - previous.input_tokens,
        output_tokens=current.output_tokens - previous.output_tokens,
        cache_creation_tokens=None,
        cache_read_tokens=(current.cache_read_tokens or 0) - (previous.cache_read_tokens or 0),
    )
    if min(delta.input_tokens, delta.output_tokens, delta.cache_read_tokens or 0) < 0:
        return None
    return delta


def _text_parts(content: list[Any]) -> list[ContentUnit]:
    units: list[ContentUnit] = []
    for part in content:
        if not isinstance(part, dict) or part.get("type") not in TEXT_PART_TYPES:
            continue
        text = part.get("text")
        if isinstance(text, str) and text:
            units.append(TextContent(text))
    return units


class CodexParser(SessionParser):
    """Parser for Codex CLI rollouts (~/.codex/sessions/**/rollout-*.jsonl)."""

    source = Source.CODEX

    def can_parse(self, first_line: str) -> bool:
        record = load_first_record(first_line)
        if record is None:
            return False
        payload = record.get("payload")
        if record.get("type") == "session_meta":
            return True
        if not isinstance(payload, dict):
            return False
        return (
            payload.get("originator") == CODEX_ORIGINATOR
            or record.get("type") in WRAPPED_RECORD_TYPES
        )

    def parse(self, content: str, options: ParseOptions | None = None) -> Session:
        options = options or ParseOptions()
        state = _CodexState(builder=SessionBuilder(self.source), options=options)
        state.harness_role = self.harness_role(options)

        for line_number, data in iter_records(content, self.source):
            record = CodexRecord.from_dict(data, line_number)
            if record.type == "session_meta":
                self._read_session_meta(state, record.payload)
            elif record.type == "turn_context":
                model = as_str(record.payload.get("model"))
                if model:
                    state.model = model
                    state.builder.set_metadata(model=model)
            elif record.type == "response_item":
                self._read_response_item(state, record)
            elif record.type == "event_msg":
                self._read_event(state, record)
            else:
                logger.debug("Skipping %s record on line %d", record.type, line_number)

        return state.builder.build()

    def _read_session_meta(self, state: _CodexState, payload: dict[str, Any]) -> None:
        state.builder.set_metadata(
            session_id=payload.get("id"),
            cwd=payload.get("cwd"),
            version=payload.get("cli_version"),
            git_branch=as_dict(payload.get("git")).get("branch"),
        )

    def _read_response_item(self, state: _CodexState, record: CodexRecord) -> None:
        payload = record.payload
        ptype = payload.get("type")

        if ptype == "message":
            self._read_message(state, record)
        elif ptype in ("function_call", "custom_tool_call"):
            call_id = as_str(payload.get("call_id"))
            name = as_str(payload.get("name"))
            if ptype == "custom_tool_call":
                name = name or "custom_tool_call"
                tool_input = parse_tool_arguments(payload.get("input"))
            else:
                tool_input = parse_tool_arguments(payload.get("arguments"))
            if not call_id or not name:
                logger.debug("Skipping %s without call id/name on line %d", ptype, record.line_number)
                return
            state.add(
                record,
                Role.ASSISTANT,
                (ToolCall(id=call_id, name=name, input=tool_input),),
                model=state.model,
            )
        elif ptype in ("function_call_output", "custom_tool_call_output"):
            call_id = as_str(payload.get("call_id"))
            if not call_id:
                logger.debug("Skipping %s without call id on line %d", ptype, record.line_number)
                return
            text, is_error = parse_tool_output(payload.get("output"))
            state.add(
                record,
                Role.USER,
                (ToolResult(tool_use_id=call_id, content=text, is_error=is_error),),
            )
        else:
            # `reasoning` items are rendered from agent_reasoning events instead
            logger.debug("Skipping response_item %s on line %d", ptype, record.line_number)

    def _read_message(self, state: _CodexState, record: CodexRecord) -> None:
        payload = record.payload
        role_name = payload.get("role")
        content = payload.get("content")
        if not isinstance(content, list):
            return

        options = state.options
        if role_name == "user":
            state.user_messages += 1
            role = Role.USER
            is_harness = (
                options.identify_harness and state.user_messages <= options.harness_user_turns
            )
        elif role_name == "assistant":
            role = Role.ASSISTANT
            is_harness = False
        elif role_name in INSTRUCTION_ROLES:
            role = Role.SYSTEM
            is_harness = options.identify_harness
        else:
            logger.debug("Skipping message with role %r on line %d", role_name, record.line_number)
            return

        units = _text_parts(content)
        if units:
            state.add(
                record,
                role,
                tuple(units),
                model=state.model if role is Role.ASSISTANT else None,
                is_harness=is_harness,
            )

    def _read_event(self, state: _CodexState, record: CodexRecord) -> None:
        payload = record.payload
        etype = payload.get("type")

        if etype == "agent_reasoning":
            text = as_str(payload.get("text"))
            if text:
                state.add(
                    record,
                    state.harness_role,
                    (ThinkingContent(text),),
                    is_harness=state.options.identify_harness,
                )
        elif etype == "token_count":
            self._read_token_count(state, record)
        else:
            logger.debug("Skipping event_msg %s on line %d", etype, record.line_number)

    def _read_token_count(self, state: _CodexState, record: CodexRecord) -> None:
        info = as_dict(record.payload.get("info"))
        total_raw = info.get("total_token_usage")
        last_raw = info.get("last_token_usage")

        usage = None
        if isinstance(total_raw, dict):
            total = _parse_usage(total_raw)
            usage = _usage_delta(total, state.last_total)
            state.last_total = total
            if usage is None and isinstance(last_raw, dict):
                usage = _parse_usage(last_raw)
        elif isinstance(last_raw, dict):
            usage = _parse_usage(last_raw)

        if usage is None or not usage.has_data():
            return
        if not state.builder.attach_usage(usage, Role.ASSISTANT):
            state.builder.add_turn(
                Turn(
                    id=f"{record.turn_id}:usage",
                    role=state.harness_role,
                    timestamp=record.timestamp,
                    model=state.model,
                    usage=usage,
                    is_harness=state.options.identify_harness,
                )
            )


@dataclass
class _CodexState:
    """Per-parse mutable state."""

    builder: SessionBuilder
    options: ParseOptions
    harness_role: Role = Role.SYSTEM
    model: str | None = None
    user_messages: int = 0
    last_total: Usage | None = None

    def add(
        self,
        record: CodexRecord,
        role: Role,
        content: tuple[ContentUnit, ...],
        model: str | None = None,
        is_harness: bool = False,
    ) -> None:
        self.builder.add_turn(
            Turn(
                id=record.turn_id,
                role=role,
                content=content,
                timestamp=record.timestamp,
                model=model,
                is_harness=is_harness,
            )
        )
