"""Shared fixtures: small but complete logs for each supported vendor."""

from __future__ import annotations

import pytest
from builders import (
    claude_assistant,
    claude_usage,
    claude_user,
    codex_call,
    codex_event,
    codex_message,
    codex_meta,
    codex_output,
    codex_token_count,
    codex_turn_context,
    jsonl,
    tool_result,
    tool_use,
)


@pytest.fixture
def claude_log() -> str:
    """Five turns: prompt, thinking, usage carrier, text + tool call, tool result.

    Records a1 and a2 belong to the same API response (msg_1) and both
    repeat its usage.
    """
    return jsonl(
        {"type": "file-history-snapshot", "messageId": "snap-1", "snapshot": {}},
        claude_user(
            "Hello",
            uuid="u1",
            version="2.0.1",
            cwd="/work",
            gitBranch="main",
        ),
        claude_assistant(
            [{"type": "thinking", "thinking": "Let me think"}],
            uuid="a1",
            usage=claude_usage(),
        ),
        claude_assistant(
            [
                {"type": "text", "text": "Hi there"},
                tool_use("toolu_1", "Bash", {"command": "ls"}),
            ],
            uuid="a2",
            usage=claude_usage(),
        ),
        claude_user([tool_result("toolu_1", "file.txt")], uuid="u2"),
    )


@pytest.fixture
def codex_log() -> str:
    """Setup messages, one tool round trip, two answers and two token counts."""
    return jsonl(
        codex_meta(),
        codex_message("developer", "<permissions instructions>"),
        codex_message("user", "<environment_context>"),
        codex_message("user", "<user_instructions>"),
        codex_turn_context("gpt-5-codex"),
        codex_message("user", "Fix the bug"),
        codex_event(type="agent_reasoning", text="Looking at the code"),
        codex_call("call_1", "shell", {"command": ["ls", "-la"]}),
        codex_output("call_1", '{"output": "a.txt\\n", "metadata": {"exit_code": 0}}'),
        codex_message("assistant", "Done."),
        codex_token_count({"input_tokens": 100, "cached_input_tokens": 40, "output_tokens": 20}),
        codex_message("assistant", "More"),
        codex_token_count({"input_tokens": 150, "cached_input_tokens": 60, "output_tokens": 30}),
    )
