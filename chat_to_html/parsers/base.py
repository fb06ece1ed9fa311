"""
Shared parser infrastructure.

Provides:
- SessionParser: the contract every vendor parser implements
- iter_records: strict JSONL iteration (malformed lines are fatal)
- SessionBuilder: turn collection, first-wins metadata, running usage total

Parsers are pure functions of their input; a SessionBuilder lives for a
single parse call.
"""

from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import replace
from typing import Any

from chat_to_html.config import ParseOptions
from chat_to_html.errors import MalformedRecordError
from chat_to_html.models import Role, Session, Source, Turn, Usage

logger = logging.getLogger(__name__)


def load_first_record(first_line: str) -> dict[str, Any] | None:
    """Decode a sniffed line, or None if it is not a JSON object.

    Never raises: format predicates must stay side-effect free and
    tolerant of arbitrary input.
    """
    try:
        record = json.loads(first_line)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return record if isinstance(record, dict) else None


def iter_records(content: str, source: str) -> Iterator[tuple[int, dict[str, Any]]]:
    """Yield (line_number, record) for each non-blank line.

    Raises:
        MalformedRecordError: On the first line that is not a JSON object
    """
    # Split on \n only: JSON strings may legally hold raw U+2028 and friends
    for line_number, line in enumerate(content.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedRecordError(source, line_number, line, e.msg) from e
        if not isinstance(record, dict):
            raise MalformedRecordError(
                source, line_number, line, f"expected a JSON object, got {type(record).__name__}"
            )
        yield line_number, record


def as_str(value: Any) -> str | None:
    """Return value if it is a non-empty string, else None."""
    if isinstance(value, str) and value:
        return value
    return None


def as_int(value: Any) -> int:
    """Coerce a token counter; anything that is not a non-negative number reads as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float) and math.isfinite(value):
        return max(int(value), 0)
    return 0


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


class SessionBuilder:
    """Accumulates turns for one parse call.

    Usage is added to the running total at the moment it is attached to a
    turn, and a turn can receive usage only once, so the session total is
    always the sum of the per-turn values.
    """

    METADATA_FIELDS = ("session_id", "agent_id", "model", "version", "cwd", "git_branch")

    def __init__(self, source: Source) -> None:
        self.source = source
        self.turns: list[Turn] = []
        self.total_usage = Usage()
        self.metadata: dict[str, str] = {}
        self._ids: set[str] = set()

    def set_metadata(self, **values: Any) -> None:
        """Record metadata fields; the first non-empty value for a field wins."""
        for key, value in values.items():
            if key not in self.METADATA_FIELDS:
                raise KeyError(f"Unknown session metadata field: {key}")
            value = as_str(value)
            if value and key not in self.metadata:
                self.metadata[key] = value

    def _unique_id(self, turn_id: str) -> str:
        candidate = turn_id
        n = 2
        while candidate in self._ids:
            candidate = f"{turn_id}~{n}"
            n += 1
        self._ids.add(candidate)
        return candidate

    def add_turn(self, turn: Turn) -> Turn:
        """Append a turn, counting its usage towards the total."""
        turn_id = self._unique_id(turn.id)
        if turn_id != turn.id:
            turn = replace(turn, id=turn_id)
        if turn.usage is not None:
            self.total_usage = self.total_usage + turn.usage
        self.turns.append(turn)
        return turn

    def attach_usage(self, usage: Usage, role: Role = Role.ASSISTANT) -> bool:
        """Give `usage` to the most recent turn of `role` that has none yet.

        Stops at the first turn of `role` that already carries usage, so
        usage is never moved backwards past an earlier report.

        Returns:
            True if a turn received the usage, False if none qualified
        """
        for index in range(len(self.turns) - 1, -1, -1):
            turn = self.turns[index]
            if turn.role != role:
                continue
            if turn.usage is not None:
                return False
            self.turns[index] = replace(turn, usage=usage)
            self.total_usage = self.total_usage + usage
            return True
        return False

    def build(self) -> Session:
        session = Session(
            session_id=self.metadata.get("session_id", "unknown"),
            turns=tuple(self.turns),
            total_usage=self.total_usage,
            source=self.source,
            agent_id=self.metadata.get("agent_id"),
            model=self.metadata.get("model"),
            version=self.metadata.get("version"),
            cwd=self.metadata.get("cwd"),
            git_branch=self.metadata.get("git_branch"),
        )
        logger.debug(
            "Decoded %s session %s: %d turns, %d tokens",
            session.source,
            session.session_id,
            len(session.turns),
            session.total_tokens,
        )
        return session


class SessionParser(ABC):
    """Contract for a vendor parser.

    `can_parse` sniffs the first non-blank line of a log and must never
    raise. `parse` decodes the whole log into a Session.
    """

    source: Source = Source.UNKNOWN

    @abstractmethod
    def can_parse(self, first_line: str) -> bool: ...

    @abstractmethod
    def parse(self, content: str, options: ParseOptions | None = None) -> Session: ...

    def harness_role(self, options: ParseOptions) -> Role:
        """Role given to derived annotation turns."""
        return Role.SYSTEM if options.identify_harness else Role.ASSISTANT
