"""
Conversation state and its structural invariant.

Every tool_result must answer a tool_use from the assistant turn right
before it, and every tool_use must be answered exactly once by the user
turn that follows.
"""

from __future__ import annotations

import typing as _typing

import ronin.api.types as api_types


class ConversationInvariantError(Exception):
    """The turn list breaks the tool_use / tool_result pairing."""

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


def validate_turns(turns: _typing.Sequence[api_types.ConversationTurn]) -> None:
    """
    Check tool_use / tool_result pairing across a turn list.

    A trailing assistant turn with unanswered tool_use blocks is allowed:
    its results have not been produced yet.

    Raises:
        ConversationInvariantError: On the first violation found
    """
    seen_ids: set[str] = set()
    open_ids: list[str] = []
    open_index: int | None = None

    for index, turn in enumerate(turns):
        results = turn.tool_results()

        if turn.role == "assistant":
            if results:
                raise ConversationInvariantError(
                    f"Turn {index}: assistant turn contains tool_result blocks", index=index
                )
            if open_ids:
                raise ConversationInvariantError(
                    f"Turn {index}: tool calls {open_ids} from turn {open_index} have no results",
                    index=index,
                )
            for block in turn.tool_uses():
                if not block.id:
                    raise ConversationInvariantError(
                        f"Turn {index}: tool_use without an id", index=index
                    )
                if block.id in seen_ids:
                    raise ConversationInvariantError(
                        f"Turn {index}: duplicate tool_use id {block.id!r}", index=index
                    )
                seen_ids.add(block.id)
                open_ids.append(block.id)
            open_index = index
            continue

        if turn.tool_uses():
            raise ConversationInvariantError(
                f"Turn {index}: user turn contains tool_use blocks", index=index
            )

        answered = [block.tool_use_id for block in results]
        for call_id in answered:
            if call_id not in open_ids:
                raise ConversationInvariantError(
                    f"Turn {index}: tool_result {call_id!r} does not answer a pending tool_use",
                    index=index,
                )
        if len(set(answered)) != len(answered):
            raise ConversationInvariantError(
                f"Turn {index}: a tool_use is answered more than once", index=index
            )
        missing = [call_id for call_id in open_ids if call_id not in answered]
        if missing:
            raise ConversationInvariantError(
                f"Turn {index}: tool calls {missing} have no results", index=index
            )
        open_ids = []


class Conversation:
    """Ordered list of turns exchanged with the model."""

    def __init__(self, turns: _typing.Iterable[api_types.ConversationTurn] | None = None) -> None:
        self._turns: list[api_types.ConversationTurn] = list(turns or [])

    @property
    def turns(self) -> list[api_types.ConversationTurn]:
        return list(self._turns)

    def add_user_text(self, text: str) -> api_types.ConversationTurn:
        return self.append(api_types.ConversationTurn(role="user", content=text))

    def add_assistant_text(self, text: str) -> api_types.ConversationTurn:
        return self.append(api_types.ConversationTurn(role="assistant", content=text))

    def add_tool_exchange(
        self,
        assistant_blocks: list[api_types.ContentBlock],
        result_blocks: list[api_types.ContentBlock],
    ) -> None:
        """Append an assistant turn with tool calls and the user turn answering it."""
        self.append(api_types.ConversationTurn(role="assistant", content=assistant_blocks))
        self.append(api_types.ConversationTurn(role="user", content=result_blocks))

    def append(self, turn: api_types.ConversationTurn) -> api_types.ConversationTurn:
        self._turns.append(turn)
        return turn

    def validate(self) -> None:
        validate_turns(self._turns)

    def last_text(self) -> str:
        """Text of the most recent assistant turn."""
        for turn in reversed(self._turns):
            if turn.role == "assistant":
                return turn.text
        return ""

    def to_list(self) -> list[dict[str, _typing.Any]]:
        return [turn.to_dict() for turn in self._turns]

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> _typing.Iterator[api_types.ConversationTurn]:
        return iter(self._turns)
