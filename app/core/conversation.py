from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

BOT_SENDER = "bot"

OPENING_USER_PLACEHOLDER = "Hello"
TRAILING_USER_PLACEHOLDER = "Can you expand on that?"


class Role(str, Enum):
    user = "user"
    assistant = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


StoredTurn = Union[ConversationTurn, tuple[str, str]]


def role_from_sender(sender: Optional[str]) -> Role:
    """Map a stored sender tag onto one of the two conversation roles.

    Only the bot sender (or an explicit ``assistant`` tag) becomes the assistant;
    every other tag, including unknown ones, is treated as the user.
    """
    normalized = (sender or "").strip().lower()
    if normalized in {BOT_SENDER, Role.assistant.value}:
        return Role.assistant
    return Role.user


def _coerce_turn(item: StoredTurn) -> ConversationTurn:
    if isinstance(item, ConversationTurn):
        return item
    sender, content = item
    return ConversationTurn(role=role_from_sender(sender), content=str(content or ""))


def normalize_history(prior_turns: Iterable[StoredTurn], new_user_message: str) -> list[ConversationTurn]:
    """Build a strictly alternating user/assistant sequence ending with the new message.

    Stored turns are never mutated; merging produces new ``ConversationTurn`` values.
    """
    turns = [turn for turn in (_coerce_turn(item) for item in prior_turns) if turn.content.strip()]
    turns.append(ConversationTurn(role=Role.user, content=new_user_message))

    result: list[ConversationTurn] = []
    last_role: Optional[Role] = None
    if turns[0].role is not Role.user:
        result.append(ConversationTurn(role=Role.user, content=OPENING_USER_PLACEHOLDER))
        last_role = Role.user

    for turn in turns:
        if result and turn.role is last_role:
            merged = f"{result[-1].content}\n\n{turn.content}"
            result[-1] = ConversationTurn(role=turn.role, content=merged)
            continue
        result.append(turn)
        last_role = turn.role

    if result[-1].role is Role.assistant:
        result.append(ConversationTurn(role=Role.user, content=TRAILING_USER_PLACEHOLDER))
    return result


def is_alternating(turns: list[ConversationTurn]) -> bool:
    if not turns or turns[0].role is not Role.user:
        return False
    return all(prev.role is not cur.role for prev, cur in zip(turns, turns[1:]))
