"""Conversation state: the ordered, role-tagged message log sent to the model."""

from dataclasses import dataclass
from typing import Iterator, Literal

Role = Literal["system", "user", "assistant"]

ROLES: frozenset[str] = frozenset({"system", "user", "assistant"})


@dataclass(frozen=True)
class Message:
    """A message in the conversation."""

    role: Role
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if not isinstance(self.content, str):
            raise ValueError("Message content must be a string")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class Conversation:
    """Append-only message log seeded with a system message.

    The only mutation besides ``append`` is ``reset``, which truncates the log
    back to the leading system message.
    """

    def __init__(self, system_prompt: str):
        self._messages: list[Message] = [Message("system", system_prompt)]

    @property
    def system_message(self) -> Message:
        return self._messages[0]

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        """Append a message to the log."""
        self._messages.append(message)

    def add(self, role: Role, content: str) -> Message:
        """Build a message and append it."""
        message = Message(role, content)
        self._messages.append(message)
        return message

    def snapshot(self) -> tuple[Message, ...]:
        """Return an immutable copy of the log for a model query."""
        return tuple(self._messages)

    def reset(self) -> None:
        """Drop everything except the leading system message."""
        del self._messages[1:]

    def set_system_prompt(self, system_prompt: str) -> None:
        """Replace the leading system message."""
        self._messages[0] = Message("system", system_prompt)

    def last_user_message(self) -> Message | None:
        for message in reversed(self._messages):
            if message.role == "user":
                return message
        return None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))
