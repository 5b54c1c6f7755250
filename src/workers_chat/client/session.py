"""In-memory conversation state for one interactive chat session."""

from __future__ import annotations

import random
from typing import Any, Optional

from ..schemas.chat import ChatMessage

GREETINGS = (
    "Hey there! How can I assist you today?",
    "Hi! Ready to chat?",
    "Hello! What can I do for you?",
    "Welcome! Ask me anything.",
    "Greetings, human!",
    "Yo! Need some help?",
    "Hi! How may I make your day better?",
    "Hey! What can I fetch for you?",
    "Hello! I'm here to help.",
    "Hi! Let's get started.",
)

FALLBACK_REPLY = "Sorry, there was an error processing your request."


class SessionBusyError(RuntimeError):
    """Raised when a turn is started while another is still in flight."""


class ChatSession:
    """Append-only history plus the busy flag guarding one turn at a time."""

    def __init__(self, greeting: Optional[str] = None) -> None:
        self.history: list[ChatMessage] = []
        self.busy = False
        if greeting:
            self.history.append(ChatMessage(role="assistant", content=greeting))

    @classmethod
    def start(cls, rng: Optional[random.Random] = None) -> "ChatSession":
        """Open a session with a randomly chosen greeting."""

        chooser = rng or random
        return cls(greeting=chooser.choice(GREETINGS))

    @property
    def greeting(self) -> Optional[str]:
        if self.history and self.history[0].role == "assistant":
            return self.history[0].content
        return None

    def begin_turn(self, text: str) -> ChatMessage:
        message = text.strip()
        if not message:
            raise ValueError("Message cannot be empty")
        if self.busy:
            raise SessionBusyError("A reply is still being generated")

        self.busy = True
        user_message = ChatMessage(role="user", content=message)
        self.history.append(user_message)
        return user_message

    def complete_turn(self, reply: str) -> ChatMessage:
        return self._end_turn(reply)

    def fail_turn(self) -> ChatMessage:
        return self._end_turn(FALLBACK_REPLY)

    def messages_payload(self) -> list[dict[str, Any]]:
        return [message.model_dump() for message in self.history]

    def _end_turn(self, content: str) -> ChatMessage:
        assistant_message = ChatMessage(role="assistant", content=content)
        self.history.append(assistant_message)
        self.busy = False
        return assistant_message


__all__ = [
    "ChatSession",
    "FALLBACK_REPLY",
    "GREETINGS",
    "SessionBusyError",
]
