"""Pydantic models for chat requests."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Represents a single chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    model_config = ConfigDict(extra="ignore")


def ensure_system_prompt(
    messages: Sequence[ChatMessage], system_prompt: str
) -> List[ChatMessage]:
    """Return ``messages`` with the standing instruction at position 0.

    A conversation that already carries a system message anywhere is returned
    as-is; the instruction is never duplicated.
    """

    conversation = list(messages)
    if any(message.role == "system" for message in conversation):
        return conversation
    return [ChatMessage(role="system", content=system_prompt), *conversation]


class ChatRequest(BaseModel):
    """Incoming chat request payload."""

    messages: List[ChatMessage] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def to_workers_ai_payload(
        self, system_prompt: str, max_tokens: int
    ) -> Dict[str, Any]:
        """Serialize the request for a streamed Workers AI chat run."""

        messages = ensure_system_prompt(self.messages, system_prompt)
        return {
            "messages": [message.model_dump() for message in messages],
            "max_tokens": max_tokens,
            "stream": True,
        }


__all__ = ["ChatMessage", "ChatRequest", "ensure_system_prompt"]
