"""Message log and conversation transcript models."""

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Direction = Literal["inbound", "outbound"]
Sender = Literal["customer", "agent", "system"]


class Message(BaseModel):
    """One entry in the append-only message log.

    inbound = written by the customer, outbound = written by an agent or the AI.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    customer_id: str
    direction: Direction
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = {}

    @property
    def role(self) -> str:
        return "customer" if self.direction == "inbound" else "agent"


class ConversationMessage(BaseModel):
    id: str
    sender: Sender
    content: str
    timestamp: datetime | None = None


class Conversation(BaseModel):
    """A transcript handed to the extraction engine."""

    id: str
    customer_id: str | None = None
    messages: list[ConversationMessage] = []

    def transcript(self) -> str:
        lines = []
        for msg in self.messages:
            speaker = {"customer": "Customer", "agent": "Agent", "system": "System"}[msg.sender]
            lines.append(f"[{msg.id}] {speaker}: {msg.content}")
        return "\n".join(lines)
