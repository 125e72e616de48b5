"""Conversation state owned by the agent loop."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from x_code.llm import Message, Usage
from x_code.pricing import CURRENCY, estimate_cost


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def new_session_id() -> str:
    """Return a sortable session id (UTC timestamp + random suffix)."""
    return f"{datetime.now(UTC):%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"


@dataclass
class TokenUsage:
    """Cumulative token usage for one session."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    currency: str = CURRENCY

    def add(self, usage: Usage, model_id: str) -> None:
        """Accumulate one call's usage and re-derive the cost from the totals."""
        self.input_tokens += max(0, int(usage.input_tokens or 0))
        self.output_tokens += max(0, int(usage.output_tokens or 0))
        self.total_tokens = self.input_tokens + self.output_tokens
        self.estimated_cost = estimate_cost(model_id, self.input_tokens, self.output_tokens)


@dataclass
class ConversationState:
    """Everything the loop carries between turns and across runs."""

    messages: list[Message] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    plan_mode: bool = False
    plan_id: str | None = None
    session_id: str = field(default_factory=new_session_id)
    started_at: str = field(default_factory=_utcnow_iso)
    files_modified: set[str] = field(default_factory=set)
    turn_count: int = 0

    def final_text(self) -> str:
        """Text of the last assistant message, if any."""
        for message in reversed(self.messages):
            if message.role == "assistant" and message.content:
                return message.content
        return ""
