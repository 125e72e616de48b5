"""Context window budgeting and conversation compression."""

import math

from x_code.config import provider_of
from x_code.llm import Message, ModelClient
from x_code.logging import get_logger

log = get_logger(__name__)

# Context window sizes per provider (tokens).
CONTEXT_WINDOWS: dict[str, int] = {
    "anthropic": 200_000,
    "openai": 128_000,
    "google": 1_000_000,
    "deepseek": 64_000,
    "alibaba": 128_000,
    "xai": 128_000,
    "zhipu": 128_000,
    "moonshotai": 128_000,
}
DEFAULT_CONTEXT_WINDOW = 128_000
BUDGET_RATIO = 0.8
KEEP_RECENT = 6
CHARS_PER_TOKEN = 4

SUMMARY_PREFIX = "[Previous conversation summary]\n"

COMPRESSION_INSTRUCTION = (
    "Summarize the following conversation concisely. Preserve:\n"
    "- Key decisions made\n"
    "- Files that were read or modified\n"
    "- Important code changes\n"
    "- Current task state and what remains to be done\n"
    "- Any errors encountered and how they were resolved\n\n"
    "Be concise but don't lose critical context."
)


def context_window(model_id: str) -> int:
    return CONTEXT_WINDOWS.get(provider_of(model_id), DEFAULT_CONTEXT_WINDOW)


def token_budget(model_id: str, ratio: float = BUDGET_RATIO) -> int:
    """Usable token budget for a model: a fixed fraction of its provider's window."""
    return math.floor(context_window(model_id) * ratio)


def estimate_tokens(messages: list[Message]) -> int:
    """Approximate token count (~4 characters per token) over all message text."""
    total_chars = 0
    for message in messages:
        total_chars += len(message.content or "")
        for call in message.tool_calls:
            total_chars += len(call.name) + len(str(call.input))
    return math.ceil(total_chars / CHARS_PER_TOKEN)


async def compress_messages(
    messages: list[Message],
    client: ModelClient,
    model_id: str,
    keep_recent: int = KEEP_RECENT,
) -> list[Message]:
    """Fold everything but the most recent messages into one summary message.

    Returns the input unchanged when there is nothing older than the
    `keep_recent` tail. Errors from the summary call propagate.
    """
    if len(messages) <= keep_recent:
        return messages

    older = messages[:-keep_recent]
    recent = messages[-keep_recent:]

    log.info("Compressing context", older=len(older), kept=len(recent))
    summary = await client.summarize(model_id, older, COMPRESSION_INSTRUCTION)

    return [Message(role="user", content=f"{SUMMARY_PREFIX}{summary}"), *recent]
