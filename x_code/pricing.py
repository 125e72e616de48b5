"""Model pricing table and cost estimation."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPrice:
    """Price per million tokens (USD)."""

    input: float
    output: float


MODEL_PRICING: dict[str, ModelPrice] = {
    # Anthropic
    "anthropic:claude-opus-4-6": ModelPrice(15, 75),
    "anthropic:claude-sonnet-4-5": ModelPrice(3, 15),
    "anthropic:claude-haiku-4-5": ModelPrice(0.8, 4),
    # OpenAI
    "openai:gpt-4.1": ModelPrice(2, 8),
    "openai:gpt-4.1-mini": ModelPrice(0.4, 1.6),
    "openai:gpt-4.1-nano": ModelPrice(0.1, 0.4),
    "openai:o3": ModelPrice(2, 8),
    "openai:o4-mini": ModelPrice(1.1, 4.4),
    # Google
    "google:gemini-2.5-pro": ModelPrice(1.25, 10),
    "google:gemini-2.5-flash": ModelPrice(0.15, 0.6),
    # DeepSeek
    "deepseek:deepseek-chat": ModelPrice(0.27, 1.1),
    "deepseek:deepseek-reasoner": ModelPrice(0.55, 2.19),
    # xAI
    "xai:grok-3": ModelPrice(3, 15),
    "xai:grok-3-mini": ModelPrice(0.3, 0.5),
    # Alibaba
    "alibaba:qwen-max": ModelPrice(1.6, 6.4),
    "alibaba:qwen-plus": ModelPrice(0.8, 2),
    # Zhipu
    "zhipu:glm-4-plus": ModelPrice(0.7, 0.7),
    # Moonshot
    "moonshotai:kimi-k2.5": ModelPrice(2, 6),
}

CURRENCY = "USD"


def estimate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    """Estimate cost in USD; unknown models cost 0."""
    price = MODEL_PRICING.get(model_id)
    if price is None:
        return 0.0
    return (input_tokens * price.input + output_tokens * price.output) / 1_000_000
