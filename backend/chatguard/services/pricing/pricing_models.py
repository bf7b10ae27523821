"""
Pricing model classes and the static price tables.

Chat models are priced per 1K tokens, embedding models per 1M tokens,
vector store operations at a flat rate per call. Prices in USD.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ChatModelPricing:
    """Per-1K token prices for a chat completion model."""
    model_name: str
    cost_per_1k_input_usd: Decimal
    cost_per_1k_output_usd: Decimal


@dataclass(frozen=True)
class EmbeddingModelPricing:
    """Per-1M token price for an embedding model."""
    model_name: str
    cost_per_1m_usd: Decimal


@dataclass
class ModelPricingInfo:
    """Result of a pricing lookup for an arbitrary model name."""
    kind: str  # "chat", "embedding" or "unknown"
    input_per_1k_usd: Optional[Decimal] = None
    output_per_1k_usd: Optional[Decimal] = None
    per_1m_usd: Optional[Decimal] = None


@dataclass
class CostCalculation:
    """Result of a cost calculation."""
    model_name: str
    pricing_model: str  # model whose prices were applied (differs on fallback)
    input_tokens: int
    output_tokens: int
    total_tokens: int
    input_cost_usd: Decimal
    output_cost_usd: Decimal
    total_cost_usd: Decimal
    used_fallback: bool = False


CHAT_MODEL_PRICING: dict[str, ChatModelPricing] = {
    "gpt-3.5-turbo": ChatModelPricing("gpt-3.5-turbo", Decimal("0.0015"), Decimal("0.002")),
    "gpt-4": ChatModelPricing("gpt-4", Decimal("0.03"), Decimal("0.06")),
    "gpt-4-turbo": ChatModelPricing("gpt-4-turbo", Decimal("0.01"), Decimal("0.03")),
    "gpt-4o": ChatModelPricing("gpt-4o", Decimal("0.005"), Decimal("0.015")),
}

EMBEDDING_MODEL_PRICING: dict[str, EmbeddingModelPricing] = {
    "text-embedding-3-small": EmbeddingModelPricing("text-embedding-3-small", Decimal("0.02")),
    "text-embedding-3-large": EmbeddingModelPricing("text-embedding-3-large", Decimal("0.13")),
    "text-embedding-ada-002": EmbeddingModelPricing("text-embedding-ada-002", Decimal("0.1")),  # legacy
}

# Rough per-call estimates; actual vector store pricing depends on plan
VECTOR_STORE_PRICING: dict[str, Decimal] = {
    "query": Decimal("0.0001"),
    "upsert": Decimal("0.0001"),
}

DEFAULT_CHAT_PRICING_MODEL = "gpt-3.5-turbo"
DEFAULT_EMBEDDING_PRICING_MODEL = "text-embedding-3-small"
