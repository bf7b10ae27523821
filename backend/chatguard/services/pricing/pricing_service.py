"""
Pricing service for estimating the USD cost of provider operations.

Pure functions over the static price tables: no I/O, no database access.
Unknown model names fall back to a default model's prices with a warning,
so a request never fails because pricing metadata is missing.
"""
from decimal import Decimal
from typing import Optional
import logging

from chatguard.services.pricing.pricing_models import (
    CHAT_MODEL_PRICING,
    EMBEDDING_MODEL_PRICING,
    VECTOR_STORE_PRICING,
    DEFAULT_CHAT_PRICING_MODEL,
    DEFAULT_EMBEDDING_PRICING_MODEL,
    ChatModelPricing,
    EmbeddingModelPricing,
    ModelPricingInfo,
    CostCalculation,
)

logger = logging.getLogger(__name__)


def _non_negative(tokens: Optional[int]) -> int:
    return max(0, int(tokens or 0))


def get_chat_pricing(model_name: str) -> tuple[ChatModelPricing, bool]:
    """
    Get chat pricing for a model.

    Returns:
        Tuple of (pricing, used_fallback)
    """
    pricing = CHAT_MODEL_PRICING.get(model_name)
    if pricing is not None:
        return pricing, False
    logger.warning(f"Unknown chat model: {model_name}, using {DEFAULT_CHAT_PRICING_MODEL} pricing")
    return CHAT_MODEL_PRICING[DEFAULT_CHAT_PRICING_MODEL], True


def get_embedding_pricing(model_name: str) -> tuple[EmbeddingModelPricing, bool]:
    pricing = EMBEDDING_MODEL_PRICING.get(model_name)
    if pricing is not None:
        return pricing, False
    logger.warning(f"Unknown embedding model: {model_name}, using {DEFAULT_EMBEDDING_PRICING_MODEL} pricing")
    return EMBEDDING_MODEL_PRICING[DEFAULT_EMBEDDING_PRICING_MODEL], True


def calculate_chat_cost(
    model_name: str,
    input_tokens: int,
    output_tokens: int
) -> CostCalculation:
    """
    Calculate cost of a chat completion.

    Args:
        model_name: Model name (e.g., "gpt-3.5-turbo")
        input_tokens: Number of prompt tokens
        output_tokens: Number of completion tokens

    Returns:
        CostCalculation object
    """
    input_tokens = _non_negative(input_tokens)
    output_tokens = _non_negative(output_tokens)
    pricing, used_fallback = get_chat_pricing(model_name)

    input_cost_usd = (Decimal(input_tokens) / Decimal(1000)) * pricing.cost_per_1k_input_usd
    output_cost_usd = (Decimal(output_tokens) / Decimal(1000)) * pricing.cost_per_1k_output_usd

    return CostCalculation(
        model_name=model_name,
        pricing_model=pricing.model_name,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        input_cost_usd=input_cost_usd,
        output_cost_usd=output_cost_usd,
        total_cost_usd=input_cost_usd + output_cost_usd,
        used_fallback=used_fallback,
    )


def calculate_embedding_cost(model_name: str, tokens: int) -> CostCalculation:
    """Calculate cost of an embedding call (input tokens only)."""
    tokens = _non_negative(tokens)
    pricing, used_fallback = get_embedding_pricing(model_name)
    cost_usd = (Decimal(tokens) / Decimal(1_000_000)) * pricing.cost_per_1m_usd
    return CostCalculation(
        model_name=model_name,
        pricing_model=pricing.model_name,
        input_tokens=tokens,
        output_tokens=0,
        total_tokens=tokens,
        input_cost_usd=cost_usd,
        output_cost_usd=Decimal(0),
        total_cost_usd=cost_usd,
        used_fallback=used_fallback,
    )


def calculate_vector_store_cost(operation: str) -> Decimal:
    """Flat cost of one vector store operation ("query" or "upsert")."""
    cost = VECTOR_STORE_PRICING.get(operation)
    if cost is None:
        logger.warning(f"Unknown vector store operation: {operation}, using query pricing")
        return VECTOR_STORE_PRICING["query"]
    return cost


def get_model_pricing(model_name: str) -> ModelPricingInfo:
    """Describe the prices known for a model name, without fallback."""
    chat = CHAT_MODEL_PRICING.get(model_name)
    if chat is not None:
        return ModelPricingInfo(
            kind="chat",
            input_per_1k_usd=chat.cost_per_1k_input_usd,
            output_per_1k_usd=chat.cost_per_1k_output_usd,
        )
    embedding = EMBEDDING_MODEL_PRICING.get(model_name)
    if embedding is not None:
        return ModelPricingInfo(kind="embedding", per_1m_usd=embedding.cost_per_1m_usd)
    return ModelPricingInfo(kind="unknown")


def estimate_tokens(text: Optional[str]) -> int:
    """Rough token count when a provider omits usage (1 token ~ 4 chars)."""
    return max(1, len(text or "") // 4)


def estimate_chat_turn_cost(
    chat_model: str,
    embedding_model: str,
    message: str,
    history_text: str = "",
    system_prompt: str = "",
    max_output_tokens: int = 1000,
) -> Decimal:
    """
    Pre-flight estimate for one chat turn.

    Covers one query embedding, one completion (prompt estimated from text
    length, output at the max token cap) and the two storage embeddings
    written after the reply. This is an estimate, not the final charge.
    """
    message_tokens = estimate_tokens(message)
    prompt_tokens = message_tokens + estimate_tokens(history_text) + estimate_tokens(system_prompt)

    query_embedding = calculate_embedding_cost(embedding_model, message_tokens).total_cost_usd
    completion = calculate_chat_cost(chat_model, prompt_tokens, max_output_tokens).total_cost_usd
    storage_embeddings = (
        calculate_embedding_cost(embedding_model, message_tokens).total_cost_usd
        + calculate_embedding_cost(embedding_model, max_output_tokens).total_cost_usd
    )
    return query_embedding + completion + storage_embeddings


def format_cost(cost) -> str:
    """Format a USD amount for display."""
    cost = Decimal(str(cost))
    if cost < Decimal("0.0001"):
        return f"${cost:.6f}"
    if cost < Decimal("0.01"):
        return f"${cost:.4f}"
    return f"${cost:.2f}"
