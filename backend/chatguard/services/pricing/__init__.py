"""
Pricing service for estimating provider costs.
"""
from chatguard.services.pricing.pricing_service import (
    calculate_chat_cost,
    calculate_embedding_cost,
    calculate_vector_store_cost,
    get_chat_pricing,
    get_embedding_pricing,
    get_model_pricing,
    estimate_tokens,
    estimate_chat_turn_cost,
    format_cost,
)
from chatguard.services.pricing.pricing_models import (
    CostCalculation,
    ModelPricingInfo,
    DEFAULT_CHAT_PRICING_MODEL,
    DEFAULT_EMBEDDING_PRICING_MODEL,
)

__all__ = [
    "calculate_chat_cost",
    "calculate_embedding_cost",
    "calculate_vector_store_cost",
    "get_chat_pricing",
    "get_embedding_pricing",
    "get_model_pricing",
    "estimate_tokens",
    "estimate_chat_turn_cost",
    "format_cost",
    "CostCalculation",
    "ModelPricingInfo",
    "DEFAULT_CHAT_PRICING_MODEL",
    "DEFAULT_EMBEDDING_PRICING_MODEL",
]
