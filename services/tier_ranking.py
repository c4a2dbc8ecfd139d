"""
Subscription tier ordering and per-tier AI credit allotments.
"""
from typing import Optional, Union

from core.config import settings
from models.models import TierEnum

TierLike = Optional[Union[TierEnum, str]]

TIER_HIERARCHY = {
    TierEnum.starter.value: 1,
    TierEnum.standard.value: 2,
    TierEnum.lifetime.value: 3,
}

TIER_LABELS = {
    TierEnum.starter.value: "Silver",
    TierEnum.standard.value: "Gold",
    TierEnum.lifetime.value: "Platinum",
}


def _tier_value(tier: TierLike) -> Optional[str]:
    if isinstance(tier, TierEnum):
        return tier.value
    return tier


def tier_rank(tier: TierLike) -> int:
    """Numeric rank of a tier. Unknown or missing tiers rank 0 (no access)."""
    return TIER_HIERARCHY.get(_tier_value(tier), 0)


def meets_tier(held: TierLike, required: TierLike) -> bool:
    """True when ``held`` ranks at or above ``required``."""
    return tier_rank(held) >= tier_rank(required)


def tier_label(tier: TierLike) -> str:
    value = _tier_value(tier)
    return TIER_LABELS.get(value, value or "")


def credits_for_tier(tier: TierLike) -> int:
    """Monthly AI credit allotment for a tier; 0 means the tier has no AI access."""
    allotments = {
        TierEnum.starter.value: settings.tier_credits_starter,
        TierEnum.standard.value: settings.tier_credits_standard,
        TierEnum.lifetime.value: settings.tier_credits_lifetime,
    }
    return allotments.get(_tier_value(tier), 0)
