"""
quluub/models/plan.py

Purpose: Subscription plan limits

- Messaging allowance per counterpart
- Per-message word limit
- Video call eligibility
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Plan(str, Enum):
    FREEMIUM = "freemium"
    PREMIUM = "premium"
    PRO = "pro"


@dataclass(frozen=True)
class PlanLimits:
    """
    Limits applied to a sender. Both limits are exclusive upper bounds:
    a send is refused once `sent_count >= allowance` or `words >= word_limit`.
    """
    name: Plan
    allowance: int
    word_limit: int
    video_call: bool = False


PLAN_LIMITS: Dict[Plan, PlanLimits] = {
    Plan.FREEMIUM: PlanLimits(name=Plan.FREEMIUM, allowance=10, word_limit=20),
    Plan.PREMIUM: PlanLimits(name=Plan.PREMIUM, allowance=50, word_limit=100, video_call=True),
    Plan.PRO: PlanLimits(name=Plan.PRO, allowance=50, word_limit=100, video_call=True),
}


def get_plan_limits(plan: Optional[str], table: Optional[Dict[Plan, PlanLimits]] = None) -> PlanLimits:
    """
    Resolves a user's plan to its limits. Unknown or missing plans get freemium.
    """
    table = table or PLAN_LIMITS
    try:
        return table[Plan(plan)]
    except (ValueError, KeyError):
        return table[Plan.FREEMIUM]
