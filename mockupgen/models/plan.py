"""
mockupgen/models/plan.py

Plan tiers and feature limits.

A limit is a tagged variant: either Limited(count) or the UNLIMITED sentinel.
Unlimited is never represented as a number, so there is no way to compare
usage against it by accident.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict


class PlanTier(str, Enum):
    """Subscription tiers, in upgrade order."""
    FREE = "free"
    PRO = "pro"
    TEAM = "team"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, PlanTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, PlanTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, PlanTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, PlanTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_ORDER = (PlanTier.FREE, PlanTier.PRO, PlanTier.TEAM)


@dataclass(frozen=True)
class Limited:
    """Hard monthly cap."""
    count: int

    def __post_init__(self):
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 0:
            raise ValueError(f"limit must be a non-negative integer, got {self.count!r}")

    @property
    def is_unlimited(self) -> bool:
        return False

    def display(self) -> int:
        return self.count


@dataclass(frozen=True)
class Unlimited:
    """No cap is enforced."""

    @property
    def is_unlimited(self) -> bool:
        return True

    def display(self) -> str:
        return "unlimited"


UNLIMITED = Unlimited()

LimitValue = Union[Limited, Unlimited]

# Read-only mapping feature_key -> LimitValue
FeatureLimits = Mapping[str, LimitValue]


def freeze_limits(limits: Mapping[str, LimitValue]) -> FeatureLimits:
    return MappingProxyType(dict(limits))


@dataclass(frozen=True)
class PlanDefinition:
    """Static description of one tier. Built once at process start."""
    tier: PlanTier
    name: str
    price: str
    limits: FeatureLimits
    yearly_price: Optional[str] = None
    features: tuple = ()
    limitations: tuple = ()
    cta: str = ""
    popular: bool = False
    capabilities: Mapping[str, bool] = field(default_factory=lambda: MappingProxyType({}))
    team_members: int = 1


class PlanDetails(BaseModel):
    """Display snapshot of a plan (pricing page, billing page)."""
    model_config = ConfigDict(frozen=True)

    plan: str
    name: str
    price: str
    yearly_price: Optional[str] = None
    features: List[str] = []
    limitations: List[str] = []
    cta: str = ""
    popular: bool = False
    limits: Dict[str, Union[int, str]] = {}
    capabilities: Dict[str, bool] = {}
    team_members: int = 1
