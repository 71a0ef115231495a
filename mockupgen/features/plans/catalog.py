"""
mockupgen/features/plans/catalog.py

Plan catalog.

Handles:
- Static tier definitions (free, pro, team) and their monthly feature limits
- Limit lookup with the fallback-to-free policy
- Billing plan id normalization (pro_monthly -> pro, ...)
- Display snapshots for the pricing and billing pages
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Union

from mockupgen.core.errors import ConfigurationError
from mockupgen.models.plan import (
    UNLIMITED,
    FeatureLimits,
    Limited,
    LimitValue,
    PlanDefinition,
    PlanDetails,
    PlanTier,
    freeze_limits,
)


logger = logging.getLogger(__name__)

# Feature keys
MOCKUPS_PER_MONTH = "mockupsPerMonth"
BULK_GENERATION = "bulkGeneration"
GEMINI_IMAGE_GENERATION = "gemini_image_generation"
GPT_IMAGE_GENERATION = "gpt_image_generation"
GPT_IMAGE_EDITING = "gpt_image_editing"

# Billing provider plan ids that map onto a tier
PLAN_ID_ALIASES = {
    "free": PlanTier.FREE,
    "pro": PlanTier.PRO,
    "pro_monthly": PlanTier.PRO,
    "pro_annual": PlanTier.PRO,
    "team": PlanTier.TEAM,
    "team_monthly": PlanTier.TEAM,
    "team_annual": PlanTier.TEAM,
}

PlanLike = Union[PlanTier, str, None]


def resolve_plan(plan_id: PlanLike) -> PlanTier:
    """Map a tier or billing plan id onto a tier; anything unknown is free."""
    if isinstance(plan_id, PlanTier):
        return plan_id
    if not plan_id:
        return PlanTier.FREE
    return PLAN_ID_ALIASES.get(str(plan_id).strip().lower(), PlanTier.FREE)


def plan_meets_requirement(required: PlanLike, actual: PlanLike) -> bool:
    """True when `actual` is the same tier as `required` or above it."""
    return resolve_plan(actual) >= resolve_plan(required)


class PlanCatalog:
    """Immutable set of plan definitions.

    Construct once at startup and hand it to whatever needs limits. Lookups
    never fail: unknown plans read as free, keys missing on a plan read as
    free's value, keys missing everywhere read as unlimited.
    """

    def __init__(self, definitions: Iterable[PlanDefinition]):
        by_tier: Dict[PlanTier, PlanDefinition] = {}
        for definition in definitions:
            if definition.tier in by_tier:
                raise ConfigurationError(f"Duplicate plan definition for {definition.tier.value}")
            by_tier[definition.tier] = definition

        if PlanTier.FREE not in by_tier:
            raise ConfigurationError("Plan catalog must define the free plan")

        self._plans: Mapping[PlanTier, PlanDefinition] = MappingProxyType(by_tier)
        self._feature_keys = frozenset(
            key for definition in by_tier.values() for key in definition.limits
        )
        self._log_gaps()

    def _log_gaps(self) -> None:
        for tier, definition in self._plans.items():
            missing = sorted(self._feature_keys - set(definition.limits))
            if missing:
                logger.warning(
                    "[catalog] configuration gap, plan missing feature keys (free value, else unlimited)",
                    extra={"plan": tier.value, "feature_keys": missing},
                )

    @property
    def tiers(self) -> List[PlanTier]:
        return sorted(self._plans)

    @property
    def feature_keys(self) -> frozenset:
        return self._feature_keys

    def knows_feature(self, feature_key: str) -> bool:
        return feature_key in self._feature_keys

    def definition(self, plan: PlanLike) -> PlanDefinition:
        tier = resolve_plan(plan)
        return self._plans.get(tier) or self._plans[PlanTier.FREE]

    def _lookup(self, definition: PlanDefinition, feature_key: str) -> LimitValue:
        limit = definition.limits.get(feature_key)
        if limit is None:
            limit = self._plans[PlanTier.FREE].limits.get(feature_key)
        return UNLIMITED if limit is None else limit

    def limit_of(self, plan: PlanLike, feature_key: str) -> LimitValue:
        definition = self.definition(plan)
        if not self.knows_feature(feature_key):
            logger.warning(
                "[catalog] configuration gap, no limit defined on any plan",
                extra={"plan": definition.tier.value, "feature_key": feature_key},
            )
        return self._lookup(definition, feature_key)

    def features_of(self, plan: PlanLike) -> FeatureLimits:
        """Limits for every key any plan defines, resolved the same way as limit_of."""
        definition = self.definition(plan)
        return freeze_limits({key: self._lookup(definition, key) for key in sorted(self._feature_keys)})

    def has_capability(self, plan: PlanLike, capability: str) -> bool:
        return bool(self.definition(plan).capabilities.get(capability, False))

    def plan_details(self, plan: PlanLike) -> PlanDetails:
        definition = self.definition(plan)
        return PlanDetails(
            plan=definition.tier.value,
            name=definition.name,
            price=definition.price,
            yearly_price=definition.yearly_price,
            features=list(definition.features),
            limitations=list(definition.limitations),
            cta=definition.cta,
            popular=definition.popular,
            limits={key: limit.display() for key, limit in self.features_of(definition.tier).items()},
            capabilities=dict(definition.capabilities),
            team_members=definition.team_members,
        )

    def all_plan_details(self) -> List[PlanDetails]:
        return [self.plan_details(tier) for tier in self.tiers]


def _capabilities(**flags: bool) -> Mapping[str, bool]:
    return MappingProxyType(dict(flags))


def default_plan_definitions() -> List[PlanDefinition]:
    return [
        PlanDefinition(
            tier=PlanTier.FREE,
            name="Free",
            price="Free",
            limits=freeze_limits({
                MOCKUPS_PER_MONTH: Limited(5),
                BULK_GENERATION: Limited(3),
                GEMINI_IMAGE_GENERATION: Limited(5),
                GPT_IMAGE_GENERATION: Limited(5),
                GPT_IMAGE_EDITING: Limited(5),
            }),
            features=(
                "5 AI mockup generations per month",
                "5 Gemini image generations per month",
                "5 GPT image generations per month",
                "Basic device frames",
                "PNG export",
                "Community templates",
            ),
            limitations=("Limited bulk generation", "No advanced editing", "No team sharing"),
            cta="Get Started",
            capabilities=_capabilities(
                customBranding=False,
                apiAccess=False,
                prioritySupport=False,
                whiteLabeling=False,
                advancedEditing=False,
                teamSharing=False,
            ),
            team_members=1,
        ),
        PlanDefinition(
            tier=PlanTier.PRO,
            name="Pro",
            price="$19/month",
            yearly_price="$190/year",
            limits=freeze_limits({
                MOCKUPS_PER_MONTH: UNLIMITED,
                BULK_GENERATION: Limited(10),
                GEMINI_IMAGE_GENERATION: Limited(50),
                GPT_IMAGE_GENERATION: Limited(50),
                GPT_IMAGE_EDITING: Limited(50),
            }),
            features=(
                "Unlimited AI mockup generations",
                "50 Gemini image generations per month",
                "50 GPT image generations per month",
                "Advanced device frames",
                "All export formats",
                "Premium templates",
                "Bulk generation",
                "Advanced editing tools",
            ),
            limitations=("Limited team sharing",),
            cta="Upgrade to Pro",
            popular=True,
            capabilities=_capabilities(
                customBranding=True,
                apiAccess=False,
                prioritySupport=True,
                whiteLabeling=False,
                advancedEditing=True,
                teamSharing=True,
            ),
            team_members=1,
        ),
        PlanDefinition(
            tier=PlanTier.TEAM,
            name="Team",
            price="$49/month",
            yearly_price="$490/year",
            limits=freeze_limits({
                MOCKUPS_PER_MONTH: UNLIMITED,
                BULK_GENERATION: Limited(20),
                GEMINI_IMAGE_GENERATION: UNLIMITED,
                GPT_IMAGE_GENERATION: UNLIMITED,
                GPT_IMAGE_EDITING: UNLIMITED,
            }),
            features=(
                "Unlimited AI mockup generations",
                "Unlimited Gemini image generations",
                "Unlimited GPT image generations",
                "All Pro features",
                "Team collaboration",
                "Advanced analytics",
                "Priority support",
                "Custom branding",
            ),
            cta="Upgrade to Team",
            capabilities=_capabilities(
                customBranding=True,
                apiAccess=True,
                prioritySupport=True,
                whiteLabeling=True,
                advancedEditing=True,
                teamSharing=True,
            ),
            team_members=5,
        ),
    ]


def default_catalog(definitions: Optional[Iterable[PlanDefinition]] = None) -> PlanCatalog:
    return PlanCatalog(definitions if definitions is not None else default_plan_definitions())
