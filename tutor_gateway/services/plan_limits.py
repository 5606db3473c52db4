"""
Plan Limits Lookup

The billing engine owns subscriptions; the gateway only needs the AI
entitlements of the caller's plan. PlanCatalog is the default lookup used by
the host layer, backed by the published plan table.
"""

from typing import Dict, Optional, Protocol

from tutor_gateway.models.context import PlanLimits


DEFAULT_PLAN_SLUG = "family-free"

PLAN_TABLE: Dict[str, PlanLimits] = {
    "family-free": PlanLimits(slug="family-free", ai_access=True, tutor_daily_limit=3),
    "family-plus": PlanLimits(slug="family-plus", ai_access=True, tutor_daily_limit="unlimited"),
    "family-premium": PlanLimits(slug="family-premium", ai_access=True, tutor_daily_limit="unlimited"),
}


class PlanLimitsProvider(Protocol):
    """Lookup of plan entitlements by slug."""

    def get(self, plan_slug: Optional[str]) -> PlanLimits:
        ...


class PlanCatalog:
    """Static plan table; unknown or missing slugs fall back to the free plan."""

    def __init__(self, plans: Optional[Dict[str, PlanLimits]] = None, default_slug: str = DEFAULT_PLAN_SLUG):
        self._plans = dict(plans or PLAN_TABLE)
        self._default_slug = default_slug

    def get(self, plan_slug: Optional[str]) -> PlanLimits:
        if plan_slug and plan_slug in self._plans:
            return self._plans[plan_slug].model_copy()
        return self._plans[self._default_slug].model_copy()
