"""
Storefront Subscription Plan Definitions
Owner: Billing
Workstream: Plans & Limits

Plan tiers:
- FREE: 10 bills per month, single login, no proforma
- BASIC: Unlimited bills, proforma invoices
- PRO: Unlimited bills and templates, up to 4 logins
- ENTERPRISE: Everything in Pro, unlimited logins, GST filing
"""

import enum
import os
from dataclasses import dataclass, fields
from types import MappingProxyType
from typing import Optional, Dict, Any, Mapping

# Stripe Price IDs from environment
# These are created in Stripe Dashboard (test mode first, then live)
STRIPE_PRICE_BASIC = os.environ.get('STRIPE_PRICE_BASIC', 'price_test_basic')
STRIPE_PRICE_PRO = os.environ.get('STRIPE_PRICE_PRO', 'price_test_pro')
STRIPE_PRICE_ENTERPRISE = os.environ.get('STRIPE_PRICE_ENTERPRISE', 'price_test_enterprise')


class Plan(str, enum.Enum):
    """Subscription tier, ordered from least to most entitled."""

    FREE = 'FREE'
    BASIC = 'BASIC'
    PRO = 'PRO'
    ENTERPRISE = 'ENTERPRISE'

    @property
    def rank(self) -> int:
        return PLAN_ORDER.index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()


PLAN_ORDER = (Plan.FREE, Plan.BASIC, Plan.PRO, Plan.ENTERPRISE)


@dataclass(frozen=True)
class PlanLimits:
    """Limits for one plan. None means unbounded."""

    bills_per_month: Optional[int]
    logins: Optional[int]
    templates: Optional[int]
    proforma: bool
    gst_filing: bool

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_LIMITS: Dict[Plan, PlanLimits] = {
    Plan.FREE: PlanLimits(
        bills_per_month=10,
        logins=1,
        templates=1,
        proforma=False,
        gst_filing=False,
    ),
    Plan.BASIC: PlanLimits(
        bills_per_month=None,
        logins=1,
        templates=1,  # extra templates are a paid add-on
        proforma=True,
        gst_filing=False,
    ),
    Plan.PRO: PlanLimits(
        bills_per_month=None,
        logins=4,
        templates=None,
        proforma=True,
        gst_filing=False,
    ),
    Plan.ENTERPRISE: PlanLimits(
        bills_per_month=None,
        logins=None,
        templates=None,
        proforma=True,
        gst_filing=True,
    ),
}


class PlanCatalog:
    """
    Read-only lookup from Plan to PlanLimits.

    Build one at startup and pass it to whatever needs limits. Tests can
    build their own catalog with synthetic limits.
    """

    def __init__(self, limits: Optional[Mapping[Plan, PlanLimits]] = None):
        source = dict(DEFAULT_LIMITS if limits is None else limits)
        missing = [plan.value for plan in PLAN_ORDER if plan not in source]
        if missing:
            raise ValueError(f"Plan catalog is missing limits for: {', '.join(missing)}")
        self._limits = MappingProxyType(source)

    def limits_for(self, plan: Plan) -> PlanLimits:
        return self._limits[plan]

    def minimum_plan(self, capability: str) -> Optional[Plan]:
        """
        Lowest tier whose limits grant a boolean capability.

        Args:
            capability: PlanLimits attribute name ('proforma', 'gst_filing')

        Returns:
            Plan or None if no tier grants it
        """
        for plan in PLAN_ORDER:
            if getattr(self._limits[plan], capability):
                return plan
        return None

    def items(self):
        return [(plan, self._limits[plan]) for plan in PLAN_ORDER]


# Display metadata for the plans page and checkout
PLANS: Dict[Plan, Dict[str, Any]] = {
    Plan.FREE: {
        'name': 'Free',
        'description': 'Try billing for a single store',
        'features': [
            '10 bills per month',
            '1 login',
            '1 invoice template',
        ],
        'stripe_price_id': None,  # no Stripe product for free tier
    },
    Plan.BASIC: {
        'name': 'Basic',
        'description': 'Unlimited billing for a single counter',
        'features': [
            'Unlimited bills',
            'Proforma invoices',
            '1 login',
        ],
        'stripe_price_id': STRIPE_PRICE_BASIC,
    },
    Plan.PRO: {
        'name': 'Pro',
        'description': 'For busy stores with staff',
        'features': [
            'Unlimited bills',
            'Unlimited invoice templates',
            'Up to 4 logins',
            'Stock transfers between stores',
        ],
        'stripe_price_id': STRIPE_PRICE_PRO,
    },
    Plan.ENTERPRISE: {
        'name': 'Enterprise',
        'description': 'Multi-store chains with compliance needs',
        'features': [
            'Everything in Pro',
            'Unlimited logins',
            'GST return filing',
        ],
        'stripe_price_id': STRIPE_PRICE_ENTERPRISE,
    },
}


def parse_plan(value: Any) -> Optional[Plan]:
    """
    Validate an untrusted plan identifier.

    Args:
        value: Plan name from an external source (Stripe metadata, DB row)

    Returns:
        Plan or None if the value is not a known plan
    """
    if isinstance(value, Plan):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Plan(value.strip().upper())
    except ValueError:
        return None


def is_limit_exceeded(current: int, limit: Optional[int]) -> bool:
    """
    True once usage has reached a counted cap.

    Reaching the cap already blocks: with a limit of 10, the tenth bill is
    the last one allowed. A None limit is uncapped.
    """
    return limit is not None and current >= limit


def get_upgrade_recommendation(plan: Plan) -> Optional[Plan]:
    """Next tier up, or None if already on the highest tier."""
    rank = plan.rank
    if rank + 1 < len(PLAN_ORDER):
        return PLAN_ORDER[rank + 1]
    return None
