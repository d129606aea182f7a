"""
Storefront Entitlement Checks
Owner: Billing
Workstream: Plans & Limits

Decides whether a store's plan allows an action:
- create_invoice: monthly bill limit (usage-bound)
- create_proforma / gst_filing: plan capabilities
- add_template: always allowed (template cap is not enforced yet)

Decisions are advisory. The check reads a usage snapshot and is not
transactional, so two concurrent invoice creations can both pass the
monthly check. Callers enforce the decision; require_entitlement does that
for Flask views by answering 402 Payment Required.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Optional, Callable, Dict, Any

from flask import request, jsonify

from subscription.plans import Plan, PlanCatalog, get_upgrade_recommendation, is_limit_exceeded

# Base URL for upgrade links
BASE_URL = os.environ.get('BASE_URL', 'http://localhost:8080')

CREATE_INVOICE = 'create_invoice'
CREATE_PROFORMA = 'create_proforma'
ADD_TEMPLATE = 'add_template'
GST_FILING = 'gst_filing'

FEATURES = (CREATE_INVOICE, CREATE_PROFORMA, ADD_TEMPLATE, GST_FILING)


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    reason: Optional[str] = None
    plan: Optional[Plan] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'allowed': self.allowed}
        if self.reason is not None:
            data['reason'] = self.reason
        if self.plan is not None:
            data['plan'] = self.plan.value
        return data


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementEvaluator:
    """
    Single entitlement implementation over abstract accessors.

    Args:
        catalog: PlanCatalog
        stores: object with get_plan(store_id) -> Plan
        usage: object with count_billing_documents_in_month(store_id, reference_date) -> int
        clock: callable returning the current aware datetime
    """

    def __init__(self, catalog: PlanCatalog, stores, usage, clock: Optional[Callable[[], datetime]] = None):
        self.catalog = catalog
        self.stores = stores
        self.usage = usage
        self.clock = clock or _utcnow

    def check(self, store_id: str, feature: str) -> EntitlementDecision:
        if feature not in FEATURES:
            raise ValueError(f"Unknown feature: {feature!r}")

        plan = self.stores.get_plan(store_id)
        limits = self.catalog.limits_for(plan)

        if feature == CREATE_INVOICE:
            limit = limits.bills_per_month
            if limit is None:
                return EntitlementDecision(True, plan=plan)

            count = self.usage.count_billing_documents_in_month(store_id, self.clock())
            if is_limit_exceeded(count, limit):
                print(f"[BILLING] Bill limit hit: store={store_id}, plan={plan.value}, usage={count}/{limit}", flush=True)
                return EntitlementDecision(
                    False,
                    f"{plan.label} plan limit reached ({limit} bills/month). Upgrade to create more.",
                    plan,
                )
            return EntitlementDecision(True, plan=plan)

        if feature == CREATE_PROFORMA:
            if limits.proforma:
                return EntitlementDecision(True, plan=plan)
            return EntitlementDecision(False, self._capability_reason(
                'proforma', 'Proforma invoices require {plan} plan or higher.'), plan)

        if feature == GST_FILING:
            if limits.gst_filing:
                return EntitlementDecision(True, plan=plan)
            return EntitlementDecision(False, self._capability_reason(
                'gst_filing', 'GST Filing requires {plan} plan.'), plan)

        # add_template: limits.templates is declared but there is no template
        # count to check it against, so this stays allowed.
        return EntitlementDecision(True, plan=plan)

    def _capability_reason(self, capability: str, template: str) -> str:
        required = self.catalog.minimum_plan(capability)
        if required is None:
            return f"No plan includes {capability}."
        return template.format(plan=required.label)


def check_entitlement(evaluator: EntitlementEvaluator, store_id: str, feature: str) -> EntitlementDecision:
    """
    Check whether a store may perform a feature.

    Args:
        evaluator: Configured EntitlementEvaluator
        store_id: The store identifier
        feature: One of FEATURES

    Returns:
        EntitlementDecision; denial is a normal return value
    """
    return evaluator.check(store_id, feature)


def entitlement_denied_response(feature: str, decision: EntitlementDecision):
    """
    Generate a 402 Payment Required response with upgrade info.

    Returns:
        Flask response tuple (jsonify, status_code)
    """
    upgrade_plan = get_upgrade_recommendation(decision.plan) if decision.plan else None
    checkout_url = f"{BASE_URL}/subscription" if upgrade_plan else None

    return jsonify({
        'error': 'Upgrade required',
        'message': decision.reason,
        'feature': feature,
        'plan': decision.plan.value if decision.plan else None,
        'upgrade_to': upgrade_plan.value if upgrade_plan else None,
        'upgrade_url': checkout_url
    }), 402


def require_entitlement(feature: str, get_evaluator: Callable[[], EntitlementEvaluator]):
    """
    Decorator factory that blocks a view when the store is not entitled.

    Args:
        feature: One of FEATURES
        get_evaluator: Function returning an EntitlementEvaluator for this request

    Returns:
        Decorator function
    """
    if feature not in FEATURES:
        raise ValueError(f"Unknown feature: {feature!r}")

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            store_id = request.headers.get('X-Store-ID')
            if not store_id:
                return jsonify({'error': 'Missing X-Store-ID header'}), 401

            decision = get_evaluator().check(store_id, feature)
            if not decision.allowed:
                return entitlement_denied_response(feature, decision)
            return f(*args, **kwargs)

        return decorated
    return decorator
