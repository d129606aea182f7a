"""
Storefront Subscription Module
Owner: Billing
Workstream: Plans & Subscription Sync

This module handles:
- Plan definitions and limits
- Entitlement checks against plan and monthly usage
- Stripe integration (webhooks, checkout and portal sessions)
- Reconciling Stripe subscription state onto the store plan
"""

from subscription.plans import Plan, PlanLimits, PlanCatalog, PLANS, parse_plan
from subscription.entitlements import EntitlementDecision, EntitlementEvaluator, check_entitlement
from subscription.errors import AuthenticationError, ProtocolViolationError
from subscription.events import BillingEvent
from subscription.ingress import BillingEventIngress
from subscription.reconciler import SubscriptionReconciler

__all__ = [
    'Plan', 'PlanLimits', 'PlanCatalog', 'PLANS', 'parse_plan',
    'EntitlementDecision', 'EntitlementEvaluator', 'check_entitlement',
    'AuthenticationError', 'ProtocolViolationError',
    'BillingEvent', 'BillingEventIngress', 'SubscriptionReconciler'
]
