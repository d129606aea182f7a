"""
Storefront Subscription Reconciler
Owner: Billing
Workstream: Subscription Sync

Applies a Stripe subscription lifecycle event to store_profiles.plan:
- active / trialing: plan from the price metadata (FREE if missing)
- canceled / unpaid: FREE, whatever the price says
- anything else: ignored

The write is a plain assignment, so replaying an event is harmless.

Known limitation: Stripe does not guarantee delivery order. A stale
'canceled' event for an old subscription that arrives after an 'active'
event for its replacement will downgrade the store to FREE until the next
event for the live subscription is delivered. Nothing here compares event
timestamps.
"""

from dataclasses import replace
from typing import Optional

from subscription.events import BillingEvent, DOWNGRADE_STATUSES
from subscription.plans import Plan, parse_plan

UPGRADE_STATUSES = ('active', 'trialing')


class SubscriptionReconciler:
    """
    Args:
        stores: object with set_plan(store_id, plan)
        correlator: object with resolve_store_id(customer_id) and resolve_plan(price_id)
    """

    def __init__(self, stores, correlator):
        self.stores = stores
        self.correlator = correlator

    def apply_lifecycle_event(self, subscription_id: str, customer_id: str, status: str,
                              price_id: Optional[str]) -> Optional[Plan]:
        """
        Reconcile one lifecycle event.

        Args:
            subscription_id: Stripe subscription ID (sub_xxx)
            customer_id: Stripe customer ID (cus_xxx)
            status: Stripe subscription status
            price_id: Stripe price ID of the first subscription item

        Returns:
            The plan written, or None if the event was a no-op
        """
        store_id = self.correlator.resolve_store_id(customer_id)
        return self._apply(store_id, subscription_id, customer_id, status, price_id)

    def reconcile(self, event: BillingEvent) -> BillingEvent:
        """Reconcile a canonical event and return it with store_id resolved."""
        store_id = self.correlator.resolve_store_id(event.customer_id)
        self._apply(store_id, event.subscription_id, event.customer_id, event.status, event.price_id)
        return replace(event, store_id=store_id or None)

    def _apply(self, store_id, subscription_id, customer_id, status, price_id) -> Optional[Plan]:
        if not store_id:
            print(f"[STRIPE] No storeId for customer {customer_id} (subscription {subscription_id}), skipping", flush=True)
            return None

        if status in UPGRADE_STATUSES:
            plan = parse_plan(self.correlator.resolve_plan(price_id)) if price_id else None
            if plan is None:
                plan = Plan.FREE
            self.stores.set_plan(store_id, plan)
            print(f"[STRIPE] Updated store {store_id} to plan {plan.value} ({status}, {subscription_id})", flush=True)
            return plan

        if status in DOWNGRADE_STATUSES:
            self.stores.set_plan(store_id, Plan.FREE)
            print(f"[STRIPE] Downgraded store {store_id} to FREE plan ({status}, {subscription_id})", flush=True)
            return Plan.FREE

        print(f"[STRIPE] Unhandled subscription status {status!r} for store {store_id}, no change", flush=True)
        return None
