"""
Storefront Stripe Client
Owner: Billing
Workstream: Subscription Sync

Thin wrappers around the Stripe API:
- Customer/price metadata correlation (storeId, plan)
- Checkout and billing portal sessions
"""

import os
from typing import Optional

import stripe

from subscription.plans import Plan, parse_plan

# Initialize Stripe with secret key
stripe.api_key = os.environ.get('STRIPE_SECRET_KEY')

# Metadata keys written on Stripe objects
STORE_ID_KEY = 'storeId'
PLAN_KEY = 'plan'


def _metadata_value(obj, key: str) -> Optional[str]:
    try:
        value = obj['metadata'][key]
    except (KeyError, TypeError):
        return None
    return value or None


class StripeMetadataCorrelator:
    """
    Resolves Stripe ids to internal ids through object metadata.

    customer.metadata.storeId -> store id
    price.metadata.plan       -> Plan
    """

    def resolve_store_id(self, customer_id: str) -> Optional[str]:
        if not customer_id:
            return None
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.InvalidRequestError as e:
            print(f"[STRIPE] Customer {customer_id} not retrievable: {e}", flush=True)
            return None
        return _metadata_value(customer, STORE_ID_KEY)

    def resolve_plan(self, price_id: str) -> Optional[Plan]:
        if not price_id:
            return None
        try:
            price = stripe.Price.retrieve(price_id)
        except stripe.InvalidRequestError as e:
            print(f"[STRIPE] Price {price_id} not retrievable: {e}", flush=True)
            return None

        raw = _metadata_value(price, PLAN_KEY)
        plan = parse_plan(raw)
        if raw is not None and plan is None:
            print(f"[STRIPE] Price {price_id} carries unknown plan {raw!r}", flush=True)
        return plan


def find_customer_for_store(store_id: str) -> Optional[str]:
    """
    Find the Stripe customer tagged with a store id.

    Args:
        store_id: Store UUID

    Returns:
        Stripe customer ID or None
    """
    result = stripe.Customer.search(query=f"metadata['{STORE_ID_KEY}']:'{store_id}'", limit=1)
    if result['data']:
        return result['data'][0]['id']
    return None


def ensure_customer(store_id: str, email: Optional[str] = None, name: Optional[str] = None) -> str:
    """Return the store's Stripe customer, creating one if needed."""
    customer_id = find_customer_for_store(store_id)
    if customer_id:
        return customer_id

    params = {'metadata': {STORE_ID_KEY: store_id}}
    if email:
        params['email'] = email
    if name:
        params['name'] = name
    customer = stripe.Customer.create(**params)
    print(f"[STRIPE] Created customer {customer['id']} for store {store_id}", flush=True)
    return customer['id']


def create_checkout_session(store_id: str, price_id: str, success_url: str, cancel_url: str,
                            email: Optional[str] = None) -> str:
    """
    Create a subscription Checkout session for a store.

    The customer carries metadata.storeId so later lifecycle events
    correlate back to the store.

    Returns:
        Checkout URL
    """
    customer_id = ensure_customer(store_id, email=email)
    session = stripe.checkout.Session.create(
        mode='subscription',
        customer=customer_id,
        line_items=[{'price': price_id, 'quantity': 1}],
        success_url=success_url,
        cancel_url=cancel_url,
        client_reference_id=store_id,
        metadata={STORE_ID_KEY: store_id},
        subscription_data={'metadata': {STORE_ID_KEY: store_id}},
    )
    return session['url']


def create_portal_session(customer_id: str, return_url: str) -> str:
    """Create a billing portal session and return its URL."""
    session = stripe.billing_portal.Session.create(
        customer=customer_id,
        return_url=return_url,
    )
    return session['url']
