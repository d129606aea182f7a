"""
Canonical billing events.

Stripe objects are reduced to the handful of fields the reconciler needs.
Events are transient; only their effect on the store plan is persisted.
"""

from dataclasses import dataclass
from typing import Optional

DOWNGRADE_STATUSES = ('canceled', 'unpaid')


@dataclass(frozen=True)
class BillingEvent:
    """
    One subscription lifecycle notification.

    store_id is filled in by the reconciler's customer correlation and stays
    None when the customer belongs to no store.
    """

    event_id: str
    event_type: str
    subscription_id: str
    customer_id: Optional[str]
    price_id: Optional[str]
    status: str
    created: Optional[int] = None
    store_id: Optional[str] = None


def _first_price_id(subscription) -> Optional[str]:
    try:
        return subscription['items']['data'][0]['price']['id']
    except (KeyError, IndexError, TypeError):
        return None


def _customer_id(value) -> Optional[str]:
    # Unexpanded customer is an id string, expanded is an object
    if value is None or isinstance(value, str):
        return value
    return value['id']


def normalize_subscription(event_id: str, event_type: str, subscription,
                           created: Optional[int] = None) -> BillingEvent:
    """
    Build a BillingEvent from a Stripe subscription object.

    A deleted subscription is always reported as canceled.
    """
    status = subscription['status']
    if event_type == 'customer.subscription.deleted' and status not in DOWNGRADE_STATUSES:
        status = 'canceled'

    return BillingEvent(
        event_id=event_id,
        event_type=event_type,
        subscription_id=subscription['id'],
        customer_id=_customer_id(subscription['customer']),
        price_id=_first_price_id(subscription),
        status=status,
        created=created,
    )
