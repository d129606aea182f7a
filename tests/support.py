"""Fakes and Stripe fixtures shared by the test modules."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone

from subscription.db import StoreNotFoundError

WEBHOOK_SECRET = 'whsec_test_secret'
STORE_ID = 'store-1'
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeStores:
    """In-memory store accessor that records every write."""

    def __init__(self, plans=None):
        self.plans = dict(plans or {})
        self.writes = []

    def get_plan(self, store_id):
        if store_id not in self.plans:
            raise StoreNotFoundError(f"Store {store_id} not found")
        return self.plans[store_id]

    def set_plan(self, store_id, plan):
        self.writes.append((store_id, plan))
        self.plans[store_id] = plan


class FakeUsage:
    def __init__(self, counts=None):
        self.counts = dict(counts or {})
        self.calls = []

    def count_billing_documents_in_month(self, store_id, reference_date):
        self.calls.append((store_id, reference_date))
        return self.counts.get(store_id, 0)


class FakeCorrelator:
    def __init__(self, customers=None, prices=None):
        self.customers = dict(customers or {})
        self.prices = dict(prices or {})

    def resolve_store_id(self, customer_id):
        return self.customers.get(customer_id)

    def resolve_plan(self, price_id):
        return self.prices.get(price_id)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode('utf-8')
    signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def subscription_event(event_type='customer.subscription.updated', status='active',
                       customer='cus_123', price='price_pro', sub_id='sub_123',
                       event_id='evt_123') -> bytes:
    body = {
        'id': event_id,
        'object': 'event',
        'type': event_type,
        'created': 1773576000,
        'data': {
            'object': {
                'id': sub_id,
                'object': 'subscription',
                'customer': customer,
                'status': status,
                'items': {
                    'object': 'list',
                    'data': [{'id': 'si_1', 'object': 'subscription_item', 'price': {'id': price, 'object': 'price'}}],
                },
            },
        },
    }
    return json.dumps(body).encode('utf-8')


