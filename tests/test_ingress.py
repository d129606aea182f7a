"""
Tests for webhook verification and normalization.
"""
import json
from unittest.mock import Mock

import pytest

from subscription.errors import AuthenticationError, ProtocolViolationError
from subscription.events import normalize_subscription
from subscription.ingress import BillingEventIngress, StripeSignatureVerifier
from subscription.plans import Plan
from subscription.reconciler import SubscriptionReconciler
from tests.support import STORE_ID, WEBHOOK_SECRET, sign_payload, subscription_event


@pytest.fixture
def ingress(stores, correlator):
    reconciler = SubscriptionReconciler(stores, correlator)
    return BillingEventIngress(StripeSignatureVerifier(WEBHOOK_SECRET), reconciler, Mock())


def test_valid_event_updates_plan(ingress, stores):
    payload = subscription_event(status='active', price='price_pro')

    event = ingress.ingest(payload, sign_payload(payload))

    assert event.event_id == 'evt_123'
    assert event.subscription_id == 'sub_123'
    assert event.customer_id == 'cus_123'
    assert event.price_id == 'price_pro'
    assert event.status == 'active'
    assert event.created == 1773576000
    assert event.store_id == STORE_ID
    assert stores.plans[STORE_ID] == Plan.PRO


def test_tampered_payload_is_rejected_without_mutation(ingress, stores):
    payload = subscription_event(status='active', price='price_enterprise')
    header = sign_payload(payload)
    tampered = payload.replace(b'price_enterprise', b'price_pro')

    with pytest.raises(AuthenticationError):
        ingress.ingest(tampered, header)

    assert stores.writes == []


def test_wrong_secret_is_rejected(ingress, stores):
    payload = subscription_event()

    with pytest.raises(AuthenticationError):
        ingress.ingest(payload, sign_payload(payload, secret='whsec_other'))
    assert stores.writes == []


def test_forged_signature_on_undecodable_body_is_rejected(ingress, stores):
    with pytest.raises(AuthenticationError):
        ingress.ingest(b'\xff\xfe garbage', 't=1,v1=deadbeef')
    assert stores.writes == []


def test_signed_non_json_body_is_a_protocol_violation(ingress, stores):
    payload = b'not json at all'

    with pytest.raises(ProtocolViolationError):
        ingress.ingest(payload, sign_payload(payload))
    assert stores.writes == []


def test_missing_signature_is_rejected(ingress):
    with pytest.raises(AuthenticationError):
        ingress.ingest(subscription_event(), None)


def test_parsed_body_is_a_protocol_violation(ingress, stores):
    payload = subscription_event()
    parsed = json.loads(payload)

    with pytest.raises(ProtocolViolationError):
        ingress.ingest(parsed, sign_payload(payload))
    assert stores.writes == []


def test_protocol_violation_is_not_an_authentication_error():
    assert not issubclass(ProtocolViolationError, AuthenticationError)
    assert not issubclass(AuthenticationError, ProtocolViolationError)


def test_missing_webhook_secret_is_a_protocol_violation(stores, correlator):
    verifier = StripeSignatureVerifier()
    verifier.secret = None
    ingress = BillingEventIngress(verifier, SubscriptionReconciler(stores, correlator), Mock())
    payload = subscription_event()

    with pytest.raises(ProtocolViolationError):
        ingress.ingest(payload, sign_payload(payload))


def test_deleted_subscription_downgrades(ingress, stores):
    stores.plans[STORE_ID] = Plan.PRO
    payload = subscription_event(event_type='customer.subscription.deleted', status='canceled')

    event = ingress.ingest(payload, sign_payload(payload))

    assert event.status == 'canceled'
    assert stores.plans[STORE_ID] == Plan.FREE


def test_unrelated_event_type_is_acknowledged(ingress, stores):
    payload = json.dumps({
        'id': 'evt_inv', 'object': 'event', 'type': 'invoice.paid',
        'data': {'object': {'id': 'in_1', 'object': 'invoice'}},
    }).encode('utf-8')

    assert ingress.ingest(payload, sign_payload(payload)) is None
    assert stores.writes == []


def test_checkout_completed_fetches_subscription(stores, correlator):
    retrieve = Mock(return_value={
        'id': 'sub_9',
        'customer': 'cus_123',
        'status': 'trialing',
        'items': {'data': [{'price': {'id': 'price_basic'}}]},
    })
    ingress = BillingEventIngress(
        StripeSignatureVerifier(WEBHOOK_SECRET), SubscriptionReconciler(stores, correlator), retrieve
    )
    payload = json.dumps({
        'id': 'evt_co', 'object': 'event', 'type': 'checkout.session.completed',
        'data': {'object': {'id': 'cs_1', 'object': 'checkout.session', 'subscription': 'sub_9'}},
    }).encode('utf-8')

    event = ingress.ingest(payload, sign_payload(payload))

    retrieve.assert_called_once_with('sub_9')
    assert event.subscription_id == 'sub_9'
    assert stores.plans[STORE_ID] == Plan.BASIC


def test_checkout_without_subscription_is_ignored(ingress, stores):
    payload = json.dumps({
        'id': 'evt_co', 'object': 'event', 'type': 'checkout.session.completed',
        'data': {'object': {'id': 'cs_1', 'object': 'checkout.session', 'subscription': None}},
    }).encode('utf-8')

    assert ingress.ingest(payload, sign_payload(payload)) is None
    ingress.retrieve_subscription.assert_not_called()
    assert stores.writes == []


def test_normalize_expanded_customer_and_forced_cancel():
    event = normalize_subscription('evt_1', 'customer.subscription.deleted', {
        'id': 'sub_1',
        'customer': {'id': 'cus_1', 'object': 'customer'},
        'status': 'incomplete_expired',
        'items': {'data': []},
    })

    assert event.customer_id == 'cus_1'
    assert event.status == 'canceled'
    assert event.price_id is None
