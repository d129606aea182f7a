"""
Tests for Stripe metadata correlation and session helpers.
"""
from unittest.mock import patch

import stripe

from subscription.plans import Plan
from subscription.stripe_client import (
    StripeMetadataCorrelator,
    create_checkout_session,
    ensure_customer,
)


def test_resolve_store_id_from_customer_metadata():
    with patch('stripe.Customer.retrieve', return_value={'id': 'cus_1', 'metadata': {'storeId': 'store-1'}}):
        assert StripeMetadataCorrelator().resolve_store_id('cus_1') == 'store-1'


def test_resolve_store_id_without_metadata():
    with patch('stripe.Customer.retrieve', return_value={'id': 'cus_1', 'metadata': {}}):
        assert StripeMetadataCorrelator().resolve_store_id('cus_1') is None


def test_resolve_store_id_for_deleted_customer():
    with patch('stripe.Customer.retrieve', return_value={'id': 'cus_1', 'deleted': True}):
        assert StripeMetadataCorrelator().resolve_store_id('cus_1') is None


def test_resolve_store_id_for_missing_customer():
    error = stripe.InvalidRequestError('No such customer', 'id')
    with patch('stripe.Customer.retrieve', side_effect=error):
        assert StripeMetadataCorrelator().resolve_store_id('cus_missing') is None


def test_resolve_plan_from_price_metadata():
    with patch('stripe.Price.retrieve', return_value={'id': 'price_1', 'metadata': {'plan': 'pro'}}):
        assert StripeMetadataCorrelator().resolve_plan('price_1') == Plan.PRO


def test_resolve_plan_rejects_unknown_names():
    with patch('stripe.Price.retrieve', return_value={'id': 'price_1', 'metadata': {'plan': 'GOLD'}}):
        assert StripeMetadataCorrelator().resolve_plan('price_1') is None


def test_resolve_plan_without_price_id_skips_api():
    with patch('stripe.Price.retrieve') as retrieve:
        assert StripeMetadataCorrelator().resolve_plan(None) is None
    retrieve.assert_not_called()


def test_ensure_customer_reuses_tagged_customer():
    with patch('stripe.Customer.search', return_value={'data': [{'id': 'cus_existing'}]}), \
            patch('stripe.Customer.create') as create:
        assert ensure_customer('store-1') == 'cus_existing'
    create.assert_not_called()


def test_ensure_customer_creates_with_store_metadata():
    with patch('stripe.Customer.search', return_value={'data': []}), \
            patch('stripe.Customer.create', return_value={'id': 'cus_new'}) as create:
        assert ensure_customer('store-1', email='owner@example.com') == 'cus_new'

    kwargs = create.call_args[1]
    assert kwargs['metadata'] == {'storeId': 'store-1'}
    assert kwargs['email'] == 'owner@example.com'


def test_checkout_session_tags_store():
    with patch('subscription.stripe_client.ensure_customer', return_value='cus_1'), \
            patch('stripe.checkout.Session.create', return_value={'url': 'https://checkout.test/x'}) as create:
        url = create_checkout_session('store-1', 'price_pro', 'https://app/ok', 'https://app/cancel')

    assert url == 'https://checkout.test/x'
    kwargs = create.call_args[1]
    assert kwargs['customer'] == 'cus_1'
    assert kwargs['mode'] == 'subscription'
    assert kwargs['subscription_data'] == {'metadata': {'storeId': 'store-1'}}
