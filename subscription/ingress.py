"""
Storefront Stripe Webhook Ingress
Owner: Billing
Workstream: Subscription Sync

Verifies Stripe webhook deliveries and turns subscription lifecycle events
into BillingEvent values for the reconciler:
- customer.subscription.created / updated / deleted
- checkout.session.completed (subscription fetched from Stripe)

Signatures are computed over the exact bytes Stripe sent, so the body must
reach ingest() unparsed.
"""

import os
from typing import Optional, Callable

import stripe

from subscription.errors import AuthenticationError, ProtocolViolationError
from subscription.events import BillingEvent, normalize_subscription

WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET')

SUBSCRIPTION_EVENTS = (
    'customer.subscription.created',
    'customer.subscription.updated',
    'customer.subscription.deleted',
)
CHECKOUT_COMPLETED = 'checkout.session.completed'


class StripeSignatureVerifier:
    """Checks the Stripe-Signature header and decodes the event."""

    def __init__(self, secret: Optional[str] = None):
        self.secret = secret or WEBHOOK_SECRET

    def verify(self, raw_payload: bytes, signature_header: str):
        if not self.secret:
            raise ProtocolViolationError('STRIPE_WEBHOOK_SECRET not configured')
        # Signature first: construct_event decodes the body before checking it.
        # Undecodable bytes are replaced, so they can never match a real signature.
        try:
            stripe.WebhookSignature.verify_header(
                raw_payload.decode('utf-8', 'replace'), signature_header, self.secret
            )
        except stripe.SignatureVerificationError as e:
            raise AuthenticationError(f"Invalid signature: {e}") from e

        try:
            return stripe.Webhook.construct_event(raw_payload, signature_header, self.secret)
        except stripe.SignatureVerificationError as e:
            raise AuthenticationError(f"Invalid signature: {e}") from e
        except ValueError as e:
            # Signature matched but the body is not JSON
            raise ProtocolViolationError(f"Invalid payload: {e}") from e


class BillingEventIngress:
    """
    Args:
        verifier: object with verify(raw_payload, signature_header) -> Stripe event
        reconciler: SubscriptionReconciler
        retrieve_subscription: fetches a subscription by id (defaults to Stripe API)
    """

    def __init__(self, verifier, reconciler, retrieve_subscription: Optional[Callable] = None):
        self.verifier = verifier
        self.reconciler = reconciler
        self.retrieve_subscription = retrieve_subscription or stripe.Subscription.retrieve

    def ingest(self, raw_payload: bytes, signature_header: Optional[str]) -> Optional[BillingEvent]:
        """
        Verify, normalize and reconcile one webhook delivery.

        Args:
            raw_payload: Request body exactly as received
            signature_header: Value of the Stripe-Signature header

        Returns:
            The reconciled BillingEvent, or None for ignored event types

        Raises:
            ProtocolViolationError: body is not raw bytes
            AuthenticationError: signature missing or invalid
        """
        if not isinstance(raw_payload, (bytes, bytearray)):
            raise ProtocolViolationError(
                'Webhook payload must be the raw request bytes, got '
                f'{type(raw_payload).__name__}. Something parsed the body before '
                'the webhook route; read it with request.get_data().'
            )
        if not signature_header:
            raise AuthenticationError('Missing Stripe-Signature header')

        event = self.verifier.verify(bytes(raw_payload), signature_header)

        event_type = event['type']
        event_id = event['id']
        obj = event['data']['object']
        created = event['created'] if 'created' in event else None

        print(f"[STRIPE] Received event: {event_type} ({event_id})", flush=True)

        if event_type in SUBSCRIPTION_EVENTS:
            billing_event = normalize_subscription(event_id, event_type, obj, created)
        elif event_type == CHECKOUT_COMPLETED:
            subscription_id = obj['subscription'] if 'subscription' in obj else None
            if not subscription_id:
                print(f"[STRIPE] {CHECKOUT_COMPLETED} without subscription, ignoring", flush=True)
                return None
            subscription = self.retrieve_subscription(subscription_id)
            billing_event = normalize_subscription(event_id, event_type, subscription, created)
        else:
            print(f"[STRIPE] Unhandled event type: {event_type}", flush=True)
            return None

        return self.reconciler.reconcile(billing_event)
