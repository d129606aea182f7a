"""
Subscription Routes
Owner: Billing

POST /api/subscription/webhook               - Stripe lifecycle events (raw body)
GET  /api/subscription/entitlements/<feature> - Entitlement query for the UI
GET  /api/subscription/plans                 - Plan catalog
GET  /api/subscription/current               - Store plan, limits and usage
POST /api/subscription/checkout              - Stripe Checkout session
POST /api/subscription/portal                - Stripe billing portal session
GET  /api/subscription/health                - Configuration check

Store-scoped routes identify the store with the X-Store-ID header.
"""

import stripe
from flask import Blueprint, request, jsonify

from subscription.db import PostgresStoreAccessor, StoreNotFoundError
from subscription.entitlements import EntitlementEvaluator, FEATURES
from subscription.errors import AuthenticationError, ProtocolViolationError
from subscription.ingress import BillingEventIngress, StripeSignatureVerifier, WEBHOOK_SECRET
from subscription.plans import Plan, PlanCatalog, PLANS, parse_plan
from subscription.reconciler import SubscriptionReconciler
from subscription.stripe_client import (
    StripeMetadataCorrelator,
    create_checkout_session,
    create_portal_session,
    find_customer_for_store,
)
from subscription.usage import PostgresUsageAccessor, get_usage_summary


def create_subscription_blueprint(get_db, get_cursor, catalog=None, stores=None, usage=None,
                                  correlator=None, verifier=None, retrieve_subscription=None):
    """
    Build the subscription blueprint with its collaborators.

    Accessors default to the Postgres and Stripe implementations; pass
    replacements to run against other backends.
    """
    subscription_bp = Blueprint('subscription', __name__, url_prefix='/api/subscription')

    catalog = catalog or PlanCatalog()
    stores = stores or PostgresStoreAccessor(get_db, get_cursor)
    usage = usage or PostgresUsageAccessor(get_cursor)
    correlator = correlator or StripeMetadataCorrelator()
    verifier = verifier or StripeSignatureVerifier()

    evaluator = EntitlementEvaluator(catalog, stores, usage)
    reconciler = SubscriptionReconciler(stores, correlator)
    ingress = BillingEventIngress(verifier, reconciler, retrieve_subscription)

    def _store_id():
        return request.headers.get('X-Store-ID')

    @subscription_bp.errorhandler(StoreNotFoundError)
    def store_not_found(e):
        return jsonify({'error': str(e)}), 404

    @subscription_bp.errorhandler(stripe.StripeError)
    def stripe_failed(e):
        print(f"[STRIPE] API error: {e}", flush=True)
        return jsonify({'error': 'Billing provider error'}), 502

    # ------------------------------------------------------------------
    # POST /api/subscription/webhook
    # ------------------------------------------------------------------

    @subscription_bp.route('/webhook', methods=['POST'])
    def stripe_webhook():
        """
        Handle Stripe webhook events.

        Answers 200 only once the event is reconciled or known to be a
        no-op. Any other status makes Stripe retry the delivery.
        """
        payload = request.get_data(cache=True)
        sig_header = request.headers.get('Stripe-Signature')

        try:
            event = ingress.ingest(payload, sig_header)
        except AuthenticationError as e:
            print(f"[SECURITY] Rejected Stripe webhook from {request.remote_addr}: {e}", flush=True)
            return jsonify({'error': 'Invalid signature'}), 401
        except ProtocolViolationError as e:
            print(f"[STRIPE] WEBHOOK MISCONFIGURED: {e}", flush=True)
            return jsonify({'error': 'Webhook misconfigured'}), 500

        return jsonify({
            'received': True,
            'event_id': event.event_id if event else None,
            'store_id': event.store_id if event else None,
        }), 200

    # ------------------------------------------------------------------
    # GET /api/subscription/entitlements/<feature>
    # ------------------------------------------------------------------

    @subscription_bp.route('/entitlements/<feature>', methods=['GET'])
    def get_entitlement(feature):
        store_id = _store_id()
        if not store_id:
            return jsonify({'error': 'Missing X-Store-ID header'}), 401
        if feature not in FEATURES:
            return jsonify({'error': f'Unknown feature: {feature}', 'features': list(FEATURES)}), 400

        decision = evaluator.check(store_id, feature)
        return jsonify(decision.to_dict())

    # ------------------------------------------------------------------
    # GET /api/subscription/plans
    # ------------------------------------------------------------------

    @subscription_bp.route('/plans', methods=['GET'])
    def list_plans():
        plans = []
        for plan, limits in catalog.items():
            meta = PLANS.get(plan, {})
            plans.append({
                'id': plan.value,
                'name': meta.get('name', plan.label),
                'description': meta.get('description'),
                'features': meta.get('features', []),
                'price_id': meta.get('stripe_price_id'),
                'limits': limits.to_dict(),
            })
        return jsonify(plans)

    # ------------------------------------------------------------------
    # GET /api/subscription/current
    # ------------------------------------------------------------------

    @subscription_bp.route('/current', methods=['GET'])
    def current_subscription():
        store_id = _store_id()
        if not store_id:
            return jsonify({'error': 'Missing X-Store-ID header'}), 401

        plan = stores.get_plan(store_id)
        limits = catalog.limits_for(plan)
        bills = usage.count_billing_documents_in_month(store_id, evaluator.clock())
        return jsonify(get_usage_summary(plan, limits, bills))

    # ------------------------------------------------------------------
    # POST /api/subscription/checkout
    # ------------------------------------------------------------------

    @subscription_bp.route('/checkout', methods=['POST'])
    def checkout():
        store_id = _store_id()
        if not store_id:
            return jsonify({'error': 'Missing X-Store-ID header'}), 401

        data = request.get_json(silent=True) or {}
        price_id = data.get('priceId')
        if not price_id:
            return jsonify({'error': 'Price ID is required'}), 400
        # Same price -> plan mapping the webhook uses, so a checkout can never
        # buy a price that later reconciles to FREE.
        plan = parse_plan(correlator.resolve_plan(price_id))
        if plan is None or plan == Plan.FREE:
            return jsonify({'error': f'Unknown price: {price_id}'}), 400

        base = request.host_url.rstrip('/')
        url = create_checkout_session(
            store_id,
            price_id,
            success_url=f"{base}/subscription?success=true",
            cancel_url=f"{base}/subscription?canceled=true",
            email=data.get('email'),
        )
        return jsonify({'url': url})

    # ------------------------------------------------------------------
    # POST /api/subscription/portal
    # ------------------------------------------------------------------

    @subscription_bp.route('/portal', methods=['POST'])
    def portal():
        store_id = _store_id()
        if not store_id:
            return jsonify({'error': 'Missing X-Store-ID header'}), 401

        customer_id = find_customer_for_store(store_id)
        if not customer_id:
            return jsonify({'error': 'No subscription found'}), 404

        base = request.host_url.rstrip('/')
        url = create_portal_session(customer_id, return_url=f"{base}/subscription")
        return jsonify({'url': url})

    # ------------------------------------------------------------------
    # GET /api/subscription/health
    # ------------------------------------------------------------------

    @subscription_bp.route('/health', methods=['GET'])
    def billing_health():
        """Health check for the subscription module."""
        return jsonify({
            'status': 'ok',
            'module': 'subscription',
            'stripe_configured': bool(stripe.api_key),
            'webhook_secret_configured': bool(getattr(verifier, 'secret', WEBHOOK_SECRET))
        })

    return subscription_bp
