"""
Subscription error types.

Soft conditions (unknown customer, unhandled status) are not errors and
never raise.
"""


class SubscriptionError(Exception):
    """Base class for subscription subsystem errors."""


class AuthenticationError(SubscriptionError):
    """Webhook signature did not verify. The event must not be applied."""


class ProtocolViolationError(SubscriptionError):
    """
    Webhook body was not the raw bytes received over the wire.

    Usually means something parsed the JSON body before the webhook route
    saw it. This is a deployment defect, not a bad payload.
    """
