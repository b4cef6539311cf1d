# storefront/services/payment_client.py
import json

import stripe

from storefront.utils.errors import ExternalServiceError, SignatureVerificationFailure
from storefront.utils.settings import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentClient:
    """Cienki wrapper na stripe: hostowany checkout + weryfikacja webhookow."""

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None):
        self.api_key = api_key or STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or STRIPE_WEBHOOK_SECRET

    def create_checkout_session(self, **params) -> dict:
        logger.info(f"PaymentClient create checkout session ref={params.get('client_reference_id')}")
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session failed: {e}")
            raise ExternalServiceError(f"Blad dostawcy platnosci: {e.user_message or e}")

        return {"id": session["id"], "url": session["url"]}

    def construct_event(self, payload: bytes, sig_header: str | None) -> dict:
        """Weryfikuje podpis i zwraca event jako zwykly dict."""
        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text,
                sig_header or "",
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
            return json.loads(text)
        except stripe.SignatureVerificationError as e:
            raise SignatureVerificationFailure(str(e))
        except ValueError as e:
            # zly utf-8 albo json
            raise SignatureVerificationFailure(f"Invalid payload: {e}")


def get_payment_client() -> PaymentClient:
    return PaymentClient()
