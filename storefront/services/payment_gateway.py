import json
import logging
from typing import Dict, List, Optional

import razorpay
from pydantic import BaseModel, Field

from storefront.errors import (
    CheckoutError,
    ConfigurationError,
    InvalidWebhookSignature,
    MalformedSession,
    PaymentGatewayError,
    SessionNotFound,
)

logger = logging.getLogger(__name__)


class LineItem(BaseModel):
    description: str
    quantity: int = Field(ge=1)
    # whole line, in the currency's minor unit
    amount_total: int = Field(ge=0)


class PaymentSession(BaseModel):
    """A payment session as the gateway reports it, read once per finalization."""

    id: str
    line_items: List[LineItem]
    # string key/value pairs written at checkout and round-tripped back
    metadata: Dict[str, str] = {}
    payment_intent_id: Optional[str] = None
    payment_status: str
    amount_subtotal: int
    amount_total: int
    currency: str


class CheckoutSession(BaseModel):
    id: str
    amount_total: int
    currency: str
    key_id: Optional[str] = None


class PaymentGateway:
    """Hosted payment collaborator used by checkout and order finalization."""

    key_id: Optional[str] = None

    def create_session(
        self,
        *,
        line_items: List[LineItem],
        metadata: Dict[str, str],
        amount_total: int,
        currency: str,
        receipt: str,
    ) -> CheckoutSession:
        raise NotImplementedError

    def retrieve_session(self, session_id: str) -> PaymentSession:
        raise NotImplementedError

    def verify_webhook(self, body: bytes, signature: str) -> dict:
        raise NotImplementedError


# Razorpay notes hold at most 15 values of 256 characters each.
NOTE_CHUNK_SIZE = 250
MAX_NOTES = 15
NOTE_PREFIX = "sf_"


def pack_notes(payload: dict) -> Dict[str, str]:
    encoded = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    chunks = [
        encoded[i:i + NOTE_CHUNK_SIZE]
        for i in range(0, len(encoded), NOTE_CHUNK_SIZE)
    ]
    if len(chunks) > MAX_NOTES:
        raise CheckoutError("Cart is too large for a single payment, please split the order")
    return {f"{NOTE_PREFIX}{index:02d}": chunk for index, chunk in enumerate(chunks)}


def unpack_notes(notes) -> dict:
    # Razorpay returns an empty list, not a dict, when an order has no notes
    if not isinstance(notes, dict):
        notes = {}

    keys = sorted(key for key in notes if key.startswith(NOTE_PREFIX))
    if not keys:
        raise MalformedSession("Payment session was not created by this store")

    try:
        payload = json.loads("".join(notes[key] for key in keys))
    except ValueError as e:
        raise MalformedSession("Payment session metadata is not valid JSON") from e

    if not isinstance(payload, dict):
        raise MalformedSession("Payment session metadata is not an object")
    return payload


class RazorpayGateway(PaymentGateway):
    """
    A Razorpay order plays the role of the payment session.

    Razorpay orders carry no itemisation, so the line items and the session
    metadata are packed into the order notes at creation time and unpacked on
    retrieval. The captured payment on the order is the payment intent.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: Optional[str] = None,
        client: Optional[razorpay.Client] = None,
    ):
        if not key_id or not key_secret:
            raise ConfigurationError("Razorpay credentials are not configured")

        self.key_id = key_id
        self.webhook_secret = webhook_secret
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_session(self, *, line_items, metadata, amount_total, currency, receipt):
        notes = pack_notes({
            "line_items": [
                [item.description, item.quantity, item.amount_total]
                for item in line_items
            ],
            "metadata": metadata,
        })

        try:
            rp_order = self.client.order.create({
                "amount": amount_total,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            })
        except razorpay.errors.BadRequestError as e:
            raise CheckoutError(f"Payment gateway rejected the order: {e}") from e
        except (razorpay.errors.ServerError, razorpay.errors.GatewayError) as e:
            raise PaymentGatewayError(f"Payment gateway unavailable: {e}") from e

        logger.info(f"Razorpay order {rp_order['id']} created for {amount_total} {currency}")

        return CheckoutSession(
            id=rp_order["id"],
            amount_total=rp_order["amount"],
            currency=rp_order["currency"],
            key_id=self.key_id,
        )

    def retrieve_session(self, session_id):
        try:
            rp_order = self.client.order.fetch(session_id)
            payments = self.client.order.payments(session_id).get("items", [])
        except razorpay.errors.BadRequestError as e:
            raise SessionNotFound(f"Payment session {session_id} not found") from e
        except (razorpay.errors.ServerError, razorpay.errors.GatewayError) as e:
            raise PaymentGatewayError(f"Payment gateway unavailable: {e}") from e

        payload = unpack_notes(rp_order.get("notes"))

        try:
            line_items = [
                LineItem(description=description, quantity=quantity, amount_total=amount)
                for description, quantity, amount in payload.get("line_items", [])
            ]
            metadata = {str(k): str(v) for k, v in (payload.get("metadata") or {}).items()}
        except (TypeError, ValueError) as e:
            raise MalformedSession("Payment session line items are malformed") from e

        captured = next(
            (p for p in payments if p.get("status") == "captured"),
            None,
        )
        paid = rp_order.get("status") == "paid" or captured is not None

        return PaymentSession(
            id=rp_order["id"],
            line_items=line_items,
            metadata=metadata,
            payment_intent_id=captured["id"] if captured else None,
            payment_status="paid" if paid else "unpaid",
            amount_subtotal=sum(item.amount_total for item in line_items),
            amount_total=rp_order["amount"],
            currency=rp_order.get("currency", ""),
        )

    def verify_webhook(self, body, signature):
        if not self.webhook_secret:
            raise ConfigurationError("Razorpay webhook secret is not configured")
        if not signature:
            raise InvalidWebhookSignature()

        text = body.decode("utf-8") if isinstance(body, bytes) else body
        try:
            self.client.utility.verify_webhook_signature(text, signature, self.webhook_secret)
        except razorpay.errors.SignatureVerificationError as e:
            raise InvalidWebhookSignature() from e

        try:
            return json.loads(text)
        except ValueError as e:
            raise InvalidWebhookSignature("Webhook body is not valid JSON") from e


def build_payment_gateway(settings) -> PaymentGateway:
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        webhook_secret=settings.razorpay_webhook_secret or None,
    )
