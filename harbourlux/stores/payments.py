"""
Payment processing for booking deposits and balances.

``StripePaymentProvider`` talks to Stripe through the official SDK.
``MockPaymentProvider`` is a deterministic in-memory stand-in used by the
tests and the demo. Whether checkout tokenizes cards or falls back to raw
card entry is decided once per checkout by ``resolve_payment_mode``.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol, Union

import stripe

from harbourlux.booking.pricing import balance_due_date
from harbourlux.config import settings
from harbourlux.schemas.boat_schema import Boat
from harbourlux.schemas.booking_schema import Booking
from harbourlux.schemas.customer_schema import RawCardEntry, TokenizedPaymentMethod
from harbourlux.utils import to_cents, to_money

logger = logging.getLogger(__name__)


class PaymentError(RuntimeError):
    """Raised when the processor declines or cannot be reached."""


class PaymentMode(str, Enum):
    TOKENIZED = "tokenized"
    RAW_ENTRY = "raw_entry"


@dataclass
class PaymentIntent:
    """Simplified payment intent payload."""
    id: str
    amount: Decimal
    currency: str
    status: str
    metadata: dict[str, Any] = field(default_factory=dict)
    client_secret: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


class PaymentProvider(Protocol):
    """Payment operations used by checkout and owner approval."""

    @property
    def available(self) -> bool: ...

    async def tokenize_card(
        self, cardholder_name: str, number: str, expiry: str, cvv: str
    ) -> TokenizedPaymentMethod: ...

    async def create_deposit_intent(self, booking: Booking, boat: Boat) -> PaymentIntent: ...

    async def schedule_balance_payment(self, booking: Booking, boat: Boat) -> PaymentIntent: ...

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent: ...


def deposit_metadata(booking: Booking) -> dict[str, str]:
    return {
        "booking_id": booking.id,
        "booking_reference": booking.booking_reference,
        "boat_id": booking.boat_id,
        "customer_email": booking.customer_email,
        "payment_type": "deposit",
    }


def balance_metadata(booking: Booking, boat: Boat) -> dict[str, str]:
    return {
        "booking_id": booking.id,
        "booking_reference": booking.booking_reference,
        "boat_id": booking.boat_id,
        "customer_email": booking.customer_email,
        "payment_type": "balance_payment",
        "due_date": balance_due_date(booking, boat).isoformat(),
    }


def platform_fee(booking: Booking) -> Decimal:
    """Commission taken from the deposit charge; never more than the deposit itself."""
    return min(booking.commission_amount, booking.down_payment)


def parse_expiry(expiry: str) -> tuple[int, int]:
    """Parse ``MM/YY`` or ``MM/YYYY`` into (month, four-digit year)."""
    try:
        month_raw, year_raw = expiry.replace(" ", "").split("/")
        month, year = int(month_raw), int(year_raw)
    except ValueError:
        raise PaymentError(f"Card expiry must be MM/YY, got {expiry!r}") from None
    if year < 100:
        year += 2000
    if not 1 <= month <= 12:
        raise PaymentError(f"Card expiry month out of range: {month}")
    return month, year


class StripePaymentProvider:
    """Stripe-backed provider. Calls run in a worker thread since the SDK is blocking."""

    def __init__(self, secret_key: Optional[str] = None) -> None:
        self._secret_key = secret_key if secret_key is not None else settings.payment.stripe_secret_key
        stripe.max_network_retries = settings.payment.max_network_retries

    @property
    def available(self) -> bool:
        return bool(self._secret_key)

    @staticmethod
    def _to_intent(intent: Any, metadata: dict[str, str]) -> PaymentIntent:
        return PaymentIntent(
            id=str(intent.id),
            amount=Decimal(intent.amount) / 100,
            currency=str(intent.currency),
            status=str(getattr(intent, "status", None) or "unknown"),
            metadata=metadata,
            client_secret=getattr(intent, "client_secret", None),
        )

    async def tokenize_card(
        self, cardholder_name: str, number: str, expiry: str, cvv: str
    ) -> TokenizedPaymentMethod:
        month, year = parse_expiry(expiry)
        try:
            method = await asyncio.to_thread(
                stripe.PaymentMethod.create,
                api_key=self._secret_key,
                type="card",
                card={"number": number, "exp_month": month, "exp_year": year, "cvc": cvv},
                billing_details={"name": cardholder_name},
            )
        except stripe.StripeError as exc:
            raise PaymentError(f"Card could not be tokenized: {exc.user_message or exc}") from exc
        card = getattr(method, "card", None)
        logger.info("Payment method created: %s", method.id)
        return TokenizedPaymentMethod(
            handle=method.id,
            brand=getattr(card, "brand", None) or "unknown",
            last4=getattr(card, "last4", None) or "",
        )

    async def create_deposit_intent(self, booking: Booking, boat: Boat) -> PaymentIntent:
        """Charge the deposit on the card saved with the booking."""
        if not booking.payment_method_handle:
            raise PaymentError(f"Booking {booking.id} has no tokenized payment method")
        kwargs: dict[str, Any] = {
            "amount": to_cents(booking.down_payment),
            "currency": settings.pricing.currency,
            "payment_method": booking.payment_method_handle,
            "confirm": True,
            "off_session": True,
            "metadata": deposit_metadata(booking),
            "description": f"Deposit for {boat.name} booking {booking.booking_reference}",
            "statement_descriptor_suffix": "DEPOSIT",
        }
        if booking.customer_email:
            kwargs["receipt_email"] = booking.customer_email
        if boat.stripe_account_id:
            kwargs["transfer_data"] = {"destination": boat.stripe_account_id}
            kwargs["application_fee_amount"] = to_cents(platform_fee(booking))
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self._secret_key,
                idempotency_key=f"deposit_{booking.id}",
                **kwargs,
            )
        except stripe.StripeError as exc:
            raise PaymentError(f"Deposit charge failed: {exc.user_message or exc}") from exc
        logger.info("Deposit intent %s for booking %s: %s", intent.id, booking.id, intent.status)
        return self._to_intent(intent, kwargs["metadata"])

    async def schedule_balance_payment(self, booking: Booking, boat: Boat) -> PaymentIntent:
        """Create an unconfirmed intent for the balance, due before the charter."""
        kwargs: dict[str, Any] = {
            "amount": to_cents(booking.remaining_balance),
            "currency": settings.pricing.currency,
            "metadata": balance_metadata(booking, boat),
            "description": "Balance payment for boat booking",
            "statement_descriptor_suffix": "BALANCE",
        }
        if booking.customer_email:
            kwargs["receipt_email"] = booking.customer_email
        if boat.stripe_account_id:
            kwargs["transfer_data"] = {"destination": boat.stripe_account_id}
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self._secret_key,
                idempotency_key=f"balance_{booking.id}",
                **kwargs,
            )
        except stripe.StripeError as exc:
            raise PaymentError(f"Balance payment could not be scheduled: {exc.user_message or exc}") from exc
        return self._to_intent(intent, kwargs["metadata"])

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Current state of an intent, as Stripe reports it."""
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.retrieve, intent_id, api_key=self._secret_key
            )
        except stripe.StripeError as exc:
            raise PaymentError(f"Payment intent {intent_id} could not be retrieved: {exc.user_message or exc}") from exc
        return self._to_intent(intent, dict(getattr(intent, "metadata", None) or {}))


class MockPaymentProvider:
    """In-memory processor. Declines Stripe's standard decline test card."""

    DECLINED_CARD = "4000000000000002"

    def __init__(self, available: bool = True) -> None:
        self._available = available
        self._declined: set[str] = set()
        self.intents: dict[str, PaymentIntent] = {}

    @property
    def available(self) -> bool:
        return self._available

    async def tokenize_card(
        self, cardholder_name: str, number: str, expiry: str, cvv: str
    ) -> TokenizedPaymentMethod:
        digits = "".join(ch for ch in number if ch.isdigit())
        if len(digits) < 12 or not cvv:
            raise PaymentError("Your card number is incomplete.")
        parse_expiry(expiry)
        handle = f"pm_{uuid.uuid4().hex[:16]}"
        if digits == self.DECLINED_CARD:
            self._declined.add(handle)
        return TokenizedPaymentMethod(handle=handle, brand="visa", last4=digits[-4:])

    def _intent(self, amount: Decimal, status: str, metadata: dict[str, Any]) -> PaymentIntent:
        intent_id = f"pi_{uuid.uuid4().hex[:16]}"
        intent = PaymentIntent(
            id=intent_id,
            amount=to_money(amount),
            currency=settings.pricing.currency,
            status=status,
            metadata=metadata,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:12]}",
        )
        self.intents[intent_id] = intent
        return intent

    async def create_deposit_intent(self, booking: Booking, boat: Boat) -> PaymentIntent:
        if not booking.payment_method_handle:
            raise PaymentError(f"Booking {booking.id} has no tokenized payment method")
        if booking.payment_method_handle in self._declined:
            raise PaymentError("Your card was declined.")
        return self._intent(booking.down_payment, "succeeded", deposit_metadata(booking))

    async def schedule_balance_payment(self, booking: Booking, boat: Boat) -> PaymentIntent:
        return self._intent(
            booking.remaining_balance, "requires_confirmation", balance_metadata(booking, boat)
        )

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            return self.intents[intent_id]
        except KeyError:
            raise PaymentError(f"Payment intent {intent_id} not found") from None


def construct_webhook_event(payload: Union[bytes, str], signature: str, secret: Optional[str] = None) -> Any:
    """Verify a Stripe webhook delivery and return the parsed event.

    Raises:
        PaymentError: no signing secret is configured, the signature does
            not match, or the payload is not valid JSON.
    """
    secret = secret if secret is not None else settings.payment.stripe_webhook_secret
    if not secret:
        raise PaymentError("Webhook signing secret is not configured")
    try:
        return stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as exc:
        raise PaymentError(f"Invalid webhook signature: {exc}") from exc
    except ValueError as exc:
        raise PaymentError(f"Invalid webhook payload: {exc}") from exc


def resolve_payment_mode(provider: Optional[PaymentProvider]) -> PaymentMode:
    """Tokenize when a processor is configured, otherwise accept raw card entry."""
    if provider is not None and provider.available:
        return PaymentMode.TOKENIZED
    return PaymentMode.RAW_ENTRY


async def collect_payment_method(
    mode: PaymentMode,
    provider: Optional[PaymentProvider],
    *,
    cardholder_name: str,
    number: str,
    expiry: str,
    cvv: str,
) -> Union[TokenizedPaymentMethod, RawCardEntry]:
    """Turn card form input into the payment method variant for ``mode``."""
    if mode == PaymentMode.TOKENIZED:
        if provider is None:
            raise PaymentError("Tokenized payment requires a payment provider")
        return await provider.tokenize_card(cardholder_name, number, expiry, cvv)
    return RawCardEntry(cardholder_name=cardholder_name, number=number, expiry=expiry, cvv=cvv)
