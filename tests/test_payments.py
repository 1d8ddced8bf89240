"""Tests for the payment providers and helpers."""

from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from harbourlux.schemas.customer_schema import RawCardEntry, TokenizedPaymentMethod
from harbourlux.stores.payments import (
    MockPaymentProvider,
    PaymentError,
    PaymentMode,
    StripePaymentProvider,
    collect_payment_method,
    parse_expiry,
    platform_fee,
    resolve_payment_mode,
)
from tests.conftest import make_booking


class TestHelpers:
    @pytest.mark.parametrize("raw, expected", [
        ("12/30", (12, 2030)),
        ("01/2031", (1, 2031)),
        (" 7 / 29 ", (7, 2029)),
    ])
    def test_parse_expiry(self, raw, expected):
        assert parse_expiry(raw) == expected

    @pytest.mark.parametrize("raw", ["1230", "13/30", "aa/bb"])
    def test_parse_expiry_rejects(self, raw):
        with pytest.raises(PaymentError):
            parse_expiry(raw)

    def test_platform_fee_capped_by_deposit(self):
        assert platform_fee(make_booking()) == Decimal("40")
        small = make_booking(commission_amount=Decimal("40"), down_payment=Decimal("25"))
        assert platform_fee(small) == Decimal("25")


class TestPaymentMode:
    def test_no_provider_uses_raw_entry(self):
        assert resolve_payment_mode(None) == PaymentMode.RAW_ENTRY

    def test_unavailable_provider_uses_raw_entry(self):
        assert resolve_payment_mode(MockPaymentProvider(available=False)) == PaymentMode.RAW_ENTRY

    def test_available_provider_tokenizes(self, payments):
        assert resolve_payment_mode(payments) == PaymentMode.TOKENIZED

    def test_stripe_without_key_unavailable(self):
        assert not StripePaymentProvider(secret_key="").available

    @pytest.mark.asyncio
    async def test_collect_raw_entry(self):
        method = await collect_payment_method(
            PaymentMode.RAW_ENTRY, None,
            cardholder_name="Jamie Lee", number="4242 4242 4242 4242", expiry="12/30", cvv="123",
        )
        assert isinstance(method, RawCardEntry)
        assert method.last4 == "4242"

    @pytest.mark.asyncio
    async def test_collect_tokenized(self, payments):
        method = await collect_payment_method(
            PaymentMode.TOKENIZED, payments,
            cardholder_name="Jamie Lee", number="4242424242424242", expiry="12/30", cvv="123",
        )
        assert isinstance(method, TokenizedPaymentMethod)
        assert method.handle.startswith("pm_")
        assert method.last4 == "4242"


class TestMockPaymentProvider:
    @pytest.mark.asyncio
    async def test_incomplete_card(self, payments):
        with pytest.raises(PaymentError, match="incomplete"):
            await payments.tokenize_card("Jamie", "4242", "12/30", "123")

    @pytest.mark.asyncio
    async def test_deposit_intent(self, payments, boat):
        method = await payments.tokenize_card("Jamie", "4242424242424242", "12/30", "123")
        booking = make_booking(payment_method_handle=method.handle)
        intent = await payments.create_deposit_intent(booking, boat)
        assert intent.succeeded
        assert intent.amount == Decimal("100.00")
        assert intent.metadata["payment_type"] == "deposit"
        assert intent.id in payments.intents

    @pytest.mark.asyncio
    async def test_declined_card(self, payments, boat):
        method = await payments.tokenize_card("Jamie", MockPaymentProvider.DECLINED_CARD, "12/30", "123")
        booking = make_booking(payment_method_handle=method.handle)
        with pytest.raises(PaymentError, match="declined"):
            await payments.create_deposit_intent(booking, boat)

    @pytest.mark.asyncio
    async def test_deposit_without_handle(self, payments, boat):
        with pytest.raises(PaymentError):
            await payments.create_deposit_intent(make_booking(), boat)

    @pytest.mark.asyncio
    async def test_balance_intent(self, payments, boat):
        intent = await payments.schedule_balance_payment(make_booking(), boat)
        assert not intent.succeeded
        assert intent.amount == Decimal("300.00")
        assert intent.metadata["due_date"] == "2025-03-10"


class TestStripePaymentProvider:
    @pytest.mark.asyncio
    async def test_deposit_intent_request(self, monkeypatch, boat):
        calls = []

        def fake_create(**kwargs):
            calls.append(kwargs)
            return SimpleNamespace(
                id="pi_123", amount=kwargs["amount"], currency=kwargs["currency"],
                status="succeeded", client_secret="pi_123_secret",
            )

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        provider = StripePaymentProvider(secret_key="sk_test_123")
        booking = make_booking(payment_method_handle="pm_abc", booking_reference="BK00000001")
        intent = await provider.create_deposit_intent(booking, boat)

        assert intent.succeeded
        assert intent.amount == Decimal("100")
        sent = calls[0]
        assert sent["amount"] == 10000
        assert sent["api_key"] == "sk_test_123"
        assert sent["idempotency_key"] == f"deposit_{booking.id}"
        assert sent["transfer_data"] == {"destination": "acct_test_1"}
        assert sent["application_fee_amount"] == 4000
        assert sent["metadata"]["booking_reference"] == "BK00000001"

    @pytest.mark.asyncio
    async def test_stripe_error_becomes_payment_error(self, monkeypatch, boat):
        def fake_create(**kwargs):
            raise stripe.StripeError("network down")

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        provider = StripePaymentProvider(secret_key="sk_test_123")
        with pytest.raises(PaymentError, match="Deposit charge failed"):
            await provider.create_deposit_intent(make_booking(payment_method_handle="pm_abc"), boat)

    @pytest.mark.asyncio
    async def test_tokenize_card(self, monkeypatch):
        def fake_create(**kwargs):
            assert kwargs["card"]["exp_year"] == 2030
            return SimpleNamespace(id="pm_999", card=SimpleNamespace(brand="mastercard", last4="4444"))

        monkeypatch.setattr(stripe.PaymentMethod, "create", fake_create)
        provider = StripePaymentProvider(secret_key="sk_test_123")
        method = await provider.tokenize_card("Jamie", "5555555555554444", "12/30", "123")
        assert method.handle == "pm_999"
        assert method.brand == "mastercard"
        assert method.last4 == "4444"
