from harbourlux.flows.approvals import OwnerDesk
from harbourlux.flows.checkout import BookingValidationError, CheckoutSession
from harbourlux.flows.payment_events import PaymentEventHandler

__all__ = ["CheckoutSession", "BookingValidationError", "OwnerDesk", "PaymentEventHandler"]
