"""Customer details and the payment method variants used at checkout."""

import re
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class CustomerDetails(BaseModel):
    """Contact details entered by the customer."""
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    special_requests: Optional[str] = None


class TokenizedPaymentMethod(BaseModel):
    """Card already tokenized by the payment processor."""
    kind: Literal["tokenized"] = "tokenized"
    handle: str
    brand: str = "unknown"
    last4: str = ""


class RawCardEntry(BaseModel):
    """Manually entered card, used when no payment processor is configured."""
    kind: Literal["raw_entry"] = "raw_entry"
    cardholder_name: str = ""
    number: str = ""
    expiry: str = ""
    cvv: str = ""

    @property
    def last4(self) -> str:
        return re.sub(r"\D", "", self.number)[-4:]


PaymentMethod = Annotated[
    Union[TokenizedPaymentMethod, RawCardEntry],
    Field(discriminator="kind"),
]
