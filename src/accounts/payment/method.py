"""PaymentMethod aggregate with card number validation helpers.

Only the last four digits of a card are ever kept. Full numbers pass through
``PaymentMethod.from_card_number`` which runs the Luhn check and detects the
card network first.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from accounts.defaults.manager import SiblingKind
from accounts.domain import accounts


class CardType(Enum):
    VISA = "Visa"
    MASTERCARD = "Mastercard"
    AMEX = "American Express"
    DISCOVER = "Discover"
    UNKNOWN = "Unknown"


def _digits(number: str) -> str:
    return "".join(char for char in number if char.isdigit())


def is_valid_card_number(number: str) -> bool:
    """Luhn check over the digits of ``number``; 13 to 19 digits are accepted."""
    digits = _digits(number)
    if not 13 <= len(digits) <= 19:
        return False

    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def detect_card_type(number: str) -> CardType:
    digits = _digits(number)
    if not digits:
        return CardType.UNKNOWN
    if digits[0] == "4":
        return CardType.VISA
    prefix = digits[:2]
    if prefix in ("51", "52", "53", "54", "55"):
        return CardType.MASTERCARD
    if prefix in ("34", "37"):
        return CardType.AMEX
    if prefix in ("60", "65"):
        return CardType.DISCOVER
    return CardType.UNKNOWN


@accounts.aggregate
class PaymentMethod:
    """A stored card reference: last four digits, holder and expiry."""

    owner_id: Identifier(required=True)
    last4: String(required=True, min_length=4, max_length=4)
    cardholder_name: String(required=True, max_length=255)
    expiration_month: Integer(required=True, min_value=1, max_value=12)
    expiration_year: Integer(required=True, min_value=2000, max_value=2999)
    card_type: String(choices=CardType, default=CardType.UNKNOWN.value)
    is_default: Boolean(default=False)
    created_at: DateTime(default=lambda: datetime.now(UTC))

    @invariant.post
    def last4_must_be_digits(self):
        if self.last4 and not self.last4.isdigit():
            raise ValidationError({"last4": ["Must be exactly four digits"]})

    @property
    def masked_number(self) -> str:
        return f"**** **** **** {self.last4}"

    @property
    def expiration_label(self) -> str:
        return f"{self.expiration_month:02d}/{self.expiration_year % 100:02d}"

    @classmethod
    def from_card_number(
        cls,
        owner_id: str,
        card_number: str,
        cardholder_name: str,
        expiration_month: int,
        expiration_year: int,
        is_default: bool = False,
    ) -> "PaymentMethod":
        if not is_valid_card_number(card_number):
            raise ValidationError({"card_number": ["Invalid card number"]})
        return cls(
            owner_id=owner_id,
            last4=_digits(card_number)[-4:],
            cardholder_name=cardholder_name,
            expiration_month=expiration_month,
            expiration_year=expiration_year,
            card_type=detect_card_type(card_number).value,
            is_default=is_default,
        )


PAYMENT_METHODS = SiblingKind(name="payment_methods", model=PaymentMethod, promote_on_delete=True)
