"""Pydantic request/response schemas for the Accounts API.

These are external contracts, separate from the Protean aggregates.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------
class AddAddressRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "label": "Home",
                    "street": "123 Main St",
                    "apartment": "Apt 4B",
                    "city": "New York",
                    "state": "NY",
                    "zip_code": "10001",
                    "is_default": True,
                }
            ]
        }
    }

    label: str = "Home"
    street: str
    apartment: str | None = None
    city: str
    state: str | None = None
    zip_code: str
    is_default: bool = False


class UpdateAddressRequest(BaseModel):
    label: str | None = None
    street: str | None = None
    apartment: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    is_default: bool | None = None


class AddressResponse(BaseModel):
    id: str
    owner_id: str
    label: str | None = None
    street: str
    apartment: str | None = None
    city: str
    state: str | None = None
    zip_code: str
    is_default: bool
    formatted: str
    created_at: datetime | None = None

    @classmethod
    def from_address(cls, address) -> "AddressResponse":
        return cls(
            id=str(address.id),
            owner_id=str(address.owner_id),
            label=address.label,
            street=address.street,
            apartment=address.apartment,
            city=address.city,
            state=address.state,
            zip_code=address.zip_code,
            is_default=address.is_default,
            formatted=address.formatted,
            created_at=address.created_at,
        )


# ---------------------------------------------------------------------------
# Payment methods
# ---------------------------------------------------------------------------
class AddPaymentMethodRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "card_number": "4242 4242 4242 4242",
                    "cardholder_name": "Jane Doe",
                    "expiration_month": 12,
                    "expiration_year": 2028,
                    "is_default": False,
                }
            ]
        }
    }

    card_number: str
    cardholder_name: str
    expiration_month: int = Field(ge=1, le=12)
    expiration_year: int
    is_default: bool = False


class UpdatePaymentMethodRequest(BaseModel):
    cardholder_name: str | None = None
    expiration_month: int | None = Field(default=None, ge=1, le=12)
    expiration_year: int | None = None
    is_default: bool | None = None


class PaymentMethodResponse(BaseModel):
    id: str
    owner_id: str
    last4: str
    masked_number: str
    cardholder_name: str
    expiration_month: int
    expiration_year: int
    expiration_label: str
    card_type: str
    is_default: bool

    @classmethod
    def from_method(cls, method) -> "PaymentMethodResponse":
        return cls(
            id=str(method.id),
            owner_id=str(method.owner_id),
            last4=method.last4,
            masked_number=method.masked_number,
            cardholder_name=method.cardholder_name,
            expiration_month=method.expiration_month,
            expiration_year=method.expiration_year,
            expiration_label=method.expiration_label,
            card_type=method.card_type,
            is_default=method.is_default,
        )


class StatusResponse(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"status": "ok"}]}}

    status: str = "ok"
