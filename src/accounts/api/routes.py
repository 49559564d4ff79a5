"""FastAPI endpoints for the Accounts domain: saved addresses and payment methods.

Default-flag changes go through the sibling managers, which keep at most one
default per shopper.
"""

from fastapi import APIRouter, Request

from accounts.address.address import SavedAddress
from accounts.api.schemas import (
    AddAddressRequest,
    AddPaymentMethodRequest,
    AddressResponse,
    PaymentMethodResponse,
    StatusResponse,
    UpdateAddressRequest,
    UpdatePaymentMethodRequest,
)
from accounts.defaults.manager import DefaultInvariantManager
from accounts.payment.method import PaymentMethod


def get_addresses(request: Request) -> DefaultInvariantManager:
    return request.app.state.addresses


def get_payment_methods(request: Request) -> DefaultInvariantManager:
    return request.app.state.payment_methods


# ---------------------------------------------------------------------------
# Addresses Router
# ---------------------------------------------------------------------------
address_router = APIRouter(prefix="/users/{owner_id}/addresses", tags=["addresses"])


@address_router.get("", response_model=list[AddressResponse])
async def list_addresses(owner_id: str, request: Request) -> list[AddressResponse]:
    return [AddressResponse.from_address(address) for address in await get_addresses(request).list(owner_id)]


@address_router.post("", status_code=201, response_model=AddressResponse)
async def add_address(owner_id: str, body: AddAddressRequest, request: Request) -> AddressResponse:
    address = SavedAddress(owner_id=owner_id, **body.model_dump())
    address = await get_addresses(request).add(owner_id, address)
    return AddressResponse.from_address(address)


@address_router.put("/{address_id}", response_model=AddressResponse)
async def update_address(
    owner_id: str, address_id: str, body: UpdateAddressRequest, request: Request
) -> AddressResponse:
    changes = body.model_dump(exclude_unset=True)
    address = await get_addresses(request).edit(owner_id, address_id, **changes)
    return AddressResponse.from_address(address)


@address_router.delete("/{address_id}", response_model=StatusResponse)
async def delete_address(owner_id: str, address_id: str, request: Request) -> StatusResponse:
    await get_addresses(request).delete(owner_id, address_id)
    return StatusResponse()


@address_router.put("/{address_id}/default", response_model=AddressResponse)
async def set_default_address(owner_id: str, address_id: str, request: Request) -> AddressResponse:
    address = await get_addresses(request).set_default(owner_id, address_id)
    return AddressResponse.from_address(address)


# ---------------------------------------------------------------------------
# Payment Methods Router
# ---------------------------------------------------------------------------
payment_method_router = APIRouter(prefix="/users/{owner_id}/payment-methods", tags=["payment-methods"])


@payment_method_router.get("", response_model=list[PaymentMethodResponse])
async def list_payment_methods(owner_id: str, request: Request) -> list[PaymentMethodResponse]:
    methods = await get_payment_methods(request).list(owner_id)
    return [PaymentMethodResponse.from_method(method) for method in methods]


@payment_method_router.post("", status_code=201, response_model=PaymentMethodResponse)
async def add_payment_method(
    owner_id: str, body: AddPaymentMethodRequest, request: Request
) -> PaymentMethodResponse:
    method = PaymentMethod.from_card_number(
        owner_id=owner_id,
        card_number=body.card_number,
        cardholder_name=body.cardholder_name,
        expiration_month=body.expiration_month,
        expiration_year=body.expiration_year,
        is_default=body.is_default,
    )
    method = await get_payment_methods(request).add(owner_id, method)
    return PaymentMethodResponse.from_method(method)


@payment_method_router.put("/{method_id}", response_model=PaymentMethodResponse)
async def update_payment_method(
    owner_id: str, method_id: str, body: UpdatePaymentMethodRequest, request: Request
) -> PaymentMethodResponse:
    changes = body.model_dump(exclude_unset=True)
    method = await get_payment_methods(request).edit(owner_id, method_id, **changes)
    return PaymentMethodResponse.from_method(method)


@payment_method_router.delete("/{method_id}", response_model=StatusResponse)
async def delete_payment_method(owner_id: str, method_id: str, request: Request) -> StatusResponse:
    await get_payment_methods(request).delete(owner_id, method_id)
    return StatusResponse()


@payment_method_router.put("/{method_id}/default", response_model=PaymentMethodResponse)
async def set_default_payment_method(owner_id: str, method_id: str, request: Request) -> PaymentMethodResponse:
    method = await get_payment_methods(request).set_default(owner_id, method_id)
    return PaymentMethodResponse.from_method(method)
