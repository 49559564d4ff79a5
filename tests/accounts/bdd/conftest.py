"""Shared BDD fixtures and step definitions for the Accounts domain."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from accounts.address.address import ADDRESSES, SavedAddress
from accounts.defaults.manager import DefaultInvariantManager
from accounts.payment.method import PAYMENT_METHODS, PaymentMethod
from pytest_bdd import given, parsers, then, when
from shared.documents.memory_adapter import InMemoryDocumentStore
from shared.documents.port import WriteConflict

SHOPPER = "shopper-001"
START = datetime(2026, 1, 1, tzinfo=UTC)


class InterleavingStore(InMemoryDocumentStore):
    """Yields on every read so that concurrent requests see the same state."""

    async def get(self, path):
        await asyncio.sleep(0)
        return await super().get(path)

    async def list_collection(self, collection):
        await asyncio.sleep(0)
        return await super().list_collection(collection)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def store():
    return InterleavingStore()


@pytest.fixture()
def addresses(store):
    return DefaultInvariantManager(store, ADDRESSES)


@pytest.fixture()
def cards(store):
    return DefaultInvariantManager(store, PAYMENT_METHODS)


@pytest.fixture()
def outcome():
    """Container for results of concurrent requests."""
    return {"results": []}


def _slug(text: str) -> str:
    return text.lower().replace(" ", "-")


def _age(manager) -> timedelta:
    return timedelta(minutes=len(asyncio.run(manager.list(SHOPPER))))


def _default_ids(manager) -> list[str]:
    return [str(sibling.id) for sibling in asyncio.run(manager.list(SHOPPER)) if sibling.is_default]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
def _add_address(addresses, street, is_default):
    address = SavedAddress(
        id=_slug(street),
        owner_id=SHOPPER,
        street=street,
        city="New York",
        zip_code="10001",
        created_at=START + _age(addresses),
    )
    asyncio.run(addresses.add(SHOPPER, address, is_default=is_default))


@given(parsers.cfparse('the shopper has a default address "{street}"'))
def default_address(addresses, street):
    _add_address(addresses, street, True)


@given(parsers.cfparse('the shopper has an address "{street}"'))
def an_address(addresses, street):
    _add_address(addresses, street, False)


def _add_card(cards, last4, is_default):
    card = PaymentMethod(
        id=f"card-{last4}",
        owner_id=SHOPPER,
        last4=last4,
        cardholder_name="Jane Doe",
        expiration_month=12,
        expiration_year=2030,
        created_at=START + _age(cards),
    )
    asyncio.run(cards.add(SHOPPER, card, is_default=is_default))


@given(parsers.cfparse('the shopper has a default card ending "{last4}"'))
def default_card(cards, last4):
    _add_card(cards, last4, True)


@given(parsers.cfparse('the shopper has a card ending "{last4}"'))
def a_card(cards, last4):
    _add_card(cards, last4, False)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the shopper makes "{street}" the default address'))
def make_default(addresses, street):
    asyncio.run(addresses.set_default(SHOPPER, _slug(street)))


@when(parsers.cfparse('the shopper deletes the address "{street}"'))
def delete_address(addresses, street):
    asyncio.run(addresses.delete(SHOPPER, _slug(street)))


@when(parsers.cfparse('the shopper deletes the card ending "{last4}"'))
def delete_card(cards, last4):
    asyncio.run(cards.delete(SHOPPER, f"card-{last4}"))


@when(parsers.cfparse('two devices make "{first}" and "{second}" the default at once'))
def concurrent_defaults(addresses, outcome, first, second):
    async def race():
        return await asyncio.gather(
            addresses.set_default(SHOPPER, _slug(first)),
            addresses.set_default(SHOPPER, _slug(second)),
            return_exceptions=True,
        )

    outcome["results"] = asyncio.run(race())


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{street}" is the only default address'))
def only_default(addresses, street):
    assert _default_ids(addresses) == [_slug(street)]


@then(parsers.cfparse('"{street}" is not a default address'))
def not_default(addresses, street):
    assert _slug(street) not in _default_ids(addresses)


@then("the shopper has no default address")
def no_default(addresses):
    assert _default_ids(addresses) == []


@then(parsers.cfparse('the card ending "{last4}" is the default'))
def card_is_default(cards, last4):
    assert _default_ids(cards) == [f"card-{last4}"]


@then("one of them is rejected with a conflict")
def one_conflict(outcome):
    assert sum(isinstance(result, WriteConflict) for result in outcome["results"]) == 1


@then("exactly one address is the default")
def exactly_one_default(addresses):
    assert len(_default_ids(addresses)) == 1
