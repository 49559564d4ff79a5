"""Shared BDD fixtures and step definitions for the Inventory domain."""

import asyncio

import pytest
from inventory.catalog.item import CATALOG, CatalogItem
from inventory.catalog.store import RetailStore
from inventory.sync.reconciler import InventoryReconciler
from pytest_bdd import given, parsers, then, when
from shared.documents.mapping import from_document

STORE_ID = "store-001"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def sweep():
    """Container for the last sync report."""
    return {"report": None}


def _item(document_store, sku) -> CatalogItem:
    snapshots = asyncio.run(document_store.list_collection(CATALOG))
    items = [from_document(CatalogItem, snapshot) for snapshot in snapshots]
    return next(item for item in items if item.sku == sku)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a store "{name}" with external id "{external_id}"'))
def a_store(seed, name, external_id):
    asyncio.run(seed(RetailStore(id=STORE_ID, brand_name=name, external_store_id=external_id)))


@given(parsers.cfparse('a catalog item "{sku}" of brand "{brand}" that is in stock'))
def an_in_stock_item(seed, sku, brand):
    asyncio.run(seed(CatalogItem(id=f"item-{sku}", sku=sku, brand=brand, in_stock=True)))


@given(parsers.cfparse('{count:d} catalog items of brand "{brand}" that are out of stock'))
def many_items(seed, count, brand):
    items = [CatalogItem(id=f"item-{index:04d}", sku=f"SKU-{index:04d}", brand=brand) for index in range(count)]
    asyncio.run(seed(*items))


@given(parsers.cfparse('the provider reports "{sku}" as out of stock'))
def provider_reports_out_of_stock(provider, sku):
    provider.stock_store("9001", {sku: False})


@given("the provider reports all of them in stock")
def provider_reports_all_in_stock(provider, document_store):
    snapshots = asyncio.run(document_store.list_collection(CATALOG))
    provider.stock_store("9001", {snapshot.data["sku"]: True for snapshot in snapshots})


@given("the first catalog commit will fail")
def first_commit_fails(document_store):
    document_store.configure(fail_commit_attempts=[1], collection=CATALOG)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the operator syncs the store")
def operator_syncs(document_store, provider, sweep):
    reconciler = InventoryReconciler(document_store, provider)
    sweep["report"] = asyncio.run(reconciler.sync(STORE_ID))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('item "{sku}" is out of stock'))
def item_out_of_stock(document_store, sku):
    assert _item(document_store, sku).in_stock is False


@then(parsers.cfparse('item "{sku}" is in stock'))
def item_in_stock(document_store, sku):
    assert _item(document_store, sku).in_stock is True


@then(parsers.cfparse('item "{sku}" was synced during the sweep'))
def item_synced(document_store, sweep, sku):
    assert _item(document_store, sku).last_synced_at >= sweep["report"].started_at


@then(parsers.cfparse('the provider was asked about "{sku}" only'))
def provider_asked_only(provider, sku):
    assert provider.calls[-1]["skus"] == [sku]


@then(parsers.cfparse("{count:d} catalog commits were attempted"))
def catalog_commits(document_store, count):
    commits = [
        call for call in document_store.calls if all(path.startswith(f"{CATALOG}/") for path in call["paths"])
    ]
    assert len(commits) == count


@then(parsers.cfparse("the sync report shows {updated:d} updated items and {failed:d} failed chunk"))
def report_counts(sweep, updated, failed):
    report = sweep["report"]
    assert report.updated_count == updated
    assert report.failed_chunks == failed
