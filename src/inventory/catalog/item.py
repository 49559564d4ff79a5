"""CatalogItem aggregate: one sellable product in the shared catalog."""

from datetime import datetime

from protean.fields import Boolean, DateTime, Float, String

from inventory.domain import inventory
from shared.documents.port import document_path

CATALOG = "catalog"


def normalize_brand_tag(value: str | None) -> str | None:
    """Lower-cased, trimmed brand tag; None when blank."""
    if value is None:
        return None
    tag = value.strip().lower()
    return tag or None


@inventory.aggregate
class CatalogItem:
    """A product of the shared catalog with its cached stock flag.

    ``brand`` is the brand tag that scopes the item to one retail chain. Items
    without a tag are shared legacy items that every chain's sweep covers.
    ``in_stock`` and ``last_synced_at`` always change together.
    """

    sku: String(required=True, max_length=64)
    brand: String(max_length=100)
    title: String(max_length=255)
    price: Float(min_value=0.0)
    in_stock: Boolean(default=False)
    last_synced_at: DateTime()
    external_product_id: String(max_length=64)

    @property
    def brand_tag(self) -> str | None:
        return normalize_brand_tag(self.brand)

    def belongs_to(self, brand_tag: str | None) -> bool:
        """True when a store with ``brand_tag`` should reconcile this item."""
        if self.brand_tag is None:
            return True
        return self.brand_tag == normalize_brand_tag(brand_tag)

    @property
    def path(self) -> str:
        return catalog_item_path(self.id)


def stock_fields(in_stock: bool, synced_at: datetime) -> dict:
    """The partial write recording one reconciled stock flag."""
    return {"in_stock": in_stock, "last_synced_at": synced_at}


def catalog_item_path(item_id) -> str:
    return document_path(CATALOG, str(item_id))
