"""RetailStore aggregate: a physical store linked to the provider's store id."""

from protean.fields import String

from inventory.catalog.item import normalize_brand_tag
from inventory.domain import inventory
from shared.documents.port import document_path

STORES = "stores"


@inventory.aggregate
class RetailStore:
    """A store of one retail chain, e.g. "Zara SoHo".

    The first word of the store name is the chain's brand tag. The external
    store id is the provider's identifier for the same store; without it the
    store cannot be reconciled.
    """

    brand_name: String(max_length=255)
    external_store_id: String(max_length=64)
    address: String(max_length=255)

    @property
    def brand_tag(self) -> str | None:
        words = (self.brand_name or "").split()
        return normalize_brand_tag(words[0]) if words else None

    @property
    def path(self) -> str:
        return store_path(self.id)


def store_path(store_id) -> str:
    return document_path(STORES, str(store_id))
