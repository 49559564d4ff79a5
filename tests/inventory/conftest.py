import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def inventory_bed():
    from inventory.domain import inventory

    bed = DomainFixture(inventory)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(inventory_bed):
    with inventory_bed.domain_context():
        yield


@pytest.fixture
def seed(document_store):
    """Write stores and catalog items straight into the document store."""
    from shared.documents.mapping import to_document

    async def _seed(*entities):
        batch = document_store.batch()
        for entity in entities:
            batch.set(entity.path, to_document(entity))
        await document_store.commit(batch)
        document_store.calls.clear()
        document_store.commit_attempts = 0
        return entities

    return _seed
