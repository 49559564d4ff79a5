"""Document store factory.

open_document_store() picks the adapter from a URL:
- ``memory://`` gives an InMemoryDocumentStore (development and testing)
- any SQLAlchemy URL gives a SqlDocumentStore
"""

from shared.documents.memory_adapter import InMemoryDocumentStore
from shared.documents.port import DocumentStore
from shared.documents.sql_adapter import SqlDocumentStore

MEMORY_URL = "memory://"


def open_document_store(url: str = MEMORY_URL, max_batch_size: int = 500) -> DocumentStore:
    """Build the document store described by ``url``."""
    if url == MEMORY_URL:
        return InMemoryDocumentStore(max_batch_size=max_batch_size)
    return SqlDocumentStore(url, max_batch_size=max_batch_size)
