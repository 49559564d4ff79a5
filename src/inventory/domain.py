"""Inventory bounded context: catalog stock flags and store reconciliation.

Holds the shared catalog (items partitioned by brand tag), the retail stores
that carry them, and the reconciliation sweep that keeps each item's cached
in-stock flag aligned with the external provider.
"""

import structlog
from protean.domain import Domain

from shared.logging import configure_logging

configure_logging()

inventory = Domain(name="inventory")

logger = structlog.get_logger(__name__)
