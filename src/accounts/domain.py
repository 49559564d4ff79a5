"""Accounts bounded context: a shopper's saved addresses and payment methods."""

import structlog
from protean.domain import Domain

from shared.logging import configure_logging

configure_logging()

accounts = Domain(name="accounts")

logger = structlog.get_logger(__name__)
