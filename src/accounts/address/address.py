"""SavedAddress aggregate: a shipping address kept on a shopper's account."""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier, String

from accounts.defaults.manager import SiblingKind
from accounts.domain import accounts


@accounts.aggregate
class SavedAddress:
    """A delivery address owned by one shopper.

    At most one of a shopper's addresses is the default; the flag is only
    changed through the default manager, never set on a stored address
    directly.
    """

    owner_id: Identifier(required=True)
    label: String(max_length=50, default="Home")
    street: String(required=True, max_length=255)
    apartment: String(max_length=100)
    city: String(required=True, max_length=100)
    state: String(max_length=100)
    zip_code: String(required=True, max_length=20)
    is_default: Boolean(default=False)
    created_at: DateTime(default=lambda: datetime.now(UTC))

    @property
    def formatted(self) -> str:
        parts = [self.street]
        if self.apartment:
            parts.append(self.apartment)
        parts.append(f"{self.city}, {self.state or ''} {self.zip_code}".replace("  ", " "))
        return ", ".join(parts)


ADDRESSES = SiblingKind(name="addresses", model=SavedAddress, promote_on_delete=False)
