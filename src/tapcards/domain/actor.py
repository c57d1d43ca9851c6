from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as decoded from the bearer token.

    `role` is whatever the token claims; authorization always re-reads the
    membership from the store.
    """

    user_id: UUID
    tenant_id: UUID
    email: str
    role: str | None = None
