"""
TenantContext -- explicit identity of the acting company and user.

Every engine operation receives a TenantContext argument instead of reading
caller identity from ambient request state.  All reads and writes are scoped
to ``company_id``; ``user_id`` is recorded as the actor on every mutation.
"""

from dataclasses import dataclass
from uuid import UUID

from quote_kernel.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class TenantContext:
    """The company and user on whose behalf an operation runs."""

    company_id: UUID
    user_id: UUID

    def __post_init__(self):
        if not isinstance(self.company_id, UUID):
            raise ValidationError("company_id", "must be a UUID", self.company_id)
        if not isinstance(self.user_id, UUID):
            raise ValidationError("user_id", "must be a UUID", self.user_id)

    def log_fields(self) -> dict[str, str]:
        return {"company_id": str(self.company_id), "actor_id": str(self.user_id)}
