"""Domain models for request principals."""

from dataclasses import dataclass
from uuid import UUID

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Requester:
    """Authenticated caller as decoded by the transport layer."""

    id: UUID
    role: str = "photographer"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass(frozen=True)
class RequestOrigin:
    """Network origin of a request, recorded on access attempts."""

    ip_address: str
    user_agent: str = ""
