from dataclasses import dataclass, field, replace
from datetime import datetime


@dataclass
class Session:
    """
    Server-held proof that a principal authenticated with a role.
    Only the opaque session_id ever leaves the process.
    """
    session_id: str
    role: str  # "admin" | "hoster" | "customer"
    principal_id: str
    issued_at: datetime
    expires_at: datetime
    last_activity_at: datetime
    expiry_warning: bool = field(default=False)

    def is_valid_at(self, now: datetime) -> bool:
        return now < self.expires_at

    def copy(self) -> "Session":
        """Detached snapshot handed to callers so they cannot mutate the record."""
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "role": self.role,
            "principal_id": self.principal_id,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "last_activity_at": self.last_activity_at.isoformat(),
            "expiry_warning": self.expiry_warning,
        }
