from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _format_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Credential:
    # bearer token for the Drive API
    access_token: str
    expires_at: Optional[datetime] = None  # aware UTC; None = unknown

    # refresh support
    refresh_token: Optional[str] = None
    scopes: Tuple[str, ...] = ()
    account: Optional[str] = None

    def is_expired(
        self,
        now: Optional[datetime] = None,
        leeway: timedelta = timedelta(seconds=60),
    ) -> bool:
        """True once the token is within `leeway` of its expiry."""
        if not self.access_token:
            return True
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now + leeway >= self.expires_at

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "expires_at": _format_iso(self.expires_at),
            "refresh_token": self.refresh_token,
            "scopes": list(self.scopes),
            "account": self.account,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        return cls(
            access_token=data["access_token"],
            expires_at=_parse_iso(data.get("expires_at")),
            refresh_token=data.get("refresh_token"),
            scopes=tuple(data.get("scopes") or ()),
            account=data.get("account"),
        )

    def __repr__(self) -> str:
        # keep tokens out of tracebacks and logs
        return (
            f"Credential(account={self.account!r}, expires_at={_format_iso(self.expires_at)!r}, "
            f"can_refresh={self.can_refresh})"
        )
