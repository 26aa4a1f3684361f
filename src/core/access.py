from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class UserRecord:
    role: str
    vip_expiry: Optional[datetime] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UserRecord":
        # raw nel formato del profilo remoto: {"role": ..., "vipExpiry": ISO 8601}
        expiry = raw.get("vipExpiry") or raw.get("vip_expiry")
        parsed: Optional[datetime] = None
        if isinstance(expiry, datetime):
            parsed = expiry
        elif isinstance(expiry, str) and expiry:
            try:
                parsed = datetime.fromisoformat(expiry.replace("Z", "+00:00"))
            except ValueError:
                parsed = None
        return cls(role=str(raw.get("role") or "user"), vip_expiry=parsed)


@dataclass
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    message: Optional[str] = None


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def validate_access(user: Optional[UserRecord], now: Optional[datetime] = None) -> AccessDecision:
    """
    Gate per le funzioni riservate (analisi, upload archivio).
    - nessun utente -> guest
    - admin -> sempre consentito
    - vip -> consentito solo con scadenza futura
    - altri ruoli -> not_vip
    """
    if user is None:
        return AccessDecision(False, "guest", "Login required")
    if user.role == "admin":
        return AccessDecision(True)
    if user.role == "vip":
        current = _aware(now or datetime.now(timezone.utc))
        if user.vip_expiry is not None and _aware(user.vip_expiry) > current:
            return AccessDecision(True)
        return AccessDecision(False, "expired", "VIP membership expired")
    return AccessDecision(False, "not_vip", "Feature reserved to VIP members")


__all__ = ["UserRecord", "AccessDecision", "validate_access"]
