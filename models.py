"""Data models and dataclasses."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from constants import TURN_OFF_PATH, TURN_ON_PATH
from errors import InvalidEndpoint
from validation import validate_url


class Status(str, Enum):
    """Reachability of the controlled machine. UNKNOWN means never configured."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "Status":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ActionKind(str, Enum):
    """Actions the display surface can request, by their mailbox wire name."""
    POWER_ON = "turn-on"
    POWER_OFF = "turn-off"
    REFRESH_STATUS = "check-status"

    @property
    def path(self) -> Optional[str]:
        """HTTP path for the action, None for status refreshes."""
        return {
            ActionKind.POWER_ON: TURN_ON_PATH,
            ActionKind.POWER_OFF: TURN_OFF_PATH,
        }.get(self)


@dataclass(frozen=True)
class ControlEndpoint:
    """Where and how to reach the controlled machine."""
    base_url: Optional[str]
    physical_address: str = ""
    last_known_ip: str = ""
    auth_token: Optional[str] = None

    def __post_init__(self):
        if self.base_url is not None and not validate_url(self.base_url):
            raise InvalidEndpoint(self.base_url)

    @property
    def has_http(self) -> bool:
        return self.base_url is not None

    def url_for(self, path: str) -> str:
        if self.base_url is None:
            raise ValueError("Endpoint has no base URL")
        return self.base_url.rstrip("/") + path

    def headers(self) -> Dict[str, str]:
        if self.auth_token:
            return {"Authorization": f"Bearer {self.auth_token}"}
        return {}


@dataclass(frozen=True)
class EndpointSummary:
    """Endpoint details safe to share with the display surface."""
    base_url: str
    is_valid: bool


@dataclass(frozen=True)
class StatusSnapshot:
    """One published observation. Never mutated; each cycle builds a new one."""
    status: Status
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    endpoint: Optional[EndpointSummary] = None
    last_error: Optional[str] = None

    @classmethod
    def default(cls) -> "StatusSnapshot":
        return cls(status=Status.UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "observed_at": self.observed_at.isoformat(),
            "endpoint": (
                {"base_url": self.endpoint.base_url, "is_valid": self.endpoint.is_valid}
                if self.endpoint is not None
                else None
            ),
            "last_error": self.last_error,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusSnapshot":
        endpoint_data = data.get("endpoint")
        endpoint = None
        if isinstance(endpoint_data, dict):
            endpoint = EndpointSummary(
                base_url=str(endpoint_data.get("base_url", "")),
                is_valid=bool(endpoint_data.get("is_valid", False)),
            )
        observed_at = datetime.fromisoformat(data["observed_at"])
        if observed_at.tzinfo is None:
            observed_at = observed_at.replace(tzinfo=timezone.utc)
        return cls(
            status=Status.parse(data.get("status")),
            observed_at=observed_at,
            endpoint=endpoint,
            last_error=data.get("last_error"),
        )

    @classmethod
    def from_json(cls, blob: str) -> "StatusSnapshot":
        data = json.loads(blob)
        if not isinstance(data, dict):
            raise ValueError("Snapshot blob is not a JSON object")
        return cls.from_dict(data)


@dataclass(frozen=True)
class ActionRequest:
    """Action requested through the mailbox; issued_at is POSIX seconds."""
    kind: ActionKind
    issued_at: float
