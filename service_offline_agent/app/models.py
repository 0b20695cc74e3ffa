"""
Request, response and record models shared by the offline agent components.
"""

import base64
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, ConfigDict, Field


class Destination(str, Enum):
    """What the requesting page intends to do with the response."""

    DOCUMENT = "document"
    IMAGE = "image"
    STYLE = "style"
    SCRIPT = "script"
    FONT = "font"
    EMPTY = ""


class ResponseType(str, Enum):
    """Origin classification of a response."""

    BASIC = "basic"
    CORS = "cors"
    OPAQUE = "opaque"


class AssetRequest(BaseModel):
    """An outgoing request observed by the interceptor."""

    method: str = "GET"
    url: str
    destination: Destination = Destination.EMPTY
    headers: Dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        """Cache identity: method plus absolute URL."""
        return request_key(self.method, self.url)

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme.lower()


class StoredResponse(BaseModel):
    """A response as served to callers and persisted in tiers."""

    url: str = ""
    status: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    type: ResponseType = ResponseType.BASIC

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> Optional[str]:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return None

    @property
    def size(self) -> int:
        return len(self.body)

    def clone(self) -> "StoredResponse":
        return self.model_copy(deep=True)

    def to_record(self) -> Dict[str, Any]:
        """Serialize for backends that only store text."""
        return {
            "url": self.url,
            "status": self.status,
            "headers": dict(self.headers),
            "body": base64.b64encode(self.body).decode("ascii"),
            "type": self.type.value,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "StoredResponse":
        return cls(
            url=record.get("url", ""),
            status=int(record["status"]),
            headers=record.get("headers") or {},
            body=base64.b64decode(record.get("body") or ""),
            type=ResponseType(record.get("type", ResponseType.BASIC.value)),
        )


class QueuedSubmission(BaseModel):
    """One appointment form submission waiting for delivery."""

    model_config = ConfigDict(frozen=True)

    id: int
    timestamp: str
    payload: Dict[str, Any]


class PushMessage(BaseModel):
    """Payload of a push message sent to the agent."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    body: str = ""
    primary_key: Optional[Any] = Field(default=None, alias="primaryKey")


class NotificationAction(BaseModel):
    action: str
    title: str
    icon: Optional[str] = None


class Notification(BaseModel):
    """A user-visible notification produced from a push message."""

    title: str
    body: str = ""
    icon: Optional[str] = None
    badge: Optional[str] = None
    vibrate: List[int] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    actions: List[NotificationAction] = Field(default_factory=list)


def request_key(method: str, url: str) -> str:
    return f"{method.upper()} {url}"


def resolve_url(origin: str, url: str) -> str:
    """Resolve a root-relative asset URL against the site origin."""
    return urljoin(origin.rstrip("/") + "/", url)


def same_origin(origin: str, url: str) -> bool:
    left, right = urlparse(origin), urlparse(url)
    return (left.scheme, left.hostname, left.port) == (right.scheme, right.hostname, right.port)
