import re
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import AliasChoices, Base64Bytes, BaseModel, Field, field_validator

_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})$"
)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

def parse_rfc3339_nanos(value: str) -> int:
    """
    RFC 3339 timestamp -> integer nanoseconds since the Unix epoch.
    datetime stops at microseconds, so the fraction is handled separately.
    """
    m = _RFC3339.match(value.strip())
    if not m:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")
    tz = m.group("tz")
    tz = "+00:00" if tz in ("Z", "z") else tz
    dt = datetime.fromisoformat(m.group("base").replace("t", "T").replace(" ", "T") + tz)
    delta = dt - _EPOCH
    seconds = delta.days * 86400 + delta.seconds
    frac = (m.group("frac") or "")[:9].ljust(9, "0")
    return seconds * 1_000_000_000 + int(frac)

# -----------------------
# Pub/Sub push notification
# -----------------------

class PubSubMessage(BaseModel):
    # Push deliveries carry both spellings; older tooling sends plain "id"
    id: str = Field(default="", validation_alias=AliasChoices("id", "messageId", "message_id"))
    data: Optional[Base64Bytes] = None
    publishTime: Optional[str] = None  # RFC3339
    attributes: Optional[Dict[str, str]] = None

    @property
    def raw_data(self) -> bytes:
        return self.data or b""

class PubSubNotification(BaseModel):
    message: PubSubMessage
    subscription: str = ""

    @field_validator("subscription", mode="before")
    @classmethod
    def _null_subscription(cls, v):
        return "" if v is None else v

# -----------------------
# Cloud Logging LogEntry (only the fields we key on)
# -----------------------

class LogPayload(BaseModel):
    # Custom fields inserted via structured logging by the jobs we archive
    tenant_id: str = ""
    job_id: str = ""

    @field_validator("tenant_id", "job_id", mode="before")
    @classmethod
    def _null_as_empty(cls, v):
        return "" if v is None else v

class LogEntry(BaseModel):
    json_payload: LogPayload = Field(default_factory=LogPayload, validation_alias="jsonPayload")
    receive_timestamp_ns: int = Field(default=0, validation_alias="receiveTimestamp")

    @field_validator("json_payload", mode="before")
    @classmethod
    def _null_payload(cls, v):
        return {} if v is None else v

    @field_validator("receive_timestamp_ns", mode="before")
    @classmethod
    def _parse_timestamp(cls, v):
        if v is None:
            return 0
        if not isinstance(v, str):
            raise ValueError("receiveTimestamp must be an RFC 3339 string")
        return parse_rfc3339_nanos(v)

    @property
    def tenant_id(self) -> str:
        return self.json_payload.tenant_id

    @property
    def job_id(self) -> str:
        return self.json_payload.job_id

# -----------------------
# Pipeline output
# -----------------------

class IngestResult(BaseModel):
    bucket: str
    object_key: str
    size: int
    delivery_id: str = ""
    subscription: str = ""
