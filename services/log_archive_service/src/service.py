import json
import time
from enum import Enum
from typing import Any, Mapping

from cloudevents import exceptions as cloud_exceptions
from cloudevents.http import CloudEvent, from_http
from opentelemetry import trace
from pydantic import ValidationError

from .exceptions import (
    IngestError,
    MalformedEnvelope,
    MalformedNotification,
    MalformedRecord,
    PermanentError,
)
from .logging import bytes_preview, jlog
from .schemas import IngestResult, LogEntry, PubSubNotification
from .storage import GcsObjectWriter

tracer = trace.get_tracer(__name__)

class PipelineStage(str, Enum):
    RECEIVED = "received_request"
    ENVELOPE_PARSED = "envelope_parsed"
    NOTIFICATION_UNWRAPPED = "notification_unwrapped"
    RECORD_DECODED = "record_decoded"
    KEY_DERIVED = "key_derived"
    WRITTEN = "written"
    ACKED = "acked"
    REJECTED = "rejected"
    FAILED = "failed"

def _keep_raw(data: Any) -> Any:
    # Leave the CloudEvent data exactly as it came off the wire
    return data

def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
    return f"{loc}: {err.get('msg')}"

def parse_envelope(headers: Mapping[str, str], body: bytes) -> CloudEvent:
    """Binary (ce-* headers) or structured (application/cloudevents+json) CloudEvent."""
    try:
        return from_http(dict(headers), body, data_unmarshaller=_keep_raw)
    except (cloud_exceptions.GenericException, ValueError, TypeError) as e:
        raise MalformedEnvelope(f"expected CloudEvent: {e}") from e

def envelope_payload(event: CloudEvent) -> bytes:
    data = event.data
    if data is None:
        return b""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")
    return json.dumps(data, separators=(",", ":")).encode("utf-8")

def unwrap_notification(blob: bytes) -> PubSubNotification:
    try:
        return PubSubNotification.model_validate_json(blob)
    except ValidationError as e:
        raise MalformedNotification(f"expected PubSubMessage: {_first_error(e)}") from e

def decode_record(blob: bytes) -> LogEntry:
    """
    Lenient on purpose: absent tenant/job ids decode to "" and an absent
    receiveTimestamp to the epoch. Only undecodable data is rejected.
    """
    try:
        return LogEntry.model_validate_json(blob)
    except ValidationError as e:
        raise MalformedRecord(f"expected LogEntry: {_first_error(e)}") from e

def derive_object_key(tenant_id: str, job_id: str, timestamp_ns: int) -> str:
    return f"{tenant_id}/{job_id}/{timestamp_ns}.json"

def check_key_segments(tenant_id: str, job_id: str) -> None:
    for field, value in (("tenant_id", tenant_id), ("job_id", job_id)):
        if not value:
            raise MalformedRecord(f"empty {field}")
        if "/" in value or "\\" in value or value in (".", ".."):
            raise MalformedRecord(f"{field} is not a safe path segment: {value!r}")

class LogArchivePipeline:
    """
    One pass per request: CloudEvent -> Pub/Sub notification -> LogEntry -> object key -> GCS.
    Holds no per-request state; safe to share across worker threads.
    """

    def __init__(self, writer: GcsObjectWriter, strict_key_segments: bool = False):
        self.writer = writer
        self.strict_key_segments = strict_key_segments

    def run(self, headers: Mapping[str, str], body: bytes) -> IngestResult:
        stage = PipelineStage.RECEIVED
        start = time.time()
        delivery_id = ""
        object_key = None
        try:
            with tracer.start_as_current_span("log_archive.decode"):
                event = parse_envelope(headers, body)
                stage = PipelineStage.ENVELOPE_PARSED

                notification = unwrap_notification(envelope_payload(event))
                delivery_id = notification.message.id
                data = notification.message.raw_data
                stage = PipelineStage.NOTIFICATION_UNWRAPPED

                entry = decode_record(data)
                stage = PipelineStage.RECORD_DECODED

            if self.strict_key_segments:
                check_key_segments(entry.tenant_id, entry.job_id)
            object_key = derive_object_key(entry.tenant_id, entry.job_id, entry.receive_timestamp_ns)
            stage = PipelineStage.KEY_DERIVED

            with tracer.start_as_current_span("log_archive.write") as span:
                span.set_attribute("gcs.bucket", self.writer.bucket_name)
                span.set_attribute("gcs.object", object_key)
                size = self.writer.write(object_key, data)
            stage = PipelineStage.WRITTEN
        except IngestError as e:
            terminal = PipelineStage.REJECTED if isinstance(e, PermanentError) else PipelineStage.FAILED
            jlog(
                event="ingest_" + terminal.value,
                severity="WARNING" if terminal is PipelineStage.REJECTED else "ERROR",
                stage=stage.value,
                error_type=type(e).__name__,
                error=str(e),
                delivery_id=delivery_id,
                object_key=object_key,
                ce_id=headers.get("ce-id"),
            )
            raise

        jlog(
            event="ingest_" + PipelineStage.ACKED.value,
            delivery_id=delivery_id,
            subscription=notification.subscription,
            ce_id=event["id"],
            ce_type=event["type"],
            bucket=self.writer.bucket_name,
            object_key=object_key,
            data=bytes_preview(data),
            duration_ms=int((time.time() - start) * 1000),
        )
        return IngestResult(
            bucket=self.writer.bucket_name,
            object_key=object_key,
            size=size,
            delivery_id=delivery_id,
            subscription=notification.subscription,
        )
