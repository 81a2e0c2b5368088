import base64
import io
import json

BUCKET = "test-log-archive"

# -----------------------
# In-memory stand-ins for google.cloud.storage
# -----------------------

class FakeWriter(io.BufferedIOBase):
    """
    Behaves like storage.fileio.BlobWriter: close() (explicit or from garbage
    collection) commits the buffer, terminate() discards it.
    """

    def __init__(self, client, bucket_name, key, content_type):
        super().__init__()
        self._client = client
        self._bucket_name = bucket_name
        self._key = key
        self.content_type = content_type
        self._buf = bytearray()

    def writable(self):
        return True

    def write(self, data):
        if self._client.fail_write:
            # part of the payload lands in the buffer before the connection drops
            self._buf.extend(data[: len(data) // 2])
            raise OSError("connection reset by peer")
        self._buf.extend(data)
        return len(data) if self._client.short_write is None else self._client.short_write

    def close(self):
        if self.closed:
            return
        self._client.calls.append(("close", self._key))
        if self._client.fail_close:
            raise RuntimeError("upload finalize failed: 503")
        self._client.objects[(self._bucket_name, self._key)] = bytes(self._buf)
        self._client.content_types[(self._bucket_name, self._key)] = self.content_type
        super().close()

    def terminate(self):
        self._client.calls.append(("terminate", self._key))
        super().close()

class _FakeBlob:
    def __init__(self, client, bucket_name, key):
        self._client = client
        self._bucket_name = bucket_name
        self.name = key

    def open(self, mode="r", **kwargs):
        assert mode == "wb"
        self._client.opened.append(self.name)
        if self._client.fail_open:
            raise PermissionError("403 storage.objects.create denied")
        return FakeWriter(self._client, self._bucket_name, self.name, kwargs.get("content_type"))

class _FakeBucket:
    def __init__(self, client, name):
        self._client = client
        self.name = name

    def blob(self, key):
        return _FakeBlob(self._client, self.name, key)

class FakeStorageClient:
    def __init__(self):
        self.objects = {}
        self.content_types = {}
        self.opened = []
        self.calls = []
        self.fail_open = False
        self.fail_write = False
        self.fail_close = False
        self.short_write = None

    def bucket(self, name):
        return _FakeBucket(self, name)

# -----------------------
# Request builders
# -----------------------

def make_log_entry(tenant_id="t1", job_id="j1", ts="2025-03-04T05:06:07.123456789Z", **extra) -> bytes:
    entry = {
        "insertId": "abc123",
        "logName": "projects/demo/logs/run.googleapis.com%2Fstdout",
        "jsonPayload": {"tenant_id": tenant_id, "job_id": job_id, "message": "step finished"},
        "receiveTimestamp": ts,
        "severity": "INFO",
    }
    entry.update(extra)
    return json.dumps(entry).encode("utf-8")

def make_notification(data: bytes = None, message_id="m-1", subscription="projects/demo/subscriptions/log-sink") -> dict:
    message = {"id": message_id}
    if data is not None:
        message["data"] = base64.b64encode(data).decode("ascii")
    return {"message": message, "subscription": subscription}

def binary_headers(ce_id="evt-1") -> dict:
    return {
        "ce-specversion": "1.0",
        "ce-id": ce_id,
        "ce-source": "//pubsub.googleapis.com/projects/demo/topics/logs",
        "ce-type": "google.cloud.pubsub.topic.v1.messagePublished",
        "content-type": "application/json",
    }

