from typing import Optional
from google.cloud import storage

from .exceptions import StorageCloseError, StorageWriteError
from .logging import jlog

def make_storage_client(project_id: Optional[str] = None) -> storage.Client:
    return storage.Client(project=project_id) if project_id else storage.Client()

def gcs_uri(bucket_name: str, object_key: str) -> str:
    return f"gs://{bucket_name}/{object_key}"

class GcsObjectWriter:
    """
    Streams bytes into one object of a fixed bucket.

    The client is long-lived and shared by all request threads; the bucket name
    is fixed at construction. Nothing here retries: a failure surfaces to the
    caller and Pub/Sub redelivers on the resulting 5xx.
    """

    def __init__(self, client: storage.Client, bucket_name: str):
        if not bucket_name:
            raise ValueError("bucket_name is required")
        self._client = client
        self.bucket_name = bucket_name

    def write(self, object_key: str, data: bytes, content_type: str = "application/json") -> int:
        uri = gcs_uri(self.bucket_name, object_key)
        blob = self._client.bucket(self.bucket_name).blob(object_key)
        try:
            writer = blob.open("wb", content_type=content_type)
        except Exception as e:
            raise StorageWriteError(f"gcs open {uri}: {e}") from e

        try:
            written = writer.write(data)
        except Exception as e:
            self._abort(writer, uri)
            raise StorageWriteError(f"gcs write {uri}: {e}") from e
        if written is not None and written != len(data):
            self._abort(writer, uri)
            raise StorageWriteError(f"gcs short write {uri}: {written}/{len(data)} bytes")

        try:
            writer.close()
        except Exception as e:
            self._abort(writer, uri)
            raise StorageCloseError(f"gcs finalize {uri}: {e}") from e
        return len(data)

    @staticmethod
    def _abort(writer, uri: str) -> None:
        # BlobWriter finalizes whatever is buffered when it is closed or garbage
        # collected; terminate() cancels the resumable session instead.
        try:
            writer.terminate()
        except Exception as e:
            jlog(event="gcs_terminate_failed", severity="WARNING", uri=uri, error=str(e))
