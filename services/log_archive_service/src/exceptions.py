class IngestError(Exception):
    pass

class PermanentError(IngestError):
    """Won’t improve with redelivery: the request itself is malformed. Maps to 400."""
    pass

class RetryableError(IngestError):
    """Backend trouble (GCS/IO). Maps to 500 so Pub/Sub redelivers."""
    pass

class MalformedEnvelope(PermanentError):
    pass

class MalformedNotification(PermanentError):
    pass

class MalformedRecord(PermanentError):
    pass

class StorageWriteError(RetryableError):
    pass

class StorageCloseError(RetryableError):
    """Bytes were written but the upload could not be finalized."""
    pass
