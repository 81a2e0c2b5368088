from anyio import to_thread
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from ..exceptions import PermanentError, RetryableError
from ..logging import jlog
from ..service import LogArchivePipeline

router = APIRouter()

ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

@router.api_route("/", methods=ANY_METHOD, response_class=PlainTextResponse)
@router.api_route("/{path:path}", methods=ANY_METHOD, response_class=PlainTextResponse)
async def receive_event(request: Request, path: str = "") -> PlainTextResponse:
    """
    Pub/Sub push (via Eventarc) handler. Archives the wrapped LogEntry to GCS.
    PermanentError -> 400 (bad input), RetryableError/unknown -> 500 (Pub/Sub redelivers).
    """
    pipeline: LogArchivePipeline = request.app.state.pipeline
    body = await request.body()
    delivery_attempt = request.headers.get("X-Goog-Delivery-Attempt")

    try:
        # GCS upload blocks; keep it off the event loop
        await to_thread.run_sync(pipeline.run, request.headers, body)
    except PermanentError as e:
        raise HTTPException(status_code=400, detail=f"Bad Request: {e}") from e
    except RetryableError as e:
        raise HTTPException(status_code=500, detail="Internal Server Error") from e
    except Exception as e:
        jlog(event="ingest_failed_unexpected", severity="ERROR", error=str(e), delivery_attempt=delivery_attempt)
        raise HTTPException(status_code=500, detail="Internal Server Error") from e

    return PlainTextResponse("ok")
