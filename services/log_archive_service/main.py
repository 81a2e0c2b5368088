from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from google.cloud import storage

from .src.routers import events
from .src.config import Settings, load_settings
from .src.logging import configure_logging, jlog
from .src.service import LogArchivePipeline
from .src.storage import GcsObjectWriter, make_storage_client
from .otel import init_tracing

def create_app(
    settings: Optional[Settings] = None,
    storage_client: Optional[storage.Client] = None,
) -> FastAPI:
    """
    Builds the service. Settings and the GCS client are created once here and
    handed to the pipeline; request handlers only read them.
    """
    settings = settings or load_settings()
    configure_logging(settings.service_name, settings.environment, settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # One GCS client for the process; it is thread-safe across requests
        client = storage_client or make_storage_client(settings.project_id)
        writer = GcsObjectWriter(client, settings.target_bucket)
        app.state.pipeline = LogArchivePipeline(writer, strict_key_segments=settings.strict_key_segments)
        jlog(event="startup", bucket=settings.target_bucket, port=settings.port, strict_key_segments=settings.strict_key_segments)
        try:
            yield
        finally:
            if storage_client is None:
                client.close()

    app = FastAPI(title="Log Archive Service", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health")
    def health():
        return {"status": "ok", "service": settings.service_name, "bucket": settings.target_bucket}

    app.include_router(events.router)

    init_tracing(app, service_name=settings.service_name, service_version="v1", use_cloud_trace=settings.use_cloud_trace)
    return app

def run() -> None:
    import uvicorn
    settings = load_settings()
    app = create_app(settings)
    jlog(event="listening", port=settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)

if __name__ == "__main__":
    run()
