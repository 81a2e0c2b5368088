from opentelemetry import trace
import hashlib, os, logging, time, json

_service = os.getenv("SERVICE_NAME", "log-archive-service")
_env = os.getenv("ENVIRONMENT", "local")

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(message)s")
_logger = logging.getLogger("log_archive_service")

def configure_logging(service_name: str, environment: str, level: str = "INFO") -> None:
    global _service, _env
    _service = service_name
    _env = environment
    _logger.setLevel(level.upper())

def bytes_preview(data: bytes, n: int = 12) -> str:
    # Payloads are tenant log lines; never log them raw
    return f"sha256={hashlib.sha256(data).hexdigest()[:n]},len={len(data)}"

def jlog(event: str = "", severity: str = "INFO", **fields):
    span = trace.get_current_span()
    ctx = span.get_span_context() if span else None
    trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.trace_id else None
    span_id = f"{ctx.span_id:016x}" if ctx and ctx.span_id else None

    record = {
        "event": event,
        "severity": severity,
        "service": _service,
        "env": _env,
        "ts": time.time(),
        "trace_id": trace_id,
        "span_id": span_id,
    }
    record.update(fields)
    _logger.log(getattr(logging, severity, logging.INFO), json.dumps(record, ensure_ascii=False, default=str))
