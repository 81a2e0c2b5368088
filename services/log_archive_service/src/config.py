from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from .logging import jlog

# -----------------------
# Settings
# -----------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    target_bucket: str
    port: int = 8080
    service_name: str = "log-archive-service"
    project_id: Optional[str] = Field(default=None, validation_alias="GOOGLE_CLOUD_PROJECT")
    environment: str = "local"

    # Observability
    log_level: str = "INFO"
    use_cloud_trace: bool = False

    # Reject tenant/job ids that would break the object path (off keeps the lenient behavior)
    strict_key_segments: bool = False

def load_settings() -> Settings:
    """Reads settings from the environment; exits the process if TARGET_BUCKET is missing."""
    try:
        return Settings() # type: ignore
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        jlog(event="config_invalid", severity="CRITICAL", invalid=missing, error=str(e))
        raise SystemExit(1) from e
