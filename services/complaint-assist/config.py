"""Environment-based configuration for the complaint assist service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Complaint assist settings, loaded from environment variables."""

    # Server
    PORT: int = 8092
    LOG_LEVEL: str = "INFO"

    # Extraction service connection (empty = AI extraction disabled, local dev default)
    EXTRACTION_SERVICE_URL: str = ""

    # Extraction service timeouts and transport retry (1 attempt = no retry)
    EXTRACTION_TIMEOUT_SECONDS: int = 60
    EXTRACTION_CONNECT_TIMEOUT: int = 10
    EXTRACTION_RETRY_ATTEMPTS: int = 1
    EXTRACTION_RETRY_DELAY: float = 1.0
    EXTRACTION_RETRY_BACKOFF: float = 2.0

    # Defaults sent to the extraction service as optional context
    DEFAULT_CURRENCY: str = "INR"
    DEFAULT_UOM: str = "pcs"
    DEFAULT_SOURCE_HINT: str = "whatsapp"

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
