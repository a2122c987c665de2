from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "docrecon"
    db_username: str = "docrecon"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    extraction_client: str = "http"
    extraction_base_url: str = ""
    extraction_jobs_path: str = "/document-information-extraction/v1/document/jobs"
    extraction_timeout_seconds: int = 10
    extraction_fetch_attempts: int = 2

    credential_provider: str = "oauth"
    credential_token_url: str = ""
    credential_timeout_seconds: int = 10
    credential_static_token: str = ""

    default_page_size: int = 10
    max_page_size: int = 100
    frontend_url: str = "http://localhost:5173"
