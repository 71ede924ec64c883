# =============================================================================
# Gateway Configuration
# =============================================================================
# Settings loaded from environment variables.
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # AWX Configuration
    awx_base_url: str = "http://awx:8052"
    awx_token: str = ""
    awx_timeout_seconds: float = 30.0
    awx_verify_ssl: bool = True
    awx_organization_id: int = 1
    awx_read_retries: int = 3
    awx_retry_wait_seconds: float = 1.0
    awx_inventory_prefix: str = "deploy_temp"

    # Deploy policy
    allowed_host_prefixes: list[str] = ["CN", "TOP", "PDV", "RDS"]
    reachability_check_enabled: bool = False
    reachability_port: int = 22
    reachability_timeout_seconds: float = 5.0

    # Audit trail
    audit_log_dir: str = "./audit_logs"

    # Webapp Authentication
    webapp_username: str = "admin"
    webapp_password: str = "admin"
    operator_accounts: dict[str, str] = {}
    session_cookie_name: str = "deploy_session"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
