from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import urllib.parse
from pathlib import Path
import logging

from fieldoffice.utils.constants import APP_VERSION, DELIVERY_SETTINGS, LOCK_SETTINGS

logger = logging.getLogger('FieldOffice')

class Settings(BaseSettings):
    """Portal settings loaded from environment variables"""
    
    # Environment Configuration
    environment: str = "development"
    debug: bool = False
    app_version: str = APP_VERSION
    
    # PostgreSQL Configuration
    postgres_user: str = "fieldoffice"
    postgres_password: str = ""
    postgres_db: str = "fieldoffice"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: Optional[str] = None  # e.g. sqlite+aiosqlite:///portal.db
    
    # Redis Configuration
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0
    
    # State Lock
    decision_lock_timeout: int = LOCK_SETTINGS['TIMEOUT']
    decision_lock_wait: int = LOCK_SETTINGS['BLOCKING_TIMEOUT']
    
    # Notification Delivery
    discord_webhook_url: Optional[str] = None
    webhook_username: str = DELIVERY_SETTINGS['WEBHOOK_USERNAME']
    
    # Bootstrap
    bootstrap_admin: str = "Portal_Admin"
    
    # Path Configuration
    base_dir: Path = Path(__file__).resolve().parent.parent.parent
    log_dir: Path = base_dir / "logs"
    
    @property
    def sqlalchemy_url(self) -> str:
        """Get database URL formatted for SQLAlchemy with the asyncpg driver"""
        if self.database_url_override:
            return self.database_url_override
        encoded_password = urllib.parse.quote_plus(self.postgres_password)
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{encoded_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def redis_url(self) -> str:
        """Get Redis URL"""
        if self.redis_password:
            encoded_password = urllib.parse.quote_plus(self.redis_password)
            auth = f":{encoded_password}@"
        else:
            auth = ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"
    
    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def log_level(self) -> str:
        return 'DEBUG' if self.debug else 'INFO'

    def ensure_directories(self) -> None:
        """Ensure required directories exist"""
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Error creating directories: {e}")
            raise

    def validate_settings(self) -> None:
        """Validate critical settings"""
        errors = []

        if not (1 <= self.postgres_port <= 65535):
            errors.append("Invalid PostgreSQL port number")
        if not (1 <= self.redis_port <= 65535):
            errors.append("Invalid Redis port number")
        if self.decision_lock_timeout <= 0:
            errors.append("State lock timeout must be positive")
        if self.decision_lock_wait < 0:
            errors.append("State lock wait cannot be negative")
        if self.discord_webhook_url and not self.discord_webhook_url.startswith(
            DELIVERY_SETTINGS['WEBHOOK_PREFIX']
        ):
            errors.append("Discord webhook URL must start with "
                          f"{DELIVERY_SETTINGS['WEBHOOK_PREFIX']}")
        if not self.bootstrap_admin.strip():
            errors.append("Bootstrap admin nickname cannot be blank")

        if errors:
            logger.error(f"Settings validation error: {'; '.join(errors)}")
            raise ValueError(f"Invalid settings: {'; '.join(errors)}")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.validate_settings()
        logger.info(f"Settings initialized for environment: {self.environment}")

def get_settings() -> Settings:
    """Get validated settings instance"""
    try:
        settings = Settings()
        settings.ensure_directories()
        return settings
    except Exception as e:
        logger.critical(f"Failed to load settings: {e}")
        raise
