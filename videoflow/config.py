"""Configuration management for the VideoFlow engine."""

import os
from typing import Optional, Dict
from pydantic import BaseModel, Field, field_validator
from enum import Enum

from .core.error_recovery import RetryConfig
from .core.exceptions import ConfigurationError
from .providers.base import TaskProvider
from .providers.sora2 import PLATFORMS, Sora2Provider


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application settings
    app_name: str = Field(default="VideoFlow Engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")
    structured_logging: bool = Field(default=False, description="Emit JSON log records")

    # Batch settings
    poll_interval: float = Field(
        default=30.0,
        description="Delay in seconds after a job that is still running during a poll pass"
    )
    auto_download: bool = Field(default=False, description="Download finished videos while polling")
    download_dir: str = Field(default="./downloads", description="Target directory for downloads")
    default_provider: str = Field(default="juxin", description="Provider used when a batch names none")

    # Sora2 provider settings
    sora2_api_key: str = Field(default="", description="API key for the juxin platform")
    zhenzhen_api_key: str = Field(
        default="",
        description="API key for the zhenzhen platform, falls back to the juxin key"
    )
    juxin_base_url: str = Field(default="https://api.jxincm.cn", description="juxin API base URL")
    zhenzhen_base_url: str = Field(default="https://ai.t8star.cn", description="zhenzhen API base URL")
    request_timeout: float = Field(default=60.0, description="Create and query timeout in seconds")
    download_timeout: float = Field(default=300.0, description="Video download timeout in seconds")
    http_max_attempts: int = Field(default=3, description="Attempts for transient HTTP failures")

    @field_validator('poll_interval')
    @classmethod
    def validate_poll_interval(cls, v):
        """Validate poll interval."""
        if v < 0:
            raise ValueError("Poll interval cannot be negative")
        return v

    @field_validator('request_timeout', 'download_timeout')
    @classmethod
    def validate_timeouts(cls, v):
        """Validate timeout values."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator('http_max_attempts')
    @classmethod
    def validate_http_max_attempts(cls, v):
        """Validate retry attempts."""
        if v < 1:
            raise ValueError("HTTP max attempts must be at least 1")
        return v

    @field_validator('default_provider')
    @classmethod
    def validate_default_provider(cls, v):
        """Validate the default provider id."""
        if v not in PLATFORMS:
            raise ValueError(f"Unknown provider: {v}. Supported: {list(PLATFORMS)}")
        return v

    def api_key_for(self, platform: str) -> str:
        """API key for a platform; zhenzhen falls back to the juxin key."""
        if platform == "zhenzhen":
            return self.zhenzhen_api_key or self.sora2_api_key
        return self.sora2_api_key

    def base_url_for(self, platform: str) -> str:
        return self.zhenzhen_base_url if platform == "zhenzhen" else self.juxin_base_url

    def get_logging_kwargs(self) -> Dict[str, object]:
        """Arguments for ``setup_logging``."""
        return {
            "level": self.log_level.value,
            "log_file": self.log_file,
            "log_format": self.log_format,
            "structured": self.structured_logging,
            "max_size": self.log_max_size,
            "backup_count": self.log_backup_count,
            "context": {"app": self.app_name},
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"VIDEOFLOW_{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            return type_func(value)

        return cls(
            app_name=get_env("APP_NAME", "VideoFlow Engine"),
            app_version=get_env("APP_VERSION", "1.0.0"),
            log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
            log_format=get_env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=get_env("LOG_FILE", None),
            log_max_size=get_env("LOG_MAX_SIZE", 10485760, int),
            log_backup_count=get_env("LOG_BACKUP_COUNT", 5, int),
            structured_logging=get_env("STRUCTURED_LOGGING", False, bool),
            poll_interval=get_env("POLL_INTERVAL", 30.0, float),
            auto_download=get_env("AUTO_DOWNLOAD", False, bool),
            download_dir=get_env("DOWNLOAD_DIR", "./downloads"),
            default_provider=get_env("DEFAULT_PROVIDER", "juxin"),
            sora2_api_key=get_env("SORA2_API_KEY", ""),
            zhenzhen_api_key=get_env("ZHENZHEN_API_KEY", ""),
            juxin_base_url=get_env("JUXIN_BASE_URL", "https://api.jxincm.cn"),
            zhenzhen_base_url=get_env("ZHENZHEN_BASE_URL", "https://ai.t8star.cn"),
            request_timeout=get_env("REQUEST_TIMEOUT", 60.0, float),
            download_timeout=get_env("DOWNLOAD_TIMEOUT", 300.0, float),
            http_max_attempts=get_env("HTTP_MAX_ATTEMPTS", 3, int)
        )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from a .env file and environment variables."""
    global _config

    if config_file and os.path.exists(config_file):
        from dotenv import load_dotenv
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        from dotenv import load_dotenv
        load_dotenv('.env')

    _config = AppConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def validate_config(config: AppConfig) -> None:
    """
    Check settings that depend on the environment rather than on field values.

    Raises:
        ConfigurationError: If the default provider has no API key or a directory cannot be created
    """
    errors = []

    if not config.api_key_for(config.default_provider):
        errors.append(f"No API key configured for default provider {config.default_provider}")

    for key, directory in (("log_file", os.path.dirname(config.log_file or "")),
                           ("download_dir", config.download_dir if config.auto_download else "")):
        if directory and not os.path.exists(directory):
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create directory {directory} for {key}: {e}")

    if errors:
        raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")


def create_default_providers(config: AppConfig) -> Dict[str, TaskProvider]:
    """Build one Sora2 provider per supported platform, keyed by platform name."""
    retry_config = RetryConfig(max_attempts=config.http_max_attempts)
    return {
        platform: Sora2Provider(
            platform=platform,
            api_key=config.api_key_for(platform),
            base_url=config.base_url_for(platform),
            timeout=config.request_timeout,
            download_timeout=config.download_timeout,
            retry_config=retry_config,
        )
        for platform in PLATFORMS
    }


def get_testing_config() -> AppConfig:
    """Get testing configuration."""
    return AppConfig(
        log_level=LogLevel.WARNING,
        poll_interval=0.0,
        auto_download=False,
        sora2_api_key="test-key",
        zhenzhen_api_key="test-key",
        request_timeout=5.0,
        download_timeout=5.0,
        http_max_attempts=1
    )
