"""
Configuration from environment variables and .env files.

Priority (highest to lowest):
1. Explicit overrides passed to ``load_from_env``
2. Environment variables (HTTP_FETCH_*)
3. .env file
4. Defaults
"""

from typing import Literal, Optional

from pydantic import Field, ValidationError as PydanticValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import ExecutorConfig, TimeoutConfig
from .exceptions import ConfigurationError
from .logging.config import LoggingConfig
from .options import Opt


class FetchSettings(BaseSettings):
    """
    Executor settings read from the environment.

    Example .env file:
        HTTP_FETCH_USER_AGENT=crawler/2.0
        HTTP_FETCH_TIMEOUT_TOTAL=30
        HTTP_FETCH_RETRY=2
        HTTP_FETCH_CERT_DIRECTORY=/var/cache/http_fetch
        HTTP_FETCH_LOG_ENABLE_CONSOLE=true
        HTTP_FETCH_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix='HTTP_FETCH_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    user_agent: Optional[str] = Field(default=None)
    retry: int = Field(default=0, ge=0, le=10)
    timeout_connect: Optional[float] = Field(default=None, gt=0)
    timeout_total: Optional[float] = Field(default=None, gt=0)
    follow_redirects: Optional[bool] = Field(default=None)
    max_redirects: Optional[int] = Field(default=None, ge=-1)
    proxy: Optional[str] = Field(default=None, description="Proxy URL, e.g. socks5://host:1080")
    cert_directory: Optional[str] = Field(default=None)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="text")
    log_enable_console: bool = Field(default=False)
    log_enable_file: bool = Field(default=False)
    log_file_path: Optional[str] = None
    log_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    log_backup_count: int = Field(default=5, ge=0)
    log_enable_correlation_id: bool = Field(default=True)

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode='after')
    def validate_file_path(self) -> 'FetchSettings':
        if self.log_enable_file and not self.log_file_path:
            raise ValueError("log_file_path is required when log_enable_file=True")
        return self

    def to_logging_config(self) -> Optional[LoggingConfig]:
        """LoggingConfig, or None when no output is enabled."""
        if not self.log_enable_console and not self.log_enable_file:
            return None
        return LoggingConfig(
            level=self.log_level,
            format=self.log_format,
            console=self.log_enable_console,
            file_path=self.log_file_path if self.log_enable_file else None,
            max_bytes=self.log_max_bytes,
            backup_count=self.log_backup_count,
            correlation_ids=self.log_enable_correlation_id,
        )

    def to_executor_config(self) -> ExecutorConfig:
        default_options = {}
        if self.max_redirects is not None:
            default_options[Opt.MAX_REDIRS] = self.max_redirects
        if self.proxy:
            default_options[Opt.PROXY] = self.proxy

        return ExecutorConfig(
            default_options=default_options,
            user_agent=self.user_agent,
            retry=self.retry,
            timeout=TimeoutConfig(
                connect=self.timeout_connect if self.timeout_connect is not None else self.timeout_total,
                total=self.timeout_total,
            ),
            follow_redirects=self.follow_redirects,
            cert_directory=self.cert_directory,
            logging=self.to_logging_config(),
        )


def load_from_env(env_file: Optional[str] = '.env', **overrides) -> ExecutorConfig:
    """
    Load ExecutorConfig from the environment.

    Args:
        env_file: .env file to read (None = environment only)
        **overrides: FetchSettings field values that win over everything else

    Raises:
        ConfigurationError: a value fails validation

    Example:
        >>> config = load_from_env(retry=3)
    """
    try:
        settings = FetchSettings(_env_file=env_file, **overrides)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e
    return settings.to_executor_config()
