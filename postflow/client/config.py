"""
Name: Client Settings

Responsibilities:
  - Typed configuration for the client SDK (POSTFLOW_* env vars)
  - Build the MonitorPolicy used by SessionMonitor
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from .monitor import MonitorPolicy


class ClientSettings(BaseSettings):
    """
    Attributes:
        base_url: API root (default: http://localhost:8000)
        session_file: Where to persist the session (empty = memory only)
        request_timeout_seconds: httpx timeout
        session_window_seconds .. refresh_retry_delay_seconds: monitor policy
    """

    base_url: str = "http://localhost:8000"
    session_file: str = ""
    request_timeout_seconds: float = 10.0

    session_window_seconds: int = 300
    warning_seconds: int = 60
    activity_debounce_seconds: float = 0.5
    activity_cooldown_seconds: float = 30.0
    refresh_threshold_seconds: int = 60
    refresh_cooldown_seconds: float = 30.0
    refresh_max_attempts: int = 3
    refresh_retry_delay_seconds: float = 5.0

    model_config = SettingsConfigDict(
        env_prefix="POSTFLOW_",
        env_file=".env",
        extra="ignore",
    )

    def monitor_policy(self) -> MonitorPolicy:
        return MonitorPolicy(
            window_seconds=self.session_window_seconds,
            warning_seconds=self.warning_seconds,
            activity_debounce_seconds=self.activity_debounce_seconds,
            activity_cooldown_seconds=self.activity_cooldown_seconds,
            refresh_threshold_seconds=self.refresh_threshold_seconds,
            refresh_cooldown_seconds=self.refresh_cooldown_seconds,
            refresh_max_attempts=self.refresh_max_attempts,
            refresh_retry_delay_seconds=self.refresh_retry_delay_seconds,
        )
