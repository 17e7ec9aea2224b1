"""Service configuration via environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

MAX_STORED_BYTES = 20 * 1024 * 1024  # 20 MiB
MAX_PRESET_BYTES = 200 * 1024 * 1024


def _is_env_placeholder(value: str) -> bool:
    """Return True when *value* looks like an unresolved shell placeholder."""
    if value.startswith("${") and value.endswith("}"):
        inner = value[2:-1].strip()
        if ":-" in inner:
            inner = inner.split(":-", 1)[0].strip()
        return bool(inner) and all(ch.isalnum() or ch == "_" for ch in inner)
    if value.startswith("$"):
        inner = value[1:].strip()
        return bool(inner) and all(ch.isalnum() or ch == "_" for ch in inner)
    return False


def _env(name: str, default: str = "", *aliases: str) -> str:
    """Read *name* (then *aliases*) from the environment, ignoring placeholders."""
    for key in (name, *aliases):
        value = (os.getenv(key) or "").strip()
        if value and not _is_env_placeholder(value):
            return value
    return default


def _resolve_tracing_enabled(flag_value: str, tracking_uri: str) -> bool:
    """Derive tracing_enabled from env vars.

    - ``TACTICS_TRACING_ENABLED=false`` → always disabled (explicit opt-out).
    - Otherwise enabled when ``MLFLOW_TRACKING_URI`` is non-empty.
    """
    if flag_value.lower() == "false":
        return False
    return bool(tracking_uri)


class AppConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-2.0-flash")
    gcp_project: str = Field(default="")
    storage_bucket: str = Field(default="")
    service_account_key: str = Field(default="")
    max_stored_bytes: int = Field(default=MAX_STORED_BYTES)
    max_preset_bytes: int = Field(default=MAX_PRESET_BYTES)
    poll_interval_seconds: float = Field(default=2.0)
    poll_timeout_seconds: float = Field(default=300.0)
    signed_read_url_ttl: int = Field(default=3600)
    signed_write_url_ttl: int = Field(default=900)
    fetch_timeout_seconds: float = Field(default=60.0)
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=60.0)
    cors_allow_origins: list[str] = Field(default_factory=list)
    tracing_enabled: bool = Field(default=False)
    mlflow_tracking_uri: str = Field(default="")
    mlflow_experiment_name: str = Field(default="tactics-analyst")

    @field_validator(
        "max_stored_bytes", "max_preset_bytes", "signed_read_url_ttl", "signed_write_url_ttl",
    )
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator("retry_max_attempts")
    @classmethod
    def validate_retry_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("retry_max_attempts must be >= 1")
        return value

    @field_validator(
        "poll_interval_seconds", "poll_timeout_seconds", "fetch_timeout_seconds",
        "retry_base_delay", "retry_max_delay",
    )
    @classmethod
    def validate_positive_floats(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Durations must be > 0")
        return value

    @classmethod
    def from_env(cls) -> AppConfig:
        """Build config from environment variables."""
        tracking_uri = _env("MLFLOW_TRACKING_URI")
        origins = [o.strip() for o in _env("CORS_ALLOW_ORIGINS").split(",") if o.strip()]
        return cls(
            gemini_api_key=_env("GEMINI_API_KEY", "", "GOOGLE_GENERATIVE_AI_API_KEY"),
            gemini_model=_env("GEMINI_MODEL", "gemini-2.0-flash"),
            gcp_project=_env("GOOGLE_CLOUD_PROJECT"),
            storage_bucket=_env("STORAGE_BUCKET"),
            service_account_key=_env("GOOGLE_SERVICE_ACCOUNT_KEY"),
            max_stored_bytes=int(_env("TACTICS_MAX_STORED_BYTES", str(MAX_STORED_BYTES))),
            max_preset_bytes=int(_env("TACTICS_MAX_PRESET_BYTES", str(MAX_PRESET_BYTES))),
            poll_interval_seconds=float(_env("TACTICS_POLL_INTERVAL", "2.0")),
            poll_timeout_seconds=float(_env("TACTICS_POLL_TIMEOUT", "300")),
            signed_read_url_ttl=int(_env("SIGNED_READ_URL_TTL", "3600")),
            signed_write_url_ttl=int(_env("SIGNED_WRITE_URL_TTL", "900")),
            fetch_timeout_seconds=float(_env("TACTICS_FETCH_TIMEOUT", "60")),
            retry_max_attempts=int(_env("GEMINI_RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(_env("GEMINI_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(_env("GEMINI_RETRY_MAX_DELAY", "60.0")),
            cors_allow_origins=origins,
            tracing_enabled=_resolve_tracing_enabled(
                _env("TACTICS_TRACING_ENABLED"), tracking_uri,
            ),
            mlflow_tracking_uri=tracking_uri,
            mlflow_experiment_name=_env("MLFLOW_EXPERIMENT_NAME", "tactics-analyst"),
        )


_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Return the global config, reading the process environment on first access."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def update_config(**overrides: object) -> AppConfig:
    """Patch the live config (used by tests and the MCP server)."""
    global _config
    cfg = get_config()
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = AppConfig(**data)
    return _config
