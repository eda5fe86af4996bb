"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating every recognized agent option once, at construction time.
"""

import os
from typing import TypeVar

import dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_T = TypeVar("_T", int, float)

DEFAULT_HANDLE_NAMES = frozenset({"debug", "info", "warning", "error", "log"})


def _get_env_str(name: str, default: str) -> str:
    """Read a string env var with a default."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip()


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


def _get_env_names(name: str, default: frozenset[str]) -> frozenset[str]:
    """Read a comma-separated set of names with a default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


class _Section(BaseModel):
    # Unknown options are rejected rather than merged in.
    model_config = ConfigDict(extra="forbid", frozen=True)


class ConsoleConfig(_Section):
    """Which diagnostic entry points are intercepted."""

    handle_names: frozenset[str] = Field(default=DEFAULT_HANDLE_NAMES, description="Intercepted names")
    output: bool = Field(default=True, description="Also invoke the original entry point")


class ErrorConfig(_Section):
    """Which process-wide fault channels are captured."""

    catch_errors: bool = Field(default=True, description="Capture uncaught exceptions")
    catch_uncaught_rejections: bool = Field(default=True, description="Capture unhandled asyncio failures")


class ServerConfig(_Section):
    """Remote collector delivery."""

    url: str = Field(default="", description="Collector URL; empty disables delivery")
    send: bool = Field(default=True, description="Deliver captured events to the collector")
    retry_rate: int = Field(default=2000, gt=0, description="Retry interval (milliseconds)")
    timeout_s: float = Field(default=5.0, gt=0, description="Per-request timeout (seconds)")

    @field_validator("url")
    def validate_url(cls, v: str) -> str:
        """Strip whitespace and require an http(s) scheme when set."""
        v = v.strip()
        if v and not v.startswith(("http://", "https://")):
            raise ValueError(f"server.url must start with http:// or https://. Got: {v!r}")
        return v


class QueueConfig(_Section):
    """Durable overflow queue for undelivered events."""

    max: int = Field(default=1000, gt=0, description="Max queued entries")
    save_on_failure: bool = Field(default=True, description="Queue events whose delivery failed")
    path: str = Field(default="", description="DuckDB file path; empty keeps the queue in memory")
    namespace: str = Field(default="telemetry", min_length=1, description="Storage namespace")


class MemoryConfig(_Section):
    """In-process recent-history buffer."""

    enabled: bool = Field(default=True, description="Keep captured events in memory")
    max: int = Field(default=1000, ge=0, description="Max buffered events")


class DisplayConfig(_Section):
    """Side-channel text display of captured events."""

    output: bool = Field(default=False, description="Write rendered events to the display stream")
    max: int = Field(default=10000, ge=0, description="Max displayed lines")


class AgentConfig(_Section):
    """Top-level telemetry agent configuration."""

    console: ConsoleConfig = Field(default_factory=ConsoleConfig)
    error: ErrorConfig = Field(default_factory=ErrorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)

    @property
    def delivery_enabled(self) -> bool:
        """True when events should be sent to a collector."""
        return self.server.send and bool(self.server.url)


def load_config() -> AgentConfig:
    """Load agent configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Every option is optional; a missing `TELEMETRY_SERVER_URL` simply disables
      delivery. Malformed values raise `ValueError` with an actionable message.
    """
    # Load variables from `.env` into the process environment (without overriding
    # already-set env vars).
    dotenv.load_dotenv()

    return AgentConfig(
        console=ConsoleConfig(
            handle_names=_get_env_names("TELEMETRY_HANDLE_NAMES", DEFAULT_HANDLE_NAMES),
            output=_get_env_bool("TELEMETRY_CONSOLE_OUTPUT", True),
        ),
        error=ErrorConfig(
            catch_errors=_get_env_bool("TELEMETRY_CATCH_ERRORS", True),
            catch_uncaught_rejections=_get_env_bool("TELEMETRY_CATCH_REJECTIONS", True),
        ),
        server=ServerConfig(
            url=_get_env_str("TELEMETRY_SERVER_URL", ""),
            send=_get_env_bool("TELEMETRY_SERVER_SEND", True),
            retry_rate=_get_env_number("TELEMETRY_RETRY_RATE_MS", 2000, int),
            timeout_s=_get_env_number("TELEMETRY_SERVER_TIMEOUT_S", 5.0, float),
        ),
        queue=QueueConfig(
            max=_get_env_number("TELEMETRY_QUEUE_MAX", 1000, int),
            save_on_failure=_get_env_bool("TELEMETRY_SAVE_ON_FAILURE", True),
            path=_get_env_str("TELEMETRY_QUEUE_PATH", ""),
            namespace=_get_env_str("TELEMETRY_QUEUE_NAMESPACE", "telemetry"),
        ),
        memory=MemoryConfig(
            enabled=_get_env_bool("TELEMETRY_MEMORY_ENABLED", True),
            max=_get_env_number("TELEMETRY_MEMORY_MAX", 1000, int),
        ),
        display=DisplayConfig(
            output=_get_env_bool("TELEMETRY_DISPLAY_OUTPUT", False),
            max=_get_env_number("TELEMETRY_DISPLAY_MAX", 10000, int),
        ),
    )
