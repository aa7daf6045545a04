"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class ControlVolumeConfig:
    """Control volume configuration."""
    root: str
    release_workdir: str
    runner_source: Optional[str]


@dataclass
class RunnerConfig:
    """Runner (executor side) configuration."""
    poll_interval: float


@dataclass
class DispatchConfig:
    """Dispatcher configuration.

    Timeouts of ``None`` mean wait forever.
    """
    status_poll_interval: float
    accept_timeout: Optional[float]
    status_timeout: Optional[float]


@dataclass
class RelayConfig:
    """Log relay configuration."""
    initial_backoff: float
    max_backoff: float
    request_timeout: float

    def __post_init__(self):
        if self.initial_backoff <= 0:
            raise ValueError("initial_backoff must be positive")
        if self.max_backoff < self.initial_backoff:
            raise ValueError("max_backoff must not be smaller than initial_backoff")


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_volume_config(self) -> ControlVolumeConfig:
        """Get control volume configuration."""
        ...

    def get_runner_config(self) -> RunnerConfig:
        """Get runner configuration."""
        ...

    def get_dispatch_config(self) -> DispatchConfig:
        """Get dispatcher configuration."""
        ...

    def get_relay_config(self) -> RelayConfig:
        """Get log relay configuration."""
        ...


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _get_float(name: str, default: str) -> float:
    """Read a required number; unset or blank means the default."""
    raw = os.getenv(name, "")
    if raw.strip() == "":
        raw = default
    return _parse_float(name, raw)


def _get_optional_float(name: str) -> Optional[float]:
    """Read an optional number; unset or blank means None."""
    raw = os.getenv(name, "")
    if raw.strip() == "":
        return None
    return _parse_float(name, raw)


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_volume_config(self) -> ControlVolumeConfig:
        """Get control volume configuration from environment variables."""
        return ControlVolumeConfig(
            root=os.getenv("CONTROL_ROOT", "/control"),
            release_workdir=os.getenv("RELEASE_WORKDIR", "terraform"),
            runner_source=os.getenv("RUNNER_SOURCE") or None,
        )

    def get_runner_config(self) -> RunnerConfig:
        """Get runner configuration from environment variables."""
        return RunnerConfig(
            poll_interval=_get_float("RUNNER_POLL_INTERVAL", "0.1"),
        )

    def get_dispatch_config(self) -> DispatchConfig:
        """Get dispatcher configuration from environment variables."""
        return DispatchConfig(
            status_poll_interval=_get_float("STATUS_POLL_INTERVAL", "1.0"),
            accept_timeout=_get_optional_float("ACCEPT_TIMEOUT"),
            status_timeout=_get_optional_float("STATUS_TIMEOUT"),
        )

    def get_relay_config(self) -> RelayConfig:
        """Get log relay configuration from environment variables."""
        return RelayConfig(
            initial_backoff=_get_float("LOG_BACKOFF_INITIAL", "0.1"),
            max_backoff=_get_float("LOG_BACKOFF_MAX", "5.0"),
            request_timeout=_get_float("LOG_REQUEST_TIMEOUT", "30"),
        )
