"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_DOCUMENT_TIMEOUT_SECONDS,
    DEFAULT_FETCH_WORKERS,
    DEFAULT_HANDLER_WORKERS,
    DEFAULT_IMAGE_TIMEOUT_SECONDS,
    DEFAULT_IMAGE_WORKERS,
    DEFAULT_INITIAL_QUALITY,
    DEFAULT_MAX_QUALITY_ITERATIONS,
    DEFAULT_MIN_IMAGE_BYTES,
    DEFAULT_MIN_QUALITY,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PROCESS_WORKERS,
    DEFAULT_PROXY_CHECK_TIMEOUT_SECONDS,
    DEFAULT_PROXY_CHECK_URL,
    DEFAULT_QUALITY_TOLERANCE,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_QUEUE_OVERFLOW,
    DEFAULT_QUEUE_PUT_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_INITIAL_DELAY_SECONDS,
    DEFAULT_RETRY_MULTIPLIER,
    DEFAULT_ROBOTS_TIMEOUT_SECONDS,
    DEFAULT_STATE_DIR,
    DEFAULT_TEMPLATE_VALUE,
    JSON_INDENT,
    QUEUE_OVERFLOW_POLICIES,
    ROBOTS_USER_AGENT,
    SUPPORTED_CONFIG_SUFFIXES,
    USER_AGENTS,
)
from .retry import RetryPolicy
from .types import JSONDict


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_str_list(value: Any, key: str) -> list[str]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"Invalid list for '{key}': {value!r}")
    return [str(item) for item in value if str(item).strip()]


_INT_FIELDS = {
    "fetch_workers",
    "process_workers",
    "handler_workers",
    "image_workers",
    "queue_capacity",
    "retry_attempts",
    "min_image_bytes",
    "max_quality_iterations",
}
_FLOAT_FIELDS = {
    "queue_put_timeout_seconds",
    "document_timeout_seconds",
    "robots_timeout_seconds",
    "proxy_check_timeout_seconds",
    "image_timeout_seconds",
    "retry_initial_delay_seconds",
    "retry_multiplier",
    "initial_quality",
    "min_quality",
    "quality_tolerance",
}


@dataclass(slots=True)
class CrawlConfig:
    """Engine-wide settings shared by every crawl session."""

    fetch_workers: int = DEFAULT_FETCH_WORKERS
    process_workers: int = DEFAULT_PROCESS_WORKERS
    handler_workers: int = DEFAULT_HANDLER_WORKERS
    image_workers: int = DEFAULT_IMAGE_WORKERS

    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    queue_overflow: str = DEFAULT_QUEUE_OVERFLOW
    queue_put_timeout_seconds: float = DEFAULT_QUEUE_PUT_TIMEOUT_SECONDS

    document_timeout_seconds: float = DEFAULT_DOCUMENT_TIMEOUT_SECONDS
    robots_timeout_seconds: float = DEFAULT_ROBOTS_TIMEOUT_SECONDS
    proxy_check_timeout_seconds: float = DEFAULT_PROXY_CHECK_TIMEOUT_SECONDS
    image_timeout_seconds: float = DEFAULT_IMAGE_TIMEOUT_SECONDS

    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_initial_delay_seconds: float = DEFAULT_RETRY_INITIAL_DELAY_SECONDS
    retry_multiplier: float = DEFAULT_RETRY_MULTIPLIER

    proxy_check_url: str = DEFAULT_PROXY_CHECK_URL
    robots_user_agent: str = ROBOTS_USER_AGENT
    user_agents: list[str] = field(default_factory=lambda: list(USER_AGENTS))

    output_dir: str = DEFAULT_OUTPUT_DIR
    state_dir: str = DEFAULT_STATE_DIR

    min_image_bytes: int = DEFAULT_MIN_IMAGE_BYTES
    initial_quality: float = DEFAULT_INITIAL_QUALITY
    min_quality: float = DEFAULT_MIN_QUALITY
    quality_tolerance: float = DEFAULT_QUALITY_TOLERANCE
    max_quality_iterations: int = DEFAULT_MAX_QUALITY_ITERATIONS
    template_default_value: str = DEFAULT_TEMPLATE_VALUE

    def __post_init__(self) -> None:
        for name in ("fetch_workers", "process_workers", "handler_workers", "image_workers"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        if self.queue_capacity <= 0:
            raise ValueError("queue_capacity must be > 0")
        self.queue_overflow = str(self.queue_overflow).strip().lower()
        if self.queue_overflow not in QUEUE_OVERFLOW_POLICIES:
            raise ValueError(
                f"queue_overflow must be one of {QUEUE_OVERFLOW_POLICIES}, got {self.queue_overflow!r}"
            )
        if self.queue_put_timeout_seconds < 0:
            raise ValueError("queue_put_timeout_seconds must be >= 0")

        for name in (
            "document_timeout_seconds",
            "robots_timeout_seconds",
            "proxy_check_timeout_seconds",
            "image_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if self.retry_initial_delay_seconds < 0:
            raise ValueError("retry_initial_delay_seconds must be >= 0")
        if self.retry_multiplier < 1:
            raise ValueError("retry_multiplier must be >= 1")

        self.user_agents = [ua.strip() for ua in self.user_agents if ua and ua.strip()]
        if not self.user_agents:
            raise ValueError("user_agents must contain at least one entry")

        if not str(self.output_dir).strip():
            raise ValueError("output_dir cannot be empty")
        if not str(self.state_dir).strip():
            raise ValueError("state_dir cannot be empty")

        if self.min_image_bytes < 0:
            raise ValueError("min_image_bytes must be >= 0")
        if not 0.0 < self.min_quality <= 1.0:
            raise ValueError("min_quality must be in (0, 1]")
        if not self.min_quality <= self.initial_quality <= 1.0:
            raise ValueError("initial_quality must be in [min_quality, 1]")
        if not 0.0 <= self.quality_tolerance < 1.0:
            raise ValueError("quality_tolerance must be in [0, 1)")
        if self.max_quality_iterations < 1:
            raise ValueError("max_quality_iterations must be >= 1")

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            attempts=self.retry_attempts,
            initial_delay_seconds=self.retry_initial_delay_seconds,
            multiplier=self.retry_multiplier,
        )

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        payload: JSONDict = {}
        for item in fields(self):
            value = getattr(self, item.name)
            payload[item.name] = list(value) if isinstance(value, list) else value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary; unknown keys are rejected."""

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")

        kwargs: dict[str, Any] = {}
        for key, value in payload.items():
            if value is None:
                continue
            if key in _INT_FIELDS:
                kwargs[key] = _as_int(value, key)
            elif key in _FLOAT_FIELDS:
                kwargs[key] = _as_float(value, key)
            elif key == "user_agents":
                kwargs[key] = _as_str_list(value, key)
            else:
                kwargs[key] = str(value)

        return cls(**kwargs)


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "load_config",
    "save_config",
]
