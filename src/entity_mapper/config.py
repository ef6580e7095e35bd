"""Engine configuration with environment overrides.

Environment Variables:
    ENTITY_MAPPER_MAX_DEPTH: Maximum nested entity depth (default 32)
    ENTITY_MAPPER_URL_ATTRIBUTES: Comma-separated attributes read by URL
        fields that name no attribute, in order (default "href,src")
    ENTITY_MAPPER_LOG_LEVEL: Log level used by the CLI, one of DEBUG, INFO,
        WARNING, ERROR, CRITICAL (default "INFO")

Example:
    >>> from entity_mapper.config import EngineConfig
    >>> EngineConfig().max_depth
    32
    >>> EngineConfig(max_depth=4).max_depth
    4
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from .logging import level_number


def _i(name: str, default: int) -> int:
    """Parse int from environment variable with fallback."""
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _csv(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class EngineConfig:
    """Settings read by the extraction engine and the CLI."""

    max_depth: int = field(default_factory=lambda: _i("ENTITY_MAPPER_MAX_DEPTH", 32))
    url_attributes: tuple[str, ...] = field(
        default_factory=lambda: _csv("ENTITY_MAPPER_URL_ATTRIBUTES", "href,src")
    )
    log_level: str = field(default_factory=lambda: os.getenv("ENTITY_MAPPER_LOG_LEVEL", "INFO").upper())

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if not self.url_attributes:
            raise ValueError("url_attributes must name at least one attribute")
        level_number(self.log_level)
