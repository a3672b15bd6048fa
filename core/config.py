"""
Configuration management for SceneReel.

Centralizes all configuration including:
- API credential lookup
- Veo model and generation defaults
- Polling cadence and ceiling
- Output location for downloaded videos
"""

import os
from dataclasses import dataclass, field
from typing import Optional


CREDENTIAL_ENV_VARS = ("GOOGLE_API_KEY", "API_KEY")

DEFAULT_MODEL = "veo-3.1-fast-generate-preview"
RESOLUTIONS = ("720p", "1080p")
ASPECT_RATIOS = ("16:9", "9:16")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _first_env(names: tuple[str, ...]) -> str:
    for name in names:
        value = os.getenv(name, "")
        if value:
            return value
    return ""


@dataclass
class APIConfig:
    """API configuration for the video generation service."""

    credential_env_vars: tuple[str, ...] = CREDENTIAL_ENV_VARS
    google_api_key: str = field(default_factory=lambda: _first_env(CREDENTIAL_ENV_VARS))


@dataclass
class GenerationConfig:
    """Veo generation and polling settings."""

    model: str = field(
        default_factory=lambda: os.getenv("VEO_MODEL", DEFAULT_MODEL)
    )
    default_resolution: str = field(default_factory=lambda: os.getenv("VEO_RESOLUTION", "720p"))
    default_aspect_ratio: str = field(
        default_factory=lambda: os.getenv("VEO_ASPECT_RATIO", "16:9")
    )

    # The remote job takes minutes; poll slowly
    poll_interval_seconds: float = field(
        default_factory=lambda: _env_float("VEO_POLL_INTERVAL_SECONDS", 10.0)
    )
    # 0 disables the ceiling
    max_poll_seconds: float = field(
        default_factory=lambda: _env_float("VEO_MAX_POLL_SECONDS", 1200.0)
    )
    download_timeout_seconds: float = 600.0


@dataclass
class StorageConfig:
    """Where downloaded videos are written."""
    output_dir: str = field(default_factory=lambda: os.getenv("OUTPUT_DIR", "output"))


@dataclass
class Config:
    """Main configuration class."""

    api: APIConfig = field(default_factory=APIConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls()

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.api.google_api_key:
            names = " or ".join(self.api.credential_env_vars)
            issues.append(f"No API key in environment ({names}); one will be requested")

        if self.generation.default_resolution not in RESOLUTIONS:
            issues.append(f"VEO_RESOLUTION must be one of {', '.join(RESOLUTIONS)}")

        if self.generation.default_aspect_ratio not in ASPECT_RATIOS:
            issues.append(f"VEO_ASPECT_RATIO must be one of {', '.join(ASPECT_RATIOS)}")

        if self.generation.poll_interval_seconds <= 0:
            issues.append("VEO_POLL_INTERVAL_SECONDS must be positive")

        if self.generation.max_poll_seconds < 0:
            issues.append("VEO_MAX_POLL_SECONDS must be zero (disabled) or positive")

        return issues


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reload_config():
    """Reload configuration from environment."""
    global _config
    _config = Config.from_env()
