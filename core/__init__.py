"""
SceneReel Core Components

Provides foundational infrastructure shared by the services:
- Environment-driven configuration
"""

from .config import Config, get_config, reload_config

__all__ = ["Config", "get_config", "reload_config"]
