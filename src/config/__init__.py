"""Configuration module."""

from src.config.constants import PROVIDER, ProviderConstants
from src.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "ProviderConstants", "PROVIDER"]
