"""
Configuration module for Ronin.

Uses pydantic-settings for environment variable loading.
"""

from ronin.config.settings import Settings

__all__ = ["Settings"]
