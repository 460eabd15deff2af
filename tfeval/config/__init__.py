"""
Configuration management for tfeval.

This module handles application settings, defaults, and persistence.
"""

from .settings import Settings, MAP_ORDERS, OUTPUT_FORMATS
from .defaults import DEFAULT_SETTINGS

__all__ = ["Settings", "DEFAULT_SETTINGS", "MAP_ORDERS", "OUTPUT_FORMATS"]
