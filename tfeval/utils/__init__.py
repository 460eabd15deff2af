"""
Utility functions for tfeval.
"""

from .logger import setup_logging
from .validators import validate_project_is_terraform

__all__ = ["setup_logging", "validate_project_is_terraform"]
