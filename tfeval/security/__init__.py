"""
Security module for tfeval.

This module provides security utilities for validating command line
inputs and keeping sensitive values out of rendered output.
"""

from .sanitizer import InputSanitizer, SecurityError
from .redactor import OutputRedactor, REDACTED

__all__ = ["InputSanitizer", "SecurityError", "OutputRedactor", "REDACTED"]
