"""
Default settings for tfeval.

These are the default values used when no user configuration exists.
"""

DEFAULT_SETTINGS = {
    "version": "1.0.0",

    # Expression evaluation
    "evaluation": {
        "map_order": "insertion",  # or "lexical"
    },

    # Rendered output
    "output": {
        "format": "json",  # or "hcl"
        "indent": 2,
        "redact_sensitive": True,
    },

    # Logging
    "logging": {
        "level": "WARNING",
        "file": False,
    },
}
