"""
tfeval - evaluate Terraform conditional, splat and dynamic block expressions.
"""

__version__ = "1.0.0"
