"""
Input sanitization and validation for tfeval.

This module validates everything that reaches the evaluator from the
command line:
- Project directories and .tfvars file paths
- Variable names and ``name=value`` assignments
- Expression text
"""

import os
import re
from typing import Tuple


class SecurityError(Exception):
    """Raised when a security validation fails."""
    pass


class InputSanitizer:
    """
    Provides input validation and sanitization methods.

    All methods raise SecurityError if validation fails.
    """

    # Terraform variable name pattern: must start with letter/underscore,
    # can contain letters, digits, underscores, hyphens
    VARIABLE_NAME_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_-]*$')

    # Maximum lengths to prevent resource exhaustion
    MAX_VARIABLE_NAME_LENGTH = 255
    MAX_VARIABLE_VALUE_LENGTH = 4096
    MAX_EXPRESSION_LENGTH = 10000

    @staticmethod
    def sanitize_path(path: str) -> str:
        """
        Validate and normalize a project directory path.

        Args:
            path: Path to validate

        Returns:
            Normalized absolute path

        Raises:
            SecurityError: If path is empty, missing or not a directory
        """
        abs_path = InputSanitizer._resolve(path)

        if not os.path.isdir(abs_path):
            raise SecurityError(f"Path is not a directory: {path}")

        return abs_path

    @staticmethod
    def sanitize_file_path(path: str) -> str:
        """
        Validate and normalize a path to an existing regular file.

        Raises:
            SecurityError: If path is empty, missing or not a file
        """
        abs_path = InputSanitizer._resolve(path)

        if not os.path.isfile(abs_path):
            raise SecurityError(f"Path is not a file: {path}")

        return abs_path

    @staticmethod
    def _resolve(path: str) -> str:
        if not path:
            raise SecurityError("Path cannot be empty")

        if '\x00' in path:
            raise SecurityError("Path contains a null byte")

        # Resolve to absolute path, following symlinks
        try:
            abs_path = os.path.realpath(os.path.expanduser(path))
        except (OSError, ValueError) as e:
            raise SecurityError(f"Invalid path: {e}")

        if not os.path.exists(abs_path):
            raise SecurityError(f"Path does not exist: {path}")

        return abs_path

    @staticmethod
    def sanitize_variable_name(name: str) -> str:
        """
        Validate Terraform variable name.

        Rules:
        - Must start with letter or underscore
        - Can contain letters, digits, underscores, hyphens
        - Max length: 255 characters

        Args:
            name: Variable name to validate

        Returns:
            Validated variable name (unchanged if valid)

        Raises:
            SecurityError: If name is invalid
        """
        if not name:
            raise SecurityError("Variable name cannot be empty")

        if len(name) > InputSanitizer.MAX_VARIABLE_NAME_LENGTH:
            raise SecurityError(
                f"Variable name too long (max {InputSanitizer.MAX_VARIABLE_NAME_LENGTH})"
            )

        if not InputSanitizer.VARIABLE_NAME_PATTERN.match(name):
            raise SecurityError(
                f"Invalid variable name '{name}': must start with letter/underscore, "
                "contain only letters, digits, underscores, hyphens"
            )

        return name

    @staticmethod
    def sanitize_assignment(assignment: str) -> Tuple[str, str]:
        """
        Split and validate a ``name=value`` assignment.

        Only the first '=' separates name from value; the value may
        contain further '=' characters.

        Returns:
            (name, raw value text)

        Raises:
            SecurityError: If the assignment is malformed or too long
        """
        if "=" not in assignment:
            raise SecurityError(f"Expected name=value, got '{assignment}'")

        name, value = assignment.split("=", 1)
        name = InputSanitizer.sanitize_variable_name(name.strip())

        if len(value) > InputSanitizer.MAX_VARIABLE_VALUE_LENGTH:
            raise SecurityError(
                f"Variable value too long (max {InputSanitizer.MAX_VARIABLE_VALUE_LENGTH})"
            )

        return name, value

    @staticmethod
    def sanitize_expression(text: str) -> str:
        """
        Validate expression text before parsing.

        Raises:
            SecurityError: If the text is empty, too long, or has null bytes
        """
        if not text or not text.strip():
            raise SecurityError("Expression cannot be empty")

        # Check for null bytes
        if '\x00' in text:
            raise SecurityError("Expression contains a null byte")

        # Check for extremely long input (potential DoS)
        if len(text) > InputSanitizer.MAX_EXPRESSION_LENGTH:
            raise SecurityError(
                f"Expression too long (max {InputSanitizer.MAX_EXPRESSION_LENGTH})"
            )

        return text
