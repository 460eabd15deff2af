"""
Handler for .tfvars file import/export and -var style values.

Provides parsing and writing of Terraform variable definition files.
"""

import logging
from typing import Any, Optional

from .environment import Environment
from .errors import EvaluationError
from .evaluator import Evaluator
from .expression_parser import hcl_to_expression, is_meta_key, parse_expression
from .hcl_writer import format_value

logger = logging.getLogger(__name__)

# Declared types whose -var values are written as HCL expressions
_STRUCTURED_TYPES = ("number", "bool", "list", "map", "object", "tuple", "set")


class TfvarsHandler:
    """Parse and write Terraform .tfvars files."""

    @staticmethod
    def parse_tfvars(file_path: str) -> dict[str, Any]:
        """
        Parse a .tfvars file and return variable name-value pairs.

        Uses hcl2 for parsing. Values must be constants; they are
        evaluated without any variables in scope.

        Args:
            file_path: Path to the .tfvars file.

        Returns:
            Dict of variable name to value.

        Raises:
            FileNotFoundError: If file does not exist.
            ValueError: If file cannot be parsed.
        """
        import hcl2

        try:
            with open(file_path, "r") as f:
                parsed = hcl2.load(f)
        except FileNotFoundError:
            raise
        except Exception as e:
            raise ValueError(f"Failed to parse tfvars file: {e}")

        evaluator = Evaluator()
        result = {}
        for key, value in parsed.items():
            if is_meta_key(key):
                continue
            try:
                result[key] = evaluator.evaluate(hcl_to_expression(value), Environment()).to_python()
            except EvaluationError as e:
                raise ValueError(f"Invalid value for '{key}' in {file_path}: {e}")
        logger.debug(f"Read {len(result)} values from {file_path}")
        return result

    @staticmethod
    def parse_cli_value(raw: str, var_type: str = "string") -> Any:
        """
        Convert a ``-var name=value`` string according to the declared type.

        String variables take the text as-is; other types parse it as an
        HCL constant expression (``22``, ``true``, ``["a", "b"]``).

        Raises:
            ValueError: If the text is not a valid constant for the type.
        """
        if not var_type.startswith(_STRUCTURED_TYPES):
            return raw
        try:
            return Evaluator().evaluate(parse_expression(raw), Environment()).to_python()
        except EvaluationError as e:
            raise ValueError(f"Invalid {var_type} value {raw!r}: {e}")

    @staticmethod
    def write_tfvars(
        file_path: str,
        values: dict[str, Any],
        sensitive_names: Optional[set[str]] = None,
    ) -> None:
        """
        Write variable values to a .tfvars file in HCL format.

        Sensitive variables are excluded from the output.

        Args:
            file_path: Path to write the .tfvars file.
            values: Dict of variable name to value.
            sensitive_names: Set of variable names to exclude.
        """
        sensitive_names = sensitive_names or set()

        lines = []
        for name, value in sorted(values.items()):
            if name in sensitive_names:
                continue
            lines.append(f'{name} = {format_value(value)}')

        with open(file_path, "w") as f:
            f.write("\n".join(lines))
            if lines:
                f.write("\n")
