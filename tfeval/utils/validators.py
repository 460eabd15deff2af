"""
Validation utilities for tfeval.
"""

from pathlib import Path


def validate_project_is_terraform(project_path: str) -> bool:
    """
    Check if a directory appears to be a Terraform project.

    A valid Terraform project should have at least one .tf file.

    Args:
        project_path: Path to directory

    Returns:
        True if appears to be a Terraform project
    """
    path = Path(project_path)

    if not path.exists() or not path.is_dir():
        return False

    # Look for .tf files
    tf_files = list(path.glob("*.tf"))

    return len(tf_files) > 0
