"""
Upload constraints for 3D model files.

The same checks run in the browser before an upload starts and again here
when the upload ticket is issued; only the server-side run is trusted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import ValidationError
from .utils import dotted_extension_of

ALLOWED_FILE_TYPES = (".stl", ".3mf", ".obj", ".gcode")
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB in bytes

# Content types a 3D model upload may arrive with; many clients send
# application/octet-stream for binary STL and 3MF files.
ALLOWED_MIME_TYPES = (
    "application/octet-stream",
    "model/stl",
    "application/sla",
    "model/3mf",
    "application/vnd.ms-package.3dmanufacturing-3dmodel+xml",
    "model/obj",
    "text/plain",
    "application/x-gcode",
)


@dataclass(frozen=True)
class FileValidation:
    valid: bool
    error: Optional[str] = None


def max_file_size_mb() -> int:
    return MAX_FILE_SIZE // (1024 * 1024)


def validate_file(file_name: str, file_size_bytes: int) -> FileValidation:
    """
    Check a file name and size against the upload constraints.

    Args:
        file_name: Name of the file as chosen by the user
        file_size_bytes: Declared size of the file

    Returns:
        FileValidation with valid=True, or valid=False and a user-facing error
    """
    if file_size_bytes < 0:
        return FileValidation(valid=False, error="File size cannot be negative.")

    if file_size_bytes > MAX_FILE_SIZE:
        return FileValidation(
            valid=False,
            error=f"File is too large. Maximum size is {max_file_size_mb()}MB.",
        )

    extension = dotted_extension_of(file_name)
    if extension not in ALLOWED_FILE_TYPES:
        return FileValidation(
            valid=False,
            error=f'Invalid file type "{extension}". Allowed types: {", ".join(ALLOWED_FILE_TYPES)}',
        )

    return FileValidation(valid=True)


def require_valid_file(file_name: str, file_size_bytes: int) -> None:
    """Raise ValidationError unless validate_file accepts the file."""
    result = validate_file(file_name, file_size_bytes)
    if not result.valid:
        raise ValidationError(
            result.error or "Invalid file",
            details={"file_name": file_name, "file_size_bytes": file_size_bytes},
        )
