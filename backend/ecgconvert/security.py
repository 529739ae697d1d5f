"""Security utilities for upload validation and path sanitization."""
import os
from pathlib import Path
from typing import List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for file system operations
    """
    # Remove path traversal attempts
    filename = os.path.basename(filename.replace('\\', '/'))

    # Remove dangerous characters
    dangerous_chars = ['..', '/', '\\', '\0', '|', ';', '&', '$', '`', '>', '<']
    for char in dangerous_chars:
        filename = filename.replace(char, '_')

    # Limit filename length
    max_length = 255
    if len(filename) > max_length:
        name, ext = os.path.splitext(filename)
        filename = name[:max_length - len(ext)] + ext

    logger.debug(f"Sanitized filename: {filename}")
    return filename


def validate_file_path(base_dir: Path, file_path: Path) -> bool:
    """
    Validate that a file is within the base directory (prevent path traversal).

    Args:
        base_dir: Base directory for file operations
        file_path: File path to validate

    Returns:
        True if file is within base directory, False otherwise
    """
    try:
        file_path.resolve().relative_to(base_dir.resolve())
        return True
    except ValueError:
        logger.warning(f"Path traversal attempt detected: {file_path}")
        return False


def validate_extension(filename: str, allowed_extensions: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate a file extension against the allowed list.

    Args:
        filename: Uploaded file name
        allowed_extensions: Allowed extensions, with leading dot

    Returns:
        Tuple of (is_valid, error_message)
    """
    ext = os.path.splitext(filename)[1].lower()
    if ext not in allowed_extensions:
        logger.warning(f"Invalid file extension: {filename}")
        return False, f"File type not allowed. Allowed: {', '.join(allowed_extensions)}"
    return True, None


def validate_file_size(file_size: int, max_size_mb: int) -> Tuple[bool, Optional[str]]:
    """
    Validate file size against maximum allowed size.

    Args:
        file_size: File size in bytes
        max_size_mb: Maximum size in megabytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    max_size_bytes = max_size_mb * 1024 * 1024

    if file_size > max_size_bytes:
        logger.warning(f"File too large: {file_size} bytes (max: {max_size_bytes})")
        return False, f"File exceeds the maximum size of {max_size_mb} MB"

    if file_size == 0:
        return False, "File is empty"

    return True, None
