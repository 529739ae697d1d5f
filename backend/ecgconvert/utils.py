"""Utility functions for the converter service."""
import uuid
import time
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    """
    Generate a unique request ID.

    Returns:
        Unique request identifier string
    """
    return str(uuid.uuid4())


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "2.5 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"


class Timer:
    """Context manager for timing operations."""

    def __init__(self, description: str = "Operation"):
        self.description = description
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.time()
        elapsed = self.end_time - self.start_time
        logger.info(f"{self.description} completed in {elapsed:.3f}s")

    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds (so far, if still running)."""
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time else time.time()
        return round((end - self.start_time) * 1000, 2)


def ensure_directory(path: str | Path) -> Path:
    """
    Ensure a directory exists and return its Path.

    Args:
        path: Directory to create if missing

    Returns:
        Path object for the directory
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def list_output_files(output_dir: Path, record_name: str) -> list[str]:
    """Names of the files a conversion produced for a record."""
    if not output_dir.exists():
        return []
    return sorted(
        p.name for p in output_dir.iterdir()
        if p.is_file() and p.name.startswith(record_name + ".")
    )
