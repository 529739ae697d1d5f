import json
import logging
import os
from pathlib import Path
from typing import Annotated, List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

# Path to persistent config file (next to settings.py)
CONFIG_FILE = Path(__file__).parent / "config.json"

# Workspace subdirectories that should always exist
WORKSPACE_SUBDIRS = ["inputs", "outputs"]


def load_config() -> dict:
    """Load persistent configuration from config.json."""
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config.json: {e}")
    return {}


def save_config(config: dict) -> None:
    """Save persistent configuration to config.json."""
    try:
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.error(f"Failed to save config.json: {e}")


def ensure_workspace(workspace_path: str) -> dict:
    """Create workspace directory and subdirectories if they don't exist.
    Returns a dict with the status of each subdirectory."""
    subdirs_status = {}
    ws = Path(workspace_path)

    if not ws.exists():
        ws.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created workspace directory: {ws}")

    for subdir in WORKSPACE_SUBDIRS:
        subdir_path = ws / subdir
        if not subdir_path.exists():
            subdir_path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created subdirectory: {subdir_path}")
        subdirs_status[subdir] = subdir_path.exists()

    return subdirs_status


class Settings(BaseSettings):
    """Application configuration using environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    # Server settings
    APP_NAME: str = "ECG Format Converter"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Conversion defaults
    DEFAULT_ADU_GAIN: int = 200  # used when a format does not supply a gain
    DEFAULT_SAMPLING_RATE: float = 500.0  # Hz, for text formats without a rate

    # File upload settings
    MAX_UPLOAD_SIZE_MB: int = 100
    ALLOWED_UPLOAD_EXTENSIONS: Annotated[List[str], NoDecode] = [
        ".rdt", ".xml", ".hea", ".dat", ".txt", ".csv", ".ecg",
    ]

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # Options: "json" or "text"

    # Workspace settings
    WORKSPACE_PATH: str = os.path.join(os.getcwd(), "workspace_data")

    def update_workspace_path(self, new_path: str) -> dict:
        """Update workspace path, persist to config.json, and ensure directories exist."""
        object.__setattr__(self, 'WORKSPACE_PATH', new_path)
        save_config({"workspace_path": new_path})
        return ensure_workspace(new_path)

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v: Union[str, bool]) -> bool:
        """Parse DEBUG value, handling strings with whitespace."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            v = v.strip().lower()
            return v in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("ALLOWED_UPLOAD_EXTENSIONS", mode="before")
    @classmethod
    def parse_extensions(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse extensions from comma-separated string or list."""
        if isinstance(v, str):
            return [ext.strip().lower() for ext in v.split(",") if ext.strip()]
        return v

    @field_validator("DEFAULT_ADU_GAIN")
    @classmethod
    def check_gain(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("DEFAULT_ADU_GAIN must be positive")
        return v


# Create settings instance, then override with config.json if present
settings = Settings()

# Load persisted configuration
_persisted = load_config()
if "workspace_path" in _persisted:
    object.__setattr__(settings, 'WORKSPACE_PATH', _persisted["workspace_path"])
