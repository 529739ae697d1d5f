"""Pydantic schemas for request/response validation."""
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone

from .exceptions import ErrorKind
from .format_tags import FormatTag


# Request schemas
class ConvertRequest(BaseModel):
    """
    Request body for converting a file already present on disk.

    Paths are optional and default to the workspace ``inputs`` and
    ``outputs`` directories. Relative paths are resolved against the
    workspace root.
    """
    input_format: FormatTag = Field(..., description="Format of the input file")
    output_format: FormatTag = Field(..., description="Format of the output file(s)")
    file_name: str = Field(..., min_length=1, description="Input file name, with extension")
    signals_requested: int = Field(
        0, ge=0, description="Signals to read (WFDB only); 0 reads every signal in the record"
    )
    input_path: Optional[str] = Field(None, description="Directory holding the input file")
    output_path: Optional[str] = Field(None, description="Directory receiving the output file(s)")


# Response schemas
class ConvertResponse(BaseModel):
    """Response for a conversion request."""
    request_id: str = Field(..., description="Unique request identifier")
    success: bool = Field(..., description="Whether the conversion succeeded")
    rows_written: int = Field(..., description="Rows written, -1 on failure")
    record_name: Optional[str] = Field(None, description="Record name derived from the file name")
    output_format: FormatTag = Field(..., description="Target format")
    output_files: List[str] = Field(default_factory=list, description="Files produced for the record")
    error_kind: Optional[ErrorKind] = Field(None, description="Failure category")
    error: Optional[str] = Field(None, description="Error message if failed")
    context: Dict[str, Any] = Field(default_factory=dict, description="Call context of the failure")
    processing_time_ms: float = Field(..., description="Processing time in milliseconds")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp of request")


class FormatInfo(BaseModel):
    """Capabilities of one format tag."""
    tag: FormatTag
    can_load: bool
    can_write: bool
    accepts_signal_count: bool = False
    produces_payload: bool = False
    extension: Optional[str] = None


class FormatsResponse(BaseModel):
    """Every format the converter knows about."""
    formats: List[FormatInfo] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service health status")
    version: str = Field(..., description="API version")
    workspace_exists: bool = Field(..., description="Workspace directory status")
    formats_registered: int = Field(..., description="Number of registered format handlers")


class ConfigResponse(BaseModel):
    """Response for workspace configuration."""
    workspace_path: str = Field(..., description="Current workspace path")
    workspace_exists: bool = Field(..., description="Whether workspace directory exists")
    subdirectories: Dict[str, bool] = Field(
        default_factory=dict, description="Status of each subdirectory"
    )


class ConfigUpdateRequest(BaseModel):
    """Request to update workspace configuration."""
    workspace_path: str = Field(..., description="New workspace path")
