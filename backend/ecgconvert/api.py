"""FastAPI application endpoints."""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from .converter import ECGFormatConverter, ConversionResult
from .format_tags import FormatTag
from .schemas import (
    ConvertRequest,
    ConvertResponse,
    FormatInfo,
    FormatsResponse,
    HealthResponse,
    ConfigResponse,
    ConfigUpdateRequest,
)
from .security import sanitize_filename, validate_file_path, validate_extension, validate_file_size
from .settings import settings, WORKSPACE_SUBDIRS
from .formats.registry import build_default_registry
from .utils import (
    generate_request_id,
    ensure_directory,
    format_file_size,
    list_output_files,
    Timer
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _resolve_in_workspace(path: Optional[str], default_subdir: str) -> Path:
    """Resolve a request path against the workspace, rejecting anything outside it."""
    workspace = Path(settings.WORKSPACE_PATH)
    resolved = workspace / default_subdir if not path else workspace / path
    if not validate_file_path(workspace, resolved):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Path must be inside the workspace: {path}",
        )
    return resolved


def _build_response(
    request_id: str,
    result: ConversionResult,
    output_format: FormatTag,
    output_dir: Path,
    timer: Timer
) -> ConvertResponse:
    output_files = list_output_files(output_dir, result.record_name) if result.success else []
    return ConvertResponse(
        request_id=request_id,
        success=result.success,
        rows_written=result.rows_written,
        record_name=result.record_name,
        output_format=output_format,
        output_files=output_files,
        error_kind=result.error_kind,
        error=result.error,
        context=result.context,
        processing_time_ms=timer.elapsed_ms(),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns:
        HealthResponse with service status
    """
    ws = Path(settings.WORKSPACE_PATH)
    workspace_exists = ws.exists() and ws.is_dir()
    registered = sum(1 for _ in build_default_registry())

    return HealthResponse(
        status="healthy" if workspace_exists else "degraded",
        version=settings.APP_VERSION,
        workspace_exists=workspace_exists,
        formats_registered=registered,
    )


@router.get("/formats", response_model=FormatsResponse)
async def list_formats() -> FormatsResponse:
    """List every format tag with what the converter can do with it."""
    registry = build_default_registry()
    formats = []
    for tag in FormatTag:
        handler = registry.get(tag)
        caps = tag.capabilities
        formats.append(FormatInfo(
            tag=tag,
            can_load=handler is not None and handler.can_load,
            can_write=handler is not None and handler.can_write,
            accepts_signal_count=caps.accepts_signal_count,
            produces_payload=caps.produces_payload,
            extension=caps.extension,
        ))
    return FormatsResponse(formats=formats)


@router.post("/convert", response_model=ConvertResponse)
async def convert_file(request: ConvertRequest) -> ConvertResponse:
    """
    Convert a file that already sits in the workspace.

    Conversion failures are reported in the body (success=False, rows_written=-1);
    only malformed requests produce an HTTP error.
    """
    request_id = generate_request_id()
    file_name = sanitize_filename(request.file_name)
    input_dir = _resolve_in_workspace(request.input_path, "inputs")
    output_dir = ensure_directory(_resolve_in_workspace(request.output_path, "outputs"))

    logger.info(
        f"Received conversion request {request_id}: {file_name} "
        f"{request.input_format.value} -> {request.output_format.value}"
    )

    converter = ECGFormatConverter()
    with Timer(f"Conversion {request_id}") as timer:
        result = await run_in_threadpool(
            converter.convert_record,
            request.input_format,
            request.output_format,
            file_name,
            request.signals_requested,
            input_dir,
            output_dir,
        )

    return _build_response(request_id, result, request.output_format, output_dir, timer)


@router.post("/convert/upload", response_model=ConvertResponse)
async def convert_upload(
    files: List[UploadFile] = File(..., description="Input file(s); WFDB needs the header and signal files"),
    input_format: FormatTag = Form(...),
    output_format: FormatTag = Form(...),
    file_name: Optional[str] = Form(None, description="File to convert; defaults to the first upload"),
    signals_requested: int = Form(0, ge=0),
) -> ConvertResponse:
    """
    Upload one record and convert it.

    Files are stored under ``inputs/<request_id>`` and the result is written
    to ``outputs/<request_id>`` in the workspace.
    """
    request_id = generate_request_id()

    # every upload is checked before anything is written
    uploads = []
    for upload in files:
        name = sanitize_filename(upload.filename or "upload.dat")

        ok, error = validate_extension(name, settings.ALLOWED_UPLOAD_EXTENSIONS)
        if not ok:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)

        content = await upload.read()
        ok, error = validate_file_size(len(content), settings.MAX_UPLOAD_SIZE_MB)
        if not ok:
            code = (status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if content
                    else status.HTTP_400_BAD_REQUEST)
            raise HTTPException(status_code=code, detail=f"{name}: {error}")

        uploads.append((name, content))

    saved = [name for name, _ in uploads]
    target_name = sanitize_filename(file_name) if file_name else saved[0]
    if target_name not in saved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File {target_name} was not uploaded",
        )

    workspace = Path(settings.WORKSPACE_PATH)
    input_dir = ensure_directory(workspace / "inputs" / request_id)
    output_dir = ensure_directory(workspace / "outputs" / request_id)

    for name, content in uploads:
        (input_dir / name).write_bytes(content)
        logger.info(f"Saved upload {name} ({format_file_size(len(content))}) for request {request_id}")

    converter = ECGFormatConverter()
    with Timer(f"Conversion {request_id}") as timer:
        result = await run_in_threadpool(
            converter.convert_record,
            input_format,
            output_format,
            target_name,
            signals_requested,
            input_dir,
            output_dir,
        )

    return _build_response(request_id, result, output_format, output_dir, timer)


@router.get("/config", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """
    Get current workspace configuration and directory status.
    """
    workspace_path = settings.WORKSPACE_PATH
    ws = Path(workspace_path)

    subdirs = {}
    for subdir in WORKSPACE_SUBDIRS:
        subdirs[subdir] = (ws / subdir).exists()

    return ConfigResponse(
        workspace_path=workspace_path,
        workspace_exists=ws.exists(),
        subdirectories=subdirs,
    )


@router.put("/config", response_model=ConfigResponse)
async def update_config(request: ConfigUpdateRequest) -> ConfigResponse:
    """
    Update workspace path, persist it, and create directories if needed.
    """
    new_path = request.workspace_path.strip()
    if not new_path:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Workspace path cannot be empty",
        )

    parent = Path(new_path).parent
    if not parent.exists():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Parent directory does not exist: {parent}",
        )

    subdirs = settings.update_workspace_path(new_path)
    logger.info(f"Workspace path updated to: {new_path}")

    return ConfigResponse(
        workspace_path=new_path,
        workspace_exists=Path(new_path).exists(),
        subdirectories=subdirs,
    )
