"""Custom exceptions for the conversion core."""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure categories reported by the dispatcher and the pipeline."""
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    SOURCE_PARSE_FAILURE = "SourceParseFailure"
    WRITE_FAILURE = "WriteFailure"
    INVALID_RECORD_NAME = "InvalidRecordName"


class ConversionError(Exception):
    """
    Error raised while loading or writing an ECG record.

    Carries the failure kind and the call context (format, file name,
    paths, record name, signal count) so the pipeline boundary can log
    it and turn it into a structured result.
    """
    kind: ErrorKind = ErrorKind.SOURCE_PARSE_FAILURE

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if kind is not None:
            self.kind = kind
        self.context = dict(context or {})
        super().__init__(message)


class UnsupportedFormatError(ConversionError):
    """Format tag not registered for the requested direction."""
    kind = ErrorKind.UNSUPPORTED_FORMAT


class SourceParseError(ConversionError):
    """Loader reported failure, raised, or returned inconsistent data."""
    kind = ErrorKind.SOURCE_PARSE_FAILURE


class WriteError(ConversionError):
    """Writer reported failure or raised."""
    kind = ErrorKind.WRITE_FAILURE


class InvalidRecordNameError(ConversionError):
    """File name has no extension separator to strip."""
    kind = ErrorKind.INVALID_RECORD_NAME
