"""
ECG format conversion pipeline.

Loads an ECG file in one format and writes it out in another:

    converter = ECGFormatConverter()
    rows = converter.convert(FormatTag.WFDB, FormatTag.RDT, "100.hea", 0, "in/", "out/")

convert() returns the number of rows written, or -1 on any failure; no
exception crosses it. convert_record() returns the same outcome as a
ConversionResult carrying the error kind and context.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .dispatcher import FormatDispatcher
from .exceptions import ConversionError, ErrorKind, InvalidRecordNameError
from .format_tags import FormatTag
from .formats.registry import FormatRegistry
from .workspace import ConversionWorkspace

logger = logging.getLogger(__name__)

FAILURE = -1


@dataclass
class ConversionResult:
    """Outcome of one conversion."""
    rows_written: int
    record_name: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.error_kind is None and self.rows_written >= 0

    @classmethod
    def failed(cls, exc: ConversionError, record_name: Optional[str] = None) -> "ConversionResult":
        return cls(
            rows_written=FAILURE,
            record_name=record_name,
            error_kind=exc.kind,
            error=exc.message,
            context=exc.context,
        )


def derive_record_name(file_name: str) -> str:
    """
    Strip the extension from a file name.

    Raises:
        InvalidRecordNameError: If the name has no '.'
    """
    index = file_name.rfind('.')
    if index < 0:
        raise InvalidRecordNameError(
            f"File name {file_name!r} has no extension",
            context={"file_name": file_name}
        )
    return file_name[:index]


class ECGFormatConverter:
    """
    Loads ECG data from one of several file formats and writes it out in another.

    The converter owns one workspace; each read replaces its contents and
    each write reads them. A lock serializes whole read+write turns, so a
    converter shared between threads never interleaves two conversions.
    """

    def __init__(
        self,
        workspace: Optional[ConversionWorkspace] = None,
        registry: Optional[FormatRegistry] = None
    ):
        self.dispatcher = FormatDispatcher(workspace, registry)
        self._lock = threading.RLock()

    @property
    def workspace(self) -> ConversionWorkspace:
        return self.dispatcher.workspace

    def convert_record(
        self,
        input_format: FormatTag,
        output_format: FormatTag,
        file_name: str,
        signals_requested: int,
        input_path,
        output_path
    ) -> ConversionResult:
        """Convert one file and report the outcome in detail."""
        try:
            record_name = derive_record_name(file_name)
        except InvalidRecordNameError as e:
            logger.error(f"Invalid record name: {e.message}", extra={"context": e.context})
            return ConversionResult.failed(e)

        with self._lock:
            try:
                self.dispatcher.read(input_format, file_name, signals_requested, input_path, record_name)
            except ConversionError as e:
                logger.error(
                    f"Record reading failed: inputFormat = {getattr(input_format, 'value', input_format)}, "
                    f"fileName = {file_name}, signalsRequested = {signals_requested}, "
                    f"inputPath = {input_path}, recordName = {record_name}: {e.message}",
                    extra={"context": e.context, "error_kind": e.kind.value}
                )
                return ConversionResult.failed(e, record_name)

            try:
                rows_written = self.dispatcher.write(output_format, output_path, record_name)
            except ConversionError as e:
                logger.error(
                    f"Record writing failed: outputFormat = {getattr(output_format, 'value', output_format)}, "
                    f"outputPath = {output_path}, recordName = {record_name}: {e.message}",
                    extra={"context": e.context, "error_kind": e.kind.value}
                )
                return ConversionResult.failed(e, record_name)

        logger.info(
            f"rowsWritten = {rows_written} outputFormat = {getattr(output_format, 'value', output_format)}"
        )
        return ConversionResult(rows_written=rows_written, record_name=record_name)

    def convert(
        self,
        input_format: FormatTag,
        output_format: FormatTag,
        file_name: str,
        signals_requested: int,
        input_path,
        output_path
    ) -> int:
        """
        Convert an ECG file from one format to another.

        Args:
            input_format: Format of the input file
            output_format: Format of the output file(s)
            file_name: Input file name; the record name is this minus its extension
            signals_requested: Number of signals to read, starting with the first.
                Only used for WFDB input; 0 reads every signal in the record.
            input_path: Location of the input file
            output_path: Location for the output file(s)

        Returns:
            Number of rows written, -1 on error
        """
        try:
            result = self.convert_record(
                input_format, output_format, file_name, signals_requested, input_path, output_path
            )
        except Exception as e:
            logger.error(f"Unexpected conversion error for {file_name}: {e}", exc_info=True)
            return FAILURE
        return result.rows_written

    def read(self, input_format: FormatTag, file_name: str, signals_requested: int,
             input_path, record_name: str) -> bool:
        """Load a file into the workspace; False on failure."""
        with self._lock:
            try:
                self.dispatcher.read(input_format, file_name, signals_requested, input_path, record_name)
                return True
            except ConversionError as e:
                logger.error(f"read failed ({e.kind.value}): {e.message}", extra={"context": e.context})
                return False

    def write(self, output_format: FormatTag, output_path, record_name: str) -> int:
        """Write the workspace out; rows written or -1 on failure."""
        with self._lock:
            try:
                return self.dispatcher.write(output_format, output_path, record_name)
            except ConversionError as e:
                logger.error(f"write failed ({e.kind.value}): {e.message}", extra={"context": e.context})
                return FAILURE


def convert(
    input_format: FormatTag,
    output_format: FormatTag,
    file_name: str,
    signals_requested: int,
    input_path,
    output_path
) -> int:
    """Run one conversion on a fresh converter (and workspace)."""
    return ECGFormatConverter().convert(
        input_format, output_format, file_name, signals_requested, input_path, output_path
    )
