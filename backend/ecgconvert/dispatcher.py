"""
Format dispatcher.

Routes load and write calls to the collaborator registered for a format
tag. A load builds a complete SignalRecord before anything is installed in
the workspace, so a failing load leaves the previous generation untouched.
"""
import logging
from pathlib import Path
from typing import Optional

from .exceptions import SourceParseError, UnsupportedFormatError, WriteError
from .format_tags import FormatTag
from .formats.base import SignalReader
from .formats.registry import FormatHandler, FormatRegistry, build_default_registry
from .leads import normalize_lead_names
from .settings import settings
from .workspace import ConversionWorkspace, SignalRecord

logger = logging.getLogger(__name__)


class FormatDispatcher:
    """Loads sources into a workspace and writes the workspace out."""

    def __init__(
        self,
        workspace: Optional[ConversionWorkspace] = None,
        registry: Optional[FormatRegistry] = None
    ):
        self.workspace = workspace if workspace is not None else ConversionWorkspace()
        self.registry = registry if registry is not None else build_default_registry()

    def _handler(self, fmt, direction: str, context: dict) -> FormatHandler:
        handler = self.registry.get(fmt)
        if handler is None:
            raise UnsupportedFormatError(f"Format {fmt!r} is not registered", context=context)
        if direction == "load" and not handler.can_load:
            raise UnsupportedFormatError(f"Format {handler.tag.value} cannot be loaded", context=context)
        if direction == "write" and not handler.can_write:
            raise UnsupportedFormatError(f"Format {handler.tag.value} cannot be written", context=context)
        return handler

    def read(
        self,
        fmt: FormatTag,
        file_name: str,
        signals_requested: int,
        input_path,
        record_name: str
    ) -> SignalRecord:
        """
        Load a source file and install it as the workspace's new generation.

        Args:
            fmt: Source format tag
            file_name: Source file name, without directory
            signals_requested: Signals to read (WFDB only, 0 = all in the record)
            input_path: Directory holding the source file(s)
            record_name: Record name (file name without extension)

        Returns:
            The installed SignalRecord

        Raises:
            UnsupportedFormatError: Tag unknown or not loadable
            SourceParseError: Collaborator failed, raised, or reported inconsistent data
        """
        context = {
            "format": getattr(fmt, "value", fmt),
            "file_name": file_name,
            "input_path": str(input_path),
            "record_name": record_name,
            "signals_requested": signals_requested,
        }
        handler = self._handler(fmt, "load", context)
        tag = handler.tag
        input_dir = Path(input_path)

        logger.debug(f"Load format: {tag.value}")

        try:
            reader = handler.reader(input_dir, file_name, record_name, signals_requested)

            if handler.capabilities.accepts_signal_count and signals_requested == 0:
                available = reader.signal_count(record_name)
                context["signals_available"] = available
                if available <= 0:
                    raise SourceParseError(
                        f"Record {record_name} reports {available} signals", context=context
                    )
                reader = handler.reader(input_dir, file_name, record_name, available)

            if not reader.parse():
                raise SourceParseError(f"{tag.value} loader failed to parse {file_name}", context=context)

            record = self._build_record(tag, reader)
        except SourceParseError:
            raise
        except Exception as e:
            logger.error(f"{tag.value} loader raised for {file_name}: {e}", exc_info=True)
            raise SourceParseError(f"{tag.value} loader raised: {e}", context=context) from e

        self.workspace.install(record)
        logger.info(
            f"Loaded {tag.value} record {record_name}: {record.channel_count} channels, "
            f"{record.samples_per_channel} samples at {record.sampling_rate}Hz, "
            f"leads={record.lead_names!r}"
        )
        return record

    @staticmethod
    def _build_record(tag: FormatTag, reader: SignalReader) -> SignalRecord:
        adu_gain = reader.adu_gain or settings.DEFAULT_ADU_GAIN
        lead_names = normalize_lead_names(reader.lead_names, reader.channels, tag)
        return SignalRecord(
            data=reader.data,
            sampling_rate=float(reader.sampling_rate),
            channel_count=reader.channels,
            samples_per_channel=reader.samples_per_channel,
            adu_gain=int(adu_gain),
            source_format=tag,
            lead_names=lead_names,
            number_of_points=reader.number_of_points,
            allocated_channels=reader.allocated_channels,
            payload=reader.payload if tag.capabilities.produces_payload else None,
        )

    def write(self, fmt: FormatTag, output_path, record_name: str) -> int:
        """
        Write the workspace's current generation.

        Args:
            fmt: Target format tag
            output_path: Directory receiving the output file(s)
            record_name: Base name of the output file(s)

        Returns:
            Rows written, as reported by the writer

        Raises:
            UnsupportedFormatError: Tag unknown or not writable
            WriteError: Nothing loaded, or the writer failed or raised
        """
        context = {
            "format": getattr(fmt, "value", fmt),
            "output_path": str(output_path),
            "record_name": record_name,
        }
        handler = self._handler(fmt, "write", context)
        record = self.workspace.record
        if record is None:
            raise WriteError("No signal loaded, nothing to write", context=context)

        output_file = Path(output_path) / handler.output_file_name(record_name)
        context["output_file"] = str(output_file)
        logger.debug(f"Write format: {handler.tag.value}")

        try:
            rows_written = handler.writer(record, output_file, record_name)
        except Exception as e:
            logger.error(f"{handler.tag.value} writer raised for {output_file}: {e}", exc_info=True)
            raise WriteError(f"{handler.tag.value} writer raised: {e}", context=context) from e

        if rows_written is None or rows_written < 0:
            raise WriteError(
                f"{handler.tag.value} writer reported failure ({rows_written})", context=context
            )
        return rows_written
