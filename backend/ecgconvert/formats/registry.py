"""
Dispatch table from format tags to loader and writer handles.

Adding a format means adding one FormatHandler entry; the dispatcher
never branches on the tag itself.
"""
import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

from ..format_tags import FormatCapabilities, FormatTag, WFDB_SUBFORMATS
from ..workspace import SignalRecord
from .base import SignalReader
from .gemuse import GEMuseReader, write_gemuse
from .hl7 import HL7Reader, write_hl7
from .musexml import MuseXMLReader
from .philips import Philips103Reader, Philips104Reader
from .rdt import RDTReader, write_rdt
from .schiller import SchillerReader
from .wfdb_record import WFDBReader, write_wfdb
from .xy import VariableXYReader, XYReader

logger = logging.getLogger(__name__)

# (input_dir, file_name, record_name, signals_requested) -> reader
ReaderFactory = Callable[[Path, str, str, int], SignalReader]
# (record, output_file, record_name) -> rows written
WriterFunc = Callable[[SignalRecord, Path, str], int]


@dataclass(frozen=True)
class FormatHandler:
    """Loader and writer handles for one format tag."""
    tag: FormatTag
    reader: Optional[ReaderFactory] = None
    writer: Optional[WriterFunc] = None

    @property
    def capabilities(self) -> FormatCapabilities:
        return self.tag.capabilities

    @property
    def can_load(self) -> bool:
        return self.reader is not None and self.capabilities.can_load

    @property
    def can_write(self) -> bool:
        return self.writer is not None and self.capabilities.can_write

    def output_file_name(self, record_name: str) -> str:
        return record_name + (self.capabilities.extension or "")


class FormatRegistry:
    """Mapping of format tags to their handlers."""

    def __init__(self):
        self._handlers: Dict[FormatTag, FormatHandler] = {}

    def register(self, handler: FormatHandler) -> None:
        if handler.tag in self._handlers:
            logger.debug(f"Replacing handler for {handler.tag.value}")
        self._handlers[handler.tag] = handler

    def unregister(self, tag: FormatTag) -> None:
        self._handlers.pop(tag, None)

    def get(self, tag) -> Optional[FormatHandler]:
        try:
            return self._handlers.get(FormatTag(tag))
        except ValueError:
            return None

    def __contains__(self, tag) -> bool:
        return self.get(tag) is not None

    def __iter__(self) -> Iterator[FormatHandler]:
        return iter(self._handlers.values())


def build_default_registry() -> FormatRegistry:
    """Registry with every built-in format."""
    registry = FormatRegistry()

    registry.register(FormatHandler(FormatTag.RDT, RDTReader, write_rdt))
    registry.register(FormatHandler(FormatTag.HL7, HL7Reader, write_hl7))
    for tag, fmt in WFDB_SUBFORMATS.items():
        # the stored sub-format is read from the header, so all tags share one reader
        registry.register(FormatHandler(tag, WFDBReader, partial(write_wfdb, fmt=fmt)))
    registry.register(FormatHandler(FormatTag.GEMUSE, GEMuseReader, write_gemuse))
    registry.register(FormatHandler(FormatTag.RAW_XY_CONST_SAMPLE, XYReader))
    registry.register(FormatHandler(FormatTag.RAW_XY_VAR_SAMPLE, VariableXYReader))
    registry.register(FormatHandler(FormatTag.PHILIPS103, Philips103Reader))
    registry.register(FormatHandler(FormatTag.PHILIPS104, Philips104Reader))
    registry.register(FormatHandler(FormatTag.SCHILLER, SchillerReader))
    registry.register(FormatHandler(FormatTag.MUSEXML, MuseXMLReader))

    return registry
