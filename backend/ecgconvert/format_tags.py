"""Supported ECG file formats and their static capability flags."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


@dataclass(frozen=True)
class FormatCapabilities:
    """What the converter can do with a format."""
    can_load: bool
    can_write: bool
    accepts_signal_count: bool = False
    produces_payload: bool = False
    extension: Optional[str] = None  # appended to the record name on write


class FormatTag(str, Enum):
    """Closed set of source/target formats."""
    RDT = "RDT"
    HL7 = "HL7"
    WFDB = "WFDB"  # defaults to sub-format 16 on write
    WFDB_16 = "WFDB_16"
    WFDB_61 = "WFDB_61"
    WFDB_212 = "WFDB_212"
    GEMUSE = "GEMUSE"
    RAW_XY_CONST_SAMPLE = "RAW_XY_CONST_SAMPLE"
    RAW_XY_VAR_SAMPLE = "RAW_XY_VAR_SAMPLE"
    PHILIPS103 = "PHILIPS103"
    PHILIPS104 = "PHILIPS104"
    SCHILLER = "SCHILLER"
    MUSEXML = "MUSEXML"

    @property
    def capabilities(self) -> FormatCapabilities:
        return FORMAT_CAPABILITIES[self]

    @property
    def is_wfdb(self) -> bool:
        return self in WFDB_SUBFORMATS


# WFDB signal file format written for each WFDB tag
WFDB_SUBFORMATS: Dict[FormatTag, int] = {
    FormatTag.WFDB: 16,
    FormatTag.WFDB_16: 16,
    FormatTag.WFDB_61: 61,
    FormatTag.WFDB_212: 212,
}

_WFDB = FormatCapabilities(can_load=True, can_write=True, accepts_signal_count=True, extension=".hea")
_XML_VENDOR = FormatCapabilities(can_load=True, can_write=False, produces_payload=True)
_RAW_XY = FormatCapabilities(can_load=True, can_write=False)

FORMAT_CAPABILITIES: Dict[FormatTag, FormatCapabilities] = {
    FormatTag.RDT: FormatCapabilities(can_load=True, can_write=True, extension=".rdt"),
    FormatTag.HL7: FormatCapabilities(can_load=True, can_write=True, extension=".xml"),
    FormatTag.WFDB: _WFDB,
    FormatTag.WFDB_16: _WFDB,
    FormatTag.WFDB_61: _WFDB,
    FormatTag.WFDB_212: _WFDB,
    FormatTag.GEMUSE: FormatCapabilities(can_load=True, can_write=True, extension=".txt"),
    FormatTag.RAW_XY_CONST_SAMPLE: _RAW_XY,
    FormatTag.RAW_XY_VAR_SAMPLE: _RAW_XY,
    FormatTag.PHILIPS103: _XML_VENDOR,
    FormatTag.PHILIPS104: _XML_VENDOR,
    FormatTag.SCHILLER: _XML_VENDOR,
    FormatTag.MUSEXML: _XML_VENDOR,
}
