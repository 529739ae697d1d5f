"""
Philips PageWriter TC XML reader (document versions 1.03 and 1.04).

Philips PageWriter TC uses:
- <signalcharacteristics> for sampling rate, resolution (uV per bit) and
  channel bookkeeping
- <parsedwaveforms> for the rhythm data, Base64 encoded and either
  uncompressed int16 (channels back to back) or XLI compressed

XLI splits the data into one chunk per lead. Each chunk has an 8 byte
header (int32 size, int16 code, int16 first delta) followed by 10-bit LZW
codes. The decompressed bytes hold the high bytes of every sample followed
by the low bytes, and the samples are second differences of the signal.
In XLI files leads III, aVR, aVL and aVF are stored as residuals against
the values computed from I and II.
"""
import base64
import logging
import struct
import xml.etree.ElementTree as ET
from typing import List, Optional

import numpy as np

from ..format_tags import FormatTag
from .base import SignalReader
from .waveform_codec import decode_waveform_base64, gain_from_resolution, local_tag

logger = logging.getLogger(__name__)

DOCUMENT_VERSIONS = {
    FormatTag.PHILIPS103: "1.03",
    FormatTag.PHILIPS104: "1.04",
}

XLI_HEADER = struct.Struct('<ihh')
XLI_CODE_BITS = 10


class LzwDecoder:
    """LZW decoder with fixed-width codes, as used by XLI."""

    def __init__(self, buffer: bytes, bits: int = XLI_CODE_BITS):
        self.buffer = buffer
        self.bits = bits
        self.max_code = (1 << bits) - 2
        self.offset = 0
        self.bit_count = 0
        self.bit_buffer = 0
        self.previous = b''
        self.next_code = 256
        self.strings = {code: bytes([code]) for code in range(256)}

    def _read_code(self) -> int:
        while self.bit_count <= 24:
            if self.offset < len(self.buffer):
                self.bit_buffer |= self.buffer[self.offset] << (24 - self.bit_count)
                self.bit_buffer &= 0xFFFFFFFF
                self.offset += 1
                self.bit_count += 8
            elif self.bit_count < self.bits:
                return -1
            else:
                break

        code = (self.bit_buffer >> (32 - self.bits)) & 0xFFFF
        self.bit_buffer = (self.bit_buffer << self.bits) & 0xFFFFFFFF
        self.bit_count -= self.bits
        return code

    def decode(self) -> bytes:
        out = bytearray()
        while True:
            code = self._read_code()
            if code < 0 or code > self.max_code:
                break

            data = self.strings.get(code)
            if data is None:
                data = self.previous + self.previous[:1]
            if self.previous and self.next_code <= self.max_code:
                self.strings[self.next_code] = self.previous + data[:1]
                self.next_code += 1

            self.previous = data
            out.extend(data)
        return bytes(out)


def _to_int16(value: int) -> int:
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def _decode_deltas(values: List[int], first: int) -> List[int]:
    if len(values) < 2:
        return values
    x, y = values[0], values[1]
    last = first
    for i in range(2, len(values)):
        z = (y + y) - x - last
        last = values[i] - 64
        values[i] = z
        x, y = y, z
    return values


def xli_decompress(data: bytes) -> List[List[int]]:
    """Decompress XLI data into one sample list per lead."""
    leads = []
    offset = 0
    while offset + XLI_HEADER.size <= len(data):
        size, _code, first = XLI_HEADER.unpack_from(data, offset)
        offset += XLI_HEADER.size
        chunk = data[offset:offset + size]
        offset += size

        buffer = LzwDecoder(chunk).decode()
        if len(buffer) % 2:
            buffer += b'\x00'
        half = len(buffer) // 2
        samples = [_to_int16((buffer[i] << 8) | buffer[half + i]) for i in range(half)]
        leads.append(_decode_deltas(samples, first))
    return leads


def _restore_limb_leads(leads: List[List[int]]) -> None:
    """Undo the XLI residual encoding of III, aVR, aVL and aVF in place."""
    lead_i, lead_ii, lead_iii, lead_avr, lead_avl, lead_avf = leads[:6]
    for i in range(len(lead_iii)):
        lead_iii[i] = lead_ii[i] - lead_i[i] - lead_iii[i]
    for i in range(len(lead_avr)):
        lead_avr[i] = -lead_avr[i] - (lead_i[i] + lead_ii[i]) // 2
        lead_avl[i] = (lead_i[i] - lead_iii[i]) // 2 - lead_avl[i]
        lead_avf[i] = (lead_ii[i] + lead_iii[i]) // 2 - lead_avf[i]


def _find(root: ET.Element, name: str) -> Optional[ET.Element]:
    """First descendant with the given local tag name, namespace ignored."""
    for elem in root.iter():
        if local_tag(elem.tag) == name:
            return elem
    return None


def _find_text(root: ET.Element, name: str) -> Optional[str]:
    elem = _find(root, name)
    if elem is not None and elem.text:
        return elem.text.strip()
    return None


class PhilipsReader(SignalReader):
    """Loads a Philips PageWriter XML file; keeps the parsed document as payload."""

    format_tag = FormatTag.PHILIPS104

    def parse(self) -> bool:
        try:
            root = ET.parse(self.source_path).getroot()
        except (ET.ParseError, OSError) as e:
            logger.error(f"XML parse error in Philips file {self.source_path}: {e}")
            return False

        if local_tag(root.tag) != 'restingecgdata':
            logger.error(f"Not a Philips restingecgdata document: {self.source_path}")
            return False

        expected_version = DOCUMENT_VERSIONS[self.format_tag]
        version = root.get('documentversion')
        if version and version != expected_version:
            logger.warning(
                f"Philips document version {version} read as {expected_version}: {self.source_path}"
            )

        try:
            sampling_rate = float(_find_text(root, 'samplingrate') or 0)
            resolution = float(_find_text(root, 'resolution') or 0)
            allocated = int(_find_text(root, 'numberchannelsallocated') or 0)
        except ValueError as e:
            logger.error(f"Invalid Philips signal characteristics: {e}")
            return False

        waveforms = _find(root, 'parsedwaveforms')
        if waveforms is None or not waveforms.text:
            logger.error(f"No parsedwaveforms section found in Philips XML: {self.source_path}")
            return False

        labels = (waveforms.get('leadlabels') or '').split()
        n_leads = int(waveforms.get('numberofleads') or len(labels) or 0)
        if n_leads <= 0:
            logger.error("Philips parsedwaveforms declares no leads")
            return False
        duration_ms = int(waveforms.get('durationperchannel') or 0)

        encoding = (waveforms.get('dataencoding') or 'Base64').lower()
        if encoding != 'base64':
            logger.error(f"Unsupported Philips data encoding: {encoding}")
            return False

        compression = (waveforms.get('compression') or 'Uncompressed').lower()
        if compression == 'xli':
            raw = base64.b64decode(''.join(waveforms.text.split()))
            leads = xli_decompress(raw)
            if len(leads) < n_leads:
                logger.error(f"XLI data holds {len(leads)} leads, expected {n_leads}")
                return False
            leads = leads[:n_leads]
            if labels[:6] == ['I', 'II', 'III', 'aVR', 'aVL', 'aVF']:
                _restore_limb_leads(leads)
        elif compression == 'uncompressed':
            samples = decode_waveform_base64(waveforms.text)
            per_lead = len(samples) // n_leads
            leads = [samples[i * per_lead:(i + 1) * per_lead] for i in range(n_leads)]
        else:
            logger.error(f"Unsupported Philips compression: {compression}")
            return False

        n_samples = min(len(lead) for lead in leads)
        if duration_ms and sampling_rate:
            n_samples = min(n_samples, int(duration_ms * sampling_rate / 1000))
        if n_samples <= 0:
            logger.error(f"No samples decoded from Philips file: {self.source_path}")
            return False

        self.allocated_channels = allocated
        self._set_matrix(np.array([lead[:n_samples] for lead in leads]))
        self.sampling_rate = sampling_rate
        self.adu_gain = gain_from_resolution(resolution)
        self.lead_names = labels or None
        self.payload = root

        logger.info(
            f"Philips {version or expected_version} parsed: {self.channels} leads "
            f"({compression}), {self.samples_per_channel} samples at {self.sampling_rate}Hz"
        )
        return True


class Philips103Reader(PhilipsReader):
    format_tag = FormatTag.PHILIPS103


class Philips104Reader(PhilipsReader):
    format_tag = FormatTag.PHILIPS104
