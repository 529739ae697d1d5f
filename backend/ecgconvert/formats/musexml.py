"""
GE MUSE RestingECG XML reader.

GE MUSE stores 8 leads (I, II, V1-V6) per Waveform section, Base64 int16
little-endian in <WaveFormData>. Files usually carry a Median section
(representative beat) and a Rhythm section; the Rhythm strip is loaded and
the limb leads III, aVR, aVL and aVF are derived from I and II.
"""
import logging
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import numpy as np

from .base import SignalReader
from .waveform_codec import decode_waveform_base64, derive_limb_leads, gain_from_resolution, local_tag

logger = logging.getLogger(__name__)

LEAD_ORDER_12 = ['I', 'II', 'III', 'aVR', 'aVL', 'aVF', 'V1', 'V2', 'V3', 'V4', 'V5', 'V6']

# MUSE writes the augmented leads in upper case in some exports
_LEAD_ALIASES = {'AVR': 'aVR', 'AVL': 'aVL', 'AVF': 'aVF'}


def _text(elem: ET.Element, name: str) -> Optional[str]:
    for child in elem:
        if local_tag(child.tag) == name and child.text:
            return child.text.strip()
    return None


def _select_waveform(root: ET.Element) -> Optional[ET.Element]:
    """The Rhythm waveform if present, otherwise the last one."""
    waveforms = [elem for elem in root.iter() if local_tag(elem.tag) == 'Waveform']
    if not waveforms:
        return None
    for waveform in waveforms:
        if (_text(waveform, 'WaveformType') or '').lower() == 'rhythm':
            return waveform
    return waveforms[-1]


class MuseXMLReader(SignalReader):
    """Loads a GE MUSE XML file; keeps the raw XML text as payload."""

    def parse(self) -> bool:
        try:
            raw_xml = self.source_path.read_text(encoding='utf-8')
            root = ET.fromstring(raw_xml)
        except (ET.ParseError, OSError, UnicodeDecodeError) as e:
            logger.error(f"XML parse error in MUSE file {self.source_path}: {e}")
            return False

        waveform = _select_waveform(root)
        if waveform is None:
            logger.error(f"No Waveform element found in MUSE XML: {self.source_path}")
            return False

        try:
            sampling_rate = float(_text(waveform, 'SampleBase') or 0)
        except ValueError as e:
            logger.error(f"Invalid MUSE SampleBase: {e}")
            return False

        leads: Dict[str, List[int]] = {}
        units_per_bit = None
        for lead_data in waveform:
            if local_tag(lead_data.tag) != 'LeadData':
                continue
            lead_id = _text(lead_data, 'LeadID')
            waveform_data = _text(lead_data, 'WaveFormData')
            if not lead_id or not waveform_data:
                continue

            samples = decode_waveform_base64(waveform_data)
            if not samples:
                logger.warning(f"Failed to decode MUSE lead {lead_id}")
                continue

            if units_per_bit is None:
                try:
                    units_per_bit = float(_text(lead_data, 'LeadAmplitudeUnitsPerBit') or 0)
                except ValueError:
                    units_per_bit = 0
            lead_id = lead_id.replace(' ', '')
            leads[_LEAD_ALIASES.get(lead_id.upper(), lead_id)] = samples

        if not leads:
            logger.error(f"No waveform data found in MUSE XML: {self.source_path}")
            return False

        stored = len(leads)
        leads = derive_limb_leads(leads)
        ordered = [name for name in LEAD_ORDER_12 if name in leads]
        ordered += [name for name in leads if name not in LEAD_ORDER_12]

        n_samples = min(len(leads[name]) for name in ordered)
        self.allocated_channels = stored
        self._set_matrix(np.array([leads[name][:n_samples] for name in ordered]))
        self.sampling_rate = sampling_rate
        self.adu_gain = gain_from_resolution(units_per_bit)
        self.lead_names = ordered
        self.payload = raw_xml

        logger.info(
            f"MUSE XML parsed: {stored} stored leads, {self.channels} after derivation, "
            f"{self.samples_per_channel} samples at {self.sampling_rate}Hz"
        )
        return True
