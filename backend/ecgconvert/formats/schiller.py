"""
Schiller EDI XML reader.

Expected structure:
<SchillerEDI>
  ...
  <wavedata>
    <type>ECG_RHYTHMS</type>
    <resolution><value>5</value><unit>uV</unit></resolution>
    <samplerate><value>500</value><unit>Hz</unit></samplerate>
    <channel><name>I</name><data>1,2,3,...</data></channel>
    ...
  </wavedata>
</SchillerEDI>
"""
import logging
import xml.etree.ElementTree as ET
from typing import List, Optional

import numpy as np

from .base import SignalReader
from .waveform_codec import gain_from_resolution, local_tag

logger = logging.getLogger(__name__)

RHYTHM_TYPE = "ECG_RHYTHMS"


def _child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    for child in elem:
        if local_tag(child.tag) == name:
            return child
    return None


def _child_value(elem: ET.Element, name: str) -> Optional[str]:
    """Text of <name><value>..</value></name>, or of <name> itself."""
    child = _child(elem, name)
    if child is None:
        return None
    value = _child(child, 'value')
    text = value.text if value is not None else child.text
    return text.strip() if text else None


class SchillerReader(SignalReader):
    """Loads a Schiller EDI XML file; keeps the parsed document as payload."""

    def parse(self) -> bool:
        try:
            root = ET.parse(self.source_path).getroot()
        except (ET.ParseError, OSError) as e:
            logger.error(f"XML parse error in Schiller file {self.source_path}: {e}")
            return False

        blocks = [elem for elem in root.iter() if local_tag(elem.tag) == 'wavedata']
        if not blocks:
            logger.error(f"No wavedata section found in Schiller XML: {self.source_path}")
            return False
        wavedata = next(
            (block for block in blocks if _child_value(block, 'type') == RHYTHM_TYPE),
            blocks[0]
        )

        try:
            sampling_rate = float(_child_value(wavedata, 'samplerate') or 0)
            resolution = float(_child_value(wavedata, 'resolution') or 0)
        except ValueError as e:
            logger.error(f"Invalid Schiller wavedata header: {e}")
            return False

        names: List[str] = []
        leads: List[List[int]] = []
        for channel in wavedata:
            if local_tag(channel.tag) != 'channel':
                continue
            name = _child_value(channel, 'name') or f"ch{len(names) + 1}"
            data = _child_value(channel, 'data') or ''
            try:
                samples = [int(v) for v in data.replace(';', ',').split(',') if v.strip()]
            except ValueError:
                logger.error(f"Schiller channel {name} holds non-integer samples")
                return False
            names.append(name)
            leads.append(samples)

        if not leads or not any(leads):
            logger.error(f"No channel data found in Schiller XML: {self.source_path}")
            return False

        n_samples = min(len(lead) for lead in leads)
        if any(len(lead) != n_samples for lead in leads):
            logger.warning(f"Schiller channels differ in length, truncating to {n_samples} samples")

        self._set_matrix(np.array([lead[:n_samples] for lead in leads]))
        self.sampling_rate = sampling_rate
        self.adu_gain = gain_from_resolution(resolution)
        self.lead_names = names
        self.payload = root

        logger.info(
            f"Schiller file parsed: {self.channels} channels, "
            f"{self.samples_per_channel} samples at {self.sampling_rate}Hz"
        )
        return True
