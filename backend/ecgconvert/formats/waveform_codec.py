"""Helpers shared by the XML waveform formats."""
import base64
import logging
import struct
from typing import Dict, List, Optional

from ..settings import settings

logger = logging.getLogger(__name__)


def decode_waveform_base64(b64_data: str) -> List[int]:
    """Decode base64-encoded 16-bit signed little-endian samples."""
    try:
        clean_b64 = ''.join(b64_data.split())
        raw_bytes = base64.b64decode(clean_b64)
        num_samples = len(raw_bytes) // 2
        return list(struct.unpack(f'<{num_samples}h', raw_bytes[:num_samples * 2]))
    except (ValueError, struct.error) as e:
        logger.error(f"Error decoding waveform base64: {e}")
        return []


def gain_from_resolution(microvolts_per_unit: Optional[float]) -> int:
    """ADU gain for a resolution in uV per sample unit; the default when unknown."""
    if not microvolts_per_unit or microvolts_per_unit <= 0:
        return settings.DEFAULT_ADU_GAIN
    return max(1, int(round(1000.0 / microvolts_per_unit)))


def local_tag(tag: str) -> str:
    """Strip the namespace from an ElementTree tag."""
    return tag.split('}')[-1] if '}' in tag else tag


def derive_limb_leads(leads: Dict[str, List[int]]) -> Dict[str, List[int]]:
    """
    Add III, aVR, aVL and aVF computed from I and II when they are missing.

    Values stay in sample units (integer arithmetic).
    """
    if 'I' not in leads or 'II' not in leads:
        return leads

    lead_i = leads['I']
    lead_ii = leads['II']
    n_samples = min(len(lead_i), len(lead_ii))

    if 'III' not in leads:
        leads['III'] = [lead_ii[i] - lead_i[i] for i in range(n_samples)]
        logger.info("Calculated derived lead: III")

    if 'aVR' not in leads:
        leads['aVR'] = [-(lead_i[i] + lead_ii[i]) // 2 for i in range(n_samples)]
        logger.info("Calculated derived lead: aVR")

    if 'aVL' not in leads:
        leads['aVL'] = [lead_i[i] - lead_ii[i] // 2 for i in range(n_samples)]
        logger.info("Calculated derived lead: aVL")

    if 'aVF' not in leads:
        leads['aVF'] = [lead_ii[i] - lead_i[i] // 2 for i in range(n_samples)]
        logger.info("Calculated derived lead: aVF")

    return leads
