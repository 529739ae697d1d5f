"""
Lead name vocabulary and normalization.

Vendors label their channels freely. The converter only passes labels
through when every one of them is a recognized lead name; otherwise it
falls back to the standard lead order for the usual 12 and 15 channel
layouts, and reports no names at all for anything else.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from .format_tags import FormatTag

logger = logging.getLogger(__name__)


class LeadName(str, Enum):
    """Canonical lead vocabulary."""
    I = "I"
    II = "II"
    III = "III"
    aVR = "aVR"
    aVL = "aVL"
    aVF = "aVF"
    V1 = "V1"
    V2 = "V2"
    V3 = "V3"
    V4 = "V4"
    V5 = "V5"
    V6 = "V6"
    V7 = "V7"
    V8 = "V8"
    V9 = "V9"
    V3R = "V3R"
    V4R = "V4R"
    V5R = "V5R"
    V6R = "V6R"
    V7R = "V7R"
    VX = "VX"
    VY = "VY"
    VZ = "VZ"
    X = "X"
    Y = "Y"
    Z = "Z"
    # EASI and Nehb leads
    ES = "ES"
    AS = "AS"
    AI = "AI"
    D = "D"
    A = "A"
    J = "J"


VOCABULARY: FrozenSet[str] = frozenset(lead.value for lead in LeadName)

STANDARD_12 = ("I", "II", "III", "aVR", "aVL", "aVF",
               "V1", "V2", "V3", "V4", "V5", "V6")

# Formats whose 15-lead layouts carry right-sided and posterior chest leads
RIGHT_SIDED_15_FORMATS: FrozenSet[FormatTag] = frozenset({
    FormatTag.MUSEXML,
    FormatTag.PHILIPS103,
    FormatTag.PHILIPS104,
})

# (channel count, source in RIGHT_SIDED_15_FORMATS) -> default lead order
FALLBACK_LEADS: Dict[Tuple[int, bool], Tuple[str, ...]] = {
    (12, False): STANDARD_12,
    (12, True): STANDARD_12,
    (15, True): STANDARD_12 + ("V3R", "V4R", "V7"),
    (15, False): STANDARD_12 + ("VX", "VY", "VZ"),
}

LEAD_SEPARATOR = ","


def is_known_lead(label: str) -> bool:
    """Exact, case-sensitive vocabulary lookup."""
    return label in VOCABULARY


def fallback_lead_names(channel_count: int, source_format: Optional[FormatTag]) -> Optional[str]:
    """Default lead order for a channel count, or None when there is none."""
    key = (channel_count, source_format in RIGHT_SIDED_15_FORMATS)
    leads = FALLBACK_LEADS.get(key)
    if leads is None:
        return None
    return LEAD_SEPARATOR.join(leads)


def normalize_lead_names(
    raw_labels: Optional[Sequence[str]],
    channel_count: int,
    source_format: Optional[FormatTag],
) -> Optional[str]:
    """
    Reconcile reported lead labels with the canonical vocabulary.

    Args:
        raw_labels: Labels reported by the loader, in channel order (may be None)
        channel_count: Number of channels loaded
        source_format: Format the labels came from

    Returns:
        Comma-joined lead names, or None when neither the labels nor the
        channel count give a usable naming
    """
    if raw_labels:
        unknown = [label for label in raw_labels if not is_known_lead(label)]
        if not unknown and len(raw_labels) == channel_count:
            return LEAD_SEPARATOR.join(raw_labels)
        if unknown:
            logger.warning(f"Lead not found in vocabulary: {unknown[0]!r}")
        else:
            logger.warning(
                f"Lead label count {len(raw_labels)} does not match "
                f"channel count {channel_count}"
            )

    lead_names = fallback_lead_names(channel_count, source_format)
    logger.info(
        f"Setting lead names based on channel count of {channel_count} to: {lead_names!r}"
    )
    return lead_names
