"""
Canonical in-memory signal representation.

A SignalRecord is one generation of loaded data: the channels x samples
matrix plus everything the loader reported about it. Records are
immutable; the ConversionWorkspace only ever swaps one record for the next.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np

from .format_tags import FormatTag
from .leads import LEAD_SEPARATOR
from .settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignalRecord:
    """One complete, internally consistent generation of ECG data."""
    data: np.ndarray
    sampling_rate: float
    channel_count: int
    samples_per_channel: int
    adu_gain: int
    source_format: FormatTag
    lead_names: Optional[str] = None
    number_of_points: int = 0
    allocated_channels: int = 0
    payload: Any = None

    def __post_init__(self):
        data = np.array(self.data, dtype=np.int64, copy=True)
        if data.size == 0 and data.ndim < 2:
            data = data.reshape(0, 0)
        if data.ndim != 2:
            raise ValueError(f"Signal matrix must be 2-dimensional, got {data.ndim} dimensions")
        data.flags.writeable = False
        object.__setattr__(self, 'data', data)

        rows, columns = data.shape
        if self.channel_count != rows:
            raise ValueError(
                f"Channel count {self.channel_count} does not match matrix rows {rows}"
            )
        if self.samples_per_channel != columns:
            raise ValueError(
                f"Samples per channel {self.samples_per_channel} does not match "
                f"matrix columns {columns}"
            )
        if self.adu_gain <= 0:
            raise ValueError(f"ADU gain must be positive, got {self.adu_gain}")
        if self.sampling_rate <= 0:
            raise ValueError(f"Sampling rate must be positive, got {self.sampling_rate}")
        if self.lead_names is not None:
            lead_count = len(self.lead_names.split(LEAD_SEPARATOR))
            if lead_count != self.channel_count:
                raise ValueError(
                    f"{lead_count} lead names for {self.channel_count} channels"
                )

    @property
    def lead_name_list(self) -> Optional[List[str]]:
        if self.lead_names is None:
            return None
        return self.lead_names.split(LEAD_SEPARATOR)

    def channel_labels(self) -> List[str]:
        """Lead names when known, otherwise generic channel labels."""
        return self.lead_name_list or [f"ch{i + 1}" for i in range(self.channel_count)]


class ConversionWorkspace:
    """
    Holds the generation produced by the most recent successful load.

    Only install() changes what the accessors return, and it replaces the
    matrix, the metadata and the payload in a single assignment.
    """

    def __init__(self):
        self._record: Optional[SignalRecord] = None

    def install(self, record: SignalRecord) -> None:
        """Replace the current generation with a new one."""
        previous = self._record
        self._record = record
        logger.debug(
            f"Installed {record.source_format.value} generation "
            f"({record.channel_count}x{record.samples_per_channel}), "
            f"replaced={'yes' if previous is not None else 'no'}"
        )

    @property
    def record(self) -> Optional[SignalRecord]:
        return self._record

    @property
    def is_loaded(self) -> bool:
        return self._record is not None

    @property
    def data(self) -> np.ndarray:
        if self._record is None:
            return np.zeros((0, 0), dtype=np.int64)
        return self._record.data

    @property
    def channel_count(self) -> int:
        return self._record.channel_count if self._record else 0

    @property
    def samples_per_channel(self) -> int:
        return self._record.samples_per_channel if self._record else 0

    @property
    def sampling_rate(self) -> float:
        return self._record.sampling_rate if self._record else 0.0

    @property
    def adu_gain(self) -> int:
        return self._record.adu_gain if self._record else settings.DEFAULT_ADU_GAIN

    @property
    def lead_names(self) -> Optional[str]:
        return self._record.lead_names if self._record else None

    @property
    def number_of_points(self) -> int:
        return self._record.number_of_points if self._record else 0

    @property
    def allocated_channels(self) -> int:
        return self._record.allocated_channels if self._record else 0

    @property
    def source_format(self) -> Optional[FormatTag]:
        return self._record.source_format if self._record else None

    @property
    def payload(self) -> Any:
        return self._record.payload if self._record else None
