"""Common contract for format readers."""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

import numpy as np

from ..settings import settings

logger = logging.getLogger(__name__)


class SignalReader(ABC):
    """
    Base class for format loaders.

    A reader is built for one source and parsed once. parse() returns
    False (after logging why) when the source cannot be read; on True the
    attributes below describe the loaded signal.
    """

    def __init__(self, input_dir: Path, file_name: str, record_name: str, signals_requested: int = 0):
        self.input_dir = Path(input_dir)
        self.file_name = file_name
        self.record_name = record_name
        self.signals_requested = signals_requested

        self.sampling_rate: float = 0.0
        self.channels: int = 0
        self.samples_per_channel: int = 0
        self.data: np.ndarray = np.zeros((0, 0), dtype=np.int64)
        self.adu_gain: int = settings.DEFAULT_ADU_GAIN
        self.lead_names: Optional[List[str]] = None
        self.number_of_points: int = 0
        self.allocated_channels: int = 0
        self.payload: Any = None

    @property
    def source_path(self) -> Path:
        return self.input_dir / self.file_name

    @abstractmethod
    def parse(self) -> bool:
        """Read the source into this reader's attributes."""

    def _set_matrix(self, data: np.ndarray) -> None:
        """Store a channels x samples matrix and the counts derived from it."""
        self.data = np.asarray(data, dtype=np.int64)
        self.channels, self.samples_per_channel = self.data.shape
        self.number_of_points = self.channels * self.samples_per_channel
        if not self.allocated_channels:
            self.allocated_channels = self.channels
