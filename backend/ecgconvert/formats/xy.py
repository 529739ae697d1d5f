"""
Raw XY text reader.

Each line holds a time stamp in seconds followed by one value per channel,
separated by whitespace or commas. Lines starting with '#' are skipped.

With constant sampling the rate comes from the first time step. With
variable sampling every channel is resampled onto a uniform grid at the
mean rate by linear interpolation.
"""
import logging
import re

import numpy as np

from .base import SignalReader

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r'[\s,;]+')


class XYReader(SignalReader):
    """Loads raw XY samples."""

    variable_sample = False

    def parse(self) -> bool:
        rows = []
        try:
            with open(self.source_path, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#'):
                        continue
                    rows.append([float(v) for v in _SEPARATORS.split(line) if v])
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Cannot read XY file {self.source_path}: {e}")
            return False
        except ValueError as e:
            logger.error(f"Non-numeric value in XY file {self.source_path}: {e}")
            return False

        if len(rows) < 2:
            logger.error(f"XY file needs at least two samples: {self.source_path}")
            return False
        width = len(rows[0])
        if width < 2 or any(len(row) != width for row in rows):
            logger.error(f"XY file rows must all hold a time and the same channel count: {self.source_path}")
            return False

        table = np.array(rows)
        times = table[:, 0]
        values = table[:, 1:].T
        steps = np.diff(times)
        if np.any(steps <= 0):
            logger.error(f"XY time stamps are not strictly increasing: {self.source_path}")
            return False

        if self.variable_sample:
            period = float(times[-1] - times[0]) / (len(times) - 1)
            grid = times[0] + period * np.arange(len(times))
            values = np.vstack([np.interp(grid, times, channel) for channel in values])
        else:
            period = float(steps[0])

        self.sampling_rate = round(1.0 / period, 3)
        self._set_matrix(np.rint(values).astype(np.int64))

        logger.info(
            f"XY file parsed ({'variable' if self.variable_sample else 'constant'} sampling): "
            f"{self.channels} channels, {self.samples_per_channel} samples at {self.sampling_rate}Hz"
        )
        return True


class VariableXYReader(XYReader):
    variable_sample = True
