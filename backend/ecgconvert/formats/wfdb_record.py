"""
WFDB (PhysioNet) record reader and writer.

Records are read and written in digital (ADC) units through the wfdb
package. On read the per-signal baseline is removed and every signal is
brought to the first signal's gain, so records are written back with a
zero baseline. The stored signal format (16, 61, 212, ...) is taken from the
header on read; on write it is chosen by the output format tag.
"""
import logging
from pathlib import Path

import numpy as np
import wfdb

from ..workspace import SignalRecord
from .base import SignalReader

logger = logging.getLogger(__name__)


class WFDBReader(SignalReader):
    """Loads the first `signals_requested` signals of a WFDB record."""

    @property
    def record_path(self) -> str:
        return str(self.input_dir / self.record_name)

    def signal_count(self, record_name: str) -> int:
        """Number of signals declared in the record header, or -1 if unreadable."""
        try:
            header = wfdb.rdheader(str(self.input_dir / record_name))
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read WFDB header for {record_name} in {self.input_dir}: {e}")
            return -1
        return int(header.n_sig or 0)

    def parse(self) -> bool:
        if self.signals_requested <= 0:
            logger.error(f"signalsRequested == {self.signals_requested}")
            return False

        try:
            record = wfdb.rdrecord(
                self.record_path,
                channels=list(range(self.signals_requested)),
                physical=False,
            )
        except (OSError, ValueError, IndexError) as e:
            logger.error(f"Cannot read WFDB record {self.record_path}: {e}")
            return False

        if record.d_signal is None or record.sig_len <= 0:
            logger.error(f"samplesPerChannel == {record.sig_len}")
            return False

        digital = np.asarray(record.d_signal, dtype=np.int64).T
        n_sig = digital.shape[0]
        baselines = np.asarray(record.baseline or [0] * n_sig, dtype=np.int64)
        gains = [float(g) if g and g > 0 else 0.0 for g in (record.adc_gain or [0.0] * n_sig)]

        # the matrix is zero-based and shares the first channel's gain
        digital = digital - baselines[:, np.newaxis]
        reference_gain = gains[0]
        if reference_gain > 0:
            for i, gain in enumerate(gains):
                if gain > 0 and gain != reference_gain:
                    logger.warning(
                        f"WFDB signal {i} has gain {gain}, rescaling to {reference_gain}"
                    )
                    digital[i] = np.rint(digital[i] * (reference_gain / gain)).astype(np.int64)
            self.adu_gain = int(round(reference_gain))

        self._set_matrix(digital)
        self.sampling_rate = float(record.fs)
        self.allocated_channels = int(wfdb.rdheader(self.record_path).n_sig)
        self.lead_names = list(record.sig_name) if record.sig_name else None

        logger.info(
            f"WFDB record {self.record_name} parsed: {self.channels} of "
            f"{self.allocated_channels} signals, {self.samples_per_channel} samples "
            f"at {self.sampling_rate}Hz, fmt={record.fmt}"
        )
        return True


def write_wfdb(record: SignalRecord, output_file: Path, record_name: str, fmt: int = 16) -> int:
    """
    Write a record as a WFDB header (.hea) and signal (.dat) file pair.

    Args:
        record: Signal to write
        output_file: Header file path; its directory receives both files
        record_name: WFDB record name
        fmt: Signal file format: 16, 61 or 212

    Returns:
        Number of samples written per signal
    """
    n_sig = record.channel_count
    write_dir = output_file.parent
    write_dir.mkdir(parents=True, exist_ok=True)

    wfdb.wrsamp(
        record_name,
        fs=record.sampling_rate,
        units=['mV'] * n_sig,
        sig_name=record.channel_labels(),
        d_signal=np.ascontiguousarray(record.data.T, dtype=np.int64),
        fmt=[str(fmt)] * n_sig,
        adc_gain=[float(record.adu_gain)] * n_sig,
        baseline=[0] * n_sig,
        write_dir=str(write_dir),
    )

    logger.info(
        f"writeWFDB({write_dir}, {record_name}, fmt={fmt}): "
        f"{record.samples_per_channel} rows"
    )
    return record.samples_per_channel
